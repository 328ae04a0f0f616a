import argparse
import dataclasses
import json
import logging
import os
import sys

from anemic.ioc import Container, FactoryRegistrySet

import bip48
from bip48.btc.account import MultisigAccount
from bip48.btc.errors import MultisigDerivationError
from bip48.btc.keys import KeyFamily, convert_extended_key
from bip48.btc.multisig import MultisigResult, build_multisig_address
from bip48.btc.types import BITCOIN_NETWORKS, SCRIPT_TYPE_NAMES, ChangeChain, parse_script_type
from bip48.config import Config, comma_separated

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-m", "--threshold", type=int, required=True)
    common.add_argument(
        "--xpubs", type=comma_separated, help="Comma-separated list of xpubs", required=True
    )
    common.add_argument("--network", type=str, choices=BITCOIN_NETWORKS, default=None)
    common.add_argument("--script-type", type=str, choices=list(SCRIPT_TYPE_NAMES), default=None)
    common.add_argument("--strict", action=argparse.BooleanOptionalAction, default=None)

    parser = argparse.ArgumentParser(
        "bip48", description="Derive BIP-48 multisig addresses and descriptors"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    address = subparsers.add_parser("address", parents=[common])
    address.add_argument("--change", type=int, default=ChangeChain.EXTERNAL)
    address.add_argument("--index", type=int, default=0)

    addresses = subparsers.add_parser("range", parents=[common])
    addresses.add_argument("--change", type=int, default=ChangeChain.EXTERNAL)
    addresses.add_argument("--start", type=int, default=0)
    addresses.add_argument("--count", type=int, default=10)
    addresses.add_argument("--account", type=int, default=None)
    addresses.add_argument("--coin-type", type=int, default=None)

    descriptor = subparsers.add_parser("descriptor", parents=[common])
    descriptor.add_argument("--range", type=int, default=None)

    convert = subparsers.add_parser("convert")
    convert.add_argument("key", type=str)
    convert.add_argument("--to", type=str, choices=[f.prefix for f in KeyFamily], required=True)

    return parser


def get_config() -> Config:
    registries = FactoryRegistrySet()
    global_registry = registries.create_registry("global")
    registries.scan_services(bip48)
    global_container = Container(global_registry)
    return global_container.get(interface=Config)


def result_to_dict(result: MultisigResult) -> dict:
    ret = dataclasses.asdict(result)
    ret["script_type"] = result.script_type.name.lower().replace("_", "-")
    return ret


def _create_account(args, config: Config, **kwargs) -> MultisigAccount:
    return MultisigAccount(
        num_required_signers=args.threshold,
        master_xpubs=args.xpubs,
        network=args.network or config.network,
        script_type=_script_type(args, config),
        strict=_strict(args, config),
        **kwargs,
    )


def _script_type(args, config: Config):
    if args.script_type is not None:
        return parse_script_type(args.script_type)
    return config.script_type


def _strict(args, config: Config) -> bool:
    return config.strict if args.strict is None else args.strict


def run_command(args, config: Config):
    if args.command == "convert":
        return convert_extended_key(args.key, KeyFamily.from_prefix(args.to))

    if args.command == "address":
        result = build_multisig_address(
            args.threshold,
            args.xpubs,
            args.change,
            args.index,
            network=args.network or config.network,
            strict=_strict(args, config),
            script_type=_script_type(args, config),
        )
        return result_to_dict(result)

    if args.command == "range":
        account = _create_account(
            args,
            config,
            account=args.account if args.account is not None else config.account,
            coin_type=args.coin_type if args.coin_type is not None else config.coin_type,
        )
        return [
            {"index": derived.index, "path": derived.path, **result_to_dict(derived.result)}
            for derived in account.derive_range(args.start, args.count, change=args.change)
        ]

    if args.command == "descriptor":
        account = _create_account(args, config)
        desc_range = args.range if args.range is not None else config.descriptor_range
        return {
            "descriptor": account.get_descriptor(),
            "importdescriptors": account.get_import_descriptors_request(desc_range=desc_range),
        }

    raise ValueError(f"Unknown command: {args.command!r}")


def main(argv=None) -> int:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", logging.INFO),
        format="%(asctime)s:%(name)s:%(levelname)s:%(message)s",
    )
    args = create_parser().parse_args(argv)
    config = get_config()

    try:
        output = run_command(args, config)
    except MultisigDerivationError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1

    if isinstance(output, str):
        print(output)
    else:
        print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())

import dataclasses
import logging
from typing import Optional, Sequence

from bitcointx.base58 import Base58Error
from bitcointx.core.key import CPubKey
from bitcointx.core.script import OP_CHECKMULTISIG, CScript, standard_multisig_redeem_script
from bitcointx.wallet import P2WSHBitcoinAddress

from .descriptors import RANGED_SUFFIX, concrete_suffix, sortedmulti_descriptor
from .errors import (
    InvalidDerivationPathError,
    InvalidThresholdError,
    MalformedKeyError,
    ScriptConstructionError,
    TooManyCosignersError,
)
from .keys import NormalizedKey, normalize_extended_key
from .setup import NetworkParams, infer_key_network, resolve_network
from .types import MAX_COSIGNERS, BitcoinNetwork, ScriptType
from .utils import encode_segwit_address, is_non_hardened_index

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class MultisigResult:
    address: str
    witness_script_hex: str
    redeem_script_hex: Optional[str]  # only for P2WSH-P2SH
    descriptor_template: str
    descriptor_concrete: str
    network: BitcoinNetwork
    script_type: ScriptType = ScriptType.P2WSH


def validate_cosigners(m: int, xpubs: Sequence[str]) -> None:
    if isinstance(m, bool) or not isinstance(m, int) or m < 1 or m > len(xpubs):
        raise InvalidThresholdError(
            f"Invalid threshold m: {m!r} (must be an integer between 1 and {len(xpubs)})"
        )
    if len(xpubs) > MAX_COSIGNERS:
        raise TooManyCosignersError(
            f"Too many cosigners: {len(xpubs)} (at most {MAX_COSIGNERS} are supported)"
        )


def validate_change_and_index(change: int, index: int) -> None:
    if not is_non_hardened_index(change):
        raise InvalidDerivationPathError(f"Invalid change: {change!r} (must be in [0, 2**31))")
    if not is_non_hardened_index(index):
        raise InvalidDerivationPathError(f"Invalid index: {index!r} (must be in [0, 2**31))")


def normalize_cosigner_keys(
    xpubs: Sequence[str],
    network: Optional[BitcoinNetwork] = None,
) -> tuple[list[NormalizedKey], NetworkParams]:
    normalized = [normalize_extended_key(xpub) for xpub in xpubs]
    key_network = infer_key_network([n.network for n in normalized])
    return normalized, resolve_network(key_network, network)


def warn_about_single_sig_keys(normalized: Sequence[NormalizedKey], xpubs: Sequence[str]) -> None:
    for raw, key in zip(xpubs, normalized):
        if not key.family.is_single_sig:
            continue
        neutral_family = key.family.neutral_family_for(key.network)
        logger.warning(
            "%s... looks single-sig (%s). "
            "For BIP-48 multisig, use %s (or %s) at m/48'/...'/(2'|1').",
            raw[:10],
            key.family.prefix,
            key.family.multisig_counterpart.prefix,
            neutral_family.prefix,
        )


def derive_child_pubkeys(
    normalized: Sequence[NormalizedKey],
    params: NetworkParams,
    change: int,
    index: int,
) -> list[CPubKey]:
    child_pubkeys = []
    for key in normalized:
        try:
            xpub = params.ext_pubkey_class(key.neutral)
        except (Base58Error, ValueError) as e:
            raise MalformedKeyError(
                f"Invalid extended public key {key.neutral[:10]}...: {e}"
            ) from e
        try:
            child = xpub.derive(int(change)).derive(int(index))
        except ValueError as e:
            raise InvalidDerivationPathError(
                f"Cannot derive {change}/{index} from {key.neutral[:10]}...: {e}"
            ) from e
        child_pubkeys.append(child.pub)
    return child_pubkeys


def sort_pubkeys(pubkeys: Sequence[CPubKey]) -> list[CPubKey]:
    """
    BIP-67 ordering: ascending unsigned byte order of the compressed public keys
    """
    return sorted(pubkeys, key=bytes)


def multisig_witness_script(m: int, sorted_pubkeys: Sequence[CPubKey]) -> CScript:
    if len(sorted_pubkeys) == 1:
        # bitcointx refuses 1-of-1, but sortedmulti(1,K) is valid
        return CScript([1, sorted_pubkeys[0], 1, OP_CHECKMULTISIG])
    return standard_multisig_redeem_script(
        total=len(sorted_pubkeys),
        required=m,
        pubkeys=list(sorted_pubkeys),
    )


def build_scripts(
    m: int,
    sorted_pubkeys: Sequence[CPubKey],
    params: NetworkParams,
    script_type: ScriptType,
) -> tuple[str, CScript, Optional[CScript]]:
    """
    Return (address, witness_script, redeem_script) for the multisig over the already sorted keys
    """
    try:
        witness_script = multisig_witness_script(m, sorted_pubkeys)
        p2wsh = P2WSHBitcoinAddress.from_redeemScript(witness_script)
        if script_type == ScriptType.P2WSH:
            return encode_segwit_address(p2wsh, hrp=params.bech32_hrp), witness_script, None
        if script_type == ScriptType.P2WSH_P2SH:
            redeem_script = p2wsh.to_scriptPubKey()
            p2sh = params.p2sh_address_class.from_redeemScript(redeem_script)
            return str(p2sh), witness_script, redeem_script
    except ScriptConstructionError:
        raise
    except ValueError as e:
        raise ScriptConstructionError(f"Failed to build multisig script: {e}") from e
    raise ScriptConstructionError(f"Unsupported script type: {script_type!r}")


def build_multisig_address(
    m: int,
    xpubs: Sequence[str],
    change: int,
    index: int,
    *,
    network: Optional[BitcoinNetwork] = None,
    strict: bool = True,
    script_type: ScriptType = ScriptType.P2WSH,
) -> MultisigResult:
    """
    Derive the BIP-48 multisig address at change/index for a set of account-level cosigner keys.

    The keys are sorted (BIP-67) after derivation, so the address and scripts do not depend on
    the order of `xpubs`. The descriptors keep the neutral account-level keys in input order.
    """
    validate_cosigners(m, xpubs)
    validate_change_and_index(change, index)
    normalized, params = normalize_cosigner_keys(xpubs, network)
    if strict:
        warn_about_single_sig_keys(normalized, xpubs)

    child_pubkeys = derive_child_pubkeys(normalized, params, change, index)
    address, witness_script, redeem_script = build_scripts(
        m,
        sort_pubkeys(child_pubkeys),
        params,
        script_type,
    )

    neutral_keys = [key.neutral for key in normalized]
    return MultisigResult(
        address=address,
        witness_script_hex=witness_script.hex(),
        redeem_script_hex=redeem_script.hex() if redeem_script is not None else None,
        descriptor_template=sortedmulti_descriptor(m, neutral_keys, RANGED_SUFFIX, script_type),
        descriptor_concrete=sortedmulti_descriptor(
            m, neutral_keys, concrete_suffix(change, index), script_type
        ),
        network=params.name,
        script_type=script_type,
    )

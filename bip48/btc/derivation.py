import dataclasses
from typing import Iterator, Optional, Sequence

from .errors import InvalidDerivationPathError
from .multisig import MultisigResult, build_multisig_address
from .types import HARDENED_OFFSET, BitcoinNetwork, CoinType, ScriptType
from .utils import is_non_hardened_index

BIP48_PURPOSE = 48


def bip48_account_path(
    coin_type: CoinType,
    account: int,
    script_type: ScriptType,
) -> str:
    if not is_non_hardened_index(account):
        raise InvalidDerivationPathError(f"Invalid account: {account!r} (must be in [0, 2**31))")
    return f"m/{BIP48_PURPOSE}'/{int(coin_type)}'/{account}'/{int(script_type)}'"


def bip48_derivation_path(
    coin_type: CoinType,
    account: int,
    script_type: ScriptType,
    change: int,
    index: int,
) -> str:
    """
    Full BIP-48 path of a cosigner key: m/48'/coin_type'/account'/script_type'/change/index
    """
    if not is_non_hardened_index(change):
        raise InvalidDerivationPathError(f"Invalid change: {change!r} (must be in [0, 2**31))")
    if not is_non_hardened_index(index):
        raise InvalidDerivationPathError(f"Invalid index: {index!r} (must be in [0, 2**31))")
    account_path = bip48_account_path(coin_type, account, script_type)
    return f"{account_path}/{int(change)}/{index}"


@dataclasses.dataclass(frozen=True)
class DerivedMultisigAddress:
    result: MultisigResult
    index: int
    path: str

    @property
    def address(self) -> str:
        return self.result.address


class DerivedAddressRange:
    """
    Addresses for indices start..start+count-1, derived lazily.

    Every iteration derives the addresses from scratch, so the range can be iterated any number
    of times. Iteration stops with the error of the first index that cannot be derived.
    """

    def __init__(
        self,
        *,
        m: int,
        xpubs: Sequence[str],
        change: int,
        start: int,
        count: int,
        account: int = 0,
        script_type: ScriptType = ScriptType.P2WSH,
        coin_type: CoinType = CoinType.TESTNET,
        network: Optional[BitcoinNetwork] = None,
        strict: bool = True,
    ):
        if not is_non_hardened_index(start):
            raise InvalidDerivationPathError(f"Invalid start: {start!r} (must be in [0, 2**31))")
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise InvalidDerivationPathError(f"Invalid count: {count!r} (must be non-negative)")
        if start + count > HARDENED_OFFSET:
            raise InvalidDerivationPathError(
                f"Range {start}..{start + count - 1} reaches into hardened indices"
            )
        # validates account and change up front
        bip48_derivation_path(coin_type, account, script_type, change, start)

        self.m = m
        self.xpubs = tuple(xpubs)
        self.change = change
        self.start = start
        self.count = count
        self.account = account
        self.script_type = script_type
        self.coin_type = coin_type
        self.network = network
        self.strict = strict

    def __len__(self) -> int:
        return self.count

    def __iter__(self) -> Iterator[DerivedMultisigAddress]:
        for index in self.indices:
            yield self.derive(index)

    def __repr__(self):
        return (
            f"DerivedAddressRange({self.m}-of-{len(self.xpubs)}, "
            f"change={int(self.change)}, indices={self.start}..{self.start + self.count - 1})"
        )

    @property
    def indices(self) -> range:
        return range(self.start, self.start + self.count)

    def derive(self, index: int) -> DerivedMultisigAddress:
        path = bip48_derivation_path(
            self.coin_type,
            self.account,
            self.script_type,
            self.change,
            index,
        )
        result = build_multisig_address(
            self.m,
            self.xpubs,
            self.change,
            index,
            network=self.network,
            strict=self.strict,
            script_type=self.script_type,
        )
        return DerivedMultisigAddress(result=result, index=index, path=path)


def derive_multisig_addresses(
    m: int,
    xpubs: Sequence[str],
    change: int,
    start: int,
    count: int,
    *,
    account: int = 0,
    script_type: ScriptType = ScriptType.P2WSH,
    coin_type: CoinType = CoinType.TESTNET,
    network: Optional[BitcoinNetwork] = None,
    strict: bool = True,
) -> DerivedAddressRange:
    return DerivedAddressRange(
        m=m,
        xpubs=xpubs,
        change=change,
        start=start,
        count=count,
        account=account,
        script_type=script_type,
        coin_type=coin_type,
        network=network,
        strict=strict,
    )

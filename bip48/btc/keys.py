"""
SLIP-132 extended public key families and normalization.

Wallets export the same account-level key material under different version
bytes depending on the script type they intend it for (xpub/ypub/zpub/Ypub/Zpub
on mainnet, tpub/upub/vpub/Upub/Vpub on testnet). BIP-32 derivation only
understands the neutral versions (xpub and tpub), so every key is rewritten to
its network's neutral version before use. Only the version bytes and the
checksum change; the rest of the serialized key is kept byte for byte.
"""

import dataclasses
import enum
from typing import Literal

from bitcointx.base58 import Base58Error, CBase58Data

from .errors import MalformedKeyError, UnknownPrefixError
from .types import KeyNetwork

VERSION_LENGTH = 4

KeyKind = Literal["neutral", "singlesig", "multisig"]


class KeyFamily(enum.Enum):
    XPUB = "xpub"
    YPUB = "ypub"
    ZPUB = "zpub"
    YPUB_MULTISIG = "Ypub"
    ZPUB_MULTISIG = "Zpub"
    TPUB = "tpub"
    UPUB = "upub"
    VPUB = "vpub"
    UPUB_MULTISIG = "Upub"
    VPUB_MULTISIG = "Vpub"

    @property
    def prefix(self) -> str:
        return self.value

    @property
    def version(self) -> bytes:
        return _FAMILY_INFO[self].version

    @property
    def network(self) -> KeyNetwork:
        return _FAMILY_INFO[self].network

    @property
    def kind(self) -> KeyKind:
        return _FAMILY_INFO[self].kind

    @property
    def is_neutral(self) -> bool:
        return self.kind == "neutral"

    @property
    def is_single_sig(self) -> bool:
        return self.kind == "singlesig"

    @property
    def multisig_counterpart(self) -> "KeyFamily":
        """
        The multisig flavour that should be used instead of a single-sig one (ypub -> Ypub etc.)
        """
        return _MULTISIG_COUNTERPARTS.get(self, self)

    @classmethod
    def neutral_family_for(cls, network: KeyNetwork) -> "KeyFamily":
        return _NEUTRAL_FAMILIES[network]

    @classmethod
    def from_version(cls, version: bytes) -> "KeyFamily":
        try:
            return _FAMILIES_BY_VERSION[bytes(version)]
        except KeyError:
            raise UnknownPrefixError(
                f"Unknown extended key version bytes: {bytes(version).hex()}"
            ) from None

    @classmethod
    def from_prefix(cls, prefix: str) -> "KeyFamily":
        try:
            return cls(prefix)
        except ValueError:
            raise UnknownPrefixError(f"Unknown extended key prefix: {prefix!r}") from None


@dataclasses.dataclass(frozen=True)
class _KeyFamilyInfo:
    version: bytes
    network: KeyNetwork
    kind: KeyKind


_FAMILY_INFO: dict[KeyFamily, _KeyFamilyInfo] = {
    KeyFamily.XPUB: _KeyFamilyInfo(bytes.fromhex("0488b21e"), "mainnet", "neutral"),
    KeyFamily.YPUB: _KeyFamilyInfo(bytes.fromhex("049d7cb2"), "mainnet", "singlesig"),
    KeyFamily.ZPUB: _KeyFamilyInfo(bytes.fromhex("04b24746"), "mainnet", "singlesig"),
    KeyFamily.YPUB_MULTISIG: _KeyFamilyInfo(bytes.fromhex("0295b43f"), "mainnet", "multisig"),
    KeyFamily.ZPUB_MULTISIG: _KeyFamilyInfo(bytes.fromhex("02aa7ed3"), "mainnet", "multisig"),
    KeyFamily.TPUB: _KeyFamilyInfo(bytes.fromhex("043587cf"), "testnet", "neutral"),
    KeyFamily.UPUB: _KeyFamilyInfo(bytes.fromhex("044a5262"), "testnet", "singlesig"),
    KeyFamily.VPUB: _KeyFamilyInfo(bytes.fromhex("045f1cf6"), "testnet", "singlesig"),
    KeyFamily.UPUB_MULTISIG: _KeyFamilyInfo(bytes.fromhex("024289ef"), "testnet", "multisig"),
    KeyFamily.VPUB_MULTISIG: _KeyFamilyInfo(bytes.fromhex("02575483"), "testnet", "multisig"),
}
assert set(_FAMILY_INFO) == set(KeyFamily), "every key family needs a version table entry"

_FAMILIES_BY_VERSION = {info.version: family for (family, info) in _FAMILY_INFO.items()}
assert len(_FAMILIES_BY_VERSION) == len(_FAMILY_INFO), "version bytes must be unique"

_NEUTRAL_FAMILIES: dict[KeyNetwork, KeyFamily] = {
    "mainnet": KeyFamily.XPUB,
    "testnet": KeyFamily.TPUB,
}

_MULTISIG_COUNTERPARTS = {
    KeyFamily.YPUB: KeyFamily.YPUB_MULTISIG,
    KeyFamily.ZPUB: KeyFamily.ZPUB_MULTISIG,
    KeyFamily.UPUB: KeyFamily.UPUB_MULTISIG,
    KeyFamily.VPUB: KeyFamily.VPUB_MULTISIG,
}


@dataclasses.dataclass(frozen=True)
class NormalizedKey:
    neutral: str
    network: KeyNetwork
    family: KeyFamily  # family of the key as it was supplied


def decode_extended_key(key: str) -> bytes:
    """
    Check-decode an extended key and return the payload (version bytes included, checksum stripped)
    """
    if not isinstance(key, str):
        raise MalformedKeyError(f"Extended key must be a string, got {type(key).__name__}")
    if not key:
        raise MalformedKeyError("Extended key is empty")
    try:
        payload = bytes(CBase58Data(key))
    except Base58Error as e:
        raise MalformedKeyError(f"Invalid extended key encoding: {e}") from e
    if len(payload) < VERSION_LENGTH:
        raise MalformedKeyError("Extended key too short")
    return payload


def encode_extended_key(payload: bytes) -> str:
    return str(CBase58Data.from_bytes(payload))


def detect_key_family(key: str) -> KeyFamily:
    payload = decode_extended_key(key)
    return KeyFamily.from_version(payload[:VERSION_LENGTH])


def convert_extended_key(key: str, family: KeyFamily) -> str:
    """
    Re-encode the key material of `key` under the version bytes of `family`.

    The source key must belong to a known family. Converting across networks is allowed
    (the key material is the same), it's up to the caller to know what they are doing.
    """
    payload = decode_extended_key(key)
    source_family = KeyFamily.from_version(payload[:VERSION_LENGTH])
    if source_family == family:
        return key
    return encode_extended_key(family.version + payload[VERSION_LENGTH:])


def normalize_extended_key(key: str) -> NormalizedKey:
    payload = decode_extended_key(key)
    family = KeyFamily.from_version(payload[:VERSION_LENGTH])
    if family.is_neutral:
        neutral = key
    else:
        neutral_family = KeyFamily.neutral_family_for(family.network)
        neutral = encode_extended_key(neutral_family.version + payload[VERSION_LENGTH:])
    return NormalizedKey(
        neutral=neutral,
        network=family.network,
        family=family,
    )

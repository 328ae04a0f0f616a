"""
Output descriptor text for BIP-48 multisig accounts (BIP-380/381/383) and descriptor checksums.
"""

from typing import Sequence

from .types import ScriptType

# Checksum algorithm from BIP-380
INPUT_CHARSET = (
    "0123456789()[],'/*abcdefgh@:$%{}"
    "IJKLMNOPQRSTUVWXYZ&+-.;<=>?!^_|~"
    "ijklmnopqrstuvwxyzABCDEFGH`#\"\\ "
)
CHECKSUM_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
GENERATOR = [0xF5DEE51989, 0xA9FDCA3312, 0x1BAB10E32D, 0x3706B1677A, 0x644D626FFD]
CHECKSUM_LENGTH = 8

RANGED_SUFFIX = "/0/*"


def sortedmulti_descriptor(
    threshold: int,
    keys: Sequence[str],
    suffix: str,
    script_type: ScriptType = ScriptType.P2WSH,
) -> str:
    """
    Build a sortedmulti descriptor, keeping the keys in the given order (the consumer sorts them)
    """
    keys_str = ",".join(f"{key}{suffix}" for key in keys)
    descriptor = f"wsh(sortedmulti({threshold},{keys_str}))"
    if script_type == ScriptType.P2WSH_P2SH:
        descriptor = f"sh({descriptor})"
    return descriptor


def concrete_suffix(change: int, index: int) -> str:
    return f"/{int(change)}/{int(index)}"


def _polymod(symbols: list[int]) -> int:
    chk = 1
    for value in symbols:
        top = chk >> 35
        chk = (chk & 0x7FFFFFFFF) << 5 ^ value
        for i in range(5):
            chk ^= GENERATOR[i] if ((top >> i) & 1) else 0
    return chk


def _expand(descriptor: str) -> list[int]:
    groups = []
    symbols = []
    for c in descriptor:
        v = INPUT_CHARSET.find(c)
        if v < 0:
            raise ValueError(f"Invalid character in descriptor: {c!r}")
        symbols.append(v & 31)
        groups.append(v >> 5)
        if len(groups) == 3:
            symbols.append(groups[0] * 9 + groups[1] * 3 + groups[2])
            groups = []
    if len(groups) == 1:
        symbols.append(groups[0])
    elif len(groups) == 2:
        symbols.append(groups[0] * 3 + groups[1])
    return symbols


def descriptor_checksum(descriptor: str) -> str:
    symbols = _expand(descriptor) + [0] * CHECKSUM_LENGTH
    checksum = _polymod(symbols) ^ 1
    return "".join(
        CHECKSUM_CHARSET[(checksum >> (5 * (CHECKSUM_LENGTH - 1 - i))) & 31]
        for i in range(CHECKSUM_LENGTH)
    )


def descsum_create(descriptor: str) -> str:
    return f"{descriptor}#{descriptor_checksum(descriptor)}"


def descsum_check(descriptor: str) -> bool:
    body, sep, checksum = descriptor.rpartition("#")
    if not sep or len(checksum) != CHECKSUM_LENGTH:
        return False
    if not all(c in CHECKSUM_CHARSET for c in checksum):
        return False
    try:
        symbols = _expand(body)
    except ValueError:
        return False
    return _polymod(symbols + [CHECKSUM_CHARSET.find(c) for c in checksum]) == 1

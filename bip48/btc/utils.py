from typing import Optional

from bitcointx import segwit_addr

from .errors import ScriptConstructionError
from .types import HARDENED_OFFSET


def encode_segwit_address(witness_program: bytes, *, hrp: str, witver: int = 0) -> str:
    try:
        address: Optional[str] = segwit_addr.encode(hrp, witver, witness_program)
    except ValueError as e:
        raise ScriptConstructionError(f"Cannot encode segwit address: {e}") from e
    if not address:
        raise ScriptConstructionError(
            f"Cannot encode witness program {bytes(witness_program).hex()} with hrp {hrp!r}"
        )
    return address


def is_non_hardened_index(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < HARDENED_OFFSET

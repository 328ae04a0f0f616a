import enum
from typing import Literal


BitcoinNetwork = Literal["mainnet", "testnet", "signet"]
BITCOIN_NETWORKS = ["mainnet", "testnet", "signet"]

# Networks that can be told apart from extended key version bytes alone.
# Signet keys look exactly like testnet keys.
KeyNetwork = Literal["mainnet", "testnet"]

MAX_COSIGNERS = 15
HARDENED_OFFSET = 2**31


def is_bitcoin_network(network: str) -> bool:
    return network in BITCOIN_NETWORKS


class CoinType(enum.IntEnum):
    MAINNET = 0
    TESTNET = 1


class ScriptType(enum.IntEnum):
    """
    BIP-48 script type, i.e. the fourth (hardened) component of the account path
    """

    P2WSH_P2SH = 1
    P2WSH = 2


class ChangeChain(enum.IntEnum):
    EXTERNAL = 0
    INTERNAL = 1


SCRIPT_TYPE_NAMES = {
    "p2wsh": ScriptType.P2WSH,
    "p2wsh-p2sh": ScriptType.P2WSH_P2SH,
}


def parse_script_type(value: str | int | ScriptType) -> ScriptType:
    if isinstance(value, str):
        try:
            return SCRIPT_TYPE_NAMES[value.strip().lower()]
        except KeyError:
            raise ValueError(
                f"Unknown script type: {value!r} (expected one of {list(SCRIPT_TYPE_NAMES)})"
            ) from None
    return ScriptType(value)

from bitcointx.base58 import CBase58Data
from bitcointx.wallet import CBitcoinTestnetExtPubKey


def swap_version(ext_key: str, to_version_hex: str) -> str:
    payload = bytes(CBase58Data(ext_key))
    return str(CBase58Data.from_bytes(bytes.fromhex(to_version_hex) + payload[4:]))


def decode_payload(ext_key: str) -> bytes:
    return bytes(CBase58Data(ext_key))


def derive_distinct_tpubs(tpub: str, count: int) -> list[str]:
    parent = CBitcoinTestnetExtPubKey(tpub)
    return [str(parent.derive(i)) for i in range(count)]

import dataclasses
import logging
from typing import Optional

from bitcointx.wallet import (
    CBitcoinExtPubKey,
    CBitcoinTestnetExtPubKey,
    P2SHBitcoinAddress,
    P2SHBitcoinTestnetAddress,
)

from .errors import MixedNetworksError
from .types import BITCOIN_NETWORKS, BitcoinNetwork, CoinType, KeyNetwork, is_bitcoin_network

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class NetworkParams:
    """
    Everything that differs between networks when deriving multisig addresses.

    python-bitcointx normally picks these through select_chain_params(), which stores the choice
    in context variables that are reset for every new thread. We pass the parameters around
    explicitly instead, so derivation works the same from any thread.
    """

    name: BitcoinNetwork
    key_network: KeyNetwork
    bech32_hrp: str
    coin_type: CoinType
    ext_pubkey_class: type[CBitcoinExtPubKey]
    p2sh_address_class: type[P2SHBitcoinAddress]


MAINNET = NetworkParams(
    name="mainnet",
    key_network="mainnet",
    bech32_hrp="bc",
    coin_type=CoinType.MAINNET,
    ext_pubkey_class=CBitcoinExtPubKey,
    p2sh_address_class=P2SHBitcoinAddress,
)
TESTNET = NetworkParams(
    name="testnet",
    key_network="testnet",
    bech32_hrp="tb",
    coin_type=CoinType.TESTNET,
    ext_pubkey_class=CBitcoinTestnetExtPubKey,
    p2sh_address_class=P2SHBitcoinTestnetAddress,
)
# Signet reuses testnet's version bytes and human-readable part
SIGNET = dataclasses.replace(TESTNET, name="signet")

NETWORK_PARAMS: dict[BitcoinNetwork, NetworkParams] = {
    "mainnet": MAINNET,
    "testnet": TESTNET,
    "signet": SIGNET,
}
assert set(NETWORK_PARAMS) == set(BITCOIN_NETWORKS)


def get_network_params(network: BitcoinNetwork) -> NetworkParams:
    if not is_bitcoin_network(network):
        raise ValueError(f"Unknown network: {network!r} (expected one of {BITCOIN_NETWORKS})")
    return NETWORK_PARAMS[network]


def infer_key_network(key_networks: list[KeyNetwork]) -> KeyNetwork:
    """
    Return the single network shared by all keys, or raise MixedNetworksError
    """
    distinct = set(key_networks)
    if not distinct:
        raise ValueError("Cannot infer the network from an empty list of keys")
    if len(distinct) > 1:
        raise MixedNetworksError(f"Mixed networks in keys: {sorted(distinct)}")
    return key_networks[0]


def resolve_network(
    key_network: KeyNetwork,
    override: Optional[BitcoinNetwork] = None,
) -> NetworkParams:
    """
    Apply the caller's network override on top of the network inferred from the keys.

    Testnet-like keys can be presented as either testnet or signet; they can never produce
    mainnet addresses (and vice versa).
    """
    if override is None:
        return NETWORK_PARAMS[key_network]
    params = get_network_params(override)
    if params.key_network != key_network:
        raise MixedNetworksError(
            f"Network {override!r} does not match the network of the keys ({key_network!r})"
        )
    if params.name != key_network:
        logger.debug("Presenting %s keys as %s", key_network, params.name)
    return params

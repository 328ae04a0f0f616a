import logging
from typing import Optional

import environ
from anemic.ioc import service

from bip48.btc.types import BITCOIN_NETWORKS, BitcoinNetwork, CoinType, parse_script_type

logger = logging.getLogger(__name__)


def comma_separated(s: str):
    return [x.strip() for x in s.split(",") if x.strip()]


def optional_network(s: Optional[str]) -> Optional[BitcoinNetwork]:
    if s is None or not s.strip():
        return None
    network = s.strip().lower()
    if network not in BITCOIN_NETWORKS:
        raise ValueError(f"Invalid network: {s!r} (expected one of {BITCOIN_NETWORKS})")
    return network


def optional_coin_type(s) -> Optional[CoinType]:
    if s is None or (isinstance(s, str) and not s.strip()):
        return None
    return CoinType(int(s))


@environ.config(prefix="BIP48")
class Config:
    # Empty means "infer from the keys"
    network: Optional[BitcoinNetwork] = environ.var(default=None, converter=optional_network)
    strict = environ.bool_var(default=True)
    script_type = environ.var(default="p2wsh", converter=parse_script_type)
    account = environ.var(default=0, converter=int)
    # Empty means "derive from the network"
    coin_type = environ.var(default=None, converter=optional_coin_type)
    descriptor_range = environ.var(default=1000, converter=int)


@service(interface_override=Config, scope="global")
def create_config(_):
    return environ.to_config(Config)

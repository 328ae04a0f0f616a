from .btc.account import MultisigAccount
from .btc.derivation import (
    DerivedAddressRange,
    DerivedMultisigAddress,
    bip48_derivation_path,
    derive_multisig_addresses,
)
from .btc.errors import (
    InvalidDerivationPathError,
    InvalidThresholdError,
    MalformedKeyError,
    MixedNetworksError,
    MultisigDerivationError,
    ScriptConstructionError,
    TooManyCosignersError,
    UnknownPrefixError,
)
from .btc.keys import KeyFamily, convert_extended_key, normalize_extended_key
from .btc.multisig import MultisigResult, build_multisig_address
from .btc.types import ChangeChain, CoinType, ScriptType

__version__ = "0.1.0"

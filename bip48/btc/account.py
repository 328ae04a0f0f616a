import logging
from typing import Any, Optional, Sequence

from .derivation import DerivedAddressRange, bip48_account_path, derive_multisig_addresses
from .descriptors import RANGED_SUFFIX, descsum_create, sortedmulti_descriptor
from .multisig import (
    MultisigResult,
    build_multisig_address,
    normalize_cosigner_keys,
    validate_cosigners,
    warn_about_single_sig_keys,
)
from .types import BitcoinNetwork, ChangeChain, CoinType, ScriptType

logger = logging.getLogger(__name__)


class MultisigAccount:
    """
    A BIP-48 multisig account: the cosigner keys, threshold, network and script type.

    Validates the keys once on construction; the derivation methods are pure and can be called
    from any thread.
    """

    def __init__(
        self,
        *,
        num_required_signers: int,
        master_xpubs: Sequence[str],
        network: Optional[BitcoinNetwork] = None,
        script_type: ScriptType = ScriptType.P2WSH,
        account: int = 0,
        coin_type: Optional[CoinType] = None,
        strict: bool = True,
    ):
        validate_cosigners(num_required_signers, master_xpubs)
        normalized, params = normalize_cosigner_keys(master_xpubs, network)
        if strict:
            warn_about_single_sig_keys(normalized, master_xpubs)

        self._master_xpubs = list(master_xpubs)
        self._neutral_xpubs = [key.neutral for key in normalized]
        self._num_required_signers = num_required_signers
        self._network: BitcoinNetwork = params.name
        self._script_type = script_type
        self._account = account
        self._coin_type = coin_type if coin_type is not None else params.coin_type
        # warnings were already emitted above, don't repeat them for every address
        self._strict = False
        # validates account
        self.account_path = bip48_account_path(self._coin_type, account, script_type)

        logger.debug(
            "Multisig account %s-of-%s on %s at %s",
            num_required_signers,
            len(master_xpubs),
            self._network,
            self.account_path,
        )

    @property
    def network(self) -> BitcoinNetwork:
        return self._network

    @property
    def num_required_signers(self) -> int:
        return self._num_required_signers

    @property
    def neutral_xpubs(self) -> list[str]:
        return list(self._neutral_xpubs)

    def address_at(self, change: int, index: int) -> MultisigResult:
        return build_multisig_address(
            self._num_required_signers,
            self._master_xpubs,
            change,
            index,
            network=self._network,
            strict=self._strict,
            script_type=self._script_type,
        )

    def derive_range(
        self,
        start: int,
        count: int,
        *,
        change: int = ChangeChain.EXTERNAL,
    ) -> DerivedAddressRange:
        return derive_multisig_addresses(
            self._num_required_signers,
            self._master_xpubs,
            change,
            start,
            count,
            account=self._account,
            script_type=self._script_type,
            coin_type=self._coin_type,
            network=self._network,
            strict=self._strict,
        )

    def get_descriptor(self, *, with_checksum: bool = True) -> str:
        descriptor = sortedmulti_descriptor(
            self._num_required_signers,
            self._neutral_xpubs,
            RANGED_SUFFIX,
            self._script_type,
        )
        if with_checksum:
            descriptor = descsum_create(descriptor)
        return descriptor

    def get_import_descriptors_request(
        self,
        *,
        timestamp="now",
        desc_range: int | tuple[int, int] = 1000,
    ) -> list[dict[str, Any]]:
        """
        Payload for bitcoind's importdescriptors RPC (receive branch only)
        """
        return [
            {
                "desc": self.get_descriptor(),
                "timestamp": timestamp,
                "range": desc_range,
            }
        ]

import hashlib
import itertools
import logging
import re

import pytest
from bitcointx import segwit_addr
from bitcointx.wallet import CBitcoinTestnetExtPubKey

from bip48.btc.errors import (
    InvalidDerivationPathError,
    InvalidThresholdError,
    MalformedKeyError,
    MixedNetworksError,
    MultisigDerivationError,
    TooManyCosignersError,
    UnknownPrefixError,
)
from bip48.btc.keys import encode_extended_key
from bip48.btc.multisig import build_multisig_address, sort_pubkeys
from bip48.btc.types import ChangeChain, ScriptType

from .constants import (
    ADDRESS_0_0,
    ADDRESS_0_1,
    TPUBS,
    VPUB_MULTISIG_VERSION,
    VPUB_VERSION,
    WITNESS_SCRIPT_0_0,
    WITNESS_SCRIPT_0_1,
    ZPUB_MULTISIG_VERSION,
    ZPUB_VERSION,
)
from .utils import decode_payload, swap_version

MULTISIG_LOGGER = "bip48.btc.multisig"


# The outputs are locked, because every coordinator must derive the exact same addresses
@pytest.mark.parametrize(
    "index,expected_address,expected_witness_script",
    [
        (0, ADDRESS_0_0, WITNESS_SCRIPT_0_0),
        (1, ADDRESS_0_1, WITNESS_SCRIPT_0_1),
    ],
)
def test_known_signet_addresses(tpubs, index, expected_address, expected_witness_script):
    result = build_multisig_address(2, tpubs, ChangeChain.EXTERNAL, index, network="signet")
    assert result.address == expected_address
    assert result.witness_script_hex == expected_witness_script
    assert result.redeem_script_hex is None
    assert result.network == "signet"
    assert result.script_type == ScriptType.P2WSH
    assert result.descriptor_template.startswith("wsh(sortedmulti(2,")
    assert result.descriptor_concrete.endswith(f"/0/{index}))")


def test_address_commits_to_witness_script(tpubs):
    result = build_multisig_address(2, tpubs, 0, 0, network="signet")
    witver, witprog = segwit_addr.decode("tb", result.address)
    assert witver == 0
    assert bytes(witprog) == hashlib.sha256(bytes.fromhex(result.witness_script_hex)).digest()


@pytest.mark.parametrize("network", [None, "testnet"])
def test_testnet_keys_without_signet_override(tpubs, network):
    result = build_multisig_address(2, tpubs, ChangeChain.EXTERNAL, 0, network=network)
    assert result.address == ADDRESS_0_0
    assert result.witness_script_hex == WITNESS_SCRIPT_0_0
    assert result.network == "testnet"


def test_change_branch(tpubs):
    result = build_multisig_address(2, tpubs, ChangeChain.INTERNAL, 0, network="signet")
    assert result.address.startswith("tb1")
    assert result.address not in (ADDRESS_0_0, ADDRESS_0_1)
    assert len(result.witness_script_hex) > 60
    assert result.descriptor_concrete.endswith("/1/0))")
    # the template always describes the receive branch
    assert result.descriptor_template.count("/0/*") == 3


def test_is_deterministic(tpubs):
    first = build_multisig_address(2, tpubs, 0, 5, network="signet")
    second = build_multisig_address(2, tpubs, 0, 5, network="signet")
    assert first == second


@pytest.mark.parametrize("permutation", list(itertools.permutations(range(3))))
def test_cosigner_order_does_not_change_address(permutation):
    xpubs = [TPUBS[i] for i in permutation]
    result = build_multisig_address(2, xpubs, 0, 0, network="signet")
    assert result.address == ADDRESS_0_0
    assert result.witness_script_hex == WITNESS_SCRIPT_0_0
    # ...but descriptors keep the input order
    expected_keys = ",".join(f"{xpub}/0/0" for xpub in xpubs)
    assert result.descriptor_concrete == f"wsh(sortedmulti(2,{expected_keys}))"


@pytest.mark.parametrize("version", [VPUB_VERSION, VPUB_MULTISIG_VERSION])
def test_slip132_flavours_give_same_result(tpubs, version):
    flavoured = [swap_version(tpub, version) for tpub in tpubs]
    plain = build_multisig_address(2, tpubs, 0, 0, network="signet", strict=False)
    result = build_multisig_address(2, flavoured, 0, 0, network="signet", strict=False)
    assert result == plain


@pytest.mark.parametrize("version", [ZPUB_MULTISIG_VERSION, ZPUB_VERSION])
def test_mainnet_keys(tpubs, version):
    zpubs = [swap_version(tpub, version) for tpub in tpubs]
    result = build_multisig_address(2, zpubs, 0, 0, strict=False)
    assert result.network == "mainnet"
    assert result.address.startswith("bc1q")
    # same key material, same script
    assert result.witness_script_hex == WITNESS_SCRIPT_0_0
    assert re.match(
        r"^wsh\(sortedmulti\(2,xpub[^,]*/0/\*,xpub[^,]*/0/\*,xpub[^)]*/0/\*\)\)$",
        result.descriptor_template,
    )
    witver, witprog = segwit_addr.decode("bc", result.address)
    assert bytes(witprog) == hashlib.sha256(bytes.fromhex(WITNESS_SCRIPT_0_0)).digest()


def test_mixed_networks(tpubs):
    mixed = [swap_version(tpubs[0], ZPUB_MULTISIG_VERSION), tpubs[1]]
    with pytest.raises(MixedNetworksError):
        build_multisig_address(2, mixed, 0, 0, network="signet")
    with pytest.raises(MixedNetworksError):
        build_multisig_address(2, mixed, 0, 0)


@pytest.mark.parametrize("network", ["mainnet"])
def test_network_override_must_match_testnet_keys(tpubs, network):
    with pytest.raises(MixedNetworksError):
        build_multisig_address(2, tpubs, 0, 0, network=network)


@pytest.mark.parametrize("network", ["testnet", "signet"])
def test_network_override_must_match_mainnet_keys(tpubs, network):
    zpubs = [swap_version(tpub, ZPUB_MULTISIG_VERSION) for tpub in tpubs]
    with pytest.raises(MixedNetworksError):
        build_multisig_address(2, zpubs, 0, 0, network=network)


def test_unknown_network_override(tpubs):
    with pytest.raises(ValueError, match="Unknown network"):
        build_multisig_address(2, tpubs, 0, 0, network="regtest")


@pytest.mark.parametrize("m", [0, 4, -1, True, 2.0, "2", None])
def test_invalid_threshold(tpubs, m):
    with pytest.raises(InvalidThresholdError, match="Invalid threshold"):
        build_multisig_address(m, tpubs, 0, 0, network="signet")


def test_no_cosigners():
    with pytest.raises(InvalidThresholdError):
        build_multisig_address(1, [], 0, 0)


@pytest.mark.parametrize(
    "m,n",
    [(1, 1), (1, 2), (2, 2), (1, 7), (4, 7), (7, 7), (1, 15), (8, 15), (15, 15)],
)
def test_valid_thresholds(many_tpubs, m, n):
    result = build_multisig_address(m, many_tpubs[:n], 0, 0)
    script = result.witness_script_hex
    # OP_m <n pushes of 33-byte pubkeys> OP_n OP_CHECKMULTISIG
    assert script[:2] == f"{0x50 + m:02x}"
    assert script[-4:] == f"{0x50 + n:02x}ae"
    assert len(script) == 2 * (1 + n * 34 + 2)
    assert result.address.startswith("tb1q")


def test_too_many_cosigners(many_tpubs):
    assert len(many_tpubs) == 16
    with pytest.raises(TooManyCosignersError, match="Too many cosigners"):
        build_multisig_address(2, many_tpubs, 0, 0, network="signet")


def test_too_many_copies_of_the_same_key(tpubs):
    with pytest.raises(TooManyCosignersError):
        build_multisig_address(2, [tpubs[0]] * 16, 0, 0, network="signet")


@pytest.mark.parametrize(
    "change,index",
    [(0, -1), (0, 2**31), (2**31, 0), (-1, 0), (0, "1"), (0, 1.5)],
)
def test_invalid_change_or_index(tpubs, change, index):
    with pytest.raises(InvalidDerivationPathError):
        build_multisig_address(2, tpubs, change, index, network="signet")


@pytest.mark.parametrize("bad_key", ["notAValidXpub", "xpubInvalidBase58!!", ""])
def test_malformed_cosigner_key(tpubs, bad_key):
    with pytest.raises((MalformedKeyError, UnknownPrefixError)):
        build_multisig_address(1, [bad_key], 0, 0, network="signet")
    with pytest.raises(MultisigDerivationError):
        build_multisig_address(2, [tpubs[0], bad_key, tpubs[1]], 0, 0, network="signet")


def test_invalid_key_material_is_malformed(tpubs):
    # valid checksum and version, but the public key part is not a valid point
    payload = bytearray(decode_payload(tpubs[0]))
    payload[45] = 0x05
    with pytest.raises(MalformedKeyError):
        build_multisig_address(1, [encode_extended_key(bytes(payload))], 0, 0)


def test_strict_mode_warns_about_single_sig_keys(tpubs, caplog):
    vpub = swap_version(tpubs[0], VPUB_VERSION)
    with caplog.at_level(logging.WARNING, logger=MULTISIG_LOGGER):
        result = build_multisig_address(2, [vpub, tpubs[1]], 0, 0, network="signet", strict=True)
    warnings = [r for r in caplog.records if r.name == MULTISIG_LOGGER]
    assert len(warnings) == 1
    assert warnings[0].levelno == logging.WARNING
    message = warnings[0].getMessage()
    assert "looks single-sig (vpub)" in message
    assert "Vpub" in message
    assert "tpub" in message
    assert result.address.startswith("tb1")


def test_strict_mode_is_advisory(tpubs, caplog):
    vpub = swap_version(tpubs[0], VPUB_VERSION)
    with caplog.at_level(logging.WARNING, logger=MULTISIG_LOGGER):
        strict = build_multisig_address(2, [vpub, tpubs[1]], 0, 0, network="signet", strict=True)
        relaxed = build_multisig_address(
            2, [vpub, tpubs[1]], 0, 0, network="signet", strict=False
        )
    assert strict == relaxed
    assert len([r for r in caplog.records if r.name == MULTISIG_LOGGER]) == 1


def test_no_warning_without_strict_mode(tpubs, caplog):
    vpub = swap_version(tpubs[0], VPUB_VERSION)
    with caplog.at_level(logging.WARNING, logger=MULTISIG_LOGGER):
        build_multisig_address(2, [vpub, tpubs[1]], 0, 0, network="signet", strict=False)
    assert not [r for r in caplog.records if r.name == MULTISIG_LOGGER]


@pytest.mark.parametrize("version", [VPUB_MULTISIG_VERSION, None])
def test_no_warning_for_multisig_or_neutral_keys(tpubs, caplog, version):
    xpubs = [swap_version(tpub, version) for tpub in tpubs] if version else tpubs
    with caplog.at_level(logging.WARNING, logger=MULTISIG_LOGGER):
        build_multisig_address(2, xpubs, 0, 0, network="signet", strict=True)
    assert not [r for r in caplog.records if r.name == MULTISIG_LOGGER]


def test_descriptors_use_neutral_keys(tpubs):
    vpubs = [swap_version(tpub, VPUB_MULTISIG_VERSION) for tpub in tpubs]
    result = build_multisig_address(2, vpubs, ChangeChain.EXTERNAL, 7, network="signet")
    assert re.match(
        r"^wsh\(sortedmulti\(2,tpub[^,]*/0/\*,tpub[^,]*/0/\*,tpub[^)]*/0/\*\)\)$",
        result.descriptor_template,
    )
    assert re.match(
        r"^wsh\(sortedmulti\(2,tpub[^,]*/0/7,tpub[^,]*/0/7,tpub[^)]*/0/7\)\)$",
        result.descriptor_concrete,
    )
    assert result.descriptor_template == "wsh(sortedmulti(2,{}))".format(
        ",".join(f"{tpub}/0/*" for tpub in tpubs)
    )


def test_nested_segwit(tpubs):
    result = build_multisig_address(
        2, tpubs, 0, 0, network="signet", script_type=ScriptType.P2WSH_P2SH
    )
    witness_script = bytes.fromhex(result.witness_script_hex)
    assert result.witness_script_hex == WITNESS_SCRIPT_0_0
    assert result.redeem_script_hex == "0020" + hashlib.sha256(witness_script).hexdigest()
    assert result.address.startswith("2")
    assert result.script_type == ScriptType.P2WSH_P2SH
    assert result.descriptor_template.startswith("sh(wsh(sortedmulti(2,")
    assert result.descriptor_template.endswith("/0/*)))")
    assert result.descriptor_concrete.endswith("/0/0)))")


def test_nested_segwit_mainnet(tpubs):
    ypubs = [swap_version(tpub, "0295b43f") for tpub in tpubs]
    result = build_multisig_address(2, ypubs, 0, 0, script_type=ScriptType.P2WSH_P2SH)
    assert result.network == "mainnet"
    assert result.address.startswith("3")
    assert result.witness_script_hex == WITNESS_SCRIPT_0_0


def test_sort_pubkeys_uses_unsigned_byte_order():
    keys = [bytes.fromhex("03" + "00" * 32), bytes.fromhex("02" + "ff" * 32)]
    keys.append(bytes.fromhex("02" + "80" + "00" * 31))
    assert [k.hex()[:4] for k in sort_pubkeys(keys)] == ["0280", "02ff", "0300"]


@pytest.mark.parametrize("script_type", [ScriptType.P2WSH, ScriptType.P2WSH_P2SH])
def test_single_cosigner(tpubs, script_type):
    child = CBitcoinTestnetExtPubKey(tpubs[0]).derive(0).derive(3)
    result = build_multisig_address(
        1, [tpubs[0]], 0, 3, network="signet", script_type=script_type
    )
    # OP_1 <pubkey> OP_1 OP_CHECKMULTISIG
    assert result.witness_script_hex == "5121" + child.pub.hex() + "51ae"
    script_hash = hashlib.sha256(bytes.fromhex(result.witness_script_hex)).digest()
    if script_type == ScriptType.P2WSH:
        witver, program = segwit_addr.decode("tb", result.address)
        assert witver == 0
        assert bytes(program) == script_hash
        assert result.redeem_script_hex is None
        assert result.descriptor_concrete == f"wsh(sortedmulti(1,{tpubs[0]}/0/3))"
    else:
        assert result.address.startswith("2")
        assert result.redeem_script_hex == "0020" + script_hash.hex()
        assert result.descriptor_concrete == f"sh(wsh(sortedmulti(1,{tpubs[0]}/0/3)))"

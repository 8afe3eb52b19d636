"""Tests for mnemonic handling and chain key derivation."""

import pytest
from xrpl.constants import CryptoAlgorithm
from xrpl.core.addresscodec import encode_seed, is_valid_classic_address

from errors import DerivationFailure, InputValidation
from vault.derivation import (
    derive_address,
    derive_btc_keys,
    derive_xrp_keys,
    generate_mnemonic,
    mnemonic_to_seed,
    normalize_mnemonic,
    validate_mnemonic,
    xrp_keys_from_family_seed,
)

from conftest import OTHER_MNEMONIC, TEST_BTC_ADDRESS, TEST_MNEMONIC, TEST_XRP_ENTROPY


class TestMnemonics:
    def test_normalize(self):
        messy = "  ABANDON  abandon\tabandon\nabandon abandon abandon abandon abandon abandon abandon abandon About "
        assert normalize_mnemonic(messy) == TEST_MNEMONIC

    def test_validate(self):
        assert validate_mnemonic(TEST_MNEMONIC)
        assert validate_mnemonic(TEST_MNEMONIC.upper())

    def test_bad_checksum(self):
        assert not validate_mnemonic("abandon " * 11 + "abandon")

    def test_unknown_word(self):
        assert not validate_mnemonic("abandon " * 11 + "notaword")

    def test_wrong_word_count(self):
        assert not validate_mnemonic(" ".join(["abandon"] * 14 + ["about"]))

    @pytest.mark.parametrize("words", [12, 24])
    def test_generate(self, words):
        with generate_mnemonic(words) as phrase:
            assert len(phrase.expose().split()) == words
            assert validate_mnemonic(phrase)

    def test_generate_rejects_other_counts(self):
        with pytest.raises(InputValidation):
            generate_mnemonic(18)

    def test_seed_vector(self):
        seed = mnemonic_to_seed(TEST_MNEMONIC)
        assert len(seed) == 64
        assert bytes(seed[:16]) == TEST_XRP_ENTROPY

    def test_seed_rejects_invalid(self):
        with pytest.raises(DerivationFailure):
            mnemonic_to_seed("abandon " * 12)


class TestXrpDerivation:
    def test_family_seed_from_bip39_entropy(self):
        keys = derive_xrp_keys(TEST_MNEMONIC)
        expected = encode_seed(TEST_XRP_ENTROPY, CryptoAlgorithm.ED25519)
        assert keys.family_seed.expose() == expected
        assert keys.family_seed.expose().startswith("sEd")

    def test_address_and_public_key(self):
        keys = derive_xrp_keys(TEST_MNEMONIC)
        assert keys.address.startswith("r")
        assert is_valid_classic_address(keys.address)
        assert keys.public_key.upper().startswith("ED")
        assert len(keys.public_key) == 66

    def test_deterministic(self):
        assert derive_xrp_keys(TEST_MNEMONIC).address == derive_xrp_keys(TEST_MNEMONIC).address

    def test_bip39_passphrase_changes_address(self):
        plain = derive_xrp_keys(TEST_MNEMONIC).address
        assert derive_xrp_keys(TEST_MNEMONIC, "TREZOR").address != plain

    def test_different_mnemonic(self):
        assert derive_xrp_keys(OTHER_MNEMONIC).address != derive_xrp_keys(TEST_MNEMONIC).address

    def test_family_seed_round_trip(self):
        keys = derive_xrp_keys(TEST_MNEMONIC)
        rebuilt = xrp_keys_from_family_seed(keys.family_seed.expose())
        assert rebuilt.address == keys.address

    def test_invalid_family_seed(self):
        with pytest.raises(DerivationFailure):
            xrp_keys_from_family_seed("sNotARealSeedAtAllxxxxxxxxxxxx")

    def test_wipe(self):
        keys = derive_xrp_keys(TEST_MNEMONIC)
        keys.wipe()
        assert keys.family_seed.is_empty()

    def test_invalid_mnemonic(self):
        with pytest.raises(DerivationFailure):
            derive_xrp_keys("abandon " * 12)


class TestBitcoinDerivation:
    def test_bip84_vector(self):
        keys = derive_btc_keys(TEST_MNEMONIC)
        assert keys.address == TEST_BTC_ADDRESS
        assert keys.path == "m/84'/0'/0'/0/0"
        assert len(keys.public_key) == 33
        assert len(keys.private_key) == 32

    def test_wipe_zeroes_private_key(self):
        keys = derive_btc_keys(TEST_MNEMONIC)
        keys.wipe()
        assert keys.private_key == bytearray(32)

    def test_invalid_mnemonic(self):
        with pytest.raises(DerivationFailure):
            derive_btc_keys("legal winner thank year")

    def test_derive_address(self):
        assert derive_address("btc", TEST_MNEMONIC) == TEST_BTC_ADDRESS

    def test_derive_address_unknown_chain(self):
        with pytest.raises(InputValidation):
            derive_address("eth", TEST_MNEMONIC)

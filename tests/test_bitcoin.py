"""Tests for Bitcoin P2WPKH transaction construction."""

import pytest
from coincurve import PublicKey

from errors import InputValidation
from models.intent import BitcoinPaymentIntent, SigningCredential
from services.bitcoin import (
    bip143_sighash,
    build_bitcoin_payment,
    build_p2wpkh_payment,
    output_script,
    select_utxos,
    serialize_transaction,
    sha256d,
    varint,
)
from services.connection import Utxo
from vault.derivation import derive_btc_keys

from conftest import FakeConnection, OTHER_MNEMONIC, TEST_BTC_ADDRESS, TEST_MNEMONIC

P2PKH_ADDRESS = "1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2"
P2SH_ADDRESS = "3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy"


@pytest.fixture(scope="module")
def keys():
    return derive_btc_keys(TEST_MNEMONIC)


@pytest.fixture(scope="module")
def recipient():
    return derive_btc_keys(OTHER_MNEMONIC).address


def _utxo(n: int, amount: int) -> Utxo:
    return Utxo(txid=f"{n:02x}" * 32, vout=n, amount_sats=amount)


def _split_witness(raw: bytes, inputs, outputs) -> bytes:
    """Witness section of a segwit serialization."""
    body = serialize_transaction(inputs, outputs)[4:-4]
    return raw[6 + len(body):-4]


class TestEncoding:
    @pytest.mark.parametrize("n,encoded", [
        (0, "00"),
        (0xfc, "fc"),
        (0xfd, "fdfd00"),
        (0xffff, "fdffff"),
        (0x10000, "fe00000100"),
        (0x100000000, "ff0000000001000000"),
    ])
    def test_varint(self, n, encoded):
        assert varint(n).hex() == encoded

    def test_p2wpkh_script(self):
        script = output_script(TEST_BTC_ADDRESS)
        assert len(script) == 22
        assert script[:2] == b"\x00\x14"

    def test_p2pkh_script(self):
        script = output_script(P2PKH_ADDRESS)
        assert len(script) == 25
        assert script[:3] == bytes([0x76, 0xa9, 0x14])
        assert script[-2:] == bytes([0x88, 0xac])

    def test_p2sh_script(self):
        script = output_script(P2SH_ADDRESS)
        assert len(script) == 23
        assert script[:2] == bytes([0xa9, 0x14])
        assert script[-1] == 0x87

    @pytest.mark.parametrize("address", [
        "",
        "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyv",  # bad checksum
        "1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN3",
        "rPT1Sjq2YGrBMTttX4GZHjKu9dyfzbpAYe",
        "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx",
    ])
    def test_invalid_addresses(self, address):
        with pytest.raises(InputValidation):
            output_script(address)


class TestUtxoSelection:
    def test_first_fit(self):
        utxos = [_utxo(1, 5_000), _utxo(2, 7_000), _utxo(3, 50_000)]
        assert select_utxos(utxos, 10_000, 500) == utxos[:2]

    def test_single_utxo_enough(self):
        utxos = [_utxo(1, 50_000), _utxo(2, 7_000)]
        assert select_utxos(utxos, 10_000, 500) == utxos[:1]

    def test_insufficient_funds(self):
        with pytest.raises(InputValidation) as exc_info:
            select_utxos([_utxo(1, 1_000)], 1_000, 200)
        assert exc_info.value.user_message == "Insufficient funds"
        assert "needed 1200 satoshis, available 1000 satoshis" in str(exc_info.value)


class TestBuildPayment:
    def test_structure_with_change(self, keys, recipient):
        utxos = [_utxo(1, 100_000)]
        signed = build_p2wpkh_payment(keys, recipient, 30_000, 500, utxos)
        raw = bytes.fromhex(signed.blob)

        # version 2, segwit marker + flag, one input
        assert raw[:4] == bytes.fromhex("02000000")
        assert raw[4:6] == b"\x00\x01"
        assert raw[6] == 1
        assert raw[-4:] == b"\x00\x00\x00\x00"
        assert signed.fee == "500"
        assert len(signed.tx_hash) == 64

        outputs = [
            (30_000, output_script(recipient)),
            (69_500, output_script(TEST_BTC_ADDRESS)),
        ]
        assert signed.tx_hash == sha256d(serialize_transaction(utxos, outputs))[::-1].hex()

    def test_exact_amount_has_no_change(self, keys, recipient):
        utxos = [_utxo(1, 10_500)]
        signed = build_p2wpkh_payment(keys, recipient, 10_000, 500, utxos)
        outputs = [(10_000, output_script(recipient))]
        assert signed.tx_hash == sha256d(serialize_transaction(utxos, outputs))[::-1].hex()

    def test_signature_verifies(self, keys, recipient):
        utxos = [_utxo(1, 100_000)]
        outputs = [
            (30_000, output_script(recipient)),
            (69_500, output_script(TEST_BTC_ADDRESS)),
        ]
        signed = build_p2wpkh_payment(keys, recipient, 30_000, 500, utxos)
        witness = _split_witness(bytes.fromhex(signed.blob), utxos, outputs)

        assert witness[0] == 2
        sig_len = witness[1]
        signature = witness[2:2 + sig_len]
        pubkey = witness[3 + sig_len:]
        assert signature[-1] == 0x01
        assert witness[2 + sig_len] == 33
        assert pubkey == keys.public_key

        sighash = bip143_sighash(utxos, outputs, 0, output_script(TEST_BTC_ADDRESS)[2:])
        assert PublicKey(pubkey).verify(signature[:-1], sighash, hasher=None)

    def test_multiple_inputs(self, keys, recipient):
        utxos = [_utxo(1, 20_000), _utxo(2, 20_000)]
        raw = bytes.fromhex(build_p2wpkh_payment(keys, recipient, 30_000, 500, utxos).blob)
        assert raw[6] == 2

    def test_insufficient_funds(self, keys, recipient):
        with pytest.raises(InputValidation):
            build_p2wpkh_payment(keys, recipient, 30_000, 500, [_utxo(1, 30_000)])

    def test_rejects_zero_fee(self, keys, recipient):
        with pytest.raises(InputValidation):
            build_p2wpkh_payment(keys, recipient, 30_000, 0, [_utxo(1, 100_000)])

    def test_invalid_txid(self, keys, recipient):
        with pytest.raises(InputValidation):
            build_p2wpkh_payment(keys, recipient, 1_000, 500, [Utxo("zz", 0, 100_000)])


class TestBuildFromIntent:
    def test_fetches_utxos_for_wallet(self, signed_transport, keys, recipient):
        connection = FakeConnection(utxos=[_utxo(1, 100_000)])
        intent = BitcoinPaymentIntent(
            wallet=keys.address, credential=SigningCredential.from_passphrase("unused"),
            recipient=recipient, amount="0.0003", fee="250",
        )
        signed = build_bitcoin_payment(intent, keys, signed_transport(connection))

        assert connection.utxo_calls == [TEST_BTC_ADDRESS]
        assert signed.fee == "250"

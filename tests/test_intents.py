"""Tests for intent construction, parsing and redaction."""

import pytest

from errors import InputValidation, UnsupportedTransactionKind
from models.intent import (
    AssetTrustSetIntent,
    BalanceQueryIntent,
    BitcoinPaymentIntent,
    DeleteWalletIntent,
    ImportWalletIntent,
    IntentKind,
    OfferAmount,
    OfferCreateIntent,
    PaymentIntent,
    SigningCredential,
    TF_FILL_OR_KILL,
    TF_IMMEDIATE_OR_CANCEL,
    TF_SELL,
    TrustSetIntent,
    parse_intent,
    validate_offer_flags,
)
from vault.secure import SecretStr

WALLET = "rPT1Sjq2YGrBMTttX4GZHjKu9dyfzbpAYe"
RECIPIENT = "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh"


class TestSigningCredential:
    def test_passphrase(self):
        credential = SigningCredential.from_passphrase("hunter22")
        assert credential.method == "passphrase"
        assert credential.seed is None

    def test_seed(self):
        credential = SigningCredential.from_seed("abandon about", bip39_passphrase="extra")
        assert credential.method == "seed"
        assert credential.bip39_passphrase.expose() == "extra"

    def test_requires_exactly_one(self):
        with pytest.raises(InputValidation):
            SigningCredential()
        with pytest.raises(InputValidation):
            SigningCredential(passphrase="a", seed="b")

    def test_empty_strings_count_as_missing(self):
        with pytest.raises(InputValidation):
            SigningCredential(passphrase="", seed="")

    def test_wipe(self):
        credential = SigningCredential.from_passphrase("hunter22", "extra")
        credential.wipe()
        assert credential.passphrase.is_empty()
        assert credential.bip39_passphrase.is_empty()

    def test_repr_is_redacted(self):
        assert "hunter22" not in repr(SigningCredential.from_passphrase("hunter22"))


class TestIntents:
    def test_payment_normalizes_asset(self):
        intent = PaymentIntent(
            wallet=WALLET, credential=SigningCredential.from_passphrase("pw"),
            recipient=RECIPIENT, amount="10", asset="rlusd",
        )
        assert intent.asset == "RLUSD"
        assert intent.kind == IntentKind.PAYMENT
        assert intent.chain == "xrp"

    def test_payment_rejects_bitcoin_asset(self):
        with pytest.raises(InputValidation):
            PaymentIntent(
                wallet=WALLET, credential=SigningCredential.from_passphrase("pw"),
                recipient=RECIPIENT, amount="1", asset="BTC",
            )

    def test_payment_requires_recipient(self):
        with pytest.raises(InputValidation):
            PaymentIntent(
                wallet=WALLET, credential=SigningCredential.from_passphrase("pw"),
                recipient=" ", amount="1",
            )

    def test_asset_trust_set(self):
        intent = AssetTrustSetIntent(
            wallet=WALLET, credential=SigningCredential.from_passphrase("pw"), asset="europ",
        )
        assert intent.kind == IntentKind.TRUSTSET_EUROP
        assert intent.limit == "1000000"
        assert intent.currency == "4555524F50000000000000000000000000000000"

    def test_asset_trust_set_rejects_native(self):
        with pytest.raises(InputValidation):
            AssetTrustSetIntent(wallet=WALLET, credential=SigningCredential.from_passphrase("pw"), asset="XRP")

    def test_offer_rejects_same_asset(self):
        with pytest.raises(InputValidation):
            OfferCreateIntent(
                wallet=WALLET, credential=SigningCredential.from_passphrase("pw"),
                taker_pays=("1", "XRP"), taker_gets=("2", "XRP"),
            )

    def test_bitcoin_payment_chain(self):
        intent = BitcoinPaymentIntent(
            wallet="bc1qwallet", credential=SigningCredential.from_seed("words"),
            recipient="bc1qother", amount="0.001", fee="500",
        )
        assert intent.chain == "btc"
        assert intent.kind == IntentKind.BITCOIN_PAYMENT

    def test_lifecycle_kinds_follow_chain(self):
        assert ImportWalletIntent(chain="btc", wallet="bc1q").kind == IntentKind.IMPORT_BITCOIN_WALLET
        assert DeleteWalletIntent(chain="xrp", wallet=WALLET).kind == IntentKind.DELETE_WALLET
        assert BalanceQueryIntent(chain="btc", wallet="bc1q").kind == IntentKind.GET_BITCOIN_BALANCE

    def test_import_with_mnemonic_needs_passphrase(self):
        with pytest.raises(InputValidation):
            ImportWalletIntent(chain="xrp", mnemonic="abandon about")
        intent = ImportWalletIntent(chain="xrp", mnemonic="abandon about", encryption_passphrase="secret")
        assert intent.needs_setup

    def test_unknown_chain(self):
        with pytest.raises(InputValidation):
            BalanceQueryIntent(chain="eth", wallet="0x0")


class TestOfferFlags:
    def test_exclusive_flags(self):
        with pytest.raises(InputValidation):
            validate_offer_flags([TF_FILL_OR_KILL, TF_IMMEDIATE_OR_CANCEL])

    def test_unknown_flag(self):
        with pytest.raises(InputValidation):
            validate_offer_flags(["tfEverything"])

    def test_duplicates_collapsed(self):
        assert validate_offer_flags([TF_SELL, TF_SELL, TF_FILL_OR_KILL]) == (TF_SELL, TF_FILL_OR_KILL)

    def test_offer_amount_parse(self):
        assert OfferAmount.parse({"amount": "5", "currency": "rlusd"}) == OfferAmount("5", "RLUSD")
        assert OfferAmount.parse(["5", "XRP"]).to_wire() == ["5", "XRP"]
        with pytest.raises(InputValidation):
            OfferAmount.parse("5 XRP")


class TestParseIntent:
    def test_payment_camel_case(self):
        intent = parse_intent({
            "kind": "payment",
            "walletId": WALLET,
            "recipient": RECIPIENT,
            "amount": "12.5",
            "walletKind": "RLUSD",
            "passphrase": "pw",
        })
        assert isinstance(intent, PaymentIntent)
        assert intent.asset == "RLUSD"
        assert intent.credential.method == "passphrase"

    def test_trustset_alias(self):
        intent = parse_intent({"tx_type": "trustset_euro", "wallet": WALLET, "seed": "words"})
        assert isinstance(intent, AssetTrustSetIntent)
        assert intent.asset == "EUROP"

    def test_trustset_with_wallet_kind(self):
        intent = parse_intent({
            "kind": "trustset", "wallet": WALLET, "passphrase": "pw",
            "wallet_type": "RLUSD", "trustlineLimit": "500",
        })
        assert isinstance(intent, TrustSetIntent)
        assert intent.issuer == "rMxCKbEDwqr76QuheSUMdEGf4B9xJ8m5De"
        assert intent.limit == "500"

    def test_offer_create(self):
        intent = parse_intent({
            "kind": "offer_create", "wallet": WALLET, "passphrase": "pw",
            "takerPays": ["10", "RLUSD"], "takerGets": {"amount": "20", "currency": "XRP"},
            "flags": [TF_SELL],
        })
        assert isinstance(intent, OfferCreateIntent)
        assert intent.taker_pays == OfferAmount("10", "RLUSD")
        assert intent.flags == (TF_SELL,)

    def test_bitcoin_payment(self):
        intent = parse_intent({
            "kind": "bitcoin_payment", "wallet": "bc1qwallet", "seed": "words",
            "bip39Passphrase": "extra", "recipient": "bc1qother", "amount": "0.1", "fee": "300",
        })
        assert isinstance(intent, BitcoinPaymentIntent)
        assert intent.credential.bip39_passphrase.expose() == "extra"

    def test_lifecycle_aliases(self):
        intent = parse_intent({"command": "get_bitcoin_cached_balance", "wallet": "bc1qwallet"})
        assert isinstance(intent, BalanceQueryIntent)
        assert intent.chain == "btc"

    def test_import_wallet(self):
        intent = parse_intent({
            "kind": "import_wallet", "seed": "abandon about", "passphrase": "secret1",
        })
        assert isinstance(intent, ImportWalletIntent)
        assert intent.needs_setup
        assert intent.chain == "xrp"

    def test_unknown_kind(self):
        with pytest.raises(UnsupportedTransactionKind):
            parse_intent({"kind": "escrow_create", "wallet": WALLET})

    def test_missing_kind(self):
        with pytest.raises(UnsupportedTransactionKind):
            parse_intent({"wallet": WALLET})

    def test_both_credentials_rejected(self):
        with pytest.raises(InputValidation):
            parse_intent({
                "kind": "payment", "wallet": WALLET, "recipient": RECIPIENT,
                "amount": "1", "passphrase": "pw", "seed": "words",
            })


class TestRedaction:
    def test_wire_form_has_no_secrets(self):
        intent = PaymentIntent(
            wallet=WALLET,
            credential=SigningCredential.from_seed(SecretStr("secret words"), "extra"),
            recipient=RECIPIENT,
            amount="1",
        )
        wire = intent.to_wire()
        assert wire == {
            "command": "payment",
            "wallet": WALLET,
            "recipient": RECIPIENT,
            "amount": "1",
            "wallet_type": "XRP",
        }
        assert "secret words" not in intent.describe()

    def test_import_wire_form_has_no_secrets(self):
        intent = ImportWalletIntent(chain="btc", mnemonic="secret words", encryption_passphrase="pw")
        assert intent.to_wire() == {"command": "import_bitcoin_wallet", "wallet": ""}

    def test_wipe(self):
        intent = ImportWalletIntent(chain="btc", mnemonic="secret words", encryption_passphrase="pw")
        intent.wipe()
        assert intent.mnemonic.is_empty()
        assert intent.encryption_passphrase.is_empty()

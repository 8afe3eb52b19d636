"""
Send flow - recipient -> amount -> fee (Bitcoin only) -> credential -> submit.

The XRP Ledger fee comes from the ledger at signing time, so XRP Ledger
sends skip the fee step.
"""

from typing import Optional, Union

from chains import (
    CHAIN_BTC,
    DEFAULT_BTC_FEE_SATS,
    MIN_BTC_FEE_SATS,
    btc_to_sats,
    format_issued_value,
    get_asset,
    get_chain,
    parse_fee_sats,
    xrp_to_drops,
)
from errors import InputValidation
from models.intent import BitcoinPaymentIntent, PaymentIntent
from services.bitcoin import output_script
from services.builders import validate_xrpl_address
from .base import STEP_CREDENTIAL, SigningWizard, _text

STEP_RECIPIENT = "recipient"
STEP_AMOUNT = "amount"
STEP_FEE = "fee"


def validate_amount(asset_symbol: str, amount: str) -> None:
    """Raise InputValidation unless amount is a valid positive amount of the asset."""
    asset = get_asset(asset_symbol)
    if asset.chain == CHAIN_BTC:
        btc_to_sats(amount)
    elif asset.is_issued:
        format_issued_value(amount)
    else:
        xrp_to_drops(amount)


def validate_btc_fee(fee: str) -> str:
    sats = parse_fee_sats(fee)
    if sats < MIN_BTC_FEE_SATS:
        raise InputValidation(f"Fee below {MIN_BTC_FEE_SATS} sats",
                              f"Minimum fee is {MIN_BTC_FEE_SATS} Satoshis.")
    return str(sats)


class SendWizard(SigningWizard):
    """Send XRP, RLUSD, EUROP or BTC."""

    def __init__(self, context, chain: str, asset: Optional[str] = None):
        config = get_chain(chain)
        self.asset = get_asset(asset or config.native_symbol).symbol
        if get_asset(self.asset).chain != config.name:
            raise InputValidation(f"{self.asset} is not a {config.display_name} asset", "Unsupported asset")
        steps = [
            (STEP_RECIPIENT, ("recipient",)),
            (STEP_AMOUNT, ("amount",)),
        ]
        if config.name == CHAIN_BTC:
            steps.append((STEP_FEE, ("fee",)))
        steps.append((STEP_CREDENTIAL, self.CREDENTIAL_FIELDS))
        self.STEPS = tuple(steps)
        super().__init__(context, chain)

    @property
    def default_fee(self) -> str:
        return DEFAULT_BTC_FEE_SATS

    def validate_step(self, step: str, values: dict) -> Optional[dict]:
        if step == STEP_RECIPIENT:
            recipient = _text(values.get("recipient")).strip()
            if self.chain == CHAIN_BTC:
                output_script(recipient)
            else:
                validate_xrpl_address(recipient)
            if recipient == self.wallet_address:
                raise InputValidation("Recipient is the sending wallet", "Cannot send to your own wallet")
            return {"recipient": recipient}
        if step == STEP_AMOUNT:
            amount = _text(values.get("amount")).strip()
            validate_amount(self.asset, amount)
            return {"amount": amount}
        if step == STEP_FEE:
            fee = _text(values.get("fee")).strip() or self.default_fee
            return {"fee": validate_btc_fee(fee)}
        return super().validate_step(step, values)

    def build_intent(self) -> Union[PaymentIntent, BitcoinPaymentIntent]:
        credential = self.build_credential()
        if self.chain == CHAIN_BTC:
            return BitcoinPaymentIntent(
                wallet=self.wallet_address,
                credential=credential,
                recipient=self.value("recipient"),
                amount=self.value("amount"),
                fee=self.value("fee"),
            )
        return PaymentIntent(
            wallet=self.wallet_address,
            credential=credential,
            recipient=self.value("recipient"),
            amount=self.value("amount"),
            asset=self.asset,
        )

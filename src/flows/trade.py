"""
XRP Ledger DEX flows.

Trade: order -> flags -> credential -> submit (OfferCreate)
EnableAsset: limit -> credential -> submit (TrustSet for RLUSD / EUROP)
"""

from typing import Optional

from chains import CHAIN_XRP, DEFAULT_TRUSTLINE_LIMIT, TRUSTLINE_ASSETS, format_issued_value, get_asset
from errors import InputValidation
from models.intent import AssetTrustSetIntent, OfferAmount, OfferCreateIntent, validate_offer_flags
from .base import STEP_CREDENTIAL, SigningWizard, _text
from .send import validate_amount

STEP_ORDER = "order"
STEP_FLAGS = "flags"
STEP_LIMIT = "limit"

ORDER_FIELDS = ("pays_amount", "pays_asset", "gets_amount", "gets_asset")


class TradeWizard(SigningWizard):
    """
    Place an order on the XRP Ledger DEX.

    "pays" is what the wallet receives (TakerPays of the offer),
    "gets" is what it gives up (TakerGets).
    """

    STEPS = (
        (STEP_ORDER, ORDER_FIELDS),
        (STEP_FLAGS, ("flags",)),
        (STEP_CREDENTIAL, SigningWizard.CREDENTIAL_FIELDS),
    )

    def __init__(self, context):
        super().__init__(context, CHAIN_XRP)

    def validate_step(self, step: str, values: dict) -> Optional[dict]:
        if step == STEP_ORDER:
            order = {name: _text(values.get(name)).strip() for name in ORDER_FIELDS}
            pays = OfferAmount(order["pays_amount"], order["pays_asset"])
            gets = OfferAmount(order["gets_amount"], order["gets_asset"])
            if pays.asset == gets.asset:
                raise InputValidation("Offer trades an asset for itself", "Choose two different assets")
            validate_amount(pays.asset, pays.amount)
            validate_amount(gets.asset, gets.amount)
            order["pays_asset"], order["gets_asset"] = pays.asset, gets.asset
            return order
        if step == STEP_FLAGS:
            flags = values.get("flags") or ()
            if isinstance(flags, str):
                flags = [f for f in flags.split(",") if f]
            return {"flags": ",".join(validate_offer_flags(flags))}
        return super().validate_step(step, values)

    @property
    def flags(self) -> tuple:
        return tuple(f for f in self.value("flags").split(",") if f)

    def build_intent(self) -> OfferCreateIntent:
        return OfferCreateIntent(
            wallet=self.wallet_address,
            credential=self.build_credential(),
            taker_pays=OfferAmount(self.value("pays_amount"), self.value("pays_asset")),
            taker_gets=OfferAmount(self.value("gets_amount"), self.value("gets_asset")),
            flags=self.flags,
        )


class EnableAssetWizard(SigningWizard):
    """Open the trust line an issued asset needs before it can be held."""

    STEPS = (
        (STEP_LIMIT, ("limit",)),
        (STEP_CREDENTIAL, SigningWizard.CREDENTIAL_FIELDS),
    )

    def __init__(self, context, asset: str):
        self.asset = get_asset(asset).symbol
        if self.asset not in TRUSTLINE_ASSETS:
            raise InputValidation(f"{self.asset} does not use a trust line", "Unsupported asset")
        super().__init__(context, CHAIN_XRP)

    def validate_step(self, step: str, values: dict) -> Optional[dict]:
        if step == STEP_LIMIT:
            limit = _text(values.get("limit")).strip() or DEFAULT_TRUSTLINE_LIMIT
            return {"limit": format_issued_value(limit)}
        return super().validate_step(step, values)

    def build_intent(self) -> AssetTrustSetIntent:
        return AssetTrustSetIntent(
            wallet=self.wallet_address,
            credential=self.build_credential(),
            asset=self.asset,
            limit=self.value("limit"),
        )

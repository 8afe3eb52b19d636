"""
Flows package - Headless wizard state machines.

Contains:
- ImportWizard, CreateWizard: wallet setup
- SendWizard: XRP / RLUSD / EUROP / BTC payments
- TradeWizard: XRP Ledger DEX orders
- EnableAssetWizard: RLUSD / EUROP trust lines
"""

from .base import Wizard, SigningWizard, STEP_DONE, STEP_ABANDONED, STEP_CREDENTIAL
from .wallet import ImportWizard, CreateWizard
from .send import SendWizard
from .trade import TradeWizard, EnableAssetWizard

__all__ = [
    "Wizard",
    "SigningWizard",
    "STEP_DONE",
    "STEP_ABANDONED",
    "STEP_CREDENTIAL",
    "ImportWizard",
    "CreateWizard",
    "SendWizard",
    "TradeWizard",
    "EnableAssetWizard",
]

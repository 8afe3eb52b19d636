"""
Wizard base - Headless multi-step flow over a secure buffer.

A wizard owns one SecureBuffer (opened from the context's arena on
creation). Each step declares the buffer fields it writes. Navigation:

- next(**values): validate the current step, store its fields, advance
- back(): step back; fields of steps ahead of the new position are
  cleared, and stepping back onto the first step clears everything
- abandon(): clear and discard the buffer; close() and the context-manager
  form abandon a flow that has not finished
- submit(**values): validate the final step, build the intent and hand it
  to the dispatcher; the buffer is cleared whatever happens, unless the
  dispatcher refused the intent with a retryable error

Validation failures (InputValidation) keep the wizard on its step.
Errors that abort the flow clear and discard the buffer before propagating.
"""

import logging
import weakref
from concurrent.futures import Future
from typing import ClassVar, Optional

from chains import get_chain
from errors import InputValidation, LedgerLockError
from models.intent import Intent, SigningCredential
from vault.secure import SecretStr, SecureBuffer

logger = logging.getLogger(__name__)

STEP_DONE = "done"
STEP_ABANDONED = "abandoned"

# Credential step fields
FIELD_METHOD = "method"
FIELD_PASSPHRASE = "passphrase"
FIELD_SEED = "seed"
FIELD_BIP39 = "bip39_passphrase"

METHOD_PASSPHRASE = "passphrase"
METHOD_SEED = "seed"

STEP_CREDENTIAL = "credential"


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, SecretStr):
        return value.expose()
    return str(value)


class Wizard:
    """Base class for Import / Create / Send / Trade / EnableAsset flows."""

    # (step name, fields written by that step), in order
    STEPS: ClassVar[tuple] = ()

    def __init__(self, context, chain: str):
        self.context = context
        self.chain = get_chain(chain).name
        self.buffer: SecureBuffer = context.buffers.open()
        # A wizard dropped without abandon() or submit() still zeroes its buffer
        self._release = weakref.finalize(self, context.buffers.discard, self.buffer.flow_id)
        self.position = 0
        self.future: Optional[Future] = None
        self._finished = False
        self._abandoned = False
        self.on_enter(self.step)

    # ============================================
    # State
    # ============================================

    @property
    def flow_id(self) -> str:
        return self.buffer.flow_id

    @property
    def step_names(self) -> list[str]:
        return [name for name, _ in self.STEPS]

    @property
    def step(self) -> str:
        if self._abandoned:
            return STEP_ABANDONED
        if self._finished:
            return STEP_DONE
        return self.STEPS[self.position][0]

    @property
    def is_final_step(self) -> bool:
        return self.position == len(self.STEPS) - 1

    @property
    def is_open(self) -> bool:
        return not (self._finished or self._abandoned)

    def _require_open(self) -> None:
        if not self.is_open:
            raise InputValidation(f"Flow {self.flow_id[:8]} is {self.step}", "This flow has already ended")

    def _fields_from(self, position: int) -> list[str]:
        names = []
        for _, fields in self.STEPS[position:]:
            names.extend(fields)
        return names

    # ============================================
    # Navigation
    # ============================================

    def next(self, **values) -> str:
        """Validate and store the current step, then advance."""
        self._require_open()
        if self.is_final_step:
            raise InputValidation("Final step must be submitted", "Review and submit")
        self._accept(values)
        self.position += 1
        self.on_enter(self.step)
        return self.step

    def back(self) -> str:
        """Step back, clearing the fields of every step ahead of the new position."""
        self._require_open()
        if self.position == 0:
            return self.step
        self.position -= 1
        if self.position == 0:
            self.buffer.clear()
        else:
            self.buffer.clear_fields(self._fields_from(self.position + 1))
        self.on_enter(self.step)
        return self.step

    def abandon(self) -> None:
        """Cancel the flow; the buffer is zeroed and discarded."""
        if self._abandoned:
            return
        self._abandoned = True
        self._release()
        logger.debug(f"Flow {self.flow_id[:8]} abandoned")

    def close(self) -> None:
        """Abandon the flow unless it already finished."""
        if self.is_open:
            self.abandon()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def submit(self, **values) -> Future:
        """
        Validate the final step, build the intent and dispatch it.

        Returns:
            The Future resolved by the dispatch worker
        """
        self._require_open()
        if not self.is_final_step:
            raise InputValidation("Flow is not on its final step", "Complete every step first")

        keep_buffer = False
        try:
            self._accept(values)
            intent = self.build_intent()
            try:
                self.future = self.context.dispatcher.submit(intent)
            except LedgerLockError as e:
                intent.wipe()
                keep_buffer = not e.aborts_flow
                raise
        except InputValidation:
            keep_buffer = True
            raise
        finally:
            if not keep_buffer:
                self._close()

        logger.info(f"Flow {self.flow_id[:8]} submitted {intent.describe()}")
        return self.future

    def _accept(self, values: dict) -> None:
        name = self.step
        try:
            values = self.validate_step(name, values) or values
        except LedgerLockError as e:
            if e.aborts_flow:
                self.abandon()
            raise
        except Exception:
            logger.exception(f"Flow {self.flow_id[:8]} failed validating {name}")
            self.abandon()
            raise
        for field_name in dict(self.STEPS)[name]:
            value = values.get(field_name)
            if value is None or _text(value) == "":
                self.buffer.clear_fields([field_name])
            else:
                self.buffer.put(field_name, value if isinstance(value, SecretStr) else str(value))

    def _close(self) -> None:
        self._finished = True
        self._release()

    # ============================================
    # Buffer access
    # ============================================

    def value(self, field_name: str) -> str:
        """Non-secret field as plain text ("" if unset)."""
        secret = self.buffer.get(field_name)
        return secret.expose() if secret is not None else ""

    def secret(self, field_name: str) -> Optional[SecretStr]:
        """Independent copy of a secret field (owner must wipe it)."""
        return self.buffer.take(field_name)

    # ============================================
    # Subclass hooks
    # ============================================

    def on_enter(self, step: str) -> None:
        """Called after the wizard lands on a step."""

    def validate_step(self, step: str, values: dict) -> Optional[dict]:
        """
        Raise InputValidation if values are not acceptable for step.

        May return a normalized copy of values to store instead.
        """

    def build_intent(self) -> Intent:
        raise NotImplementedError


# ============================================
# Signing credential step
# ============================================

def validate_credential_values(values: dict) -> dict:
    """
    Exactly one of passphrase / seed, consistent with the chosen method.

    Returns values with the method filled in when it was omitted.
    """
    has_passphrase = _text(values.get(FIELD_PASSPHRASE)).strip() != ""
    has_seed = _text(values.get(FIELD_SEED)).strip() != ""
    if has_passphrase == has_seed:
        raise InputValidation(
            "Exactly one of passphrase or seed is required",
            "Provide either your passphrase or your recovery phrase",
        )
    method = _text(values.get(FIELD_METHOD)) or (METHOD_SEED if has_seed else METHOD_PASSPHRASE)
    if method not in (METHOD_PASSPHRASE, METHOD_SEED):
        raise InputValidation(f"Unknown credential method: {method}", "Choose passphrase or recovery phrase")
    if (method == METHOD_PASSPHRASE) != has_passphrase:
        raise InputValidation("Credential does not match the chosen method",
                              "Provide either your passphrase or your recovery phrase")
    return {**values, FIELD_METHOD: method}


class SigningWizard(Wizard):
    """A wizard whose final step collects the SigningCredential."""

    CREDENTIAL_FIELDS = (FIELD_METHOD, FIELD_PASSPHRASE, FIELD_SEED, FIELD_BIP39)

    @property
    def wallet_address(self) -> str:
        balance = self.context.balance(self.chain)
        if balance is None or not balance.has_wallet:
            raise InputValidation(f"No {self.chain} wallet loaded", "Create or import a wallet first")
        return balance.address

    def validate_step(self, step: str, values: dict) -> Optional[dict]:
        if step == STEP_CREDENTIAL:
            return validate_credential_values(values)
        return None

    def build_credential(self) -> SigningCredential:
        """SigningCredential from the buffered credential step (clones)."""
        if self.value(FIELD_METHOD) == METHOD_SEED:
            return SigningCredential.from_seed(self.secret(FIELD_SEED), self.secret(FIELD_BIP39))
        return SigningCredential.from_passphrase(self.secret(FIELD_PASSPHRASE), self.secret(FIELD_BIP39))

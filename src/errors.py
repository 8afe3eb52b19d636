"""
Errors - Failure taxonomy for LedgerLock.

Every error carries a fixed ``user_message`` that is safe to show in the UI.
It never contains user input, secrets or key material; details for the log
go in the exception args instead (and those must not contain secrets either).

- InputValidation: malformed address/amount/fee/pin (retryable)
- CryptoFailure: AEAD tag mismatch, KDF error
- EncodingFailure: bad base64/UTF-8/JSON in stored data
- StorageFailure: file I/O
- IdentityMismatch: stored or derived address is not the requested wallet
- ProtocolFailure: queue full, unsupported kind, rejected submission
- DerivationFailure: invalid mnemonic or derivation path
"""


class LedgerLockError(Exception):
    """Base class for all LedgerLock failures."""

    user_message = "Operation failed"

    # Flows clear their secure buffer when an error with this flag escapes.
    aborts_flow = True

    def __init__(self, detail: str = "", user_message: str = None):
        super().__init__(detail or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class InputValidation(LedgerLockError, ValueError):
    user_message = "Invalid input"
    aborts_flow = False


class InvalidPin(InputValidation):
    user_message = "Invalid PIN: must be a six-digit number"


class CryptoFailure(LedgerLockError):
    user_message = "Decryption failed. Check your passphrase."


class EncodingFailure(LedgerLockError):
    user_message = "Stored wallet data is corrupted"


class StorageFailure(LedgerLockError, OSError):
    user_message = "Could not read or write wallet files"


class IdentityMismatch(LedgerLockError):
    user_message = "Stored credentials do not belong to this wallet"


class DerivationFailure(LedgerLockError):
    user_message = "Invalid recovery phrase"


class ProtocolFailure(LedgerLockError):
    user_message = "Request could not be dispatched"
    aborts_flow = False


class DispatchQueueFull(ProtocolFailure):
    user_message = "Too many pending requests. Try again shortly."


class UnsupportedTransactionKind(ProtocolFailure):
    user_message = "Unsupported transaction type"


class SubmissionRejected(ProtocolFailure):
    user_message = "Transaction was rejected by the network"


class PinNotSet(LedgerLockError):
    user_message = "PIN not set"
    aborts_flow = False


class IncorrectPin(LedgerLockError):
    user_message = "Incorrect PIN"
    aborts_flow = False


class SessionLocked(LedgerLockError):
    user_message = "Too many incorrect attempts. Restart the application to try again."

# feedbackledger/core/errors.py
"""
Error taxonomy for the record store.

Every error carries a ``recovery`` hint so callers can tell apart problems
fixed by changing input, by retrying, or by reconnecting the wallet.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from feedbackledger.core.types import FeedbackRecord


class FeedbackLedgerError(Exception):
    recovery: str = "none"


class ValidationError(FeedbackLedgerError):
    """Malformed input to create(); raised before any ledger interaction."""
    recovery = "fix_input"

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class EncryptionError(FeedbackLedgerError):
    """The encryption primitive failed; nothing was written."""
    recovery = "fix_input"


class DecodeError(FeedbackLedgerError):
    """Malformed bytes under a single ledger key."""
    recovery = "skip"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Cannot decode '{key}': {reason}")


class IndexAppendError(FeedbackLedgerError):
    """
    The record was committed but its id did not make it into the index.
    The record is orphaned until someone re-appends it.
    """
    recovery = "repair"

    def __init__(self, record_id: str, reason: str, record: Optional["FeedbackRecord"] = None):
        self.record_id = record_id
        self.record = record
        self.reason = reason
        super().__init__(f"Record '{record_id}' written but not indexed: {reason}")


class LedgerUnavailableError(FeedbackLedgerError):
    """Transient transport failure; the whole operation may be retried."""
    recovery = "retry"


class LedgerTimeoutError(LedgerUnavailableError):
    """A ledger call timed out. Says nothing about whether a write landed."""


class NoSignerError(FeedbackLedgerError):
    """Write attempted without an authenticated wallet session."""
    recovery = "reconnect_wallet"


class SigningRejectedError(FeedbackLedgerError):
    """The wallet declined to sign the write."""
    recovery = "reconnect_wallet"


__all__ = [
    "FeedbackLedgerError",
    "ValidationError",
    "EncryptionError",
    "DecodeError",
    "IndexAppendError",
    "LedgerUnavailableError",
    "LedgerTimeoutError",
    "NoSignerError",
    "SigningRejectedError",
]

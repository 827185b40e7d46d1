# feedbackledger/__init__.py
"""
feedbackledger: confidential peer feedback on an append/read key-value ledger.

Records are encrypted client-side, written under their own key through a
wallet-signed write path, and listed through a single shared id index.
"""

__version__ = "0.1.0-dev"

from feedbackledger.chain.session import WalletSession
from feedbackledger.core.types import Category, FeedbackRecord
from feedbackledger.crypto.keys import SignerKey
from feedbackledger.store.records import RecordStore
from feedbackledger.store.query import filter_records, sort_recent, category_counts
from feedbackledger.verify.orphans import OrphanScanner

__all__ = [
    "WalletSession",
    "Category",
    "FeedbackRecord",
    "SignerKey",
    "RecordStore",
    "filter_records",
    "sort_recent",
    "category_counts",
    "OrphanScanner",
]

# feedbackledger/core/types.py
from dataclasses import dataclass
from enum import Enum
from typing import Optional


RECORD_KEY_PREFIX = "record:"
INDEX_KEY = "feedback_keys"


class Category(str, Enum):
    """Fixed set of feedback categories."""
    COLLABORATION = "collaboration"
    COMMUNICATION = "communication"
    TECHNICAL = "technical"

    @classmethod
    def values(cls) -> list[str]:
        return [c.value for c in cls]


@dataclass(frozen=True)
class Proof:
    """Signature a wallet attaches to an authenticated ledger write."""
    type: str = "Ed25519Signature2020"
    created: str = ""
    account: str = ""                       # 0x-prefixed signer account
    public_key: str = ""                    # base64url raw Ed25519 public key
    proof_value: str = ""                   # base64url signature over key + value digest


@dataclass(frozen=True)
class Commit:
    """Confirmation returned by the ledger once a write is durable."""
    key: str
    sequence: int
    value_hash: str                 # hex(sha256(value))
    proof: Optional[Proof] = None


@dataclass(frozen=True)
class FeedbackRecord:
    """Single append-only feedback entry. Never updated or deleted once written."""
    id: str                         # "<unix-millis>-<base36 suffix>"
    ciphertext: str                 # opaque output of the encryptor
    created_at: int                 # unix seconds
    reviewer: str
    reviewee: str
    category: Category
    project_id: str = ""

    @property
    def key(self) -> str:
        return record_key(self.id)


def record_key(record_id: str) -> str:
    return f"{RECORD_KEY_PREFIX}{record_id}"


def record_id_from_key(key: str) -> Optional[str]:
    """Inverse of record_key; None for keys outside the record namespace."""
    if not key.startswith(RECORD_KEY_PREFIX):
        return None
    record_id = key[len(RECORD_KEY_PREFIX):]
    return record_id or None

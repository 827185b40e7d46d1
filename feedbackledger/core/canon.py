# feedbackledger/core/canon.py
import json
import hashlib
from typing import Any

import jcs


def canonical_json(obj: Any) -> bytes:
    """
    Deterministic UTF-8 bytes per RFC 8785 (JSON Canonicalization Scheme).
    Everything written to the ledger goes through here, so equal payloads
    always produce equal bytes (and equal value hashes).
    """
    return jcs.canonicalize(obj)


def parse_json(data: bytes) -> Any:
    """Strict UTF-8 JSON parse; raises ValueError (incl. JSONDecodeError) on bad input."""
    return json.loads(data.decode("utf-8"))


def value_hash(value: bytes) -> str:
    return hashlib.sha256(value).hexdigest()

# feedbackledger/core/codec.py
"""
On-ledger schema for feedback records and the shared id index.

Records are stored as canonical JSON objects with named fields, so readers
ignore fields they do not know and writers can add fields without breaking
older clients. Field names match the schema already present on-chain:

    {"category": ..., "data": <ciphertext>, "projectId": ..., "reviewee": ...,
     "reviewer": ..., "timestamp": <unix seconds>}

The record id is not part of the payload; it is carried by the key
(``record:<id>``).

The index is a canonical JSON array of id strings.
"""

import json
import logging
from typing import Any, Iterable, List, Optional

from feedbackledger.core.canon import canonical_json, parse_json
from feedbackledger.core.errors import DecodeError
from feedbackledger.core.types import (
    Category,
    FeedbackRecord,
    INDEX_KEY,
    record_id_from_key,
)

logger = logging.getLogger(__name__)

_WHITESPACE = " \t\n\r"


def encode_record(record: FeedbackRecord) -> bytes:
    return canonical_json({
        "data": record.ciphertext,
        "timestamp": record.created_at,
        "reviewer": record.reviewer,
        "reviewee": record.reviewee,
        "category": record.category.value,
        "projectId": record.project_id,
    })


def _require_str(key: str, payload: dict, name: str, default: Optional[str] = None) -> str:
    if name not in payload:
        if default is not None:
            return default
        raise DecodeError(key, f"missing field '{name}'")
    value = payload[name]
    if not isinstance(value, str):
        raise DecodeError(key, f"field '{name}' must be a string, got {type(value).__name__}")
    return value


def decode_record(key: str, data: bytes) -> FeedbackRecord:
    """
    Decode the bytes stored under ``key``.
    Any malformed input is reported as DecodeError(key, reason); nothing else escapes.
    """
    record_id = record_id_from_key(key)
    if record_id is None:
        raise DecodeError(key, "not a record key")
    if not data:
        raise DecodeError(key, "empty value")

    try:
        payload = parse_json(data)
    except (ValueError, RecursionError) as e:
        raise DecodeError(key, f"invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise DecodeError(key, f"expected object, got {type(payload).__name__}")

    timestamp = payload.get("timestamp")
    if "timestamp" not in payload:
        raise DecodeError(key, "missing field 'timestamp'")
    # bool is an int subclass; reject it explicitly
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        raise DecodeError(key, f"field 'timestamp' must be an integer, got {type(timestamp).__name__}")

    raw_category = _require_str(key, payload, "category")
    try:
        category = Category(raw_category)
    except ValueError:
        raise DecodeError(key, f"unknown category '{raw_category}'") from None

    return FeedbackRecord(
        id=record_id,
        ciphertext=_require_str(key, payload, "data"),
        created_at=timestamp,
        reviewer=_require_str(key, payload, "reviewer"),
        reviewee=_require_str(key, payload, "reviewee"),
        category=category,
        project_id=_require_str(key, payload, "projectId", default=""),
    )


def encode_index(ids: Iterable[str]) -> bytes:
    return canonical_json(list(ids))


def _skip_ws(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] in _WHITESPACE:
        pos += 1
    return pos


def _salvage_array(text: str) -> Optional[List[Any]]:
    """
    Parse a damaged JSON array element by element, keeping everything
    before the first element that fails to parse.
    Returns None when the text does not even start like an array.
    """
    decoder = json.JSONDecoder()
    pos = _skip_ws(text, 0)
    if pos >= len(text) or text[pos] != "[":
        return None
    pos += 1

    items: List[Any] = []
    while True:
        pos = _skip_ws(text, pos)
        if pos >= len(text) or text[pos] == "]":
            break
        try:
            item, pos = decoder.raw_decode(text, pos)
        except (json.JSONDecodeError, RecursionError):
            break
        items.append(item)
        pos = _skip_ws(text, pos)
        if pos < len(text) and text[pos] == ",":
            pos += 1
            continue
        break
    return items


def decode_index(data: bytes, key: str = INDEX_KEY) -> List[str]:
    """
    Decode the index value into an ordered list of ids.

    Empty bytes mean "no index yet" and yield []. Damaged arrays keep every
    id that still parses. Only a value with nothing salvageable raises DecodeError.
    """
    if not data:
        return []

    try:
        parsed = parse_json(data)
    except (ValueError, RecursionError) as e:
        parsed = _salvage_array(data.decode("utf-8", errors="replace"))
        if parsed is None:
            raise DecodeError(key, f"not a JSON array: {e}") from e
        logger.warning(
            "[feedbackledger] Index '%s' is damaged (%s); salvaged %d id(s)",
            key, e, len(parsed),
        )

    if not isinstance(parsed, list):
        raise DecodeError(key, f"expected array, got {type(parsed).__name__}")

    ids = [item for item in parsed if isinstance(item, str) and item]
    dropped = len(parsed) - len(ids)
    if dropped:
        logger.warning("[feedbackledger] Dropped %d invalid entr%s from index '%s'",
                       dropped, "y" if dropped == 1 else "ies", key)
    return ids

# feedbackledger/core/encoding.py
import base64
import secrets
import time
from typing import Callable, Optional

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def b64url_encode(data: bytes) -> str:
    """Encode bytes to base64url (no padding, URL-safe)."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(s: str) -> bytes:
    """Decode base64url string back to bytes (padding optional)."""
    padding = len(s) % 4
    if padding:
        s += "=" * (4 - padding)
    return base64.urlsafe_b64decode(s)


def to_base36(n: int) -> str:
    if n < 0:
        raise ValueError("negative values have no base36 form")
    if n == 0:
        return "0"
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def new_record_id(clock: Optional[Callable[[], float]] = None, suffix_len: int = 7) -> str:
    """
    Time-based id with a random base36 suffix, e.g. "1769870400123-k3j9x0a".
    The suffix carries ~36 bits of entropy, so ids from concurrent writers
    in the same millisecond still do not collide in practice.
    """
    now = (clock or time.time)()
    millis = int(now * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(suffix_len))
    return f"{millis}-{suffix}"

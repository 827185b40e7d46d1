# feedbackledger/storage/__init__.py
"""
Key-value ledger backends.

A backend stores opaque byte values under string keys and keeps an
append-only log of the commits that produced them. Backends know nothing
about records or signatures; callers go through ReadOnlyLedger /
AuthenticatedLedger in ``feedbackledger.storage.transport``.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from feedbackledger.core.types import Commit, Proof


class StorageClosedError(RuntimeError):
    """Raised by a backend used after close()."""


class StorageBackend(ABC):
    """Abstract base for all ledger storage implementations."""

    @abstractmethod
    async def read(self, key: str) -> bytes:
        """Value under key, or b"" when the key was never written."""

    @abstractmethod
    async def write(self, key: str, value: bytes, proof: Optional[Proof] = None) -> Commit:
        """Durably replace the value under key; returns the commit confirmation."""

    @abstractmethod
    async def keys(self, prefix: str = "") -> List[str]:
        pass

    @abstractmethod
    async def is_available(self) -> bool:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


def create_storage(uri: str) -> StorageBackend:
    stripped = uri.strip()
    if stripped == "memory://":
        from .memory import MemoryStorage
        return MemoryStorage()

    if stripped.startswith("sqlite://"):
        from .sqlite import SQLiteStorage
        raw_path = stripped[len("sqlite://"):]
        if not raw_path:
            raise ValueError(f"Missing database path in URI: {uri}")
        return SQLiteStorage(Path(raw_path).expanduser().resolve())

    if "://" in stripped or not stripped:
        raise ValueError(f"Unsupported storage URI: {uri}")

    # Plain file path -> SQLite
    from .sqlite import SQLiteStorage
    return SQLiteStorage(Path(stripped).expanduser().resolve())


from .memory import MemoryStorage
from .sqlite import SQLiteStorage

__all__ = ["StorageBackend", "StorageClosedError", "create_storage", "MemoryStorage", "SQLiteStorage"]

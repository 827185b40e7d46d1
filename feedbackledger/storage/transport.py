# feedbackledger/storage/transport.py
"""
Read-only and signer-authenticated access paths onto a StorageBackend.

Every backend call is bounded by a timeout. Backend faults become
LedgerUnavailableError and timeouts LedgerTimeoutError. A timed-out write
may or may not have landed; callers must not assume either.
"""

import asyncio
import logging
import sqlite3
from typing import Awaitable, List, TypeVar

from feedbackledger.chain.session import WalletSession
from feedbackledger.core.errors import (
    LedgerTimeoutError,
    LedgerUnavailableError,
    NoSignerError,
)
from feedbackledger.core.types import Commit
from . import StorageBackend, StorageClosedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30.0


class ReadOnlyLedger:
    """Unauthenticated view: get / availability probe / key enumeration."""

    def __init__(self, backend: StorageBackend, timeout: float = DEFAULT_TIMEOUT):
        self.backend = backend
        self.timeout = timeout

    async def _call(self, op: str, pending: Awaitable[T]) -> T:
        logger.debug("[feedbackledger] ledger %s", op)
        try:
            return await asyncio.wait_for(pending, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise LedgerTimeoutError(f"Ledger {op} timed out after {self.timeout}s") from e
        except (OSError, sqlite3.Error, StorageClosedError) as e:
            raise LedgerUnavailableError(f"Ledger {op} failed: {e}") from e

    async def get(self, key: str) -> bytes:
        """Never raises for a missing key; returns b"" instead."""
        value = await self._call(f"get '{key}'", self.backend.read(key))
        return value or b""

    async def is_available(self) -> bool:
        try:
            return bool(await self._call("availability probe", self.backend.is_available()))
        except LedgerUnavailableError as e:
            logger.warning("[feedbackledger] Ledger availability probe failed: %s", e)
            return False

    async def keys(self, prefix: str = "") -> List[str]:
        return await self._call(f"keys '{prefix}*'", self.backend.keys(prefix))


class AuthenticatedLedger(ReadOnlyLedger):
    """Write path: every set() is signed by the session's wallet."""

    def __init__(self, backend: StorageBackend, session: WalletSession,
                 timeout: float = DEFAULT_TIMEOUT):
        super().__init__(backend, timeout)
        self.session = session

    @property
    def account(self) -> str:
        return self.session.account

    async def set(self, key: str, value: bytes) -> Commit:
        if not self.session.can_sign:
            raise NoSignerError("No active signer session; connect a wallet first")
        proof = self.session.sign(key, value)
        commit = await self._call(f"set '{key}'", self.backend.write(key, value, proof))
        logger.debug("[feedbackledger] committed '%s' as #%d", key, commit.sequence)
        return commit

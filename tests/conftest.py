# tests/conftest.py
"""Shared fixtures: in-memory ledgers that can inject concurrent writers."""

from typing import Awaitable, Callable, Optional

import pytest

from feedbackledger.chain.session import WalletSession
from feedbackledger.core.types import INDEX_KEY
from feedbackledger.crypto.envelope import SimulatedFHEEncryptor
from feedbackledger.crypto.keys import SignerKey
from feedbackledger.storage import MemoryStorage
from feedbackledger.storage.transport import AuthenticatedLedger, ReadOnlyLedger
from feedbackledger.store.records import RecordStore

Hook = Callable[[], Awaitable[None]]


class HookedStorage(MemoryStorage):
    """
    MemoryStorage that runs a one-shot coroutine right after the next index
    read (before the reader sees the value) or right after the next index
    write. Used to place another client's operations inside a writer's
    read-modify-write window.
    """

    def __init__(self, index_key: str = INDEX_KEY):
        super().__init__()
        self.index_key = index_key
        self.after_index_read: Optional[Hook] = None
        self.after_index_write: Optional[Hook] = None
        self.index_writes = 0

    async def read(self, key):
        value = await super().read(key)
        if key == self.index_key and self.after_index_read is not None:
            hook, self.after_index_read = self.after_index_read, None
            await hook()
        return value

    async def write(self, key, value, proof=None):
        commit = await super().write(key, value, proof)
        if key == self.index_key:
            self.index_writes += 1
            if self.after_index_write is not None:
                hook, self.after_index_write = self.after_index_write, None
                await hook()
        return commit


class ClobberingStorage(MemoryStorage):
    """Every index write is immediately overwritten by a competitor's empty index."""

    def __init__(self):
        super().__init__()
        self.index_writes = 0

    async def write(self, key, value, proof=None):
        commit = await super().write(key, value, proof)
        if key == INDEX_KEY:
            self.index_writes += 1
            await super().write(key, b"[]", None)
        return commit


@pytest.fixture
def storage() -> HookedStorage:
    return HookedStorage()


@pytest.fixture
def clobbering_storage() -> ClobberingStorage:
    return ClobberingStorage()


@pytest.fixture
def alice() -> SignerKey:
    return SignerKey.generate()


@pytest.fixture
def bob() -> SignerKey:
    return SignerKey.generate()


@pytest.fixture
def make_store():
    """Factory: RecordStore over a shared backend, one wallet per client."""

    def _make(backend, signer: Optional[SignerKey] = None, encryptor=None, **kwargs) -> RecordStore:
        session = WalletSession(signer=signer)
        return RecordStore(
            ReadOnlyLedger(backend, timeout=1.0),
            encryptor or SimulatedFHEEncryptor(),
            writer=AuthenticatedLedger(backend, session, timeout=1.0),
            **kwargs,
        )

    return _make

# feedbackledger/storage/memory.py
from typing import Dict, List, Optional

from feedbackledger.core.canon import value_hash
from feedbackledger.core.types import Commit, Proof
from . import StorageBackend


class MemoryStorage(StorageBackend):
    """In-process ledger. Several clients may share one instance to act as concurrent writers."""

    def __init__(self):
        self._values: Dict[str, bytes] = {}
        self.commits: List[Commit] = []
        self.available = True

    async def read(self, key: str) -> bytes:
        return self._values.get(key, b"")

    async def write(self, key: str, value: bytes, proof: Optional[Proof] = None) -> Commit:
        self._values[key] = bytes(value)
        commit = Commit(key=key, sequence=len(self.commits), value_hash=value_hash(value), proof=proof)
        self.commits.append(commit)
        return commit

    async def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._values if k.startswith(prefix))

    async def is_available(self) -> bool:
        return self.available

    def close(self) -> None:
        pass

# feedbackledger/store/index.py
import logging
from typing import List, Optional

from feedbackledger.core.codec import decode_index, encode_index
from feedbackledger.core.errors import DecodeError, IndexAppendError
from feedbackledger.core.types import INDEX_KEY
from feedbackledger.storage.transport import AuthenticatedLedger, ReadOnlyLedger

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


class IndexManager:
    """
    Owns the single shared "all record ids" value.

    The ledger offers neither multi-key transactions nor compare-and-swap,
    so append() is read-modify-write. Two clients that interleave their
    read and write can drop each other's id. append() re-reads after
    writing and, when its own id is gone, merges and writes again
    (at most ``max_retries`` times). That narrows the window but cannot
    close it: a competing write landing after our verification read still
    wins. Such losses surface as orphaned records (see verify.orphans).
    """

    def __init__(self, reader: ReadOnlyLedger, writer: Optional[AuthenticatedLedger] = None,
                 index_key: str = INDEX_KEY, max_retries: int = DEFAULT_MAX_RETRIES):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.reader = reader
        self.writer = writer
        self.index_key = index_key
        self.max_retries = max_retries

    async def _read_ids(self, ledger: ReadOnlyLedger) -> List[str]:
        raw = await ledger.get(self.index_key)
        try:
            return decode_index(raw, self.index_key)
        except DecodeError as e:
            logger.warning("[feedbackledger] %s; treating index as empty", e)
            return []

    async def list(self) -> List[str]:
        """Ordered ids currently in the index. Pure read; [] when the key is missing."""
        return await self._read_ids(self.reader)

    async def append(self, record_id: str) -> List[str]:
        """
        Add record_id to the index and return the list as written.
        Raises IndexAppendError when the id is still missing after all retries.
        """
        if self.writer is None:
            raise IndexAppendError(record_id, "index manager has no authenticated ledger")

        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            ids = await self._read_ids(self.writer)
            ids.append(record_id)
            await self.writer.set(self.index_key, encode_index(ids))

            observed = await self._read_ids(self.writer)
            if record_id in observed:
                if attempt > 1:
                    logger.info("[feedbackledger] Index append of '%s' succeeded on attempt %d",
                                record_id, attempt)
                return ids

            logger.warning(
                "[feedbackledger] Index write for '%s' was overwritten by a concurrent writer "
                "(attempt %d/%d)", record_id, attempt, attempts,
            )

        raise IndexAppendError(
            record_id,
            f"id lost to concurrent index writers after {attempts} attempt(s)",
        )

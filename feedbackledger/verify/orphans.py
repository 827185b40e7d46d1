# feedbackledger/verify/orphans.py
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from feedbackledger.core.codec import decode_index, decode_record
from feedbackledger.core.errors import DecodeError, FeedbackLedgerError
from feedbackledger.core.types import INDEX_KEY, RECORD_KEY_PREFIX, record_id_from_key, record_key
from feedbackledger.storage.transport import ReadOnlyLedger
from feedbackledger.store.index import IndexManager

logger = logging.getLogger(__name__)


@dataclass
class ScanFinding:
    record_id: str
    message: str
    category: str = "orphan"  # "orphan", "dangling", "missing", "index"


@dataclass
class ScanResult:
    is_clean: bool
    message: str = ""
    findings: List[ScanFinding] = field(default_factory=list)
    indexed: int = 0
    candidates: int = 0

    def _ids(self, category: str) -> List[str]:
        return [f.record_id for f in self.findings if f.category == category]

    @property
    def orphans(self) -> List[str]:
        """Written records the index does not list."""
        return self._ids("orphan")

    @property
    def dangling(self) -> List[str]:
        """Indexed ids whose record is missing or unreadable."""
        return self._ids("dangling")

    @property
    def missing(self) -> List[str]:
        return self._ids("missing")

    def __bool__(self):
        return self.is_clean

    def __str__(self):
        if self.is_clean:
            return f"Index is consistent ✓ ({self.indexed} indexed, {self.candidates} checked)"
        lines = [f"Index scan found {len(self.findings)} issue(s):"]
        for f in self.findings:
            lines.append(f"  • [{f.record_id}] {f.category}: {f.message}")
        return "\n".join(lines)


class OrphanScanner:
    """
    Detects records lost to index races and index entries that point nowhere.

    Candidates are either ids the caller knows it wrote (e.g.
    RecordStore.written_ids) or every ``record:`` key the ledger can list.
    """

    def __init__(self, reader: ReadOnlyLedger, index_key: str = INDEX_KEY):
        self.reader = reader
        self.index_key = index_key

    async def _candidate_ids(self, known_ids: Optional[Iterable[str]]) -> List[str]:
        if known_ids is not None:
            return list(dict.fromkeys(known_ids))
        keys = await self.reader.keys(RECORD_KEY_PREFIX)
        ids = [record_id_from_key(k) for k in keys]
        return [i for i in ids if i]

    async def _readable(self, record_id: str) -> Optional[str]:
        """None when the record decodes; otherwise the reason it does not."""
        key = record_key(record_id)
        raw = await self.reader.get(key)
        if not raw:
            return "record not found"
        try:
            decode_record(key, raw)
        except DecodeError as e:
            return e.reason
        return None

    async def scan(self, known_ids: Optional[Iterable[str]] = None) -> ScanResult:
        result = ScanResult(True)

        try:
            indexed = decode_index(await self.reader.get(self.index_key), self.index_key)
        except DecodeError as e:
            indexed = []
            result.findings.append(ScanFinding("-", str(e), "index"))
            result.is_clean = False
        indexed_set = set(indexed)
        result.indexed = len(indexed_set)

        # 1. Every indexed id must resolve to a readable record
        for record_id in dict.fromkeys(indexed):
            reason = await self._readable(record_id)
            if reason is not None:
                result.findings.append(ScanFinding(record_id, reason, "dangling"))
                result.is_clean = False

        # 2. Every written record should be reachable from the index
        candidates = await self._candidate_ids(known_ids)
        result.candidates = len(candidates)
        for record_id in candidates:
            if record_id in indexed_set:
                continue
            raw = await self.reader.get(record_key(record_id))
            if raw:
                result.findings.append(ScanFinding(record_id, "record exists but is not indexed", "orphan"))
            else:
                result.findings.append(ScanFinding(record_id, "no record under this id", "missing"))
            result.is_clean = False

        if not result.is_clean:
            logger.warning("[feedbackledger] Index scan: %d issue(s), %d orphan(s)",
                           len(result.findings), len(result.orphans))
        result.message = "Consistent" if result.is_clean else f"Found {len(result.findings)} issues"
        return result


async def repair(result: ScanResult, index: IndexManager) -> List[str]:
    """
    Re-append orphaned ids to the index. Explicit operator action only;
    nothing calls this automatically. Returns the ids re-appended.

    If an append fails, the error is re-raised with ``repaired`` set to the
    ids that were re-indexed before it.
    """
    repaired = []
    try:
        for record_id in result.orphans:
            await index.append(record_id)
            repaired.append(record_id)
            logger.info("[feedbackledger] Re-indexed orphaned record '%s'", record_id)
    except FeedbackLedgerError as e:
        e.repaired = list(repaired)
        raise
    return repaired

# feedbackledger/store/records.py
import logging
import time
from typing import Callable, List, Optional, Union

from feedbackledger.core.codec import decode_record, encode_record
from feedbackledger.core.encoding import new_record_id
from feedbackledger.core.errors import (
    DecodeError,
    EncryptionError,
    IndexAppendError,
    NoSignerError,
    ValidationError,
)
from feedbackledger.core.types import Category, FeedbackRecord, INDEX_KEY, record_key
from feedbackledger.crypto.envelope import Encryptor
from feedbackledger.storage.transport import AuthenticatedLedger, ReadOnlyLedger
from feedbackledger.store.index import DEFAULT_MAX_RETRIES, IndexManager
from feedbackledger.store.query import sort_recent

logger = logging.getLogger(__name__)


def _coerce_category(category: Union[Category, str]) -> Category:
    if isinstance(category, Category):
        return category
    try:
        return Category(str(category).strip().lower())
    except ValueError:
        raise ValidationError(
            "category", f"must be one of {', '.join(Category.values())}, got '{category}'"
        ) from None


class RecordStore:
    """
    Create / list feedback records on the ledger.

    Holds no durable state: every listing is rebuilt from the ledger.
    ``written_ids`` remembers the ids this instance committed so an
    orphan scan can check them against the index later.
    """

    def __init__(
        self,
        reader: ReadOnlyLedger,
        encryptor: Encryptor,
        writer: Optional[AuthenticatedLedger] = None,
        index_key: str = INDEX_KEY,
        max_retries: int = DEFAULT_MAX_RETRIES,
        clock: Callable[[], float] = time.time,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.reader = reader
        self.writer = writer
        self.encryptor = encryptor
        self.clock = clock
        self.id_factory = id_factory or (lambda: new_record_id(self.clock))
        self.index = IndexManager(reader, writer, index_key=index_key, max_retries=max_retries)
        self.written_ids: List[str] = []

    async def create(
        self,
        reviewer: str,
        reviewee: str,
        category: Union[Category, str],
        project_id: str,
        comment: str,
    ) -> FeedbackRecord:
        """
        Encrypt and write a new record, then add it to the index.

        Nothing touches the ledger until input is valid and encryption
        succeeded. If the record write fails (no signer, rejected signature,
        ledger fault) no index append is attempted. If only the index
        append fails, IndexAppendError carries the committed record.
        """
        reviewee = (reviewee or "").strip()
        reviewer = (reviewer or "").strip()
        project_id = (project_id or "").strip()
        if not reviewer:
            raise ValidationError("reviewer", "must not be empty")
        if not reviewee:
            raise ValidationError("reviewee", "must not be empty")
        if not comment or not comment.strip():
            raise ValidationError("comment", "must not be empty")
        category = _coerce_category(category)

        if self.writer is None:
            raise NoSignerError("Record store is read-only; connect a wallet to submit feedback")

        record_id = self.id_factory()

        payload = {
            "reviewee": reviewee,
            "category": category.value,
            "projectId": project_id,
            "comments": comment,
        }
        try:
            ciphertext = self.encryptor.encrypt(payload)
        except Exception as e:
            raise EncryptionError(f"Encryption failed: {e}") from e
        if not isinstance(ciphertext, str) or not ciphertext:
            raise EncryptionError("Encryptor returned an empty or non-string ciphertext")

        record = FeedbackRecord(
            id=record_id,
            ciphertext=ciphertext,
            created_at=int(self.clock()),
            reviewer=reviewer,
            reviewee=reviewee,
            category=category,
            project_id=project_id,
        )

        await self.writer.set(record.key, encode_record(record))
        self.written_ids.append(record.id)
        logger.info("[feedbackledger] Committed record '%s'", record.id)

        try:
            await self.index.append(record.id)
        except IndexAppendError as e:
            e.record = record
            raise
        except Exception as e:
            # the record is committed; any failure from here on leaves it orphaned
            raise IndexAppendError(record.id, str(e) or type(e).__name__, record=record) from e

        return record

    async def read(self, record_id: str) -> Optional[FeedbackRecord]:
        """Single record by id; None when missing. Raises DecodeError when corrupt."""
        key = record_key(record_id)
        raw = await self.reader.get(key)
        if not raw:
            return None
        return decode_record(key, raw)

    async def list_all(self) -> List[FeedbackRecord]:
        """
        Every readable record reachable from the index, in index order.
        Missing or corrupt records are logged and skipped; transport
        errors propagate.
        """
        if not await self.reader.is_available():
            logger.warning("[feedbackledger] Ledger is not available; returning no records")
            return []

        records = []
        for record_id in await self.index.list():
            try:
                record = await self.read(record_id)
            except DecodeError as e:
                logger.warning("[feedbackledger] Skipping record: %s", e)
                continue
            if record is None:
                logger.warning("[feedbackledger] Indexed record '%s' is missing; skipping", record_id)
                continue
            records.append(record)
        return records

    async def refresh(self) -> List[FeedbackRecord]:
        return await self.list_all()

    async def list_recent(self) -> List[FeedbackRecord]:
        return sort_recent(await self.list_all())

# tests/test_index.py
import pytest

from feedbackledger.chain.session import WalletSession
from feedbackledger.core.codec import encode_index
from feedbackledger.core.errors import IndexAppendError
from feedbackledger.core.types import INDEX_KEY
from feedbackledger.storage.transport import AuthenticatedLedger, ReadOnlyLedger
from feedbackledger.store.index import IndexManager


def make_index(backend, signer=None, **kwargs) -> IndexManager:
    writer = AuthenticatedLedger(backend, WalletSession(signer=signer)) if signer else None
    return IndexManager(ReadOnlyLedger(backend), writer, **kwargs)


@pytest.mark.asyncio
async def test_list_missing_index_is_empty(storage):
    assert await make_index(storage).list() == []


@pytest.mark.asyncio
async def test_sequential_appends_grow_by_one(storage, alice):
    index = make_index(storage, alice)
    seen = []
    for i in range(5):
        record_id = f"{i}-abcdefg"
        await index.append(record_id)
        seen.append(record_id)
        listed = await index.list()
        assert len(listed) == i + 1
        assert listed == seen


@pytest.mark.asyncio
async def test_duplicates_are_kept(storage, alice):
    index = make_index(storage, alice)
    await index.append("1-a")
    await index.append("1-a")
    assert await index.list() == ["1-a", "1-a"]


@pytest.mark.asyncio
async def test_corrupt_index_is_replaced_on_append(storage, alice):
    await storage.write(INDEX_KEY, b'{"not": "an array"}')
    index = make_index(storage, alice)

    assert await index.list() == []
    await index.append("2-b")
    assert await index.list() == ["2-b"]


@pytest.mark.asyncio
async def test_append_without_writer_fails(storage):
    with pytest.raises(IndexAppendError, match="no authenticated ledger"):
        await make_index(storage).append("1-a")


def test_negative_retries_rejected(storage):
    with pytest.raises(ValueError):
        make_index(storage, max_retries=-1)


@pytest.mark.asyncio
@pytest.mark.parametrize("max_retries", [0, 3])
async def test_stale_read_drops_concurrent_id(storage, alice, bob, max_retries):
    """
    B appends entirely inside A's read-modify-write window. A writes back
    its stale snapshot and B's id disappears. Neither writer notices:
    B verified before A's write landed, A's own id is present.
    """
    index_a = make_index(storage, alice, max_retries=max_retries)
    index_b = make_index(storage, bob, max_retries=max_retries)

    async def b_appends():
        await index_b.append("2-bbbbbbb")

    storage.after_index_read = b_appends
    await index_a.append("1-aaaaaaa")

    assert await index_a.list() == ["1-aaaaaaa"]


@pytest.mark.asyncio
async def test_lost_write_detected_without_retries(storage, alice, bob):
    """A competing stale write lands between A's write and A's verification read."""
    index_a = make_index(storage, alice, max_retries=0)
    writer_b = AuthenticatedLedger(storage, WalletSession(signer=bob))

    async def b_writes_stale_snapshot():
        await writer_b.set(INDEX_KEY, encode_index(["2-bbbbbbb"]))

    storage.after_index_write = b_writes_stale_snapshot
    with pytest.raises(IndexAppendError) as exc_info:
        await index_a.append("1-aaaaaaa")

    assert exc_info.value.record_id == "1-aaaaaaa"
    assert await index_a.list() == ["2-bbbbbbb"]


@pytest.mark.asyncio
async def test_retry_merges_after_lost_write(storage, alice, bob):
    """Same interleaving as above, but A re-reads, merges and writes again."""
    index_a = make_index(storage, alice, max_retries=3)
    writer_b = AuthenticatedLedger(storage, WalletSession(signer=bob))

    async def b_writes_stale_snapshot():
        await writer_b.set(INDEX_KEY, encode_index(["2-bbbbbbb"]))

    storage.after_index_write = b_writes_stale_snapshot
    written = await index_a.append("1-aaaaaaa")

    assert written == ["2-bbbbbbb", "1-aaaaaaa"]
    assert await index_a.list() == ["2-bbbbbbb", "1-aaaaaaa"]
    # A wrote twice, B once
    assert storage.index_writes == 3


@pytest.mark.asyncio
async def test_retry_ceiling_raises(clobbering_storage, alice):
    backend = clobbering_storage
    index = make_index(backend, alice, max_retries=2)

    with pytest.raises(IndexAppendError, match="3 attempt"):
        await index.append("1-aaaaaaa")
    assert backend.index_writes == 3

# tests/test_orphans.py
import pytest

from feedbackledger.chain.session import WalletSession
from feedbackledger.core.codec import encode_index, encode_record
from feedbackledger.core.errors import SigningRejectedError
from feedbackledger.core.types import Category, FeedbackRecord, INDEX_KEY, record_key
from feedbackledger.storage.transport import AuthenticatedLedger, ReadOnlyLedger
from feedbackledger.store.index import IndexManager
from feedbackledger.verify.orphans import OrphanScanner, ScanResult, repair


async def submit(store, reviewee):
    return await store.create("0xAA", reviewee, "collaboration", "P1", "thanks for the pairing")


@pytest.mark.asyncio
async def test_clean_ledger_scans_clean(storage, alice, make_store):
    store = make_store(storage, alice)
    await submit(store, "bob")
    await submit(store, "carol")

    result = await OrphanScanner(ReadOnlyLedger(storage)).scan()

    assert result.is_clean
    assert bool(result) is True
    assert result.indexed == 2
    assert result.candidates == 2
    assert "consistent" in str(result).lower()


@pytest.mark.asyncio
async def test_interleaved_creates_leave_detectable_orphan(storage, alice, bob, make_store):
    """
    Client B submits entirely inside client A's index read-modify-write.
    Both creates return normally, yet B's record vanishes from listings.
    The scan over the ids both clients wrote must find it.
    """
    store_a = make_store(storage, alice, max_retries=0)
    store_b = make_store(storage, bob, max_retries=0)
    created_b = []

    async def b_submits():
        created_b.append(await submit(store_b, "dana"))

    storage.after_index_read = b_submits
    record_a = await submit(store_a, "erin")
    record_b = created_b[0]

    listed = {r.id for r in await store_a.list_all()}
    assert listed == {record_a.id}
    assert await storage.read(record_key(record_b.id)) != b""

    scanner = OrphanScanner(ReadOnlyLedger(storage))
    from_known = await scanner.scan(store_a.written_ids + store_b.written_ids)
    from_keys = await scanner.scan()

    for result in (from_known, from_keys):
        assert not result.is_clean
        assert result.orphans == [record_b.id]
        assert result.dangling == []


@pytest.mark.asyncio
async def test_repair_reindexes_orphans(storage, alice, bob, make_store):
    store_a = make_store(storage, alice)
    store_b = make_store(storage, bob)

    async def b_submits():
        await submit(store_b, "dana")

    storage.after_index_read = b_submits
    await submit(store_a, "erin")

    scanner = OrphanScanner(ReadOnlyLedger(storage))
    result = await scanner.scan()
    assert len(result.orphans) == 1

    repaired = await repair(result, store_a.index)

    assert repaired == result.orphans
    assert (await scanner.scan()).is_clean
    assert len(await store_a.list_all()) == 2


@pytest.mark.asyncio
async def test_dangling_and_missing_ids_reported(storage, alice, make_store):
    store = make_store(storage, alice)
    kept = await submit(store, "bob")
    await storage.write(record_key("2-corrupt"), b"not json")
    await storage.write(INDEX_KEY, encode_index([kept.id, "2-corrupt", "3-gone"]))

    result = await OrphanScanner(ReadOnlyLedger(storage)).scan([kept.id, "4-never-written"])

    assert sorted(result.dangling) == ["2-corrupt", "3-gone"]
    assert result.missing == ["4-never-written"]
    assert result.orphans == []
    assert "dangling" in str(result)


@pytest.mark.asyncio
async def test_unreadable_index_is_a_finding(storage):
    await storage.write(INDEX_KEY, b"garbage")
    result = await OrphanScanner(ReadOnlyLedger(storage)).scan([])
    assert not result.is_clean
    assert [f.category for f in result.findings] == ["index"]


@pytest.mark.asyncio
async def test_repair_of_clean_result_is_noop(storage, alice, make_store):
    store = make_store(storage, alice)
    assert await repair(ScanResult(True), store.index) == []
    assert storage.index_writes == 0


@pytest.mark.asyncio
async def test_failed_repair_keeps_ids_already_reindexed(storage, alice):
    for record_id in ("1-a", "2-b"):
        orphan = FeedbackRecord(record_id, "FHE-e30", 100, "0xAA", "dana", Category.TECHNICAL, "P1")
        await storage.write(orphan.key, encode_record(orphan))

    index_signatures = []

    def approve_first_index_write(key, value):
        if key != INDEX_KEY:
            return True
        index_signatures.append(key)
        return len(index_signatures) == 1

    writer = AuthenticatedLedger(storage, WalletSession(signer=alice, approve=approve_first_index_write))
    index = IndexManager(ReadOnlyLedger(storage), writer)
    scanner = OrphanScanner(ReadOnlyLedger(storage))
    result = await scanner.scan()
    assert result.orphans == ["1-a", "2-b"]

    with pytest.raises(SigningRejectedError) as exc_info:
        await repair(result, index)

    assert exc_info.value.repaired == ["1-a"]
    assert (await scanner.scan()).orphans == ["2-b"]

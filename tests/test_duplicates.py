"""Duplicate wallet detection and the scan/confirm resolver."""

import pytest

from factories import at, user_doc
from minativault.core.exceptions import BadRequestError, BatchDeleteError, ConflictError, StoreUnavailableError
from minativault.models.duplicate import ResolverState
from minativault.services.duplicates import DuplicateResolver, find_duplicates, group_by_address
from minativault.storage.base import StoredDocument


def _ids(docs):
    return sorted(d.id for d in docs)


def test_addresses_match_after_trim_and_lowercase():
    docs = [
        StoredDocument("t1", user_doc(address="0xAA", created_at=at(1))),
        StoredDocument("t2", user_doc(address="0xaa ", created_at=at(2))),
        StoredDocument("solo", user_doc(address="0xBB", created_at=at(3))),
        StoredDocument("blank", user_doc(address="  ", created_at=at(4))),
        StoredDocument("blank2", user_doc(address="", created_at=at(5))),
    ]
    assert list(group_by_address(docs)) == ["0xaa"]
    assert _ids(find_duplicates(docs)) == ["t2"]


def test_earliest_dated_member_is_kept_regardless_of_order():
    docs = [
        StoredDocument("late", user_doc(address="0x1", created_at=at(9))),
        StoredDocument("undated", user_doc(address="0x1")),
        StoredDocument("early", user_doc(address="0x1", created_at=at(1))),
    ]
    assert _ids(find_duplicates(docs)) == ["late", "undated"]
    assert _ids(find_duplicates(list(reversed(docs)))) == ["late", "undated"]


def test_only_dated_member_wins_over_undated():
    docs = [
        StoredDocument("u1", user_doc(address="0x1")),
        StoredDocument("u2", user_doc(address="0x1")),
        StoredDocument("dated", user_doc(address="0x1", created_at=at(50))),
    ]
    assert _ids(find_duplicates(docs)) == ["u1", "u2"]


def test_all_undated_keeps_first_in_scan_order():
    docs = [
        StoredDocument("first", user_doc(address="0x1")),
        StoredDocument("second", user_doc(address="0x1")),
    ]
    assert _ids(find_duplicates(docs)) == ["second"]


def test_naive_and_aware_timestamps_compare():
    docs = [
        StoredDocument("aware", user_doc(address="0x1", created_at=at(2))),
        StoredDocument("naive", user_doc(address="0x1", created_at=at(1).replace(tzinfo=None))),
    ]
    assert _ids(find_duplicates(docs)) == ["aware"]


@pytest.fixture
def seeded(store):
    store.add("orig", user_doc(first_name="Ana", address="0xAA", created_at=at(1)))
    store.add("dup1", user_doc(first_name="Ana2", address="0xaa", created_at=at(2)))
    store.add("dup2", user_doc(first_name="Ana3", address=" 0xAA", created_at=at(3)))
    store.add("other", user_doc(first_name="Bo", address="0xBB", created_at=at(4)))
    return store


@pytest.mark.asyncio
async def test_scan_then_confirm_deletes_exactly_the_list(seeded):
    resolver = DuplicateResolver(seeded)
    scan = await resolver.scan()
    assert scan.state == ResolverState.FOUND
    assert sorted(scan.ids) == ["dup1", "dup2"]
    assert scan.duplicates[0].bep20_address.strip().lower() == "0xaa"
    assert len(seeded) == 4

    result = await resolver.confirm(scan.ids)
    assert result.state == ResolverState.DELETED
    assert result.deleted_count == 2
    assert len(seeded) == 2
    assert "orig" in seeded and "other" in seeded

    again = await resolver.scan()
    assert again.state == ResolverState.NONE_FOUND
    assert again.duplicates == []


@pytest.mark.asyncio
async def test_confirm_without_scan_is_refused(seeded):
    resolver = DuplicateResolver(seeded)
    with pytest.raises(ConflictError):
        await resolver.confirm()
    assert len(seeded) == 4


@pytest.mark.asyncio
async def test_confirm_with_different_ids_is_refused(seeded):
    resolver = DuplicateResolver(seeded)
    await resolver.scan()
    with pytest.raises(ConflictError):
        await resolver.confirm(["dup1"])
    assert resolver.state == ResolverState.FOUND
    assert len(seeded) == 4


@pytest.mark.asyncio
async def test_failed_batch_deletes_nothing(seeded):
    resolver = DuplicateResolver(seeded)
    await resolver.scan()
    seeded.fail_batches = True
    with pytest.raises(BatchDeleteError):
        await resolver.confirm()
    assert len(seeded) == 4
    assert resolver.state == ResolverState.DELETE_FAILED
    assert resolver.duplicates == []
    assert resolver.error
    # nothing pending any more; a new scan is required
    with pytest.raises(ConflictError):
        await resolver.confirm()


@pytest.mark.asyncio
async def test_oversized_batch_is_rejected(store):
    store.max_batch_size = 2
    for i in range(4):
        store.add(f"u{i}", user_doc(address="0x1", created_at=at(i)))
    resolver = DuplicateResolver(store)
    await resolver.scan()
    with pytest.raises(BadRequestError):
        await resolver.confirm()
    assert len(store) == 4
    assert resolver.state == ResolverState.FOUND


@pytest.mark.asyncio
async def test_scan_failure_returns_to_idle(seeded):
    resolver = DuplicateResolver(seeded)
    seeded.failing_reads = 1
    with pytest.raises(StoreUnavailableError):
        await resolver.scan()
    assert resolver.state == ResolverState.IDLE
    assert resolver.error


@pytest.mark.asyncio
async def test_reset_drops_pending_scan(seeded):
    resolver = DuplicateResolver(seeded)
    await resolver.scan()
    resolver.reset()
    assert resolver.snapshot().state == ResolverState.IDLE
    with pytest.raises(ConflictError):
        await resolver.confirm()


@pytest.mark.asyncio
async def test_unexpected_scan_failure_returns_to_idle(seeded, monkeypatch):
    async def broken_scan():
        raise RuntimeError("transport reset")

    monkeypatch.setattr(seeded, "scan", broken_scan)
    resolver = DuplicateResolver(seeded)
    with pytest.raises(RuntimeError):
        await resolver.scan()
    assert resolver.state == ResolverState.IDLE
    assert resolver.error == "Duplicate scan failed"


@pytest.mark.asyncio
async def test_unexpected_batch_failure_ends_in_delete_failed(seeded, monkeypatch):
    resolver = DuplicateResolver(seeded)
    await resolver.scan()

    async def broken_delete(doc_ids):
        raise RuntimeError("transport reset")

    monkeypatch.setattr(seeded, "delete_batch", broken_delete)
    with pytest.raises(RuntimeError):
        await resolver.confirm()
    assert resolver.state == ResolverState.DELETE_FAILED
    assert resolver.duplicates == []
    assert resolver.error
    assert len(seeded) == 4


@pytest.mark.asyncio
async def test_scan_tolerates_non_finite_counters(store):
    store.add("orig", user_doc(address="0x1", created_at=at(1), referrals=float("nan")))
    store.add("dup", user_doc(address="0x1", created_at=at(2), rewards=float("inf")))
    scan = await DuplicateResolver(store).scan()
    assert scan.state == ResolverState.FOUND
    assert scan.ids == ["dup"]

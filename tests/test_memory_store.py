"""Document subscriptions and Firestore-like query behaviour of the memory store."""

import asyncio

import pytest

from factories import user_doc
from minativault.core.exceptions import BatchDeleteError, NotFoundError, StoreUnavailableError
from minativault.storage.base import FieldFilter, StoreQuery

pytestmark = pytest.mark.asyncio


async def _next(subscription):
    return await asyncio.wait_for(subscription.__anext__(), timeout=1)


async def test_watch_pushes_initial_snapshot_updates_and_deletion(store):
    store.add("u1", user_doc(first_name="Ivy", status="pending"))
    async with store.watch("u1") as sub:
        first = await _next(sub)
        assert first.data["first_name"] == "Ivy"

        await store.update("u1", {"reward_info.reward_status": "paid"})
        changed = await _next(sub)
        assert changed.data["reward_info"]["reward_status"] == "paid"

        await store.delete_batch(["u1"])
        assert await _next(sub) is None


async def test_watch_missing_document_yields_none(store):
    async with store.watch("ghost") as sub:
        assert await _next(sub) is None
        store.add("ghost", user_doc(first_name="Boo"))
        assert (await _next(sub)).id == "ghost"


async def test_exit_releases_listener(store):
    store.add("u1", user_doc())
    async with store.watch("u1") as sub:
        assert store.listener_count("u1") == 1
        await _next(sub)
    assert sub.closed
    assert store.listener_count("u1") == 0


async def test_exit_on_error_releases_listener(store):
    store.add("u1", user_doc())
    with pytest.raises(RuntimeError):
        async with store.watch("u1"):
            raise RuntimeError("boom")
    assert store.listener_count("u1") == 0


async def test_close_ends_iteration(store):
    store.add("u1", user_doc())
    async with store.watch("u1") as sub:
        await _next(sub)
        sub.close()
        seen = [doc async for doc in sub]
        assert seen == []


async def test_listener_failure_surfaces_as_store_unavailable(store):
    store.add("u1", user_doc())
    async with store.watch("u1") as sub:
        await _next(sub)
        store.break_watchers("u1", ConnectionError("stream reset"))
        with pytest.raises(StoreUnavailableError):
            await _next(sub)


async def test_update_missing_document(store):
    with pytest.raises(NotFoundError):
        await store.update("nope", {"first_name": "x"})


async def test_delete_batch_is_all_or_nothing(store):
    store.add("a", user_doc())
    store.add("b", user_doc())
    store.fail_batches = True
    with pytest.raises(BatchDeleteError):
        await store.delete_batch(["a", "b"])
    assert len(store) == 2


async def test_range_filters_only_match_same_type(store):
    store.add("str", user_doc(address="0x1"))
    store.add("num", {"bep20_address": 5})
    store.add("none", {"bep20_address": None})
    store.add("missing", {})
    docs = await store.query(StoreQuery(filters=[FieldFilter("bep20_address", ">", "")]))
    assert [d.id for d in docs] == ["str"]


async def test_order_by_excludes_missing_field_and_ties_break_on_id(store):
    store.add("b", {"first_name": "Sam"})
    store.add("a", {"first_name": "Sam"})
    store.add("c", {})
    docs = await store.query(StoreQuery(order_by="first_name"))
    assert [d.id for d in docs] == ["a", "b"]


async def test_snapshots_are_copies(store):
    store.add("a", user_doc(first_name="Ed"))
    doc = await store.get("a")
    doc.data["first_name"] = "changed"
    assert (await store.get("a")).data["first_name"] == "Ed"

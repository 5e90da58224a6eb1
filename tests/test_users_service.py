"""fetch_page: browse mode pagination and search mode fan-out."""

import pytest

from factories import at, user_doc
from minativault.core.exceptions import BadRequestError, StoreUnavailableError
from minativault.core.pagination import decode_cursor
from minativault.models.user_list import SortBy, SortDirection, UserListSpec
from minativault.services.users import fetch_page, get_user_detail

pytestmark = pytest.mark.asyncio


def _seed(store, n: int, **kwargs) -> None:
    for i in range(n):
        store.add(f"u{i:03d}", user_doc(first_name=f"user{i:03d}", created_at=at(days=i), **kwargs))


async def test_browse_first_page_newest_first(store):
    _seed(store, 5)
    page = await fetch_page(store, UserListSpec(), page_size=3)
    assert [u.id for u in page.items] == ["u004", "u003", "u002"]
    assert page.has_more is True
    assert decode_cursor(page.next_cursor) == "u002"


async def test_browse_follows_cursor_to_the_end(store):
    _seed(store, 5)
    spec = UserListSpec(sort_direction=SortDirection.ASC)
    first = await fetch_page(store, spec, page_size=3)
    second = await fetch_page(store, spec, first.next_cursor, page_size=3)
    assert [u.id for u in first.items] == ["u000", "u001", "u002"]
    assert [u.id for u in second.items] == ["u003", "u004"]
    assert second.has_more is False
    assert second.next_cursor is None


async def test_has_more_uses_native_count_before_referral_post_filter(store):
    # 30 users, only 4 with a pending referral reward
    for i in range(30):
        pending = i % 8 == 0
        store.add(f"u{i:03d}", user_doc(created_at=at(days=i), referrals=2 if pending else 1, rewards=1))
    store.add("u999", user_doc(created_at=at(days=-1), referrals=5, rewards=0))

    page = await fetch_page(store, UserListSpec(show_only_pending_referral=True), page_size=30)
    assert len(page.items) == 4
    assert all(u.referral_stats.total_referrals != u.referral_stats.total_rewards for u in page.items)
    assert page.has_more is True

    rest = await fetch_page(store, UserListSpec(show_only_pending_referral=True), page.next_cursor, page_size=30)
    assert [u.id for u in rest.items] == ["u999"]
    assert rest.has_more is False


async def test_pending_status_requires_address(store):
    store.add("a", user_doc(address="0x1", status="pending", created_at=at(1)))
    store.add("b", user_doc(status="pending", created_at=at(2)))
    store.add("c", user_doc(address="0x3", status="paid", created_at=at(3)))
    store.add("d", user_doc(address="", status="pending", created_at=at(4)))
    page = await fetch_page(store, UserListSpec(show_only_pending_status=True))
    assert [u.id for u in page.items] == ["a"]


async def test_with_address_filter(store):
    store.add("a", user_doc(address="0x1", created_at=at(1)))
    store.add("b", user_doc(created_at=at(2)))
    store.add("c", user_doc(address="", created_at=at(3)))
    page = await fetch_page(store, UserListSpec(show_only_with_address=True))
    assert [u.id for u in page.items] == ["a"]


async def test_sort_by_mntc_and_name(store):
    store.add("a", user_doc(first_name="Chen", mntc=10, created_at=at(1)))
    store.add("b", user_doc(first_name="Abel", mntc=30, created_at=at(2)))
    store.add("c", user_doc(first_name="Bola", mntc=20, created_at=at(3)))
    by_mntc = await fetch_page(store, UserListSpec(sort_by=SortBy.MNTC_EARNED))
    assert [u.id for u in by_mntc.items] == ["b", "c", "a"]
    by_name = await fetch_page(store, UserListSpec(sort_by=SortBy.NAME, sort_direction=SortDirection.ASC))
    assert [u.id for u in by_name.items] == ["b", "c", "a"]


async def test_search_unions_fields_and_returns_everything(store):
    for i in range(40):
        store.add(f"n{i:02d}", user_doc(first_name=f"alpha{i}", created_at=at(i)))
    store.add("by-username", user_doc(first_name="Zed", username="alphaz"))
    store.add("by-address", user_doc(first_name="Yan", address="alpha-wallet"))
    store.add("no-match", user_doc(first_name="beta"))

    page = await fetch_page(store, UserListSpec(search_term="alpha"), page_size=10)
    ids = {u.id for u in page.items}
    assert len(page.items) == 42
    assert {"by-username", "by-address"} <= ids
    assert "no-match" not in ids
    assert page.has_more is False
    assert page.next_cursor is None


async def test_search_dedupes_and_applies_post_filters(store):
    store.add("both", user_doc(first_name="kira", username="kira", address="0x1", status="pending", referrals=1, rewards=0))
    store.add("no-addr", user_doc(first_name="kirk", status="pending", referrals=1, rewards=0))
    store.add("settled", user_doc(first_name="kim", address="0x2", status="pending", referrals=1, rewards=1))

    page = await fetch_page(store, UserListSpec(search_term="ki"))
    assert sorted(u.id for u in page.items) == ["both", "no-addr", "settled"]

    spec = UserListSpec(search_term=" ki ", show_only_pending_status=True, show_only_pending_referral=True)
    page = await fetch_page(store, spec)
    assert [u.id for u in page.items] == ["both"]


async def test_search_ignores_cursor(store):
    store.add("a", user_doc(first_name="sam"))
    page = await fetch_page(store, UserListSpec(search_term="sa"), cursor="not-even-base64!")
    assert [u.id for u in page.items] == ["a"]


async def test_bad_cursor_is_rejected(store):
    _seed(store, 2)
    with pytest.raises(BadRequestError):
        await fetch_page(store, UserListSpec(), cursor="%%%")


async def test_cursor_for_deleted_user_is_rejected(store):
    _seed(store, 4)
    page = await fetch_page(store, UserListSpec(), page_size=2)
    await store.delete_batch([decode_cursor(page.next_cursor)])
    with pytest.raises(BadRequestError):
        await fetch_page(store, UserListSpec(), page.next_cursor, page_size=2)


async def test_store_failure_propagates(store):
    _seed(store, 2)
    store.failing_reads = 1
    with pytest.raises(StoreUnavailableError):
        await fetch_page(store, UserListSpec())


async def test_get_user_detail(store):
    store.add("a", user_doc(first_name="Lea"))
    detail = await get_user_detail(store, "a")
    assert detail.name == "Lea"


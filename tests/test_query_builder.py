from minativault.models.user_list import SortBy, SortDirection, UserListSpec
from minativault.services import query_builder


def test_browse_query_shape():
    q = query_builder.build_browse_query(
        UserListSpec(show_only_pending_status=True, sort_by=SortBy.MNTC_EARNED, sort_direction=SortDirection.ASC),
        page_size=30,
        start_after="x",
    )
    assert q.filters == [query_builder.HAS_ADDRESS, query_builder.PENDING_STATUS]
    assert q.order_by == "reward_info.mntc_earned"
    assert q.descending is False
    assert q.start_after == "x"
    assert q.limit == 30


def test_referral_filter_never_reaches_the_store():
    q = query_builder.build_browse_query(UserListSpec(show_only_pending_referral=True), page_size=30)
    assert q.filters == []
    assert q.order_by == "created_at"
    assert q.descending is True


def test_with_address_and_pending_status_share_one_address_filter():
    spec = UserListSpec(show_only_with_address=True, show_only_pending_status=True)
    assert query_builder.native_filters(spec).count(query_builder.HAS_ADDRESS) == 1


def test_sort_field_mapping():
    assert query_builder.sort_field(SortBy.JOIN_DATE) == "created_at"
    assert query_builder.sort_field(SortBy.NAME) == "first_name"
    assert query_builder.sort_field(SortBy.MNTC_EARNED) == "reward_info.mntc_earned"


def test_search_queries_are_prefix_ranges_without_cursor_or_limit():
    queries = query_builder.build_search_queries("0xab")
    assert [q.filters[0].field for q in queries] == ["first_name", "username", "bep20_address"]
    for q in queries:
        low, high = q.filters
        assert (low.op, low.value) == (">=", "0xab")
        assert (high.op, high.value) == ("<=", "0xab")
        assert q.start_after is None
        assert q.limit is None

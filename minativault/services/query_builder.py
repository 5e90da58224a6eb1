"""Translate user-list options into store-native queries and post-filters."""

from minativault.models.user import RewardStatus, User
from minativault.models.user_list import SortBy, SortDirection, UserListSpec
from minativault.services.mapper import has_pending_referral
from minativault.storage.base import FieldFilter, StoreQuery

SORT_FIELDS = {
    SortBy.JOIN_DATE: "created_at",
    SortBy.NAME: "first_name",
    SortBy.MNTC_EARNED: "reward_info.mntc_earned",
}

# searched in this order; the first query to return a user wins the union
SEARCH_FIELDS = ("first_name", "username", "bep20_address")
# sorts after any printable character, closes a prefix range
PREFIX_END = "\uf8ff"

HAS_ADDRESS = FieldFilter("bep20_address", ">", "")
PENDING_STATUS = FieldFilter("reward_info.reward_status", "==", RewardStatus.PENDING.value)


def sort_field(sort_by: SortBy) -> str:
    return SORT_FIELDS.get(sort_by, SORT_FIELDS[SortBy.JOIN_DATE])


def native_filters(spec: UserListSpec) -> list[FieldFilter]:
    """Predicates the store can evaluate itself.

    A pending-status row must also carry a payout address.
    """
    filters: list[FieldFilter] = []
    if spec.show_only_with_address or spec.show_only_pending_status:
        filters.append(HAS_ADDRESS)
    if spec.show_only_pending_status:
        filters.append(PENDING_STATUS)
    return filters


def build_browse_query(spec: UserListSpec, page_size: int, start_after: str | None = None) -> StoreQuery:
    return StoreQuery(
        filters=native_filters(spec),
        order_by=sort_field(spec.sort_by),
        descending=spec.sort_direction == SortDirection.DESC,
        start_after=start_after,
        limit=page_size,
    )


def build_search_queries(term: str) -> list[StoreQuery]:
    """One prefix-range query per searchable field, over the whole collection."""
    return [
        StoreQuery(filters=[FieldFilter(f, ">=", term), FieldFilter(f, "<=", term + PREFIX_END)])
        for f in SEARCH_FIELDS
    ]


def referral_post_filter(users: list[User], spec: UserListSpec) -> list[User]:
    # total_referrals != total_rewards compares two fields; no store can index that
    if not spec.show_only_pending_referral:
        return users
    return [u for u in users if has_pending_referral(u.referral_stats)]


def search_post_filter(users: list[User], spec: UserListSpec) -> list[User]:
    if spec.show_only_with_address:
        users = [u for u in users if u.bep20_address]
    if spec.show_only_pending_status:
        users = [u for u in users if u.reward_info.reward_status == RewardStatus.PENDING and u.bep20_address]
    return referral_post_filter(users, spec)

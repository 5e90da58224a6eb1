"""User list pages and single-user reads."""

import asyncio

from minativault.core.config import get_settings
from minativault.core.exceptions import NotFoundError
from minativault.core.logging import get_logger
from minativault.core.pagination import CursorPage, clamp_page_size, decode_cursor, encode_cursor
from minativault.models.user import User, UserDetail
from minativault.models.user_list import UserListSpec
from minativault.services import query_builder
from minativault.services.mapper import map_to_user, map_to_user_detail
from minativault.storage.base import UserStore

log = get_logger(__name__)


async def fetch_page(
    store: UserStore,
    spec: UserListSpec,
    cursor: str | None = None,
    page_size: int | None = None,
) -> CursorPage[User]:
    """Next page of users for the given list options.

    Search mode (a search term is set) and browse mode are separate strategies;
    the cursor only applies to browse mode.
    """
    if spec.search_mode:
        return await _search(store, spec)
    size = clamp_page_size(page_size or get_settings().page_size)
    return await _browse(store, spec, decode_cursor(cursor), size)


async def _browse(store: UserStore, spec: UserListSpec, start_after: str | None, page_size: int) -> CursorPage[User]:
    docs = await store.query(query_builder.build_browse_query(spec, page_size, start_after))
    users = query_builder.referral_post_filter([map_to_user(d.id, d.data) for d in docs], spec)
    # a post-filtered page may be short while more data remains; judge by the native count
    has_more = len(docs) == page_size
    next_cursor = encode_cursor(docs[-1].id) if has_more and docs else None
    return CursorPage[User](items=users, next_cursor=next_cursor, has_more=has_more)


async def _search(store: UserStore, spec: UserListSpec) -> CursorPage[User]:
    # Whole-collection fan-out: fine for an admin console's user count, not beyond.
    term = spec.search_term.strip()
    results = await asyncio.gather(*(store.query(q) for q in query_builder.build_search_queries(term)))
    by_id: dict[str, User] = {}
    for docs in results:
        for d in docs:
            if d.id not in by_id:
                by_id[d.id] = map_to_user(d.id, d.data)
    users = query_builder.search_post_filter(list(by_id.values()), spec)
    log.debug("user_search", term=term, matched=len(by_id), returned=len(users))
    return CursorPage[User](items=users, next_cursor=None, has_more=False)


async def get_user_detail(store: UserStore, user_id: str) -> UserDetail:
    doc = await store.get(user_id)
    if doc is None:
        raise NotFoundError("User not found")
    return map_to_user_detail(doc.id, doc.data)

import orjson
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from minativault.core.config import get_settings
from minativault.core.exceptions import AppError
from minativault.core.logging import get_logger
from minativault.core.pagination import MAX_PAGE_SIZE, CursorPage
from minativault.deps import get_user_store, require_admin
from minativault.models.user import User, UserDetail
from minativault.models.user_list import SortBy, SortDirection, UserListSpec
from minativault.services import rewards as rewards_service
from minativault.services import users as users_service
from minativault.services.mapper import map_to_user_detail
from minativault.storage.base import UserStore

log = get_logger(__name__)

router = APIRouter()


@router.get("", response_model=CursorPage[User])
async def users_list(
    _: str = Depends(require_admin),
    store: UserStore = Depends(get_user_store),
    search: str = Query("", max_length=200),
    with_address: bool = False,
    pending_status: bool = False,
    pending_referral: bool = False,
    sort_by: SortBy = SortBy.JOIN_DATE,
    sort_direction: SortDirection = SortDirection.DESC,
    cursor: str | None = None,
    page_size: int | None = Query(None, ge=1, le=MAX_PAGE_SIZE),
):
    """One page of users. With ``search`` set the whole match set comes back at once."""
    spec = UserListSpec(
        show_only_with_address=with_address,
        show_only_pending_status=pending_status,
        show_only_pending_referral=pending_referral,
        search_term=search,
        sort_by=sort_by,
        sort_direction=sort_direction,
    )
    return await users_service.fetch_page(store, spec, cursor, page_size or get_settings().page_size)


@router.get("/{user_id}", response_model=UserDetail)
async def user_get(
    user_id: str,
    _: str = Depends(require_admin),
    store: UserStore = Depends(get_user_store),
):
    return await users_service.get_user_detail(store, user_id)


def _sse(event: str, data: dict) -> bytes:
    return b"event: " + event.encode() + b"\ndata: " + orjson.dumps(data) + b"\n\n"


@router.get("/{user_id}/stream")
async def user_stream(
    user_id: str,
    request: Request,
    _: str = Depends(require_admin),
    store: UserStore = Depends(get_user_store),
):
    """Live user profile as Server-Sent Events: ``user`` on every change, ``deleted`` if it goes away.

    The store subscription lives exactly as long as the response.
    """

    async def events():
        async with store.watch(user_id) as subscription:
            log.info("user_watch_opened", user_id=user_id)
            try:
                async for doc in subscription:
                    if await request.is_disconnected():
                        break
                    if doc is None:
                        yield _sse("deleted", {"id": user_id})
                        continue
                    yield _sse("user", map_to_user_detail(doc.id, doc.data).model_dump(mode="json"))
            except AppError as e:
                yield _sse("error", {"message": e.message, "code": e.code})
            finally:
                log.info("user_watch_closed", user_id=user_id)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/{user_id}/mark-paid")
async def user_mark_paid(
    user_id: str,
    _: str = Depends(require_admin),
    store: UserStore = Depends(get_user_store),
):
    """Flip a pending reward to paid. No transfer happens here."""
    return await rewards_service.mark_reward_paid(store, user_id)


@router.post("/{user_id}/referral-reward")
async def user_referral_reward(
    user_id: str,
    _: str = Depends(require_admin),
    store: UserStore = Depends(get_user_store),
):
    """Mark all pending referral rewards as sent."""
    return await rewards_service.send_referral_reward(store, user_id)

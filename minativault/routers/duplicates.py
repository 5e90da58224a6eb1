from fastapi import APIRouter, Depends
from pydantic import BaseModel

from minativault.deps import get_duplicate_resolver, require_admin
from minativault.models.duplicate import DuplicateScan
from minativault.services.duplicates import DuplicateResolver

router = APIRouter()


class ConfirmDeleteRequest(BaseModel):
    ids: list[str] | None = None


@router.get("", response_model=DuplicateScan)
async def duplicates_state(
    _: str = Depends(require_admin),
    resolver: DuplicateResolver = Depends(get_duplicate_resolver),
):
    """Current resolver state and the list awaiting confirmation, if any."""
    return resolver.snapshot()


@router.post("/scan", response_model=DuplicateScan)
async def duplicates_scan(
    _: str = Depends(require_admin),
    resolver: DuplicateResolver = Depends(get_duplicate_resolver),
):
    """Scan every user for shared wallet addresses. Nothing is deleted."""
    return await resolver.scan()


@router.post("/confirm", response_model=DuplicateScan)
async def duplicates_confirm(
    body: ConfirmDeleteRequest,
    _: str = Depends(require_admin),
    resolver: DuplicateResolver = Depends(get_duplicate_resolver),
):
    """Delete the scanned duplicates in one atomic batch; ``ids`` must match the scan."""
    return await resolver.confirm(body.ids)


@router.delete("", response_model=DuplicateScan)
async def duplicates_dismiss(
    _: str = Depends(require_admin),
    resolver: DuplicateResolver = Depends(get_duplicate_resolver),
):
    """Drop a pending scan without deleting anything."""
    resolver.reset()
    return resolver.snapshot()

from fastapi import APIRouter, Depends

from minativault.deps import get_user_store, require_admin
from minativault.models.stats import DashboardStats
from minativault.services import stats as stats_service
from minativault.storage.base import UserStore

router = APIRouter()


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    _: str = Depends(require_admin),
    store: UserStore = Depends(get_user_store),
):
    """Totals for the stat cards and the daily sign-up series (full collection scan)."""
    return await stats_service.get_dashboard_stats(store)

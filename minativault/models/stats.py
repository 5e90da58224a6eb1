from pydantic import BaseModel, Field


class GrowthPoint(BaseModel):
    date: str  # YYYY-MM-DD
    users: int


class DashboardStats(BaseModel):
    total_users: int = 0
    delivered_users: int = 0
    total_mntc_paid: int | float = 0
    pending_referral_rewards: int = 0
    user_growth: list[GrowthPoint] = Field(default_factory=list)

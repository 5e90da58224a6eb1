from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class RewardStatus(str, Enum):
    NOT_COMPLETED = "not_completed"
    PENDING = "pending"
    PAID = "paid"


class RewardType(str, Enum):
    NORMAL = "normal"
    REFERRED = "referred"


class RewardInfo(BaseModel):
    mntc_earned: int | float = 0
    reward_status: RewardStatus = RewardStatus.NOT_COMPLETED
    reward_type: RewardType = RewardType.NORMAL
    completion_date: str = "N/A"


class ReferralStats(BaseModel):
    total_referrals: int = 0
    total_rewards: int = 0


class User(BaseModel):
    """Display-ready projection of a stored user document."""

    id: str
    name: str = "N/A"
    username: str = "N/A"
    join_date: str = "N/A"
    last_seen: str = "N/A"
    created_at: datetime | None = None  # raw, for client-side sorting
    bep20_address: str | None = None
    reward_info: RewardInfo = Field(default_factory=RewardInfo)
    referral_stats: ReferralStats = Field(default_factory=ReferralStats)


class UserDetail(User):
    user_id: int | None = None
    current_step: int = 0
    social_usernames: dict[str, str] = Field(default_factory=dict)
    screenshots: list[str] = Field(default_factory=list)
    steps_completed: dict[str, bool] = Field(default_factory=dict)
    verification_status: dict[str, bool] = Field(default_factory=dict)
    is_referred: bool = False
    referral_code: str | None = None
    referred_by: str | None = None
    can_mark_paid: bool = False
    can_send_referral_reward: bool = False

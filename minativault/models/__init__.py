from minativault.models.duplicate import DuplicateScan, DuplicateUser, ResolverState
from minativault.models.stats import DashboardStats, GrowthPoint
from minativault.models.user import ReferralStats, RewardInfo, RewardStatus, RewardType, User, UserDetail
from minativault.models.user_list import SortBy, SortDirection, UserListSpec

__all__ = [
    "User",
    "UserDetail",
    "RewardInfo",
    "RewardStatus",
    "RewardType",
    "ReferralStats",
    "UserListSpec",
    "SortBy",
    "SortDirection",
    "DashboardStats",
    "GrowthPoint",
    "DuplicateScan",
    "DuplicateUser",
    "ResolverState",
]

"""Dashboard totals and the daily sign-up series.

Reads the whole users collection on every call; there is no incremental
aggregate, so cost grows with the user count.
"""

from collections import Counter
from datetime import timezone

from minativault.models.stats import DashboardStats, GrowthPoint
from minativault.models.user import RewardStatus
from minativault.services.mapper import created_at_of, has_pending_referral, map_referral_stats, map_reward_info, referral_mntc
from minativault.storage.base import StoredDocument, UserStore


def aggregate(documents: list[StoredDocument]) -> DashboardStats:
    delivered = 0
    mntc_paid: int | float = 0
    pending_referrals = 0
    per_day: Counter[str] = Counter()

    for doc in documents:
        data = doc.data if isinstance(doc.data, dict) else {}
        reward_info = map_reward_info(data.get("reward_info"))
        referral_stats = map_referral_stats(data.get("referral_stats"))

        if reward_info.reward_status == RewardStatus.PAID:
            delivered += 1
            mntc_paid += reward_info.mntc_earned + referral_mntc(referral_stats.total_rewards)
        if has_pending_referral(referral_stats):
            pending_referrals += 1

        created_at = created_at_of(data)
        if created_at is not None:
            if created_at.tzinfo is not None:
                created_at = created_at.astimezone(timezone.utc)
            per_day[created_at.strftime("%Y-%m-%d")] += 1

    return DashboardStats(
        total_users=len(documents),
        delivered_users=delivered,
        total_mntc_paid=mntc_paid,
        pending_referral_rewards=pending_referrals,
        user_growth=[GrowthPoint(date=day, users=n) for day, n in sorted(per_day.items())],
    )


async def get_dashboard_stats(store: UserStore) -> DashboardStats:
    return aggregate(await store.scan())

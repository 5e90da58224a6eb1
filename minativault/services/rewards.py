"""Reward status flips. No tokens move; the bot's payout process reads these fields."""

from datetime import datetime, timezone

from minativault.core.audit import log_event
from minativault.core.exceptions import ConflictError, NotFoundError
from minativault.models.user import RewardStatus
from minativault.services.mapper import can_send_referral_reward, map_referral_stats, map_reward_info, referral_mntc
from minativault.storage.base import UserStore


async def mark_reward_paid(store: UserStore, user_id: str) -> dict:
    """Set reward_info.reward_status to paid. Only a pending reward can be marked."""
    doc = await store.get(user_id)
    if doc is None:
        raise NotFoundError("User not found")
    reward_info = map_reward_info(doc.data.get("reward_info"))
    if reward_info.reward_status != RewardStatus.PENDING:
        raise ConflictError(
            "Only a pending reward can be marked as paid",
            details={"reward_status": reward_info.reward_status.value},
        )
    now = datetime.now(timezone.utc)
    await store.update(
        user_id,
        {
            "reward_info.reward_status": RewardStatus.PAID.value,
            "reward_info.status_updated_at": now,
        },
    )
    log_event("reward_marked_paid", "user", user_id, {"mntc_earned": reward_info.mntc_earned})
    return {"id": user_id, "reward_status": RewardStatus.PAID.value, "status_updated_at": now.isoformat()}


async def send_referral_reward(store: UserStore, user_id: str) -> dict:
    """Mark every pending referral as rewarded: total_rewards := total_referrals."""
    doc = await store.get(user_id)
    if doc is None:
        raise NotFoundError("User not found")
    stats = map_referral_stats(doc.data.get("referral_stats"))
    if not can_send_referral_reward(stats):
        raise ConflictError(
            "No pending referral reward for this user",
            details={"total_referrals": stats.total_referrals, "total_rewards": stats.total_rewards},
        )
    released = max(stats.total_referrals - stats.total_rewards, 0)
    await store.update(
        user_id,
        {
            "referral_stats.total_rewards": stats.total_referrals,
            "updated_at": datetime.now(timezone.utc),
        },
    )
    log_event("referral_reward_sent", "user", user_id, {"units": released, "mntc": referral_mntc(released)})
    return {
        "id": user_id,
        "total_referrals": stats.total_referrals,
        "total_rewards": stats.total_referrals,
        "released_referrals": released,
        "mntc_amount": referral_mntc(released),
    }

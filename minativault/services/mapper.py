"""Stored user document -> display view model.

Every read has a default: malformed or partial documents degrade to defaults,
never to an error.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Any, TypeVar

from minativault.models.user import ReferralStats, RewardInfo, RewardStatus, RewardType, User, UserDetail

NOT_AVAILABLE = "N/A"
DATE_FORMAT = "%m/%d/%Y, %I:%M %p"
# MNTC credited per rewarded referral
REFERRAL_REWARD_MNTC = 2

E = TypeVar("E", bound=Enum)


def format_timestamp(value: Any) -> str:
    if not isinstance(value, datetime):
        return NOT_AVAILABLE
    try:
        return value.strftime(DATE_FORMAT)
    except (ValueError, OverflowError):
        return NOT_AVAILABLE


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_number(value: Any) -> int | float:
    # Firestore doubles may be NaN or infinite
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return value


def _as_int(value: Any) -> int:
    return int(_as_number(value))


def _as_enum(enum_cls: type[E], value: Any, default: E) -> E:
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _as_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _as_address(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def normalize_address(value: Any) -> str | None:
    """Trimmed, lowercased wallet address; None when absent or blank."""
    if not isinstance(value, str):
        return None
    return value.strip().lower() or None


def created_at_of(data: Any) -> datetime | None:
    value = _as_dict(data).get("created_at")
    return value if isinstance(value, datetime) else None


def map_reward_info(raw: Any) -> RewardInfo:
    info = _as_dict(raw)
    return RewardInfo(
        mntc_earned=_as_number(info.get("mntc_earned")),
        reward_status=_as_enum(RewardStatus, info.get("reward_status"), RewardStatus.NOT_COMPLETED),
        reward_type=_as_enum(RewardType, info.get("reward_type"), RewardType.NORMAL),
        completion_date=format_timestamp(info.get("completion_date")),
    )


def map_referral_stats(raw: Any) -> ReferralStats:
    stats = _as_dict(raw)
    return ReferralStats(
        total_referrals=_as_int(stats.get("total_referrals")),
        total_rewards=_as_int(stats.get("total_rewards")),
    )


def has_pending_referral(stats: ReferralStats) -> bool:
    """Pending iff counts differ; compares referral units, not MNTC."""
    return stats.total_referrals != stats.total_rewards


def can_send_referral_reward(stats: ReferralStats) -> bool:
    return stats.total_referrals > 0 and has_pending_referral(stats)


def referral_mntc(units: int) -> int:
    return units * REFERRAL_REWARD_MNTC


def _user_fields(doc_id: str, data: dict[str, Any]) -> dict[str, Any]:
    user_id = data.get("user_id")
    username = _as_text(data.get("username")) or (str(user_id) if user_id is not None and user_id != "" else None)
    return {
        "id": doc_id,
        "name": _as_text(data.get("first_name")) or NOT_AVAILABLE,
        "username": username or NOT_AVAILABLE,
        "join_date": format_timestamp(data.get("created_at")),
        "last_seen": format_timestamp(data.get("updated_at")),
        "created_at": created_at_of(data),
        "bep20_address": _as_address(data.get("bep20_address")),
        "reward_info": map_reward_info(data.get("reward_info")),
        "referral_stats": map_referral_stats(data.get("referral_stats")),
    }


def map_to_user(doc_id: str, data: Any) -> User:
    return User(**_user_fields(doc_id, _as_dict(data)))


def map_to_user_detail(doc_id: str, data: Any) -> UserDetail:
    data = _as_dict(data)
    fields = _user_fields(doc_id, data)
    user_id = data.get("user_id")
    screenshots = data.get("screenshots")
    referral_stats = fields["referral_stats"]
    return UserDetail(
        **fields,
        user_id=user_id if isinstance(user_id, int) and not isinstance(user_id, bool) else None,
        current_step=_as_int(data.get("current_step")),
        social_usernames={str(k): str(v) for k, v in _as_dict(data.get("social_usernames")).items() if v is not None},
        screenshots=[s for s in screenshots if isinstance(s, str)] if isinstance(screenshots, list) else [],
        steps_completed={str(k): bool(v) for k, v in sorted(_as_dict(data.get("steps_completed")).items())},
        verification_status={str(k): bool(v) for k, v in _as_dict(data.get("verification_status")).items()},
        is_referred=bool(data.get("is_referred", False)),
        referral_code=_as_text(data.get("referral_code")),
        referred_by=_as_text(data.get("referred_by")),
        can_mark_paid=fields["reward_info"].reward_status == RewardStatus.PENDING,
        can_send_referral_reward=can_send_referral_reward(referral_stats),
    )

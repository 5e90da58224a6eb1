"""Audit trail for admin actions that mutate user records."""

from typing import Any

from minativault.core.logging import get_logger

log = get_logger("audit")


def log_event(
    event_type: str,
    entity_type: str,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Emit one structured audit line; the users collection stays the only persisted state."""
    log.info(
        event_type,
        audit=True,
        entity_type=entity_type,
        entity_id=entity_id,
        **(metadata or {}),
    )

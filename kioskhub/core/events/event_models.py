"""Change event envelopes handed to the notifier."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

from kioskhub.core.utils.clock import utcnow

COMPLETION_RECORDED = "completion_recorded"
COMPLETION_UNDONE = "completion_undone"
SESSION_TERMINATED = "session_terminated"
SESSION_UPDATED = "session_updated"

EVENT_TYPES = (
    COMPLETION_RECORDED,
    COMPLETION_UNDONE,
    SESSION_TERMINATED,
    SESSION_UPDATED,
)


@dataclass(frozen=True)
class ChangeEvent:
    """Invalidation signal: something about ``entity_id`` changed."""

    event_type: str
    entity_id: str
    person_id: Optional[str] = None
    occurred_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.event_type not in EVENT_TYPES:
            raise ValueError(f"unknown event type: {self.event_type}")

    def as_dict(self) -> dict:
        payload = asdict(self)
        payload["occurred_at"] = self.occurred_at.isoformat()
        return payload


__all__ = [
    "COMPLETION_RECORDED",
    "COMPLETION_UNDONE",
    "SESSION_TERMINATED",
    "SESSION_UPDATED",
    "EVENT_TYPES",
    "ChangeEvent",
]

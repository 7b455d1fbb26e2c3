"""Change notification boundary.

The realtime transport lives outside this service. After a state change has
been committed the services hand a :class:`ChangeEvent` to a notifier; the
notifier owns delivery, ordering and retries. A failing notifier must never
undo or fail the operation that triggered it, so services always go through
:func:`notify_safely`.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from kioskhub.core.events.event_bus import EventBus, event_bus
from kioskhub.core.events.event_models import ChangeEvent

logger = logging.getLogger(__name__)


class ChangeNotifier(Protocol):
    def notify(self, event: ChangeEvent) -> None:
        ...


class EventBusNotifier:
    """Publishes change events to the in-process bus (swap for a broker later)."""

    def __init__(self, bus: Optional[EventBus] = None) -> None:
        self.bus = bus or event_bus

    def notify(self, event: ChangeEvent) -> None:
        self.bus.publish(event)


default_notifier = EventBusNotifier()


def notify_safely(notifier: Optional[ChangeNotifier], event: ChangeEvent) -> bool:
    """Best-effort notify; returns False when delivery raised."""
    target = notifier or default_notifier
    try:
        target.notify(event)
    except Exception:
        logger.exception(
            "Change notification failed (event_type=%s, entity_id=%s)",
            event.event_type,
            event.entity_id,
        )
        return False
    return True


__all__ = ["ChangeNotifier", "EventBusNotifier", "default_notifier", "notify_safely"]

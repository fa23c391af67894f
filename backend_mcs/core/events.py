"""
In-process event bus for advisory pipeline notifications.

Stages publish after they finish (portfolio fetched, behavior analyzed, risk
analysis completed, score calculated). Subscribers are plain callables run
synchronously in publish order; a subscriber that raises is logged and
skipped, and never affects the stage that published.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from backend_mcs.mcs_logging import get_logger

logger = get_logger(__name__)


class EventType(str, Enum):
    PORTFOLIO_FETCHED = "portfolio_fetched"
    BEHAVIOR_ANALYZED = "behavior_analyzed"
    RISK_ANALYSIS_COMPLETED = "risk_analysis_completed"
    SCORE_CALCULATED = "score_calculated"


@dataclass
class Event:
    event_type: EventType
    user_id: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "user_id": self.user_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


Handler = Callable[[Event], Any]


class EventBus:
    """Subscribe/publish registry keyed by EventType."""

    def __init__(self) -> None:
        self._subscribers: dict[EventType, list[Handler]] = defaultdict(list)
        self.published_count = 0
        self.failed_count = 0

    def subscribe(self, event_type: EventType, handler: Handler) -> Callable[[], None]:
        """Register handler; returns a callable that unsubscribes it."""
        self._subscribers[event_type].append(handler)

        def _unsubscribe() -> None:
            self.unsubscribe(event_type, handler)

        return _unsubscribe

    def unsubscribe(self, event_type: EventType, handler: Handler) -> None:
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event_type: EventType, user_id: str, **data: Any) -> Event:
        event = Event(event_type=event_type, user_id=user_id, data=data)
        self.published_count += 1
        for handler in list(self._subscribers.get(event_type, [])):
            try:
                handler(event)
            except Exception:
                self.failed_count += 1
                logger.warning(
                    "event_subscriber_failed",
                    event_name=event_type.value,
                    user_id=user_id,
                    handler=getattr(handler, "__name__", repr(handler)),
                    exc_info=True,
                )
        return event

"""Fire-and-forget analytics sink for session lifecycle events."""

import logging
import time
from collections import Counter, deque
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Deque, Dict, Optional

logger = logging.getLogger(__name__)

MAX_EVENTS_IN_MEMORY = 5000

GAME_START = "game_start"
GAME_END = "game_end"
MOVE_MADE = "move_made"
PLAYER_DISCONNECT = "player_disconnect"
PLAYER_RECONNECT = "player_reconnect"


@dataclass
class LifecycleEvent:
    """
    One published lifecycle event.

    :param type: Event type, e.g. ``game_start``
    :type type: str
    :param session_id: Session the event belongs to
    :type session_id: str
    :param participant_id: Participant involved, if any
    :type participant_id: Optional[str]
    :param data: Free-form event payload
    :type data: Dict[str, Any]
    """

    type: str
    session_id: str
    participant_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AnalyticsService:
    """
    Keeps a capped in-memory buffer of events and optionally forwards them.

    ``publish`` never raises: a failing forwarder is logged and ignored.

    :param forward: Optional coroutine function receiving each event dict
    :type forward: Optional[Callable[[Dict[str, Any]], Awaitable[None]]]
    :param max_events: Buffer capacity; the oldest events are dropped first
    :type max_events: int
    """

    def __init__(
        self,
        forward: Optional[Callable[[Dict[str, Any]], Awaitable[None]]] = None,
        max_events: int = MAX_EVENTS_IN_MEMORY,
    ) -> None:
        self.forward = forward
        self.events: Deque[LifecycleEvent] = deque(maxlen=max_events)

    async def publish(self, event: LifecycleEvent) -> bool:
        """
        Record and forward an event.

        :param event: Event to publish
        :type event: LifecycleEvent
        :return: True if the event was forwarded (or no forwarder is set)
        :rtype: bool
        """
        self.events.append(event)
        logger.debug(f"[Analytics] {event.type} for session {event.session_id}")

        if self.forward is None:
            return True
        try:
            await self.forward(event.to_dict())
            return True
        except Exception as e:
            logger.warning(f"[Analytics] Failed to forward {event.type} event: {e}")
            return False

    def get_game_analytics(self) -> Dict[str, Any]:
        """
        Summarize buffered events.

        :return: Totals, average duration in minutes, today's count and the busiest hour
        :rtype: Dict[str, Any]
        """
        starts: Dict[str, float] = {}
        ends: Dict[str, float] = {}
        hours: Counter = Counter()
        today = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0).timestamp()
        events_today = 0

        for event in self.events:
            if event.type == GAME_START:
                starts[event.session_id] = event.timestamp
            elif event.type == GAME_END:
                ends[event.session_id] = event.timestamp
            hours[datetime.fromtimestamp(event.timestamp).hour] += 1
            if event.timestamp >= today:
                events_today += 1

        durations = [ends[sid] - starts[sid] for sid in ends if sid in starts]
        average_minutes = (sum(durations) / len(durations) / 60) if durations else 0.0

        return {
            "total_games": len(starts),
            "completed_games": len(ends),
            "average_game_duration": average_minutes,
            "events_today": events_today,
            "most_active_hour": hours.most_common(1)[0][0] if hours else 0,
        }

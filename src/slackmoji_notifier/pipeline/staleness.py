"""Freshness and retry heuristics for emoji events.

Slack re-sends identical emoji_changed events minutes apart and retries
deliveries it considers unacknowledged. Only the first, fresh delivery is
actionable. This is a heuristic, not an authoritative dedup.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from ..schemas.events import EmojiLifecycleEvent
from ..log import get_logger

logger = get_logger("staleness")

DEFAULT_THRESHOLD = timedelta(minutes=1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StalenessFilter:
    def __init__(self, threshold: timedelta = DEFAULT_THRESHOLD, clock: Callable[[], datetime] = utcnow):
        self.threshold = threshold
        self.clock = clock

    def rejection_reason(self, event: EmojiLifecycleEvent, now: Optional[datetime] = None) -> Optional[str]:
        now = now or self.clock()
        age = now - event.occurred_at
        if age > self.threshold:
            return f"stale by {age.total_seconds():.0f}s"
        if event.delivery_attempt > 0:
            return f"retry attempt {event.delivery_attempt}"
        return None

    def accept(self, event: EmojiLifecycleEvent, now: Optional[datetime] = None) -> bool:
        reason = self.rejection_reason(event, now)
        if reason:
            logger.debug(f"Ignoring {event.kind.value} event for :{event.name}: ({event.event_id}): {reason}")
            return False
        return True

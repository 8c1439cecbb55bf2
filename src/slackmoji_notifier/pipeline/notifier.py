"""Notification engine: decides once per emoji whether to announce it.

Each emoji name moves through UNKNOWN -> NOTIFYING -> NOTIFIED. The claim
(UNKNOWN -> NOTIFYING) happens under a lock, so concurrent deliveries of the
same addition produce a single generation + post. Any failure while
NOTIFYING rolls the name back to UNKNOWN so a later delivery can retry.

The lock only guards state transitions; generation and posting run outside it.
"""

import threading
import time
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Optional, Protocol
from ..llm.client import GenerationError, TextGenerator
from ..llm.prompts import emoji_prompt
from ..rendering.slack_format import render_notification
from ..schemas.events import EmojiKind, EmojiLifecycleEvent, NotificationMessage
from ..slack.client import PostError
from ..log import get_logger
from .staleness import DEFAULT_THRESHOLD, utcnow

logger = get_logger("notifier")


class EmojiState(str, Enum):
    UNKNOWN = "unknown"
    NOTIFYING = "notifying"
    NOTIFIED = "notified"


class Outcome(str, Enum):
    NOTIFIED = "notified"
    OBSERVED = "observed"
    SUPPRESSED = "suppressed"
    DUPLICATE = "duplicate"
    FAILED = "failed"
    RESET = "reset"
    IGNORED = "ignored"
    STALE = "stale"


class Poster(Protocol):
    """Anything with a post_message(), the Slack transport in production."""

    def post_message(self, message: NotificationMessage):
        ...


class NotificationEngine:
    def __init__(
        self,
        generator: TextGenerator,
        poster: Poster,
        *,
        observe_only: bool = False,
        ledger_ttl: timedelta = DEFAULT_THRESHOLD,
        clock: Callable[[], datetime] = utcnow,
    ):
        if generator is None or poster is None:
            raise ValueError("NotificationEngine needs both a generator and a poster")
        self.generator = generator
        self.poster = poster
        self.observe_only = observe_only
        self.ledger_ttl = ledger_ttl
        self.clock = clock

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._in_flight = 0
        self._closed = False
        self._known: Dict[str, EmojiState] = {}
        self._ledger: Dict[str, datetime] = {}

    # -- state table ------------------------------------------------------

    def state_of(self, name: str) -> EmojiState:
        with self._lock:
            return self._known.get(name, EmojiState.UNKNOWN)

    def is_known(self, name: str) -> bool:
        return self.state_of(name) is not EmojiState.UNKNOWN

    def _claim(self, name: str) -> Optional[Outcome]:
        """Move name to NOTIFYING. Returns None on success, else the outcome to report."""
        with self._lock:
            if self._closed:
                return Outcome.IGNORED
            if self._known.get(name, EmojiState.UNKNOWN) is not EmojiState.UNKNOWN:
                return Outcome.SUPPRESSED
            self._known[name] = EmojiState.NOTIFYING
            if not self.observe_only:
                self._in_flight += 1
            return None

    def _finish(self, name: str, state: EmojiState):
        with self._lock:
            self._known[name] = state
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.notify_all()

    # -- delivery ledger --------------------------------------------------

    def _record_delivery(self, key: str) -> bool:
        """Returns False if this delivery was already seen."""
        with self._lock:
            if key in self._ledger:
                return False
            self._ledger[key] = self.clock()
            return True

    def _forget_delivery(self, key: str):
        with self._lock:
            self._ledger.pop(key, None)

    def prune_ledger(self, now: Optional[datetime] = None) -> int:
        now = now or self.clock()
        cutoff = now - self.ledger_ttl
        with self._lock:
            expired = [key for key, seen_at in self._ledger.items() if seen_at < cutoff]
            for key in expired:
                del self._ledger[key]
        logger.debug(f"Pruned {len(expired)} processed event(s)")
        return len(expired)

    def ledger_size(self) -> int:
        with self._lock:
            return len(self._ledger)

    # -- event handling ---------------------------------------------------

    def handle(self, event: EmojiLifecycleEvent) -> Outcome:
        key = event.delivery_key
        if key is not None and not self._record_delivery(key):
            logger.debug(f"Ignoring duplicate delivery {key}")
            return Outcome.DUPLICATE

        if event.kind is EmojiKind.REMOVED:
            return self._handle_removed(event.name)

        outcome = self._handle_added(event.name, event.image_ref)
        if key is not None and outcome in (Outcome.FAILED, Outcome.IGNORED):
            # not delivered, so a redelivery of the same event may retry it
            self._forget_delivery(key)
        return outcome

    def _handle_removed(self, name: str) -> Outcome:
        with self._lock:
            state = self._known.get(name, EmojiState.UNKNOWN)
            if state is EmojiState.NOTIFIED:
                self._known[name] = EmojiState.UNKNOWN
        if state is EmojiState.NOTIFIED:
            logger.info(f"Removing :{name}: from known emojis")
            return Outcome.RESET
        if state is EmojiState.NOTIFYING:
            logger.debug(f"Ignoring removal of :{name}: while its announcement is in flight")
        else:
            logger.debug(f"Ignoring removal of unaccounted emoji :{name}:")
        return Outcome.IGNORED

    def _handle_added(self, name: str, image_ref: str) -> Outcome:
        refused = self._claim(name)
        if refused is Outcome.IGNORED:
            logger.debug(f"Engine closed, not announcing :{name}:")
            return refused
        if refused is not None:
            logger.debug(f"Ignoring known emoji :{name}:")
            return refused

        logger.info(f"Handling new emoji :{name}:")

        if self.observe_only:
            with self._lock:
                self._known[name] = EmojiState.NOTIFIED
            logger.info(f"Log-only mode: would have generated a sentence and announced :{name}:")
            return Outcome.OBSERVED

        state = EmojiState.UNKNOWN
        try:
            sentence = self.generator.generate(emoji_prompt(name))
            logger.debug(f"Generated sentence for :{name}:: {sentence}")

            message = render_notification(name, sentence, image_ref)
            self.poster.post_message(message)
            state = EmojiState.NOTIFIED
            logger.info(f"Announced :{name}:")
            return Outcome.NOTIFIED
        except GenerationError as e:
            logger.error(f"Failed to generate sentence for :{name}:: {e}")
            return Outcome.FAILED
        except PostError as e:
            logger.error(f"Failed to announce :{name}:: {e}")
            return Outcome.FAILED
        except Exception:
            logger.exception(f"Unexpected error announcing :{name}:")
            return Outcome.FAILED
        finally:
            self._finish(name, state)

    def close(self):
        """Refuse new claims. Announcements already in flight still finish."""
        with self._lock:
            self._closed = True

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def drain(self, timeout: float) -> bool:
        """Wait up to timeout seconds for in-flight announcements. True if none remain."""
        deadline = time.monotonic() + timeout
        with self._idle:
            while self._in_flight > 0:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._idle.wait(remaining)
            return True

    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

import threading
from typing import Any, List
from ..slack.parse import classify_envelope_events
from ..log import get_logger
from .notifier import NotificationEngine, Outcome
from .staleness import StalenessFilter

logger = get_logger("pipeline")


class EmojiPipeline:
    """Classifier -> staleness filter -> notification engine, for one envelope at a time."""

    def __init__(self, engine: NotificationEngine, staleness: StalenessFilter):
        self.engine = engine
        self.staleness = staleness
        self._closed = threading.Event()

    def handle_envelope(self, envelope: Any) -> List[Outcome]:
        if self._closed.is_set():
            logger.debug("Pipeline closed, dropping envelope")
            return []

        outcomes = []
        for event in classify_envelope_events(envelope):
            if not self.staleness.accept(event):
                outcomes.append(Outcome.STALE)
                continue
            outcomes.append(self.engine.handle(event))
        return outcomes

    def close(self):
        self._closed.set()
        # envelopes already past the check above are refused at claim time
        self.engine.close()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

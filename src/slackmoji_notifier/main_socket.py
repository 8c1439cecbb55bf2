"""
Socket Mode listener service for Slackmoji Notifier.
Connects to Slack via WebSocket - no public URL needed.

Owns the notification engine, the aging janitor and the transport, and tears
them down in order when a shutdown is requested.
"""
import signal
import threading
from typing import Optional
from pydantic import ValidationError
from slack_bolt.error import BoltError
from slack_sdk.errors import SlackApiError
from .config import ConfigError, Settings, get_settings, validate_settings
from .llm.client import TextGenerator
from .llm.providers import create_generator
from .log import get_logger, setup_logging
from .pipeline.janitor import AgingJanitor
from .pipeline.notifier import NotificationEngine
from .pipeline.run import EmojiPipeline
from .pipeline.staleness import StalenessFilter
from .slack.client import SlackTransport

logger = get_logger("socket_listener")


class NotifierService:
    def __init__(self, settings: Settings, generator: TextGenerator, transport: SlackTransport):
        self.settings = settings
        self.transport = transport
        threshold = settings.freshness_threshold

        self.engine = NotificationEngine(
            generator,
            transport,
            observe_only=settings.SLACK_LOG_ONLY,
            ledger_ttl=threshold,
        )
        self.pipeline = EmojiPipeline(self.engine, StalenessFilter(threshold))
        self.janitor = AgingJanitor(self.engine.prune_ledger, interval=threshold)

        self._shutdown_requested = threading.Event()
        self._shutdown_lock = threading.Lock()
        self._shut_down = False
        self.listener_failed = False

    def install_signal_handlers(self):
        def handle_signal(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, shutting down gracefully...")
            self.request_shutdown()

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

    def request_shutdown(self):
        self._shutdown_requested.set()

    def _listen(self):
        try:
            self.transport.listen(self.pipeline.handle_envelope)
            if not self._shutdown_requested.is_set():
                logger.error("Event listener stopped unexpectedly")
                self.listener_failed = True
        except Exception:
            logger.exception("Event listener stopped")
            self.listener_failed = True
        finally:
            self.request_shutdown()

    def run(self) -> int:
        """
        Start the janitor and the listener, block until shutdown is requested
        (signal or listener failure), then tear everything down.
        Returns the process exit status.
        """
        if self.settings.SLACK_LOG_ONLY:
            logger.info("SLACK_LOG_ONLY set: emojis will be logged, not announced")
        self.janitor.start()

        listener = threading.Thread(target=self._listen, name="slack-listener", daemon=True)
        listener.start()
        logger.info("Listening for emoji events...")

        self._shutdown_requested.wait()
        self.shutdown()
        listener.join(self.settings.SHUTDOWN_GRACE_SECONDS)
        return 1 if self.listener_failed else 0

    def shutdown(self, grace: Optional[float] = None):
        with self._shutdown_lock:
            if self._shut_down:
                return
            self._shut_down = True

        grace = self.settings.SHUTDOWN_GRACE_SECONDS if grace is None else grace
        logger.info("Shutting down")

        # 1. stop accepting envelopes
        self.pipeline.close()

        # 2. let in-flight announcements finish
        if not self.engine.drain(grace):
            logger.warning(f"Shutdown timed out with {self.engine.in_flight()} announcement(s) in flight")

        # 3. close the socket
        self.transport.stop()
        logger.debug("Slack transport stopped")

        # 4. stop the janitor
        self.janitor.stop(timeout=grace)
        logger.info("Shutdown completed")


def main(verbose: bool = False) -> int:
    """Entry point for `slackmoji-notifier listen`. Returns the exit status."""
    setup_logging(level="INFO", verbose=verbose)

    try:
        settings = validate_settings(get_settings())
    except ValidationError as e:
        for error in e.errors(include_url=False):
            logger.error(f"Invalid setting {'.'.join(str(p) for p in error['loc'])}: {error['msg']}")
        return 1
    except ConfigError as e:
        for problem in e.problems:
            logger.error(f"Invalid configuration: {problem}")
        return 1
    if not verbose:
        setup_logging(level=settings.LOG_LEVEL)
    logger.debug("Configuration validated successfully")

    try:
        generator = create_generator(settings)
    except Exception:
        logger.exception(f"Failed to create {settings.LLM_PROVIDER} client")
        return 1

    try:
        transport = SlackTransport.from_settings(settings)
    except (BoltError, SlackApiError) as e:
        logger.error(f"Failed to create Slack client: {e}")
        return 1

    logger.info(f"Announcing new emojis in channel {settings.SLACK_CHANNEL}")
    service = NotifierService(settings, generator, transport)
    service.install_signal_handlers()
    return service.run()


if __name__ == "__main__":
    raise SystemExit(main())

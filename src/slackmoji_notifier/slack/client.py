"""Slack transport: Socket Mode intake and message posting.

Wraps a Bolt app so the rest of the package only sees three operations:
listen() for raw envelopes, post_message() and stop().
"""

import threading
from typing import Any, Callable, Dict, Optional
from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler
from slack_sdk.errors import SlackApiError
from slack_sdk.socket_mode.request import SocketModeRequest
from slack_sdk.socket_mode.response import SocketModeResponse
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception
from ..config import Settings
from ..schemas.events import NotificationMessage
from ..log import get_logger
from .post_blocks import build_post_payload

logger = get_logger("slack_client")

EnvelopeSink = Callable[[SocketModeRequest], Any]


class PostError(Exception):
    """Raised when a notification could not be posted to Slack."""


def _is_rate_limited(exc: BaseException) -> bool:
    if not isinstance(exc, SlackApiError):
        return False
    if exc.response.get("error") == "ratelimited":
        logger.warning("Slack rate limited, retrying...")
        return True
    return False


class EnvelopeSocketModeHandler(SocketModeHandler):
    """
    Socket Mode handler that hands every raw request to a sink instead of
    Bolt's listener dispatch. Bolt's dispatch rebuilds the request from the
    payload alone and loses the envelope's retry_attempt, which the staleness
    filter relies on.
    """

    def __init__(self, app: App, app_token: str, on_envelope: EnvelopeSink):
        super().__init__(app, app_token)
        self.on_envelope = on_envelope

    def handle(self, client, req: SocketModeRequest) -> None:
        # Ack first: Slack redelivers anything not acknowledged within 3 seconds
        client.send_socket_mode_response(SocketModeResponse(envelope_id=req.envelope_id))
        self.on_envelope(req)


class SlackTransport:
    def __init__(self, app: App, app_token: str, channel: str):
        self.app = app
        self.client = app.client
        self.app_token = app_token
        self.channel = channel
        self._handler: Optional[EnvelopeSocketModeHandler] = None
        self._stopped = threading.Event()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SlackTransport":
        """
        Build the Bolt app. Bolt verifies the bot token on construction, so a
        bad token fails here rather than on the first post.
        """
        app = App(token=settings.SLACK_BOT_TOKEN)
        return cls(app, settings.SLACK_APP_TOKEN, settings.SLACK_CHANNEL)

    def listen(self, on_envelope: EnvelopeSink):
        """
        Connect over Socket Mode and deliver envelopes to on_envelope until
        stop() is called. Connection errors propagate to the caller.
        """
        if self._stopped.is_set():
            raise RuntimeError("transport already stopped")
        self._handler = EnvelopeSocketModeHandler(self.app, self.app_token, on_envelope)
        self._handler.connect()
        logger.info(f"Socket Mode connected, announcing to {self.channel}")
        self._stopped.wait()

    def stop(self):
        if self._stopped.is_set():
            return
        self._stopped.set()
        if self._handler is not None:
            self._handler.close()
            logger.debug("Socket Mode connection closed")

    def post_message(self, message: NotificationMessage):
        payload = build_post_payload(self.channel, message)
        try:
            self.post_payload(payload)
        except SlackApiError as e:
            logger.error(f"Slack API error: {e.response.get('error')}")
            raise PostError(f"failed to post to {self.channel}: {e.response.get('error')}") from e

    @retry(
        retry=retry_if_exception(_is_rate_limited),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True
    )
    def post_payload(self, payload: Dict[str, Any]):
        """
        Post a prepared payload (dict) directly to Slack using chat_postMessage.
        """
        self.client.chat_postMessage(**payload)

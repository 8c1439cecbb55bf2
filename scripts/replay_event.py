#!/usr/bin/env python3
"""
Feed a synthetic emoji_changed envelope through the notification pipeline.

Usage:
  python scripts/replay_event.py party_parrot https://emoji.slack-edge.com/.../party_parrot.gif
  python scripts/replay_event.py party_parrot URL --post      # really generate and post
  python scripts/replay_event.py party_parrot URL --retry 1   # simulate a Slack retry

Without --post the engine runs in observe-only mode, so nothing leaves the machine.
Requires the same environment as the listener (see .env.example).
"""
from __future__ import annotations
import argparse
import time

from slack_sdk.socket_mode.request import SocketModeRequest

from slackmoji_notifier.config import get_settings, validate_settings
from slackmoji_notifier.llm.providers import create_generator
from slackmoji_notifier.log import setup_logging
from slackmoji_notifier.pipeline.notifier import NotificationEngine
from slackmoji_notifier.pipeline.run import EmojiPipeline
from slackmoji_notifier.pipeline.staleness import StalenessFilter
from slackmoji_notifier.slack.client import SlackTransport


def build_envelope(name: str, image_url: str, age: int, retry: int, subtype: str) -> SocketModeRequest:
    event_time = int(time.time()) - age
    event = {"type": "emoji_changed", "subtype": subtype, "event_ts": f"{event_time}.000100"}
    if subtype == "add":
        event.update({"name": name, "value": image_url})
    else:
        event["names"] = [name]
    payload = {
        "type": "event_callback",
        "event_id": f"EvReplay{event_time}",
        "event_time": event_time,
        "event": event,
    }
    return SocketModeRequest(type="events_api", envelope_id=f"replay-{event_time}", payload=payload, retry_attempt=retry)


def main():
    p = argparse.ArgumentParser(description="Replay an emoji_changed event through the pipeline")
    p.add_argument("name", help="Emoji name, e.g. party_parrot")
    p.add_argument("image_url", nargs="?", default="https://emoji.slack-edge.com/T0/example/abc.png")
    p.add_argument("--remove", action="store_true", help="Send a removal instead of an addition")
    p.add_argument("--age", type=int, default=0, help="Seconds to backdate the event")
    p.add_argument("--retry", type=int, default=0, help="Envelope retry_attempt")
    p.add_argument("--post", action="store_true", help="Actually generate and post to SLACK_CHANNEL")
    args = p.parse_args()

    setup_logging(verbose=True)
    settings = validate_settings(get_settings())

    engine = NotificationEngine(
        create_generator(settings),
        SlackTransport.from_settings(settings),
        observe_only=not args.post,
        ledger_ttl=settings.freshness_threshold,
    )
    pipeline = EmojiPipeline(engine, StalenessFilter(settings.freshness_threshold))

    envelope = build_envelope(args.name, args.image_url, args.age, args.retry, "remove" if args.remove else "add")
    outcomes = pipeline.handle_envelope(envelope)
    print(f"Outcome: {[o.value for o in outcomes] or 'dropped by classifier'}")


if __name__ == "__main__":
    main()

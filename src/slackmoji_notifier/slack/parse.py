"""Classification of raw Socket Mode envelopes.

Turns Slack's open-ended envelope shapes into EmojiLifecycleEvent values.
Anything that is not an emoji addition/removal is dropped here, so the rest of
the pipeline never sees a raw envelope.
"""

from typing import Any, List, Optional
from pydantic import ValidationError
from ..schemas.events import DeliveryMetadata, EmojiKind, EmojiLifecycleEvent
from ..log import get_logger

logger = get_logger("classifier")

EVENTS_API = "events_api"
CALLBACK_EVENT = "event_callback"
EMOJI_CHANGED = "emoji_changed"
ALIAS_PREFIX = "alias:"

_SUBTYPES = {
    "add": EmojiKind.ADDED,
    "remove": EmojiKind.REMOVED,
}


def decode_metadata(envelope: Any) -> DeliveryMetadata:
    """
    Read event id, event time and retry count from the envelope.
    Raises ValidationError if the payload doesn't carry a usable event time.
    """
    payload = envelope.payload or {}
    return DeliveryMetadata.model_validate({
        "event_id": payload.get("event_id"),
        "event_time": payload.get("event_time"),
        "retry_attempt": getattr(envelope, "retry_attempt", None) or 0,
    })


def classify_envelope_events(envelope: Any) -> List[EmojiLifecycleEvent]:
    """
    Parse a Socket Mode request.
    Returns one lifecycle event per affected emoji name, or an empty list if
    the envelope is irrelevant or malformed. Never raises for bad input.
    """
    if getattr(envelope, "type", None) != EVENTS_API:
        logger.debug(f"Ignoring envelope of type {getattr(envelope, 'type', None)!r}")
        return []

    payload = getattr(envelope, "payload", None)
    if not isinstance(payload, dict) or payload.get("type") != CALLBACK_EVENT:
        logger.debug("Ignoring events_api payload that is not an event callback")
        return []

    try:
        meta = decode_metadata(envelope)
    except ValidationError as e:
        logger.warning(f"Failed to decode envelope metadata: {e.errors(include_url=False)}")
        return []

    event = payload.get("event")
    if not isinstance(event, dict) or event.get("type") != EMOJI_CHANGED:
        logger.debug("Unhandled inner event type")
        return []

    kind = _SUBTYPES.get(event.get("subtype"))
    if kind is None:
        logger.debug(f"Ignoring emoji_changed subtype {event.get('subtype')!r}")
        return []

    if kind is EmojiKind.ADDED:
        value = event.get("value") or ""
        if value.startswith(ALIAS_PREFIX):
            logger.debug(f"Ignoring alias {event.get('name')!r} -> {value[len(ALIAS_PREFIX):]!r}")
            return []
        candidates = [(event.get("name"), value)]
    else:
        # Slack reports removals as a list of names; older payloads use "name"
        names = event.get("names") or [event.get("name")]
        candidates = [(name, None) for name in names]

    events = []
    for name, image_ref in candidates:
        try:
            events.append(EmojiLifecycleEvent(
                name=name or "",
                kind=kind,
                image_ref=image_ref,
                occurred_at=meta.event_time,
                delivery_attempt=meta.retry_attempt,
                event_id=meta.event_id,
            ))
        except ValidationError as e:
            logger.debug(f"Dropping malformed emoji event: {e.errors(include_url=False)}")
    return events


def classify_envelope(envelope: Any) -> Optional[EmojiLifecycleEvent]:
    """
    Single-event form of classify_envelope_events().
    Returns None for irrelevant envelopes; bulk removals yield their first name.
    """
    events = classify_envelope_events(envelope)
    return events[0] if events else None

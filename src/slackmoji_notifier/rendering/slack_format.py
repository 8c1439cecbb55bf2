"""Slack mrkdwn formatting for new emoji announcements."""

from __future__ import annotations

from ..schemas.events import NotificationMessage

NOTIFICATION_BANNER = "*NEW EMOJI ADDED!*\n*Example Usage:*\n"
FULL_SIZE = 512


def full_size_image_url(image_ref: str, size: int = FULL_SIZE) -> str:
    """
    Slack serves emoji thumbnails by default; the size parameter asks for the
    full-size rendition. Existing query strings are preserved.
    """
    separator = "&" if "?" in image_ref else "?"
    return f"{image_ref}{separator}size={size}"


def render_notification(name: str, sentence: str, image_ref: str) -> NotificationMessage:
    return NotificationMessage(
        text=NOTIFICATION_BANNER + sentence.strip(),
        image_url=full_size_image_url(image_ref),
        emoji_name=name,
    )

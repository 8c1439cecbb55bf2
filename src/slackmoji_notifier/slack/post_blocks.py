"""Slack message payload builders.

Provides functions to build chat.postMessage payloads with mrkdwn formatting.
"""

from __future__ import annotations

from typing import Any, Dict, List

from ..schemas.events import NotificationMessage


def build_image_attachments(message: NotificationMessage) -> List[Dict[str, Any]]:
    """
    Legacy attachment carrying the emoji image, captioned with its name.
    """
    return [
        {
            "image_url": message.image_url,
            "text": message.emoji_name,
            "fallback": f":{message.emoji_name}:",
        }
    ]


def build_post_payload(channel: str, message: NotificationMessage) -> Dict[str, Any]:
    """
    Payload for chat.postMessage.
    Posts the text with mrkdwn enabled and the image as an attachment.
    """
    return {
        "channel": channel,
        "text": message.text,
        "mrkdwn": True,  # Enable mrkdwn formatting in text field
        "attachments": build_image_attachments(message),
        "unfurl_links": False,
        "unfurl_media": False,
    }

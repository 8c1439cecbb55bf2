from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class EmojiKind(str, Enum):
    ADDED = "added"
    REMOVED = "removed"


class DeliveryMetadata(BaseModel):
    """Envelope side channel: which event this is and how often Slack has tried to deliver it."""
    model_config = ConfigDict(frozen=True)

    event_id: Optional[str] = None
    event_time: datetime
    retry_attempt: int = Field(0, ge=0)


class EmojiLifecycleEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    kind: EmojiKind
    image_ref: Optional[str] = None
    occurred_at: datetime
    delivery_attempt: int = Field(0, ge=0)
    event_id: Optional[str] = None

    @model_validator(mode="after")
    def _image_matches_kind(self) -> "EmojiLifecycleEvent":
        if self.kind is EmojiKind.ADDED and not self.image_ref:
            raise ValueError("added emoji events need an image reference")
        if self.kind is EmojiKind.REMOVED and self.image_ref is not None:
            raise ValueError("removed emoji events carry no image reference")
        return self

    @property
    def delivery_key(self) -> Optional[str]:
        # one Slack event can remove several names
        if not self.event_id:
            return None
        return f"{self.event_id}/{self.name}"


class NotificationMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    image_url: str
    emoji_name: str

"""Schemas for user notifications and notification preferences."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.enums import EmailFrequency, NotificationType
from app.schemas.messages import WireModel


class NotificationCandidate(WireModel):
    """A notification before it is materialized in the store.

    Local triggers usually omit ``id``, ``timestamp`` and ``read``; records
    coming from the socket or the REST feed carry their own values.
    """

    id: str | None = Field(default=None, validation_alias=AliasChoices("id", "_id"))
    type: NotificationType
    title: str = ""
    message: str = ""
    timestamp: datetime | None = Field(
        default=None, validation_alias=AliasChoices("timestamp", "createdAt")
    )
    read: bool | None = None
    avatar: str | None = None
    post_image: str | None = Field(
        default=None, validation_alias=AliasChoices("postImage", "post_image")
    )
    action_url: str | None = Field(
        default=None, validation_alias=AliasChoices("actionUrl", "action_url")
    )
    data: dict[str, Any] | None = None

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> Any:
        return value if value is None or isinstance(value, str) else str(value)

    @field_validator("timestamp")
    @classmethod
    def ensure_aware(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class Notification(WireModel):
    """A materialized notification owned by the notification engine."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    type: NotificationType
    title: str
    message: str
    timestamp: datetime
    read: bool = False
    avatar: str | None = None
    post_image: str | None = None
    action_url: str | None = None
    data: dict[str, Any] | None = None


class NotificationSettings(BaseModel):
    """Per-type notification preferences supplied by the settings collaborator."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, validate_assignment=True)

    likes: bool = True
    comments: bool = True
    sales: bool = True
    messages: bool = True
    email_frequency: EmailFrequency = EmailFrequency.INSTANT


class NotificationFeedResponse(BaseModel):
    """Envelope returned by ``GET /notifications``."""

    status: bool = True
    notifications: list[dict[str, Any]] = Field(default_factory=list)
    message: str | None = None

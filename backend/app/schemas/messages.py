"""Schemas related to chat messages and their socket envelopes."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.models.enums import MessageStatus, MessageType


def coerce_reaction(value: Any) -> str:
    """Collapse the wire reaction shapes into the single current emoji.

    The backend sends either a plain emoji, a list of ``{"emoji": ...}``
    entries or a mapping of emoji to reacting user ids. The last non-empty
    entry wins.
    """

    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        current = ""
        for emoji, users in value.items():
            if users:
                current = str(emoji)
        return current
    if isinstance(value, (list, tuple)):
        current = ""
        for entry in value:
            if isinstance(entry, dict) and entry.get("emoji"):
                current = str(entry["emoji"])
            elif isinstance(entry, str) and entry:
                current = entry
        return current
    return str(value)


class WireModel(BaseModel):
    """Base for payloads exchanged with the push endpoint (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Message(WireModel):
    """A single chat message owned by the message store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1, validation_alias=AliasChoices("id", "_id"))
    conversation_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("conversationId", "conversation_id")
    )
    sender_id: str = Field(..., validation_alias=AliasChoices("senderId", "sender_id"))
    text: str = ""
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        validation_alias=AliasChoices("timestamp", "createdAt"),
    )
    type: MessageType = MessageType.TEXT
    status: MessageStatus = MessageStatus.SENT
    reply_to: str | None = Field(default=None, validation_alias=AliasChoices("replyTo", "reply_to"))
    reactions: str = ""
    image_url: str | None = Field(default=None, validation_alias=AliasChoices("imageUrl", "image_url"))
    product_id: str | None = Field(
        default=None, validation_alias=AliasChoices("productId", "product_id")
    )
    voice_duration: float | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("voiceDuration", "voice_duration")
    )

    @field_validator("id", "conversation_id", "sender_id", "reply_to", "product_id", mode="before")
    @classmethod
    def stringify_ids(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("reactions", mode="before")
    @classmethod
    def collapse_reactions(cls, value: Any) -> str:
        return coerce_reaction(value)

    @field_validator("timestamp")
    @classmethod
    def ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class InboundMessageEvent(WireModel):
    """Payload of the ``message`` socket event."""

    conversation_id: str
    message: Message

    @model_validator(mode="before")
    @classmethod
    def inherit_conversation(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        conversation_id = data.get("conversationId", data.get("conversation_id"))
        message = data.get("message")
        if conversation_id is not None and isinstance(message, dict):
            if "conversationId" not in message and "conversation_id" not in message:
                data = {**data, "message": {**message, "conversationId": str(conversation_id)}}
        return data

    @field_validator("conversation_id", mode="before")
    @classmethod
    def stringify_conversation(cls, value: Any) -> Any:
        return value if value is None or isinstance(value, str) else str(value)


class MessagesReadEvent(WireModel):
    """Payload of the ``messagesRead`` socket event: ``user_id`` read the conversation."""

    conversation_id: str
    user_id: str

    @field_validator("conversation_id", "user_id", mode="before")
    @classmethod
    def stringify(cls, value: Any) -> Any:
        return value if value is None or isinstance(value, str) else str(value)


class MessageReactionEvent(WireModel):
    """Payload of the ``messageReaction`` socket event."""

    conversation_id: str
    message_id: str
    reactions: str = ""

    @field_validator("conversation_id", "message_id", mode="before")
    @classmethod
    def stringify(cls, value: Any) -> Any:
        return value if value is None or isinstance(value, str) else str(value)

    @field_validator("reactions", mode="before")
    @classmethod
    def collapse_reactions(cls, value: Any) -> str:
        return coerce_reaction(value)


class MessageDeletedEvent(WireModel):
    """Payload of the ``messageDeleted`` socket event."""

    conversation_id: str
    message_id: str

    @field_validator("conversation_id", "message_id", mode="before")
    @classmethod
    def stringify(cls, value: Any) -> Any:
        return value if value is None or isinstance(value, str) else str(value)

"""Schemas describing conversation metadata kept by the client."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.schemas.messages import WireModel


class Conversation(WireModel):
    """Conversation metadata as listed by the backend."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1, validation_alias=AliasChoices("id", "_id"))
    participants: tuple[str, ...] = ()
    is_group: bool = Field(default=False, validation_alias=AliasChoices("isGroup", "is_group"))
    name: str | None = None
    avatar: str | None = None
    last_message_id: str | None = Field(
        default=None, validation_alias=AliasChoices("lastMessageId", "last_message_id")
    )
    unread_count: int = Field(
        default=0, ge=0, validation_alias=AliasChoices("unreadCount", "unread_count")
    )
    is_online: bool = Field(default=False, validation_alias=AliasChoices("isOnline", "is_online"))
    is_typing: bool = Field(default=False, validation_alias=AliasChoices("isTyping", "is_typing"))

    @field_validator("id", "last_message_id", mode="before")
    @classmethod
    def stringify_ids(cls, value: Any) -> Any:
        if isinstance(value, dict):
            # populated references arrive as whole documents
            value = value.get("id", value.get("_id"))
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("participants", mode="before")
    @classmethod
    def ordered_unique_participants(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (list, tuple)):
            seen: dict[str, None] = {}
            for item in value:
                if isinstance(item, dict):
                    item = item.get("id", item.get("_id"))
                if item is None:
                    continue
                seen.setdefault(str(item), None)
            return tuple(seen)
        return value

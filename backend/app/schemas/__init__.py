"""Pydantic schemas for sync engine records and socket payloads."""

from .conversations import Conversation
from .messages import (
    InboundMessageEvent,
    Message,
    MessageDeletedEvent,
    MessageReactionEvent,
    MessagesReadEvent,
)
from .notifications import (
    Notification,
    NotificationCandidate,
    NotificationFeedResponse,
    NotificationSettings,
)

__all__ = [
    "Conversation",
    "Message",
    "InboundMessageEvent",
    "MessagesReadEvent",
    "MessageReactionEvent",
    "MessageDeletedEvent",
    "Notification",
    "NotificationCandidate",
    "NotificationFeedResponse",
    "NotificationSettings",
]

from __future__ import annotations

from enum import Enum


class MessageStatus(str, Enum):
    """Delivery states of a message, declared in progression order."""

    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = tuple(MessageStatus)


class MessageType(str, Enum):
    """Kinds of content a message can carry."""

    TEXT = "text"
    IMAGE = "image"
    VOICE = "voice"
    PRODUCT = "product"
    NOTIFICATION = "notification"


class NotificationType(str, Enum):
    """Notification categories delivered to a user."""

    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"
    MENTION = "mention"
    ORDER = "order"
    PROMOTION = "promotion"


class EmailFrequency(str, Enum):
    """How often notification digests are emailed."""

    INSTANT = "instant"
    DAILY = "daily"
    WEEKLY = "weekly"


class SocketEvent(str, Enum):
    """Event names observed on the push transport."""

    CONNECT = "connect"
    DISCONNECT = "disconnect"
    MESSAGE = "message"
    NOTIFICATION = "notification"
    MESSAGES_READ = "messagesRead"
    MESSAGE_REACTION = "messageReaction"
    MESSAGE_DELETED = "messageDeleted"

"""Domain enumerations shared by the sync engines."""

from .enums import EmailFrequency, MessageStatus, MessageType, NotificationType, SocketEvent

__all__ = [
    "EmailFrequency",
    "MessageStatus",
    "MessageType",
    "NotificationType",
    "SocketEvent",
]

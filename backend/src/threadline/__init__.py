"""Client-side messaging and notification synchronization engine."""

from .errors import (
    DuplicateIdError,
    FeedUnavailableError,
    SyncError,
    TransportDisconnectedError,
    UnknownConversationError,
)

__all__ = [
    "SyncError",
    "DuplicateIdError",
    "UnknownConversationError",
    "TransportDisconnectedError",
    "FeedUnavailableError",
]

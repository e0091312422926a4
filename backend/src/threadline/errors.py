"""Error taxonomy of the sync engines.

Store violations are raised by the stores and absorbed by the engines; they
never propagate into UI code.
"""

from __future__ import annotations


class SyncError(RuntimeError):
    """Base class for sync engine errors."""


class DuplicateIdError(SyncError):
    """Raised when inserting a record whose id is already stored."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Record '{record_id}' already exists")
        self.record_id = record_id


class UnknownConversationError(SyncError):
    """Raised when a conversation id is absent from the conversation store."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation '{conversation_id}' is not known locally")
        self.conversation_id = conversation_id


class TransportDisconnectedError(SyncError):
    """Raised when emitting on a socket that is not connected."""


class FeedUnavailableError(SyncError):
    """Raised when the REST notification feed cannot be reached or rejects the request."""

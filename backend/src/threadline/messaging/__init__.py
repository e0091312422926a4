"""Conversation and message state with optimistic updates."""

from .engine import MessageEngine
from .stores import ConversationStore, MessageStore

__all__ = ["ConversationStore", "MessageEngine", "MessageStore"]

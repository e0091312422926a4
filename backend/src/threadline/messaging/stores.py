"""Authoritative in-memory stores for messages and conversations."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, Iterable, Iterator, List

from app.models.enums import MessageStatus
from app.monitoring.metrics import message_status_transitions_total
from app.schemas import Conversation, Message

from ..errors import DuplicateIdError, UnknownConversationError


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class MessageStore:
    """Owns message records and their delivery-status state machine.

    Records are immutable snapshots; every mutation swaps in a new copy, so a
    list returned by :meth:`by_conversation` stays consistent while the store
    keeps changing.
    """

    def __init__(self) -> None:
        self._messages: Dict[str, Message] = {}
        self._conversation_index: Dict[str, List[str]] = defaultdict(list)

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._messages

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages.values()))

    def get(self, message_id: str) -> Message | None:
        return self._messages.get(message_id)

    def insert(self, message: Message) -> Message:
        if message.id in self._messages:
            raise DuplicateIdError(message.id)
        self._messages[message.id] = message
        self._conversation_index[message.conversation_id].append(message.id)
        return message

    def update_status(self, message_id: str, status: MessageStatus) -> tuple[Message | None, bool]:
        """Move a message forward to ``status``.

        Returns the current record and whether it changed. Requests that do not
        advance the status, and ids that are no longer stored, leave the store
        untouched.
        """

        status = MessageStatus(status)
        current = self._messages.get(message_id)
        if current is None:
            message_status_transitions_total.labels(status.value, "missing").inc()
            logger.debug("Status update for unknown message ignored", extra={"message_id": message_id})
            return None, False
        if status.rank <= current.status.rank:
            message_status_transitions_total.labels(status.value, "ignored").inc()
            return current, False
        updated = current.model_copy(update={"status": status})
        self._messages[message_id] = updated
        message_status_transitions_total.labels(status.value, "applied").inc()
        return updated, True

    def set_reaction(self, message_id: str, emoji: str) -> tuple[Message | None, bool]:
        current = self._messages.get(message_id)
        if current is None:
            return None, False
        emoji = emoji or ""
        if current.reactions == emoji:
            return current, False
        updated = current.model_copy(update={"reactions": emoji})
        self._messages[message_id] = updated
        return updated, True

    def remove(self, message_id: str) -> Message | None:
        message = self._messages.pop(message_id, None)
        if message is None:
            return None
        ids = self._conversation_index.get(message.conversation_id)
        if ids is not None:
            ids.remove(message_id)
            if not ids:
                self._conversation_index.pop(message.conversation_id, None)
        return message

    def by_conversation(self, conversation_id: str) -> list[Message]:
        """Return the conversation's messages ordered by timestamp, oldest first."""

        messages = [self._messages[message_id] for message_id in self._conversation_index.get(conversation_id, ())]
        # sorted() is stable, so equal timestamps keep insertion order
        return sorted(messages, key=lambda message: message.timestamp)

    def latest(self, conversation_id: str) -> Message | None:
        messages = self.by_conversation(conversation_id)
        return messages[-1] if messages else None


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


class ConversationStore:
    """Owns conversation metadata; ``last_message_id`` only points into the message store."""

    def __init__(self) -> None:
        self._conversations: Dict[str, Conversation] = {}

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._conversations

    def get(self, conversation_id: str) -> Conversation | None:
        return self._conversations.get(conversation_id)

    def all(self) -> list[Conversation]:
        return list(self._conversations.values())

    def upsert(self, conversation: Conversation) -> Conversation:
        """Store a conversation from the listing fetch.

        Local counters survive a re-listing: the typing flag is ephemeral and
        the unread counter only resets through :meth:`mark_read`.
        """

        existing = self._conversations.get(conversation.id)
        if existing is not None:
            conversation = conversation.model_copy(
                update={
                    "unread_count": max(existing.unread_count, conversation.unread_count),
                    "is_typing": existing.is_typing,
                    "last_message_id": conversation.last_message_id or existing.last_message_id,
                }
            )
        self._conversations[conversation.id] = conversation
        return conversation

    def load(self, conversations: Iterable[Conversation]) -> list[Conversation]:
        return [self.upsert(conversation) for conversation in conversations]

    def _require(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise UnknownConversationError(conversation_id)
        return conversation

    def _replace(self, conversation: Conversation, **changes: object) -> Conversation:
        updated = conversation.model_copy(update=changes)
        self._conversations[conversation.id] = updated
        return updated

    def touch_last_message(self, conversation_id: str, message_id: str | None) -> bool:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            # the listing may not have arrived yet
            return False
        if conversation.last_message_id == message_id:
            return False
        self._replace(conversation, last_message_id=message_id)
        return True

    def mark_read(self, conversation_id: str) -> Conversation:
        conversation = self._require(conversation_id)
        if conversation.unread_count == 0:
            return conversation
        return self._replace(conversation, unread_count=0)

    def increment_unread(self, conversation_id: str, *, is_open: bool) -> Conversation:
        conversation = self._require(conversation_id)
        if is_open:
            return conversation
        return self._replace(conversation, unread_count=conversation.unread_count + 1)

    def set_typing(self, conversation_id: str, is_typing: bool) -> Conversation:
        conversation = self._require(conversation_id)
        return self._replace(conversation, is_typing=bool(is_typing))

    def clear_typing(self) -> list[str]:
        """Reset every typing flag; returns the ids that were typing."""

        cleared = [conversation.id for conversation in self._conversations.values() if conversation.is_typing]
        for conversation_id in cleared:
            self._replace(self._conversations[conversation_id], is_typing=False)
        return cleared

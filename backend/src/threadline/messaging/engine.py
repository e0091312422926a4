"""Optimistic-update orchestration for conversations and messages."""

from __future__ import annotations

import asyncio
import itertools
import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable

from pydantic import ValidationError

from app.models.enums import MessageStatus, MessageType, SocketEvent
from app.monitoring.metrics import realtime_events_total, store_conflicts_total
from app.schemas import (
    Conversation,
    InboundMessageEvent,
    Message,
    MessageDeletedEvent,
    MessageReactionEvent,
    MessagesReadEvent,
)

from ..errors import DuplicateIdError, UnknownConversationError
from ..realtime.transport import SocketClient
from .stores import ConversationStore, MessageStore


logger = logging.getLogger(__name__)

DEFAULT_SENT_DELAY = 1.0
DEFAULT_DELIVERED_DELAY = 2.0
LOCAL_SENDER_FALLBACK = "me"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageEngine:
    """Apply local actions and inbound socket events to the message stores.

    Local sends are inserted immediately with status ``sending`` and confirmed
    by two deferred transitions. Every status change, timer driven or socket
    driven, goes through :meth:`MessageStore.update_status`, so confirmations
    may arrive in any order without regressing what the UI shows.
    """

    def __init__(
        self,
        messages: MessageStore | None = None,
        conversations: ConversationStore | None = None,
        *,
        socket: SocketClient | None = None,
        user_id: str | None = None,
        sent_delay: float = DEFAULT_SENT_DELAY,
        delivered_delay: float = DEFAULT_DELIVERED_DELAY,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._messages = messages if messages is not None else MessageStore()
        self._conversations = conversations if conversations is not None else ConversationStore()
        self._socket = socket
        self._user_id = user_id
        self._sent_delay = sent_delay
        self._delivered_delay = delivered_delay
        self._clock = clock
        self._open_conversation_id: str | None = None
        self._timers: Dict[int, asyncio.TimerHandle] = {}
        self._timer_ids = itertools.count()
        self._last_id_ns = 0
        if socket is not None:
            self.attach(socket)

    @property
    def messages(self) -> MessageStore:
        return self._messages

    @property
    def conversations(self) -> ConversationStore:
        return self._conversations

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def open_conversation_id(self) -> str | None:
        return self._open_conversation_id

    @property
    def pending_confirmations(self) -> int:
        return len(self._timers)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def attach(self, socket: SocketClient) -> None:
        self._socket = socket
        socket.on(SocketEvent.MESSAGE, self._handle_message_event)
        socket.on(SocketEvent.MESSAGES_READ, self._handle_messages_read_event)
        socket.on(SocketEvent.MESSAGE_REACTION, self._handle_reaction_event)
        socket.on(SocketEvent.MESSAGE_DELETED, self._handle_deleted_event)
        socket.on(SocketEvent.DISCONNECT, self._handle_disconnect)

    async def start(self, user_id: str) -> None:
        """Register ``user_id`` with the push endpoint and open the connection."""

        self._user_id = str(user_id)
        if self._socket is None:
            logger.warning("Message engine started without a transport; running local-only")
            return
        await self._socket.register(self._user_id)
        await self._socket.connect()

    def close(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()

    # ------------------------------------------------------------------
    # Conversation context
    # ------------------------------------------------------------------
    def open_conversation(self, conversation_id: str) -> None:
        self._open_conversation_id = conversation_id

    def close_conversation(self, conversation_id: str | None = None) -> None:
        if conversation_id is None or conversation_id == self._open_conversation_id:
            self._open_conversation_id = None

    def load_conversations(self, conversations: Iterable[Conversation]) -> list[Conversation]:
        """Merge a conversation listing and re-point last messages at what is stored locally."""

        loaded = self._conversations.load(conversations)
        for conversation in loaded:
            latest = self._messages.latest(conversation.id)
            if latest is not None:
                self._advance_last_message(latest)
        return [self._conversations.get(conversation.id) or conversation for conversation in loaded]

    def load_history(self, conversation_id: str, messages: Iterable[Message]) -> int:
        """Merge fetched history through the live merge path without touching unread counters."""

        inserted = 0
        for message in messages:
            if self._merge(conversation_id, message, count_unread=False):
                inserted += 1
        return inserted

    # ------------------------------------------------------------------
    # Local actions
    # ------------------------------------------------------------------
    def send(
        self,
        conversation_id: str,
        text: str,
        reply_to: str | None = None,
        image_uri: str | None = None,
        product_id: str | None = None,
    ) -> Message | None:
        text = text or ""
        if not text.strip() and not image_uri:
            logger.debug("Ignored empty message", extra={"conversation_id": conversation_id})
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "Refused send outside the event loop", extra={"conversation_id": conversation_id}
            )
            return None

        if reply_to is not None:
            target = self._messages.get(reply_to)
            if target is None or target.conversation_id != conversation_id:
                logger.warning(
                    "Dropped reply reference outside the conversation",
                    extra={"conversation_id": conversation_id, "reply_to": reply_to},
                )
                reply_to = None

        message = Message(
            id=self._new_message_id(),
            conversation_id=conversation_id,
            sender_id=self._user_id or LOCAL_SENDER_FALLBACK,
            text=text,
            timestamp=self._clock(),
            type=MessageType.IMAGE if image_uri else MessageType.TEXT,
            status=MessageStatus.SENDING,
            reply_to=reply_to,
            image_url=image_uri or None,
            product_id=product_id or None,
        )
        try:
            self._messages.insert(message)
        except DuplicateIdError:
            store_conflicts_total.labels("messages", "duplicate_id").inc()
            logger.warning("Generated message id collided", extra={"message_id": message.id})
            return None

        self._advance_last_message(message)
        self._schedule_confirmation(loop, self._sent_delay, message.id, MessageStatus.SENT)
        self._schedule_confirmation(loop, self._delivered_delay, message.id, MessageStatus.DELIVERED)
        return message

    def update_status(self, message_id: str, status: MessageStatus) -> bool:
        _, changed = self._messages.update_status(message_id, status)
        return changed

    def react(self, conversation_id: str, message_id: str, emoji: str) -> bool:
        message = self._messages.get(message_id)
        if message is None or message.conversation_id != conversation_id:
            logger.debug(
                "Reaction target not found",
                extra={"conversation_id": conversation_id, "message_id": message_id},
            )
            return False
        _, changed = self._messages.set_reaction(message_id, emoji)
        return changed

    def mark_read(self, conversation_id: str) -> int:
        """Reset the unread counter and promote remote-authored messages to ``read``.

        Returns how many messages changed status.
        """

        try:
            self._conversations.mark_read(conversation_id)
        except UnknownConversationError:
            self._absorb_unknown(conversation_id, "mark_read")
        promoted = 0
        for message in self._messages.by_conversation(conversation_id):
            if message.sender_id == self._local_sender:
                continue
            _, changed = self._messages.update_status(message.id, MessageStatus.READ)
            promoted += int(changed)
        return promoted

    def set_typing(self, conversation_id: str, is_typing: bool) -> bool:
        try:
            self._conversations.set_typing(conversation_id, is_typing)
        except UnknownConversationError:
            self._absorb_unknown(conversation_id, "set_typing")
            return False
        return True

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------
    def on_inbound_message(self, conversation_id: str, message: Message) -> bool:
        """Insert or merge a remote message; returns True when it was new."""

        return self._merge(conversation_id, message, count_unread=True)

    def on_messages_read(self, conversation_id: str, reader_id: str) -> int:
        """Promote our own messages once another participant has read the conversation."""

        if reader_id == self._local_sender:
            return 0
        promoted = 0
        for message in self._messages.by_conversation(conversation_id):
            if message.sender_id != self._local_sender:
                continue
            _, changed = self._messages.update_status(message.id, MessageStatus.READ)
            promoted += int(changed)
        return promoted

    def on_remote_reaction(self, conversation_id: str, message_id: str, emoji: str) -> bool:
        return self.react(conversation_id, message_id, emoji)

    def on_message_deleted(self, conversation_id: str, message_id: str) -> bool:
        message = self._messages.get(message_id)
        if message is None or message.conversation_id != conversation_id:
            return False
        self._messages.remove(message_id)
        conversation = self._conversations.get(conversation_id)
        if conversation is not None and conversation.last_message_id == message_id:
            latest = self._messages.latest(conversation_id)
            self._conversations.touch_last_message(conversation_id, latest.id if latest else None)
        return True

    # ------------------------------------------------------------------
    # Socket handlers
    # ------------------------------------------------------------------
    async def _handle_message_event(self, payload: Any) -> None:
        event = self._parse(InboundMessageEvent, payload, SocketEvent.MESSAGE)
        if event is None:
            return
        inserted = self.on_inbound_message(event.conversation_id, event.message)
        realtime_events_total.labels("message", "in", "insert" if inserted else "merge").inc()

    async def _handle_messages_read_event(self, payload: Any) -> None:
        event = self._parse(MessagesReadEvent, payload, SocketEvent.MESSAGES_READ)
        if event is None:
            return
        self.on_messages_read(event.conversation_id, event.user_id)
        realtime_events_total.labels("message", "in", "read").inc()

    async def _handle_reaction_event(self, payload: Any) -> None:
        event = self._parse(MessageReactionEvent, payload, SocketEvent.MESSAGE_REACTION)
        if event is None:
            return
        self.on_remote_reaction(event.conversation_id, event.message_id, event.reactions)
        realtime_events_total.labels("message", "in", "reaction").inc()

    async def _handle_deleted_event(self, payload: Any) -> None:
        event = self._parse(MessageDeletedEvent, payload, SocketEvent.MESSAGE_DELETED)
        if event is None:
            return
        self.on_message_deleted(event.conversation_id, event.message_id)
        realtime_events_total.labels("message", "in", "delete").inc()

    async def _handle_disconnect(self) -> None:
        cleared = self._conversations.clear_typing()
        if cleared:
            logger.debug("Cleared typing indicators after disconnect", extra={"conversations": cleared})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @property
    def _local_sender(self) -> str:
        return self._user_id or LOCAL_SENDER_FALLBACK

    @staticmethod
    def _parse(model: type, payload: Any, event: SocketEvent) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError:
            logger.warning("Discarded malformed realtime payload", extra={"event": event.value})
            return None

    def _merge(self, conversation_id: str, message: Message, *, count_unread: bool) -> bool:
        if message.conversation_id != conversation_id:
            logger.warning(
                "Discarded message addressed to another conversation",
                extra={"conversation_id": conversation_id, "message_id": message.id},
            )
            return False
        try:
            self._messages.insert(message)
        except DuplicateIdError:
            # re-delivery: only the status may move forward
            store_conflicts_total.labels("messages", "duplicate_id").inc()
            self._messages.update_status(message.id, message.status)
            return False

        self._advance_last_message(message)
        if count_unread and message.sender_id != self._local_sender:
            try:
                self._conversations.increment_unread(
                    conversation_id, is_open=conversation_id == self._open_conversation_id
                )
            except UnknownConversationError:
                self._absorb_unknown(conversation_id, "increment_unread")
        return True

    def _advance_last_message(self, message: Message) -> bool:
        conversation = self._conversations.get(message.conversation_id)
        if conversation is None:
            return False
        current_id = conversation.last_message_id
        current = self._messages.get(current_id) if current_id else None
        if current is not None and current.id != message.id and current.timestamp > message.timestamp:
            return False
        return self._conversations.touch_last_message(message.conversation_id, message.id)

    def _absorb_unknown(self, conversation_id: str, operation: str) -> None:
        store_conflicts_total.labels("conversations", "unknown").inc()
        logger.info(
            "Conversation not listed locally; %s skipped",
            operation,
            extra={"conversation_id": conversation_id},
        )

    def _new_message_id(self) -> str:
        now = max(time.time_ns(), self._last_id_ns + 1)
        self._last_id_ns = now
        return f"{now:x}-{secrets.token_hex(4)}"

    def _schedule_confirmation(
        self, loop: asyncio.AbstractEventLoop, delay: float, message_id: str, status: MessageStatus
    ) -> None:
        key = next(self._timer_ids)
        self._timers[key] = loop.call_later(delay, self._fire_confirmation, key, message_id, status)

    def _fire_confirmation(self, key: int, message_id: str, status: MessageStatus) -> None:
        self._timers.pop(key, None)
        self._messages.update_status(message_id, status)

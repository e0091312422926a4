"""Composition root wiring the single transport into both engines."""

from __future__ import annotations

import logging
from typing import Any

from app.config import Settings, get_settings
from app.schemas import NotificationSettings
from app.services import NotificationFeedClient

from .errors import FeedUnavailableError
from .messaging import ConversationStore, MessageEngine, MessageStore
from .notifications import NotificationEngine, NotificationGenerator
from .realtime import SocketClient, SocketConfig


logger = logging.getLogger(__name__)


class SyncRuntime:
    """Own the lifecycle of the socket client and the engines it feeds.

    Exactly one :class:`SocketClient` is built per runtime and injected into
    both engines; nothing else reaches the transport.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        notification_settings: NotificationSettings | None = None,
        socket: SocketClient | None = None,
        feed: NotificationFeedClient | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.socket = socket or SocketClient(
            SocketConfig(
                url=self._settings.socket_url,
                path=self._settings.socket_path,
                transports=tuple(self._settings.socket_transports),
                reconnection=self._settings.socket_reconnection,
                connect_timeout=self._settings.socket_connect_timeout_seconds,
            )
        )
        self.messages = MessageEngine(
            MessageStore(),
            ConversationStore(),
            socket=self.socket,
            sent_delay=self._settings.message_sent_delay_seconds,
            delivered_delay=self._settings.message_delivered_delay_seconds,
        )
        self.notifications = NotificationEngine(notification_settings, socket=self.socket)
        self.generator: NotificationGenerator | None = None
        if self._settings.notification_generator_enabled:
            self.generator = NotificationGenerator(
                self.notifications.handle_inbound,
                interval=self._settings.notification_generator_interval_seconds,
                probability=self._settings.notification_generator_probability,
            )
        endpoint = self._settings.notifications_endpoint
        if feed is None and endpoint is not None:
            feed = NotificationFeedClient(endpoint, timeout=self._settings.api_timeout_seconds)
        self.feed = feed
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self, user_id: str, *, token: str | None = None) -> None:
        if self._started:
            return
        if self.feed is not None and token:
            try:
                await self.notifications.fetch_notifications(self.feed, token)
            except FeedUnavailableError:
                logger.warning(
                    "Initial notification fetch failed; continuing with live events only",
                    exc_info=logger.isEnabledFor(logging.DEBUG),
                )
        await self.messages.start(user_id)
        if self.generator is not None:
            self.generator.start()
        self._started = True

    async def stop(self) -> None:
        if self.generator is not None:
            await self.generator.stop()
        self.messages.close()
        await self.socket.disconnect()
        self._started = False

    async def __aenter__(self) -> "SyncRuntime":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

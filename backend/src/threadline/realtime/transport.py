"""Socket.io transport wrapper shared by the messaging and notification engines."""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Sequence

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError

from app.models.enums import SocketEvent
from app.monitoring.metrics import (
    realtime_events_total,
    socket_connected,
    socket_registrations_total,
)

from ..errors import TransportDisconnectedError


logger = logging.getLogger(__name__)


EventHandler = Callable[..., Awaitable[None] | None]
ClientFactory = Callable[..., Any]

REGISTER_EVENT = "register"

SUPPORTED_EVENTS: frozenset[str] = frozenset(event.value for event in SocketEvent)


@dataclass(slots=True)
class SocketConfig:
    """Configuration used for wiring the push transport."""

    url: str
    path: str = "socket.io"
    transports: Sequence[str] = field(default_factory=lambda: ("websocket",))
    reconnection: bool = True
    connect_timeout: float = 5.0


class SocketClient:
    """One lazily-created, reusable connection to the push endpoint.

    Handlers attached through :meth:`on` run in attachment order, one after the
    other, as soon as the event arrives. Every ``connect`` event re-sends the
    ``register`` event for the remembered user before user handlers run, so a
    restored connection resumes delivery without caller intervention.
    Connection failures are reported only through the ``disconnect`` handlers.
    """

    def __init__(
        self,
        config: SocketConfig,
        *,
        client_factory: ClientFactory = socketio.AsyncClient,
    ) -> None:
        self._config = config
        self._client_factory = client_factory
        self._client: Any | None = None
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)
        self._user_id: str | None = None
        self._connected = False
        self._connecting = False
        self._unavailable_logged = False
        self._registered_user: str | None = None

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def user_id(self) -> str | None:
        return self._user_id

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def _ensure_client(self) -> Any:
        if self._client is not None:
            return self._client
        client = self._client_factory(
            reconnection=self._config.reconnection,
            logger=False,
            engineio_logger=False,
        )
        for event in SUPPORTED_EVENTS:
            client.on(event, self._dispatcher(event))
        self._client = client
        return client

    def _dispatcher(self, event: str) -> Callable[..., Awaitable[None]]:
        async def dispatch(*args: Any) -> None:
            await self._dispatch(event, *args)

        return dispatch

    async def connect(self) -> None:
        if self._connected or self._connecting:
            return
        client = self._ensure_client()
        self._connecting = True
        try:
            await client.connect(
                self._config.url,
                transports=list(self._config.transports),
                socketio_path=self._config.path,
                wait_timeout=self._config.connect_timeout,
            )
        except (SocketConnectionError, OSError) as exc:
            log = logger.debug if self._unavailable_logged else logger.warning
            log(
                "Failed to connect to push endpoint",
                extra={"url": self._config.url, "error": str(exc)},
            )
            self._unavailable_logged = True
            await self._dispatch(SocketEvent.DISCONNECT.value)
        finally:
            self._connecting = False

    async def disconnect(self) -> None:
        if self._client is None:
            return
        await self._client.disconnect()
        if self._connected:
            # some transports do not echo the disconnect event on a local close
            await self._dispatch(SocketEvent.DISCONNECT.value)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------
    async def register(self, user_id: str) -> None:
        """Remember ``user_id`` and register it now if the socket is connected."""

        if not user_id:
            return
        self._user_id = str(user_id)
        if self._connected and self._registered_user != self._user_id:
            await self._emit_register()

    async def emit(self, event: str, payload: Any = None) -> None:
        if not self._connected or self._client is None:
            raise TransportDisconnectedError(f"Cannot emit '{event}' while disconnected")
        await self._client.emit(event, payload)
        realtime_events_total.labels(event, "out", "emit").inc()

    async def _emit_register(self) -> None:
        try:
            await self.emit(REGISTER_EVENT, self._user_id)
        except TransportDisconnectedError:
            logger.info("Socket dropped before registration", extra={"user_id": self._user_id})
            return
        self._registered_user = self._user_id
        socket_registrations_total.inc()
        logger.info("Registered user on push endpoint", extra={"user_id": self._user_id})

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------
    def on(self, event: str | SocketEvent, handler: EventHandler) -> None:
        name = event.value if isinstance(event, SocketEvent) else str(event)
        if name not in SUPPORTED_EVENTS:
            raise ValueError(f"Unsupported socket event '{name}'")
        self._handlers[name].append(handler)

    async def _dispatch(self, event: str, *args: Any) -> None:
        if event == SocketEvent.CONNECT.value:
            self._connected = True
            self._unavailable_logged = False
            self._registered_user = None
            socket_connected.set(1)
            logger.info("Push endpoint connected", extra={"url": self._config.url})
            if self._user_id:
                await self._emit_register()
            args = ()
        elif event == SocketEvent.DISCONNECT.value:
            self._connected = False
            socket_connected.set(0)
            self._registered_user = None
            logger.info("Push endpoint disconnected", extra={"url": self._config.url})
            # newer python-socketio versions pass a reason we do not expose
            args = ()
        realtime_events_total.labels(event, "in", "dispatch").inc()
        for handler in list(self._handlers.get(event, ())):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Socket handler failed", extra={"event": event})

"""Shared pytest fixtures for sync engine tests."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest
from socketio.exceptions import ConnectionError as SocketConnectionError

ROOT_DIR = Path(__file__).resolve().parents[1]
for path in (ROOT_DIR, ROOT_DIR / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from app.models import MessageStatus
from app.monitoring.registry import registry
from app.schemas import Conversation, Message
from threadline.messaging import ConversationStore, MessageEngine, MessageStore
from threadline.realtime import SocketClient, SocketConfig


BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeSocketIOClient:
    """Stand-in for ``socketio.AsyncClient`` driven by the test as the server."""

    def __init__(self, **options: Any) -> None:
        self.options = options
        self.handlers: dict[str, Callable[..., Any]] = {}
        self.connected = False
        self.emitted: list[tuple[str, Any]] = []
        self.connect_calls: list[tuple[str, dict[str, Any]]] = []
        self.fail_connect = False

    def on(self, event: str, handler: Callable[..., Any] | None = None) -> None:
        self.handlers[event] = handler

    async def connect(self, url: str, **kwargs: Any) -> None:
        self.connect_calls.append((url, kwargs))
        if self.fail_connect:
            raise SocketConnectionError("Connection refused by the server")
        await self.server_connect()

    async def disconnect(self) -> None:
        if self.connected:
            await self.server_disconnect()

    async def emit(self, event: str, data: Any = None) -> None:
        self.emitted.append((event, data))

    # server side helpers -------------------------------------------------
    async def server_connect(self) -> None:
        self.connected = True
        await self.handlers["connect"]()

    async def server_disconnect(self, reason: str = "transport close") -> None:
        self.connected = False
        await self.handlers["disconnect"](reason)

    async def push(self, event: str, payload: Any) -> None:
        await self.handlers[event](payload)

    def emitted_events(self, name: str) -> list[Any]:
        return [data for event, data in self.emitted if event == name]


class FakeClientFactory:
    def __init__(self) -> None:
        self.instances: list[FakeSocketIOClient] = []

    def __call__(self, **options: Any) -> FakeSocketIOClient:
        client = FakeSocketIOClient(**options)
        self.instances.append(client)
        return client

    @property
    def client(self) -> FakeSocketIOClient:
        return self.instances[-1]


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_metrics() -> Iterator[None]:
    registry.reset()
    yield
    registry.reset()


@pytest.fixture()
def client_factory() -> FakeClientFactory:
    return FakeClientFactory()


@pytest.fixture()
def socket_client(client_factory: FakeClientFactory) -> SocketClient:
    return SocketClient(SocketConfig(url="http://push.test"), client_factory=client_factory)


@pytest.fixture()
def conversations() -> ConversationStore:
    store = ConversationStore()
    store.load(
        [
            Conversation(id="c1", participants=["me", "alice"]),
            Conversation(id="c2", participants=["me", "bob", "carol"], is_group=True, name="Group Chat"),
        ]
    )
    return store


@pytest.fixture()
def engine(conversations: ConversationStore) -> MessageEngine:
    return MessageEngine(
        MessageStore(),
        conversations,
        user_id="me",
        sent_delay=0.01,
        delivered_delay=0.5,
    )


def make_message(
    message_id: str,
    *,
    conversation_id: str = "c1",
    sender_id: str = "alice",
    offset: int = 0,
    status: MessageStatus = MessageStatus.SENT,
    text: str = "hello",
) -> Message:
    return Message(
        id=message_id,
        conversation_id=conversation_id,
        sender_id=sender_id,
        text=text,
        timestamp=BASE_TIME + timedelta(seconds=offset),
        status=status,
    )

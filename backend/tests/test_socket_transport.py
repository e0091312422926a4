from __future__ import annotations

import logging

import aiohttp
import pytest
import socketio

from app.monitoring.metrics import socket_connected, socket_registrations_total
from threadline.errors import TransportDisconnectedError
from threadline.realtime import SocketClient, SocketConfig


@pytest.mark.anyio("asyncio")
async def test_client_is_created_lazily_and_reused(socket_client: SocketClient, client_factory) -> None:
    assert client_factory.instances == []

    await socket_client.connect()
    await socket_client.connect()

    assert len(client_factory.instances) == 1
    assert len(client_factory.client.connect_calls) == 1
    url, options = client_factory.client.connect_calls[0]
    assert url == "http://push.test"
    assert options["transports"] == ["websocket"]
    assert options["socketio_path"] == "socket.io"
    assert socket_client.connected is True
    assert socket_connected.value() == 1.0


@pytest.mark.anyio("asyncio")
async def test_register_is_sent_once_per_connect_including_reconnects(
    socket_client: SocketClient, client_factory
) -> None:
    await socket_client.register("me")
    await socket_client.connect()
    fake = client_factory.client

    assert fake.emitted_events("register") == ["me"]

    await fake.server_disconnect()
    assert socket_client.connected is False
    await fake.server_connect()

    assert fake.emitted_events("register") == ["me", "me"]
    assert socket_registrations_total.value() == 2.0


@pytest.mark.anyio("asyncio")
async def test_register_while_connected_emits_immediately(socket_client: SocketClient, client_factory) -> None:
    await socket_client.connect()
    fake = client_factory.client
    assert fake.emitted_events("register") == []

    await socket_client.register("me")

    assert fake.emitted_events("register") == ["me"]
    assert socket_client.user_id == "me"


@pytest.mark.anyio("asyncio")
async def test_repeated_register_for_same_user_is_not_re_emitted(
    socket_client: SocketClient, client_factory
) -> None:
    await socket_client.register("me")
    await socket_client.connect()
    fake = client_factory.client

    await socket_client.register("me")
    await socket_client.register("me")
    assert fake.emitted_events("register") == ["me"]

    await socket_client.register("other")
    assert fake.emitted_events("register") == ["me", "other"]
    assert socket_registrations_total.value() == 2.0


def test_default_client_factory_is_the_socketio_async_client() -> None:
    client = SocketClient(SocketConfig(url="http://push.test"))._ensure_client()

    assert isinstance(client, socketio.AsyncClient)
    # the async client opens its websocket and polling connections through aiohttp
    assert hasattr(aiohttp, "ClientSession")


@pytest.mark.anyio("asyncio")
async def test_emit_requires_a_live_connection(socket_client: SocketClient) -> None:
    with pytest.raises(TransportDisconnectedError):
        await socket_client.emit("typing", {"conversationId": "c1"})


@pytest.mark.anyio("asyncio")
async def test_handlers_run_in_attachment_order_and_failures_are_isolated(
    socket_client: SocketClient, client_factory, caplog: pytest.LogCaptureFixture
) -> None:
    calls: list[str] = []

    def first(payload) -> None:
        calls.append(f"first:{payload['id']}")
        raise RuntimeError("boom")

    async def second(payload) -> None:
        calls.append(f"second:{payload['id']}")

    socket_client.on("notification", first)
    socket_client.on("notification", second)
    await socket_client.connect()

    caplog.set_level(logging.ERROR, logger="threadline.realtime.transport")
    await client_factory.client.push("notification", {"id": "n1"})

    assert calls == ["first:n1", "second:n1"]
    assert any(record.message == "Socket handler failed" for record in caplog.records)


def test_unsupported_events_are_rejected(socket_client: SocketClient) -> None:
    with pytest.raises(ValueError):
        socket_client.on("presence", lambda payload: None)


@pytest.mark.anyio("asyncio")
async def test_connect_failure_is_reported_as_disconnect(client_factory, caplog: pytest.LogCaptureFixture) -> None:
    def failing_factory(**options):
        client = client_factory(**options)
        client.fail_connect = True
        return client

    socket_client = SocketClient(SocketConfig(url="http://push.test"), client_factory=failing_factory)
    disconnects: list[str] = []
    socket_client.on("disconnect", lambda: disconnects.append("down"))

    caplog.set_level(logging.WARNING, logger="threadline.realtime.transport")
    await socket_client.connect()

    assert disconnects == ["down"]
    assert socket_client.connected is False
    assert any(record.message == "Failed to connect to push endpoint" for record in caplog.records)

    caplog.clear()
    await socket_client.connect()

    assert disconnects == ["down", "down"]
    assert not [record for record in caplog.records if record.levelno >= logging.WARNING]


@pytest.mark.anyio("asyncio")
async def test_local_disconnect_notifies_handlers_once(socket_client: SocketClient, client_factory) -> None:
    disconnects: list[str] = []
    socket_client.on("disconnect", lambda: disconnects.append("down"))
    await socket_client.connect()

    await socket_client.disconnect()

    assert disconnects == ["down"]
    assert socket_client.connected is False
    assert socket_connected.value() == 0.0

from __future__ import annotations

import logging

import pytest

from app.config import Settings
from threadline.errors import FeedUnavailableError
from threadline.realtime import SocketClient, SocketConfig
from threadline.runtime import SyncRuntime


class _Feed:
    def __init__(self, records=None, error: Exception | None = None) -> None:
        self.records = records or []
        self.error = error

    async def fetch(self, token: str):
        if self.error is not None:
            raise self.error
        return self.records


def _runtime(client_factory, **overrides) -> SyncRuntime:
    settings = Settings(_env_file=None, **overrides)
    socket = SocketClient(SocketConfig(url=settings.socket_url), client_factory=client_factory)
    return SyncRuntime(settings, socket=socket)


@pytest.mark.anyio("asyncio")
async def test_both_engines_share_one_transport(client_factory) -> None:
    runtime = _runtime(client_factory)

    async with runtime:
        await runtime.start("me")
        fake = client_factory.client
        await fake.push("notification", {"type": "follow", "title": "Followed", "message": "m"})
        await fake.push(
            "message",
            {"conversationId": "c1", "message": {"id": "m1", "senderId": "alice", "text": "hi"}},
        )

        assert runtime.started is True
        assert len(client_factory.instances) == 1
        assert fake.emitted_events("register") == ["me"]
        assert runtime.notifications.unread_count == 1
        assert "m1" in runtime.messages.messages

    assert runtime.started is False
    assert runtime.socket.connected is False


@pytest.mark.anyio("asyncio")
async def test_start_populates_from_feed(client_factory) -> None:
    settings = Settings(_env_file=None)
    socket = SocketClient(SocketConfig(url=settings.socket_url), client_factory=client_factory)
    feed = _Feed([{"_id": "n1", "type": "mention", "title": "t", "message": "m"}])
    runtime = SyncRuntime(settings, socket=socket, feed=feed)

    async with runtime:
        await runtime.start("me", token="tok")
        assert runtime.notifications.get("n1") is not None


@pytest.mark.anyio("asyncio")
async def test_feed_failure_does_not_block_start(client_factory, caplog: pytest.LogCaptureFixture) -> None:
    settings = Settings(_env_file=None)
    socket = SocketClient(SocketConfig(url=settings.socket_url), client_factory=client_factory)
    runtime = SyncRuntime(settings, socket=socket, feed=_Feed(error=FeedUnavailableError("down")))

    caplog.set_level(logging.WARNING, logger="threadline.runtime")
    async with runtime:
        await runtime.start("me", token="tok")
        assert runtime.socket.connected is True

    assert any("Initial notification fetch failed" in r.message for r in caplog.records)


@pytest.mark.anyio("asyncio")
async def test_generator_runs_only_while_started(client_factory) -> None:
    runtime = _runtime(
        client_factory,
        notification_generator_enabled=True,
        notification_generator_interval_seconds=60,
    )

    await runtime.start("me")
    assert runtime.generator is not None and runtime.generator.running is True

    await runtime.stop()
    assert runtime.generator.running is False

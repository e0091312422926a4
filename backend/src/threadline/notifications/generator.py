"""Synthetic notification source used while no live feed is available."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import random
from typing import Any, Awaitable, Callable

from app.models.enums import NotificationType

from .engine import GATED_TYPES


logger = logging.getLogger(__name__)

InboundHandler = Callable[[dict[str, Any]], Awaitable[Any]]

DEFAULT_AVATAR = "https://images.pexels.com/photos/1036623/pexels-photo-1036623.jpeg?auto=compress&cs=tinysrgb&w=100"

_TEMPLATES: dict[NotificationType, tuple[str, str]] = {
    NotificationType.LIKE: ("New Like", "Someone liked your post"),
    NotificationType.COMMENT: ("New Comment", "Someone commented on your post"),
    NotificationType.ORDER: ("Order Update", "One of your orders has a new status"),
}


def synthesize(notification_type: NotificationType) -> dict[str, Any]:
    """Build a payload shaped like the socket ``notification`` event."""

    title, message = _TEMPLATES.get(
        notification_type, (f"New {notification_type.value.title()}", "You have a new notification")
    )
    return {
        "type": notification_type.value,
        "title": title,
        "message": message,
        "avatar": DEFAULT_AVATAR,
    }


class NotificationGenerator:
    """Periodically draws and, with low probability, emits a gated notification.

    Payloads go to the same handler the socket ``notification`` event uses.
    """

    def __init__(
        self,
        handler: InboundHandler,
        *,
        interval: float = 30.0,
        probability: float = 0.2,
        rng: random.Random | None = None,
    ) -> None:
        self._handler = handler
        self._interval = interval
        self._probability = probability
        self._rng = rng or random.Random()
        self._types = tuple(GATED_TYPES)
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> dict[str, Any] | None:
        """Run one draw; returns the emitted payload, if any."""

        if self._rng.random() >= self._probability:
            return None
        payload = synthesize(self._rng.choice(self._types))
        await self._handler(payload)
        return payload

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.tick()
            except Exception:
                logger.exception("Synthetic notification draw failed")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="notification-generator")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

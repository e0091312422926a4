"""REST collaborator used for the initial notification list population."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from app.schemas import NotificationFeedResponse
from threadline.errors import FeedUnavailableError


logger = logging.getLogger(__name__)


class NotificationFeedClient:
    """Fetch the signed-in user's notifications from ``GET /notifications``."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._timeout = timeout
        self._transport = transport

    async def fetch(self, token: str) -> list[dict[str, Any]]:
        headers = {"Authorization": f"Bearer {token}"}
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(self._endpoint, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Notification feed request failed", extra={"endpoint": self._endpoint})
            raise FeedUnavailableError("Notification feed is unavailable") from exc

        try:
            body = NotificationFeedResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise FeedUnavailableError("Notification feed returned an unexpected body") from exc
        if not body.status:
            raise FeedUnavailableError(body.message or "Notification feed rejected the request")
        return body.notifications

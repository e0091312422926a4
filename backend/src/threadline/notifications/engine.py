"""Notification list, per-type gating and inbound merge."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from pydantic import ValidationError

from app.models.enums import NotificationType, SocketEvent
from app.monitoring.metrics import notifications_total, realtime_events_total
from app.schemas import Notification, NotificationCandidate, NotificationSettings

from ..realtime.transport import SocketClient


logger = logging.getLogger(__name__)


# Types missing from this table are never gated.
GATED_TYPES: Mapping[NotificationType, str] = {
    NotificationType.LIKE: "likes",
    NotificationType.COMMENT: "comments",
    NotificationType.ORDER: "sales",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationEngine:
    """Own the notification list and merge every inbound source into it.

    Local triggers, socket events, the synthetic generator and the REST feed
    all end up in :meth:`add_notification`, so gating and deduplication behave
    the same for each origin.
    """

    def __init__(
        self,
        settings: NotificationSettings | None = None,
        *,
        socket: SocketClient | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings if settings is not None else NotificationSettings()
        self._notifications: list[Notification] = []
        self._clock = clock
        if socket is not None:
            self.attach(socket)

    def attach(self, socket: SocketClient) -> None:
        socket.on(SocketEvent.NOTIFICATION, self.handle_inbound)

    @property
    def settings(self) -> NotificationSettings:
        return self._settings

    @property
    def notifications(self) -> list[Notification]:
        return list(self._notifications)

    @property
    def unread_count(self) -> int:
        return sum(1 for notification in self._notifications if not notification.read)

    def get(self, notification_id: str) -> Notification | None:
        for notification in self._notifications:
            if notification.id == notification_id:
                return notification
        return None

    def is_enabled(self, notification_type: NotificationType) -> bool:
        flag = GATED_TYPES.get(NotificationType(notification_type))
        if flag is None:
            return True
        return bool(getattr(self._settings, flag))

    def update_settings(self, **changes: Any) -> NotificationSettings:
        """Apply a partial settings update; only affects notifications created afterwards."""

        self._settings = NotificationSettings.model_validate({**self._settings.model_dump(), **changes})
        return self._settings

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def add_notification(
        self, candidate: NotificationCandidate | Mapping[str, Any]
    ) -> Notification | None:
        if not isinstance(candidate, NotificationCandidate):
            candidate = NotificationCandidate.model_validate(candidate)

        if not self.is_enabled(candidate.type):
            notifications_total.labels(candidate.type.value, "suppressed").inc()
            logger.debug("Notification type disabled; not created", extra={"type": candidate.type.value})
            return None

        if candidate.id is not None and self.get(candidate.id) is not None:
            notifications_total.labels(candidate.type.value, "duplicate").inc()
            return None

        notification = Notification(
            id=candidate.id or uuid.uuid4().hex,
            type=candidate.type,
            title=candidate.title,
            message=candidate.message,
            timestamp=candidate.timestamp or self._clock(),
            read=bool(candidate.read),
            avatar=candidate.avatar,
            post_image=candidate.post_image,
            action_url=candidate.action_url,
            data=candidate.data,
        )
        self._notifications.insert(0, notification)
        notifications_total.labels(candidate.type.value, "created").inc()
        return notification

    async def handle_inbound(self, payload: Any) -> Notification | None:
        """Entry point shared by the socket ``notification`` event and the generator."""

        try:
            candidate = NotificationCandidate.model_validate(payload)
        except ValidationError:
            logger.warning(
                "Discarded malformed realtime payload", extra={"event": SocketEvent.NOTIFICATION.value}
            )
            return None
        notification = self.add_notification(candidate)
        realtime_events_total.labels(
            "notification", "in", "insert" if notification is not None else "skip"
        ).inc()
        return notification

    def populate(self, records: Iterable[Mapping[str, Any]]) -> int:
        """Merge fetched records, oldest last, through :meth:`add_notification`."""

        created = 0
        # the feed lists newest first while add_notification prepends
        for record in reversed(list(records)):
            try:
                candidate = NotificationCandidate.model_validate(record)
            except ValidationError:
                logger.warning("Skipped malformed notification record", extra={"record_id": record.get("_id")})
                continue
            if self.add_notification(candidate) is not None:
                created += 1
        return created

    async def fetch_notifications(self, feed: Any, token: str) -> int:
        records = await feed.fetch(token)
        created = self.populate(records)
        logger.info("Populated notifications from feed", extra={"fetched": len(records), "created": created})
        return created

    # ------------------------------------------------------------------
    # Read state and removal
    # ------------------------------------------------------------------
    def mark_as_read(self, notification_id: str) -> bool:
        for index, notification in enumerate(self._notifications):
            if notification.id != notification_id:
                continue
            if notification.read:
                return False
            self._notifications[index] = notification.model_copy(update={"read": True})
            return True
        return False

    def mark_all_as_read(self) -> int:
        changed = 0
        for index, notification in enumerate(self._notifications):
            if not notification.read:
                self._notifications[index] = notification.model_copy(update={"read": True})
                changed += 1
        return changed

    def delete(self, notification_id: str) -> bool:
        remaining = [n for n in self._notifications if n.id != notification_id]
        removed = len(remaining) != len(self._notifications)
        self._notifications = remaining
        return removed

    def clear_all(self) -> None:
        self._notifications = []

    def reset(self) -> None:
        """Forget everything tied to the signed-in user."""

        self._notifications = []
        self._settings = NotificationSettings()

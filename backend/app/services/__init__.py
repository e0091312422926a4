"""Collaborator services used by the sync client."""

from .notification_feed import NotificationFeedClient

__all__ = ["NotificationFeedClient"]

"""Notification list management and inbound sources."""

from .engine import GATED_TYPES, NotificationEngine
from .generator import DEFAULT_AVATAR, NotificationGenerator, synthesize

__all__ = ["DEFAULT_AVATAR", "GATED_TYPES", "NotificationEngine", "NotificationGenerator", "synthesize"]

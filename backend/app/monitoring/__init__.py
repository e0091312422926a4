"""Monitoring helpers and metric registry for the sync client."""

from . import metrics, registry

__all__ = ["metrics", "registry"]

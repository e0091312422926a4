"""Metric definitions for the messaging and notification sync engines."""

from __future__ import annotations

from .registry import registry


realtime_events_total = registry.counter(
    "sync_realtime_events_total",
    "Count of socket events processed or emitted by the sync client.",
    label_names=("topic", "direction", "action"),
)

socket_connected = registry.gauge(
    "sync_socket_connected",
    "Whether the push transport is currently connected (1) or not (0).",
)

socket_registrations_total = registry.counter(
    "sync_socket_registrations_total",
    "Number of register events emitted to the push endpoint.",
)

message_status_transitions_total = registry.counter(
    "sync_message_status_transitions_total",
    "Status transitions requested on messages, by target status and outcome.",
    label_names=("status", "outcome"),
)

store_conflicts_total = registry.counter(
    "sync_store_conflicts_total",
    "Store violations absorbed by the engines (duplicate ids, unknown conversations).",
    label_names=("store", "kind"),
)

notifications_total = registry.counter(
    "sync_notifications_total",
    "Notifications offered to the notification engine, by type and outcome.",
    label_names=("type", "outcome"),
)

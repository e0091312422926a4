"""Push transport used by the sync engines."""

from .transport import REGISTER_EVENT, SUPPORTED_EVENTS, SocketClient, SocketConfig

__all__ = [
    "REGISTER_EVENT",
    "SUPPORTED_EVENTS",
    "SocketClient",
    "SocketConfig",
]

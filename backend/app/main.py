"""Command line runner that keeps a sync runtime connected until interrupted."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import logging.config
import signal
import sys
from typing import Any

from app.config import get_settings
from app.monitoring.registry import registry
from threadline.runtime import SyncRuntime


LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        }
    },
    "handlers": {
        "default": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        }
    },
    "root": {
        "handlers": ["default"],
        "level": "INFO",
    },
    "loggers": {
        "threadline.realtime.transport": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        }
    },
}


logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    config = {**LOGGING_CONFIG, "root": {**LOGGING_CONFIG["root"], "level": level}}
    logging.config.dictConfig(config)


async def run(args: argparse.Namespace) -> None:
    settings = get_settings()
    if args.socket_url:
        settings = settings.model_copy(update={"socket_url": args.socket_url})
    if args.generate:
        settings = settings.model_copy(update={"notification_generator_enabled": True})

    runtime = SyncRuntime(settings)
    stop_event = asyncio.Event()

    def _stop(signum: int, _frame: Any) -> None:  # pragma: no cover - signal handling
        logger.warning("received signal %s, stopping sync client", signum)
        runtime_loop.call_soon_threadsafe(stop_event.set)

    runtime_loop = asyncio.get_running_loop()
    handlers: dict[int, Any] = {}
    for signum in (signal.SIGINT, signal.SIGTERM):  # pragma: no cover - platform specific
        with contextlib.suppress(ValueError):
            handlers[signum] = signal.getsignal(signum)
            signal.signal(signum, _stop)

    try:
        async with runtime:
            await runtime.start(args.user_id, token=args.token)
            await stop_event.wait()
    finally:
        for signum, previous in handlers.items():  # pragma: no cover - best effort cleanup
            with contextlib.suppress(ValueError):
                signal.signal(signum, previous)

    logger.info(
        "sync client stopped: %s notifications, %s unread",
        len(runtime.notifications.notifications),
        runtime.notifications.unread_count,
    )


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("user_id", help="Identifier of the signed-in user to register")
    parser.add_argument("--token", default=None, help="Bearer token for the initial notification fetch")
    parser.add_argument("--socket-url", default=None, help="Override the push endpoint URL")
    parser.add_argument(
        "--generate",
        action="store_true",
        help="Feed synthetic notifications while connected",
    )
    parser.add_argument(
        "--dump-metrics",
        action="store_true",
        help="Print the metrics exposition text on exit",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log verbosity level (defaults to the configured level)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    settings = get_settings()
    configure_logging(args.log_level or ("DEBUG" if settings.debug else settings.log_level))

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:  # pragma: no cover - manual interruption
        logger.warning("interrupted by user")
        return 130

    if args.dump_metrics:
        print(registry.render(), end="")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import logging
import signal
import threading
from types import FrameType

from .config import Settings, get_settings
from .errors import ShutdownRequested
from .logging import configure_logging
from .server import build_server

log = logging.getLogger(__name__)


def _raise_shutdown(signum: int, frame: FrameType | None) -> None:
    # A second signal must not interrupt the snapshot flush.
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    signal.signal(signal.SIGTERM, signal.SIG_IGN)
    raise ShutdownRequested(signum)


def install_signal_handlers() -> None:
    """Turn SIGINT/SIGTERM into :class:`ShutdownRequested`.

    The exception unwinds the listener loop so its ``finally`` block flushes
    the snapshot. Handlers can only be installed from the main thread.
    """

    if threading.current_thread() is not threading.main_thread():
        return
    signal.signal(signal.SIGINT, _raise_shutdown)
    signal.signal(signal.SIGTERM, _raise_shutdown)


def run(settings: Settings | None = None) -> None:
    """Load the snapshot, bind and serve until a shutdown signal arrives."""

    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)

    server = build_server(settings)
    log.info(
        "db_server starting",
        extra={
            "event_type": "starting",
            "keys_total": len(server.store),
            "snapshot": settings.snapshot_path,
            "responses_dir": settings.responses_dir,
        },
    )
    # A bind failure leaves the snapshot untouched.
    server.bind()

    try:
        install_signal_handlers()
        server.serve_forever()
    except ShutdownRequested as exc:
        log.info("shutdown_requested", extra={"event_type": "shutdown", "signum": exc.signum})
    finally:
        server.close()


def main() -> None:
    run()

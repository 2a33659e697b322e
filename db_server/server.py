from __future__ import annotations

import contextlib
import logging
import socket
import time

from .config import Settings
from .errors import BindError, ErrorCategory
from .handler import ConnectionHandler
from .metrics import store_keys
from .persistence import SnapshotManager
from .responses import ResponseRenderer
from .store import KeyValueStore

logger = logging.getLogger(__name__)


class KVServer:
    """Sequential TCP listener for the key-value protocol.

    One connection is read, handled and answered before the next ``accept``.
    The server owns the store and flushes it to the snapshot exactly once, in
    :meth:`close`.
    """

    def __init__(
        self,
        settings: Settings,
        store: KeyValueStore,
        handler: ConnectionHandler,
        snapshots: SnapshotManager,
    ) -> None:
        self.settings = settings
        self.store = store
        self.handler = handler
        self.snapshots = snapshots
        self._sock: socket.socket | None = None
        self._stopping = False
        self._closed = False
        self.accept_retry_delay = 0.1

    @property
    def address(self) -> tuple[str, int]:
        if self._sock is None:
            return self.settings.address
        host, port = self._sock.getsockname()[:2]
        return host, port

    def bind(self) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind(self.settings.address)
            sock.listen()
        except OSError as exc:
            sock.close()
            logger.error(
                "bind_failed",
                extra={
                    "event_type": "bind_failed",
                    "error_category": ErrorCategory.NETWORK.value,
                },
            )
            raise BindError(self.settings.address, str(exc)) from exc
        self._sock = sock
        host, port = self.address
        logger.info("listening on %s:%s", host, port, extra={"event_type": "listening"})

    def serve_forever(self) -> None:
        """Accept and handle connections until :meth:`stop` is called.

        The snapshot is flushed on the way out whether the loop ends normally
        or unwinds with an exception.
        """

        if self._sock is None:
            self.bind()
        assert self._sock is not None
        try:
            store_keys.set(len(self.store))
            while not self._stopping:
                try:
                    conn, peer = self._sock.accept()
                except OSError as exc:
                    if self._stopping or self._closed:
                        break
                    logger.warning(
                        "accept_failed: %s",
                        exc,
                        extra={
                            "event_type": "accept_failed",
                            "reason": str(exc),
                            "error_category": ErrorCategory.NETWORK.value,
                        },
                    )
                    # Out of descriptors and similar conditions persist briefly.
                    time.sleep(self.accept_retry_delay)
                    continue
                if self._stopping:
                    conn.close()
                    break
                self.handler.handle(conn, peer)
        finally:
            self.close()

    def stop(self) -> None:
        """Ask :meth:`serve_forever` to return after the current request.

        A blocked ``accept`` is woken by a throwaway connection to the
        listener itself.
        """

        self._stopping = True
        if self._sock is None or self._closed:
            return
        with contextlib.suppress(OSError):
            socket.create_connection(self.address, timeout=1.0).close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stopping = True
        if self._sock is not None:
            self._sock.close()
        logger.info(
            "flushing data to disk",
            extra={"event_type": "shutdown", "keys_total": len(self.store)},
        )
        if self.snapshots.save(self.store.snapshot()):
            logger.info("flushed data to disk", extra={"event_type": "shutdown"})

    def __enter__(self) -> KVServer:
        self.bind()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def build_server(settings: Settings) -> KVServer:
    """Load the snapshot and wire the store, renderer and handler together."""

    snapshots = SnapshotManager(settings.snapshot_path, strict=settings.snapshot_strict)
    store = KeyValueStore(snapshots.load())
    handler = ConnectionHandler(
        store, ResponseRenderer(settings.responses_dir), buffer_size=settings.buffer_size
    )
    return KVServer(settings, store, handler, snapshots)

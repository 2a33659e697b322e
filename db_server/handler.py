from __future__ import annotations

import contextlib
import logging
import socket
from enum import Enum

from .errors import (
    ErrorCategory,
    NoRequestFound,
    NoResponseFound,
    ParseError,
    UnrecognizedRequest,
)
from .metrics import (
    request_latency_ms,
    requests_dropped_total,
    requests_rejected_total,
    requests_total,
    response_failures_total,
    store_keys,
)
from .protocol import Get, parse_request
from .responses import ResponseRenderer
from .store import KeyValueStore, NotFound, Outcome

logger = logging.getLogger(__name__)


class HandleResult(str, Enum):
    RESPONDED = "responded"
    # Unrecognized request, closed without a response.
    DROPPED = "dropped"
    # Malformed or empty request, answered with a 404.
    REJECTED = "rejected"
    FAILED = "failed"


class ConnectionHandler:
    """Run one request through parse, store and render.

    Every per-request failure stays local to the connection: unrecognized
    requests are dropped, malformed or empty ones get a 404 and missing body
    files or socket errors close the connection. Nothing raised here should
    stop the listener.
    """

    def __init__(
        self,
        store: KeyValueStore,
        renderer: ResponseRenderer,
        *,
        buffer_size: int = 1024,
        drain_timeout: float = 0.1,
        drain_limit: int = 64 * 1024,
    ) -> None:
        self.store = store
        self.renderer = renderer
        self.buffer_size = buffer_size
        self.drain_timeout = drain_timeout
        self.drain_limit = drain_limit

    def handle(self, conn: socket.socket, peer: object = None) -> HandleResult:
        requests_total.inc()
        try:
            with request_latency_ms.time():
                result = self._handle(conn, peer)
        finally:
            self._discard_unread(conn)
            conn.close()
        logger.debug(
            "request_done",
            extra={
                "event_type": "request_done",
                "peer": peer,
                "status": result.value,
                "latency_ms": request_latency_ms.last_ms,
            },
        )
        return result

    def _handle(self, conn: socket.socket, peer: object) -> HandleResult:
        try:
            buffer = conn.recv(self.buffer_size)
        except OSError as exc:
            return self._socket_failed("read_failed", peer, exc)

        outcome: Outcome
        result = HandleResult.RESPONDED
        try:
            command = parse_request(buffer)
        except UnrecognizedRequest as exc:
            requests_dropped_total.inc()
            logger.info(
                "request_unrecognized",
                extra={
                    "event_type": "request_unrecognized",
                    "peer": peer,
                    "line": exc.line[:80],
                    "error_category": ErrorCategory.PROTOCOL.value,
                },
            )
            return HandleResult.DROPPED
        except (ParseError, NoRequestFound) as exc:
            requests_rejected_total.inc()
            logger.warning(
                "request_rejected code=%s: %s",
                getattr(exc, "code", None),
                exc,
                extra={
                    "event_type": "request_rejected",
                    "peer": peer,
                    "reason": str(exc),
                    "code": getattr(exc, "code", None),
                    "error_category": ErrorCategory.PROTOCOL.value,
                },
            )
            outcome = NotFound()
            result = HandleResult.REJECTED
        else:
            outcome = self.store.apply(command)
            store_keys.set(len(self.store))
            logger.debug(
                "request_applied",
                extra={
                    "event_type": "request_applied",
                    "peer": peer,
                    "command": "get" if isinstance(command, Get) else "set",
                    "key": command.key,
                },
            )

        try:
            payload = self.renderer.render(outcome)
        except NoResponseFound as exc:
            response_failures_total.inc()
            logger.error(
                "response_unavailable: %s",
                exc,
                extra={
                    "event_type": "response_unavailable",
                    "peer": peer,
                    "reason": str(exc),
                    "error_category": ErrorCategory.CONFIG.value,
                },
            )
            return HandleResult.FAILED

        try:
            conn.sendall(payload)
        except OSError as exc:
            return self._socket_failed("write_failed", peer, exc)
        return result

    def _discard_unread(self, conn: socket.socket) -> None:
        """Half-close and read off whatever the client sent past the buffer.

        Closing a socket with unread input makes the kernel send a reset,
        which can destroy a response that was already written.
        """

        with contextlib.suppress(OSError):
            conn.shutdown(socket.SHUT_WR)
            conn.settimeout(self.drain_timeout)
            remaining = self.drain_limit
            while remaining > 0:
                chunk = conn.recv(min(4096, remaining))
                if not chunk:
                    break
                remaining -= len(chunk)

    def _socket_failed(self, event: str, peer: object, exc: OSError) -> HandleResult:
        response_failures_total.inc()
        logger.warning(
            "%s: %s",
            event,
            exc,
            extra={
                "event_type": event,
                "peer": peer,
                "reason": str(exc),
                "error_category": ErrorCategory.NETWORK.value,
            },
        )
        return HandleResult.FAILED

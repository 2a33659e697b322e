from __future__ import annotations

import logging
import socket
from dataclasses import dataclass

from .errors import ErrorCategory

logger = logging.getLogger(__name__)


@dataclass
class Reply:
    status: int
    reason: str
    body: str


def parse_reply(raw: bytes) -> Reply | None:
    """Split a raw server reply into status and body.

    Returns ``None`` when the server closed the connection without answering.
    """

    if not raw:
        return None
    text = raw.decode("utf-8", errors="replace")
    head, _, body = text.partition("\r\n\r\n")
    parts = head.split(" ", 2)
    if len(parts) < 2 or not parts[1].isdigit():
        raise ValueError(f"unexpected status line: {head!r}")
    reason = parts[2] if len(parts) > 2 else ""
    return Reply(status=int(parts[1]), reason=reason, body=body)


class KVClient:
    """Blocking client for the key-value server.

    Every call opens a fresh connection, sends one request line and reads
    until the server closes the socket.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 4000, *, timeout: float = 5.0):
        self.host = host
        self.port = port
        self.timeout = timeout

    def request(self, line: str) -> Reply | None:
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout) as sock:
                sock.sendall(f"{line}\r\n".encode("utf-8"))
                # Signal end of request so the server does not wait to drain.
                sock.shutdown(socket.SHUT_WR)
                chunks: list[bytes] = []
                while True:
                    chunk = sock.recv(4096)
                    if not chunk:
                        break
                    chunks.append(chunk)
        except OSError:
            logger.warning(
                "request_failed",
                extra={"event_type": "request_failed", "error_category": ErrorCategory.NETWORK.value},
            )
            raise
        return parse_reply(b"".join(chunks))

    def get(self, key: str) -> Reply | None:
        return self.request(f"GET /get?key={key} HTTP/1.1")

    def set(self, key: str, value: str) -> Reply | None:
        return self.request(f"GET /set?{key}={value} HTTP/1.1")

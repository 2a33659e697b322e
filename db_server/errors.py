from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    """Classification for error logging."""

    NETWORK = "network"
    PROTOCOL = "protocol"
    PERSISTENCE = "persistence"
    CONFIG = "config"


class ServerError(Exception):
    """Base class for every error raised by the server."""


class BindError(ServerError):
    """The listening socket could not be bound."""

    def __init__(self, address: tuple[str, int], reason: str) -> None:
        self.address = address
        self.reason = reason
        super().__init__(f"failed to bind to {address[0]}:{address[1]}: {reason}")


class NoRequestFound(ServerError):
    """The client sent nothing before the read returned."""

    def __init__(self) -> None:
        super().__init__("received no request from client")


class UnrecognizedRequest(ServerError):
    """The first request line matches neither the get nor the set prefix."""

    def __init__(self, line: str) -> None:
        self.line = line
        super().__init__("got an invalid request")


class ParseError(ServerError):
    """A recognized request could not be parsed.

    ``code`` identifies the failing check so callers and tests can tell the
    cases apart without matching on message text.
    """

    code: int = 0

    def __init__(self, message: str, code: int | None = None) -> None:
        if code is not None:
            self.code = code
        super().__init__(message)


class MalformedRequest(ParseError):
    def __init__(self, code: int) -> None:
        super().__init__(f"request was improperly formatted: {code}", code=code)


class MissingKey(ParseError):
    def __init__(self) -> None:
        super().__init__("no key found in request", code=0)


class NoResponseFound(ServerError):
    """A response body file could not be read."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__(f"failed to load response body {filename!r}")


class SnapshotLoadError(ServerError):
    """The snapshot exists but cannot be read or decoded."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"failed to load persisted data from {path}: {reason}")


class ShutdownRequested(ServerError):
    """Raised from a signal handler to unwind the listener loop."""

    def __init__(self, signum: int) -> None:
        self.signum = signum
        super().__init__(f"shutdown requested by signal {signum}")

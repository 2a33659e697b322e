"""Parser for the line-oriented request protocol.

Requests look like HTTP request lines but only two shapes are understood::

    GET /get?key=<key> ...
    GET /set?<key>=<value> ...

Only the first line of the buffer matters. There is no URL decoding and no
header parsing; anything after the first whitespace on the line is ignored.
"""

from __future__ import annotations

from ..errors import MalformedRequest, MissingKey, NoRequestFound, UnrecognizedRequest
from .commands import Command, Get, Set

GET_HEADER = "GET /get?key="
SET_HEADER = "GET /set?"


def _first_token(text: str) -> str | None:
    tokens = text.split(None, 1)
    return tokens[0] if tokens else None


def parse_get(line: str) -> str:
    parts = line.split("key=")
    if len(parts) != 2:
        raise MalformedRequest(code=1)
    key = _first_token(parts[1])
    if key is None:
        raise MissingKey()
    return key


def parse_set(line: str) -> tuple[str, str]:
    parts = line.split("set?")
    if len(parts) != 2:
        raise MalformedRequest(code=2)
    pair = _first_token(parts[1])
    if pair is None:
        raise MalformedRequest(code=4)
    kv = pair.split("=")
    if len(kv) != 2:
        raise MalformedRequest(code=3)
    return kv[0], kv[1]


def parse_line(line: str) -> Command:
    """Turn a single request line into a :class:`Get` or :class:`Set`.

    Raises :class:`UnrecognizedRequest` for lines matching neither prefix and a
    :class:`~db_server.errors.ParseError` subclass for recognized lines that
    are malformed.
    """

    if line.startswith(GET_HEADER):
        return Get(parse_get(line))
    if line.startswith(SET_HEADER):
        key, value = parse_set(line)
        return Set(key, value)
    raise UnrecognizedRequest(line)


def parse_request(buffer: bytes) -> Command:
    """Parse the first line of a raw request buffer."""

    text = buffer.decode("utf-8", errors="replace").rstrip("\x00")
    if not text:
        raise NoRequestFound()
    # Lines end at "\n" or "\r\n" only.
    line = text.split("\n", 1)[0]
    if line.endswith("\r"):
        line = line[:-1]
    return parse_line(line)

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Union

from .protocol import Command, Get, Set

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Found:
    value: str


@dataclass(frozen=True)
class Stored:
    pass


@dataclass(frozen=True)
class NotFound:
    pass


Outcome = Union[Found, Stored, NotFound]


class KeyValueStore:
    """In-memory string to string mapping.

    A set on an existing key replaces the previous value outright. The store
    has no lock; it is owned by the server and only touched from the listener
    loop.
    """

    def __init__(self, data: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(data or {})

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def get(self, key: str) -> Found | NotFound:
        value = self._data.get(key)
        if value is None:
            logger.info("get_miss", extra={"command": "get", "key": key, "status": 404})
            return NotFound()
        logger.info("get_hit", extra={"command": "get", "key": key, "status": 200})
        return Found(value)

    def set(self, key: str, value: str) -> Stored:
        self._data[key] = value
        logger.info(
            "set",
            extra={"command": "set", "key": key, "status": 200, "keys_total": len(self._data)},
        )
        return Stored()

    def apply(self, command: Command) -> Outcome:
        if isinstance(command, Get):
            return self.get(command.key)
        if isinstance(command, Set):
            return self.set(command.key, command.value)
        raise TypeError(f"unsupported command: {command!r}")

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)

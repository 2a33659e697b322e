from __future__ import annotations

import os
from pathlib import Path

from .errors import NoResponseFound
from .store import Found, NotFound, Outcome, Stored

SUCCESS_STATUS = "HTTP/1.1 200 OK\r\n\r\n"
NOT_FOUND_STATUS = "HTTP/1.1 404 NOT FOUND\r\n\r\n"

GET_SUCCESS_FILE = "get_success.html"
SET_SUCCESS_FILE = "set_success.html"
NOT_FOUND_FILE = "404.html"


class ResponseRenderer:
    """Build response bytes for an :data:`~db_server.store.Outcome`.

    Bodies come from static HTML files in ``directory``. They are read on every
    render, so edits on disk take effect without a restart.
    """

    def __init__(self, directory: str | os.PathLike[str] = ".") -> None:
        self.directory = Path(directory)

    def _body(self, filename: str) -> str:
        try:
            return (self.directory / filename).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise NoResponseFound(filename) from exc

    def render(self, outcome: Outcome) -> bytes:
        if isinstance(outcome, Found):
            text = SUCCESS_STATUS + self._body(GET_SUCCESS_FILE) + outcome.value
        elif isinstance(outcome, Stored):
            text = SUCCESS_STATUS + self._body(SET_SUCCESS_FILE)
        elif isinstance(outcome, NotFound):
            text = NOT_FOUND_STATUS + self._body(NOT_FOUND_FILE)
        else:
            raise TypeError(f"unsupported outcome: {outcome!r}")
        return text.encode("utf-8")

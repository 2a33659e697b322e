"""Snapshot persistence for the key-value store.

The snapshot is a single JSON object mapping keys to values. It is read once
when the server starts and rewritten once when it shuts down; nothing is
persisted in between.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path

from .errors import ErrorCategory, SnapshotLoadError

logger = logging.getLogger(__name__)


def _decode(raw: str, path: Path) -> dict[str, str]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SnapshotLoadError(str(path), f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SnapshotLoadError(str(path), "top-level value is not an object")
    # Values written by other tools may not be strings; keep their JSON text.
    return {
        str(key): value if isinstance(value, str) else json.dumps(value, separators=(",", ":"))
        for key, value in data.items()
    }


class SnapshotManager:
    """Load and save the store's mapping to a JSON file.

    A missing file is a normal first run and yields an empty mapping. A file
    that exists but cannot be read or decoded raises
    :class:`SnapshotLoadError` when ``strict`` is set; otherwise the problem is
    logged and an empty mapping is returned.
    """

    def __init__(self, path: str | os.PathLike[str], *, strict: bool = True) -> None:
        self.path = Path(path)
        self.strict = strict

    def load(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("snapshot_missing", extra={"event_type": "snapshot_missing"})
            return {}
        except (OSError, UnicodeDecodeError) as exc:
            error = SnapshotLoadError(str(self.path), str(exc))
            return self._fail(error)

        try:
            data = _decode(raw, self.path)
        except SnapshotLoadError as exc:
            return self._fail(exc)

        logger.info(
            "snapshot_loaded",
            extra={"event_type": "snapshot_loaded", "keys_total": len(data)},
        )
        return data

    def _fail(self, error: SnapshotLoadError) -> dict[str, str]:
        if self.strict:
            raise error
        logger.warning(
            "snapshot_unreadable path=%s: %s",
            self.path,
            error.reason,
            extra={
                "event_type": "snapshot_unreadable",
                "error_category": ErrorCategory.PERSISTENCE.value,
                "path": str(self.path),
                "reason": error.reason,
            },
        )
        return {}

    def save(self, mapping: Mapping[str, str]) -> bool:
        """Replace the snapshot with ``mapping``.

        The data is written to a temporary file next to the snapshot and moved
        into place, so readers never observe a partial file. Failures are
        logged at ERROR and reported through the return value.
        """

        logger.info(
            "snapshot_flushing",
            extra={"event_type": "snapshot_flushing", "keys_total": len(mapping)},
        )
        tmp_name: str | None = None
        try:
            payload = json.dumps(dict(mapping), ensure_ascii=False)
            directory = self.path.parent
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as exc:
            logger.error(
                "snapshot_write_failed path=%s keys=%d: %s",
                self.path,
                len(mapping),
                exc,
                extra={
                    "event_type": "snapshot_write_failed",
                    "error_category": ErrorCategory.PERSISTENCE.value,
                    "keys_total": len(mapping),
                    "path": str(self.path),
                    "reason": str(exc),
                },
            )
            return False
        finally:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)

        logger.info(
            "snapshot_flushed",
            extra={"event_type": "snapshot_flushed", "keys_total": len(mapping)},
        )
        return True

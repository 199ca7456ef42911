"""JSON file rate limit store.

The whole store is one small JSON object. Every write replaces the file
atomically (temp file + rename) so a crash never leaves a half-written
record behind.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Mapping

from app.adapters.rate_limit.base import AbstractRateLimitStore

logger = logging.getLogger(__name__)


class JsonFileRateLimitStore(AbstractRateLimitStore):
    """Key/value store persisted to a JSON file.

    An unreadable or malformed file is treated as an empty store; the limiter
    then falls back to its defaults on the next load.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = threading.RLock()
        self._values: dict[str, str] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning(
                "rate_limit_store.unreadable",
                extra={"path": str(self._path), "error": str(exc)},
            )
            return {}

        if not isinstance(raw, dict):
            logger.warning(
                "rate_limit_store.unexpected_shape",
                extra={"path": str(self._path), "type": type(raw).__name__},
            )
            return {}

        return {str(k): str(v) for k, v in raw.items() if v is not None}

    def _persist_locked(self, values: dict[str, str]) -> None:
        """Write ``values`` with one temp-file replace, then adopt them."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(values, sort_keys=True), encoding="utf-8")
        tmp_path.replace(self._path)
        self._values = values

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, str]) -> None:
        with self._lock:
            self._persist_locked({**self._values, **values})

    def delete(self, key: str) -> None:
        with self._lock:
            if key in self._values:
                remaining = dict(self._values)
                del remaining[key]
                self._persist_locked(remaining)

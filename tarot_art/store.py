"""Durable key-value store and the on-disk artwork directory."""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import threading
from pathlib import Path

from tarot_art.cards import card_filename

logger = logging.getLogger(__name__)


class KeyValueStore:
    """String-keyed store persisted as one JSON document.

    Every write replaces the whole document through a temp file and
    ``os.replace``, so readers see either the old or the new content.
    """

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not contain a JSON object")
        return data

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".store-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def _read_for_update(self) -> dict[str, str]:
        try:
            return self._read()
        except ValueError as exc:
            logger.warning("Discarding unreadable store %s: %s", self.path, exc)
            return {}

    def get_item(self, key: str) -> str | None:
        """Return the stored value, raising ValueError if the document is corrupt."""
        with self._lock:
            return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read_for_update()
            data[key] = value
            self._write(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._read_for_update()
            if data.pop(key, None) is not None:
                self._write(data)


class LocalFileStore:
    """The directory holding downloaded card artwork, one PNG per key."""

    def __init__(self, root: Path):
        self.root = root

    def ensure_directory(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: int | str) -> Path:
        return self.root / card_filename(key)

    def exists(self, path: Path | str) -> bool:
        return Path(path).is_file()

    def delete(self, path: Path | str) -> None:
        Path(path).unlink(missing_ok=True)

    def clear(self) -> None:
        """Remove the whole artwork directory. Failures are logged, not raised."""
        if not self.root.exists():
            return
        try:
            shutil.rmtree(self.root)
        except OSError as exc:
            logger.warning("Could not remove %s: %s", self.root, exc)

"""Cache registry: card id -> locally stored artwork and when it was generated."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone

from tarot_art.store import KeyValueStore

logger = logging.getLogger(__name__)

REGISTRY_KEY = "tarot_art.image_registry"


@dataclass(frozen=True)
class RegistryEntry:
    key: str
    local_path: str
    generated_at: datetime

    def to_json(self) -> dict[str, str]:
        return {"localPath": self.local_path, "generatedAt": self.generated_at.isoformat()}

    @classmethod
    def from_json(cls, key: str, raw: dict) -> RegistryEntry:
        return cls(key, str(raw["localPath"]), datetime.fromisoformat(raw["generatedAt"]))


class CacheRegistry:
    """Durable map of card key -> RegistryEntry.

    Keys are card ids (stored as strings) plus the card back key.  The map
    is held as a JSON string under one key of the KeyValueStore.  Reads that
    hit a missing or corrupt store degrade to "no entry" so callers fall back
    to regenerating instead of failing.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store
        self._lock = threading.Lock()

    def _load(self) -> dict[str, dict]:
        try:
            raw = self.store.get_item(REGISTRY_KEY)
            registry = json.loads(raw) if raw else {}
        except (OSError, ValueError) as exc:
            logger.warning("Image registry unreadable, treating as empty: %s", exc)
            return {}
        if not isinstance(registry, dict):
            logger.warning("Image registry has unexpected shape %s, treating as empty", type(registry).__name__)
            return {}
        return registry

    def _save(self, registry: dict[str, dict]) -> None:
        self.store.set_item(REGISTRY_KEY, json.dumps(registry))

    def entries(self) -> dict[str, RegistryEntry]:
        result = {}
        for key, raw in self._load().items():
            try:
                result[key] = RegistryEntry.from_json(key, raw)
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed registry entry %r", key)
        return result

    def get(self, key: int | str) -> RegistryEntry | None:
        return self.entries().get(str(key))

    def put(self, key: int | str, local_path: str, generated_at: datetime | None = None) -> RegistryEntry | None:
        """Record (or overwrite) the entry for ``key``.

        Returns the written entry, or None if the store could not be written.
        """
        entry = RegistryEntry(str(key), str(local_path), generated_at or datetime.now(timezone.utc))
        with self._lock:
            registry = self._load()
            registry[entry.key] = entry.to_json()
            try:
                self._save(registry)
            except OSError as exc:
                logger.error("Failed to save image registry entry %s: %s", entry.key, exc)
                return None
        return entry

    def delete(self, key: int | str) -> None:
        with self._lock:
            registry = self._load()
            if registry.pop(str(key), None) is not None:
                self._save(registry)

    def list_ids(self) -> list[int]:
        """Card ids with a registry entry, ascending. The card back is excluded."""
        return sorted(int(key) for key in self.entries() if key.isdigit())

    def clear(self) -> None:
        with self._lock:
            self.store.remove_item(REGISTRY_KEY)

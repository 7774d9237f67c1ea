"""Artwork lookup: bundled assets first, then the local cache, else unavailable."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from tarot_art.cards import CARD_BACK_KEY, TOTAL_CARDS
from tarot_art.registry import CacheRegistry
from tarot_art.store import LocalFileStore

_BUNDLED_NAME = re.compile(r"^card-(\d+)\.png$")


@dataclass(frozen=True)
class Embedded:
    ref: str

    @property
    def available(self) -> bool:
        return True


@dataclass(frozen=True)
class LocalFile:
    path: Path

    @property
    def available(self) -> bool:
        return True


@dataclass(frozen=True)
class Unavailable:
    @property
    def available(self) -> bool:
        return False


ResolvedAsset = Embedded | LocalFile | Unavailable


class EmbeddedAssets:
    """Artwork shipped with the application, keyed by card id."""

    def __init__(self, cards: dict[int, str] | None = None, card_back: str | None = None):
        self._cards = {cid: ref for cid, ref in (cards or {}).items() if ref}
        self.card_back = card_back

    @classmethod
    def from_directory(cls, bundle_dir: Path) -> EmbeddedAssets:
        """Index a bundle directory of ``card-<id>.png`` files and ``card-back.png``."""
        cards: dict[int, str] = {}
        card_back = None
        if bundle_dir.is_dir():
            for path in bundle_dir.iterdir():
                if path.name == f"{CARD_BACK_KEY}.png":
                    card_back = str(path)
                    continue
                match = _BUNDLED_NAME.match(path.name)
                if match and int(match.group(1)) < TOTAL_CARDS:
                    cards[int(match.group(1))] = str(path)
        return cls(cards, card_back)

    def has(self, card_id: int) -> bool:
        return card_id in self._cards

    def get(self, card_id: int) -> str | None:
        return self._cards.get(card_id)

    def ids(self) -> list[int]:
        return sorted(self._cards)

    @property
    def count(self) -> int:
        return len(self._cards)


class AssetResolver:
    """Decide which tier, if any, can supply artwork for a card.

    Resolution never raises and never writes: a registry entry whose file has
    vanished simply resolves to Unavailable and is left for the next
    successful generation to overwrite.
    """

    def __init__(self, embedded: EmbeddedAssets, registry: CacheRegistry, files: LocalFileStore):
        self.embedded = embedded
        self.registry = registry
        self.files = files

    def _cached(self, key: int | str) -> ResolvedAsset:
        entry = self.registry.get(key)
        if entry is not None and self.files.exists(entry.local_path):
            return LocalFile(Path(entry.local_path))
        return Unavailable()

    def resolve(self, card_id: int) -> ResolvedAsset:
        ref = self.embedded.get(card_id)
        if ref is not None:
            return Embedded(ref)
        return self._cached(card_id)

    def resolve_back(self) -> ResolvedAsset:
        if self.embedded.card_back is not None:
            return Embedded(self.embedded.card_back)
        return self._cached(CARD_BACK_KEY)

    def known_ids(self) -> list[int]:
        """Ids with bundled artwork or a registry entry whose file exists, ascending."""
        cached = {
            int(key) for key, entry in self.registry.entries().items()
            if key.isdigit() and self.files.exists(entry.local_path)
        }
        return sorted(set(self.embedded.ids()) | cached)

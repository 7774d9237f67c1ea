"""Entry point for callers that display cards: resolve, request, manifest."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass

from tarot_art.assets import AssetResolver, EmbeddedAssets, ResolvedAsset
from tarot_art.cards import TOTAL_CARDS, Card
from tarot_art.config import Settings
from tarot_art.generation_queue import GenerationCallbacks, GenerationQueue
from tarot_art.generator import CardArtGenerator, ImageService, ReplicateImageService
from tarot_art.manifest import Manifestor, ManifestationListener, ManifestationResult
from tarot_art.registry import CacheRegistry
from tarot_art.store import KeyValueStore, LocalFileStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageStats:
    bundled: int
    filesystem: int
    total: int


@dataclass(frozen=True)
class GenerationStats:
    total_generated: int
    total_cards: int
    has_card_back: bool
    bundled_count: int
    filesystem_count: int


class CardImageService:
    """Owns one registry, resolver, generator, queue and manifestor.

    Build one per process and hand it to whatever needs card art.
    """

    def __init__(
        self,
        settings: Settings,
        image_service: ImageService | None = None,
        embedded: EmbeddedAssets | None = None,
    ):
        self.settings = settings
        if embedded is None:
            embedded = (EmbeddedAssets.from_directory(settings.bundle_dir)
                        if settings.bundle_dir else EmbeddedAssets())
        if image_service is None:
            image_service = ReplicateImageService(settings.model, token=settings.api_token or None)

        self.files = LocalFileStore(settings.images_dir)
        self.registry = CacheRegistry(KeyValueStore(settings.store_path))
        self.resolver = AssetResolver(embedded, self.registry, self.files)
        self.generator = CardArtGenerator(image_service, self.registry, self.files, base_seed=settings.base_seed)
        self.queue = GenerationQueue(self.generator, self.resolver)
        self.manifestor = Manifestor(self.generator, self.resolver, pace_seconds=settings.pace_seconds)

        self._cancel = threading.Event()
        self._manifest_lock = threading.Lock()
        self._manifest_active = False

    def resolve(self, card_id: int) -> ResolvedAsset:
        return self.resolver.resolve(card_id)

    def resolve_back(self) -> ResolvedAsset:
        return self.resolver.resolve_back()

    def acquire_for_card(self, card: Card, callbacks: GenerationCallbacks | None = None) -> Future:
        return self.queue.submit(card, callbacks)

    def acquire_card_back(self) -> ResolvedAsset:
        """Resolve the card back, generating it first if needed."""
        handle = self.resolver.resolve_back()
        if handle.available:
            return handle
        self.generator.acquire_back()
        return self.resolver.resolve_back()

    @property
    def manifesting(self) -> bool:
        with self._manifest_lock:
            return self._manifest_active

    def _begin_manifestation(self) -> None:
        with self._manifest_lock:
            if self._manifest_active:
                raise RuntimeError("A manifestation run is already in progress")
            self._manifest_active = True
            self._cancel.clear()

    def _end_manifestation(self) -> None:
        with self._manifest_lock:
            self._manifest_active = False

    def start_manifestation(
        self, catalog: list[Card], listener: ManifestationListener | None = None,
    ) -> Future:
        """Run a manifestation in the background; the future yields its result."""
        future: Future = Future()
        self._begin_manifestation()
        thread = threading.Thread(
            target=self._run_manifestation, args=(catalog, listener, future),
            name="manifestation", daemon=True,
        )
        try:
            thread.start()
        except RuntimeError:
            self._end_manifestation()
            raise
        return future

    def _run_manifestation(self, catalog: list[Card], listener: ManifestationListener | None, future: Future) -> None:
        future.set_running_or_notify_cancel()
        try:
            result = self.manifestor.run(catalog, listener, is_cancelled=self._cancel.is_set)
        except Exception as exc:
            logger.exception("Manifestation run crashed")
            self._end_manifestation()
            future.set_exception(exc)
        else:
            # Done callbacks may start the next run.
            self._end_manifestation()
            future.set_result(result)

    def manifest(self, catalog: list[Card], listener: ManifestationListener | None = None) -> ManifestationResult:
        """Run a manifestation in the calling thread."""
        self._begin_manifestation()
        try:
            return self.manifestor.run(catalog, listener, is_cancelled=self._cancel.is_set)
        finally:
            self._end_manifestation()

    def cancel_manifestation(self) -> None:
        self._cancel.set()

    def missing_cards(self, catalog: list[Card]) -> list[Card]:
        return self.manifestor.missing_cards(catalog)

    def missing_count(self, catalog: list[Card]) -> int:
        return len(self.missing_cards(catalog))

    def storage_stats(self) -> StorageStats:
        embedded = self.resolver.embedded
        filesystem = sum(1 for card_id in self.registry.list_ids() if not embedded.has(card_id))
        return StorageStats(embedded.count, filesystem, embedded.count + filesystem)

    def generation_stats(self) -> GenerationStats:
        storage = self.storage_stats()
        return GenerationStats(
            total_generated=storage.total,
            total_cards=TOTAL_CARDS,
            has_card_back=self.resolver.resolve_back().available,
            bundled_count=storage.bundled,
            filesystem_count=storage.filesystem,
        )

    def delete_card_image(self, card_id: int) -> None:
        entry = self.registry.get(card_id)
        if entry is None:
            return
        self.files.delete(entry.local_path)
        self.registry.delete(card_id)

    def clear_all(self) -> None:
        """Forget every generated image. Registry clear wins even if files linger."""
        self.files.clear()
        self.registry.clear()
        logger.info("Cleared generated card images in %s", self.files.root)

"""Batch acquisition of every missing card ("manifesting the deck")."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from tarot_art.assets import AssetResolver, Embedded, LocalFile, Unavailable
from tarot_art.cards import Card
from tarot_art.generator import CardArtGenerator

logger = logging.getLogger(__name__)

DEFAULT_PACE_SECONDS = 2.0


class ManifestationListener:
    """Receives progress from a manifestation run. Override what you need."""

    def on_start(self, total: int) -> None:
        pass

    def on_progress(self, index: int, total: int, card_name: str) -> None:
        pass

    def on_card_complete(self, card_id: int, path: Path | str | None, success: bool) -> None:
        pass

    def on_error(self, error: Exception, card_name: str) -> None:
        pass

    def on_complete(self, result: ManifestationResult) -> None:
        pass


@dataclass
class ManifestationRun:
    total_missing: int
    current_index: int = 0
    success_count: int = 0
    failed_count: int = 0
    cancel_requested: bool = False


@dataclass(frozen=True)
class ManifestationResult:
    total: int
    success_count: int
    failed_count: int
    cancelled: bool = False


def _never_cancelled() -> bool:
    return False


class Manifestor:
    """Acquire art for all missing cards, one at a time, in catalog order.

    A failed card is counted and skipped; the run carries on with the rest
    of the deck.  Cancellation is checked before each card, so a card that is
    already generating finishes first.  Whatever was saved before a failure
    or cancellation stays saved, which makes re-running pick up only the
    cards still missing.
    """

    def __init__(
        self,
        generator: CardArtGenerator,
        resolver: AssetResolver,
        pace_seconds: float = DEFAULT_PACE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.generator = generator
        self.resolver = resolver
        self.pace_seconds = pace_seconds
        self._sleep = sleep

    def missing_cards(self, cards: list[Card]) -> list[Card]:
        known = set(self.resolver.known_ids())
        return [card for card in cards if card.id not in known]

    def _acquire_one(self, card: Card, run: ManifestationRun, listener: ManifestationListener) -> bool:
        """Process one card. Returns True if the remote service was called."""
        # An interactive request may have produced this card since the run began.
        match self.resolver.resolve(card.id):
            case Embedded(ref=ref):
                run.success_count += 1
                listener.on_card_complete(card.id, ref, True)
                return False
            case LocalFile(path=path):
                run.success_count += 1
                listener.on_card_complete(card.id, path, True)
                return False
            case Unavailable():
                pass

        try:
            path = self.generator.generate(card)
        except Exception as exc:
            logger.error("Failed to manifest %s: %s", card.name, exc)
            run.failed_count += 1
            listener.on_card_complete(card.id, None, False)
            listener.on_error(exc, card.name)
        else:
            run.success_count += 1
            listener.on_card_complete(card.id, path, True)
        return True

    def run(
        self,
        cards: list[Card],
        listener: ManifestationListener | None = None,
        is_cancelled: Callable[[], bool] = _never_cancelled,
    ) -> ManifestationResult:
        listener = listener or ManifestationListener()
        missing = self.missing_cards(cards)
        if not missing:
            result = ManifestationResult(0, 0, 0)
            listener.on_complete(result)
            return result

        run = ManifestationRun(total_missing=len(missing))
        logger.info("Manifesting %d missing cards", run.total_missing)
        listener.on_start(run.total_missing)

        for position, card in enumerate(missing):
            if is_cancelled():
                run.cancel_requested = True
                logger.info("Manifestation cancelled after %d of %d cards", run.current_index, run.total_missing)
                break

            listener.on_progress(run.current_index, run.total_missing, card.name)
            called_remote = self._acquire_one(card, run, listener)
            run.current_index += 1

            if called_remote and position < len(missing) - 1 and self.pace_seconds > 0:
                self._sleep(self.pace_seconds)

        result = ManifestationResult(
            total=run.total_missing,
            success_count=run.success_count,
            failed_count=run.failed_count,
            cancelled=run.cancel_requested,
        )
        logger.info("Manifestation finished: %d succeeded, %d failed", result.success_count, result.failed_count)
        listener.on_complete(result)
        return result

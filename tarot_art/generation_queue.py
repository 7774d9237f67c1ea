"""Single-lane queue for interactive card art requests."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field

from tarot_art.assets import AssetResolver, LocalFile, ResolvedAsset, Unavailable
from tarot_art.cards import Card
from tarot_art.generator import CardArtGenerator

logger = logging.getLogger(__name__)


@dataclass
class GenerationCallbacks:
    on_start: Callable[[], None] | None = None
    on_complete: Callable[[ResolvedAsset], None] | None = None
    on_error: Callable[[Exception], None] | None = None


@dataclass
class GenerationTask:
    card: Card
    callbacks: GenerationCallbacks
    future: Future = field(default_factory=Future)


def _notify(callback: Callable | None, *args) -> None:
    if callback is None:
        return
    try:
        callback(*args)
    except Exception:
        logger.exception("Generation callback %r raised", callback)


class GenerationQueue:
    """Runs card generation one task at a time, in submission order.

    Outbound generation is capped at one request so the upstream rate limits
    are never exceeded, however many cards are requested at once.  The drain
    worker starts on the first submission and exits once the queue is empty.
    """

    def __init__(self, generator: CardArtGenerator, resolver: AssetResolver):
        self.generator = generator
        self.resolver = resolver
        self._tasks: deque[GenerationTask] = deque()
        self._lock = threading.Lock()
        self._worker: threading.Thread | None = None

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._tasks)

    @property
    def is_draining(self) -> bool:
        with self._lock:
            return self._worker is not None

    def submit(self, card: Card, callbacks: GenerationCallbacks | None = None) -> Future:
        """Request art for ``card``.

        The returned future resolves to the card's ResolvedAsset: the existing
        handle if the card already resolves, LocalFile on success, or
        Unavailable on failure.
        """
        callbacks = callbacks or GenerationCallbacks()
        existing = self.resolver.resolve(card.id)
        if existing.available:
            future: Future = Future()
            _notify(callbacks.on_complete, existing)
            future.set_result(existing)
            return future

        task = GenerationTask(card, callbacks)
        with self._lock:
            self._tasks.append(task)
            if self._worker is None:
                self._worker = threading.Thread(target=self._drain, name="card-generation", daemon=True)
                self._worker.start()
        return task.future

    def _drain(self) -> None:
        while True:
            with self._lock:
                if not self._tasks:
                    self._worker = None
                    return
                task = self._tasks.popleft()
            self._run(task)

    def _run(self, task: GenerationTask) -> None:
        if not task.future.set_running_or_notify_cancel():
            return
        card, callbacks = task.card, task.callbacks

        # An earlier task for the same card may have produced it already.
        existing = self.resolver.resolve(card.id)
        if existing.available:
            _notify(callbacks.on_complete, existing)
            task.future.set_result(existing)
            return

        _notify(callbacks.on_start)
        try:
            path = self.generator.generate(card)
        except Exception as exc:
            logger.error("Error generating card image for %s: %s", card.name, exc)
            _notify(callbacks.on_error, exc)
            task.future.set_result(Unavailable())
            return
        handle = LocalFile(path)
        _notify(callbacks.on_complete, handle)
        task.future.set_result(handle)

    def clear(self) -> int:
        """Drop tasks that have not started yet; their futures are cancelled."""
        with self._lock:
            dropped = list(self._tasks)
            self._tasks.clear()
        for task in dropped:
            task.future.cancel()
        return len(dropped)

    def join(self, timeout: float | None = None) -> None:
        """Block until the drain worker has emptied the queue."""
        with self._lock:
            worker = self._worker
        if worker is not None:
            worker.join(timeout)

"""Shared fixtures: a fake image service and stubbed image downloads."""

import threading
import time
from io import BytesIO
from unittest.mock import Mock

import pytest
from PIL import Image

from tarot_art.config import Settings
from tarot_art.service import CardImageService


def make_png_bytes(width: int = 1024, height: int = 1536, color: tuple = (20, 30, 90)) -> bytes:
    img = Image.new("RGB", (width, height), color)
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


class FakeImageService:
    """Stands in for Replicate.

    With ``base_seed=0`` the seed passed in equals the card id, which lets
    tests pick which cards come back empty or raise.
    """

    def __init__(self, empty_ids=(), error_ids=(), delay: float = 0.0):
        self.empty_ids = set(empty_ids)
        self.error_ids = set(error_ids)
        self.delay = delay
        self.calls: list[int] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def generate(self, prompt, width, height, num_outputs=1, seed=None):
        with self._lock:
            self.calls.append(seed)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if seed in self.error_ids:
                raise RuntimeError(f"service exploded for seed {seed}")
            if seed in self.empty_ids:
                return []
            return [f"https://images.test/{seed}.png"]
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def png_bytes() -> bytes:
    return make_png_bytes()


@pytest.fixture
def fake_downloads(monkeypatch, png_bytes):
    """Make every image download succeed with a real PNG."""
    get = Mock(return_value=Mock(status_code=200, content=png_bytes, headers={}))
    monkeypatch.setattr("tarot_art.generator.requests.get", get)
    return get


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(home=tmp_path / "home", api_token="test-token", pace_seconds=0, base_seed=0)


@pytest.fixture
def image_service() -> FakeImageService:
    return FakeImageService()


@pytest.fixture
def service(settings, image_service, fake_downloads) -> CardImageService:
    return CardImageService(settings, image_service=image_service)

"""Replicate API client and single-card art acquisition."""

from __future__ import annotations

import logging
import os
import time
from math import gcd
from pathlib import Path
from typing import Protocol

import requests
from PIL import UnidentifiedImageError

from tarot_art.cards import CARD_BACK_KEY, TOTAL_CARDS, Card
from tarot_art.errors import DownloadError, EmptyGenerationError, GenerationError
from tarot_art.imaging import card_seed, normalize_card_image
from tarot_art.prompts import (
    CARD_ART_STYLE,
    CARD_BACK_PROMPT,
    CARD_HEIGHT,
    CARD_WIDTH,
    build_card_prompt,
    build_negative_prompt,
)
from tarot_art.registry import CacheRegistry
from tarot_art.store import LocalFileStore

logger = logging.getLogger(__name__)

MODELS = {
    "flux-schnell": "black-forest-labs/flux-schnell",
    "sdxl": "stability-ai/sdxl:39ed52f2a78e934b3ba6e2a89f5b1c712de7dfea535525255b1aa35c5565e08b",
}

API_BASE = "https://api.replicate.com/v1"
REDIRECT_STATUSES = (301, 302, 303, 307, 308)


class ImageService(Protocol):
    def generate(
        self, prompt: str, width: int, height: int, num_outputs: int = 1, seed: int | None = None,
    ) -> list[str]:
        """Return zero or more image URLs for the prompt."""
        ...


class ReplicateImageService:
    """Text-to-image through the Replicate HTTP API. One attempt per call."""

    def __init__(self, model: str = "flux-schnell", token: str | None = None, poll_interval: float = 2.0):
        self.model_id = MODELS.get(model, model)
        self._token = token
        self.poll_interval = poll_interval

    def _get_token(self) -> str:
        token = self._token or os.environ.get("REPLICATE_API_TOKEN", "")
        if not token:
            raise RuntimeError("REPLICATE_API_TOKEN environment variable is not set.")
        return token

    def _api_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._get_token()}",
            "Content-Type": "application/json",
            "Prefer": "wait",
        }

    def _build_input(self, prompt: str, width: int, height: int, num_outputs: int, seed: int | None) -> dict:
        if "flux" in self.model_id:
            divisor = gcd(width, height)
            input_data = {
                "prompt": prompt,
                "num_outputs": num_outputs,
                "aspect_ratio": f"{width // divisor}:{height // divisor}",
            }
        else:
            input_data = {
                "prompt": prompt,
                "negative_prompt": build_negative_prompt(),
                "width": width,
                "height": height,
                "num_outputs": num_outputs,
            }
        if seed is not None:
            input_data["seed"] = seed
        return input_data

    def _run_model(self, input_data: dict) -> list[str]:
        """Run the model and return output URLs."""
        headers = self._api_headers()

        # Versioned models (owner/name:version) go through the predictions endpoint
        if ":" in self.model_id:
            _, version = self.model_id.split(":", 1)
            resp = requests.post(
                f"{API_BASE}/predictions",
                headers=headers,
                json={"version": version, "input": input_data},
                timeout=300,
            )
        else:
            resp = requests.post(
                f"{API_BASE}/models/{self.model_id}/predictions",
                headers=headers,
                json={"input": input_data},
                timeout=300,
            )
        resp.raise_for_status()
        data = resp.json()

        # "Prefer: wait" usually blocks until done; poll if it did not.
        while data.get("status") not in ("succeeded", "failed", "canceled"):
            poll_url = (data.get("urls") or {}).get("get")
            if not poll_url:
                raise GenerationError(f"Prediction status {data.get('status')!r} with no poll URL")
            time.sleep(self.poll_interval)
            poll = requests.get(poll_url, headers=headers, timeout=30)
            poll.raise_for_status()
            data = poll.json()

        if data["status"] != "succeeded":
            raise GenerationError(f"Prediction {data['status']}: {data.get('error') or 'unknown error'}")

        output = data.get("output")
        if not output:
            return []
        if isinstance(output, list):
            return [str(u) for u in output if u]
        return [str(output)]

    def generate(
        self, prompt: str, width: int, height: int, num_outputs: int = 1, seed: int | None = None,
    ) -> list[str]:
        return self._run_model(self._build_input(prompt, width, height, num_outputs, seed))


def download_image(url: str, dest: Path) -> None:
    """Download ``url`` to ``dest``, following at most one redirect."""
    try:
        resp = requests.get(url, timeout=120, allow_redirects=False)
        if resp.status_code in REDIRECT_STATUSES:
            location = resp.headers.get("Location")
            if not location:
                raise DownloadError(url, "redirect without location")
            resp = requests.get(location, timeout=120, allow_redirects=False)
    except requests.RequestException as exc:
        raise DownloadError(url, str(exc)) from exc

    if resp.status_code != 200:
        raise DownloadError(url, f"HTTP {resp.status_code}")
    dest.write_bytes(resp.content)


class CardArtGenerator:
    """Turns a card into a local PNG via the image service.

    A registry entry is written only after the image has been fully
    downloaded and moved into place, so a failure never leaves a partial
    entry behind.  Nothing here retries; callers decide whether to try again.
    """

    def __init__(
        self,
        service: ImageService,
        registry: CacheRegistry,
        files: LocalFileStore,
        base_seed: int = 42,
        style: str = CARD_ART_STYLE,
        width: int = CARD_WIDTH,
        height: int = CARD_HEIGHT,
    ):
        self.service = service
        self.registry = registry
        self.files = files
        self.base_seed = base_seed
        self.style = style
        self.width = width
        self.height = height

    def _produce(self, key: int | str, prompt: str, seed: int, label: str) -> Path:
        logger.debug("Prompt for %s: %s", label, prompt)
        try:
            urls = self.service.generate(prompt, self.width, self.height, num_outputs=1, seed=seed)
        except requests.RequestException as exc:
            raise GenerationError(f"Image service request for {label} failed: {exc}") from exc
        if not urls:
            raise EmptyGenerationError(f"Image service returned no image for {label}")

        self.files.ensure_directory()
        dest = self.files.path_for(key)
        partial = dest.with_name(dest.name + ".part")
        try:
            download_image(urls[0], partial)
            try:
                normalize_card_image(partial, self.width, self.height)
            except (UnidentifiedImageError, OSError) as exc:
                raise DownloadError(urls[0], f"not a readable image ({exc})") from exc
            os.replace(partial, dest)
        finally:
            partial.unlink(missing_ok=True)

        self.registry.put(key, str(dest))
        logger.info("Saved artwork for %s to %s", label, dest)
        return dest

    def generate(self, card: Card) -> Path:
        """Generate, download and register art for ``card``. Raises on failure."""
        prompt = build_card_prompt(card, self.style)
        return self._produce(card.id, prompt, card_seed(self.base_seed, card.id), card.name)

    def generate_back(self) -> Path:
        return self._produce(
            CARD_BACK_KEY, CARD_BACK_PROMPT, card_seed(self.base_seed, TOTAL_CARDS), "card back",
        )

    def acquire(self, card: Card) -> Path | None:
        """Like generate(), but report failure as None."""
        try:
            return self.generate(card)
        except Exception as exc:
            logger.error("Error generating card image for %s: %s", card.name, exc)
            return None

    def acquire_back(self) -> Path | None:
        try:
            return self.generate_back()
        except Exception as exc:
            logger.error("Error generating card back image: %s", exc)
            return None

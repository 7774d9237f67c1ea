"""Tests for tarot_art.generator and tarot_art.prompts."""

from unittest.mock import Mock

import pytest
import requests
from PIL import Image

from tarot_art.cards import CARD_BACK_KEY, get_card_by_id
from tarot_art.errors import DownloadError, EmptyGenerationError, GenerationError
from tarot_art.generator import CardArtGenerator, ReplicateImageService, download_image
from tarot_art.prompts import build_card_prompt, build_negative_prompt
from tarot_art.registry import CacheRegistry
from tarot_art.store import KeyValueStore, LocalFileStore

from conftest import FakeImageService


def _response(status: int, content: bytes = b"", headers: dict | None = None) -> Mock:
    return Mock(status_code=status, content=content, headers=headers or {})


@pytest.fixture
def generator_parts(tmp_path):
    registry = CacheRegistry(KeyValueStore(tmp_path / "store.json"))
    files = LocalFileStore(tmp_path / "cards")
    return registry, files


class TestPrompts:

    def test_prompt_is_deterministic(self):
        """Same card, same prompt."""
        card = get_card_by_id(17)
        assert build_card_prompt(card) == build_card_prompt(card)

    def test_major_prompt_contents(self):
        """Major arcana prompts name the card, arcana, keywords and element."""
        prompt = build_card_prompt(get_card_by_id(0))
        assert '"The Fool" tarot card' in prompt
        assert "Major Arcana" in prompt
        assert "symbolizing beginnings, innocence, spontaneity" in prompt
        assert "element of Air" in prompt

    def test_minor_prompt_uses_suit_and_three_keywords(self):
        """Minor arcana prompts carry the suit and only the first three keywords."""
        card = get_card_by_id(36)
        prompt = build_card_prompt(card)
        assert "Minor Arcana Cups" in prompt
        assert f"symbolizing {', '.join(card.keywords[:3])}," in prompt
        assert card.keywords[3] not in prompt

    def test_negative_prompt_extra(self):
        """Extra negative terms are appended."""
        assert build_negative_prompt("hands").endswith(", hands")


class TestReplicateInput:

    def test_flux_uses_aspect_ratio(self):
        """Flux models get an aspect ratio derived from the card size."""
        service = ReplicateImageService("flux-schnell", token="t")
        data = service._build_input("p", 512, 768, 1, seed=7)
        assert data == {"prompt": "p", "num_outputs": 1, "aspect_ratio": "2:3", "seed": 7}

    def test_sdxl_uses_dimensions(self):
        """SDXL gets explicit width/height and a negative prompt."""
        service = ReplicateImageService("sdxl", token="t")
        data = service._build_input("p", 512, 768, 1, seed=None)
        assert (data["width"], data["height"]) == (512, 768)
        assert "negative_prompt" in data
        assert "seed" not in data

    def test_missing_token(self, monkeypatch):
        """Calling the API without a token is a configuration error."""
        monkeypatch.delenv("REPLICATE_API_TOKEN", raising=False)
        with pytest.raises(RuntimeError, match="REPLICATE_API_TOKEN"):
            ReplicateImageService()._api_headers()

    def test_run_model_returns_output_urls(self, monkeypatch):
        """A succeeded prediction yields its output URLs."""
        post = Mock(return_value=Mock(json=Mock(return_value={"status": "succeeded", "output": ["u1"]})))
        monkeypatch.setattr("tarot_art.generator.requests.post", post)
        urls = ReplicateImageService(token="t").generate("p", 512, 768)
        assert urls == ["u1"]
        assert post.call_args.args[0].endswith("/models/black-forest-labs/flux-schnell/predictions")

    def test_run_model_polls_until_done(self, monkeypatch):
        """Non-terminal predictions are polled until they finish."""
        post = Mock(return_value=Mock(json=Mock(return_value={
            "status": "processing", "urls": {"get": "https://api.test/p/1"}})))
        get = Mock(return_value=Mock(json=Mock(return_value={"status": "succeeded", "output": "u2"})))
        monkeypatch.setattr("tarot_art.generator.requests.post", post)
        monkeypatch.setattr("tarot_art.generator.requests.get", get)
        urls = ReplicateImageService(token="t", poll_interval=0).generate("p", 512, 768)
        assert urls == ["u2"]

    def test_failed_prediction_raises(self, monkeypatch):
        """A failed prediction raises GenerationError."""
        post = Mock(return_value=Mock(json=Mock(return_value={"status": "failed", "error": "nsfw"})))
        monkeypatch.setattr("tarot_art.generator.requests.post", post)
        with pytest.raises(GenerationError, match="nsfw"):
            ReplicateImageService(token="t").generate("p", 512, 768)

    def test_empty_output(self, monkeypatch):
        """A prediction without output yields no URLs."""
        post = Mock(return_value=Mock(json=Mock(return_value={"status": "succeeded", "output": None})))
        monkeypatch.setattr("tarot_art.generator.requests.post", post)
        assert ReplicateImageService(token="t").generate("p", 512, 768) == []

    def test_pending_prediction_without_poll_url(self, monkeypatch):
        """A pending prediction with no poll URL is a GenerationError, not a KeyError."""
        post = Mock(return_value=Mock(json=Mock(return_value={"status": "starting"})))
        monkeypatch.setattr("tarot_art.generator.requests.post", post)
        with pytest.raises(GenerationError, match="no poll URL"):
            ReplicateImageService(token="t", poll_interval=0).generate("p", 512, 768)


class TestDownloadImage:

    def test_success(self, tmp_path, monkeypatch):
        """A 200 response is written to disk."""
        monkeypatch.setattr("tarot_art.generator.requests.get", Mock(return_value=_response(200, b"data")))
        dest = tmp_path / "out.png"
        download_image("https://img.test/a", dest)
        assert dest.read_bytes() == b"data"

    def test_follows_one_redirect(self, tmp_path, monkeypatch):
        """A 302 with a Location is followed once."""
        get = Mock(side_effect=[
            _response(302, headers={"Location": "https://cdn.test/a"}),
            _response(200, b"data"),
        ])
        monkeypatch.setattr("tarot_art.generator.requests.get", get)
        download_image("https://img.test/a", tmp_path / "out.png")
        assert get.call_args.args[0] == "https://cdn.test/a"

    @pytest.mark.parametrize("status", [303, 307, 308])
    def test_follows_other_redirect_statuses(self, tmp_path, monkeypatch, status):
        """See-other and temporary/permanent redirects are followed like 301/302."""
        get = Mock(side_effect=[
            _response(status, headers={"Location": "https://cdn.test/a"}),
            _response(200, b"data"),
        ])
        monkeypatch.setattr("tarot_art.generator.requests.get", get)
        dest = tmp_path / "out.png"
        download_image("https://img.test/a", dest)
        assert dest.read_bytes() == b"data"

    def test_second_redirect_fails(self, tmp_path, monkeypatch):
        """Only one level of redirect is followed."""
        get = Mock(side_effect=[
            _response(301, headers={"Location": "https://cdn.test/a"}),
            _response(302, headers={"Location": "https://cdn.test/b"}),
        ])
        monkeypatch.setattr("tarot_art.generator.requests.get", get)
        dest = tmp_path / "out.png"
        with pytest.raises(DownloadError, match="HTTP 302"):
            download_image("https://img.test/a", dest)
        assert not dest.exists()

    def test_redirect_without_location(self, tmp_path, monkeypatch):
        """A redirect with no Location header is a download failure."""
        monkeypatch.setattr("tarot_art.generator.requests.get", Mock(return_value=_response(302)))
        with pytest.raises(DownloadError, match="without location"):
            download_image("https://img.test/a", tmp_path / "out.png")

    def test_network_error(self, tmp_path, monkeypatch):
        """Transport errors become DownloadError."""
        get = Mock(side_effect=requests.ConnectionError("down"))
        monkeypatch.setattr("tarot_art.generator.requests.get", get)
        with pytest.raises(DownloadError, match="down"):
            download_image("https://img.test/a", tmp_path / "out.png")


class TestCardArtGenerator:

    def test_acquire_saves_png_and_registers(self, generator_parts, fake_downloads):
        """A successful acquisition writes a card-sized PNG and a registry entry."""
        registry, files = generator_parts
        generator = CardArtGenerator(FakeImageService(), registry, files, base_seed=0)
        path = generator.acquire(get_card_by_id(3))
        assert path == files.path_for(3)
        assert registry.get(3).local_path == str(path)
        with Image.open(path) as img:
            assert img.size == (512, 768)
        assert not list(files.root.glob("*.part"))

    def test_passes_card_seed(self, generator_parts, fake_downloads):
        """Each card is requested with base_seed + id."""
        registry, files = generator_parts
        service = FakeImageService()
        CardArtGenerator(service, registry, files, base_seed=100).acquire(get_card_by_id(5))
        assert service.calls == [105]

    def test_empty_result_returns_none_without_entry(self, generator_parts, fake_downloads):
        """No images from the service: None, and nothing is registered."""
        registry, files = generator_parts
        generator = CardArtGenerator(FakeImageService(empty_ids={3}), registry, files, base_seed=0)
        assert generator.acquire(get_card_by_id(3)) is None
        assert registry.get(3) is None
        with pytest.raises(EmptyGenerationError):
            generator.generate(get_card_by_id(3))

    def test_download_failure_returns_none_without_entry(self, generator_parts, monkeypatch):
        """A failed download leaves neither an entry nor a file."""
        monkeypatch.setattr("tarot_art.generator.requests.get", Mock(return_value=_response(500)))
        registry, files = generator_parts
        generator = CardArtGenerator(FakeImageService(), registry, files, base_seed=0)
        assert generator.acquire(get_card_by_id(3)) is None
        assert registry.get(3) is None
        assert not files.path_for(3).exists()
        assert not list(files.root.iterdir())

    def test_unreadable_image_is_download_failure(self, generator_parts, monkeypatch):
        """Bytes that are not an image are rejected before registering."""
        monkeypatch.setattr("tarot_art.generator.requests.get", Mock(return_value=_response(200, b"<html>")))
        registry, files = generator_parts
        generator = CardArtGenerator(FakeImageService(), registry, files, base_seed=0)
        with pytest.raises(DownloadError, match="not a readable image"):
            generator.generate(get_card_by_id(3))
        assert registry.get(3) is None

    def test_service_http_error_becomes_generation_error(self, generator_parts):
        """HTTP errors from the image service surface as GenerationError."""
        registry, files = generator_parts
        service = Mock()
        service.generate.side_effect = requests.HTTPError("429 Too Many Requests")
        generator = CardArtGenerator(service, registry, files)
        with pytest.raises(GenerationError, match="429"):
            generator.generate(get_card_by_id(1))
        assert generator.acquire(get_card_by_id(1)) is None

    def test_acquire_back(self, generator_parts, fake_downloads):
        """The card back is stored under its own key."""
        registry, files = generator_parts
        service = FakeImageService()
        path = CardArtGenerator(service, registry, files, base_seed=0).acquire_back()
        assert path == files.path_for(CARD_BACK_KEY)
        assert registry.get(CARD_BACK_KEY).local_path == str(path)
        assert registry.list_ids() == []
        assert service.calls == [78]

    def test_missing_token_returns_none(self, generator_parts, monkeypatch):
        """Without an API token, acquire() and acquire_back() report None."""
        monkeypatch.delenv("REPLICATE_API_TOKEN", raising=False)
        registry, files = generator_parts
        generator = CardArtGenerator(ReplicateImageService(), registry, files)
        assert generator.acquire(get_card_by_id(0)) is None
        assert generator.acquire_back() is None
        assert registry.entries() == {}

    def test_unwritable_directory_returns_none(self, tmp_path, fake_downloads):
        """An artwork directory that cannot be created is reported as None."""
        blocker = tmp_path / "afile"
        blocker.write_bytes(b"")
        registry = CacheRegistry(KeyValueStore(tmp_path / "store.json"))
        files = LocalFileStore(blocker / "cards")
        generator = CardArtGenerator(FakeImageService(), registry, files, base_seed=0)
        assert generator.acquire(get_card_by_id(2)) is None
        assert generator.acquire_back() is None
        assert registry.entries() == {}

"""Runtime settings read from the environment."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_HOME = Path.home() / ".tarot-art"


class Settings(BaseSettings):
    """Settings loaded from TAROT_ART_* variables and REPLICATE_API_TOKEN."""

    model_config = SettingsConfigDict(
        env_prefix="TAROT_ART_",
        env_ignore_empty=True,
        populate_by_name=True,
        frozen=True,
    )

    home: Path = DEFAULT_HOME
    api_token: str = Field(default="", validation_alias="REPLICATE_API_TOKEN")
    model: str = "flux-schnell"

    # Directory of bundled card-<id>.png files, if the install ships any
    bundle_dir: Path | None = None

    pace_seconds: float = Field(default=2.0, ge=0)
    base_seed: int = Field(default=42, validation_alias="TAROT_ART_SEED")

    @field_validator("home", "bundle_dir")
    @classmethod
    def _expand_user(cls, value: Path | None) -> Path | None:
        return value.expanduser() if value is not None else None

    @property
    def images_dir(self) -> Path:
        return self.home / "tarot-cards"

    @property
    def store_path(self) -> Path:
        return self.home / "store.json"

"""Exceptions raised by the art pipeline."""


class TarotArtError(Exception):
    """Base class for all pipeline errors."""


class GenerationError(TarotArtError):
    """The remote image service failed to produce artwork."""


class EmptyGenerationError(GenerationError):
    """The image service answered but returned no usable image."""


class DownloadError(TarotArtError):
    """Fetching a generated image failed (bad status or network error)."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Download of {url} failed: {reason}")
        self.url = url
        self.reason = reason

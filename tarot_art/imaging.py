"""Image post-processing for downloaded card art."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path

from PIL import Image


def card_seed(base_seed: int, card_id: int) -> int:
    """Deterministic per-card seed: same deck seed and card, same seed."""
    return base_seed + card_id


def resize_image_to_aspect(image_path: Path, target_width: int, target_height: int) -> bytes:
    """Center-crop an image to the target aspect ratio and resize it.

    Returns the result as PNG bytes.
    """
    with Image.open(image_path) as img:
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")

        orig_width, orig_height = img.size
        target_ratio = target_width / target_height
        orig_ratio = orig_width / orig_height

        if orig_ratio > target_ratio:
            new_width = int(orig_height * target_ratio)
            left = (orig_width - new_width) // 2
            img = img.crop((left, 0, left + new_width, orig_height))
        elif orig_ratio < target_ratio:
            new_height = int(orig_width / target_ratio)
            top = (orig_height - new_height) // 2
            img = img.crop((0, top, orig_width, top + new_height))

        if img.size != (target_width, target_height):
            img = img.resize((target_width, target_height), Image.Resampling.LANCZOS)

        buffer = BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()


def normalize_card_image(path: Path, width: int, height: int) -> None:
    """Rewrite the file at ``path`` in place as a ``width`` x ``height`` PNG."""
    path.write_bytes(resize_image_to_aspect(path, width, height))

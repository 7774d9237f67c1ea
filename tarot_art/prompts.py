"""Prompt templates for tarot card artwork."""

from tarot_art.cards import Card

CARD_WIDTH = 512
CARD_HEIGHT = 768  # 2:3 tarot card aspect

CARD_ART_STYLE = (
    "Tarot card art, mystical illustration, gold ink line art on dark midnight blue paper, "
    "ethereal glow, intricate details, sacred geometry elements, 8k resolution, "
    "professional tarot deck quality"
)

CARD_BACK_PROMPT = (
    "Intricate celestial pattern, gold foil ornate design on midnight blue texture, "
    "symmetric mandala, crescent moon and stars, sacred geometry, tarot card back design, "
    "luxurious mystical, seamless pattern, 8k resolution"
)

DEFAULT_NEGATIVE = (
    "text, letters, words, title, label, typography, watermark, signature, "
    "blurry, low quality, deformed, duplicate, cropped, out of frame, border, frame"
)


def arcana_label(card: Card) -> str:
    if card.arcana_type == "major":
        return "Major Arcana"
    return f"Minor Arcana {card.suit}"


def build_card_prompt(card: Card, style: str = CARD_ART_STYLE) -> str:
    """Build the positive prompt for a card. Same card and style, same prompt."""
    parts = [style, f'"{card.name}" tarot card', arcana_label(card)]
    if card.keywords:
        parts.append(f"symbolizing {', '.join(card.keywords[:3])}")
    if card.element:
        parts.append(f"element of {card.element}")
    if card.description:
        parts.append(f"depicting {card.description}")
    parts.append("mystical and powerful imagery")
    return ", ".join(parts)


def build_negative_prompt(extra: str | None = None) -> str:
    """Build a negative prompt to avoid common artifacts."""
    if extra:
        return f"{DEFAULT_NEGATIVE}, {extra}"
    return DEFAULT_NEGATIVE

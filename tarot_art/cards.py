"""The fixed 78-card catalog (ids 0-77) and custom deck loading."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

TOTAL_CARDS = 78
CARD_BACK_KEY = "card-back"

SUITS = ("Wands", "Cups", "Swords", "Pentacles")
RANKS = ("Ace", "Two", "Three", "Four", "Five", "Six", "Seven",
         "Eight", "Nine", "Ten", "Page", "Knight", "Queen", "King")


@dataclass(frozen=True)
class Card:
    id: int
    name: str
    arcana_type: str  # "major" or "minor"
    suit: str | None  # None for major arcana
    keywords: tuple[str, ...]
    element: str | None = None
    description: str = field(default="", compare=False)  # Optional scene hint for the prompt

    @property
    def filename(self) -> str:
        return card_filename(self.id)


def card_filename(key: int | str) -> str:
    """File name for a card id or the card back, e.g. ``card-7.png``."""
    if key == CARD_BACK_KEY:
        return f"{CARD_BACK_KEY}.png"
    return f"card-{key}.png"


# fmt: off
_MAJOR_DATA: list[tuple[str, tuple[str, ...], str]] = [
    ("The Fool", ("beginnings", "innocence", "spontaneity"), "Air"),
    ("The Magician", ("manifestation", "resourcefulness", "power"), "Air"),
    ("The High Priestess", ("intuition", "sacred knowledge", "divine feminine"), "Water"),
    ("The Empress", ("femininity", "beauty", "abundance"), "Earth"),
    ("The Emperor", ("authority", "structure", "control"), "Fire"),
    ("The Hierophant", ("tradition", "conformity", "morality"), "Earth"),
    ("The Lovers", ("love", "harmony", "relationships"), "Air"),
    ("The Chariot", ("control", "willpower", "success"), "Water"),
    ("Strength", ("inner strength", "bravery", "compassion"), "Fire"),
    ("The Hermit", ("soul-searching", "introspection", "solitude"), "Earth"),
    ("Wheel of Fortune", ("change", "cycles", "fate"), "Fire"),
    ("Justice", ("fairness", "truth", "law"), "Air"),
    ("The Hanged Man", ("pause", "surrender", "new perspective"), "Water"),
    ("Death", ("endings", "change", "transformation"), "Water"),
    ("Temperance", ("balance", "moderation", "patience"), "Fire"),
    ("The Devil", ("shadow self", "attachment", "addiction"), "Earth"),
    ("The Tower", ("sudden change", "upheaval", "revelation"), "Fire"),
    ("The Star", ("hope", "faith", "renewal"), "Air"),
    ("The Moon", ("illusion", "fear", "anxiety"), "Water"),
    ("The Sun", ("positivity", "success", "vitality"), "Fire"),
    ("Judgement", ("reflection", "reckoning", "awakening"), "Fire"),
    ("The World", ("completion", "accomplishment", "travel"), "Earth"),
]

# suit -> (element, first id, suit themes)
_SUIT_DATA: dict[str, tuple[str, int, tuple[str, ...]]] = {
    "Wands": ("Fire", 22, ("creativity", "passion", "energy", "action")),
    "Cups": ("Water", 36, ("emotions", "relationships", "intuition", "feelings")),
    "Swords": ("Air", 50, ("intellect", "conflict", "truth", "communication")),
    "Pentacles": ("Earth", 64, ("material", "wealth", "work", "practical")),
}

_RANK_THEMES: dict[str, str] = {
    "Ace": "new potential", "Two": "choice", "Three": "growth", "Four": "stability",
    "Five": "struggle", "Six": "harmony", "Seven": "perseverance", "Eight": "movement",
    "Nine": "fulfilment", "Ten": "culmination", "Page": "curiosity", "Knight": "pursuit",
    "Queen": "nurture", "King": "mastery",
}
# fmt: on

MAJOR_ARCANA: list[Card] = [
    Card(i, name, "major", None, keywords, element)
    for i, (name, keywords, element) in enumerate(_MAJOR_DATA)
]


def _minor_cards(suit: str) -> list[Card]:
    """Build the 14 cards of one suit, Ace through King, with sequential ids."""
    element, start_id, themes = _SUIT_DATA[suit]
    return [
        Card(start_id + i, f"{rank} of {suit}", "minor", suit,
             (_RANK_THEMES[rank],) + themes, element)
        for i, rank in enumerate(RANKS)
    ]


MINOR_ARCANA: list[Card] = [card for suit in SUITS for card in _minor_cards(suit)]

ALL_CARDS: list[Card] = MAJOR_ARCANA + MINOR_ARCANA


def _sample_cards(major: list[Card], minor: list[Card]) -> list[Card]:
    """Return a small representative sample: 5 major, Ace + Two + King per suit."""
    cards = major[:5]
    for suit in SUITS:
        suit_cards = [c for c in minor if c.suit == suit]
        pips = [c for c in suit_cards if not c.name.startswith("King")]
        king = [c for c in suit_cards if c.name.startswith("King")]
        cards.extend(pips[:2])
        cards.extend(king)
    return cards


def load_cards_from_yaml(yaml_path: Path) -> list[Card]:
    """Load a full custom deck from a YAML file.

    The file holds a ``cards`` list; each entry needs ``id``, ``name`` and
    ``arcana`` and may set ``suit``, ``keywords``, ``element`` and
    ``description``.  The deck must cover ids 0-77 exactly once.
    """
    with open(yaml_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    cards = []
    for raw in data.get("cards", []):
        arcana = str(raw["arcana"]).lower()
        if arcana not in ("major", "minor"):
            raise ValueError(f"Card {raw['name']!r}: arcana must be 'major' or 'minor', got {arcana!r}")
        suit = raw.get("suit")
        cards.append(Card(
            id=int(raw["id"]),
            name=raw["name"],
            arcana_type=arcana,
            suit=str(suit).title() if suit else None,
            keywords=tuple(raw.get("keywords", [])),
            element=raw.get("element"),
            description=raw.get("description", ""),
        ))

    ids = sorted(c.id for c in cards)
    if ids != list(range(TOTAL_CARDS)):
        raise ValueError(f"Custom deck must define each card id 0-{TOTAL_CARDS - 1} exactly once")
    return sorted(cards, key=lambda c: c.id)


def get_cards(subset: str = "all", cards_file: Path | None = None) -> list[Card]:
    """Return cards based on subset filter: 'all', 'major', 'minor', or 'sample'.

    If cards_file is provided, loads card definitions from that YAML file.
    Otherwise uses the built-in defaults.
    """
    all_cards = load_cards_from_yaml(cards_file) if cards_file is not None else ALL_CARDS
    major = [c for c in all_cards if c.arcana_type == "major"]
    minor = [c for c in all_cards if c.arcana_type == "minor"]

    match subset:
        case "all":
            return list(all_cards)
        case "major":
            return major
        case "minor":
            return minor
        case "sample":
            return _sample_cards(major, minor)
        case _:
            raise ValueError(f"Unknown card subset: {subset!r}. Use 'all', 'major', 'minor', or 'sample'.")


def get_card_by_id(card_id: int, cards_file: Path | None = None) -> Card:
    """Return the card with the given id (0-77)."""
    for card in get_cards("all", cards_file=cards_file):
        if card.id == card_id:
            return card
    raise ValueError(f"No card found with id {card_id}")

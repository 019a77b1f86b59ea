"""
Card attribute inference from card names.

There is no card database behind this module. Type, color and mana value
are guessed from the name alone, which is good enough to rank decks and
pick an archetype but is not authoritative card data.

Callers depend only on CardAttributeSource (name -> CardAttributes), so a
real lookup can replace HeuristicCardAttributes without touching them.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from typing import Protocol

from metascout.models.deck import CardEntry, CardType, Color
from metascout.models.failure import AttributeInferenceWarning

logger = logging.getLogger(__name__)

BASIC_LAND_COLORS: dict[str, Color] = {
    "Plains": Color.WHITE,
    "Island": Color.BLUE,
    "Swamp": Color.BLACK,
    "Mountain": Color.RED,
    "Forest": Color.GREEN,
}

COLOR_WORDS: dict[str, Color] = {
    "White": Color.WHITE,
    "Blue": Color.BLUE,
    "Black": Color.BLACK,
    "Red": Color.RED,
    "Green": Color.GREEN,
}

BASIC_LANDS = frozenset(BASIC_LAND_COLORS) | frozenset(
    f"Snow-Covered {land}" for land in BASIC_LAND_COLORS
)

PLANESWALKER_NAMES = frozenset(
    {
        "Ajani",
        "Chandra",
        "Gideon",
        "Jace",
        "Karn",
        "Liliana",
        "Nahiri",
        "Nissa",
        "Sorin",
        "Teferi",
        "Ugin",
        "Vraska",
    }
)

# Creature types and words that usually show up on rares and mythics
RARE_WORDS = frozenset({"Angel", "Demon", "Dragon", "Hydra", "Sphinx", "Titan", "Leyline"})

# Staples that appear in many decks and say little about a deck's identity
COMMON_UTILITY = frozenset(
    {
        "Cut Down",
        "Duress",
        "Evolving Wilds",
        "Fabled Passage",
        "Negate",
        "Opt",
        "Play with Fire",
        "Shock",
        "Spell Pierce",
        "Thoughtseize",
    }
)

REMOVAL_WORDS = ("bolt", "shock", "murder", "destroy", "cut down", "burn", "strike")
COUNTER_WORDS = ("counterspell", "negate", "pierce", "dissipate", "denial")

CMC_BUCKETS: tuple[tuple[int, int], ...] = ((10, 1), (15, 2), (20, 3))
MAX_ESTIMATED_CMC = 4


@dataclass(frozen=True, slots=True)
class CardAttributes:
    """Inferred attributes of a single card."""

    type: CardType
    colors: frozenset[Color]
    estimated_cmc: int


class CardAttributeSource(Protocol):
    """Anything that can map a card name to its attributes."""

    def infer(self, card_name: str) -> CardAttributes: ...


CmcEstimator = Callable[[str], int]


def is_basic_land(name: str) -> bool:
    return name in BASIC_LANDS


def is_planeswalker(name: str) -> bool:
    return any(walker in name for walker in PLANESWALKER_NAMES)


def is_legendary(name: str) -> bool:
    """Legendary names usually carry an epithet: "Atraxa, Grand Unifier"."""
    return "," in name or is_planeswalker(name)


def is_rare(name: str) -> bool:
    return is_legendary(name) or any(word in name for word in RARE_WORDS)


def is_common_utility(name: str) -> bool:
    return name in COMMON_UTILITY


def infer_role(name: str) -> str:
    """Rough role of a card in its deck: mana, planeswalker, removal, counter or threat."""
    if is_basic_land(name):
        return "mana"
    if is_planeswalker(name):
        return "planeswalker"
    lowered = name.lower()
    if any(word in lowered for word in REMOVAL_WORDS):
        return "removal"
    if any(word in lowered for word in COUNTER_WORDS):
        return "counter"
    return "threat"


def estimate_cmc_by_length(name: str) -> int:
    """
    Estimate mana value from name length.

    Basic lands cost 0. Longer names estimate equal or higher, capped at
    MAX_ESTIMATED_CMC.
    """
    if is_basic_land(name):
        return 0
    for limit, cmc in CMC_BUCKETS:
        if len(name) < limit:
            return cmc
    return MAX_ESTIMATED_CMC


def infer_colors(name: str) -> frozenset[Color]:
    colors = {color for land, color in BASIC_LAND_COLORS.items() if land in name}
    colors.update(color for word, color in COLOR_WORDS.items() if word in name)
    return frozenset(colors)


def infer_type(name: str) -> CardType:
    if is_basic_land(name):
        return CardType.LAND
    if is_planeswalker(name):
        return CardType.PLANESWALKER
    return CardType.UNKNOWN


class HeuristicCardAttributes:
    """Name-pattern heuristics for card type, colors and mana value."""

    def __init__(self, cmc_estimator: CmcEstimator = estimate_cmc_by_length):
        self.cmc_estimator = cmc_estimator

    def infer(self, card_name: str) -> CardAttributes:
        return CardAttributes(
            type=infer_type(card_name),
            colors=infer_colors(card_name),
            estimated_cmc=self.cmc_estimator(card_name),
        )


def annotate(entries: Iterable[CardEntry], source: CardAttributeSource) -> tuple[CardEntry, ...]:
    """Fill in inferred attributes for each entry."""
    annotated = []
    for entry in entries:
        attributes = source.infer(entry.name)
        annotated.append(
            replace(
                entry,
                inferred_type=attributes.type,
                inferred_colors=attributes.colors,
                estimated_cmc=attributes.estimated_cmc,
            )
        )
    return tuple(annotated)


def inference_warnings(entries: Iterable[CardEntry]) -> list[AttributeInferenceWarning]:
    """Warnings for non-land cards whose colors could not be inferred."""
    return [
        AttributeInferenceWarning(f"No color inferred for {entry.name!r}")
        for entry in entries
        if not entry.inferred_colors and entry.inferred_type is not CardType.LAND
    ]

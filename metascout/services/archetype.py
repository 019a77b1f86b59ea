"""
Archetype classification and key card selection.

The archetype is a pure function of the deck's color count and the
quantity-weighted average estimated mana value of its mainboard.
"""

from collections.abc import Iterable, Sequence

from metascout.models.deck import Archetype, CardEntry, Color, KeyCard
from metascout.services.card_attributes import (
    infer_role,
    is_basic_land,
    is_common_utility,
    is_legendary,
    is_planeswalker,
    is_rare,
)

AGGRO_MAX_AVG_CMC = 2.5
CONTROL_MIN_AVG_CMC = 4.0

KEY_CARD_MIN_QUANTITY = 3
KEY_CARD_LIMIT = 8
LEGENDARY_BONUS = 20
PLANESWALKER_BONUS = 15
RARE_BONUS = 10


def average_cmc(mainboard: Sequence[CardEntry]) -> float:
    """Quantity-weighted average estimated mana value, 0 for an empty deck."""
    total_cards = sum(card.quantity for card in mainboard)
    if total_cards == 0:
        return 0.0
    total_cmc = sum(card.estimated_cmc * card.quantity for card in mainboard)
    return total_cmc / total_cards


def deck_colors(mainboard: Iterable[CardEntry]) -> frozenset[Color]:
    """Union of the inferred colors of every card."""
    colors: set[Color] = set()
    for card in mainboard:
        colors.update(card.inferred_colors)
    return frozenset(colors)


def classify(colors: frozenset[Color] | set[Color], mainboard: Sequence[CardEntry]) -> Archetype:
    """
    Classify a deck as aggro, midrange or control.

    Rules, first match wins:
    1. One color and average cost under 2.5: aggro
    2. Three or more colors: midrange
    3. Average cost over 4: control
    4. Anything else: midrange

    Two-color low-curve decks fall through to midrange.
    """
    avg = average_cmc(mainboard)
    if len(colors) == 1 and avg < AGGRO_MAX_AVG_CMC:
        return Archetype.AGGRO
    if len(colors) >= 3:
        return Archetype.MIDRANGE
    if avg > CONTROL_MIN_AVG_CMC:
        return Archetype.CONTROL
    return Archetype.MIDRANGE


def card_weight(card: CardEntry) -> int:
    """Ranking weight: 10 per copy plus one-time legendary, planeswalker and rare bonuses."""
    weight = card.quantity * 10
    if is_legendary(card.name):
        weight += LEGENDARY_BONUS
    if is_planeswalker(card.name):
        weight += PLANESWALKER_BONUS
    if is_rare(card.name):
        weight += RARE_BONUS
    return weight


def select_key_cards(mainboard: Sequence[CardEntry]) -> tuple[KeyCard, ...]:
    """
    Pick the cards that best represent a deck.

    Candidates are played as 3+ copies and are neither basic lands nor
    common utility spells. Sorted by weight, ties kept in mainboard order.
    """
    candidates = [
        card
        for card in mainboard
        if card.quantity >= KEY_CARD_MIN_QUANTITY
        and not is_basic_land(card.name)
        and not is_common_utility(card.name)
    ]
    key_cards = [
        KeyCard(name=card.name, weight=card_weight(card), role=infer_role(card.name))
        for card in candidates
    ]
    # sorted() is stable, so equal weights keep mainboard order
    key_cards = sorted(key_cards, key=lambda k: k.weight, reverse=True)
    return tuple(key_cards[:KEY_CARD_LIMIT])

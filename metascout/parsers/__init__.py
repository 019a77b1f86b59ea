from metascout.parsers.deck_detail import DeckDetailParser, normalize_card_name
from metascout.parsers.overview import OverviewParser

__all__ = [
    "DeckDetailParser",
    "OverviewParser",
    "normalize_card_name",
]

"""
metascout services.

Card attribute inference, deck classification, the scrape pipeline and the
snapshot cache.
"""

from metascout.services.archetype import average_cmc, classify, deck_colors, select_key_cards
from metascout.services.card_attributes import (
    CardAttributes,
    CardAttributeSource,
    HeuristicCardAttributes,
)
from metascout.services.pipeline import MetaPipeline, slugify
from metascout.services.snapshot_cache import SnapshotCache

__all__ = [
    "CardAttributeSource",
    "CardAttributes",
    "HeuristicCardAttributes",
    "MetaPipeline",
    "SnapshotCache",
    "average_cmc",
    "classify",
    "deck_colors",
    "select_key_cards",
    "slugify",
]

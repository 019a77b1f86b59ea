"""
Built-in placeholder metagame.

Served when a scrape fails and there is no cached snapshot. The decks go
through the same classification as scraped decks.
"""

from datetime import datetime

from metascout.models.deck import DeckLists, DeckStub, MetaSnapshot
from metascout.parsers.deck_detail import build_entries, parse_text_deck
from metascout.services.card_attributes import CardAttributeSource, HeuristicCardAttributes
from metascout.services.pipeline import build_classified_deck

FALLBACK_SOURCE = "fallback"

# (name, meta share %, deck link, decklist)
FALLBACK_DECKS: tuple[tuple[str, float, str, str], ...] = (
    (
        "Domain Ramp",
        18.0,
        "/archetype/standard-domain-ramp",
        """4 Leyline of the Guildpact
4 Up the Beanstalk
3 Atraxa, Grand Unifier
4 Sunfall
2 Forest
2 Plains
2 Island
""",
    ),
    (
        "Mono Red Aggro",
        15.0,
        "/archetype/standard-mono-red-aggro",
        """4 Monastery Swiftspear
4 Lightning Bolt
4 Goblin Guide
20 Mountain

3 Roiling Vortex
""",
    ),
    (
        "Azorius Control",
        12.0,
        "/archetype/standard-azorius-control",
        """3 Teferi, Hero of Dominaria
4 Counterspell
3 Supreme Verdict
10 Plains
10 Island
""",
    ),
)


def fallback_snapshot(
    generated_at: datetime,
    attributes: CardAttributeSource | None = None,
) -> MetaSnapshot:
    """The placeholder metagame, stamped with ``generated_at``."""
    attributes = attributes or HeuristicCardAttributes()
    decks = []
    for rank, (name, share, link, decklist) in enumerate(FALLBACK_DECKS, start=1):
        main_lines, side_lines = parse_text_deck(decklist)
        lists = DeckLists(mainboard=build_entries(main_lines), sideboard=build_entries(side_lines))
        stub = DeckStub(name=name, meta_share_percent=share, detail_ref=link, rank=rank)
        decks.append(build_classified_deck(stub, lists, attributes))
    return MetaSnapshot(generated_at=generated_at, source=FALLBACK_SOURCE, decks=tuple(decks))

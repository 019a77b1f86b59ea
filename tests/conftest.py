from datetime import UTC, datetime
from pathlib import Path

import pytest

from metascout.models.deck import CardEntry, DeckLists, DeckStub, MetaSnapshot
from metascout.services.card_attributes import HeuristicCardAttributes
from metascout.services.pipeline import build_classified_deck

FIXTURES = Path(__file__).parent / "fixtures"


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 10, 19, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def metagame_html() -> str:
    return (FIXTURES / "mtggoldfish_metagame.html").read_text(encoding="utf-8")


@pytest.fixture
def deck_html() -> str:
    return (FIXTURES / "mtggoldfish_deck.html").read_text(encoding="utf-8")


@pytest.fixture
def sample_stub() -> DeckStub:
    return DeckStub(
        name="Mono Red Aggro",
        meta_share_percent=15.8,
        detail_ref="/archetype/standard-mono-red-aggro",
        rank=1,
    )


@pytest.fixture
def sample_snapshot(now: datetime, sample_stub: DeckStub) -> MetaSnapshot:
    """A one-deck snapshot with annotated cards."""
    mainboard = (
        CardEntry(name="Mountain", quantity=20),
        CardEntry(name="Lightning Bolt", quantity=4),
        CardEntry(name="Monastery Swiftspear", quantity=4),
    )
    deck = build_classified_deck(
        sample_stub, DeckLists(mainboard=mainboard), HeuristicCardAttributes()
    )
    return MetaSnapshot(generated_at=now, source="MTGGoldfish", decks=(deck,))


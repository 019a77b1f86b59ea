"""
Metagame scrape pipeline.

One scrape fetches the overview page, parses deck stubs, then fetches and
parses each deck page in turn with a fixed delay between requests. Cards
are annotated with inferred attributes and each deck is classified.

A failed deck page never aborts the batch: the deck is kept with empty
boards so its meta share still shows up. A failed or empty overview aborts
the whole scrape.
"""

import asyncio
import logging
import random
import re
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from urllib.parse import urljoin

from metascout.models.deck import ClassifiedDeck, DeckLists, DeckStub, MetaSnapshot
from metascout.models.failure import EmptyOverviewError, FetchError
from metascout.parsers.deck_detail import DeckDetailParser
from metascout.parsers.overview import OverviewParser
from metascout.scrapers.fetch import FetchClient, SleepFunc
from metascout.services.archetype import classify, deck_colors, select_key_cards
from metascout.services.card_attributes import (
    CardAttributeSource,
    HeuristicCardAttributes,
    annotate,
    inference_warnings,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "MTGGoldfish"
MTGGOLDFISH_BASE = "https://www.mtggoldfish.com"
DEFAULT_MAX_DECKS = 20
DEFAULT_RATE_LIMIT_SECONDS = 1.0

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def utcnow() -> datetime:
    return datetime.now(UTC)


def slugify(name: str) -> str:
    """Deck id: lower-cased, non-alphanumerics dropped, spaces to hyphens."""
    cleaned = _NON_ALPHANUMERIC.sub("", name.lower()).strip()
    return _WHITESPACE.sub("-", cleaned)


def build_classified_deck(
    stub: DeckStub,
    lists: DeckLists,
    attributes: CardAttributeSource,
) -> ClassifiedDeck:
    """Annotate a deck's cards and classify it."""
    mainboard = annotate(lists.mainboard, attributes)
    sideboard = annotate(lists.sideboard, attributes)
    colors = deck_colors(mainboard)

    for warning in inference_warnings(mainboard):
        logger.debug("%s: %s", stub.name, warning)

    return ClassifiedDeck(
        id=slugify(stub.name),
        name=stub.name,
        meta_share_percent=stub.meta_share_percent,
        rank=stub.rank,
        colors=colors,
        mainboard=mainboard,
        sideboard=sideboard,
        key_cards=select_key_cards(mainboard),
        archetype=classify(colors, mainboard),
        total_cards=sum(card.quantity for card in mainboard),
    )


def find_duplicate_ids(decks: Sequence[ClassifiedDeck]) -> list[str]:
    """Deck ids that appear more than once, in first-seen order."""
    seen: set[str] = set()
    duplicates: list[str] = []
    for deck in decks:
        if deck.id in seen and deck.id not in duplicates:
            duplicates.append(deck.id)
        seen.add(deck.id)
    return duplicates


class MetaPipeline:
    """
    Scrape the metagame and produce a MetaSnapshot.

    Args:
        fetch_client: Client used for every HTTP request
        base_url: Site root, deck links are resolved against it
        format_name: Format whose metagame page is scraped
        max_decks: Only the first N decks of the overview are fetched
        rate_limit: Seconds to wait between deck page requests
        rate_limit_jitter: Upper bound of random seconds added to the delay
        sleep: Awaitable sleep, replaced in tests
        clock: Returns the current time for ``generated_at``
    """

    def __init__(
        self,
        fetch_client: FetchClient,
        *,
        base_url: str = MTGGOLDFISH_BASE,
        format_name: str = "standard",
        max_decks: int = DEFAULT_MAX_DECKS,
        overview_parser: OverviewParser | None = None,
        detail_parser: DeckDetailParser | None = None,
        attributes: CardAttributeSource | None = None,
        rate_limit: float = DEFAULT_RATE_LIMIT_SECONDS,
        rate_limit_jitter: float = 0.0,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.fetch_client = fetch_client
        self.base_url = base_url.rstrip("/")
        self.format_name = format_name
        self.max_decks = max_decks
        self.overview_parser = overview_parser or OverviewParser()
        self.detail_parser = detail_parser or DeckDetailParser()
        self.attributes = attributes or HeuristicCardAttributes()
        self.rate_limit = rate_limit
        self.rate_limit_jitter = rate_limit_jitter
        self._sleep = sleep
        self._clock = clock

    @property
    def overview_url(self) -> str:
        return f"{self.base_url}/metagame/{self.format_name}"

    def detail_url(self, stub: DeckStub) -> str:
        return urljoin(f"{self.base_url}/", stub.detail_ref)

    def _request_delay(self) -> float:
        if self.rate_limit_jitter > 0:
            return self.rate_limit + random.uniform(0, self.rate_limit_jitter)
        return self.rate_limit

    async def scrape(self) -> MetaSnapshot:
        """
        Run one full scrape.

        Raises:
            FetchError: If the overview page could not be fetched
            EmptyOverviewError: If the overview page yielded no decks
        """
        logger.info("Scraping metagame overview %s", self.overview_url)
        html = await self.fetch_client.fetch(self.overview_url)
        stubs = self.overview_parser.parse(html)
        if not stubs:
            raise EmptyOverviewError(self.overview_url)

        stubs = stubs[: self.max_decks]
        logger.info("Found %d decks, fetching deck pages", len(stubs))

        decks: list[ClassifiedDeck] = []
        for index, stub in enumerate(stubs):
            if index > 0:
                await self._sleep(self._request_delay())
            decks.append(await self.scrape_deck(stub))

        for deck_id in find_duplicate_ids(decks):
            logger.warning("Duplicate deck id %r in snapshot", deck_id)

        empty = sum(1 for deck in decks if not deck.mainboard)
        logger.info("Scrape complete: %d decks, %d without card lists", len(decks), empty)

        return MetaSnapshot(
            generated_at=self._clock(),
            source=SOURCE_NAME,
            decks=tuple(decks),
            format=self.format_name,
        )

    async def scrape_deck(self, stub: DeckStub) -> ClassifiedDeck:
        """Fetch, parse and classify one deck. Fetch failures give an empty deck."""
        logger.info("Fetching deck %d: %s", stub.rank, stub.name)
        try:
            html = await self.fetch_client.fetch(self.detail_url(stub))
        except FetchError as e:
            logger.error("Deck page for %s failed: %s", stub.name, e)
            return build_classified_deck(stub, DeckLists(), self.attributes)

        lists = self.detail_parser.parse(html, stub)
        return build_classified_deck(stub, lists, self.attributes)

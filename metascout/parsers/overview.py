"""
Metagame overview page parser.

Turns the metagame listing into an ordered list of DeckStub. The source
site has shipped several layouts over time, so extraction is a list of
strategies tried in order. The first strategy that yields at least one
stub wins and later strategies are not attempted.

Each strategy pairs a row locator with per-row field locators for name,
meta share and link. A row missing any of the three is skipped.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

from metascout.models.deck import DeckStub
from metascout.parsers.structure import (
    clean_text,
    data_cells,
    first_match,
    parse_html,
    parse_percent,
    rows_of_first_table,
    strip_fragment,
)

logger = logging.getLogger(__name__)

ARCHETYPE_PATH = "/archetype/"


@dataclass(frozen=True)
class OverviewStrategy:
    """A structural locator for deck rows plus per-row field locators."""

    name: str
    rows: Callable[[BeautifulSoup], list[Tag]]
    deck_name: Callable[[Tag], str | None]
    meta_share: Callable[[Tag], float | None]
    link: Callable[[Tag], str | None]


def _href(anchor: Tag | None) -> str | None:
    if anchor is None:
        return None
    href = anchor.get("href")
    if not isinstance(href, str):
        return None
    return strip_fragment(href) or None


def _text_or_none(node: Tag | None) -> str | None:
    return clean_text(node) or None


# --- Strategy 1: archetype tiles ---

_TILE_LINK_SELECTORS = [
    ".archetype-tile-title .deck-price-paper a",
    ".archetype-tile-title .deck-price-online a",
    f'.archetype-tile-title a[href*="{ARCHETYPE_PATH}"]',
]


def _tile_rows(soup: BeautifulSoup) -> list[Tag]:
    return soup.select(".archetype-tile")


def _tile_link(tile: Tag) -> Tag | None:
    return first_match(tile, _TILE_LINK_SELECTORS)


def _tile_share(tile: Tag) -> float | None:
    value = tile.select_one(".metagame-percentage .archetype-tile-statistic-value")
    return parse_percent(clean_text(value)) if value is not None else None


def _tile_href(tile: Tag) -> str | None:
    href = _href(_tile_link(tile))
    # Tiles also link to prices and card images
    if href is None or ARCHETYPE_PATH not in href:
        return None
    return href


# --- Strategy 2: metagame table ---

_TABLE_SELECTORS = ["table.metagame-table", "table.deck-table", "table"]


def _table_rows(soup: BeautifulSoup) -> list[Tag]:
    return rows_of_first_table(soup, _TABLE_SELECTORS)


def _table_name(row: Tag) -> str | None:
    cells = data_cells(row)
    if len(cells) < 2:
        return None
    return _text_or_none(cells[0].find("a") or cells[0])


def _table_share(row: Tag) -> float | None:
    for cell in data_cells(row)[1:]:
        share = parse_percent(clean_text(cell))
        if share is not None:
            return share
    return None


def _table_link(row: Tag) -> str | None:
    cells = data_cells(row)
    if not cells:
        return None
    return _href(cells[0].find("a", href=True) or row.find("a", href=True))


# --- Strategy 3: bare archetype links ---


def _link_rows(soup: BeautifulSoup) -> list[Tag]:
    return soup.select(f'a[href*="{ARCHETYPE_PATH}"]')


def _link_share(anchor: Tag) -> float | None:
    # Only look inside the enclosing block so a deck never borrows a neighbour's share
    container = anchor.parent if isinstance(anchor.parent, Tag) else anchor
    return parse_percent(clean_text(container), require_sign=True)


DEFAULT_STRATEGIES: tuple[OverviewStrategy, ...] = (
    OverviewStrategy(
        name="archetype-tiles",
        rows=_tile_rows,
        deck_name=lambda tile: _text_or_none(_tile_link(tile)),
        meta_share=_tile_share,
        link=_tile_href,
    ),
    OverviewStrategy(
        name="metagame-table",
        rows=_table_rows,
        deck_name=_table_name,
        meta_share=_table_share,
        link=_table_link,
    ),
    OverviewStrategy(
        name="archetype-links",
        rows=_link_rows,
        deck_name=_text_or_none,
        meta_share=_link_share,
        link=_href,
    ),
)


class OverviewParser:
    """Parse a metagame overview page into DeckStub entries."""

    def __init__(self, strategies: tuple[OverviewStrategy, ...] = DEFAULT_STRATEGIES):
        self.strategies = strategies

    def parse(self, html: str) -> list[DeckStub]:
        """
        Extract deck stubs from overview HTML.

        Never raises on malformed input; returns an empty list instead.
        Ranks are assigned from output order, starting at 1.
        """
        try:
            soup = parse_html(html)
        except Exception as e:
            logger.warning("Could not parse overview HTML: %s", e)
            return []

        for strategy in self.strategies:
            try:
                stubs = self._apply(strategy, soup)
            except Exception as e:
                logger.warning("Overview strategy %s failed: %s", strategy.name, e)
                continue
            if stubs:
                logger.info("Overview strategy %s found %d decks", strategy.name, len(stubs))
                return stubs
            logger.debug("Overview strategy %s found nothing", strategy.name)

        logger.warning("No overview strategy matched the page")
        return []

    def _apply(self, strategy: OverviewStrategy, soup: BeautifulSoup) -> list[DeckStub]:
        stubs: list[DeckStub] = []
        seen_names: set[str] = set()

        for row in strategy.rows(soup):
            name = strategy.deck_name(row)
            share = strategy.meta_share(row)
            link = strategy.link(row)
            if not name or share is None or not link:
                continue

            # Same archetype can appear more than once (paper and online listings)
            if name in seen_names:
                continue
            seen_names.add(name)

            stubs.append(
                DeckStub(
                    name=name,
                    meta_share_percent=share,
                    detail_ref=link,
                    rank=len(stubs) + 1,
                )
            )

        return stubs

"""
Deck page parser.

Extracts mainboard and sideboard card lines from a deck page. Like the
overview parser it tries an ordered list of strategies, and the first one
that yields at least one mainboard card wins.

Strategies produce raw (quantity text, name text) lines per board. Lines
without a positive integer quantity or a card name are dropped. Names are
normalized and duplicate names within a board are merged.
"""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from bs4 import BeautifulSoup, Tag

from metascout.models.deck import CardEntry, DeckLists, DeckStub
from metascout.parsers.structure import clean_text, data_cells, first_match, parse_html

logger = logging.getLogger(__name__)

RawLine = tuple[str, str]
RawBoards = tuple[list[RawLine], list[RawLine]]

_QUOTE_FOLDING = str.maketrans(
    {
        "“": '"',
        "”": '"',
        "„": '"',
        "″": '"',
        "‘": "'",
        "’": "'",
        "‚": "'",
        "′": "'",
    }
)
_WHITESPACE = re.compile(r"\s+")
_QUANTITY = re.compile(r"^(\d+)\s*x?$", re.IGNORECASE)
_TEXT_LINE = re.compile(r"^\s*(\d+)\s*x?\s+(.+?)\s*$", re.IGNORECASE)


def normalize_card_name(name: str) -> str:
    """
    Normalize a card name for display and deduplication.

    Folds curly quotes to straight quotes, collapses whitespace runs to a
    single space and trims. Applying it twice gives the same result as once.
    """
    return _WHITESPACE.sub(" ", name.translate(_QUOTE_FOLDING)).strip()


def parse_quantity(text: str) -> int | None:
    """Positive integer quantity from "4" or "4x", else None."""
    match = _QUANTITY.match(text.strip())
    if not match:
        return None
    quantity = int(match.group(1))
    return quantity if quantity > 0 else None


def _is_sideboard_marker(text: str) -> bool:
    return "sideboard" in text.lower()


def _row_line(row: Tag) -> RawLine | None:
    cells = data_cells(row)
    if len(cells) < 2:
        return None
    name_node = cells[1].find("a") or cells[1]
    return clean_text(cells[0]), clean_text(name_node)


def _split_rows(rows: Iterable[Tag]) -> RawBoards:
    """Card rows before a "Sideboard" header row go to main, the rest to side."""
    main: list[RawLine] = []
    side: list[RawLine] = []
    target = main
    for row in rows:
        line = _row_line(row)
        if line is None or parse_quantity(line[0]) is None:
            if _is_sideboard_marker(clean_text(row)):
                target = side
            continue
        target.append(line)
    return main, side


# --- Strategy 1: deck view table ---


def _deck_view_table(soup: BeautifulSoup) -> RawBoards:
    table = soup.select_one(".deck-view-decklist .deck-view-decklist-table")
    if table is None:
        return [], []
    return _split_rows(table.find_all("tr"))


# --- Strategy 2: separate mainboard / sideboard tables ---


def _split_tables(soup: BeautifulSoup) -> RawBoards:
    main_rows = soup.select(".decklist-mainboard tr")
    side_rows = soup.select(".decklist-sideboard tr")
    main = [line for line in map(_row_line, main_rows) if line is not None]
    side = [line for line in map(_row_line, side_rows) if line is not None]
    return main, side


# --- Strategy 3: category columns ---

_CATEGORY_HEADER_SELECTORS = [".deck-category-header", "h3", "h4", "h5", "th"]


def _category_columns(soup: BeautifulSoup) -> RawBoards:
    main: list[RawLine] = []
    side: list[RawLine] = []
    for category in soup.select(".deck-col .deck-category"):
        header = clean_text(first_match(category, _CATEGORY_HEADER_SELECTORS))
        target = side if _is_sideboard_marker(header) else main
        for row in category.find_all("tr"):
            line = _row_line(row)
            if line is not None:
                target.append(line)
    return main, side


# --- Strategy 4: plain text export ---

_TEXT_SELECTORS = ["#deck_input_deck", "textarea.deck-export", "pre.deck-export", "textarea", "pre"]


def parse_text_deck(text: str) -> RawBoards:
    """
    Parse a "qty CardName" text list.

    A blank line or a line reading "Sideboard" separates the sideboard.
    """
    main: list[RawLine] = []
    side: list[RawLine] = []
    target = main
    seen_cards = False
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            if seen_cards:
                target = side
            continue
        if _is_sideboard_marker(line) and not _TEXT_LINE.match(line):
            target = side
            continue
        match = _TEXT_LINE.match(line)
        if match:
            target.append((match.group(1), match.group(2)))
            seen_cards = True
    return main, side


def _text_export(soup: BeautifulSoup) -> RawBoards:
    node = first_match(soup, _TEXT_SELECTORS)
    if node is None:
        return [], []
    value = node.get("value")
    text = value if isinstance(value, str) and value else node.get_text("\n")
    return parse_text_deck(text)


@dataclass(frozen=True)
class DetailStrategy:
    """A locator for the decklist on a deck page."""

    name: str
    extract: Callable[[BeautifulSoup], RawBoards]


DEFAULT_STRATEGIES: tuple[DetailStrategy, ...] = (
    DetailStrategy("deck-view-table", _deck_view_table),
    DetailStrategy("split-tables", _split_tables),
    DetailStrategy("category-columns", _category_columns),
    DetailStrategy("text-export", _text_export),
)


def build_entries(lines: Iterable[RawLine]) -> tuple[CardEntry, ...]:
    """
    Convert raw lines into CardEntry, merging duplicate names.

    Merged entries keep the position of their first occurrence.
    """
    quantities: dict[str, int] = {}
    for quantity_text, name_text in lines:
        quantity = parse_quantity(quantity_text)
        name = normalize_card_name(name_text)
        if quantity is None or not name:
            continue
        quantities[name] = quantities.get(name, 0) + quantity
    return tuple(CardEntry(name=name, quantity=qty) for name, qty in quantities.items())


class DeckDetailParser:
    """Parse a deck page into mainboard and sideboard entries."""

    def __init__(self, strategies: tuple[DetailStrategy, ...] = DEFAULT_STRATEGIES):
        self.strategies = strategies

    def parse(self, html: str, stub: DeckStub) -> DeckLists:
        """
        Extract card lists for ``stub`` from deck page HTML.

        Never raises on malformed input; returns empty boards instead.
        Entries carry default attributes until annotated.
        """
        try:
            soup = parse_html(html)
        except Exception as e:
            logger.warning("Could not parse deck page for %s: %s", stub.name, e)
            return DeckLists()

        for strategy in self.strategies:
            try:
                main_lines, side_lines = strategy.extract(soup)
            except Exception as e:
                logger.warning("Deck strategy %s failed on %s: %s", strategy.name, stub.name, e)
                continue
            mainboard = build_entries(main_lines)
            if mainboard:
                sideboard = build_entries(side_lines)
                logger.debug(
                    "Deck strategy %s parsed %s: %d main, %d side",
                    strategy.name,
                    stub.name,
                    len(mainboard),
                    len(sideboard),
                )
                return DeckLists(mainboard=mainboard, sideboard=sideboard)

        logger.warning("No deck strategy matched the page for %s", stub.name)
        return DeckLists()

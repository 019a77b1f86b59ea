"""
Structural queries over parsed HTML.

Thin helpers on top of BeautifulSoup so parser strategies read as
"rows of the first table matching L" rather than tree walking.
"""

import re

from bs4 import BeautifulSoup, Tag

PERCENT_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*%")
NUMBER_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*%?\s*$")
WHITESPACE_PATTERN = re.compile(r"\s+")


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def first_match(root: BeautifulSoup | Tag, selectors: list[str]) -> Tag | None:
    """First element matching any selector, trying selectors in order."""
    for selector in selectors:
        found = root.select_one(selector)
        if found is not None:
            return found
    return None


def rows_of_first_table(root: BeautifulSoup | Tag, selectors: list[str]) -> list[Tag]:
    """All ``tr`` rows of the first element matching any of ``selectors``."""
    table = first_match(root, selectors)
    if table is None:
        return []
    return table.find_all("tr")


def data_cells(row: Tag) -> list[Tag]:
    return row.find_all("td")


def clean_text(node: Tag | None) -> str:
    """Visible text of a node with whitespace collapsed."""
    if node is None:
        return ""
    return WHITESPACE_PATTERN.sub(" ", node.get_text(" ")).strip()


def parse_percent(text: str, *, require_sign: bool = False) -> float | None:
    """
    Parse a meta share like "15.8%" into 15.8.

    With ``require_sign`` the text must contain a percent sign somewhere;
    otherwise a bare number is accepted as well.
    """
    match = PERCENT_PATTERN.search(text)
    if match:
        return float(match.group(1))
    if require_sign:
        return None
    match = NUMBER_PATTERN.match(text)
    return float(match.group(1)) if match else None


def strip_fragment(href: str) -> str:
    """Drop the ``#fragment`` part of a link."""
    return href.split("#", 1)[0].strip()

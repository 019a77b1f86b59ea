"""
Egress resolvers.

An egress resolver maps the URL we want to the URL we actually request.
Direct requests use the identity resolver. Browser-hosted deployments route
through public CORS relays, which take the target URL as a query parameter.
"""

import logging
from collections.abc import Callable, Sequence
from urllib.parse import quote

logger = logging.getLogger(__name__)

EgressResolver = Callable[[str], str]


def identity(url: str) -> str:
    """Request the target URL directly."""
    return url


class RelayResolver:
    """
    Rewrite target URLs through an ordered list of relay prefixes.

    The target URL is percent-encoded and appended to the current relay
    prefix. ``rotate()`` moves on to the next relay, wrapping around, so a
    retrying caller walks the whole list.
    """

    def __init__(self, relays: Sequence[str]):
        if not relays:
            raise ValueError("RelayResolver needs at least one relay prefix")
        self._relays = list(relays)
        self._index = 0

    @property
    def current(self) -> str:
        return self._relays[self._index]

    def __call__(self, url: str) -> str:
        return f"{self.current}{quote(url, safe='')}"

    def rotate(self) -> None:
        self._index = (self._index + 1) % len(self._relays)
        logger.debug("Switched egress relay to %s", self.current)


def build_egress_resolver(relays: Sequence[str]) -> EgressResolver:
    """Identity when no relays are configured, otherwise a RelayResolver."""
    if not relays:
        return identity
    return RelayResolver(relays)

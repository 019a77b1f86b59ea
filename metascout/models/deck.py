from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class Color(str, Enum):
    """The five colors of mana, in WUBRG order."""

    WHITE = "W"
    BLUE = "U"
    BLACK = "B"
    RED = "R"
    GREEN = "G"


WUBRG = (Color.WHITE, Color.BLUE, Color.BLACK, Color.RED, Color.GREEN)


class CardType(str, Enum):
    """Card types the inference heuristics can tell apart."""

    LAND = "Land"
    PLANESWALKER = "Planeswalker"
    UNKNOWN = "Unknown"


class Archetype(str, Enum):
    """Coarse strategic classification of a deck."""

    AGGRO = "aggro"
    MIDRANGE = "midrange"
    CONTROL = "control"


def sort_colors(colors: frozenset[Color] | set[Color]) -> list[str]:
    """Colors as a list of letters in WUBRG order."""
    return [c.value for c in WUBRG if c in colors]


def _colors_from(values: list[str]) -> frozenset[Color]:
    return frozenset(Color(v) for v in values)


@dataclass(frozen=True, slots=True)
class DeckStub:
    """
    A deck as listed on the metagame overview page.

    Attributes:
        name: Deck archetype name (e.g., "Mono Red Aggro")
        meta_share_percent: Share of the metagame, in percent (15.8 means 15.8%)
        detail_ref: Link to the deck page, relative to the site root
        rank: 1-based position in the parsed listing
    """

    name: str
    meta_share_percent: float
    detail_ref: str
    rank: int


@dataclass(frozen=True, slots=True)
class CardEntry:
    """
    A card line in a deck with inferred attributes.

    Attributes:
        name: Normalized card name, unique within a board
        quantity: Number of copies (always >= 1)
        inferred_type: Heuristic card type
        inferred_colors: Heuristic color identity
        estimated_cmc: Heuristic mana value
    """

    name: str
    quantity: int
    inferred_type: CardType = CardType.UNKNOWN
    inferred_colors: frozenset[Color] = frozenset()
    estimated_cmc: int = 0

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError(f"Card quantity must be >= 1, got {self.quantity} for {self.name!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "quantity": self.quantity,
            "inferredType": self.inferred_type.value,
            "inferredColors": sort_colors(self.inferred_colors),
            "estimatedCMC": self.estimated_cmc,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CardEntry":
        return cls(
            name=data["name"],
            quantity=int(data["quantity"]),
            inferred_type=CardType(data.get("inferredType", CardType.UNKNOWN.value)),
            inferred_colors=_colors_from(data.get("inferredColors", [])),
            estimated_cmc=int(data.get("estimatedCMC", 0)),
        )


@dataclass(frozen=True, slots=True)
class KeyCard:
    """A representative card of a deck with its ranking weight."""

    name: str
    weight: int
    role: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "weight": self.weight, "role": self.role}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KeyCard":
        return cls(name=data["name"], weight=int(data["weight"]), role=data["role"])


@dataclass(frozen=True, slots=True)
class DeckLists:
    """Mainboard and sideboard parsed from a deck page."""

    mainboard: tuple[CardEntry, ...] = ()
    sideboard: tuple[CardEntry, ...] = ()


@dataclass(frozen=True, slots=True)
class ClassifiedDeck:
    """
    A metagame deck after parsing and classification.

    Attributes:
        id: Slug derived from the deck name
        name: Deck archetype name
        meta_share_percent: Share of the metagame, in percent
        rank: Position in the overview listing
        colors: Union of the mainboard cards' inferred colors
        mainboard: Maindeck cards, unique by name
        sideboard: Sideboard cards, unique by name
        key_cards: Ranked representative cards (at most 8)
        archetype: aggro, midrange or control
        total_cards: Sum of mainboard quantities
    """

    id: str
    name: str
    meta_share_percent: float
    rank: int
    colors: frozenset[Color] = frozenset()
    mainboard: tuple[CardEntry, ...] = ()
    sideboard: tuple[CardEntry, ...] = ()
    key_cards: tuple[KeyCard, ...] = ()
    archetype: Archetype = Archetype.MIDRANGE
    total_cards: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "metaSharePercent": self.meta_share_percent,
            "rank": self.rank,
            "colors": sort_colors(self.colors),
            "mainboard": [card.to_dict() for card in self.mainboard],
            "sideboard": [card.to_dict() for card in self.sideboard],
            "keyCards": [card.to_dict() for card in self.key_cards],
            "archetype": self.archetype.value,
            "totalCards": self.total_cards,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClassifiedDeck":
        return cls(
            id=data["id"],
            name=data["name"],
            meta_share_percent=float(data["metaSharePercent"]),
            rank=int(data["rank"]),
            colors=_colors_from(data.get("colors", [])),
            mainboard=tuple(CardEntry.from_dict(c) for c in data.get("mainboard", [])),
            sideboard=tuple(CardEntry.from_dict(c) for c in data.get("sideboard", [])),
            key_cards=tuple(KeyCard.from_dict(c) for c in data.get("keyCards", [])),
            archetype=Archetype(data.get("archetype", Archetype.MIDRANGE.value)),
            total_cards=int(data.get("totalCards", 0)),
        )


@dataclass(frozen=True, slots=True)
class MetaSnapshot:
    """
    A complete, immutable view of the metagame at one point in time.

    Attributes:
        generated_at: When the snapshot was assembled (timezone-aware UTC)
        source: Where the data came from ("MTGGoldfish", "fallback", ...)
        decks: Classified decks in overview order
        format: Game format the snapshot covers
    """

    generated_at: datetime
    source: str
    decks: tuple[ClassifiedDeck, ...] = ()
    format: str = "standard"

    def to_dict(self) -> dict[str, Any]:
        return {
            "generatedAt": self.generated_at.isoformat(),
            "source": self.source,
            "format": self.format,
            "decks": [deck.to_dict() for deck in self.decks],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MetaSnapshot":
        return cls(
            generated_at=datetime.fromisoformat(data["generatedAt"]),
            source=data["source"],
            decks=tuple(ClassifiedDeck.from_dict(d) for d in data.get("decks", [])),
            format=data.get("format", "standard"),
        )


@dataclass(frozen=True, slots=True)
class CacheRecord:
    """The persisted snapshot together with its refresh time."""

    snapshot: MetaSnapshot
    last_refreshed_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshot": self.snapshot.to_dict(),
            "lastRefreshedAt": self.last_refreshed_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheRecord":
        return cls(
            snapshot=MetaSnapshot.from_dict(data["snapshot"]),
            last_refreshed_at=datetime.fromisoformat(data["lastRefreshedAt"]),
        )


class RefreshStatus(str, Enum):
    """Outcome of an ensure_fresh / force_refresh call."""

    FRESH = "fresh"  # cached snapshot was still within its TTL
    REFRESHED = "refreshed"  # a scrape succeeded and was stored
    STALE = "stale"  # scrape failed, previous snapshot served
    FALLBACK = "fallback"  # scrape failed, built-in dataset served


@dataclass(frozen=True, slots=True)
class RefreshResult:
    """The snapshot handed to a caller plus how it was obtained."""

    snapshot: MetaSnapshot
    status: RefreshStatus
    error: str | None = None

    @property
    def degraded(self) -> bool:
        """True if the caller is not getting fresh data."""
        return self.status in (RefreshStatus.STALE, RefreshStatus.FALLBACK)

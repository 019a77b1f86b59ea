from metascout.models.deck import (
    Archetype,
    CacheRecord,
    CardEntry,
    CardType,
    ClassifiedDeck,
    Color,
    DeckLists,
    DeckStub,
    KeyCard,
    MetaSnapshot,
    RefreshResult,
    RefreshStatus,
)
from metascout.models.failure import (
    AttributeInferenceWarning,
    CacheUnavailableError,
    EmptyOverviewError,
    FailureKind,
    FetchError,
    KnownError,
    SnapshotUnavailableError,
)

__all__ = [
    "Archetype",
    "AttributeInferenceWarning",
    "CacheRecord",
    "CacheUnavailableError",
    "CardEntry",
    "CardType",
    "ClassifiedDeck",
    "Color",
    "DeckLists",
    "DeckStub",
    "EmptyOverviewError",
    "FailureKind",
    "FetchError",
    "KeyCard",
    "KnownError",
    "MetaSnapshot",
    "RefreshResult",
    "RefreshStatus",
    "SnapshotUnavailableError",
]

"""
Failure taxonomy for the metagame pipeline.

Every failure the pipeline can observe is classified here so the refresh
layer can decide whether to retry, degrade, or give up.

Failure kinds:
- FetchError: network, timeout, or non-2xx status after the retry budget
- EmptyOverviewError: the overview page parsed to zero decks
- CacheUnavailableError: the key-value store cannot be read or written
- SnapshotUnavailableError: no cache, no fallback and no successful fetch
- AttributeInferenceWarning: heuristic inference produced a weak guess

Parse failures are never raised. A strategy that finds nothing returns an
empty result so the next strategy in the chain can run.
"""

from enum import Enum


class FailureKind(str, Enum):
    """Classification of failure types."""

    FETCH_FAILED = "fetch_failed"
    CACHE_UNAVAILABLE = "cache_unavailable"
    EMPTY_OVERVIEW = "empty_overview"
    SNAPSHOT_UNAVAILABLE = "snapshot_unavailable"


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        status_code: int = 500,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.status_code = status_code
        super().__init__(message)


class FetchError(KnownError):
    """
    Raised when a fetch exhausts its retry budget.

    Carries the last observed HTTP status (None for transport-level errors)
    and the last error message so callers can log a single useful line.
    """

    def __init__(self, url: str, last_status: int | None, last_message: str):
        self.url = url
        self.last_status = last_status
        self.last_message = last_message
        super().__init__(
            kind=FailureKind.FETCH_FAILED,
            message=f"Failed to fetch {url}: {last_message}",
            detail=f"last status: {last_status}",
            status_code=502,
        )


class EmptyOverviewError(KnownError):
    """Raised when the overview page yielded no decks with any strategy."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(
            kind=FailureKind.EMPTY_OVERVIEW,
            message=f"No decks found on {url}",
            status_code=502,
        )


class CacheUnavailableError(KnownError):
    """Raised by a key-value store when it cannot be read or written."""

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        super().__init__(
            kind=FailureKind.CACHE_UNAVAILABLE,
            message=f"Snapshot storage unavailable during {operation}",
            detail=detail,
            status_code=503,
        )


class SnapshotUnavailableError(KnownError):
    """
    Raised when no snapshot can be produced at all.

    Only happens when there is no cached snapshot, the fallback dataset is
    disabled, and the scrape failed.
    """

    def __init__(self, detail: str | None = None):
        super().__init__(
            kind=FailureKind.SNAPSHOT_UNAVAILABLE,
            message="No metagame snapshot is available",
            detail=detail,
            status_code=503,
        )


class AttributeInferenceWarning(UserWarning):
    """A card attribute was inferred from weak evidence."""

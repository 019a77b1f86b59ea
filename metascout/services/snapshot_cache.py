"""
Snapshot cache with time-based refresh.

Owns the only shared mutable state in the system: the current CacheRecord.
The record is replaced wholesale on each successful scrape and never
modified in place. A failed scrape never overwrites a good record.

States:
    EMPTY  --scrape ok-->  FRESH  --ttl elapsed-->  STALE  --scrape ok-->  FRESH

A failed scrape while STALE stays STALE and keeps serving the last
snapshot. With no snapshot at all the built-in fallback dataset is served.

Concurrent refreshes are coalesced: while a scrape is running, every other
caller awaits that same scrape instead of starting a new one.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from metascout.config import LAST_UPDATE_KEY, META_DATA_KEY, UPDATE_STATUS_KEY
from metascout.db.store import KeyValueStore
from metascout.models.deck import CacheRecord, MetaSnapshot, RefreshResult, RefreshStatus
from metascout.models.failure import (
    CacheUnavailableError,
    KnownError,
    SnapshotUnavailableError,
)
from metascout.services.fallback import fallback_snapshot
from metascout.services.pipeline import utcnow

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_MILLISECOND = timedelta(milliseconds=1)

Scraper = Callable[[], Awaitable[MetaSnapshot]]
FallbackFactory = Callable[[datetime], MetaSnapshot]


def to_epoch_ms(moment: datetime) -> int:
    return (moment - _EPOCH) // _MILLISECOND


def from_epoch_ms(value: int) -> datetime:
    return _EPOCH + value * _MILLISECOND


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Summary of the cache state for health and debug output."""

    has_snapshot: bool
    deck_count: int
    source: str | None
    last_refreshed_at: datetime | None
    age: timedelta | None
    is_stale: bool
    refreshing: bool


class SnapshotCache:
    """
    Persist the latest MetaSnapshot and refresh it when it goes stale.

    Args:
        store: Key-value storage for the record and its timestamp
        scrape: Produces a new snapshot or raises
        ttl: How long a snapshot stays fresh
        use_fallback: Serve the built-in dataset when nothing else is available
        fallback: Builds the fallback snapshot for a given time
        clock: Current time, used when callers do not pass ``now``
    """

    def __init__(
        self,
        store: KeyValueStore,
        scrape: Scraper,
        *,
        ttl: timedelta = DEFAULT_TTL,
        use_fallback: bool = True,
        fallback: FallbackFactory = fallback_snapshot,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.ttl = ttl
        self.use_fallback = use_fallback
        self._scrape = scrape
        self._fallback = fallback
        self._clock = clock
        self._record: CacheRecord | None = None
        self._refresh_task: asyncio.Task[RefreshResult] | None = None

    @property
    def refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    # --- Reads ---

    async def get(self) -> CacheRecord | None:
        """The current record, loading it from storage on first use."""
        if self._record is not None:
            return self._record

        try:
            raw = await self.store.get(META_DATA_KEY)
        except CacheUnavailableError as e:
            logger.warning("Could not read cached snapshot: %s", e)
            return None
        if raw is None:
            return None

        try:
            record = CacheRecord.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable cached snapshot: %s", e)
            return None

        logger.info(
            "Loaded cached snapshot with %d decks (refreshed %s)",
            len(record.snapshot.decks),
            record.last_refreshed_at.isoformat(),
        )
        self._record = record
        return record

    async def get_latest_snapshot(self) -> MetaSnapshot | None:
        record = await self.get()
        return record.snapshot if record else None

    async def last_refreshed_at(self) -> datetime | None:
        """Refresh time from the timestamp entry, without decoding the record."""
        stored: datetime | None = None
        try:
            raw = await self.store.get(LAST_UPDATE_KEY)
            if raw is not None:
                stored = from_epoch_ms(int(raw))
        except CacheUnavailableError as e:
            logger.warning("Could not read last refresh time: %s", e)
        except ValueError:
            logger.warning("Ignoring malformed last refresh time %r", raw)

        in_memory = self._record.last_refreshed_at if self._record else None
        candidates = [moment for moment in (stored, in_memory) if moment is not None]
        return max(candidates) if candidates else None

    async def is_stale(self, now: datetime | None = None, ttl: timedelta | None = None) -> bool:
        """True when there is no record or ``now - last_refreshed_at >= ttl``."""
        now = now or self._clock()
        ttl = self.ttl if ttl is None else ttl
        last = await self.last_refreshed_at()
        if last is None:
            return True
        return to_epoch_ms(now) - to_epoch_ms(last) >= ttl // _MILLISECOND

    async def stats(self, now: datetime | None = None) -> CacheStats:
        now = now or self._clock()
        record = await self.get()
        last = await self.last_refreshed_at()
        return CacheStats(
            has_snapshot=record is not None,
            deck_count=len(record.snapshot.decks) if record else 0,
            source=record.snapshot.source if record else None,
            last_refreshed_at=last,
            age=now - last if last is not None else None,
            is_stale=await self.is_stale(now),
            refreshing=self.refreshing,
        )

    # --- Writes ---

    async def store_snapshot(self, snapshot: MetaSnapshot, now: datetime) -> CacheRecord:
        """
        Replace the current record.

        Storage failures are logged and the new record is kept in memory.
        """
        record = CacheRecord(snapshot=snapshot, last_refreshed_at=now)
        try:
            await self.store.set_many(
                {
                    META_DATA_KEY: json.dumps(record.to_dict()),
                    LAST_UPDATE_KEY: str(to_epoch_ms(now)),
                }
            )
        except CacheUnavailableError as e:
            logger.warning("Snapshot kept in memory only: %s", e)
        self._record = record
        return record

    async def clear(self) -> None:
        """Drop the cached record and all stored entries."""
        self._record = None
        for key in (META_DATA_KEY, LAST_UPDATE_KEY, UPDATE_STATUS_KEY):
            try:
                await self.store.delete(key)
            except CacheUnavailableError as e:
                logger.warning("Could not delete %s: %s", key, e)
        logger.info("Snapshot cache cleared")

    async def _write_status(self, status: str, message: str, now: datetime) -> None:
        payload = {"status": status, "message": message, "at": now.isoformat()}
        try:
            await self.store.set(UPDATE_STATUS_KEY, json.dumps(payload))
        except CacheUnavailableError as e:
            logger.debug("Could not write update status: %s", e)

    async def update_status(self) -> dict[str, str] | None:
        """The last refresh attempt's status entry, if any."""
        try:
            raw = await self.store.get(UPDATE_STATUS_KEY)
        except CacheUnavailableError:
            return None
        if not raw:
            return None

        try:
            status = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable update status %r", raw)
            return None
        return status if isinstance(status, dict) else None

    # --- Refresh ---

    async def ensure_fresh(self, now: datetime | None = None) -> RefreshResult:
        """
        Return a snapshot, scraping first if the cached one is stale.

        Raises:
            SnapshotUnavailableError: Only when the scrape failed, nothing is
                cached and the fallback dataset is disabled
        """
        now = now or self._clock()
        if not await self.is_stale(now):
            record = await self.get()
            if record is not None:
                return RefreshResult(snapshot=record.snapshot, status=RefreshStatus.FRESH)
        return await self._refresh(now)

    async def force_refresh(self, now: datetime | None = None) -> RefreshResult:
        """Scrape regardless of the TTL. Joins a scrape already in flight."""
        return await self._refresh(now or self._clock())

    async def _refresh(self, now: datetime) -> RefreshResult:
        # Check and assignment run without an await in between
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._run_refresh(now))
        else:
            logger.info("Refresh already in progress, waiting for it")
        # Cancelling one waiter leaves the shared scrape running
        return await asyncio.shield(self._refresh_task)

    async def _run_refresh(self, now: datetime) -> RefreshResult:
        await self._write_status("updating", "Refresh started", now)
        try:
            snapshot = await self._scrape()
        except KnownError as e:
            logger.error("Metagame refresh failed: %s", e)
            return await self._degrade(now, str(e))
        except Exception as e:
            logger.exception("Unexpected error during metagame refresh")
            return await self._degrade(now, f"{type(e).__name__}: {e}")

        await self.store_snapshot(snapshot, now)
        await self._write_status("success", f"{len(snapshot.decks)} decks", now)
        logger.info("Snapshot refreshed with %d decks", len(snapshot.decks))
        return RefreshResult(snapshot=snapshot, status=RefreshStatus.REFRESHED)

    async def _degrade(self, now: datetime, error: str) -> RefreshResult:
        await self._write_status("error", error, now)

        record = await self.get()
        if record is not None:
            logger.warning("Serving stale snapshot from %s", record.last_refreshed_at.isoformat())
            return RefreshResult(snapshot=record.snapshot, status=RefreshStatus.STALE, error=error)

        if self.use_fallback:
            logger.warning("No cached snapshot, serving fallback dataset")
            return RefreshResult(
                snapshot=self._fallback(now), status=RefreshStatus.FALLBACK, error=error
            )

        raise SnapshotUnavailableError(error)

"""Tests for the snapshot cache and its refresh policy."""

import asyncio
import json
from dataclasses import replace
from datetime import datetime, timedelta

import httpx
import pytest
import respx

from metascout.config import LAST_UPDATE_KEY, META_DATA_KEY, UPDATE_STATUS_KEY
from metascout.db.store import InMemoryStore
from metascout.models.deck import MetaSnapshot, RefreshStatus
from metascout.models.failure import (
    CacheUnavailableError,
    EmptyOverviewError,
    FetchError,
    SnapshotUnavailableError,
)
from metascout.scrapers.fetch import FetchClient
from metascout.services.pipeline import MetaPipeline
from metascout.services.snapshot_cache import (
    DEFAULT_TTL,
    SnapshotCache,
    from_epoch_ms,
    to_epoch_ms,
)

OVERVIEW_URL = "https://www.mtggoldfish.com/metagame/standard"


class FakeScraper:
    """Scrape stand-in that counts calls and can block or fail."""

    def __init__(
        self,
        result: MetaSnapshot | None = None,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ):
        self.result = result
        self.error = error
        self.gate = gate
        self.calls = 0

    async def __call__(self) -> MetaSnapshot:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        assert self.result is not None
        return self.result


class BrokenStore(InMemoryStore):
    """Store whose writes always fail."""

    async def set(self, key: str, value: str) -> None:
        raise CacheUnavailableError("set", "disk full")

    async def set_many(self, items) -> None:
        raise CacheUnavailableError("set", "disk full")


@pytest.fixture
def newer_snapshot(sample_snapshot: MetaSnapshot, now: datetime) -> MetaSnapshot:
    return replace(sample_snapshot, generated_at=now + timedelta(hours=25), source="newer")


def make_cache(store=None, scraper=None, **kwargs) -> SnapshotCache:
    return SnapshotCache(store or InMemoryStore(), scraper or FakeScraper(), **kwargs)


class TestEpochMillis:
    def test_round_trip(self, now: datetime) -> None:
        assert from_epoch_ms(to_epoch_ms(now)) == now

    def test_known_value(self, now: datetime) -> None:
        assert to_epoch_ms(now) == 1792411200000


class TestIsStale:
    async def test_empty_cache_is_stale(self, now: datetime) -> None:
        assert await make_cache().is_stale(now)

    async def test_one_millisecond_before_ttl_is_fresh(
        self, sample_snapshot: MetaSnapshot, now: datetime
    ) -> None:
        cache = make_cache()
        await cache.store_snapshot(sample_snapshot, now)

        assert not await cache.is_stale(now + DEFAULT_TTL - timedelta(milliseconds=1))

    async def test_exactly_ttl_is_stale(self, sample_snapshot: MetaSnapshot, now: datetime) -> None:
        cache = make_cache()
        await cache.store_snapshot(sample_snapshot, now)

        assert await cache.is_stale(now + DEFAULT_TTL)

    async def test_ttl_override(self, sample_snapshot: MetaSnapshot, now: datetime) -> None:
        cache = make_cache()
        await cache.store_snapshot(sample_snapshot, now)

        assert await cache.is_stale(now + timedelta(hours=2), ttl=timedelta(hours=1))

    async def test_reads_stored_timestamp(self, now: datetime) -> None:
        """A timestamp entry alone decides staleness, without a record."""
        store = InMemoryStore({LAST_UPDATE_KEY: str(to_epoch_ms(now))})
        cache = make_cache(store)

        assert not await cache.is_stale(now + timedelta(hours=1))

    async def test_malformed_timestamp_counts_as_missing(self, now: datetime) -> None:
        cache = make_cache(InMemoryStore({LAST_UPDATE_KEY: "yesterday"}))

        assert await cache.is_stale(now)


class TestEnsureFresh:
    async def test_fresh_snapshot_is_served_without_scraping(
        self, sample_snapshot: MetaSnapshot, now: datetime
    ) -> None:
        scraper = FakeScraper()
        cache = make_cache(scraper=scraper)
        await cache.store_snapshot(sample_snapshot, now)

        result = await cache.ensure_fresh(now + timedelta(hours=1))

        assert result.status is RefreshStatus.FRESH
        assert result.snapshot == sample_snapshot
        assert not result.degraded
        assert scraper.calls == 0

    async def test_stale_snapshot_triggers_scrape(
        self, sample_snapshot: MetaSnapshot, newer_snapshot: MetaSnapshot, now: datetime
    ) -> None:
        """25 hours after the last refresh a new scrape runs and is stored."""
        scraper = FakeScraper(result=newer_snapshot)
        cache = make_cache(scraper=scraper)
        await cache.store_snapshot(sample_snapshot, now)
        later = now + timedelta(hours=25)

        result = await cache.ensure_fresh(later)

        assert result.status is RefreshStatus.REFRESHED
        assert result.snapshot == newer_snapshot
        assert scraper.calls == 1
        assert await cache.last_refreshed_at() == later
        assert not await cache.is_stale(later)

    async def test_empty_cache_scrapes_and_persists(
        self, sample_snapshot: MetaSnapshot, now: datetime
    ) -> None:
        store = InMemoryStore()
        cache = make_cache(store, FakeScraper(result=sample_snapshot))

        await cache.ensure_fresh(now)

        assert json.loads(await store.get(META_DATA_KEY))["lastRefreshedAt"] == now.isoformat()
        assert await store.get(LAST_UPDATE_KEY) == str(to_epoch_ms(now))
        assert (await cache.update_status())["status"] == "success"

    async def test_concurrent_callers_share_one_scrape(
        self, sample_snapshot: MetaSnapshot, now: datetime
    ) -> None:
        gate = asyncio.Event()
        scraper = FakeScraper(result=sample_snapshot, gate=gate)
        cache = make_cache(scraper=scraper)

        first = asyncio.create_task(cache.ensure_fresh(now))
        second = asyncio.create_task(cache.ensure_fresh(now))
        third = asyncio.create_task(cache.force_refresh(now))
        await asyncio.sleep(0)
        assert cache.refreshing

        gate.set()
        results = await asyncio.gather(first, second, third)

        assert scraper.calls == 1
        assert {r.status for r in results} == {RefreshStatus.REFRESHED}
        assert not cache.refreshing

    async def test_cancelled_waiter_does_not_cancel_scrape(
        self, sample_snapshot: MetaSnapshot, now: datetime
    ) -> None:
        gate = asyncio.Event()
        scraper = FakeScraper(result=sample_snapshot, gate=gate)
        cache = make_cache(scraper=scraper)

        impatient = asyncio.create_task(cache.ensure_fresh(now))
        patient = asyncio.create_task(cache.ensure_fresh(now))
        await asyncio.sleep(0)
        impatient.cancel()
        gate.set()

        result = await patient

        assert result.status is RefreshStatus.REFRESHED
        assert impatient.cancelled()

    async def test_force_refresh_ignores_ttl(
        self, sample_snapshot: MetaSnapshot, newer_snapshot: MetaSnapshot, now: datetime
    ) -> None:
        scraper = FakeScraper(result=newer_snapshot)
        cache = make_cache(scraper=scraper)
        await cache.store_snapshot(sample_snapshot, now)

        result = await cache.force_refresh(now + timedelta(minutes=5))

        assert result.status is RefreshStatus.REFRESHED
        assert scraper.calls == 1


class TestDegradedRefresh:
    async def test_failed_scrape_serves_previous_snapshot(
        self, sample_snapshot: MetaSnapshot, now: datetime
    ) -> None:
        """An unreachable overview keeps the old snapshot and its timestamp."""
        error = FetchError("https://www.mtggoldfish.com/metagame/standard", 503, "HTTP 503")
        cache = make_cache(scraper=FakeScraper(error=error))
        await cache.store_snapshot(sample_snapshot, now)

        result = await cache.ensure_fresh(now + timedelta(hours=25))

        assert result.status is RefreshStatus.STALE
        assert result.degraded
        assert result.snapshot == sample_snapshot
        assert "HTTP 503" in result.error
        assert await cache.last_refreshed_at() == now
        assert (await cache.update_status())["status"] == "error"

    async def test_empty_overview_without_cache_serves_fallback(self, now: datetime) -> None:
        scraper = FakeScraper(error=EmptyOverviewError("https://example.test/metagame"))
        cache = make_cache(scraper=scraper)

        result = await cache.ensure_fresh(now)

        assert result.status is RefreshStatus.FALLBACK
        assert result.snapshot.source == "fallback"
        assert result.snapshot.decks

    async def test_fallback_is_never_stored(self, now: datetime) -> None:
        store = InMemoryStore()
        cache = make_cache(store, FakeScraper(error=RuntimeError("boom")))

        await cache.ensure_fresh(now)

        assert await cache.get() is None
        assert await store.get(META_DATA_KEY) is None
        assert await cache.is_stale(now)

    async def test_unexpected_error_is_reported(self, now: datetime) -> None:
        cache = make_cache(scraper=FakeScraper(error=RuntimeError("boom")))

        result = await cache.ensure_fresh(now)

        assert result.error == "RuntimeError: boom"

    async def test_no_fallback_raises(self, now: datetime) -> None:
        scraper = FakeScraper(error=EmptyOverviewError("https://example.test/metagame"))
        cache = make_cache(scraper=scraper, use_fallback=False)

        with pytest.raises(SnapshotUnavailableError):
            await cache.ensure_fresh(now)

    async def test_storage_failure_keeps_snapshot_in_memory(
        self, sample_snapshot: MetaSnapshot, now: datetime
    ) -> None:
        cache = make_cache(BrokenStore(), FakeScraper(result=sample_snapshot))

        result = await cache.ensure_fresh(now)

        assert result.status is RefreshStatus.REFRESHED
        assert await cache.get_latest_snapshot() == sample_snapshot
        assert not await cache.is_stale(now + timedelta(hours=1))


class TestPersistence:
    async def test_new_instance_loads_stored_record(
        self, sample_snapshot: MetaSnapshot, now: datetime
    ) -> None:
        store = InMemoryStore()
        await make_cache(store).store_snapshot(sample_snapshot, now)

        record = await make_cache(store).get()

        assert record is not None
        assert record.snapshot == sample_snapshot
        assert record.last_refreshed_at == now

    async def test_unreadable_record_is_ignored(self) -> None:
        cache = make_cache(InMemoryStore({META_DATA_KEY: "{not json"}))

        assert await cache.get() is None

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]"])
    async def test_unreadable_update_status_is_ignored(self, raw: str) -> None:
        cache = make_cache(InMemoryStore({UPDATE_STATUS_KEY: raw}))

        assert await cache.update_status() is None

    async def test_clear(self, sample_snapshot: MetaSnapshot, now: datetime) -> None:
        store = InMemoryStore()
        cache = make_cache(store)
        await cache.store_snapshot(sample_snapshot, now)

        await cache.clear()

        assert await cache.get() is None
        assert await store.get(LAST_UPDATE_KEY) is None
        assert await cache.is_stale(now)


class TestStats:
    async def test_empty(self, now: datetime) -> None:
        stats = await make_cache().stats(now)

        assert not stats.has_snapshot
        assert stats.age is None
        assert stats.is_stale

    async def test_with_snapshot(self, sample_snapshot: MetaSnapshot, now: datetime) -> None:
        cache = make_cache()
        await cache.store_snapshot(sample_snapshot, now)

        stats = await cache.stats(now + timedelta(hours=2))

        assert stats.has_snapshot
        assert stats.deck_count == 1
        assert stats.source == "MTGGoldfish"
        assert stats.age == timedelta(hours=2)
        assert not stats.is_stale


class TestEndToEndDegradation:
    @respx.mock
    async def test_unreachable_overview_keeps_previous_snapshot(
        self, sample_snapshot: MetaSnapshot, now: datetime, sleeps
    ) -> None:
        """Three failed overview attempts leave the stored snapshot untouched."""
        overview = respx.get(OVERVIEW_URL).mock(return_value=httpx.Response(503))
        store = InMemoryStore()

        async with FetchClient(max_retries=2, sleep=sleeps) as fetch_client:
            pipeline = MetaPipeline(fetch_client, sleep=sleeps, clock=lambda: now)
            cache = SnapshotCache(store, pipeline.scrape)
            await cache.store_snapshot(sample_snapshot, now)
            stored_before = await store.get(META_DATA_KEY)

            result = await cache.ensure_fresh(now + timedelta(hours=25))

        assert overview.call_count == 3
        assert sleeps.delays == [1.0, 2.0]
        assert result.status is RefreshStatus.STALE
        assert result.snapshot == sample_snapshot
        assert await store.get(META_DATA_KEY) == stored_before
        assert await cache.last_refreshed_at() == now

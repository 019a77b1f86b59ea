"""Tests for the snapshot API endpoints."""

from datetime import datetime

import pytest
from httpx import ASGITransport, AsyncClient

from metascout.api.deps import get_snapshot_cache
from metascout.config import UPDATE_STATUS_KEY
from metascout.db.store import InMemoryStore
from metascout.main import app
from metascout.models.deck import MetaSnapshot
from metascout.models.failure import EmptyOverviewError
from metascout.services.snapshot_cache import SnapshotCache


class StaticScraper:
    def __init__(self, snapshot: MetaSnapshot | None):
        self.snapshot = snapshot
        self.calls = 0

    async def __call__(self) -> MetaSnapshot:
        self.calls += 1
        if self.snapshot is None:
            raise EmptyOverviewError("https://www.mtggoldfish.com/metagame/standard")
        return self.snapshot


@pytest.fixture
def scraper(sample_snapshot: MetaSnapshot) -> StaticScraper:
    return StaticScraper(sample_snapshot)


@pytest.fixture
def cache(scraper: StaticScraper, now: datetime) -> SnapshotCache:
    return SnapshotCache(InMemoryStore(), scraper, clock=lambda: now)


@pytest.fixture
async def client(cache: SnapshotCache):
    """Provide an async test client wired to an in-memory snapshot cache."""
    app.dependency_overrides[get_snapshot_cache] = lambda: cache

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


class TestGetSnapshot:
    async def test_404_before_first_scrape(self, client: AsyncClient) -> None:
        response = await client.get("/snapshot")

        assert response.status_code == 404

    async def test_returns_cached_snapshot(
        self,
        client: AsyncClient,
        cache: SnapshotCache,
        sample_snapshot: MetaSnapshot,
        now: datetime,
    ) -> None:
        await cache.store_snapshot(sample_snapshot, now)

        response = await client.get("/snapshot")

        assert response.status_code == 200
        data = response.json()
        assert data["snapshot"]["source"] == "MTGGoldfish"
        assert data["snapshot"]["decks"][0]["name"] == "Mono Red Aggro"

    async def test_does_not_scrape(self, client: AsyncClient, scraper: StaticScraper) -> None:
        await client.get("/snapshot")

        assert scraper.calls == 0


class TestRefresh:
    async def test_refresh_scrapes_empty_cache(
        self, client: AsyncClient, scraper: StaticScraper
    ) -> None:
        response = await client.post("/snapshot/refresh")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "refreshed"
        assert data["degraded"] is False
        assert scraper.calls == 1

    async def test_second_refresh_is_served_from_cache(
        self, client: AsyncClient, scraper: StaticScraper
    ) -> None:
        await client.post("/snapshot/refresh")
        response = await client.post("/snapshot/refresh")

        assert response.json()["status"] == "fresh"
        assert scraper.calls == 1

    async def test_force_refresh(self, client: AsyncClient, scraper: StaticScraper) -> None:
        await client.post("/snapshot/refresh")
        response = await client.post("/snapshot/refresh", params={"force": "true"})

        assert response.json()["status"] == "refreshed"
        assert scraper.calls == 2

    async def test_failed_scrape_serves_fallback(
        self, client: AsyncClient, scraper: StaticScraper
    ) -> None:
        scraper.snapshot = None

        response = await client.post("/snapshot/refresh")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "fallback"
        assert data["degraded"] is True
        assert "No decks found" in data["error"]
        assert data["snapshot"]["source"] == "fallback"

    async def test_no_snapshot_available_is_503(
        self, client: AsyncClient, cache: SnapshotCache, scraper: StaticScraper
    ) -> None:
        scraper.snapshot = None
        cache.use_fallback = False

        response = await client.post("/snapshot/refresh")

        assert response.status_code == 503


class TestStatus:
    async def test_empty_cache_status(self, client: AsyncClient) -> None:
        response = await client.get("/snapshot/status")

        assert response.status_code == 200
        data = response.json()
        assert data["has_snapshot"] is False
        assert data["is_stale"] is True
        assert data["last_update"] is None

    async def test_status_after_refresh(self, client: AsyncClient) -> None:
        await client.post("/snapshot/refresh")

        data = (await client.get("/snapshot/status")).json()

        assert data["has_snapshot"] is True
        assert data["deck_count"] == 1
        assert data["age_seconds"] == 0
        assert data["last_update"]["status"] == "success"

    async def test_corrupt_update_status_is_not_an_error(
        self, client: AsyncClient, cache: SnapshotCache
    ) -> None:
        await cache.store.set(UPDATE_STATUS_KEY, "{truncated")

        response = await client.get("/snapshot/status")

        assert response.status_code == 200
        assert response.json()["last_update"] is None

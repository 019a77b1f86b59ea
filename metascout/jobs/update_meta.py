"""
Scheduled job to refresh the metagame snapshot.

Builds the fetch client, scrape pipeline and snapshot cache from settings
and runs one refresh. Can be run as a standalone script or called from a
scheduler or the API.
"""

import argparse
import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from metascout.config import Settings, settings
from metascout.db.database import async_session_factory, init_db
from metascout.db.store import KeyValueStore, SqlKeyValueStore
from metascout.models.deck import RefreshResult
from metascout.scrapers.egress import build_egress_resolver
from metascout.scrapers.fetch import FetchClient
from metascout.services.pipeline import MetaPipeline
from metascout.services.snapshot_cache import SnapshotCache

logger = logging.getLogger(__name__)


def create_fetch_client(config: Settings = settings) -> FetchClient:
    return FetchClient(
        build_egress_resolver(config.egress_relays),
        timeout=config.fetch_timeout_seconds,
        max_retries=config.max_retries,
        jitter=config.backoff_jitter_seconds,
        min_body_length=config.min_body_length,
    )


def create_pipeline(fetch_client: FetchClient, config: Settings = settings) -> MetaPipeline:
    return MetaPipeline(
        fetch_client,
        base_url=config.base_url,
        format_name=config.format_name,
        max_decks=config.max_decks,
        rate_limit=config.rate_limit_seconds,
        rate_limit_jitter=config.rate_limit_jitter_seconds,
    )


def create_snapshot_cache(
    store: KeyValueStore,
    pipeline: MetaPipeline,
    config: Settings = settings,
) -> SnapshotCache:
    return SnapshotCache(
        store,
        pipeline.scrape,
        ttl=timedelta(hours=config.cache_ttl_hours),
        use_fallback=config.use_fallback_data,
    )


@asynccontextmanager
async def open_snapshot_cache(
    store: KeyValueStore | None = None,
    config: Settings = settings,
) -> AsyncIterator[SnapshotCache]:
    """
    Snapshot cache wired to a live fetch client.

    Args:
        store: Storage to use. Defaults to the configured database,
            whose tables are created if missing.
        config: Settings to build from
    """
    if store is None:
        await init_db()
        store = SqlKeyValueStore(async_session_factory)

    async with create_fetch_client(config) as fetch_client:
        yield create_snapshot_cache(store, create_pipeline(fetch_client, config), config)


async def run_meta_update(
    force: bool = False,
    store: KeyValueStore | None = None,
    config: Settings = settings,
) -> RefreshResult:
    """
    Refresh the snapshot if it is stale, or unconditionally with ``force``.

    Returns:
        The refresh result, including whether it was degraded
    """
    async with open_snapshot_cache(store, config) as cache:
        if force:
            result = await cache.force_refresh()
        else:
            result = await cache.ensure_fresh()

    logger.info(
        "Meta update complete: %s, %d decks from %s",
        result.status.value,
        len(result.snapshot.decks),
        result.snapshot.source,
    )
    if result.error:
        logger.warning("Refresh error: %s", result.error)
    return result


def main() -> None:
    """CLI entry point for running meta update."""
    parser = argparse.ArgumentParser(description="Refresh the metagame snapshot")
    parser.add_argument("--force", action="store_true", help="Refresh even if the cache is fresh")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_meta_update(force=args.force))


if __name__ == "__main__":
    main()

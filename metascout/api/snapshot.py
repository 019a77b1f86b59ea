"""
Snapshot API endpoints.

Read the latest metagame snapshot and trigger refreshes.
"""

from datetime import datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from metascout.api.deps import get_snapshot_cache
from metascout.models.failure import SnapshotUnavailableError
from metascout.services.snapshot_cache import SnapshotCache

router = APIRouter(prefix="/snapshot", tags=["snapshot"])


class SnapshotResponse(BaseModel):
    """Response model for a snapshot, with how it was obtained."""

    status: str | None = None
    degraded: bool = False
    error: str | None = None
    snapshot: dict[str, Any]


class CacheStatusResponse(BaseModel):
    """Response model for cache state."""

    has_snapshot: bool
    deck_count: int
    source: str | None = None
    last_refreshed_at: datetime | None = None
    age_seconds: float | None = None
    is_stale: bool
    refreshing: bool
    last_update: dict[str, str] | None = None


@router.get("", response_model=SnapshotResponse)
async def get_latest_snapshot(
    cache: Annotated[SnapshotCache, Depends(get_snapshot_cache)],
) -> SnapshotResponse:
    """
    Get the latest cached snapshot without refreshing.

    Returns 404 if nothing has been scraped yet.
    """
    snapshot = await cache.get_latest_snapshot()
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No snapshot cached yet",
        )
    return SnapshotResponse(snapshot=snapshot.to_dict())


@router.post("/refresh", response_model=SnapshotResponse)
async def refresh_snapshot(
    cache: Annotated[SnapshotCache, Depends(get_snapshot_cache)],
    force: Annotated[bool, Query()] = False,
) -> SnapshotResponse:
    """
    Refresh the snapshot if stale, or always with ``force``.

    Blocks until a fresh or best-effort snapshot is available.
    """
    try:
        result = await (cache.force_refresh() if force else cache.ensure_fresh())
    except SnapshotUnavailableError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e

    return SnapshotResponse(
        status=result.status.value,
        degraded=result.degraded,
        error=result.error,
        snapshot=result.snapshot.to_dict(),
    )


@router.get("/status", response_model=CacheStatusResponse)
async def snapshot_status(
    cache: Annotated[SnapshotCache, Depends(get_snapshot_cache)],
) -> CacheStatusResponse:
    """Cache state and the outcome of the last refresh attempt."""
    stats = await cache.stats()
    return CacheStatusResponse(
        has_snapshot=stats.has_snapshot,
        deck_count=stats.deck_count,
        source=stats.source,
        last_refreshed_at=stats.last_refreshed_at,
        age_seconds=stats.age.total_seconds() if stats.age is not None else None,
        is_stale=stats.is_stale,
        refreshing=stats.refreshing,
        last_update=await cache.update_status(),
    )

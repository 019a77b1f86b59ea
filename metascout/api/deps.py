from fastapi import HTTPException, Request, status

from metascout.services.snapshot_cache import SnapshotCache


def get_snapshot_cache(request: Request) -> SnapshotCache:
    """The application's snapshot cache, set up in the lifespan handler."""
    cache = getattr(request.app.state, "snapshot_cache", None)
    if cache is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Snapshot cache is not initialized",
        )
    return cache

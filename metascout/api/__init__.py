from metascout.api.health import router as health_router
from metascout.api.snapshot import router as snapshot_router

__all__ = [
    "health_router",
    "snapshot_router",
]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from metascout.api import health_router, snapshot_router
from metascout.config import settings
from metascout.jobs.update_meta import open_snapshot_cache


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    async with open_snapshot_cache() as cache:
        app.state.snapshot_cache = cache
        yield
        app.state.snapshot_cache = None


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("metascout"),
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(snapshot_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

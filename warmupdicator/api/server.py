"""FastAPI server exposing the warmup health endpoint."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from fastapi import FastAPI

from ..checks.base import Check
from ..config import Settings
from ..lifecycle import warmup_lifespan
from ..registry import WarmupRegistry
from .health_routes import health_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    checks: Iterable[Check] = (),
    registry: WarmupRegistry | None = None,
) -> FastAPI:
    """Create the FastAPI application with warmup wiring."""
    app = FastAPI(
        title="Warmupdicator",
        version="0.1.0",
        lifespan=warmup_lifespan(settings, checks=checks, registry=registry),
    )
    app.include_router(health_router)
    return app

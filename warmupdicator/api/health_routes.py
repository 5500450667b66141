"""Warmup health endpoint.

  GET /health/warmup  UP (200) once every check has succeeded, DOWN (503) before
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..service import WarmupSnapshot

logger = logging.getLogger(__name__)

health_router = APIRouter()


def render_health(snapshot: WarmupSnapshot, show_details: bool = False) -> dict[str, Any]:
    """Render a snapshot as an up/down health document."""
    details: dict[str, Any] = {
        "status": "OK" if snapshot.warmed_up else "FAIL",
        "timeMs": snapshot.total_elapsed_ms,
        "tries": snapshot.total_tries,
    }
    if show_details:
        details["details"] = {cid: r.describe() for cid, r in snapshot.per_check.items()}
    return {"status": "UP" if snapshot.warmed_up else "DOWN", "details": details}


@health_router.get("/health/warmup")
def warmup_health(request: Request) -> JSONResponse:
    """Readiness of the warmup run."""
    service = request.app.state.warmup_service
    cfg = request.app.state.warmup_settings

    snapshot = service.snapshot()
    body = render_health(snapshot, show_details=cfg.warmup_show_details)
    return JSONResponse(status_code=200 if snapshot.warmed_up else 503, content=body)

"""Process wiring: fires the warmup run once the app has started."""

from __future__ import annotations

import logging
import threading
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from .checks.base import Check
from .config import Settings, settings as default_settings
from .registry import WarmupRegistry, build_checks
from .service import WarmupService

logger = logging.getLogger(__name__)


class WarmupTrigger:
    """One-shot trigger: runs ``service.run()`` on a daemon thread.

    The thread is a daemon because a run that never converges must not keep
    the process alive on shutdown.
    """

    def __init__(self, service: WarmupService) -> None:
        self.service = service
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def fired(self) -> bool:
        return self._thread is not None

    def fire(self) -> bool:
        """Start the run. Returns False if it was already started."""
        with self._lock:
            if self._thread is not None:
                logger.warning("Warmup trigger already fired, ignoring")
                return False
            self._thread = threading.Thread(target=self.service.run, name="warmup-run", daemon=True)
            self._thread.start()
        logger.info("Warmup triggered for %d checks", len(self.service.check_ids))
        return True

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the run. Returns True if it has finished."""
        if self._thread is None:
            return False
        self._thread.join(timeout)
        return not self._thread.is_alive()


def resolve_config_path(raw: str) -> Path:
    path = Path(raw)
    if not path.is_absolute():
        path = Path.cwd() / path
    return path


def warmup_lifespan(
    settings: Settings | None = None,
    checks: Iterable[Check] = (),
    registry: WarmupRegistry | None = None,
) -> Callable[[FastAPI], AbstractAsyncContextManager[None]]:
    """Build a FastAPI lifespan that registers checks and fires the warmup.

    Routes must be registered before startup for the model warmer to see them.
    """
    cfg = settings or default_settings
    extra = list(checks)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        reg = registry or WarmupRegistry(path=resolve_config_path(cfg.warmup_config_file))
        service = WarmupService(
            build_checks(cfg, reg, app=app, extra=extra),
            max_workers=cfg.warmup_max_workers,
        )
        trigger = WarmupTrigger(service)

        app.state.warmup_settings = cfg
        app.state.warmup_service = service
        app.state.warmup_trigger = trigger

        trigger.fire()
        yield

    return lifespan

"""Shared test fixtures."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

import pytest

from warmupdicator.checks.base import Check, CheckResult
from warmupdicator.service import WarmupService


class ScriptedCheck(Check):
    """Check that replays a list of outcomes; the last one repeats forever."""

    def __init__(self, check_id: str, outcomes: list[bool], delay: float = 0.0) -> None:
        self._id = check_id
        self._outcomes = outcomes
        self._delay = delay
        self._lock = threading.Lock()
        self.calls = 0

    def identity(self) -> str:
        return self._id

    def execute(self) -> CheckResult:
        with self._lock:
            idx = self.calls
            self.calls += 1
        if self._delay:
            time.sleep(self._delay)
        ok = self._outcomes[min(idx, len(self._outcomes) - 1)]
        if ok:
            return CheckResult.ok(5)
        return CheckResult.failure(f"{self._id} not ready", 5)


@pytest.fixture
def make_check() -> Callable[..., ScriptedCheck]:
    """Factory for ScriptedCheck instances."""

    def factory(check_id: str, *outcomes: bool, delay: float = 0.0) -> ScriptedCheck:
        return ScriptedCheck(check_id, list(outcomes) or [True], delay=delay)

    return factory


@pytest.fixture
def run_in_thread() -> Callable[[WarmupService, float], bool]:
    """Run a service on a daemon thread; return True if it finished in time."""

    def runner(service: WarmupService, timeout: float = 5.0) -> bool:
        t = threading.Thread(target=service.run, daemon=True)
        t.start()
        t.join(timeout)
        return not t.is_alive()

    return runner


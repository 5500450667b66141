"""Check contract: the unit of readiness work driven by the warmup service.

A check probes one piece of first-use initialization (a cold endpoint, a
serializer cache, a connection pool) and reports a CheckResult. Checks time
themselves and never raise: every internal error becomes a failed result.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

logger = logging.getLogger(__name__)

OK_MESSAGE = "OK"


# ── Result ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a single check execution.

    ``attempt_count`` is the round in which the result was recorded; the
    warmup service stamps it when storing, checks leave it at 1.
    """

    success: bool
    message: str
    response_time_ms: int
    attempt_count: int = 1

    def __post_init__(self) -> None:
        if self.attempt_count < 1:
            raise ValueError(f"attempt_count must be >= 1, got {self.attempt_count}")

    @classmethod
    def ok(cls, response_time_ms: int, attempt_count: int = 1) -> CheckResult:
        return cls(True, OK_MESSAGE, response_time_ms, attempt_count)

    @classmethod
    def failure(cls, message: str, response_time_ms: int, attempt_count: int = 1) -> CheckResult:
        return cls(False, message, response_time_ms, attempt_count)

    def with_attempt(self, attempt_count: int) -> CheckResult:
        return replace(self, attempt_count=attempt_count)

    def describe(self) -> str:
        """Human-readable detail line for health reporting."""
        if self.success:
            return f"OK (in {self.response_time_ms}ms, attempts: {self.attempt_count})"
        return f"{self.message} (took {self.response_time_ms}ms, attempts: {self.attempt_count})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "response_time_ms": self.response_time_ms,
            "attempt_count": self.attempt_count,
        }


def elapsed_ms(t0: float) -> int:
    """Milliseconds since a ``time.perf_counter()`` reading."""
    return int((time.perf_counter() - t0) * 1000)


# ── Contract ─────────────────────────────────────────────────────────────────


class Check(ABC):
    """A readiness check registered with the warmup service."""

    @abstractmethod
    def execute(self) -> CheckResult:
        """Run the probe once. Must not raise."""

    @abstractmethod
    def identity(self) -> str:
        """Stable identifier, unique within a run."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.identity()!r})"


class FunctionCheck(Check):
    """Wrap a plain callable as a check.

    The callable may return ``None``/``True`` (success), ``False`` (failure)
    or a ready-made CheckResult. Exceptions become failed results.
    """

    def __init__(self, check_id: str, fn: Callable[[], Any]) -> None:
        self._id = check_id
        self._fn = fn

    def identity(self) -> str:
        return self._id

    def execute(self) -> CheckResult:
        logger.debug("Executing application check: %s", self._id)
        t0 = time.perf_counter()
        try:
            outcome = self._fn()
        except Exception as e:
            logger.warning("Check %s raised: %s", self._id, e)
            return CheckResult.failure(f"{type(e).__name__}: {e}", elapsed_ms(t0))

        if isinstance(outcome, CheckResult):
            return outcome
        if outcome is False:
            return CheckResult.failure(f"Check {self._id} reported not ready", elapsed_ms(t0))
        return CheckResult.ok(elapsed_ms(t0))


def check(check_id: str) -> Callable[[Callable[[], Any]], FunctionCheck]:
    """Decorator form of FunctionCheck::

        @check("cache-primed")
        def cache_primed() -> bool:
            return cache.size() > 0
    """

    def wrap(fn: Callable[[], Any]) -> FunctionCheck:
        return FunctionCheck(check_id, fn)

    return wrap

"""Warmup service: drives every registered check to success.

Checks run in rounds: each round fans out every check without a successful
result onto a thread pool, waits for all of them (barrier), stamps the results
with the round number and commits them to the ResultStore. The next round
starts immediately with whatever is still failing. There is no delay between
rounds, no round limit and no per-check timeout: a check that never succeeds
keeps ``run()`` looping and readiness false for the life of the process.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any

from .checks.base import Check, CheckResult, elapsed_ms

logger = logging.getLogger(__name__)


# ── Result store ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class WarmupSnapshot:
    """Point-in-time view of the warmup run."""

    per_check: dict[str, CheckResult] = field(default_factory=dict)
    total_elapsed_ms: int = 0
    total_tries: int = 0
    current_round: int = 0
    warmed_up: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "warmed_up": self.warmed_up,
            "total_elapsed_ms": self.total_elapsed_ms,
            "total_tries": self.total_tries,
            "current_round": self.current_round,
            "checks": {cid: r.to_dict() for cid, r in self.per_check.items()},
        }


class ResultStore:
    """Thread-safe latest-result map plus run counters.

    Writers commit a whole round at once; readers copy under the same lock,
    which is only held for the copy, so a snapshot never waits on a round
    that is still executing.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._results: dict[str, CheckResult] = {}
        self._total_tries = 0
        self._current_round = 0
        self._warmed_up = False
        self._started_at: float | None = None
        self._elapsed_ms = 0

    def start(self) -> None:
        with self._lock:
            self._started_at = time.perf_counter()

    def get(self, check_id: str) -> CheckResult | None:
        with self._lock:
            return self._results.get(check_id)

    def commit_round(self, results: list[tuple[str, CheckResult]]) -> None:
        """Overwrite entries with this round's results and advance the counters."""
        with self._lock:
            for check_id, result in results:
                self._results[check_id] = result
            self._total_tries += len(results)
            self._current_round += 1

    def is_converged(self, check_ids: Iterable[str]) -> bool:
        """True when every id has a result and every result is a success."""
        with self._lock:
            for cid in check_ids:
                result = self._results.get(cid)
                if result is None or not result.success:
                    return False
            return True

    def mark_converged(self) -> None:
        with self._lock:
            if self._started_at is not None:
                self._elapsed_ms = elapsed_ms(self._started_at)
            self._warmed_up = True

    @property
    def warmed_up(self) -> bool:
        with self._lock:
            return self._warmed_up

    def snapshot(self) -> WarmupSnapshot:
        with self._lock:
            elapsed = self._elapsed_ms
            if not self._warmed_up and self._started_at is not None:
                elapsed = elapsed_ms(self._started_at)
            return WarmupSnapshot(
                per_check=dict(self._results),
                total_elapsed_ms=elapsed,
                total_tries=self._total_tries,
                current_round=self._current_round,
                warmed_up=self._warmed_up,
            )


# ── Service ──────────────────────────────────────────────────────────────────


class WarmupService:
    """Runs a fixed set of checks until each has succeeded once."""

    def __init__(self, checks: Iterable[Check], max_workers: int | None = None) -> None:
        self._checks: tuple[Check, ...] = tuple(checks)
        self._ids: tuple[str, ...] = tuple(c.identity() for c in self._checks)
        self._max_workers = max_workers or None
        self.store = ResultStore()
        self._run_lock = threading.Lock()
        self._started = False

        dupes = sorted(cid for cid, n in Counter(self._ids).items() if n > 1)
        if dupes:
            logger.warning("Duplicate check identities share one result entry: %s", ", ".join(dupes))

    @property
    def check_ids(self) -> tuple[str, ...]:
        return self._ids

    # -- readiness surface -----------------------------------------------------

    def is_ready(self) -> bool:
        return self.store.warmed_up

    def snapshot(self) -> WarmupSnapshot:
        return self.store.snapshot()

    @property
    def results(self) -> dict[str, CheckResult]:
        return self.store.snapshot().per_check

    # -- run -------------------------------------------------------------------

    def run(self) -> None:
        """Execute rounds until every check has succeeded.

        Call once per process. A repeated call is ignored, it never restarts
        the loop.
        """
        with self._run_lock:
            if self._started:
                logger.warning("Warmup already started, ignoring repeated run()")
                return
            self._started = True

        self.store.start()

        if not self._checks:
            logger.info("No warmup checks configured, skipping warmup")
            self.store.mark_converged()
            return

        logger.info("Starting warmup for %d checks", len(self._checks))

        with ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="warmup") as executor:
            round_index = 0
            while True:
                if round_index > 0:
                    logger.info("Retry attempt %d for failed checks", round_index)

                self._run_round(executor, round_index)

                if self.store.is_converged(self._ids):
                    break

                failing = [cid for cid in dict.fromkeys(self._ids) if not self._succeeded(cid)]
                logger.info("Warmup retry needed for failing checks: [%s]", ", ".join(failing))
                round_index += 1

        self.store.mark_converged()
        snap = self.store.snapshot()
        logger.info(
            "Warmup completed successfully in %dms after %d tries (%d rounds)",
            snap.total_elapsed_ms, snap.total_tries, snap.current_round,
        )

    def _succeeded(self, check_id: str) -> bool:
        result = self.store.get(check_id)
        return result is not None and result.success

    def _run_round(self, executor: ThreadPoolExecutor, round_index: int) -> None:
        """Fan out every pending check, wait for all, commit the round."""
        attempt = round_index + 1
        futures: dict[Future[CheckResult], str] = {}
        for chk, cid in zip(self._checks, self._ids):
            if self._succeeded(cid):
                continue
            logger.debug("%s check: %s", "Executing" if round_index == 0 else "Retrying", cid)
            futures[executor.submit(chk.execute)] = cid

        wait(futures)

        committed: list[tuple[str, CheckResult]] = []
        for future, cid in futures.items():
            result = self._collect(future, cid).with_attempt(attempt)
            committed.append((cid, result))
            if result.success:
                logger.info("Warmup succeeded - %s (attempt %d)", cid, attempt)
            else:
                logger.info("Warmup failed - %s (attempt %d): %s", cid, attempt, result.message)

        self.store.commit_round(committed)

    @staticmethod
    def _collect(future: Future[CheckResult], check_id: str) -> CheckResult:
        try:
            result = future.result()
        except Exception as e:
            logger.exception("Check %s raised instead of returning a result", check_id)
            return CheckResult.failure(f"{type(e).__name__}: {e}", 0)
        if not isinstance(result, CheckResult):
            return CheckResult.failure(f"Check {check_id} returned {type(result).__name__}", 0)
        return result

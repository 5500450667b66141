"""Tests for the warmup service: rounds, retries, counters and snapshots."""

from __future__ import annotations

import logging
import threading
import time

from warmupdicator.checks.base import Check, CheckResult, FunctionCheck
from warmupdicator.service import ResultStore, WarmupService


# ── Convergence ──────────────────────────────────────────────────────────────


class TestRun:
    def test_no_checks_converges_immediately(self) -> None:
        service = WarmupService([])
        service.run()

        snap = service.snapshot()
        assert service.is_ready()
        assert snap.warmed_up is True
        assert snap.current_round == 0
        assert snap.total_tries == 0
        assert snap.per_check == {}

    def test_all_succeed_first_round(self, make_check) -> None:
        checks = [make_check("a"), make_check("b"), make_check("c")]
        service = WarmupService(checks)
        service.run()

        snap = service.snapshot()
        assert snap.warmed_up is True
        assert snap.current_round == 1
        assert snap.total_tries == 3
        assert all(r.success and r.attempt_count == 1 for r in snap.per_check.values())
        assert [c.calls for c in checks] == [1, 1, 1]

    def test_retry_until_success(self, make_check) -> None:
        x = make_check("x", True)
        y = make_check("y", False, False, True)
        service = WarmupService([x, y])
        service.run()

        snap = service.snapshot()
        assert snap.warmed_up is True
        assert snap.current_round == 3
        assert snap.total_tries == 4
        assert x.calls == 1
        assert y.calls == 3
        assert snap.per_check["x"].attempt_count == 1
        assert snap.per_check["y"].attempt_count == 3
        assert snap.per_check["y"].message == "OK"

    def test_total_tries_sums_launched_checks(self, make_check) -> None:
        # round 1: 3 launched, round 2: 2 launched, round 3: 1 launched
        checks = [
            make_check("a", True),
            make_check("b", False, True),
            make_check("c", False, False, True),
        ]
        service = WarmupService(checks)
        service.run()

        snap = service.snapshot()
        assert snap.current_round == 3
        assert snap.total_tries == 6
        assert sum(c.calls for c in checks) == snap.total_tries

    def test_attempt_count_is_round_index(self, make_check) -> None:
        # b fails once, then succeeds; it is recorded in round 2 regardless of
        # how slow c is to converge afterwards
        b = make_check("b", False, True)
        c = make_check("c", False, False, False, True)
        service = WarmupService([b, c])
        service.run()

        results = service.results
        assert results["b"].attempt_count == 2
        assert results["c"].attempt_count == 4

    def test_succeeded_check_never_reinvoked(self, make_check) -> None:
        done = make_check("done", True)
        slow = make_check("slow", False, False, False, False, True)
        service = WarmupService([done, slow])
        service.run()

        assert done.calls == 1
        assert slow.calls == 5

    def test_checks_in_a_round_run_concurrently(self, run_in_thread) -> None:
        barrier = threading.Barrier(2)
        checks = [
            FunctionCheck("left", lambda: barrier.wait(timeout=5)),
            FunctionCheck("right", lambda: barrier.wait(timeout=5)),
        ]
        service = WarmupService(checks)

        assert run_in_thread(service, 10.0)
        assert service.snapshot().current_round == 1

    def test_round_waits_for_slowest_check(self, make_check) -> None:
        fast = make_check("fast", True)
        slow = make_check("slow", True, delay=0.2)
        service = WarmupService([fast, slow])

        t0 = time.perf_counter()
        service.run()

        assert time.perf_counter() - t0 >= 0.2
        assert service.snapshot().current_round == 1


# ── Non-convergence ──────────────────────────────────────────────────────────


class TestNeverConverges:
    def test_failing_check_blocks_run(self, make_check) -> None:
        release = threading.Event()
        def stuck_fn() -> bool:
            if release.is_set():
                return True
            time.sleep(0.01)
            return False

        stuck = FunctionCheck("stuck", stuck_fn)
        service = WarmupService([make_check("ok"), stuck])

        t = threading.Thread(target=service.run, daemon=True)
        t.start()
        t.join(0.5)

        try:
            assert t.is_alive()
            assert not service.is_ready()
            snap = service.snapshot()
            assert snap.current_round > 1
            assert snap.per_check["ok"].success
            assert not snap.per_check["stuck"].success
            assert "not ready" in snap.per_check["stuck"].message
        finally:
            release.set()
            t.join(5)

        assert not t.is_alive()
        assert service.is_ready()


# ── Contract edges ───────────────────────────────────────────────────────────


class _RaisingCheck(Check):
    def __init__(self) -> None:
        self.calls = 0

    def identity(self) -> str:
        return "raiser"

    def execute(self) -> CheckResult:
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("boom")
        return CheckResult.ok(1)


class TestContractEdges:
    def test_raising_check_is_retried(self) -> None:
        chk = _RaisingCheck()
        service = WarmupService([chk])
        service.run()

        assert service.is_ready()
        assert chk.calls == 2
        assert service.results["raiser"].attempt_count == 2

    def test_second_run_is_ignored(self, make_check) -> None:
        chk = make_check("a")
        service = WarmupService([chk])
        service.run()
        service.run()

        assert chk.calls == 1
        assert service.snapshot().current_round == 1

    def test_duplicate_identities_warn(self, make_check, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="warmupdicator.service"):
            service = WarmupService([make_check("same"), make_check("same")])
        assert "Duplicate check identities" in caplog.text

        service.run()
        assert service.is_ready()
        assert len(service.results) == 1

    def test_identity_read_once(self) -> None:
        class Counting(Check):
            reads = 0

            def identity(self) -> str:
                Counting.reads += 1
                return "counted"

            def execute(self) -> CheckResult:
                return CheckResult.ok(0)

        service = WarmupService([Counting()])
        service.run()
        assert Counting.reads == 1


# ── Snapshots ────────────────────────────────────────────────────────────────


class TestSnapshot:
    def test_snapshot_during_round_does_not_block(self) -> None:
        started = threading.Event()
        gate = threading.Event()

        def blocked() -> bool:
            started.set()
            return gate.wait(5)

        service = WarmupService([FunctionCheck("blocked", blocked)])
        t = threading.Thread(target=service.run, daemon=True)
        t.start()
        assert started.wait(5)

        try:
            snap = service.snapshot()
            assert snap.warmed_up is False
            assert snap.current_round == 0
            assert snap.total_tries == 0
            assert snap.per_check == {}
            assert snap.total_elapsed_ms >= 0
        finally:
            gate.set()
            t.join(5)

        snap = service.snapshot()
        assert snap.warmed_up is True
        assert snap.current_round == 1

    def test_elapsed_frozen_after_convergence(self, make_check) -> None:
        service = WarmupService([make_check("a", delay=0.05)])
        service.run()

        first = service.snapshot().total_elapsed_ms
        time.sleep(0.05)
        assert service.snapshot().total_elapsed_ms == first
        assert first >= 50

    def test_snapshot_is_a_copy(self, make_check) -> None:
        service = WarmupService([make_check("a")])
        service.run()

        snap = service.snapshot()
        snap.per_check.clear()
        assert "a" in service.results

    def test_to_dict(self, make_check) -> None:
        service = WarmupService([make_check("a")])
        service.run()

        data = service.snapshot().to_dict()
        assert data["warmed_up"] is True
        assert data["total_tries"] == 1
        assert data["checks"]["a"]["success"] is True
        assert data["checks"]["a"]["attempt_count"] == 1


class TestResultStore:
    def test_commit_overwrites(self) -> None:
        store = ResultStore()
        store.commit_round([("a", CheckResult.failure("down", 3))])
        store.commit_round([("a", CheckResult.ok(4, attempt_count=2))])

        snap = store.snapshot()
        assert snap.per_check["a"].success
        assert snap.per_check["a"].attempt_count == 2
        assert snap.total_tries == 2
        assert snap.current_round == 2

    def test_is_converged_requires_every_id(self) -> None:
        store = ResultStore()
        store.commit_round([("a", CheckResult.ok(1))])

        assert store.is_converged(["a"])
        assert not store.is_converged(["a", "b"])

    def test_mark_converged_is_monotonic(self) -> None:
        store = ResultStore()
        store.start()
        assert not store.warmed_up
        store.mark_converged()
        assert store.warmed_up
        store.commit_round([("a", CheckResult.failure("late", 1))])
        assert store.warmed_up

"""Tests for refresh coalescing, driven tick by tick through a TickQueue."""

import pytest

from rttmap.refresh import IDLE, RUNNING, SCHEDULED, RefreshScheduler, TickQueue


class Harness:
    def __init__(self, during_pass=None, fail=False):
        self.ticks = TickQueue()
        self.calls = 0
        self.busy = []
        self.seen_pending = []
        self.seen_state = []
        self._during_pass = during_pass
        self._fail = fail
        self.scheduler = RefreshScheduler(
            self._pass, self.ticks.defer, on_busy=self.busy.append
        )

    def _pass(self):
        self.calls += 1
        self.seen_pending.append(self.scheduler.pending)
        self.seen_state.append(self.scheduler.state)
        if self._during_pass is not None:
            self._during_pass(self)
        if self._fail:
            raise RuntimeError("redraw failed")


class TestTickQueue:
    def test_deferred_callbacks_run_on_next_tick(self):
        ticks = TickQueue()
        ran = []

        ticks.defer(lambda: ran.append("a"))
        ticks.defer(lambda: ticks.defer(lambda: ran.append("c")))

        assert ticks.step() == 2
        assert ran == ["a"]
        assert len(ticks) == 1
        assert ticks.step() == 1
        assert ran == ["a", "c"]

    def test_drain_counts_ticks(self):
        ticks = TickQueue()
        ticks.defer(lambda: ticks.defer(lambda: None))

        assert ticks.drain() == 2
        assert len(ticks) == 0

    def test_drain_refuses_to_spin_forever(self):
        ticks = TickQueue()

        def again():
            ticks.defer(again)

        ticks.defer(again)
        with pytest.raises(RuntimeError):
            ticks.drain(max_ticks=10)


class TestRefreshScheduler:
    """Bursts collapse into one pass, plus at most one trailing pass."""

    def test_starts_idle(self):
        h = Harness()

        assert h.scheduler.state == IDLE
        assert h.scheduler.pending is False

    def test_pass_runs_after_two_ticks(self):
        h = Harness()

        h.scheduler.signal()
        assert h.scheduler.state == SCHEDULED

        h.ticks.step()
        assert h.calls == 0
        h.ticks.step()
        assert h.calls == 1
        assert h.scheduler.state == IDLE

    def test_burst_before_pass_runs_once(self):
        h = Harness()

        for _ in range(25):
            h.scheduler.signal()
        h.ticks.drain()

        assert h.calls == 1
        assert h.scheduler.passes == 1

    def test_signals_between_ticks_still_run_once(self):
        h = Harness()

        h.scheduler.signal()
        h.ticks.step()
        h.scheduler.signal()
        h.scheduler.signal()
        h.ticks.drain()

        assert h.calls == 1

    def test_signal_during_pass_runs_exactly_one_more(self):
        def burst(harness):
            if harness.calls == 1:
                for _ in range(10):
                    harness.scheduler.signal()

        h = Harness(during_pass=burst)

        h.scheduler.signal()
        h.ticks.drain()

        assert h.calls == 2
        assert h.scheduler.state == IDLE
        assert h.scheduler.pending is False

    def test_pending_is_cleared_before_pass(self):
        h = Harness()

        h.scheduler.signal()
        assert h.scheduler.pending is True
        h.ticks.drain()

        assert h.seen_pending == [False]
        assert h.seen_state == [RUNNING]

    def test_new_burst_after_idle_runs_again(self):
        h = Harness()

        h.scheduler.signal()
        h.ticks.drain()
        h.scheduler.signal()
        h.ticks.drain()

        assert h.calls == 2

    def test_busy_hook(self):
        def burst(harness):
            if harness.calls == 1:
                harness.scheduler.signal()

        h = Harness(during_pass=burst)

        h.scheduler.signal()
        h.ticks.drain()

        assert h.busy == [True, False]

    def test_failed_pass_returns_to_idle(self):
        h = Harness(fail=True)

        h.scheduler.signal()
        h.ticks.drain()

        assert h.calls == 1
        assert h.scheduler.passes == 0
        assert h.scheduler.state == IDLE
        assert h.busy == [True, False]

        h.scheduler.signal()
        h.ticks.drain()
        assert h.calls == 2

"""Coalescing of selection-change bursts into single recompute-and-redraw passes."""

from __future__ import annotations

from collections import deque
from typing import Callable, Optional

from rttmap.log import log

Callback = Callable[[], None]

IDLE = "idle"
SCHEDULED = "scheduled"
RUNNING = "running"


class TickQueue:
    """Cooperative host loop: callbacks deferred now run on the next tick.

    Stands in for a frame-paint cycle. The Streamlit viewer drains it once per
    script run; tests step it one tick at a time.
    """

    def __init__(self):
        self._queue: deque[Callback] = deque()

    def defer(self, callback: Callback) -> None:
        self._queue.append(callback)

    def __len__(self) -> int:
        return len(self._queue)

    def step(self) -> int:
        """Run the callbacks queued before this tick; return how many ran.

        Callbacks deferred while stepping wait for the next tick.
        """
        batch = list(self._queue)
        self._queue.clear()
        for callback in batch:
            callback()
        return len(batch)

    def drain(self, max_ticks: int = 1000) -> int:
        """Step until nothing is queued; return the number of ticks taken."""
        ticks = 0
        while self._queue:
            if ticks >= max_ticks:
                raise RuntimeError(f"TickQueue did not settle after {max_ticks} ticks")
            self.step()
            ticks += 1
        return ticks


class RefreshScheduler:
    """Single-flight refresh with one trailing re-run.

    State machine:
        idle -> (signal) -> scheduled -> (two ticks) -> running -> idle
    A signal arriving while running sets `pending`, and the running pass re-runs
    once more on the next tick. Any number of signals collapse into at most one
    re-run. The pending flag is cleared before a pass starts, so a signal that
    lands mid-pass is neither lost nor duplicated.

    There is no cancellation: a scheduled pass can only be superseded.
    """

    def __init__(
        self,
        run_pass: Callback,
        defer: Callable[[Callback], None],
        *,
        on_busy: Optional[Callable[[bool], None]] = None,
    ):
        """
        Args:
            run_pass: Recompute + redraw. Called with no arguments.
            defer: Schedules a callback on the host's next tick.
            on_busy: Optional busy indicator hook (True when a refresh starts,
                     False when the scheduler returns to idle).
        """
        self._run_pass = run_pass
        self._defer = defer
        self._on_busy = on_busy

        self._scheduled = False
        self._running = False
        self.pending = False
        self.passes = 0

    @property
    def state(self) -> str:
        if self._running:
            return RUNNING
        if self._scheduled:
            return SCHEDULED
        return IDLE

    def signal(self) -> None:
        """Note that the selection changed; schedule a refresh if none is in flight."""
        self.pending = True
        if self._scheduled:
            return

        self._scheduled = True
        self._set_busy(True)
        # Two chained ticks: let the host paint once before recomputing, and give
        # the rest of a burst time to arrive.
        self._defer(lambda: self._defer(self._run))

    def _run(self) -> None:
        self.pending = False
        self._running = True
        try:
            self._run_pass()
            self.passes += 1
        except Exception:
            log.exception("Refresh pass failed")
            self._finish()
            return
        finally:
            self._running = False

        if self.pending:
            log.debug("Selection changed during refresh; re-running once")
            self._defer(self._run)
            return

        self._finish()

    def _finish(self) -> None:
        self._scheduled = False
        self._set_busy(False)

    def _set_busy(self, busy: bool) -> None:
        if self._on_busy is not None:
            self._on_busy(busy)

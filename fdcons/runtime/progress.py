"""Console progress of the step loop.

The reporter is driven by the snapshots of the runner: it shows how much of
the simulated interval is covered, the step rate over the last few samples
and the time left at that rate.
"""

from __future__ import annotations

import math
import sys
import time
from collections import deque
from typing import TYPE_CHECKING, Deque, Optional, TextIO, Tuple

from .helpers import format_seconds

if TYPE_CHECKING:  # pragma: no cover
    from ..solver import GridState

RATE_WINDOW = 16


class ProgressReporter:
    """Report simulated time, steps per second and the remaining wall time.

    ``duration`` is the simulated time covered by ``total_steps`` steps.
    Lines are rendered at most every ``refresh_seconds`` and always for the
    last step.
    """

    def __init__(
        self,
        total_steps: int,
        duration: float,
        *,
        refresh_seconds: float = 1.0,
        enabled: bool = False,
        label: Optional[str] = None,
        stream: Optional[TextIO] = None,
    ) -> None:
        self.total_steps = max(int(total_steps), 0)
        self.duration = max(float(duration), 0.0)
        self.refresh_seconds = max(float(refresh_seconds), 0.0)
        self.enabled = bool(enabled and self.total_steps > 0)
        self.label = label
        self.stream = stream
        self._samples: Deque[Tuple[float, int]] = deque(maxlen=RATE_WINDOW)
        self._step0 = 0
        self._time0 = 0.0
        self._last_render: Optional[float] = None
        self._done = False

    def begin(self, state: "GridState") -> None:
        """Anchor the step count and simulated time at ``state``."""

        self._step0 = state.step
        self._time0 = state.time
        self._samples.clear()
        self._samples.append((time.monotonic(), state.step))
        self._last_render = None
        self._done = False

    def steps_done(self, state: "GridState") -> int:
        return state.step - self._step0

    def rate(self) -> float:
        """Steps per second over the sample window (``nan`` before two samples)."""

        if len(self._samples) < 2:
            return math.nan
        (t_first, s_first), (t_last, s_last) = self._samples[0], self._samples[-1]
        if t_last <= t_first:
            return math.nan
        return (s_last - s_first) / (t_last - t_first)

    def sim_fraction(self, state: "GridState") -> float:
        if self.duration > 0.0:
            frac = (state.time - self._time0) / self.duration
        else:
            frac = self.steps_done(state) / max(self.total_steps, 1)
        return min(max(frac, 0.0), 1.0)

    def format_line(self, state: "GridState") -> str:
        done = self.steps_done(state)
        rate = self.rate()
        remaining = max(self.total_steps - done, 0)
        eta = remaining / rate if rate > 0.0 else math.nan
        rate_text = f"{rate:.1f} steps/s" if math.isfinite(rate) else "? steps/s"
        prefix = f"{self.label}: " if self.label else ""
        return (
            f"{prefix}t={state.time:.4g} ({100.0 * self.sim_fraction(state):5.1f}%) "
            f"step {done}/{self.total_steps} {rate_text} left {format_seconds(eta)}"
        )

    def update(self, state: "GridState", *, force: bool = False) -> None:
        """Record ``state`` and render when the refresh interval has passed."""

        if not self.enabled or self._done:
            return
        now = time.monotonic()
        self._samples.append((now, state.step))
        last = self.steps_done(state) >= self.total_steps
        due = self._last_render is None or now - self._last_render >= self.refresh_seconds
        if not (force or last or due):
            return
        self._last_render = now
        self._write(self.format_line(state), last)
        if last:
            self._done = True

    def finish(self, state: "GridState") -> None:
        """Render the final line unless the last step already did."""

        if self.enabled and not self._done:
            self.update(state, force=True)
            self._done = True

    def _write(self, line: str, last: bool) -> None:
        stream = self.stream if self.stream is not None else sys.stdout
        if stream.isatty():
            stream.write(f"\r\033[2K{line}")
            if last:
                stream.write("\n")
        else:
            stream.write(f"{line}\n")
        stream.flush()

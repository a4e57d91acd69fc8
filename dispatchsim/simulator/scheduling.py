"""One-shot deferred completions on the SimPy clock."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

import simpy

LOGGER = logging.getLogger(__name__)


class CompletionScheduler:
    """Schedules completions tagged with the trial they belong to.

    The delay is computed from the speed multiplier at scheduling time, so a
    later speed change does not stretch or shrink completions already in
    flight. A completion that fires after its trial was superseded is
    discarded without touching any state.
    """

    def __init__(
        self,
        env: simpy.Environment,
        *,
        speed: Callable[[], float] = lambda: 1.0,
        is_current: Callable[[int], bool] = lambda trial_id: True,
        lock: threading.RLock | None = None,
    ) -> None:
        self.env = env
        self.speed = speed
        self.is_current = is_current
        self.lock = lock or threading.RLock()
        self.scheduled = 0
        self.fired = 0
        self.stale = 0

    def delay_for(self, processing_seconds: float) -> float:
        return processing_seconds / self.speed()

    def schedule(
        self,
        trial_id: int,
        processing_seconds: float,
        callback: Callable[..., Any],
        *args: Any,
    ) -> simpy.Process:
        delay = self.delay_for(processing_seconds)
        self.scheduled += 1
        return self.env.process(self._fire(trial_id, delay, callback, args))

    def _fire(self, trial_id: int, delay: float, callback, args):
        yield self.env.timeout(delay)
        with self.lock:
            if not self.is_current(trial_id):
                self.stale += 1
                LOGGER.debug("Discarding completion scheduled under trial %s.", trial_id)
                return
            self.fired += 1
            callback(*args)


__all__ = ["CompletionScheduler"]

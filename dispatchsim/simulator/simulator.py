"""SimPy-driven trial orchestration for the call vs. report comparison."""

from __future__ import annotations

import logging
import random
import threading
from enum import Enum
from typing import Callable, List, Tuple

import simpy
import simpy.rt

from .call_pipeline import CallPipeline
from .config import SimulationConfig, load_simulation_config, validate_speed
from .entities import Emergency
from .generator import EmergencyGenerator, draw_incident_volume
from .metrics import ResultLedger, SimulationResult
from .report_pipeline import ReportPipeline
from .scheduling import CompletionScheduler
from .self_completion import SelfCompletionCheck
from .snapshot import SimulationSnapshot, build_pipeline_snapshot
from .state import TrialContext


LOGGER = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"


class SimulationStateError(RuntimeError):
    """Raised when a command is issued in a state that does not allow it."""


class TrialOrchestrator:
    """Owns the trial state machine and the two periodic SimPy drivers.

    Environment time is measured in wall-clock seconds; the simulated clock is
    the integer second counter on the current :class:`TrialContext`. Both
    drivers fire every ``1 / speed`` environment seconds. The generation driver
    is registered first, so at any instant it runs ahead of the processing
    driver, which then advances the clock.
    """

    def __init__(
        self,
        config: SimulationConfig | None = None,
        *,
        env: simpy.Environment | None = None,
        seed: int | None = None,
    ) -> None:
        self.config = (config or SimulationConfig()).validate()
        self.env = env or simpy.Environment()
        self.seed = seed if seed is not None else self.config.seed
        self.random = random.Random(self.seed)
        self.state = RunState.IDLE
        self.speed = float(self.config.speed_multiplier)
        self.trial: TrialContext | None = None
        self.trial_count = 0
        self.ledger = ResultLedger()
        self.suppressed_ticks = 0
        self._lock = threading.RLock()
        self.scheduler = CompletionScheduler(
            self.env,
            speed=lambda: self.speed,
            is_current=self._is_current_trial,
            lock=self._lock,
        )
        self.generator = EmergencyGenerator(self.config, self.random)
        self.call_pipeline = CallPipeline(self.config.call, self.random, self.scheduler)
        self.self_completion = SelfCompletionCheck(
            self.config.self_completion, self.random
        )
        self.report_pipeline = ReportPipeline(
            self.config.report, self.random, self.scheduler
        )
        self.env.process(self._driver(self._generation_tick))
        self.env.process(self._driver(self._processing_tick))

    @property
    def tick_interval(self) -> float:
        return 1.0 / self.speed

    @property
    def horizon_seconds(self) -> int:
        return self.config.horizon_seconds

    @property
    def results(self) -> Tuple[SimulationResult, ...]:
        return self.ledger.rows

    @property
    def sim_time(self) -> int:
        return self.trial.clock if self.trial else 0

    # Commands -----------------------------------------------------------

    def start_trial(self) -> int:
        with self._lock:
            if self.state in (RunState.RUNNING, RunState.PAUSED):
                raise SimulationStateError(
                    f"Trial {self.trial_count} is still {self.state.value}; "
                    "wait for it to finish before starting another."
                )
            self.trial_count += 1
            volume = draw_incident_volume(self.config, self.random)
            self.trial = TrialContext.build(
                self.trial_count, self.config, volume, self.random
            )
            self.state = RunState.RUNNING
            LOGGER.info(
                "Started trial %s: %s incidents over %sh (p=%.4f per tick).",
                self.trial_count,
                volume.total,
                self.config.horizon_hours,
                volume.per_tick_probability,
            )
            return self.trial_count

    def pause(self) -> None:
        with self._lock:
            if self.state is not RunState.RUNNING:
                raise SimulationStateError(f"Cannot pause while {self.state.value}.")
            self.state = RunState.PAUSED
            LOGGER.info("Paused trial %s at t=%ss.", self.trial_count, self.sim_time)

    def resume(self) -> None:
        with self._lock:
            if self.state is not RunState.PAUSED:
                raise SimulationStateError(f"Cannot resume while {self.state.value}.")
            self.state = RunState.RUNNING
            LOGGER.info("Resumed trial %s at t=%ss.", self.trial_count, self.sim_time)

    def set_speed(self, multiplier: float) -> float:
        """Change the tick cadence; completions already scheduled keep their delay."""
        speed = validate_speed(multiplier)
        with self._lock:
            self.speed = speed
        LOGGER.debug("Speed multiplier set to %gx.", speed)
        return speed

    def inject_incident(
        self, latitude: float, longitude: float
    ) -> Tuple[Emergency, Emergency]:
        """Insert an incident at the current simulated second into both pipelines."""
        with self._lock:
            if self.state not in (RunState.RUNNING, RunState.PAUSED):
                raise SimulationStateError(
                    f"Cannot inject an incident while {self.state.value}."
                )
            return self.generator.emit(self.trial, self.trial.clock, (latitude, longitude))

    def snapshot(self, *, include_entities: bool = True) -> SimulationSnapshot:
        with self._lock:
            trial = self.trial
            if trial is None:
                return SimulationSnapshot(
                    state=self.state.value,
                    trial=None,
                    sim_time=0,
                    speed=self.speed,
                    call=None,
                    report=None,
                    results=self.ledger.rows,
                )
            return SimulationSnapshot(
                state=self.state.value,
                trial=trial.trial_id,
                sim_time=trial.clock,
                speed=self.speed,
                call=build_pipeline_snapshot(
                    trial.call, trial.clock, include_entities=include_entities
                ),
                report=build_pipeline_snapshot(
                    trial.report, trial.clock, include_entities=include_entities
                ),
                results=self.ledger.rows,
            )

    # Batch helpers ------------------------------------------------------

    def run_trial(self) -> List[SimulationResult]:
        """Start a trial and step the environment until it finishes."""
        trial_id = self.start_trial()
        while self.state is not RunState.FINISHED:
            self.env.step()
        return self.ledger.for_trial(trial_id)

    # Drivers ------------------------------------------------------------

    def _driver(self, tick: Callable[[], None]):
        while True:
            if self.state is RunState.RUNNING:
                self._guarded(tick)
            yield self.env.timeout(self.tick_interval)

    def _guarded(self, tick: Callable[[], None]) -> None:
        if not self._lock.acquire(blocking=False):
            self.suppressed_ticks += 1
            LOGGER.debug("Tick suppressed; previous work still holds the lock.")
            return
        try:
            # State may have changed while waiting on a command.
            if self.state is RunState.RUNNING:
                tick()
        finally:
            self._lock.release()

    def _generation_tick(self) -> None:
        trial = self.trial
        self.generator.tick(trial, trial.clock)

    def _processing_tick(self) -> None:
        trial = self.trial
        now = trial.clock
        self.call_pipeline.step(trial.call, now)
        self.self_completion.check(trial.call, now)
        self.report_pipeline.step(trial.report, now)
        trial.clock = now + 1
        if trial.clock >= self.horizon_seconds:
            self._finish(trial)

    def _finish(self, trial: TrialContext) -> None:
        self.state = RunState.FINISHED
        if self.ledger.has_trial(trial.trial_id):
            LOGGER.debug("Results for trial %s already captured.", trial.trial_id)
            return
        rows = [
            SimulationResult.from_stats(trial.trial_id, pipeline.label, pipeline.stats)
            for pipeline in (trial.report, trial.call)
        ]
        self.ledger.record(trial.trial_id, rows)
        LOGGER.info(
            "Finished trial %s at t=%ss (%s stale completions discarded so far).",
            trial.trial_id,
            trial.clock,
            self.scheduler.stale,
        )

    def _is_current_trial(self, trial_id: int) -> bool:
        return self.trial is not None and self.trial.trial_id == trial_id


class SimulationRunner:
    """Runs back-to-back trials headless (or paced to the wall clock)."""

    def __init__(
        self,
        config: SimulationConfig | None = None,
        *,
        seed: int | None = None,
        realtime: bool = False,
    ) -> None:
        self.config = config or load_simulation_config()
        env = (
            simpy.rt.RealtimeEnvironment(factor=1.0, strict=False)
            if realtime
            else simpy.Environment()
        )
        self.orchestrator = TrialOrchestrator(self.config, env=env, seed=seed)

    def run(self) -> List[SimulationResult]:
        return self.orchestrator.run_trial()

    def run_trials(self, count: int) -> List[SimulationResult]:
        if count <= 0:
            raise ValueError("Trial count must be positive.")
        rows: List[SimulationResult] = []
        for _ in range(count):
            rows.extend(self.run())
        return rows


__all__ = [
    "RunState",
    "SimulationRunner",
    "SimulationStateError",
    "TrialOrchestrator",
]

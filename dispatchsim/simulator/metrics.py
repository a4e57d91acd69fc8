"""Per-pipeline counters and the immutable end-of-trial result rows."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Set, Tuple

LOGGER = logging.getLogger(__name__)

CALL_PIPELINE = "Call"
REPORT_PIPELINE = "Report"


class DuplicateResultError(RuntimeError):
    """Raised when results for a trial are captured more than once."""


@dataclass
class PipelineStats:
    """Running counters for one pipeline within one trial."""

    generated: int = 0
    completed: int = 0
    canceled: int = 0
    self_completed: int = 0
    total_wait_seconds: float = 0.0
    total_processing_seconds: float = 0.0

    def record_generated(self) -> None:
        self.generated += 1

    def record_completion(
        self,
        *,
        wait_seconds: float,
        processing_seconds: float,
        self_completed: bool = False,
    ) -> None:
        self.completed += 1
        if self_completed:
            self.self_completed += 1
        self.total_wait_seconds += wait_seconds
        self.total_processing_seconds += processing_seconds

    def record_cancellation(self) -> None:
        self.canceled += 1

    @property
    def average_wait_seconds(self) -> float:
        return self.total_wait_seconds / max(self.completed, 1)

    @property
    def average_processing_seconds(self) -> float:
        return self.total_processing_seconds / max(self.completed, 1)


@dataclass(frozen=True)
class SimulationResult:
    trial: int
    pipeline: str
    avg_time_per_emergency: float
    avg_processing_time: float
    total_time_spent: float
    self_completed: int
    canceled: int
    total_completed: int
    total_generated: int

    @classmethod
    def from_stats(
        cls, trial: int, pipeline: str, stats: PipelineStats
    ) -> "SimulationResult":
        return cls(
            trial=trial,
            pipeline=pipeline,
            avg_time_per_emergency=stats.average_wait_seconds,
            avg_processing_time=stats.average_processing_seconds,
            total_time_spent=stats.total_wait_seconds,
            self_completed=stats.self_completed,
            canceled=stats.canceled,
            total_completed=stats.completed,
            total_generated=stats.generated,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ResultLedger:
    """Accumulates result rows across every trial of a session."""

    def __init__(self) -> None:
        self._rows: List[SimulationResult] = []
        self._trials: Set[int] = set()

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def rows(self) -> Tuple[SimulationResult, ...]:
        return tuple(self._rows)

    def has_trial(self, trial: int) -> bool:
        return trial in self._trials

    def record(self, trial: int, rows: Iterable[SimulationResult]) -> None:
        if trial in self._trials:
            raise DuplicateResultError(f"Results for trial {trial} were already captured.")
        rows = list(rows)
        if any(row.trial != trial for row in rows):
            raise ValueError(f"All rows must belong to trial {trial}.")
        self._trials.add(trial)
        self._rows.extend(rows)
        for row in rows:
            LOGGER.info(
                "Trial %s %s: completed=%s canceled=%s self_completed=%s "
                "avg_wait=%.1fs",
                row.trial,
                row.pipeline,
                row.total_completed,
                row.canceled,
                row.self_completed,
                row.avg_time_per_emergency,
            )

    def for_trial(self, trial: int) -> List[SimulationResult]:
        return [row for row in self._rows if row.trial == trial]


__all__ = [
    "CALL_PIPELINE",
    "DuplicateResultError",
    "PipelineStats",
    "REPORT_PIPELINE",
    "ResultLedger",
    "SimulationResult",
]

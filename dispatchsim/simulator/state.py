"""Per-trial owned structures: pipeline state and the trial context."""

from __future__ import annotations

import itertools
import random
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterator, List

from .config import SimulationConfig
from .entities import (
    Emergency,
    EmergencyStatus,
    OperatorPool,
    Responder,
    build_responders,
)
from .geometry import Coordinates
from .metrics import CALL_PIPELINE, REPORT_PIPELINE, PipelineStats
from .spatial_grid import SpatialGrid


@dataclass(frozen=True)
class IncidentVolume:
    base: int
    extra: int
    horizon_seconds: int

    @property
    def total(self) -> int:
        return self.base + self.extra

    @property
    def per_tick_probability(self) -> float:
        return self.total / self.horizon_seconds


@dataclass
class PipelineState:
    label: str
    trial_id: int
    responders: Dict[int, Responder]
    responder_grid: SpatialGrid
    emergencies: Dict[int, Emergency] = field(default_factory=dict)
    stats: PipelineStats = field(default_factory=PipelineStats)
    # Shared across the pipelines of one trial so every copy gets its own id.
    id_sequence: Iterator[int] = field(default_factory=lambda: itertools.count(1))

    def new_emergency(self, coordinates: Coordinates, now: int) -> Emergency:
        cell = self.responder_grid.cell_for(coordinates)
        emergency = Emergency(
            id=next(self.id_sequence),
            latitude=coordinates[0],
            longitude=coordinates[1],
            created_at=now,
            cell=cell,
        )
        self.emergencies[emergency.id] = emergency
        self.stats.record_generated()
        return emergency

    def free_responders(self, now: float) -> List[Responder]:
        return [
            responder for responder in self.responders.values() if responder.is_free(now)
        ]

    def status_counts(self) -> Counter:
        counts: Counter = Counter({status: 0 for status in EmergencyStatus})
        counts.update(emergency.status for emergency in self.emergencies.values())
        return counts


@dataclass
class CallPipelineState(PipelineState):
    operators: OperatorPool = field(default_factory=lambda: OperatorPool(0))
    queue: Deque[Emergency] = field(default_factory=deque)
    last_self_check: int = 0

    def new_emergency(self, coordinates: Coordinates, now: int) -> Emergency:
        emergency = super().new_emergency(coordinates, now)
        self.queue.append(emergency)
        return emergency


@dataclass
class ReportPipelineState(PipelineState):
    pending: Dict[int, Emergency] = field(default_factory=dict)
    pending_grid: SpatialGrid = field(init=False)

    def __post_init__(self) -> None:
        self.pending_grid = SpatialGrid(
            self.responder_grid.cell_size_deg, self.responder_grid.bounds
        )

    def new_emergency(self, coordinates: Coordinates, now: int) -> Emergency:
        emergency = super().new_emergency(coordinates, now)
        self.pending[emergency.id] = emergency
        self.pending_grid.insert(emergency.id, coordinates)
        return emergency

    def claim(self, emergency: Emergency) -> None:
        self.pending.pop(emergency.id, None)
        self.pending_grid.remove(emergency.id)


@dataclass
class TrialContext:
    """Everything one trial owns; replaced wholesale when a new trial starts."""

    trial_id: int
    volume: IncidentVolume
    call: CallPipelineState
    report: ReportPipelineState
    clock: int = 0

    @classmethod
    def build(
        cls,
        trial_id: int,
        config: SimulationConfig,
        volume: IncidentVolume,
        rng: random.Random,
    ) -> "TrialContext":
        call_responders = build_responders(
            config.responder_count, config.bounds, config.cell_size_deg, rng
        )
        report_responders = build_responders(
            config.responder_count, config.bounds, config.cell_size_deg, rng
        )
        id_sequence = itertools.count(1)
        call = CallPipelineState(
            label=CALL_PIPELINE,
            trial_id=trial_id,
            id_sequence=id_sequence,
            responders=call_responders,
            responder_grid=SpatialGrid.from_responders(
                call_responders.values(), config.cell_size_deg, config.bounds
            ),
            operators=OperatorPool(config.call.operator_count),
        )
        report = ReportPipelineState(
            label=REPORT_PIPELINE,
            trial_id=trial_id,
            id_sequence=id_sequence,
            responders=report_responders,
            responder_grid=SpatialGrid.from_responders(
                report_responders.values(), config.cell_size_deg, config.bounds
            ),
        )
        return cls(trial_id=trial_id, volume=volume, call=call, report=report)

    @property
    def pipelines(self) -> List[PipelineState]:
        return [self.call, self.report]


__all__ = [
    "CallPipelineState",
    "IncidentVolume",
    "PipelineState",
    "ReportPipelineState",
    "TrialContext",
]

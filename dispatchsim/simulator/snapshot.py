"""Read-only views handed to the presentation layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Tuple

from .entities import EmergencyStatus
from .metrics import SimulationResult
from .state import CallPipelineState, PipelineState


@dataclass(frozen=True)
class EmergencyView:
    id: int
    latitude: float
    longitude: float
    status: str


@dataclass(frozen=True)
class ResponderView:
    id: int
    latitude: float
    longitude: float
    busy: bool


@dataclass(frozen=True)
class PipelineCounters:
    generated: int
    completed: int
    canceled: int
    self_completed: int
    pending: int
    assigned: int
    queue_length: int
    free_operators: int
    free_responders: int


@dataclass(frozen=True)
class PipelineSnapshot:
    label: str
    counters: PipelineCounters
    emergencies: Tuple[EmergencyView, ...] = ()
    responders: Tuple[ResponderView, ...] = ()


@dataclass(frozen=True)
class SimulationSnapshot:
    state: str
    trial: int | None
    sim_time: int
    speed: float
    call: PipelineSnapshot | None
    report: PipelineSnapshot | None
    results: Tuple[SimulationResult, ...]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_pipeline_snapshot(
    state: PipelineState,
    now: int,
    *,
    include_entities: bool = True,
) -> PipelineSnapshot:
    counts = state.status_counts()
    free_responders = len(state.free_responders(now))
    if isinstance(state, CallPipelineState):
        queue_length = len(state.queue)
        free_operators = state.operators.free_count(now)
    else:
        queue_length = counts[EmergencyStatus.PENDING]
        free_operators = 0
    counters = PipelineCounters(
        generated=state.stats.generated,
        completed=state.stats.completed,
        canceled=state.stats.canceled,
        self_completed=state.stats.self_completed,
        pending=counts[EmergencyStatus.PENDING],
        assigned=counts[EmergencyStatus.ASSIGNED],
        queue_length=queue_length,
        free_operators=free_operators,
        free_responders=free_responders,
    )
    if not include_entities:
        return PipelineSnapshot(label=state.label, counters=counters)
    emergencies = tuple(
        EmergencyView(
            id=emergency.id,
            latitude=emergency.latitude,
            longitude=emergency.longitude,
            status=emergency.status.value,
        )
        for emergency in state.emergencies.values()
    )
    responders = tuple(
        ResponderView(
            id=responder.id,
            latitude=responder.latitude,
            longitude=responder.longitude,
            busy=not responder.is_free(now),
        )
        for responder in state.responders.values()
    )
    return PipelineSnapshot(
        label=state.label,
        counters=counters,
        emergencies=emergencies,
        responders=responders,
    )


__all__ = [
    "EmergencyView",
    "PipelineCounters",
    "PipelineSnapshot",
    "ResponderView",
    "SimulationSnapshot",
    "build_pipeline_snapshot",
]

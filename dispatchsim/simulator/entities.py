"""Emergency, responder and operator records and their state transitions."""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List

from .config import BoundingBox
from .geometry import Cell, Coordinates, cell_of, random_coordinates


class EmergencyStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    COMPLETED = "completed"
    CANCELED = "canceled"


TERMINAL_STATUSES: FrozenSet[EmergencyStatus] = frozenset(
    {EmergencyStatus.COMPLETED, EmergencyStatus.CANCELED}
)

_ALLOWED_TRANSITIONS: Dict[EmergencyStatus, FrozenSet[EmergencyStatus]] = {
    EmergencyStatus.PENDING: frozenset(
        {
            EmergencyStatus.ASSIGNED,
            EmergencyStatus.COMPLETED,
            EmergencyStatus.CANCELED,
        }
    ),
    EmergencyStatus.ASSIGNED: frozenset({EmergencyStatus.COMPLETED}),
    EmergencyStatus.COMPLETED: frozenset(),
    EmergencyStatus.CANCELED: frozenset(),
}


@dataclass
class Emergency:
    """One pipeline's copy of a reported incident."""

    id: int
    latitude: float
    longitude: float
    created_at: int
    cell: Cell
    status: EmergencyStatus = EmergencyStatus.PENDING
    responder_id: int | None = None
    assigned_at: int | None = None
    processing_seconds: float = 0.0
    finalized_at: float | None = None
    self_completed: bool = False

    @property
    def coordinates(self) -> Coordinates:
        return (self.latitude, self.longitude)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def age(self, now: float) -> float:
        return now - self.created_at

    def transition(self, target: EmergencyStatus) -> bool:
        """Move to ``target`` if allowed; return False when the move is rejected.

        This is the single check-and-set for status, so terminal transitions
        happen at most once no matter how many finalization paths race.
        """
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            return False
        self.status = target
        return True


@dataclass
class Responder:
    id: int
    latitude: float
    longitude: float
    cell: Cell
    busy_until: float = 0.0

    @property
    def coordinates(self) -> Coordinates:
        return (self.latitude, self.longitude)

    def is_free(self, now: float) -> bool:
        return self.busy_until <= now


class OperatorPool:
    """Fixed-size pool of call-taking operators, tracked as busy-until times."""

    def __init__(self, size: int) -> None:
        self.busy_until: List[float] = [0.0] * size

    def __len__(self) -> int:
        return len(self.busy_until)

    def free_indices(self, now: float) -> List[int]:
        return [idx for idx, until in enumerate(self.busy_until) if until <= now]

    def free_count(self, now: float) -> int:
        return sum(1 for until in self.busy_until if until <= now)

    def occupy(self, index: int, until: float) -> None:
        self.busy_until[index] = until


def build_responders(
    count: int,
    bounds: BoundingBox,
    cell_size_deg: float,
    rng: random.Random,
) -> Dict[int, Responder]:
    """Place ``count`` responders uniformly inside ``bounds``."""
    responders: Dict[int, Responder] = {}
    for idx in range(count):
        lat, lng = random_coordinates(bounds, rng)
        responders[idx] = Responder(
            id=idx,
            latitude=lat,
            longitude=lng,
            cell=cell_of((lat, lng), cell_size_deg),
        )
    return responders


__all__ = [
    "Emergency",
    "EmergencyStatus",
    "OperatorPool",
    "Responder",
    "TERMINAL_STATUSES",
    "build_responders",
]

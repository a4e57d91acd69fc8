"""Stochastic emergency generation shared by both pipelines."""

from __future__ import annotations

import random
from typing import Tuple

from .config import ConfigurationError, SimulationConfig
from .entities import Emergency
from .geometry import Coordinates, random_coordinates
from .state import IncidentVolume, TrialContext


def draw_incident_volume(config: SimulationConfig, rng: random.Random) -> IncidentVolume:
    """Draw the trial's total incident count (base plus a uniform extra)."""
    extra = rng.randint(config.extra_incidents_min, config.extra_incidents_max)
    return IncidentVolume(
        base=config.base_incidents,
        extra=extra,
        horizon_seconds=config.horizon_seconds,
    )


class EmergencyGenerator:
    """Mints at most one incident per tick at the trial's fixed rate."""

    def __init__(self, config: SimulationConfig, rng: random.Random) -> None:
        self.config = config
        self.random = rng

    def tick(self, trial: TrialContext, now: int) -> Tuple[Emergency, Emergency] | None:
        if self.random.random() >= trial.volume.per_tick_probability:
            return None
        coords = random_coordinates(self.config.bounds, self.random)
        return self.emit(trial, now, coords)

    def emit(
        self, trial: TrialContext, now: int, coordinates: Coordinates
    ) -> Tuple[Emergency, Emergency]:
        """Insert one incident into both pipelines as independent emergencies."""
        lat, lng = coordinates
        if not self.config.bounds.contains(lat, lng):
            raise ConfigurationError(
                f"Incident at ({lat:.5f}, {lng:.5f}) is outside the configured bounds."
            )
        call_emergency = trial.call.new_emergency(coordinates, now)
        report_emergency = trial.report.new_emergency(coordinates, now)
        return call_emergency, report_emergency


__all__ = ["EmergencyGenerator", "draw_incident_volume"]

"""Decentralized report pipeline: free responders claim the nearest report."""

from __future__ import annotations

import logging
import math
import random

from .config import ReportPipelineConfig
from .entities import Emergency, EmergencyStatus, Responder
from .geometry import haversine_km
from .scheduling import CompletionScheduler
from .state import ReportPipelineState

LOGGER = logging.getLogger(__name__)


class ReportPipeline:
    """Greedy nearest-emergency self-dispatch, one pass per tick."""

    def __init__(
        self,
        config: ReportPipelineConfig,
        rng: random.Random,
        scheduler: CompletionScheduler,
    ) -> None:
        self.config = config
        self.random = rng
        self.scheduler = scheduler

    def step(self, state: ReportPipelineState, now: int) -> int:
        """Let every free responder claim at most one report; return claims made."""
        if not state.pending:
            return 0
        claims = 0
        for responder in state.free_responders(now):
            if not state.pending:
                break
            emergency = self.nearest_pending(state, responder)
            if emergency is None:
                continue
            self._claim(state, responder, emergency, now)
            claims += 1
        return claims

    def nearest_pending(
        self, state: ReportPipelineState, responder: Responder
    ) -> Emergency | None:
        """Closest unclaimed report within range; earliest report wins ties."""
        best: Emergency | None = None
        best_distance = math.inf
        max_range = self.config.max_range_km
        for emergency_id in state.pending_grid.candidates(
            responder.coordinates, max_range
        ):
            emergency = state.pending[emergency_id]
            distance = haversine_km(responder.coordinates, emergency.coordinates)
            if distance <= max_range and distance < best_distance:
                best, best_distance = emergency, distance
        return best

    def complete(self, state: ReportPipelineState, emergency: Emergency) -> bool:
        if not emergency.transition(EmergencyStatus.COMPLETED):
            LOGGER.debug(
                "Report emergency %s already %s; ignoring completion.",
                emergency.id,
                emergency.status.value,
            )
            return False
        finished_at = emergency.assigned_at + emergency.processing_seconds
        emergency.finalized_at = finished_at
        emergency.self_completed = True
        state.stats.record_completion(
            wait_seconds=finished_at - emergency.created_at,
            processing_seconds=emergency.processing_seconds,
            self_completed=True,
        )
        return True

    def _claim(
        self,
        state: ReportPipelineState,
        responder: Responder,
        emergency: Emergency,
        now: int,
    ) -> None:
        state.claim(emergency)
        processing = self.random.uniform(
            self.config.processing_seconds_min, self.config.processing_seconds_max
        )
        responder.busy_until = now + processing
        emergency.transition(EmergencyStatus.ASSIGNED)
        emergency.responder_id = responder.id
        emergency.assigned_at = now
        emergency.processing_seconds = processing
        self.scheduler.schedule(
            state.trial_id, processing, self.complete, state, emergency
        )


__all__ = ["ReportPipeline"]

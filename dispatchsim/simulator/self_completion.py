"""Opportunistic resolution of queued calls by nearby idle responders."""

from __future__ import annotations

import logging
import random
from collections import deque

from .config import SelfCompletionConfig
from .entities import Emergency, EmergencyStatus, Responder
from .spatial_grid import nearby_responders
from .state import CallPipelineState

LOGGER = logging.getLogger(__name__)


class SelfCompletionCheck:
    """Periodic check letting a nearby free responder resolve a queued call.

    Only emergencies the operators have not picked up yet are eligible. A
    resolution is immediate (no processing delay) and marks the emergency
    completed, so any operator completion arriving later is ignored.
    """

    def __init__(self, config: SelfCompletionConfig, rng: random.Random) -> None:
        self.config = config
        self.random = rng

    def due(self, state: CallPipelineState, now: int) -> bool:
        return now - state.last_self_check >= self.config.check_interval_seconds

    def check(self, state: CallPipelineState, now: int) -> int:
        if not self.due(state, now):
            return 0
        state.last_self_check = now
        resolved = 0
        for emergency in list(state.queue):
            if emergency.status is not EmergencyStatus.PENDING:
                continue
            nearby = nearby_responders(
                emergency.coordinates,
                state.responders,
                state.responder_grid,
                self.config.radius_km,
                now,
            )
            for responder in nearby:
                if self.random.random() < self.config.probability:
                    if self.resolve(state, emergency, responder, now):
                        resolved += 1
                    break
        if resolved:
            state.queue = deque(
                emergency
                for emergency in state.queue
                if emergency.status is EmergencyStatus.PENDING
            )
        return resolved

    def resolve(
        self,
        state: CallPipelineState,
        emergency: Emergency,
        responder: Responder,
        now: int,
    ) -> bool:
        if not emergency.transition(EmergencyStatus.COMPLETED):
            return False
        emergency.finalized_at = now
        emergency.self_completed = True
        state.stats.record_completion(
            wait_seconds=now - emergency.created_at,
            processing_seconds=0.0,
            self_completed=True,
        )
        LOGGER.debug(
            "Responder %s resolved queued call %s on its own.", responder.id, emergency.id
        )
        return True


__all__ = ["SelfCompletionCheck"]

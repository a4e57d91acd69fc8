"""Centralized call pipeline: FIFO queue, bounded operator pool, hangups."""

from __future__ import annotations

import logging
import random
from collections import deque
from dataclasses import dataclass
from typing import Deque

from .config import CallPipelineConfig
from .entities import Emergency, EmergencyStatus
from .scheduling import CompletionScheduler
from .state import CallPipelineState

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallStepOutcome:
    dispatched: int
    canceled: int
    queue_length: int


class CallPipeline:
    """Advances a :class:`CallPipelineState` by one tick."""

    def __init__(
        self,
        config: CallPipelineConfig,
        rng: random.Random,
        scheduler: CompletionScheduler,
    ) -> None:
        self.config = config
        self.random = rng
        self.scheduler = scheduler

    def step(self, state: CallPipelineState, now: int) -> CallStepOutcome:
        free_operators = deque(state.operators.free_indices(now))
        dispatched = 0
        canceled = 0
        # The old queue is only read; its replacement is swapped in once.
        remaining: Deque[Emergency] = deque()
        for emergency in state.queue:
            if emergency.status is not EmergencyStatus.PENDING:
                continue
            if free_operators:
                self._dispatch(state, emergency, free_operators.popleft(), now)
                dispatched += 1
                continue
            if self._hangs_up(emergency, now):
                self._cancel(state, emergency, now)
                canceled += 1
                continue
            remaining.append(emergency)
        state.queue = remaining
        return CallStepOutcome(
            dispatched=dispatched, canceled=canceled, queue_length=len(remaining)
        )

    def complete(self, state: CallPipelineState, emergency: Emergency) -> bool:
        """Finish an operator-handled emergency; no-op if already finalized."""
        if not emergency.transition(EmergencyStatus.COMPLETED):
            LOGGER.debug(
                "Call emergency %s already %s; ignoring operator completion.",
                emergency.id,
                emergency.status.value,
            )
            return False
        finished_at = emergency.assigned_at + emergency.processing_seconds
        emergency.finalized_at = finished_at
        state.stats.record_completion(
            wait_seconds=finished_at - emergency.created_at,
            processing_seconds=emergency.processing_seconds,
        )
        return True

    def _dispatch(
        self,
        state: CallPipelineState,
        emergency: Emergency,
        operator_index: int,
        now: int,
    ) -> None:
        processing = self.random.uniform(
            self.config.processing_seconds_min, self.config.processing_seconds_max
        )
        state.operators.occupy(operator_index, now + processing)
        emergency.transition(EmergencyStatus.ASSIGNED)
        emergency.assigned_at = now
        emergency.processing_seconds = processing
        self.scheduler.schedule(
            state.trial_id, processing, self.complete, state, emergency
        )

    def _hangs_up(self, emergency: Emergency, now: int) -> bool:
        if emergency.age(now) <= self.config.hangup_threshold_seconds:
            return False
        return self.random.random() < self.config.hangup_probability

    def _cancel(self, state: CallPipelineState, emergency: Emergency, now: int) -> None:
        if not emergency.transition(EmergencyStatus.CANCELED):
            return
        emergency.finalized_at = now
        state.stats.record_cancellation()
        LOGGER.debug(
            "Caller hung up on emergency %s after %ss.", emergency.id, emergency.age(now)
        )


__all__ = ["CallPipeline", "CallStepOutcome"]

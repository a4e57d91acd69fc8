import random

from dispatchsim.simulator.call_pipeline import CallPipeline
from dispatchsim.simulator.config import CallPipelineConfig
from dispatchsim.simulator.entities import EmergencyStatus

from .factories import DOWNTOWN, build_trial, quiet_config


def _setup(scheduler, **call_overrides):
    call_config = CallPipelineConfig(
        operator_count=call_overrides.pop("operator_count", 1),
        processing_seconds_min=120.0,
        processing_seconds_max=120.0,
        **call_overrides,
    )
    config = quiet_config(call=call_config)
    state = build_trial(config).call
    return CallPipeline(call_config, random.Random(5), scheduler), state


def test_queue_is_served_in_arrival_order(env, scheduler) -> None:
    pipeline, state = _setup(scheduler, operator_count=2, hangup_probability=0.0)
    first, second, third = (state.new_emergency(DOWNTOWN, 0) for _ in range(3))

    outcome = pipeline.step(state, 0)

    assert outcome.dispatched == 2 and outcome.queue_length == 1
    assert first.status is EmergencyStatus.ASSIGNED
    assert second.status is EmergencyStatus.ASSIGNED
    assert third.status is EmergencyStatus.PENDING
    assert list(state.queue) == [third]
    assert state.operators.free_count(0) == 0

    env.run(until=121)
    assert first.status is EmergencyStatus.COMPLETED
    assert second.status is EmergencyStatus.COMPLETED
    assert state.stats.completed == 2
    assert state.stats.total_wait_seconds == 240.0
    assert state.stats.self_completed == 0

    # Operators free up exactly when their processing ends.
    pipeline.step(state, 120)
    assert third.status is EmergencyStatus.ASSIGNED
    assert third.assigned_at == 120


def test_hangup_only_after_threshold(scheduler) -> None:
    pipeline, state = _setup(scheduler, hangup_probability=1.0)
    state.operators.occupy(0, 10_000)
    emergency = state.new_emergency(DOWNTOWN, 0)

    for now in range(0, 301):
        pipeline.step(state, now)
        assert emergency.status is EmergencyStatus.PENDING

    outcome = pipeline.step(state, 301)
    assert outcome.canceled == 1
    assert emergency.status is EmergencyStatus.CANCELED
    assert emergency.finalized_at == 301
    assert state.stats.canceled == 1
    assert not state.queue

    pipeline.step(state, 302)
    assert state.stats.canceled == 1


def test_young_calls_are_never_canceled(scheduler) -> None:
    pipeline, state = _setup(scheduler, hangup_probability=1.0)
    state.operators.occupy(0, 10_000)
    emergencies = [state.new_emergency(DOWNTOWN, created) for created in range(0, 600, 50)]

    pipeline.step(state, 600)

    for emergency in emergencies:
        expected = (
            EmergencyStatus.CANCELED
            if 600 - emergency.created_at > 300
            else EmergencyStatus.PENDING
        )
        assert emergency.status is expected


def test_duplicate_completion_is_ignored(env, scheduler) -> None:
    pipeline, state = _setup(scheduler, hangup_probability=0.0)
    emergency = state.new_emergency(DOWNTOWN, 10)
    pipeline.step(state, 10)
    env.run(until=200)
    assert emergency.status is EmergencyStatus.COMPLETED
    assert emergency.finalized_at == 130
    snapshot = (state.stats.completed, state.stats.total_wait_seconds)

    assert pipeline.complete(state, emergency) is False
    assert (state.stats.completed, state.stats.total_wait_seconds) == snapshot


def test_step_replaces_the_queue_without_mutating_it(scheduler) -> None:
    pipeline, state = _setup(scheduler, hangup_probability=1.0)
    served = state.new_emergency(DOWNTOWN, 0)
    abandoned = state.new_emergency(DOWNTOWN, 0)
    young = state.new_emergency(DOWNTOWN, 500)
    before = state.queue

    outcome = pipeline.step(state, 600)

    assert (outcome.dispatched, outcome.canceled, outcome.queue_length) == (1, 1, 1)
    assert served.status is EmergencyStatus.ASSIGNED
    assert abandoned.status is EmergencyStatus.CANCELED
    assert young.status is EmergencyStatus.PENDING
    assert list(before) == [served, abandoned, young]
    assert state.queue is not before
    assert list(state.queue) == [young]

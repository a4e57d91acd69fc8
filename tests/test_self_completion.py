import random

from dispatchsim.simulator.call_pipeline import CallPipeline
from dispatchsim.simulator.config import CallPipelineConfig, SelfCompletionConfig
from dispatchsim.simulator.entities import EmergencyStatus
from dispatchsim.simulator.self_completion import SelfCompletionCheck

from .factories import DOWNTOWN, build_trial, make_responder, quiet_config


def _setup(responders, probability=1.0):
    state = build_trial(quiet_config()).call
    for responder in responders:
        state.responders[responder.id] = responder
        state.responder_grid.insert(responder.id, responder.coordinates)
    check = SelfCompletionCheck(
        SelfCompletionConfig(probability=probability), random.Random(4)
    )
    return check, state


def _nearby():
    # Roughly one kilometre east of downtown.
    return make_responder(0, DOWNTOWN[0], DOWNTOWN[1] + 0.01)


def test_check_runs_once_per_interval() -> None:
    check, state = _setup([_nearby()])
    state.new_emergency(DOWNTOWN, 0)

    assert not check.due(state, 59)
    assert check.check(state, 59) == 0
    assert state.last_self_check == 0
    assert check.due(state, 60)


def test_nearby_idle_responder_resolves_queued_call(scheduler) -> None:
    check, state = _setup([_nearby()])
    emergency = state.new_emergency(DOWNTOWN, 0)

    assert check.check(state, 60) == 1
    assert emergency.status is EmergencyStatus.COMPLETED
    assert emergency.self_completed and emergency.finalized_at == 60
    assert emergency.responder_id is None
    assert not state.queue
    assert state.stats.completed == state.stats.self_completed == 1
    assert state.stats.total_wait_seconds == 60
    assert state.stats.total_processing_seconds == 0
    assert state.last_self_check == 60

    # A late operator completion for the same emergency changes nothing.
    pipeline = CallPipeline(CallPipelineConfig(), random.Random(1), scheduler)
    assert pipeline.complete(state, emergency) is False
    assert state.stats.completed == 1


def test_distant_or_busy_responders_do_not_resolve() -> None:
    far = make_responder(0, DOWNTOWN[0], DOWNTOWN[1] + 0.06)
    busy = make_responder(1, DOWNTOWN[0], DOWNTOWN[1] + 0.01)
    busy.busy_until = 1_000.0
    check, state = _setup([far, busy])
    emergency = state.new_emergency(DOWNTOWN, 0)

    assert check.check(state, 60) == 0
    assert emergency.status is EmergencyStatus.PENDING
    assert list(state.queue) == [emergency]


def test_zero_probability_never_resolves() -> None:
    check, state = _setup([_nearby()], probability=0.0)
    state.new_emergency(DOWNTOWN, 0)
    for now in range(60, 6_000, 60):
        assert check.check(state, now) == 0
    assert state.stats.completed == 0


def test_assigned_calls_are_not_eligible(scheduler) -> None:
    check, state = _setup([_nearby()])
    emergency = state.new_emergency(DOWNTOWN, 0)
    pipeline = CallPipeline(quiet_config().call, random.Random(1), scheduler)
    pipeline.step(state, 0)
    assert emergency.status is EmergencyStatus.ASSIGNED

    assert check.check(state, 60) == 0
    assert state.stats.self_completed == 0
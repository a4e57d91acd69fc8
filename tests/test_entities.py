from dispatchsim.simulator.entities import (
    Emergency,
    EmergencyStatus,
    OperatorPool,
)


def _emergency() -> Emergency:
    return Emergency(id=1, latitude=29.8, longitude=-95.3, created_at=0, cell=(596, -1906))


def test_forward_transitions_are_applied_once() -> None:
    emergency = _emergency()
    assert emergency.transition(EmergencyStatus.ASSIGNED)
    assert emergency.status is EmergencyStatus.ASSIGNED
    assert not emergency.transition(EmergencyStatus.ASSIGNED)
    assert not emergency.transition(EmergencyStatus.PENDING)
    assert not emergency.transition(EmergencyStatus.CANCELED)
    assert emergency.transition(EmergencyStatus.COMPLETED)
    assert not emergency.transition(EmergencyStatus.COMPLETED)
    assert emergency.is_terminal


def test_pending_can_be_canceled_or_completed_directly() -> None:
    canceled = _emergency()
    assert canceled.transition(EmergencyStatus.CANCELED)
    assert not canceled.transition(EmergencyStatus.COMPLETED)
    assert canceled.status is EmergencyStatus.CANCELED

    completed = _emergency()
    assert completed.transition(EmergencyStatus.COMPLETED)
    assert not completed.transition(EmergencyStatus.CANCELED)


def test_operator_pool_tracks_busy_until() -> None:
    pool = OperatorPool(3)
    assert pool.free_indices(0) == [0, 1, 2]
    pool.occupy(1, 150.0)
    assert pool.free_indices(100) == [0, 2]
    assert pool.free_count(100) == 2
    assert pool.free_indices(150) == [0, 1, 2]

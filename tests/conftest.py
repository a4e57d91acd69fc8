import pytest
import simpy

from dispatchsim.simulator.scheduling import CompletionScheduler


@pytest.fixture
def env() -> simpy.Environment:
    return simpy.Environment()


@pytest.fixture
def scheduler(env) -> CompletionScheduler:
    return CompletionScheduler(env)

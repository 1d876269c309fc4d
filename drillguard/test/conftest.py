import pytest

from drillguard.attempt_log import AttemptRecord, WriteResult
from drillguard.lockout_policy import LockoutPolicy
from drillguard.login_attempts import LoginAttemptTracker
from drillguard.store import InMemoryStore


class FakeClock:
    """Manually advanced time source shared by a store and a tracker."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingLog:
    def __init__(self):
        self.records: list[AttemptRecord] = []

    def append(self, record: AttemptRecord) -> WriteResult:
        self.records.append(record)
        return WriteResult.success()

    def statuses(self) -> list[str]:
        return [r.status for r in self.records]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryStore(clock=clock)


@pytest.fixture
def attempt_log():
    return RecordingLog()


@pytest.fixture
def policy():
    return LockoutPolicy()


@pytest.fixture
def tracker(store, policy, attempt_log, clock):
    return LoginAttemptTracker(store, policy, attempt_log, clock=clock)

import pytest

from mockvisa.infrastructure.data.store import SessionStore
from mockvisa.interview.events import InterviewEventBus


@pytest.fixture
def store(tmp_path):
    return SessionStore(str(tmp_path / "data"))


@pytest.fixture
def event_bus():
    return InterviewEventBus()


@pytest.fixture
def recorded_events(event_bus):
    events = []
    event_bus.subscribe_all(events.append)
    return events

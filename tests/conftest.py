import pytest

from broadcaster import Broadcaster
from room_registry import RoomRegistry
from sessions import SessionGateway
from video_resolver import resolve_video


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeConnection:
    """Stands in for a WebSocket: records every JSON frame sent to it."""

    def __init__(self):
        self.sent = []
        self.closed = False

    async def send_json(self, data):
        if self.closed:
            raise RuntimeError("connection closed")
        self.sent.append(data)

    def of_type(self, event_type):
        return [message for message in self.sent if message["type"] == event_type]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    return RoomRegistry()


@pytest.fixture
def gateway(registry, clock):
    return SessionGateway(registry, Broadcaster(), clock=clock)


@pytest.fixture
def room(registry, clock):
    return registry.create("Movie night", resolve_video("https://www.youtube.com/watch?v=dQw4w9WgXcQ"), now=clock())


@pytest.fixture
def connect(gateway):
    def _connect(connection_id):
        connection = FakeConnection()
        gateway.connect(connection_id, connection)
        return connection
    return _connect

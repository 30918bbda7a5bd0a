"""
Shared fixtures: an in-memory stand-in for a websockets connection, and a
wired registry / lifecycle manager / router trio.
"""

import json

import pytest
from websockets.exceptions import ConnectionClosedOK
from websockets.protocol import State

from saver_relay.heartbeat import HeartbeatMonitor
from saver_relay.registry import ConnectionRegistry
from saver_relay.session import LifecycleManager, Session


class FakeWebSocket:
    def __init__(self, frames=(), error=None):
        self.state = State.OPEN
        self.sent = []
        self.pings = 0
        self.close_calls = []
        self.remote_address = ("127.0.0.1", 50000)
        self._frames = list(frames)
        self._error = error

    async def send(self, data):
        if self.state is not State.OPEN:
            raise ConnectionClosedOK(None, None)
        self.sent.append(data)

    async def ping(self):
        self.pings += 1

    async def close(self, code=1000, reason=""):
        self.close_calls.append((code, reason))
        self.state = State.CLOSED

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self._frames:
            yield frame
        if self._error is not None:
            raise self._error

    def sent_json(self):
        return [json.loads(data) for data in self.sent]


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def manager(registry):
    # long interval: heartbeat tasks exist but never fire during a test
    return LifecycleManager(registry, HeartbeatMonitor(3600))


@pytest.fixture
def router(manager):
    return manager.router


@pytest.fixture
def make_session(manager):
    async def _make(role=None):
        session = Session(FakeWebSocket())
        if role is not None:
            assert await manager.bind(session, role)
        return session
    return _make

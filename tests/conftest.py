"""Shared fixtures: an isolated registry per test and a transport that records instead of sending."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from backend import RoomRegistry
from execution import ExecutionBridge
from reaper import CleanupScheduler
from session import SessionController


class RecordingConnections:
    """Stands in for ConnectionManager; keeps every outbound message."""

    def __init__(self):
        self.sent = []

    def deliver(self, outbound):
        self.sent.append(outbound)

    def deliver_all(self, outbounds):
        for outbound in outbounds:
            self.deliver(outbound)

    def received_by(self, connection_id, event=None):
        return [
            o for o in self.sent
            if connection_id in o.recipients and (event is None or o.event == event)
        ]

    def of_event(self, event):
        return [o for o in self.sent if o.event == event]

    def clear(self):
        self.sent.clear()


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return RoomRegistry(clock=clock)


@pytest.fixture
def connections():
    return RecordingConnections()


@pytest.fixture
def execution_client():
    client = AsyncMock()
    client.execute.return_value = {"language": "javascript", "version": "18.15.0", "run": {"output": "Hello, world!\n", "code": 0}}
    return client


@pytest.fixture
def scheduler(registry):
    return CleanupScheduler(registry, delay_seconds=0.05)


@pytest.fixture
def controller(registry, connections, execution_client, scheduler):
    return SessionController(registry, connections, ExecutionBridge(execution_client), scheduler)

"""Shared fixtures for the flag_logging tests."""

import pytest
from structlog.testing import CapturingLogger

from flag_logging import ConsoleSink, InMemoryFlagClient, LevelPersistence, MemoryStore
from flag_logging.client import ClientOptions

CONSOLE_FLAG = "console-log-level"
SDK_FLAG = "sdk-log-level"


class RecordingFactory:
    """Client factory recording every options object it receives."""

    def __init__(self, flags=None, error=None):
        self.flags = dict(flags or {})
        self.error = error
        self.calls: list[ClientOptions] = []
        self.clients: list[InMemoryFlagClient] = []

    async def __call__(self, options):
        self.calls.append(options)
        if self.error is not None:
            raise self.error
        client = InMemoryFlagClient(flags=dict(self.flags), options=options)
        self.clients.append(client)
        return client


@pytest.fixture
def capturing_logger():
    return CapturingLogger()


@pytest.fixture
def sink(capturing_logger):
    return ConsoleSink(capturing_logger)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def persistence(store):
    return LevelPersistence(store)


@pytest.fixture
def factory():
    return RecordingFactory()


@pytest.fixture
def context():
    return {"kind": "user", "key": "test-user"}

"""Shared test fixtures."""

import pytest


class FakeTransport:
    """Records writes and lets tests push incoming bytes."""

    def __init__(self):
        self.writes: list[bytes] = []
        self.callback = None
        self.connected = True
        self.closed = False

    def write(self, data: bytes) -> int:
        self.writes.append(bytes(data))
        return len(data)

    def on_data(self, callback) -> None:
        self.callback = callback

    def feed(self, data: bytes) -> None:
        self.callback(bytes(data))

    def close(self) -> None:
        self.closed = True
        self.connected = False


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def other_transport():
    return FakeTransport()

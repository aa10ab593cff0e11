"""Shared fakes: sockets, poller and a clock the tests can move by hand."""

import pytest


class FakeSocket:
    def __init__(self, fd: int, incoming: bytes = b'', send_limit=None, send_error=None, recv_error=None):
        self._fd = fd
        self.incoming = bytearray(incoming)
        self.sent = bytearray()
        self.send_limit = send_limit
        self.send_error = send_error
        self.recv_error = recv_error
        self.send_calls = 0
        self.closed = False

    def fileno(self) -> int:
        return self._fd

    def recv(self, size: int) -> bytes:
        if self.recv_error is not None:
            raise self.recv_error
        chunk = bytes(self.incoming[:size])
        del self.incoming[:size]
        return chunk

    def send(self, data) -> int:
        self.send_calls += 1
        if self.send_error is not None:
            raise self.send_error
        count = len(data) if self.send_limit is None else min(self.send_limit, len(data))
        self.sent.extend(bytes(data[:count]))
        return count

    def close(self) -> None:
        self.closed = True


class FakePoller:
    def __init__(self):
        self.interest = {}

    def register(self, fd: int, direction: int) -> None:
        self.interest[fd] = direction

    def unregister(self, fd: int) -> None:
        self.interest.pop(fd, None)


class Clock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_socket():
    return FakeSocket


@pytest.fixture
def fake_poller() -> FakePoller:
    return FakePoller()


@pytest.fixture
def clock() -> Clock:
    return Clock()

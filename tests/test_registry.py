"""Registry traversal, idle eviction and wait deadline."""

import pytest

from sopa.cache import build_cache
from sopa.connection import Connection, Phase
from sopa.poller import READ, WRITE
from sopa.registry import Registry


CACHE = build_cache(b'body', 'text/plain', 512, timestamp=0)


def _registry(poller, idle_timeout: float = 5.0) -> Registry:
    return Registry(poller, idle_timeout)


def _add(registry: Registry, sock, now: float) -> Connection:
    conn = Connection(sock, CACHE, now)
    registry.add(conn)
    return conn


def test_add_registers_read_interest(fake_poller, fake_socket) -> None:
    registry = _registry(fake_poller)
    conn = _add(registry, fake_socket(4), 0.0)

    assert registry.readers == {4: conn}
    assert registry.writers == {}
    assert fake_poller.interest == {4: READ}


def test_move_switches_interest_and_phase(fake_poller, fake_socket) -> None:
    registry = _registry(fake_poller)
    conn = _add(registry, fake_socket(4), 0.0)
    conn.write_offset = 9

    registry.move_to_writers(conn)

    assert registry.readers == {}
    assert registry.writers == {4: conn}
    assert fake_poller.interest == {4: WRITE}
    assert conn.phase is Phase.WRITING_HEADER
    assert conn.write_offset == 0


def test_evict_clears_everything(fake_poller, fake_socket) -> None:
    registry = _registry(fake_poller)
    sock = fake_socket(4)
    conn = _add(registry, sock, 0.0)
    registry.move_to_writers(conn)

    registry.evict(conn, 'test')

    assert len(registry) == 0
    assert fake_poller.interest == {}
    assert sock.closed


def test_idle_connection_evicted_even_when_ready(fake_poller, fake_socket) -> None:
    registry = _registry(fake_poller)
    sock = fake_socket(4)
    _add(registry, sock, 0.0)
    handled = []

    floor = registry.process_readers({4: READ}, lambda c: handled.append(c) or True, 5.5)

    assert handled == []
    assert sock.closed
    assert len(registry) == 0
    assert floor is None


def test_connection_at_threshold_survives(fake_poller, fake_socket) -> None:
    registry = _registry(fake_poller)
    _add(registry, fake_socket(4), 0.0)

    floor = registry.process_readers({}, lambda c: True, 5.0)

    assert len(registry) == 1
    assert floor == 0.0


def test_only_ready_connections_are_handled(fake_poller, fake_socket) -> None:
    registry = _registry(fake_poller)
    _add(registry, fake_socket(4), 0.0)
    _add(registry, fake_socket(5), 0.0)
    handled = []

    registry.process_readers({5: READ, 4: WRITE}, lambda c: handled.append(c.fd) or True, 1.0)

    assert handled == [5]


def test_failed_handler_evicts(fake_poller, fake_socket) -> None:
    registry = _registry(fake_poller)
    sock = fake_socket(4)
    _add(registry, sock, 0.0)

    registry.process_readers({4: READ}, lambda c: False, 1.0)

    assert sock.closed
    assert 4 not in fake_poller.interest


def test_traversal_newest_first_and_survives_eviction(fake_poller, fake_socket) -> None:
    registry = _registry(fake_poller)
    for fd in (4, 5, 6, 7):
        _add(registry, fake_socket(fd), 0.0)
    visited = []

    def _handler(conn):
        visited.append(conn.fd)
        return conn.fd % 2 == 0

    registry.process_readers({4: READ, 5: READ, 6: READ, 7: READ}, _handler, 1.0)

    assert visited == [7, 6, 5, 4]
    assert list(registry.readers) == [4, 6]


def test_floor_is_oldest_survivor(fake_poller, fake_socket) -> None:
    registry = _registry(fake_poller)
    _add(registry, fake_socket(4), 1.0)
    _add(registry, fake_socket(5), 3.0)
    _add(registry, fake_socket(6), 2.0)

    assert registry.process_readers({}, lambda c: True, 4.0) == 1.0


def test_moved_connection_is_not_serviced_twice(fake_poller, fake_socket) -> None:
    registry = _registry(fake_poller)
    conn = _add(registry, fake_socket(4), 0.0)
    writes = []

    registry.process_readers({4: READ}, lambda c: registry.move_to_writers(c) or True, 1.0)
    registry.process_writers({4: READ}, lambda c: writes.append(c) or True, 1.0)

    assert registry.writers == {4: conn}
    assert writes == []


def test_deadline() -> None:
    registry = Registry(None, 5.0)

    assert registry.deadline(None, 100.0) is None
    assert registry.deadline(98.0, 100.0) == 3.0
    assert registry.deadline(90.0, 100.0) == 0.0


def test_close_all(fake_poller, fake_socket) -> None:
    registry = _registry(fake_poller)
    socks = [fake_socket(fd) for fd in (4, 5)]
    for sock in socks:
        _add(registry, sock, 0.0)
    registry.move_to_writers(registry.readers[5])

    registry.close_all()

    assert len(registry) == 0
    assert all(sock.closed for sock in socks)
    assert fake_poller.interest == {}


def test_stuck_writer_evicted_after_idle_timeout(fake_poller, fake_socket) -> None:
    registry = _registry(fake_poller)
    sock = fake_socket(4, send_error=BlockingIOError())
    conn = _add(registry, sock, 0.0)
    registry.move_to_writers(conn)
    writes = []

    assert registry.process_writers({4: WRITE}, lambda c: writes.append(c) or True, 5.0) == 0.0
    assert registry.writers == {4: conn}

    floor = registry.process_writers({4: WRITE}, lambda c: writes.append(c) or True, 5.5)

    assert floor is None
    assert len(writes) == 1
    assert registry.writers == {}
    assert sock.closed
    assert fake_poller.interest == {}


def test_adding_a_registered_descriptor_fails(fake_poller, fake_socket) -> None:
    registry = _registry(fake_poller)
    first = _add(registry, fake_socket(4), 0.0)
    registry.move_to_writers(first)

    with pytest.raises(ValueError):
        _add(registry, fake_socket(4), 1.0)

    assert registry.readers == {}
    assert registry.writers == {4: first}

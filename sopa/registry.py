import logging
from typing import TYPE_CHECKING, Callable, Dict, Iterator, Optional

from sopa.poller import READ, WRITE
from sopa.printer import log_state

if TYPE_CHECKING:
    from sopa.connection import Connection
    from sopa.poller import Poller


logger = logging.getLogger(__name__)

Handler = Callable[['Connection'], bool]


class Registry:
    """Readers and writers, keyed by descriptor in accept order.

    A connection lives in exactly one of the two collections and its
    descriptor is registered with the poller in the matching direction.
    """

    def __init__(self, poller: 'Poller', idle_timeout: float):
        self._poller = poller
        self.idle_timeout = idle_timeout
        self.readers: Dict[int, 'Connection'] = {}
        self.writers: Dict[int, 'Connection'] = {}

    def __len__(self):
        return len(self.readers) + len(self.writers)

    def __iter__(self) -> Iterator['Connection']:
        yield from list(self.readers.values())
        yield from list(self.writers.values())

    def add(self, conn: 'Connection') -> None:
        if conn.fd in self.readers or conn.fd in self.writers:
            raise ValueError('fd {} is already registered'.format(conn.fd))
        self.readers[conn.fd] = conn
        self._poller.register(conn.fd, READ)

    def move_to_writers(self, conn: 'Connection') -> None:
        del self.readers[conn.fd]
        self.writers[conn.fd] = conn
        self._poller.register(conn.fd, WRITE)
        conn.start_writing()

    def evict(self, conn: 'Connection', reason: str) -> None:
        logger.info('closing fd %d, %s', conn.fd, reason)
        self.readers.pop(conn.fd, None)
        self.writers.pop(conn.fd, None)
        self._poller.unregister(conn.fd)
        conn.close()

    def close_all(self, reason: str = 'shutdown') -> None:
        for conn in self:
            self.evict(conn, reason)

    def expired(self, conn: 'Connection', now: float) -> bool:
        return now - conn.last_activity > self.idle_timeout

    def process(self,
                collection: Dict[int, 'Connection'],
                ready: Dict[int, int],
                direction: int,
                handler: Handler,
                now: float) -> Optional[float]:
        """One pass over ``collection``, newest connection first.

        Returns the oldest activity timestamp among the connections that
        survived the pass, None if none did.
        """
        floor = None
        for conn in reversed(list(collection.values())):
            if self.expired(conn, now):
                self.evict(conn, 'timeout')
                continue
            if ready.get(conn.fd, 0) & direction and not handler(conn):
                self.evict(conn, 'disconnect')
                continue
            if floor is None or conn.last_activity < floor:
                floor = conn.last_activity
        return floor

    def process_readers(self, ready: Dict[int, int], handler: Handler, now: float) -> Optional[float]:
        return self.process(self.readers, ready, READ, handler, now)

    def process_writers(self, ready: Dict[int, int], handler: Handler, now: float) -> Optional[float]:
        return self.process(self.writers, ready, WRITE, handler, now)

    def deadline(self, floor: Optional[float], now: float) -> Optional[float]:
        """Seconds until the oldest connection expires, None to wait forever."""
        if floor is None:
            return None
        return max(0.0, floor + self.idle_timeout - now)

    def dump(self) -> None:
        log_state(logger, 'readers', self.readers)
        log_state(logger, 'writers', self.writers)

import enum
import logging
from typing import TYPE_CHECKING

from sopa import recognizer

if TYPE_CHECKING:
    from socket import socket as sock
    from sopa.cache import ResponseCache


logger = logging.getLogger(__name__)


class Phase(enum.IntEnum):
    READING = 0
    WRITING_HEADER = 1
    WRITING_BODY = 2
    DONE = 3


class Connection:
    def __init__(self,
                 connection: 'sock',
                 cache: 'ResponseCache',
                 now: float,
                 ):
        self.connection = connection
        self.fd = connection.fileno()
        self.cache = cache
        self.phase = Phase.READING
        self.parse_state = recognizer.INITIAL
        self.write_offset = 0
        self.last_activity = now

    def __repr__(self):
        return '<Connection fd={} phase={} offset={}>'.format(self.fd, self.phase.name, self.write_offset)

    def buffer(self) -> bytes:
        if self.phase is Phase.WRITING_HEADER:
            return self.cache.header_bytes
        if self.phase is Phase.WRITING_BODY:
            return self.cache.body_bytes
        return b''

    def start_writing(self) -> None:
        self.phase = Phase.WRITING_HEADER
        self.write_offset = 0

    def close(self) -> None:
        try:
            self.connection.close()
        except OSError as e:
            logger.debug('close fd %d: %s', self.fd, e)


def read_request(conn: Connection, read_size: int, now: float) -> recognizer.Action:
    """Consume whatever the peer sent.

    REJECT means the connection has to be closed, COMPLETE that it is ready
    to receive the response.
    """
    try:
        data = conn.connection.recv(read_size)
    except (BlockingIOError, InterruptedError):
        return recognizer.Action.CONSUME
    except OSError as e:
        logger.info('closing fd %d:%s', conn.fd, e)
        return recognizer.Action.REJECT
    if not data:
        logger.info('closing fd %d:end of stream', conn.fd)
        return recognizer.Action.REJECT
    logger.debug('fd %d read %d bytes', conn.fd, len(data))
    conn.last_activity = now
    conn.parse_state, action = recognizer.feed(conn.parse_state, data)
    if action is recognizer.Action.REJECT:
        logger.info('closing fd %d:not a GET request', conn.fd)
    return action


def write_response(conn: Connection, now: float) -> bool:
    """Push the next slice of the response. False means close the connection."""
    if conn.phase is Phase.DONE:
        logger.info('closing fd %d:completed', conn.fd)
        return False
    buf = conn.buffer()
    try:
        sent = conn.connection.send(memoryview(buf)[conn.write_offset:])
    except (BlockingIOError, InterruptedError):
        return True
    except OSError as e:
        logger.info('closing fd %d:%s', conn.fd, e)
        return False
    conn.write_offset += sent
    conn.last_activity = now
    if conn.write_offset == len(buf):
        conn.phase = Phase(conn.phase + 1)
        conn.write_offset = 0
        if conn.phase is Phase.WRITING_BODY and not conn.cache.body_bytes:
            conn.phase = Phase.DONE
    return True

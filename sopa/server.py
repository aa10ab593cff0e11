import sys
import time
import signal
import socket
import logging
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from sopa.cache import load_cache
from sopa.config import Config
from sopa.connection import Connection, read_request, write_response
from sopa.content import ContentError
from sopa.poller import Poller, READ
from sopa.printer import setup_logging
from sopa.recognizer import Action
from sopa.registry import Registry

if TYPE_CHECKING:
    from socket import socket as sock
    from sopa.cache import ResponseCache


logger = logging.getLogger(__name__)


def create_listener(address: str, port: int) -> 'sock':
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        s.bind((address, port))
        s.setblocking(False)
        s.listen(socket.SOMAXCONN)
    except OSError:
        s.close()
        raise
    return s


class Server:
    def __init__(self,
                 config: Config,
                 cache: 'ResponseCache',
                 clock: Callable[[], float] = time.monotonic,
                 poller: Optional[Poller] = None,
                 ):
        self._config: Config = config
        self._cache: 'ResponseCache' = cache
        self._clock = clock
        self._poll: Poller = poller if poller is not None else Poller()
        self._registry: Registry = Registry(self._poll, config.idle_timeout)
        self._socket: Optional['sock'] = None
        self._waker: Optional[Tuple['sock', 'sock']] = None
        self._floor: Optional[float] = None
        self._now: float = clock()
        self._running = False
        self._closed = False

    @property
    def fn(self) -> int:
        return self._socket.fileno()

    @property
    def host(self) -> str:
        return self._socket.getsockname()[0]

    @property
    def port(self) -> int:
        return self._socket.getsockname()[1]

    @property
    def cache(self) -> 'ResponseCache':
        return self._cache

    @property
    def registry(self) -> Registry:
        return self._registry

    def setup(self, listener: Optional['sock'] = None):
        try:
            self._socket = listener if listener is not None else create_listener(
                self._config.address,
                self._config.port
            )
            self._socket.setblocking(False)
            self._poll.register(self.fn, READ)
            self._waker = socket.socketpair()
            for s in self._waker:
                s.setblocking(False)
            self._poll.register(self._waker[0].fileno(), READ)
            self._running = True
            logger.info('listening on %s:%d', self.host, self.port)
        except Exception:
            self.close()
            raise

    def accept_clients(self) -> None:
        while True:
            try:
                connection, address = self._socket.accept()  # type: sock, Tuple[str, int]
            except (BlockingIOError, InterruptedError):
                return
            except ConnectionAbortedError:
                continue
            connection.setblocking(False)
            conn = Connection(connection, self._cache, self._now)
            self._registry.add(conn)
            logger.info('new client fd %d (%s:%d)', conn.fd, address[0], address[1])

    def handle_incoming_event(self, conn: Connection) -> bool:
        action = read_request(conn, self._config.read_size, self._now)
        if action is Action.REJECT:
            return False
        if action is Action.COMPLETE:
            self._registry.move_to_writers(conn)
        return True

    def handle_outgoing_event(self, conn: Connection) -> bool:
        return write_response(conn, self._now)

    def get_event(self) -> Dict[int, int]:
        timeout = self._registry.deadline(self._floor, self._clock())
        if timeout is None:
            logger.debug('waiting for new connections')
        else:
            logger.debug('wait for %.3f seconds', timeout)
        self._registry.dump()
        return self._poll.wait(timeout)

    def run_once(self) -> None:
        ready = self.get_event()
        self._now = self._clock()
        if ready.get(self.fn, 0) & READ:
            self.accept_clients()
        if self._waker is not None and self._waker[0].fileno() in ready:
            self._drain_waker()
        floors: List[Optional[float]] = [
            self._registry.process_readers(ready, self.handle_incoming_event, self._now),
            self._registry.process_writers(ready, self.handle_outgoing_event, self._now),
        ]
        self._floor = min((f for f in floors if f is not None), default=None)

    def serve_forever(self) -> None:
        try:
            while self._running:
                self.run_once()
        finally:
            self.close()

    def reload(self, cache: 'ResponseCache') -> None:
        # connections already accepted keep the cache they were accepted with
        self._cache = cache
        logger.info('content reloaded: %d bytes body', len(cache.body_bytes))

    def stop(self) -> None:
        self._running = False
        waker = self._waker
        if waker is None:
            return
        try:
            waker[1].send(b'\0')
        except OSError as e:
            logger.debug('wake up failed: %s', e)

    def _drain_waker(self) -> None:
        try:
            while self._waker[0].recv(64):
                pass
        except (BlockingIOError, InterruptedError):
            pass

    def close(self) -> None:
        self._running = False
        if self._closed:
            return
        self._closed = True
        self._registry.close_all()
        if self._socket is not None:
            self._poll.unregister(self._socket.fileno())
            self._socket.close()
            self._socket = None
        if self._waker is not None:
            self._poll.unregister(self._waker[0].fileno())
            for s in self._waker:
                s.close()
            self._waker = None
        self._poll.close()


def main(argv: Optional[List[str]] = None) -> None:
    setup_logging()
    try:
        config = Config.from_cli(argv)
        setup_logging(config.log_level)
        server = Server(config, load_cache(config))
        server.setup()
    except (OSError, ContentError, ValueError, TypeError) as e:
        logger.error('%s', e)
        sys.exit(1)

    def on_stop(signum, frame):
        logger.info('signal %d, stopping', signum)
        server.stop()

    def on_reload(signum, frame):
        try:
            server.reload(load_cache(config))
        except (OSError, ContentError) as e:
            logger.error('reload failed, keeping old content: %s', e)

    signal.signal(signal.SIGINT, on_stop)
    signal.signal(signal.SIGTERM, on_stop)
    if hasattr(signal, 'SIGHUP'):
        signal.signal(signal.SIGHUP, on_reload)
    server.serve_forever()


if __name__ == '__main__':
    main()

import selectors
from typing import Dict, Optional


READ = selectors.EVENT_READ
WRITE = selectors.EVENT_WRITE


class Poller:
    """Readiness interest keyed by descriptor.

    Interest stays registered between waits; ``register`` on a known
    descriptor switches its direction.
    """

    def __init__(self, selector: Optional['selectors.BaseSelector'] = None):
        self._selector = selector if selector is not None else selectors.DefaultSelector()

    def register(self, fd: int, direction: int) -> None:
        if fd in self._selector.get_map():
            self._selector.modify(fd, direction)
        else:
            self._selector.register(fd, direction)

    def unregister(self, fd: int) -> None:
        if fd in self._selector.get_map():
            self._selector.unregister(fd)

    def wait(self, timeout: Optional[float] = None) -> Dict[int, int]:
        return {key.fd: mask for key, mask in self._selector.select(timeout)}

    def close(self) -> None:
        self._selector.close()

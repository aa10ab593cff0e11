import logging
from typing import Iterable

from tornado.log import LogFormatter


def setup_logging(level: str = 'info') -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(LogFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper()))


def format_state(str_name: str, fds: Iterable[int]) -> str:
    return '{:>8}: {}'.format(str_name, ' '.join('{}'.format(fd) for fd in fds))


def log_state(logger: logging.Logger, str_name: str, fds: Iterable[int]) -> None:
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(format_state(str_name, fds))

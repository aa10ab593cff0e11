import json
import logging
from typing import List, Optional, Union
from argparse import ArgumentParser


Int = Union[str, int]
Float = Union[str, int, float]

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

logger = logging.getLogger(__name__)


class Config:
    def __init__(self,
                 address: str = '0.0.0.0',
                 port: Int = 80,
                 idle_timeout: Float = 5,
                 header_max: Int = 512,
                 read_size: Int = 64,
                 content_path: str = 'sopa.html',
                 content_type: str = 'text/html; charset=UTF-8',
                 log_level: str = 'info',
                 ):
        self.address = address
        self.port = int(port)
        self.idle_timeout = float(idle_timeout)
        self.header_max = int(header_max)
        self.read_size = int(read_size)
        self.content_path = content_path
        self.content_type = content_type
        if log_level.upper() not in LOG_LEVELS:
            raise ValueError('unknown log level {!r}'.format(log_level))
        self.log_level = log_level

    @classmethod
    def load(cls, file_name: str) -> 'Config':
        with open(file_name) as f:
            _config = json.load(f)
            logger.info('Load config %s:', file_name)
            for k in sorted(_config):
                print_key = ' '.join(k.split('_')).capitalize()
                logger.info('    %s: %s', print_key, _config[k])
            return cls(**_config)

    @classmethod
    def from_cli(cls, argv: Optional[List[str]] = None) -> 'Config':
        parser = ArgumentParser(prog='sopa')
        parser.add_argument('--config', default=None, required=False)
        args = parser.parse_args(argv)
        if args.config is None:
            return cls()
        return cls.load(args.config)

from sopa.cache import ResponseCache, build_cache
from sopa.config import Config
from sopa.server import Server, create_listener

__version__ = '0.1.0'

import time
from typing import Optional

from tornado.httputil import format_timestamp

from sopa.content import HeaderTooLarge, load_file


HEADER_TEMPLATE = (
    'HTTP/1.1 200 OK\r\n'
    'Content-Type: {content_type}\r\n'
    'Date: {date}\r\n'
    'Content-Length: {length}\r\n'
    '\r\n'
)


class ResponseCache:
    """Pre-serialized response shared by every connection.

    Never mutated after construction, a reload builds a new instance.
    """
    __slots__ = ('header_bytes', 'body_bytes')

    def __init__(self, header_bytes: bytes, body_bytes: bytes):
        self.header_bytes = header_bytes
        self.body_bytes = body_bytes

    def __len__(self):
        return len(self.header_bytes) + len(self.body_bytes)

    def __bytes__(self):
        return self.header_bytes + self.body_bytes


def encode_header(content_length: int,
                  content_type: str,
                  header_max: int,
                  timestamp: Optional[float] = None) -> bytes:
    if timestamp is None:
        timestamp = time.time()
    header = HEADER_TEMPLATE.format(
        content_type=content_type,
        date=format_timestamp(timestamp),
        length=content_length,
    ).encode('latin-1')
    if len(header) >= header_max:
        raise HeaderTooLarge('encoded header is {} bytes, limit {}'.format(len(header), header_max))
    return header


def build_cache(body: bytes,
                content_type: str,
                header_max: int,
                timestamp: Optional[float] = None) -> ResponseCache:
    header = encode_header(len(body), content_type, header_max, timestamp)
    return ResponseCache(header, bytes(body))


def load_cache(config) -> ResponseCache:
    body = load_file(config.content_path)
    return build_cache(body, config.content_type, config.header_max)

"""
Probe for a running server: opens ``count`` connections at once and sends the
request on each of them in one of three ways

    normal  the whole request in one write
    slow    one byte per write, ``delay`` seconds apart
    idle    nothing at all, just wait for the server to hang up
"""
import time
import asyncio
import argparse
import logging
from typing import List, Optional

from tornado.httputil import HTTPHeaders, HTTPInputError, parse_response_start_line


REQUEST = b'GET / HTTP/1.0\r\n\r\n'
MODES = ('normal', 'slow', 'idle')

logger = logging.getLogger(__name__)


class Result:
    def __init__(self,
                 name: str,
                 elapsed: float,
                 data: bytes = b'',
                 error: Optional[str] = None,
                 ):
        self.name = name
        self.elapsed = elapsed
        self.data = data
        self.error = error
        self.code: Optional[int] = None
        self.content_length: Optional[int] = None
        self.body = b''
        if data:
            self._parse()

    def _parse(self):
        head, sep, self.body = self.data.partition(b'\r\n\r\n')
        if not sep:
            self.error = 'incomplete header'
            return
        start_line, _, header_lines = head.decode('latin-1').partition('\r\n')
        try:
            self.code = parse_response_start_line(start_line).code
            headers = HTTPHeaders.parse(header_lines)
        except HTTPInputError as e:
            self.error = str(e)
            return
        if 'Content-Length' in headers:
            self.content_length = int(headers['Content-Length'])

    @property
    def ok(self) -> bool:
        return self.error is None and self.code == 200 and self.content_length == len(self.body)


async def send_request(writer: 'asyncio.StreamWriter', mode: str, delay: float):
    if mode == 'normal':
        writer.write(REQUEST)
        await writer.drain()
    elif mode == 'slow':
        for i in range(len(REQUEST)):
            writer.write(REQUEST[i:i + 1])
            await writer.drain()
            await asyncio.sleep(delay)


async def worker(host: str, port: int, name: str, mode: str, delay: float) -> Result:
    float_start = time.monotonic()
    try:
        reader, writer = await asyncio.open_connection(host, port)
    except OSError as e:
        return Result(name, time.monotonic() - float_start, error=str(e))
    try:
        await send_request(writer, mode, delay)
        data = await reader.read()
    except ConnectionError as e:
        return Result(name, time.monotonic() - float_start, error=str(e))
    finally:
        writer.close()
    result = Result(name, time.monotonic() - float_start, data)
    logger.debug('%s: %d bytes in %.6f', name, len(data), result.elapsed)
    return result


async def main(host: str, port: int, count: int, mode: str = 'normal', delay: float = 0.0) -> List[Result]:
    if mode not in MODES:
        raise ValueError('unknown mode {!r}'.format(mode))
    tasks = [
        asyncio.ensure_future(worker(host, port, f'worker-{i}', mode, delay))
        for i in range(count)
    ]
    return list(await asyncio.gather(*tasks))


def print_results(results: List[Result]) -> None:
    for result in results:
        print('{:>10.6f} | {:>10} | {:>4} | {:>8} | {}'.format(
            result.elapsed,
            result.name,
            result.code or '-',
            len(result.body),
            result.error or ('ok' if result.ok else 'mismatch'),
        ))


def cli(argv: Optional[List[str]] = None) -> None:
    argument_parser = argparse.ArgumentParser(prog='sopa-probe')
    argument_parser.add_argument('--host', default='127.0.0.1')
    argument_parser.add_argument('--port', type=int, default=80)
    argument_parser.add_argument('--count', type=int, default=10)
    argument_parser.add_argument('--mode', choices=MODES, default='normal')
    argument_parser.add_argument('--delay', type=float, default=0.1)
    namespace = argument_parser.parse_args(argv)
    results = asyncio.run(main(namespace.host, namespace.port, namespace.count, namespace.mode, namespace.delay))
    print_results(results)


if __name__ == '__main__':
    cli()

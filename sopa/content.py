import os
import logging


LOAD_RETRIES = 10

logger = logging.getLogger(__name__)


class ContentError(Exception):
    pass


class ContentLoadError(ContentError):
    pass


class HeaderTooLarge(ContentError):
    pass


def load_file(file_name: str, retries: int = LOAD_RETRIES) -> bytes:
    """Read the whole file, rereading while its size keeps changing under us.

    OSError from open/stat/read propagates unchanged.
    """
    with open(file_name, 'rb') as f:
        for attempt in range(retries + 1):
            size = os.fstat(f.fileno()).st_size
            f.seek(0)
            data = f.read(size)
            if len(data) == size:
                logger.info('loaded %s: %d bytes', file_name, size)
                return data
            logger.debug('%s: size changed during read (attempt %d)', file_name, attempt + 1)
    raise ContentLoadError('{}: unable to determine size of file'.format(file_name))

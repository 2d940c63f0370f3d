from typing import NamedTuple, Optional, Pattern

import os
import logging

from .errors import TailError
from .constants import DEFAULT_MAX_READ_BYTES, DEFAULT_ENCODING

__all__ = (
    'TailResult',
    'Tailer',
    'count_matches',
    'make_file_id',
)

logger = logging.getLogger(__name__)

class TailResult(NamedTuple):
    offset: int
    content: str
    file_id: Optional[str]
    # true if the file was truncated or replaced and reading restarted at 0
    reset: bool = False

def make_file_id(stat: os.stat_result) -> str:
    return f'{stat.st_dev}:{stat.st_ino}'

def count_matches(content: str, pattern: Optional[Pattern[str]]) -> int:
    if not content:
        return 0

    # only '\n' ends a line, other line breaks are part of it
    lines = content.split('\n')
    if lines[-1] == '':
        lines.pop()

    if pattern is None:
        return len(lines)

    return sum(1 for line in lines if pattern.search(line) is not None)

class Tailer:
    """
    Reads what was appended to a log file since a given offset.

    Only complete lines are consumed. If the last line isn't terminated yet
    the returned offset points to its start so it is read again, completed,
    on the next call.
    """
    __slots__ = (
        'max_read_bytes',
        'encoding',
    )

    max_read_bytes: int
    encoding: str

    def __init__(self, max_read_bytes: int = DEFAULT_MAX_READ_BYTES, encoding: str = DEFAULT_ENCODING) -> None:
        if max_read_bytes <= 0:
            raise ValueError(f'max_read_bytes needs to be greater than 0 but was {max_read_bytes}')
        self.max_read_bytes = max_read_bytes
        self.encoding = encoding

    def end_offset(self, path: str) -> TailResult:
        """
        Offset of the last complete line, used to start monitoring at the end
        of an existing file.
        """
        try:
            with open(path, 'rb') as fp:
                stat = os.fstat(fp.fileno())
                size = stat.st_size
                offset = size
                if size > 0:
                    # back off to the last newline
                    chunk_size = min(size, 4096)
                    while offset > 0:
                        start = max(offset - chunk_size, 0)
                        fp.seek(start)
                        chunk = fp.read(offset - start)
                        index = chunk.rfind(b'\n')
                        if index >= 0:
                            offset = start + index + 1
                            break
                        offset = start
        except OSError as exc:
            raise TailError(f'{path}: Error reading file: {exc}') from exc

        return TailResult(offset, '', make_file_id(stat))

    def read(self, path: str, from_offset: int, file_id: Optional[str] = None) -> TailResult:
        try:
            with open(path, 'rb') as fp:
                stat = os.fstat(fp.fileno())
                new_file_id = make_file_id(stat)
                reset = False

                if stat.st_size < from_offset:
                    logger.info(f'{path}: File was truncated ({stat.st_size} < {from_offset}), reading from start')
                    from_offset = 0
                    reset = True
                elif file_id is not None and file_id != new_file_id:
                    logger.info(f'{path}: File was replaced, reading from start')
                    from_offset = 0
                    reset = True

                if from_offset > 0:
                    fp.seek(from_offset)

                data = fp.read(self.max_read_bytes)
        except OSError as exc:
            raise TailError(f'{path}: Error reading file: {exc}') from exc

        end = data.rfind(b'\n')
        if end < 0:
            if len(data) >= self.max_read_bytes:
                # a single line longer than max_read_bytes, consume it anyway
                end = len(data) - 1
            else:
                return TailResult(from_offset, '', new_file_id, reset)

        data = data[:end + 1]
        content = data.decode(self.encoding, errors='replace')

        return TailResult(from_offset + len(data), content, new_file_id, reset)

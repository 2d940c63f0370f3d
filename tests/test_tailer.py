import os
import re
import pytest

from logchecker.tailer import Tailer, count_matches
from logchecker.errors import TailError

from tests.testutils import *

def test_count_matches() -> None:
    content = 'ERROR one\nINFO two\nerror three\nERROR four\n'

    assert count_matches(content, re.compile('ERROR')) == 2
    assert count_matches(content, re.compile('ERROR', re.I)) == 3
    assert count_matches(content, None) == 4
    assert count_matches('', None) == 0
    assert count_matches('', re.compile('x')) == 0

def test_count_matches_only_splits_on_newline() -> None:
    content = 'ERROR a\rERROR b\nINFO c\x0cpage\nERROR d more\n'

    assert count_matches(content, None) == 3
    assert count_matches(content, re.compile('ERROR')) == 2
    assert count_matches('progress 10%\rprogress 100%\n', None) == 1
    assert count_matches('a b\x85c\n', None) == 1

def test_carriage_return_lines_from_file(logfiles: list[str]) -> None:
    logfile = logfiles[0]
    with open(logfile, 'wb') as fp:
        fp.write(b'ERROR a\rERROR b\r\nINFO c\x0cERROR d\n')

    result = Tailer().read(logfile, 0)

    assert count_matches(result.content, re.compile('ERROR')) == 2
    assert count_matches(result.content, None) == 2

def test_read_appended(logfiles: list[str]) -> None:
    logfile = logfiles[0]
    tailer = Tailer()

    append_lines(logfile, ['ERROR a', 'INFO b'])
    first = tailer.read(logfile, 0)

    assert first.content == 'ERROR a\nINFO b\n'
    assert first.offset == os.path.getsize(logfile)
    assert not first.reset

    append_lines(logfile, ['ERROR c'])
    second = tailer.read(logfile, first.offset, first.file_id)

    assert second.content == 'ERROR c\n'
    assert second.file_id == first.file_id

    third = tailer.read(logfile, second.offset, second.file_id)
    assert third.content == ''
    assert third.offset == second.offset

def test_incomplete_line_is_left_for_later(logfiles: list[str]) -> None:
    logfile = logfiles[0]
    tailer = Tailer()

    write_file(logfile, 'ERROR done\nERROR half')
    result = tailer.read(logfile, 0)

    assert result.content == 'ERROR done\n'
    assert result.offset == len('ERROR done\n')

    with open(logfile, 'a') as fp:
        fp.write(' finished\n')

    result = tailer.read(logfile, result.offset, result.file_id)
    assert result.content == 'ERROR half finished\n'

def test_truncation_resets_offset(logfiles: list[str]) -> None:
    logfile = logfiles[0]
    tailer = Tailer()

    append_lines(logfile, [f'ERROR {i}' for i in range(20)])
    before = tailer.read(logfile, 0)

    write_file(logfile, 'ERROR new\n')
    after = tailer.read(logfile, before.offset, before.file_id)

    assert after.reset
    assert after.content == 'ERROR new\n'
    assert after.offset == len('ERROR new\n')
    assert count_matches(after.content, re.compile('ERROR')) == 1

def test_rotation_to_new_file_resets_offset(logfiles: list[str]) -> None:
    logfile = logfiles[0]
    rotated = logfiles[1]
    tailer = Tailer()

    append_lines(logfile, ['INFO old'])
    before = tailer.read(logfile, 0)

    os.rename(logfile, rotated)
    append_lines(logfile, [f'ERROR {i}' for i in range(5)])

    after = tailer.read(logfile, before.offset, before.file_id)

    assert after.reset
    assert after.file_id != before.file_id
    assert count_matches(after.content, re.compile('ERROR')) == 5

def test_missing_file(logfiles: list[str]) -> None:
    with pytest.raises(TailError):
        Tailer().read(logfiles[0], 0)

    with pytest.raises(TailError):
        Tailer().end_offset(logfiles[0])

def test_max_read_bytes(logfiles: list[str]) -> None:
    logfile = logfiles[0]
    tailer = Tailer(max_read_bytes=12)

    append_lines(logfile, ['ERROR 1', 'ERROR 2', 'ERROR 3'])

    contents: list[str] = []
    offset = 0
    for _ in range(5):
        result = tailer.read(logfile, offset)
        contents.append(result.content)
        offset = result.offset

    assert ''.join(contents) == 'ERROR 1\nERROR 2\nERROR 3\n'
    assert offset == os.path.getsize(logfile)

def test_end_offset(logfiles: list[str]) -> None:
    logfile = logfiles[0]
    write_file(logfile, 'INFO a\nINFO b\npartial')

    result = Tailer().end_offset(logfile)

    assert result.offset == len('INFO a\nINFO b\n')
    assert result.content == ''

    write_file(logfile, '')
    assert Tailer().end_offset(logfile).offset == 0

from typing import Optional, override

import pytest

from logchecker.storage import MemoryStore
from logchecker.engine import EscalationEngine, PollResult
from logchecker.watcher import FileWatcher
from logchecker.scheduler import Scheduler

from tests.testutils import *

class CrashingWatcher(FileWatcher):
    __slots__ = ('polls',)

    polls: int

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.polls = 0

    @override
    def poll(self) -> Optional[PollResult]:
        self.polls += 1
        raise RuntimeError('poll exploded')

def test_files_are_polled_independently(logfiles: list[str]) -> None:
    store = MemoryStore()
    notifier = RecordingNotifier()
    engine = EscalationEngine(store, notifier)

    good_file, crashing_file, _ = logfiles
    write_file(good_file, '')

    good = FileWatcher(make_watch(path=good_file, delay=0.05, service='good'), store, engine)
    crashing = CrashingWatcher(make_watch(path=crashing_file, delay=0.05, service='bad'), store, engine)

    scheduler = Scheduler([good, crashing], wait_after_crash=0.05)
    scheduler.start()
    try:
        assert scheduler.is_running()

        append_lines(good_file, [f'ERROR {i}' for i in range(11)])

        assert wait_for(lambda: len(notifier.messages) == 1)
        assert wait_for(lambda: crashing.polls >= 2)
    finally:
        scheduler.stop()
        assert scheduler.join(5)

    assert scheduler.is_stopping()
    assert not scheduler.is_running()
    assert notifier.subjects == [f'[ALERT] good: {good_file}']
    assert store.get(good_file)[0].level == 2

def test_stop_interrupts_long_delay(logfiles: list[str]) -> None:
    store = MemoryStore()
    engine = EscalationEngine(store, RecordingNotifier())
    write_file(logfiles[0], '')

    watcher = FileWatcher(make_watch(path=logfiles[0], delay=3600), store, engine)
    scheduler = Scheduler([watcher])
    scheduler.start()

    assert wait_for(lambda: store.get(logfiles[0])[1])

    scheduler.stop()
    assert scheduler.join(5)

def test_start_twice_or_empty() -> None:
    with pytest.raises(ValueError):
        Scheduler([]).start()

    store = MemoryStore()
    watcher = FileWatcher(make_watch(path='/nonexistent/logchecker.log', delay=3600), store, EscalationEngine(store, RecordingNotifier()))
    scheduler = Scheduler([watcher])
    scheduler.start()
    try:
        with pytest.raises(RuntimeError):
            scheduler.start()
    finally:
        scheduler.stop()
        scheduler.join(5)

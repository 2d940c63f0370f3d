from typing import Optional

import logging

from .models import MonitorState, WatchedFile
from .tailer import Tailer, count_matches
from .engine import EscalationEngine, PollResult
from .storage import StateStore
from .errors import TailError, StorageError

__all__ = (
    'FileWatcher',
)

class FileWatcher:
    """
    Samples one log file: reads what was appended since the last poll,
    counts the matching lines and feeds the count to the escalation engine.
    """
    __slots__ = (
        'watch',
        'store',
        'tailer',
        'engine',
        'logger',
    )

    watch: WatchedFile
    store: StateStore
    tailer: Tailer
    engine: EscalationEngine
    logger: logging.Logger

    def __init__(
            self,
            watch: WatchedFile,
            store: StateStore,
            engine: EscalationEngine,
            tailer: Optional[Tailer] = None,
            logger: Optional[logging.Logger] = None,
    ) -> None:
        self.watch = watch
        self.store = store
        self.engine = engine
        self.tailer = tailer if tailer is not None else Tailer(encoding=watch.encoding)
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    @property
    def path(self) -> str:
        return self.watch.path

    def poll(self) -> Optional[PollResult]:
        """
        Returns `None` if nothing was evaluated in this interval, either
        because of a transient error or because this was the first poll of a
        file and only the baseline was recorded.
        """
        log = self.logger
        watch = self.watch
        path = watch.path

        try:
            prior, found = self.store.get(path)
        except StorageError as exc:
            log.error(f'{path}: Error loading state: {exc}', exc_info=exc)
            return None

        if not found and watch.seek_end:
            try:
                tail = self.tailer.end_offset(path)
            except TailError as exc:
                log.error(str(exc))
                return None

            try:
                self.store.set(path, MonitorState(offset=tail.offset, file_id=tail.file_id))
            except StorageError as exc:
                log.error(f'{path}: Error storing state: {exc}', exc_info=exc)
                return None

            log.debug(f'{path}: Started monitoring at offset {tail.offset}')
            return None

        try:
            tail = self.tailer.read(path, prior.offset, prior.file_id)
        except TailError as exc:
            log.error(str(exc))
            return None

        count = count_matches(tail.content, watch.pattern)

        return self.engine.process(watch, prior, count, tail)

from typing import Iterable, Optional

import logging
import threading

from .watcher import FileWatcher
from .constants import DEFAULT_WAIT_AFTER_CRASH

__all__ = (
    'Scheduler',
)

class Scheduler:
    """
    Runs one polling thread per watched file, each at the delay of its file.

    `stop()` only sets a shared event. Threads check it between polls, so a
    poll that is in progress always runs to completion.
    """
    __slots__ = (
        'watchers',
        'wait_after_crash',
        'logger',
        '_stop_event',
        '_threads',
    )

    watchers: list[FileWatcher]
    wait_after_crash: float
    logger: logging.Logger

    _stop_event: threading.Event
    _threads: list[threading.Thread]

    def __init__(
            self,
            watchers: Iterable[FileWatcher],
            wait_after_crash: float = DEFAULT_WAIT_AFTER_CRASH,
            logger: Optional[logging.Logger] = None,
    ) -> None:
        self.watchers = list(watchers)
        self.wait_after_crash = wait_after_crash
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._stop_event = threading.Event()
        self._threads = []

    def is_running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def is_stopping(self) -> bool:
        return self._stop_event.is_set()

    def start(self) -> None:
        if self._threads:
            raise RuntimeError('Scheduler was already started')

        if not self.watchers:
            raise ValueError('no files to watch')

        for watcher in self.watchers:
            thread = threading.Thread(
                target = self._run_watcher,
                args = (watcher,),
                name = watcher.path,
                daemon = True,
            )
            thread.start()
            self._threads.append(thread)

        self.logger.info(f'Monitoring {len(self._threads)} files')

    def stop(self) -> None:
        if not self._stop_event.is_set():
            self.logger.info('Stopping monitoring...')
            self._stop_event.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """
        Returns `False` if some threads were still running after `timeout`.
        """
        for thread in self._threads:
            try:
                thread.join(timeout)
            except Exception as exc:
                self.logger.error(f'{thread.name}: Error waiting for thread: {exc}', exc_info=exc)

        return not self.is_running()

    def run(self) -> None:
        """
        Starts all loops and blocks until `stop()` was called and every loop
        finished its current poll.
        """
        self.start()
        try:
            while not self._stop_event.wait(1):
                pass
        except KeyboardInterrupt:
            self.logger.info('Shutting down on SIGINT...')
            self.stop()
        self.join()

    def _run_watcher(self, watcher: FileWatcher) -> None:
        stop_event = self._stop_event
        delay = watcher.watch.delay
        path = watcher.path

        self.logger.debug(f'{path}: Polling every {delay:g} seconds')

        while not stop_event.is_set():
            try:
                watcher.poll()
            except Exception as exc:
                self.logger.error(f'{path}: Error while polling: {exc}', exc_info=exc)
                self.logger.debug(f'{path}: Waiting for {self.wait_after_crash} seconds after crash')
                if stop_event.wait(self.wait_after_crash):
                    break

            if stop_event.wait(delay):
                break

        self.logger.debug(f'{path}: Stopped')

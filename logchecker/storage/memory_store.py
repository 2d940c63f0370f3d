from typing import override

import threading

from ..models import MonitorState
from ..schema import Config
from .state_store import StateStore

__all__ = (
    'MemoryStore',
)

class MemoryStore(StateStore):
    __slots__ = (
        '_lock',
        '_key_locks',
        '_states',
    )

    # only guards creation of key locks
    _lock: threading.Lock
    _key_locks: dict[str, threading.Lock]
    _states: dict[str, MonitorState]

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._key_locks = {}
        self._states = {}

    @staticmethod
    def from_config(config: Config) -> 'MemoryStore':
        return MemoryStore()

    def _key_lock(self, path: str) -> threading.Lock:
        lock = self._key_locks.get(path)
        if lock is None:
            with self._lock:
                lock = self._key_locks.setdefault(path, threading.Lock())
        return lock

    @override
    def get(self, path: str) -> tuple[MonitorState, bool]:
        with self._key_lock(path):
            state = self._states.get(path)

        if state is None:
            return MonitorState(), False

        return state, True

    @override
    def set(self, path: str, state: MonitorState) -> None:
        with self._key_lock(path):
            self._states[path] = state

    @override
    def delete(self, path: str) -> None:
        with self._key_lock(path):
            self._states.pop(path, None)

    @override
    def paths(self) -> list[str]:
        return list(self._states)

    @override
    def get_name(self) -> str:
        return 'Memory'

    def __len__(self) -> int:
        return len(self._states)

from typing import Callable, Self

import logging

from abc import ABC, abstractmethod

from ..models import MonitorState
from ..schema import Config
from ..errors import ConfigError
from ..constants import DEFAULT_STORAGE

__all__ = (
    'StateStore',
    'StoreFactory',
    'register_store',
    'create_store',
    'store_names',
)

logger = logging.getLogger(__name__)

class StateStore(ABC):
    """
    Per-file monitoring state, keyed by log file path.

    A `get()` after a `set()` of the same key observes the written value.
    Calls for different keys must not block each other, calls for the same
    key are serialized. Backend failures raise `StorageError`.
    """
    __slots__ = ()

    @abstractmethod
    def get(self, path: str) -> tuple[MonitorState, bool]:
        """
        Returns the stored state and `True`, or a fresh `MonitorState()` and
        `False` if there is none.
        """
        ...

    @abstractmethod
    def set(self, path: str, state: MonitorState) -> None: ...

    @abstractmethod
    def delete(self, path: str) -> None: ...

    @abstractmethod
    def paths(self) -> list[str]:
        """
        All paths that have a stored state.
        """
        ...

    @abstractmethod
    def get_name(self) -> str: ...

    def close(self) -> None:
        pass

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

type StoreFactory = Callable[[Config], StateStore]

_registry: dict[str, StoreFactory] = {}

def register_store(name: str, factory: StoreFactory) -> None:
    if not name:
        raise ValueError('Storage name may not be empty!')

    if name in _registry:
        logger.debug(f'Replacing storage backend {name!r}')

    _registry[name] = factory

def store_names() -> list[str]:
    return sorted(_registry)

def create_store(config: Config) -> StateStore:
    name = config.get('storage', DEFAULT_STORAGE)
    factory = _registry.get(name)

    if factory is None:
        raise ConfigError(f'Unknown storage backend: {name!r} (known: {", ".join(store_names())})')

    return factory(config)

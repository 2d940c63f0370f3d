from .state_store import StateStore, StoreFactory, register_store, create_store, store_names
from .memory_store import MemoryStore
from .sqlite_store import SqliteStore

__all__ = (
    'StateStore',
    'StoreFactory',
    'MemoryStore',
    'SqliteStore',
    'register_store',
    'create_store',
    'store_names',
)

register_store('memory', MemoryStore.from_config)
register_store('sqlite', SqliteStore.from_config)

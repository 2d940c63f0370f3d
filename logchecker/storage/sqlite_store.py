from typing import Optional, override

import os
import sqlite3
import logging
import threading

from ..models import MonitorState
from ..schema import Config
from ..errors import ConfigError, StorageError
from .state_store import StateStore

__all__ = (
    'SqliteStore',
)

logger = logging.getLogger(__name__)

CREATE_TABLE = '''
CREATE TABLE IF NOT EXISTS monitor_state (
    path TEXT PRIMARY KEY,
    read_offset INTEGER NOT NULL,
    last_count INTEGER NOT NULL,
    level INTEGER NOT NULL,
    last_notified_at REAL,
    file_id TEXT
)
'''

class SqliteStore(StateStore):
    """
    Keeps the monitoring state in a SQLite database so it survives restarts.

    Every thread gets its own connection. The database runs in WAL mode,
    so polling loops of different files don't wait on each other for reads.
    """
    __slots__ = (
        '_db_path',
        '_timeout',
        '_local',
        '_lock',
        '_connections',
    )

    _db_path: str
    _timeout: float
    _local: threading.local
    _lock: threading.Lock
    _connections: list[sqlite3.Connection]

    def __init__(self, db_path: str, timeout: float = 5.0) -> None:
        if not db_path or db_path == ':memory:':
            raise ConfigError(f'SQLite storage needs a database file, got: {db_path!r}')

        self._db_path = db_path
        self._timeout = timeout
        self._local = threading.local()
        self._lock = threading.Lock()
        self._connections = []

        conn = self._connection()
        with conn:
            conn.execute('PRAGMA journal_mode=WAL')
            conn.execute(CREATE_TABLE)

    @staticmethod
    def from_config(config: Config) -> 'SqliteStore':
        db_path = config.get('storage_path')
        if not db_path:
            raise ConfigError("SQLite storage requires 'storage_path' to be set")

        return SqliteStore(os.path.expanduser(db_path))

    @property
    def db_path(self) -> str:
        return self._db_path

    def _connection(self) -> sqlite3.Connection:
        conn: Optional[sqlite3.Connection] = getattr(self._local, 'conn', None)
        if conn is None:
            dirpath = os.path.dirname(self._db_path)
            try:
                if dirpath:
                    os.makedirs(dirpath, exist_ok=True)
                conn = sqlite3.connect(self._db_path, timeout=self._timeout, check_same_thread=False)
            except (OSError, sqlite3.Error) as exc:
                raise StorageError(f'{self._db_path}: Error opening database: {exc}') from exc

            self._local.conn = conn
            with self._lock:
                self._connections.append(conn)

        return conn

    @override
    def get(self, path: str) -> tuple[MonitorState, bool]:
        try:
            row = self._connection().execute(
                'SELECT read_offset, last_count, level, last_notified_at, file_id '
                'FROM monitor_state WHERE path = ?',
                (path,),
            ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f'{path}: Error reading state: {exc}') from exc

        if row is None:
            return MonitorState(), False

        return MonitorState(*row), True

    @override
    def set(self, path: str, state: MonitorState) -> None:
        try:
            conn = self._connection()
            with conn:
                conn.execute(
                    'INSERT OR REPLACE INTO monitor_state '
                    '(path, read_offset, last_count, level, last_notified_at, file_id) '
                    'VALUES (?, ?, ?, ?, ?, ?)',
                    (path, *state),
                )
        except sqlite3.Error as exc:
            raise StorageError(f'{path}: Error writing state: {exc}') from exc

    @override
    def delete(self, path: str) -> None:
        try:
            conn = self._connection()
            with conn:
                conn.execute('DELETE FROM monitor_state WHERE path = ?', (path,))
        except sqlite3.Error as exc:
            raise StorageError(f'{path}: Error deleting state: {exc}') from exc

    @override
    def paths(self) -> list[str]:
        try:
            rows = self._connection().execute('SELECT path FROM monitor_state ORDER BY path').fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f'{self._db_path}: Error listing states: {exc}') from exc

        return [path for (path,) in rows]

    @override
    def get_name(self) -> str:
        return 'SQLite'

    @override
    def close(self) -> None:
        with self._lock:
            connections = self._connections
            self._connections = []

        for conn in connections:
            try:
                conn.close()
            except Exception as exc:
                logger.warning(f'{self._db_path}: Error closing database: {exc}', exc_info=exc)

        self._local = threading.local()

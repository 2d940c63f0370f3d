from typing import NamedTuple, Optional, Pattern

from .types import SecureOption

__all__ = (
    'MonitorState',
    'WatchedFile',
    'Sender',
)

class MonitorState(NamedTuple):
    offset: int = 0
    last_count: int = 0
    level: int = 0
    last_notified_at: Optional[float] = None
    # "<st_dev>:<st_ino>" of the file offset refers to
    file_id: Optional[str] = None

class WatchedFile(NamedTuple):
    service: str
    path: str
    delay: float
    pattern: Optional[Pattern[str]]
    boundary: int
    increase: bool
    limits: tuple[int, ...]
    emails: tuple[str, ...]
    seek_end: bool = True
    encoding: str = 'UTF-8'

    @property
    def pattern_str(self) -> str:
        return self.pattern.pattern if self.pattern is not None else ''

class Sender(NamedTuple):
    user: str
    password: str
    host: str
    addr: str
    secure: SecureOption = 'STARTTLS'
    timeout: float = 30

    @property
    def address(self) -> tuple[str, int]:
        """
        `addr` split into host and port, e.g. `smtp.host.com:25`.
        Port is 0 if `addr` has none.
        """
        addr = self.addr
        if addr.startswith('['):
            host, sep, rest = addr[1:].partition(']')
            if not sep or (rest and not rest.startswith(':')):
                raise ValueError(f'Illegal address: {addr!r}')
            port = rest[1:]
            return host, int(port, 10) if port else 0

        if addr.count(':') > 1:
            # bare IPv6 address
            return addr, 0

        host, sep, port = addr.rpartition(':')
        if not sep:
            return addr, 0
        return host, int(port, 10)

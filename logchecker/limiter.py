from typing import Optional, override

import logging
import threading

from abc import ABC, abstractmethod
from collections import deque
from time import monotonic
from math import inf

from .constants import *
from .schema import LimitsConfig

logger = logging.getLogger(__name__)

__all__ = (
    'AbstractLimiter',
    'Limiter',
    'NullLimiter',
)

def _expire(timestamps: deque[float], cutoff: float) -> None:
    while timestamps and timestamps[0] < cutoff:
        timestamps.popleft()

class AbstractLimiter(ABC):
    __slots__ = ()

    @abstractmethod
    def check(self) -> bool:
        """
        Returns `True` and records an email if sending is allowed right now.
        """
        ...

    @staticmethod
    def from_config(config: Optional[LimitsConfig]) -> 'AbstractLimiter':
        if config is None:
            config = {}

        per_minute = config.get('max_emails_per_minute', DEFAULT_MAX_EMAILS_PER_MINUTE)
        per_hour   = config.get('max_emails_per_hour', DEFAULT_MAX_EMAILS_PER_HOUR)

        if per_minute is None and per_hour is None:
            return NullLimiter()

        return Limiter(per_minute, per_hour)

class NullLimiter(AbstractLimiter):
    __slots__ = ()

    @override
    def check(self) -> bool:
        return True

class Limiter(AbstractLimiter):
    __slots__ = (
        '_lock', '_minute_timestamps', '_hour_timestamps',
        '_max_emails_per_minute', '_max_emails_per_hour',
        '_last_minute_warning_ts', '_last_hour_warning_ts',
    )

    _lock: threading.Lock
    _minute_timestamps: deque[float]
    _hour_timestamps: deque[float]
    _max_emails_per_minute: Optional[int]
    _max_emails_per_hour: Optional[int]
    _last_minute_warning_ts: float
    _last_hour_warning_ts: float

    def __init__(self, max_emails_per_minute: Optional[int], max_emails_per_hour: Optional[int]) -> None:
        self._lock = threading.Lock()
        self._minute_timestamps = deque()
        self._hour_timestamps   = deque()
        self._max_emails_per_minute = max_emails_per_minute
        self._max_emails_per_hour   = max_emails_per_hour
        self._last_minute_warning_ts = -inf
        self._last_hour_warning_ts   = -inf

    @property
    def max_emails_per_minute(self) -> Optional[int]:
        return self._max_emails_per_minute

    @property
    def max_emails_per_hour(self) -> Optional[int]:
        return self._max_emails_per_hour

    @override
    def check(self) -> bool:
        warning: Optional[str] = None

        with self._lock:
            now = monotonic()
            minute_cutoff = now - 60
            hour_cutoff = now - 60 * 60

            _expire(self._minute_timestamps, minute_cutoff)
            _expire(self._hour_timestamps, hour_cutoff)

            per_minute = self._max_emails_per_minute
            per_hour   = self._max_emails_per_hour

            minute_count = len(self._minute_timestamps)
            hour_count   = len(self._hour_timestamps)

            if per_minute is not None and minute_count >= per_minute:
                if self._last_minute_warning_ts < minute_cutoff:
                    self._last_minute_warning_ts = now
                    warning = f'Maximum emails per minute exceeded! {minute_count} >= {per_minute}'
                ok = False

            elif per_hour is not None and hour_count >= per_hour:
                if self._last_hour_warning_ts < hour_cutoff:
                    self._last_hour_warning_ts = now
                    warning = f'Maximum emails per hour exceeded! {hour_count} >= {per_hour}'
                ok = False

            else:
                self._minute_timestamps.append(now)
                self._hour_timestamps.append(now)
                ok = True

        if warning is not None:
            logger.warning(warning)

        return ok

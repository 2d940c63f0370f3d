from typing import Mapping

__all__ = (
    'LogCheckerError',
    'ConfigError',
    'TailError',
    'StorageError',
    'NotifyError',
    'PermanentNotifyError',
    'TransientNotifyError',
)

class LogCheckerError(Exception):
    pass

class ConfigError(LogCheckerError):
    """
    Invalid configuration. Monitoring does not start until it is resolved.
    """

class TailError(LogCheckerError):
    """
    A log file could not be read. Transient, the next poll retries.
    """

class StorageError(LogCheckerError):
    """
    A state backend failed to read or write.
    """

class NotifyError(LogCheckerError):
    __slots__ = ('refused',)

    refused: Mapping[str, str]

    def __init__(self, message: str, refused: Mapping[str, str] | None = None) -> None:
        super().__init__(message)
        self.refused = refused or {}

class PermanentNotifyError(NotifyError):
    """
    Delivery failed in a way a retry won't fix (bad address, auth failure, ...).
    """

class TransientNotifyError(NotifyError):
    """
    Delivery failed in a way that might go away (connection dropped, 4xx reply, ...).
    """

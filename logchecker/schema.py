from typing import NotRequired, TypedDict, Optional

import pydantic

from .types import *

__all__ = (
    'SenderConfig',
    'FileConfig',
    'ServiceConfig',
    'LimitsConfig',
    'NotifyConfig',
    'Config',
    'AppLogConfig',
    'AppConfig',
    'ConfigFile',
)

class SenderConfig(TypedDict):
    user: str
    password: str
    host: str
    addr: str
    secure: NotRequired[SecureOption]
    timeout: NotRequired[int | float]

class FileConfig(TypedDict):
    path: str
    delay: int | float
    pattern: NotRequired[Optional[str]]
    boundary: NotRequired[int]
    increase: NotRequired[bool]
    emails: list[str]
    limits: NotRequired[list[int]]
    seek_end: NotRequired[bool] # default: True
    encoding: NotRequired[str]

class ServiceConfig(TypedDict):
    name: str
    files: list[FileConfig]

class LimitsConfig(TypedDict):
    max_emails_per_minute: NotRequired[Optional[int]]
    max_emails_per_hour: NotRequired[Optional[int]]

class NotifyConfig(TypedDict):
    subject: NotRequired[str]
    body: NotRequired[str]
    logmails: NotRequired[Logmails]
    dedup_interval: NotRequired[int | float]
    retry_backoff: NotRequired[int | float]
    notify_deescalation: NotRequired[bool]
    limits: NotRequired[LimitsConfig]

class Config(NotifyConfig):
    sender: NotRequired[SenderConfig]
    storage: NotRequired[str]
    storage_path: NotRequired[str]
    wait_after_crash: NotRequired[int | float]
    services: list[ServiceConfig]

class AppLogConfig(TypedDict):
    """
    Configuration of this apps own logging.
    """
    file: NotRequired[str]
    level: NotRequired[str]
    format: NotRequired[str]
    datefmt: NotRequired[str]

class AppConfig(Config):
    log: NotRequired[AppLogConfig]
    pidfile: NotRequired[str]

class ConfigFile(pydantic.BaseModel):
    config: AppConfig

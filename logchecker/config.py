from typing import Any

import re
import os
import logging
import pydantic
import yaml

from os.path import abspath, dirname, normpath, join as joinpath

from .schema import AppConfig, Config, ConfigFile, SenderConfig
from .models import Sender, WatchedFile
from .errors import ConfigError
from .storage import store_names
from .constants import *

__all__ = (
    'SENDER_FIELDS',
    'file_path',
    'load_config',
    'validate_config',
    'validate_sender',
    'watched_files',
)

logger = logging.getLogger(__name__)

SENDER_FIELDS = ('user', 'password', 'host', 'addr')

def file_path(name: str) -> str:
    """
    Absolute path of an existing file.
    """
    path = name.strip()
    if not path:
        raise ConfigError('Empty file name')

    path = abspath(path)
    if not os.path.exists(path):
        raise ConfigError(f'{path}: File not found')

    return path

def load_config(name: str) -> AppConfig:
    path = file_path(name)

    try:
        with open(path, 'r') as configfp:
            data: Any = yaml.safe_load(configfp)
    except OSError as exc:
        raise ConfigError(f"{path}: Can't read config file: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: Can't parse config file: {exc}") from exc

    if data is None:
        data = {}
    elif not isinstance(data, dict):
        raise ConfigError(f'{path}: Root element must be a mapping but was {type(data).__name__}')

    data.setdefault('services', [])

    try:
        config = ConfigFile(config=data).config
    except pydantic.ValidationError as exc:
        raise ConfigError(f'{path}: Configuration error: {exc}') from exc

    context_dir = dirname(path)
    for service in config['services']:
        for file_cfg in service['files']:
            logfile = file_cfg['path'].strip()
            if logfile:
                file_cfg['path'] = normpath(joinpath(context_dir, logfile))

    return config

def validate_sender(sender: SenderConfig | None) -> None:
    if not sender:
        raise ConfigError('Sender is not configured')

    missing = [field for field in SENDER_FIELDS if not sender.get(field)]
    if missing:
        raise ConfigError(f'Sender fields missing or empty: {", ".join(missing)}')

    secure = sender.get('secure', DEFAULT_SECURE)
    if secure not in (None, 'STARTTLS', 'SSL/TLS'):
        raise ConfigError(f'Illegal secure option: {secure!r}')

    try:
        Sender(sender['user'], sender['password'], sender['host'], sender['addr']).address
    except ValueError as exc:
        raise ConfigError(f"Illegal sender addr {sender['addr']!r}: {exc}") from exc

def validate_config(config: Config) -> None:
    storage = config.get('storage', DEFAULT_STORAGE)
    if storage not in store_names():
        raise ConfigError(f'Unknown storage backend: {storage!r} (known: {", ".join(store_names())})')

    services = config.get('services') or []
    if services:
        validate_sender(config.get('sender'))

    service_names: set[str] = set()
    paths: set[str] = set()

    for service in services:
        name = service.get('name', '').strip()
        if not name:
            raise ConfigError('Service name may not be empty')

        if name in service_names:
            raise ConfigError(f'Duplicate service name: {name!r}')
        service_names.add(name)

        files = service.get('files') or []
        if not files:
            raise ConfigError(f'{name}: Service has no files')

        for file_cfg in files:
            path = file_cfg.get('path', '').strip()
            if not path:
                raise ConfigError(f'{name}: Empty file name')
            path = normpath(abspath(path))

            if path in paths:
                raise ConfigError(f'{name}: {path}: File is configured more than once')
            paths.add(path)

            delay = file_cfg.get('delay', 0)
            if delay <= 0:
                raise ConfigError(f'{name}: {path}: delay needs to be greater than 0 but was {delay}')

            boundary = file_cfg.get('boundary', DEFAULT_BOUNDARY)
            if boundary < 0:
                raise ConfigError(f'{name}: {path}: boundary may not be negative but was {boundary}')

            limits = file_cfg.get('limits') or []
            prev = boundary
            for limit in limits:
                if limit <= prev:
                    raise ConfigError(
                        f'{name}: {path}: limits need to be strictly ascending and greater than '
                        f'the boundary ({boundary}), got: {limits}')
                prev = limit

            pattern = file_cfg.get('pattern')
            if pattern:
                try:
                    re.compile(pattern)
                except re.error as exc:
                    raise ConfigError(f'{name}: {path}: Illegal pattern {pattern!r}: {exc}') from exc

            if not file_cfg.get('emails'):
                logger.warning(f'{name}: {path}: No emails configured, alerts will only be logged')

def watched_files(config: Config) -> list[WatchedFile]:
    watches: list[WatchedFile] = []

    for service in config.get('services') or []:
        for file_cfg in service['files']:
            pattern = file_cfg.get('pattern')
            watches.append(WatchedFile(
                service = service['name'].strip(),
                path = normpath(abspath(file_cfg['path'].strip())),
                delay = float(file_cfg['delay']),
                pattern = re.compile(pattern) if pattern else None,
                boundary = file_cfg.get('boundary', DEFAULT_BOUNDARY),
                increase = file_cfg.get('increase', DEFAULT_INCREASE),
                limits = tuple(file_cfg.get('limits') or ()),
                emails = tuple(file_cfg.get('emails') or ()),
                seek_end = file_cfg.get('seek_end', DEFAULT_SEEK_END),
                encoding = file_cfg.get('encoding', DEFAULT_ENCODING),
            ))

    return watches

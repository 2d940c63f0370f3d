from typing import Optional, Self

import logging

from os.path import abspath, normpath

from .schema import Config, ServiceConfig
from .config import validate_config, watched_files
from .storage import StateStore, create_store
from .notifiers import Notifier
from .engine import EscalationEngine
from .watcher import FileWatcher
from .scheduler import Scheduler
from .errors import ConfigError, StorageError
from .constants import *

__all__ = (
    'LogChecker',
)

class LogChecker:
    """
    A set of services whose log files are monitored, together with the state
    backend and the notifier they share.

        checker = LogChecker(load_config(path))
        checker.validate()
        checker.run()
    """
    __slots__ = (
        'name',
        'config',
        'backend',
        'notifier',
        'logger',
        '_backend_storage',
        '_scheduler',
    )

    name: str
    config: Config
    backend: Optional[StateStore]
    notifier: Optional[Notifier]
    logger: logging.Logger
    _backend_storage: Optional[str]
    _scheduler: Optional[Scheduler]

    def __init__(self, config: Optional[Config] = None, name: str = '', logger: Optional[logging.Logger] = None) -> None:
        self.name = name
        self.config = config if config is not None else { 'services': [] }
        self.backend = None
        self.notifier = None
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self._backend_storage = None
        self._scheduler = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.stop()
        self.join()
        self.close()

    def has_service(self, service: ServiceConfig, by_name: bool = True) -> bool:
        """
        With `by_name` only the service name is compared, otherwise the whole
        service configuration.
        """
        for other in self.config.get('services') or []:
            if by_name:
                if other.get('name') == service.get('name'):
                    return True
            elif other == service:
                return True
        return False

    def add_service(self, service: ServiceConfig) -> None:
        name = service.get('name', '').strip()
        if not name:
            raise ConfigError('Service name may not be empty')

        if self.has_service(service, by_name=True):
            raise ConfigError(f'Service {name!r} already exists')

        self.config.setdefault('services', []).append(service)

    def validate(self) -> StateStore:
        """
        Checks the configuration and sets up the state backend it names.
        """
        validate_config(self.config)

        storage = self.config.get('storage', DEFAULT_STORAGE)
        backend = self.backend
        if backend is None or self._backend_storage != storage:
            if backend is not None:
                backend.close()
            backend = create_store(self.config)
            self.backend = backend
            self._backend_storage = storage

        return backend

    def remove_file(self, path: str) -> bool:
        """
        Stops monitoring `path` and deletes its stored state. Services left
        without files are removed as well.
        """
        if self._scheduler is not None and self._scheduler.is_running():
            raise RuntimeError("Can't remove files while monitoring is running")

        path = normpath(abspath(path))
        removed = False
        services = self.config.get('services') or []

        for service in list(services):
            files = service['files']
            kept = [file_cfg for file_cfg in files if normpath(abspath(file_cfg['path'].strip())) != path]
            if len(kept) != len(files):
                removed = True
                if kept:
                    service['files'] = kept
                else:
                    services.remove(service)

        if removed and self.backend is not None:
            self.backend.delete(path)

        return removed

    def prune_state(self) -> list[str]:
        """
        Deletes the stored state of every file that is no longer configured
        and returns their paths.
        """
        backend = self.validate()
        watched = {watch.path for watch in watched_files(self.config)}

        removed: list[str] = []
        for path in backend.paths():
            if path not in watched:
                backend.delete(path)
                removed.append(path)
                self.logger.info(f'{path}: No longer configured, removed stored state')

        return removed

    def build_scheduler(self, notifier: Optional[Notifier] = None) -> Scheduler:
        backend = self.validate()

        try:
            self.prune_state()
        except StorageError as exc:
            self.logger.error(f'Error removing state of unconfigured files: {exc}', exc_info=exc)

        if notifier is None:
            notifier = self.notifier
            if notifier is None:
                notifier = Notifier.from_config(self.config, logger=self.logger)
        self.notifier = notifier

        engine = EscalationEngine(
            backend,
            notifier,
            notify_deescalation = self.config.get('notify_deescalation', DEFAULT_NOTIFY_DEESCALATION),
            logger = self.logger,
        )

        watchers = [
            FileWatcher(watch, backend, engine, logger=self.logger)
            for watch in watched_files(self.config)
        ]

        return Scheduler(
            watchers,
            wait_after_crash = self.config.get('wait_after_crash', DEFAULT_WAIT_AFTER_CRASH),
            logger = self.logger,
        )

    def start(self, notifier: Optional[Notifier] = None) -> None:
        if self._scheduler is not None and self._scheduler.is_running():
            raise RuntimeError('Monitoring is already running')

        scheduler = self.build_scheduler(notifier)
        self._scheduler = scheduler
        scheduler.start()

    def stop(self) -> None:
        if self._scheduler is not None:
            self._scheduler.stop()

    def join(self, timeout: Optional[float] = DEFAULT_STOP_TIMEOUT) -> bool:
        if self._scheduler is None:
            return True
        return self._scheduler.join(timeout)

    def run(self, notifier: Optional[Notifier] = None) -> None:
        scheduler = self.build_scheduler(notifier)
        self._scheduler = scheduler
        scheduler.run()

    def close(self) -> None:
        if self.backend is not None:
            self.backend.close()
            self.backend = None
            self._backend_storage = None

    def __str__(self) -> str:
        sender = dict(self.config.get('sender') or {})
        if 'password' in sender:
            sender['password'] = '***'

        services: list[str] = []
        for service in self.config.get('services') or []:
            files = [
                f"File: {file_cfg['path']}; Delay: {file_cfg['delay']}; Pattern: {file_cfg.get('pattern') or ''}; "
                f"Boundary: {file_cfg.get('boundary', DEFAULT_BOUNDARY)}; Increase: {file_cfg.get('increase', DEFAULT_INCREASE)}; "
                f"Emails: {file_cfg.get('emails') or []}; Limits: {file_cfg.get('limits') or []}"
                for file_cfg in service['files']
            ]
            services.append(f"{service['name']}\n\t" + '\n\t'.join(files))

        storage = self.config.get('storage', DEFAULT_STORAGE)
        return f'Config: {self.name}\n sender: {sender}\n storage: {storage}\n---\n' + '\n---\n'.join(services)

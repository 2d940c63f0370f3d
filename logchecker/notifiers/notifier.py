from typing import TYPE_CHECKING, Callable, Hashable, Mapping, Optional, Sequence, Self

import time
import logging
import threading

from abc import ABC, abstractmethod
from datetime import datetime
from email.message import EmailMessage
from email.policy import SMTP

from ..types import Logmails
from ..schema import Config, NotifyConfig
from ..limiter import AbstractLimiter, NullLimiter
from ..errors import ConfigError, NotifyError, TransientNotifyError
from ..constants import *

if TYPE_CHECKING:
    from ..engine import Transition

__all__ = (
    'make_message',
    'Notifier',
)

type DedupKey = tuple[tuple[str, ...], Hashable]

def make_message(sender: str, receivers: Sequence[str], subject: str, body: str) -> EmailMessage:
    msg = EmailMessage()
    msg['Subject'] = subject
    msg['From'] = sender
    msg['To'] = ', '.join(receivers)
    msg.set_content(body)

    return msg

def _quote_message(msg: EmailMessage) -> str:
    return '\n> ' + '\n> '.join(msg.as_string(policy=SMTP).split('\n'))

class Notifier(ABC):
    """
    Composes alert emails and hands them to a transport (`deliver()`).

    Transient transport errors are retried once after `retry_backoff`
    seconds. An identical message to the same recipients is only sent once
    within `dedup_interval` seconds. Transition alerts are compared by the
    transition they report, not by their text, so a tier that is reached
    again after a recovery is always notified.
    """
    __slots__ = (
        'sender',
        'subject_templ',
        'body_templ',
        'logmails',
        'dedup_interval',
        'retry_backoff',
        'limiter',
        'logger',
        'sleep',
        'clock',
        '_lock',
        '_sent',
    )

    sender: str
    subject_templ: str
    body_templ: str
    logmails: Logmails
    dedup_interval: float
    retry_backoff: float
    limiter: AbstractLimiter
    logger: logging.Logger
    sleep: Callable[[float], None]
    clock: Callable[[], float]

    _lock: threading.Lock
    _sent: dict[DedupKey, float]

    @staticmethod
    def from_config(config: Config, logger: Optional[logging.Logger] = None) -> "Notifier":
        from .smtp_notifier import SmtpNotifier
        from ..models import Sender

        sender_cfg = config.get('sender')
        if sender_cfg is None:
            raise ConfigError('No sender configured')

        sender = Sender(
            user = sender_cfg['user'],
            password = sender_cfg['password'],
            host = sender_cfg['host'],
            addr = sender_cfg['addr'],
            secure = sender_cfg.get('secure', DEFAULT_SECURE),
            timeout = sender_cfg.get('timeout', DEFAULT_SMTP_TIMEOUT),
        )

        return SmtpNotifier(
            config,
            sender,
            limiter = AbstractLimiter.from_config(config.get('limits')),
            logger = logger,
        )

    def __init__(
            self,
            config: NotifyConfig,
            sender: str,
            limiter: Optional[AbstractLimiter] = None,
            logger: Optional[logging.Logger] = None,
            sleep: Callable[[float], None] = time.sleep,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.sender = sender
        self.subject_templ = config.get('subject', DEFAULT_SUBJECT)
        self.body_templ = config.get('body', DEFAULT_BODY)
        self.logmails = config.get('logmails', DEFAULT_LOGMAILS)
        self.dedup_interval = config.get('dedup_interval', DEFAULT_DEDUP_INTERVAL)
        self.retry_backoff = config.get('retry_backoff', DEFAULT_RETRY_BACKOFF)
        self.limiter = limiter if limiter is not None else NullLimiter()
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.sleep = sleep
        self.clock = clock

        self._lock = threading.Lock()
        self._sent = {}

    @abstractmethod
    def deliver(self, msg: EmailMessage) -> Mapping[str, str]:
        """
        Sends `msg` to all of its recipients and returns the refused ones
        mapped to the server response.

        Raises `TransientNotifyError` if a retry might help and
        `PermanentNotifyError` if not.
        """
        ...

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        pass

    def get_templ_params(self, transition: 'Transition') -> dict[str, str]:
        watch = transition.watch
        count = transition.count

        if transition.recovered:
            message = f'Back to normal with {count} matching lines.'
        elif watch.increase:
            message = f'{count} matching lines, more than the boundary of {watch.boundary}.'
        else:
            message = f'Only {count} matching lines, less than the boundary of {watch.boundary}.'

        return {
            'status': transition.status,
            'message': message,
            'service': watch.service,
            'logfile': watch.path,
            'pattern': watch.pattern_str,
            'delay': f'{watch.delay:g}',
            'count': str(count),
            'boundary': str(watch.boundary),
            'direction': 'increase' if watch.increase else 'decrease',
            'limits': ', '.join(str(limit) for limit in watch.limits),
            'tier': str(transition.tier),
            'prev_tier': str(transition.previous),
            'timestamp': datetime.fromtimestamp(transition.timestamp).astimezone().isoformat(),
            'sender': self.sender,
            'receivers': ', '.join(watch.emails),
        }

    def notify_transition(self, transition: 'Transition') -> bool:
        templ_params = self.get_templ_params(transition)
        subject = self.subject_templ.format_map(templ_params)
        body = self.body_templ.format_map(templ_params)

        watch = transition.watch
        dedup_key = (watch.path, transition.previous, transition.tier, transition.timestamp)

        return self.notify(watch.emails, subject, body, dedup_key=dedup_key)

    def notify(self, recipients: Sequence[str], subject: str, body: str, dedup_key: Optional[Hashable] = None) -> bool:
        """
        Returns `True` if the message was handed to the transport (or logged
        with `logmails: instead`), `False` if it was suppressed.

        Duplicates are detected by `dedup_key` if given, otherwise by subject
        and body.
        """
        log = self.logger
        receivers = list(dict.fromkeys(recipients))

        if not receivers:
            log.warning(f'No recipients for: {subject}')
            return False

        key: DedupKey = (tuple(sorted(receivers)), dedup_key if dedup_key is not None else (subject, body))
        now = self.clock()

        with self._lock:
            last_sent = self._sent.get(key)
            if last_sent is not None and now - last_sent < self.dedup_interval:
                log.debug(f'Suppressed duplicate email: {subject}')
                return False

        if not self.limiter.check():
            log.debug(f'Email was rate limited: {subject}')
            return False

        msg = make_message(self.sender, receivers, subject, body)

        match self.logmails:
            case 'always':
                log.info('Sending email' + _quote_message(msg))

            case 'instead':
                log.info('Simulate sending email' + _quote_message(msg))
                self._remember(key)
                return True

        refused = self._deliver_with_retry(msg)
        self._remember(key)

        for receiver, response in refused.items():
            log.error(f'{receiver}: Recipient refused: {response}')

        return True

    def _remember(self, key: DedupKey) -> None:
        now = self.clock()
        with self._lock:
            self._sent[key] = now
            cutoff = now - self.dedup_interval
            for old_key in [k for k, ts in self._sent.items() if ts < cutoff]:
                del self._sent[old_key]

    def _deliver_with_retry(self, msg: EmailMessage) -> Mapping[str, str]:
        try:
            try:
                return self.deliver(msg)
            except TransientNotifyError as exc:
                self.logger.warning(f'Error sending email, retrying in {self.retry_backoff} seconds: {exc}')
                self.sleep(self.retry_backoff)

            return self.deliver(msg)

        except NotifyError as exc:
            self.handle_error(msg, exc)
            raise

    def handle_error(self, msg: EmailMessage, exc: NotifyError) -> None:
        for receiver, response in exc.refused.items():
            self.logger.error(f'{receiver}: Recipient refused: {response}')

        if self.logmails == 'onerror':
            self.logger.error('Error while sending email' + _quote_message(msg))

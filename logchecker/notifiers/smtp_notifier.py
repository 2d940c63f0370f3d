from typing import Mapping, Optional, override

import ssl
import logging
import smtplib

from email.message import EmailMessage

from ..models import Sender
from ..schema import NotifyConfig
from ..limiter import AbstractLimiter
from ..errors import PermanentNotifyError, TransientNotifyError
from ..constants import DEFAULT_SMTP_PORT
from .notifier import Notifier

__all__ = (
    'get_default_port',
    'SmtpNotifier',
)

def get_default_port(sender: Sender) -> int:
    match sender.secure:
        case 'STARTTLS':
            return 587

        case 'SSL/TLS':
            return 465

        case None:
            return DEFAULT_SMTP_PORT

        case _:
            raise ValueError(f'Illegal secure option: {sender.secure!r}')

def _decode_response(response: bytes | str) -> str:
    if isinstance(response, bytes):
        return response.decode(errors='replace')
    return response

class SmtpNotifier(Notifier):
    __slots__ = (
        'smtp_sender',
        'ssl_context',
    )

    smtp_sender: Sender
    ssl_context: Optional[ssl.SSLContext]

    def __init__(
            self,
            config: NotifyConfig,
            sender: Sender,
            limiter: Optional[AbstractLimiter] = None,
            logger: Optional[logging.Logger] = None,
            **kwargs,
    ) -> None:
        super().__init__(config, sender.user, limiter=limiter, logger=logger, **kwargs)

        self.smtp_sender = sender
        self.ssl_context = ssl.create_default_context() if sender.secure else None

    def connect(self) -> smtplib.SMTP:
        sender = self.smtp_sender
        host, port = sender.address
        if not port:
            port = get_default_port(sender)

        smtp: smtplib.SMTP
        if sender.secure == 'SSL/TLS':
            smtp = smtplib.SMTP_SSL(timeout=sender.timeout, context=self.ssl_context)
        else:
            smtp = smtplib.SMTP(timeout=sender.timeout)

        try:
            smtp.connect(host, port)

            if sender.secure == 'STARTTLS':
                smtp.starttls(context=self.ssl_context)

            if sender.user or sender.password:
                smtp.login(sender.user, sender.password)
        except Exception:
            smtp.close()
            raise

        return smtp

    @override
    def deliver(self, msg: EmailMessage) -> Mapping[str, str]:
        host = self.smtp_sender.host

        try:
            smtp = self.connect()
            with smtp:
                refused = smtp.send_message(msg)

        except smtplib.SMTPRecipientsRefused as exc:
            raise PermanentNotifyError(f'{host}: All recipients were refused', {
                receiver: f'{code} {_decode_response(response)}'
                for receiver, (code, response) in exc.recipients.items()
            }) from exc

        except (smtplib.SMTPAuthenticationError, smtplib.SMTPSenderRefused, smtplib.SMTPNotSupportedError, ssl.SSLCertVerificationError) as exc:
            raise PermanentNotifyError(f'{host}: {exc}') from exc

        except smtplib.SMTPResponseException as exc:
            if 400 <= exc.smtp_code < 500:
                raise TransientNotifyError(f'{host}: {exc.smtp_code} {_decode_response(exc.smtp_error)}') from exc
            raise PermanentNotifyError(f'{host}: {exc.smtp_code} {_decode_response(exc.smtp_error)}') from exc

        except (smtplib.SMTPException, OSError) as exc:
            raise TransientNotifyError(f'{host}: {exc}') from exc

        return {
            receiver: f'{code} {_decode_response(response)}'
            for receiver, (code, response) in refused.items()
        }

from .notifier import Notifier, make_message
from .smtp_notifier import SmtpNotifier

__all__ = (
    'Notifier',
    'SmtpNotifier',
    'make_message',
)

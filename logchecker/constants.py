from .types import Logmails, SecureOption

DEFAULT_STORAGE = 'memory'

DEFAULT_SUBJECT = '[{status}] {service}: {logfile}'
DEFAULT_BODY = '''\
Service: {service}
Logfile: {logfile}
Pattern: {pattern}

{message}

Matches in last {delay} seconds: {count}
Boundary: {boundary} ({direction})
Limits: {limits}
Level: {prev_tier} -> {tier}
'''

DEFAULT_BOUNDARY = 0
DEFAULT_INCREASE = True
DEFAULT_SEEK_END = True
DEFAULT_MAX_READ_BYTES = 16 * 1024 * 1024
DEFAULT_ENCODING = 'UTF-8'

DEFAULT_WAIT_AFTER_CRASH = 10
DEFAULT_STOP_TIMEOUT = 30

DEFAULT_SECURE: SecureOption = 'STARTTLS'
DEFAULT_SMTP_PORT = 25
DEFAULT_SMTP_TIMEOUT = 30
DEFAULT_RETRY_BACKOFF = 2.0
DEFAULT_DEDUP_INTERVAL = 60 * 60
DEFAULT_MAX_EMAILS_PER_MINUTE = 6
DEFAULT_MAX_EMAILS_PER_HOUR = 60
DEFAULT_LOGMAILS: Logmails = 'onerror'
DEFAULT_NOTIFY_DEESCALATION = False

DEFAULT_LOG_FORMAT = '[%(asctime)s] [%(process)d] %(levelname)s: %(message)s'
DEFAULT_LOG_DATEFMT = '%Y-%m-%dT%H:%M:%S%z'
DEFAULT_OUTPUT_INDENT = 2

ROOT_CONFIG_PATH = '/etc/logcheckerrc'

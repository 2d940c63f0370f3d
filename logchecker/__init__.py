"""
logchecker - Watch log files for abnormal activity and send email alerts.
"""

from .models import MonitorState, WatchedFile, Sender
from .errors import *
from .storage import StateStore, MemoryStore, SqliteStore, register_store, create_store
from .tailer import Tailer, TailResult, count_matches
from .engine import EscalationEngine, Transition, PollResult, compute_tier, should_notify
from .notifiers import Notifier, SmtpNotifier
from .watcher import FileWatcher
from .scheduler import Scheduler
from .config import file_path, load_config, validate_config, watched_files
from .checker import LogChecker

__version__ = '0.1.0'

from typing import TYPE_CHECKING, Callable, NamedTuple, Optional, Sequence

import time
import logging

from .models import MonitorState, WatchedFile
from .tailer import TailResult
from .errors import StorageError, NotifyError
from .storage import StateStore
from .constants import DEFAULT_NOTIFY_DEESCALATION

if TYPE_CHECKING:
    from .notifiers import Notifier

__all__ = (
    'Transition',
    'PollResult',
    'compute_tier',
    'should_notify',
    'EscalationEngine',
)

def compute_tier(count: int, boundary: int, limits: Sequence[int], increase: bool) -> int:
    """
    Maps the match count of one interval to an escalation tier.

    With `increase` the count itself is compared, otherwise how far the count
    fell below `boundary`. Tier 0 is normal, tier 1 means the boundary was
    crossed and each reached limit adds one more tier. Without limits only
    tier 0 exists.
    """
    if increase:
        signal = count
        if signal <= boundary:
            return 0
    else:
        signal = boundary - count
        if signal <= 0:
            return 0

    if not limits:
        return 0

    tier = 1
    for limit in limits:
        if signal < limit:
            break
        tier += 1

    return tier

def should_notify(previous: int, tier: int, notify_deescalation: bool = DEFAULT_NOTIFY_DEESCALATION) -> bool:
    if tier > previous:
        return True

    if tier == previous:
        return False

    if tier == 0:
        # recovered
        return True

    return notify_deescalation

class Transition(NamedTuple):
    watch: WatchedFile
    previous: int
    tier: int
    count: int
    timestamp: float

    @property
    def recovered(self) -> bool:
        return self.tier == 0

    @property
    def escalated(self) -> bool:
        return self.tier > self.previous

    @property
    def status(self) -> str:
        if self.recovered:
            return 'RECOVERED'

        if self.escalated:
            return 'ALERT'

        return 'DEESCALATED'

class PollResult(NamedTuple):
    path: str
    count: int
    previous: int
    tier: int
    persisted: bool
    notified: bool

class EscalationEngine:
    __slots__ = (
        'store',
        'notifier',
        'notify_deescalation',
        'logger',
        'clock',
    )

    store: StateStore
    notifier: 'Notifier'
    notify_deescalation: bool
    logger: logging.Logger
    clock: Callable[[], float]

    def __init__(
            self,
            store: StateStore,
            notifier: 'Notifier',
            notify_deescalation: bool = DEFAULT_NOTIFY_DEESCALATION,
            logger: Optional[logging.Logger] = None,
            clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.notify_deescalation = notify_deescalation
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.clock = clock

    def process(self, watch: WatchedFile, prior: MonitorState, count: int, tail: TailResult) -> PollResult:
        """
        Computes the new tier, persists it and sends a notification if the
        tier changed in a way that warrants one.

        If the state can't be written nothing is sent and the poll counts as
        not having happened.
        """
        log = self.logger
        path = watch.path
        previous = prior.level
        tier = compute_tier(count, watch.boundary, watch.limits, watch.increase)

        state = MonitorState(
            offset = tail.offset,
            last_count = count,
            level = tier,
            last_notified_at = prior.last_notified_at,
            file_id = tail.file_id,
        )

        try:
            self.store.set(path, state)
        except StorageError as exc:
            log.error(f'{path}: Error storing state, skipping this interval: {exc}', exc_info=exc)
            return PollResult(path, count, previous, previous, persisted=False, notified=False)

        log.debug(f'{path}: {count} matches, tier {previous} -> {tier}')

        if not should_notify(previous, tier, self.notify_deescalation):
            if tier != previous:
                log.info(f'{path}: Tier decreased {previous} -> {tier}, not notifying')
            return PollResult(path, count, previous, tier, persisted=True, notified=False)

        now = self.clock()
        transition = Transition(watch, previous, tier, count, now)

        try:
            sent = self.notifier.notify_transition(transition)
        except NotifyError as exc:
            log.error(f'{path}: Error sending notification for tier {previous} -> {tier}: {exc}', exc_info=exc)
            sent = False

        if sent:
            try:
                self.store.set(path, state._replace(last_notified_at=now))
            except StorageError as exc:
                log.error(f'{path}: Error storing notification time: {exc}', exc_info=exc)

        return PollResult(path, count, previous, tier, persisted=True, notified=sent)

import pytest

from logchecker.engine import EscalationEngine, compute_tier, should_notify
from logchecker.models import MonitorState
from logchecker.storage import MemoryStore
from logchecker.tailer import TailResult
from logchecker.errors import PermanentNotifyError

from tests.testutils import *

LIMITS = (10, 20)

@pytest.mark.parametrize('start_tier', [0, 1, 2, 3])
@pytest.mark.parametrize('count', [0, 1, 4, 5])
def test_at_or_below_boundary_is_normal(start_tier: int, count: int) -> None:
    store = MemoryStore()
    engine = EscalationEngine(store, RecordingNotifier())
    watch = make_watch(boundary=5, limits=LIMITS)

    result = engine.process(watch, MonitorState(level=start_tier), count, TailResult(0, '', None))

    assert result.tier == 0
    assert store.get(watch.path)[0].level == 0

@pytest.mark.parametrize('count,tier', [
    (6, 1), (9, 1),
    (10, 2), (11, 2), (19, 2),
    (20, 3), (21, 3), (1000, 3),
])
def test_tier_between_limits(count: int, tier: int) -> None:
    assert compute_tier(count, 5, LIMITS, True) == tier

def test_no_limits_stays_normal() -> None:
    assert compute_tier(100, 5, (), True) == 0
    assert compute_tier(0, 5, (), False) == 0

def test_decrease() -> None:
    # a log that should be busy going silent
    assert compute_tier(10, 5, LIMITS, False) == 0
    assert compute_tier(5, 5, LIMITS, False) == 0
    assert compute_tier(4, 5, LIMITS, False) == 1
    assert compute_tier(0, 5, LIMITS, False) == 1
    assert compute_tier(0, 15, (16,), False) == 1

def test_should_notify() -> None:
    assert should_notify(0, 1)
    assert should_notify(1, 2)
    assert should_notify(2, 0)
    assert not should_notify(0, 0)
    assert not should_notify(2, 2)
    assert not should_notify(2, 1)
    assert should_notify(2, 1, notify_deescalation=True)

def _run_counts(engine: EscalationEngine, store: MemoryStore, watch, counts: list[int]) -> list[int]:
    tiers: list[int] = []
    for index, count in enumerate(counts):
        prior, _ = store.get(watch.path)
        result = engine.process(watch, prior, count, TailResult((index + 1) * 100, '', '1:2'))
        tiers.append(result.tier)
    return tiers

def test_escalation_scenario() -> None:
    store = MemoryStore()
    notifier = RecordingNotifier()
    engine = EscalationEngine(store, notifier, clock=lambda: 1234.5)
    watch = make_watch(boundary=5, increase=True, limits=(10, 20))

    tiers = _run_counts(engine, store, watch, [3, 7, 12, 18, 2])

    assert tiers == [0, 1, 2, 2, 0]
    assert len(notifier.messages) == 3
    assert notifier.subjects[0].startswith('[ALERT]')
    assert notifier.subjects[1].startswith('[ALERT]')
    assert notifier.subjects[2].startswith('[RECOVERED]')

    state, found = store.get(watch.path)
    assert found
    assert state == MonitorState(offset=500, last_count=2, level=0, last_notified_at=1234.5, file_id='1:2')

def test_unchanged_tier_notifies_once() -> None:
    store = MemoryStore()
    notifier = RecordingNotifier()
    engine = EscalationEngine(store, notifier)
    watch = make_watch(boundary=5, limits=(10, 20))

    tiers = _run_counts(engine, store, watch, [12, 13, 15, 11, 19, 10])

    assert tiers == [2] * 6
    assert len(notifier.messages) == 1

def test_deescalation_is_recorded_but_not_notified() -> None:
    store = MemoryStore()
    notifier = RecordingNotifier()
    engine = EscalationEngine(store, notifier)
    watch = make_watch(boundary=5, limits=(10, 20))

    tiers = _run_counts(engine, store, watch, [25, 12, 7])

    assert tiers == [3, 2, 1]
    assert len(notifier.messages) == 1
    assert store.get(watch.path)[0].level == 1

def test_deescalation_notified_if_enabled() -> None:
    store = MemoryStore()
    notifier = RecordingNotifier()
    engine = EscalationEngine(store, notifier, notify_deescalation=True)
    watch = make_watch(boundary=5, limits=(10, 20))

    _run_counts(engine, store, watch, [25, 12])

    assert len(notifier.messages) == 2
    assert notifier.subjects[1].startswith('[DEESCALATED]')

def test_store_failure_skips_notification() -> None:
    store = FailingStore()
    notifier = RecordingNotifier()
    engine = EscalationEngine(store, notifier)
    watch = make_watch(boundary=5, limits=(10, 20))

    store.fail_set = True
    result = engine.process(watch, MonitorState(offset=10), 15, TailResult(200, '', None))

    assert not result.persisted
    assert not result.notified
    assert result.tier == 0
    assert notifier.messages == []
    assert store.get(watch.path) == (MonitorState(), False)

    # next poll retries with the same prior state
    store.fail_set = False
    prior, _ = store.get(watch.path)
    result = engine.process(watch, prior, 15, TailResult(300, '', None))

    assert result.persisted
    assert result.notified
    assert len(notifier.messages) == 1

def test_failed_notification_keeps_last_notified_at() -> None:
    store = MemoryStore()
    notifier = RecordingNotifier()
    notifier.failures.append(PermanentNotifyError('auth failed'))
    engine = EscalationEngine(store, notifier, clock=lambda: 99.0)
    watch = make_watch(boundary=5, limits=(10, 20))

    result = engine.process(watch, MonitorState(last_notified_at=1.0), 15, TailResult(10, '', None))

    assert result.persisted
    assert not result.notified
    state, _ = store.get(watch.path)
    assert state.level == 2
    assert state.last_notified_at == 1.0

def test_notification_body() -> None:
    store = MemoryStore()
    notifier = RecordingNotifier()
    engine = EscalationEngine(store, notifier)
    watch = make_watch(path='/var/log/nginx/error.log', boundary=5, limits=(10, 20), service='nginx')

    engine.process(watch, MonitorState(), 12, TailResult(10, '', None))

    msg = notifier.messages[0]
    assert msg['Subject'] == '[ALERT] nginx: /var/log/nginx/error.log'
    assert msg['To'] == 'ops@example.com'
    body = msg.get_content()
    assert '12 matching lines, more than the boundary of 5.' in body
    assert 'Level: 0 -> 2' in body

def test_tier_reached_again_after_recovery_is_notified() -> None:
    store = MemoryStore()
    notifier = RecordingNotifier({ 'logmails': 'never', 'dedup_interval': 3600 })
    ticks = iter(range(1000, 2000, 60))
    engine = EscalationEngine(store, notifier, clock=lambda: float(next(ticks)))
    watch = make_watch(boundary=5, limits=(10, 20))

    tiers = _run_counts(engine, store, watch, [7, 2, 7])

    assert tiers == [1, 0, 1]
    assert len(notifier.messages) == 3
    assert notifier.subjects[0] == notifier.subjects[2]
    assert notifier.messages[0].get_content() == notifier.messages[2].get_content()
    assert [subject.split(']')[0] + ']' for subject in notifier.subjects] == ['[ALERT]', '[RECOVERED]', '[ALERT]']

def test_same_transition_is_sent_once() -> None:
    from logchecker.engine import Transition

    notifier = RecordingNotifier({ 'logmails': 'never', 'dedup_interval': 3600 })
    transition = Transition(make_watch(), 0, 1, 7, 1000.0)

    assert notifier.notify_transition(transition)
    assert not notifier.notify_transition(transition)
    assert len(notifier.messages) == 1

"""
Unit tests for rsi_notifier/alerts.py – the per-subscriber alert state machine.
"""
from datetime import timedelta

import pytest

from rsi_notifier.alerts import AlertTracker, decide
from rsi_notifier.classifier import classify
from rsi_notifier.config import RsiThresholds
from rsi_notifier.signals import MarketKey, SignalState, Snapshot
from rsi_notifier.subscribers import Subscriber

KEY = MarketKey("BTC/USDT", "15m")


def _subscriber(frequency=0, chat_id="42", timezone="UTC"):
    return Subscriber(chat_id=chat_id, pairs=["BTC/USDT"], timeframe="15m",
                      timezone=timezone, alert_frequency=frequency)


def _snapshot(reading, now):
    signal, estimate = classify(reading, RsiThresholds(), KEY.timeframe, now)
    return Snapshot(symbol=KEY.symbol, timeframe=KEY.timeframe, signal=signal,
                    price=100.0, rsi=reading, observed_at=now, estimate=estimate)


def _run(readings, frequency, start, step=timedelta(minutes=1)):
    """Feed one reading per cycle and return whether each cycle alerted."""
    tracker = AlertTracker()
    subscriber = _subscriber(frequency)
    results = []
    for idx, reading in enumerate(readings):
        moment = start + step * idx
        results.append(decide(subscriber, KEY, _snapshot(reading, moment), tracker, moment) is not None)
    return results


class TestTransitions:

    def test_repeated_buy_alerts_once(self, now):
        assert _run([25, 25], frequency=0, start=now) == [True, False]

    def test_repeated_pre_buy_alerts_once_with_estimate(self, now):
        tracker = AlertTracker()
        subscriber = _subscriber()
        first = decide(subscriber, KEY, _snapshot(35, now), tracker, now)
        second = decide(subscriber, KEY, _snapshot(35, now), tracker, now)

        assert first.snapshot.signal is SignalState.PRE_BUY
        assert first.estimate.target == 30.0
        assert first.estimate.minutes == 30
        assert second is None

    @pytest.mark.parametrize("frequency", [0, 5, 600])
    def test_signal_change_always_alerts(self, frequency, now):
        assert _run([25, 75], frequency=frequency, start=now) == [True, True]

    def test_neutral_never_alerts(self, now):
        assert _run([50, 50, 45], frequency=1, start=now, step=timedelta(hours=1)) == [False] * 3

    def test_neutral_resets_so_same_signal_alerts_again(self, now):
        assert _run([25, 50, 25], frequency=0, start=now) == [True, False, True]

    def test_pre_buy_to_buy_is_a_transition(self, now):
        assert _run([35, 25, 25], frequency=0, start=now) == [True, True, False]


class TestRepeatFrequency:

    def test_repeats_once_interval_elapsed(self, now):
        # 5 minute repeat with one reading per minute
        results = _run([25] * 11, frequency=5, start=now)
        assert results == [True, False, False, False, False, True,
                           False, False, False, False, True]

    def test_zero_frequency_never_repeats(self, now):
        assert _run([25] * 5, frequency=0, start=now, step=timedelta(days=1)) == [True] + [False] * 4

    def test_interval_boundary_is_inclusive(self, now):
        tracker = AlertTracker()
        subscriber = _subscriber(frequency=15)
        decide(subscriber, KEY, _snapshot(80, now), tracker, now)

        almost = now + timedelta(minutes=15) - timedelta(seconds=1)
        assert decide(subscriber, KEY, _snapshot(80, almost), tracker, almost) is None
        exact = now + timedelta(minutes=15)
        assert decide(subscriber, KEY, _snapshot(80, exact), tracker, exact) is not None

    def test_huge_frequency_suppresses_repeats(self, now):
        # Far beyond what timedelta can hold
        assert _run([25] * 3, frequency=10**13, start=now, step=timedelta(days=365)) == [True, False, False]


class TestTracking:

    def test_entry_updated_only_when_sent(self, now):
        tracker = AlertTracker()
        subscriber = _subscriber()
        decide(subscriber, KEY, _snapshot(25, now), tracker, now)
        later = now + timedelta(minutes=3)
        decide(subscriber, KEY, _snapshot(25, later), tracker, later)

        entry = tracker.get("42", KEY)
        assert entry.last_signal is SignalState.BUY
        assert entry.last_alert_at == now

    def test_neutral_keeps_last_alert_time(self, now):
        tracker = AlertTracker()
        subscriber = _subscriber()
        decide(subscriber, KEY, _snapshot(25, now), tracker, now)
        later = now + timedelta(minutes=1)
        decide(subscriber, KEY, _snapshot(50, later), tracker, later)

        entry = tracker.get("42", KEY)
        assert entry.last_signal is SignalState.NEUTRAL
        assert entry.last_alert_at == now

    def test_first_neutral_creates_entry(self, now):
        tracker = AlertTracker()
        assert tracker.get("42", KEY) is None
        decide(_subscriber(), KEY, _snapshot(50, now), tracker, now)
        assert tracker.get("42", KEY).last_alert_at is None

    def test_last_alert_time_never_moves_back(self, now):
        tracker = AlertTracker()
        subscriber = _subscriber()
        decide(subscriber, KEY, _snapshot(25, now), tracker, now)
        earlier = now - timedelta(minutes=10)
        assert decide(subscriber, KEY, _snapshot(75, earlier), tracker, earlier) is not None
        assert tracker.get("42", KEY).last_alert_at == now

    def test_subscribers_are_tracked_separately(self, now):
        tracker = AlertTracker()
        alice, bob = _subscriber(chat_id="1"), _subscriber(chat_id="2")
        snapshot = _snapshot(25, now)

        assert decide(alice, KEY, snapshot, tracker, now) is not None
        assert decide(bob, KEY, snapshot, tracker, now) is not None
        assert decide(alice, KEY, snapshot, tracker, now) is None

    def test_timeframes_are_tracked_separately(self, now):
        tracker = AlertTracker()
        subscriber = _subscriber()
        other = MarketKey("BTC/USDT", "1h")
        snapshot = _snapshot(25, now)
        assert decide(subscriber, KEY, snapshot, tracker, now) is not None
        assert decide(subscriber, other, snapshot, tracker, now) is not None

    def test_notification_carries_subscriber_timezone(self, now):
        subscriber = _subscriber(timezone="Asia/Dhaka")
        notification = decide(subscriber, KEY, _snapshot(75, now), AlertTracker(), now)
        assert notification.chat_id == "42"
        assert notification.timezone == "Asia/Dhaka"
        assert notification.key == KEY
        assert notification.estimate is None

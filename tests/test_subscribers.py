"""
Unit tests for rsi_notifier/subscribers.py – validated records and the JSON store.
"""
import json

import pytest
from pydantic import ValidationError

from rsi_notifier.config import SubscriberDefaults
from rsi_notifier.errors import ConfigurationError
from rsi_notifier.subscribers import Subscriber, SubscriberStore


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "data" / "user_data.json"


class TestSubscriberModel:

    def test_normalizes_fields(self):
        subscriber = Subscriber(chat_id=123, pairs="btc/usdt, eth/usdt", timeframe=" 1H ")
        assert subscriber.chat_id == "123"
        assert subscriber.pairs == ["BTC/USDT", "ETH/USDT"]
        assert subscriber.timeframe == "1h"
        assert subscriber.timezone == "UTC"
        assert subscriber.alert_frequency == 0

    @pytest.mark.parametrize("field,value", [
        ("timeframe", "7m"),
        ("timezone", "Mars/Olympus"),
        ("alert_frequency", -5),
        ("pairs", []),
    ])
    def test_invalid_field_raises(self, field, value):
        kwargs = {"chat_id": "1", "pairs": ["BTC/USDT"], field: value}
        with pytest.raises(ValidationError):
            Subscriber(**kwargs)

    def test_is_immutable(self):
        subscriber = Subscriber(chat_id="1", pairs=["BTC/USDT"])
        with pytest.raises(ValidationError):
            subscriber.timeframe = "1h"


class TestSubscriberStore:

    def test_missing_file_is_empty(self, store_path):
        assert SubscriberStore(store_path).list_subscribers() == {}

    def test_subscribe_uses_defaults_and_persists(self, store_path):
        defaults = SubscriberDefaults(pairs=("SOL/USDT",), timeframe="1h", timezone="Europe/Berlin")
        store = SubscriberStore(store_path, defaults)

        assert store.subscribe(99) is True
        assert store.subscribe("99") is False

        payload = json.loads(store_path.read_text(encoding="utf-8"))
        assert payload == {
            "99": {"pairs": ["SOL/USDT"], "timeframe": "1h",
                   "timezone": "Europe/Berlin", "alert_frequency": 0},
        }
        reloaded = SubscriberStore(store_path, defaults)
        assert reloaded.get(99) == store.get("99")

    def test_updates(self, store_path):
        store = SubscriberStore(store_path)
        store.subscribe("7")
        store.update_pairs("7", "ada/usdt , xrp/usdt")
        store.update_timeframe("7", "4h")
        store.update_timezone("7", "America/New_York")
        updated = store.update_frequency("7", 30)

        assert updated.pairs == ["ADA/USDT", "XRP/USDT"]
        assert updated.timeframe == "4h"
        assert updated.timezone == "America/New_York"
        assert updated.alert_frequency == 30
        assert SubscriberStore(store_path).get("7") == updated

    def test_update_creates_missing_subscriber(self, store_path):
        store = SubscriberStore(store_path)
        subscriber = store.update_timeframe("8", "5m")
        assert subscriber.pairs == ["BTC/USDT", "ETH/USDT"]
        assert store.get("8").timeframe == "5m"

    def test_invalid_update_leaves_record_untouched(self, store_path):
        store = SubscriberStore(store_path)
        store.subscribe("7")
        with pytest.raises(ValueError):
            store.update_timeframe("7", "2w")
        with pytest.raises(ValueError):
            store.update_pairs("7", " , ")
        assert store.get("7").timeframe == "15m"

    def test_unsubscribe(self, store_path):
        store = SubscriberStore(store_path)
        store.subscribe("7")
        assert store.unsubscribe("7") is True
        assert store.unsubscribe("7") is False
        assert SubscriberStore(store_path).list_subscribers() == {}

    def test_legacy_record_without_frequency(self, store_path):
        store_path.parent.mkdir(parents=True)
        store_path.write_text(json.dumps({
            "5": {"pairs": ["BTC/USDT"], "timeframe": "15m", "timezone": "UTC"},
            "6": {"pairs": ["BTC/USDT"], "timeframe": "nonsense"},
        }), encoding="utf-8")
        subscribers = SubscriberStore(store_path).list_subscribers()
        assert list(subscribers) == ["5"]
        assert subscribers["5"].alert_frequency == 0

    def test_corrupted_file_is_ignored(self, store_path, caplog):
        store_path.parent.mkdir(parents=True)
        store_path.write_text("{not json", encoding="utf-8")
        assert SubscriberStore(store_path).list_subscribers() == {}
        assert "corrupted" in caplog.text

    def test_invalid_defaults_rejected(self, store_path):
        with pytest.raises(ConfigurationError):
            SubscriberStore(store_path, SubscriberDefaults(timezone="Nowhere/Land"))

    def test_list_is_a_copy(self, store_path):
        store = SubscriberStore(store_path)
        store.subscribe("1")
        listing = store.list_subscribers()
        listing.clear()
        assert store.get("1") is not None

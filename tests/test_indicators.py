"""
Unit tests for rsi_notifier/indicators.py – Wilder RSI and tail alignment.
"""
import pytest

from rsi_notifier.indicators import calculate_rsi, rsi


def test_series_length_drops_warmup(make_candles, choppy_closes):
    series = calculate_rsi(make_candles(choppy_closes), period=14)
    assert len(series) == len(choppy_closes) - 14


def test_series_empty_when_history_too_short(make_candles):
    # 14 closes only give 13 differences, one short of the first value
    assert calculate_rsi(make_candles([100.0 + i for i in range(14)]), period=14) == []
    assert len(calculate_rsi(make_candles([100.0 + i for i in range(15)]), period=14)) == 1


def test_extremes(make_candles, falling_closes, rising_closes):
    assert calculate_rsi(make_candles(falling_closes))[-1] == pytest.approx(0.0)
    assert calculate_rsi(make_candles(rising_closes))[-1] == pytest.approx(100.0)


def test_balanced_moves_give_fifty():
    values = [100.0 + (i % 2) for i in range(15)]
    result = rsi(values, 14)
    assert result[:14] == [None] * 14
    assert result[14] == pytest.approx(50.0)


def test_last_value_tracks_newest_candle(make_candles, falling_closes):
    # A strong final rally lifts only the newest reading
    closes = falling_closes + [falling_closes[-1] + 30.0]
    series = calculate_rsi(make_candles(closes))
    assert series[-2] == pytest.approx(0.0)
    assert series[-1] > 0.0


def test_invalid_period():
    with pytest.raises(ValueError, match="period must be positive"):
        rsi([1.0, 2.0], 0)

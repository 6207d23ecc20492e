"""
Tests for technical indicators (indicators.py).

Tests cover:
- Neutral RSI with insufficient history
- Extreme readings (no losses / no gains)
- Simple-average formulation over the trailing window
"""
import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from indicators import calculate_rsi


class TestRSIInsufficientData:
    """RSI falls back to 50 without period + 1 prices."""

    def test_empty_history(self):
        assert calculate_rsi([]) == 50.0

    def test_one_short_of_period(self):
        """14 prices give only 13 deltas."""
        prices = [float(p) for p in range(1, 15)]
        assert calculate_rsi(prices) == 50.0

    def test_custom_period(self):
        assert calculate_rsi([1.0, 2.0, 3.0], period=3) == 50.0
        assert calculate_rsi([1.0, 2.0, 3.0, 4.0], period=3) == 100.0


class TestRSIExtremes:
    """Tests for one-sided histories."""

    def test_strictly_increasing_is_100(self):
        prices = [100.0 + i for i in range(15)]
        assert calculate_rsi(prices) == 100.0

    def test_flat_prices_is_100(self):
        """No losses at all reads as 100, not a division error."""
        assert calculate_rsi([5.0] * 20) == 100.0

    def test_strictly_decreasing_is_0(self):
        prices = [100.0 - i for i in range(15)]
        assert calculate_rsi(prices) == pytest.approx(0.0)


class TestRSIFormula:
    """Tests for the simple average of gains/losses."""

    def test_equal_gains_and_losses(self):
        """7 x +1 and 7 x -1 gives RS = 1, RSI = 50."""
        prices = [10.0]
        for _ in range(7):
            prices.append(prices[-1] + 1)
        for _ in range(7):
            prices.append(prices[-1] - 1)
        assert calculate_rsi(prices) == pytest.approx(50.0)

    def test_gains_double_losses(self):
        """Gains 14, losses 7 -> RS = 2 -> RSI = 66.67."""
        prices = [50.0]
        for _ in range(7):
            prices.append(prices[-1] + 2)
        for _ in range(7):
            prices.append(prices[-1] - 1)
        assert calculate_rsi(prices) == pytest.approx(100 - 100 / 3)

    def test_only_trailing_window_counts(self):
        """A crash before the last 14 deltas does not affect the reading."""
        prices = [1000.0, 10.0] + [10.0 + i for i in range(1, 15)]
        assert len(prices) == 16
        assert calculate_rsi(prices) == 100.0

    def test_result_in_range(self):
        prices = [100, 103, 99, 101, 98, 104, 102, 97, 99, 105, 101, 100, 96, 98, 103, 99]
        rsi = calculate_rsi([float(p) for p in prices])
        assert 0.0 <= rsi <= 100.0

    def test_rejects_non_positive_period(self):
        with pytest.raises(ValueError):
            calculate_rsi([1.0, 2.0, 3.0], period=0)

import pytest

from fibo_signal_bot.indicators import (
    adx_series,
    directional_movement,
    gog_series,
    linreg_slope,
    linreg_slope_series,
    rma_next,
    sma_series,
    true_range,
)


def _hlc(closes, spread=0.5):
    return [c + spread for c in closes], [c - spread for c in closes], list(closes)


PULLBACK = [100, 102, 104, 106, 108, 110, 100, 110, 105]


def test_true_range_uses_gap_to_previous_close():
    assert true_range(105.5, 104.5, 110) == pytest.approx(5.5)
    assert true_range(102.5, 101.5, 100) == pytest.approx(2.5)
    assert true_range(11, 9, 10) == pytest.approx(2)


def test_directional_movement_keeps_only_dominant_move():
    assert directional_movement(12, 10, 11, 10) == (1, 0.0)
    assert directional_movement(11, 8, 11, 10) == (0.0, 2)
    # outside bar with equal moves counts for neither side
    assert directional_movement(12, 8, 11, 9) == (0.0, 0.0)
    # inside bar
    assert directional_movement(10, 9, 11, 8) == (0.0, 0.0)


def test_rma_next_seeds_with_first_value():
    assert rma_next(None, 7.0, 14) == 7.0
    assert rma_next(10.0, 4.0, 3) == pytest.approx(8.0)
    assert rma_next(10.0, 4.0, 1) == 4.0


def test_adx_hand_computed_pullback_sequence():
    highs, lows, closes = _hlc(PULLBACK)
    adx = adx_series(highs, lows, closes, 3)

    assert len(adx) == len(closes)
    assert adx[:3] == [None, None, None]
    assert adx[3] == pytest.approx(100.0)
    assert adx[5] == pytest.approx(100.0)
    assert adx[6] == pytest.approx(80.952381, rel=1e-6)
    assert adx[7] == pytest.approx(64.313082, rel=1e-6)
    assert adx[8] == pytest.approx(44.738742, rel=1e-6)


def test_adx_flat_series_is_zero_after_warmup():
    highs, lows, closes = _hlc([100.0] * 30)
    adx = adx_series(highs, lows, closes, 14)
    assert adx[:14] == [None] * 14
    assert all(v == 0.0 for v in adx[14:])


def test_adx_series_shorter_than_period_is_undefined():
    highs, lows, closes = _hlc([100 + i for i in range(10)])
    assert adx_series(highs, lows, closes, 14) == [None] * 10
    assert adx_series([], [], [], 14) == []


def test_linreg_slope():
    assert linreg_slope([1, 2, 3]) == pytest.approx(1.0)
    assert linreg_slope([100, 110, 105]) == pytest.approx(2.5)
    assert linreg_slope([5, 5, 5, 5]) == 0.0
    assert linreg_slope([3]) is None


def test_linreg_slope_series_warmup():
    out = linreg_slope_series([1, 3, 5, 7, 9], 3)
    assert out[:2] == [None, None]
    assert out[2:] == [pytest.approx(2.0)] * 3


def test_sma_series_needs_fully_defined_window():
    assert sma_series([None, 1.0, 2.0, 3.0], 2) == [None, None, 1.5, 2.5]
    assert sma_series([1.0, None, 2.0, 4.0], 2) == [None, None, None, 3.0]
    assert sma_series([1.0, 2.0], 1) == [1.0, 2.0]


def test_gog_series_is_lagged_difference():
    assert gog_series([None, 1.0, 2.0, 4.0], 1) == [None, None, 1.0, 2.0]
    assert gog_series([None, 1.0, 2.0, 4.0], 2) == [None, None, None, 3.0]
    assert gog_series([1.0, 2.0], 5) == [None, None]


def test_zero_slope_is_not_undefined():
    out = gog_series([0.0, 0.0, 0.0], 1)
    assert out == [None, 0.0, 0.0]

"""Tests for battery_calculator.market_price module."""

import numpy as np
import pandas as pd
import pytest

from battery_calculator.market_price import (
    BELPEX_HOURLY_2024,
    BELPEX_HOURLY_2025,
    get_market_price,
    market_prices,
    price_profile,
)


class TestPriceTables:
    def test_24_hours_each(self):
        assert len(BELPEX_HOURLY_2024) == 24
        assert len(BELPEX_HOURLY_2025) == 24

    @pytest.mark.parametrize("year, expected", [
        (2023, BELPEX_HOURLY_2024),
        (2024, BELPEX_HOURLY_2024),
        (2025, BELPEX_HOURLY_2025),
        (2026, BELPEX_HOURLY_2025),
    ])
    def test_profile_selection(self, year, expected):
        assert price_profile(year) is expected


class TestGetMarketPrice:
    def test_converts_mwh_to_kwh(self):
        assert get_market_price(pd.Timestamp("2024-03-10 19:00")) == pytest.approx(0.10641)
        assert get_market_price(pd.Timestamp("2025-03-10 19:00")) == pytest.approx(0.12332)

    def test_flat_within_hour(self):
        prices = {get_market_price(pd.Timestamp(f"2025-07-01 13:{m:02d}")) for m in (0, 15, 30, 45)}
        assert len(prices) == 1

    def test_vectorized_matches_scalar(self):
        timestamps = pd.date_range("2024-12-31 20:00", periods=24, freq="15min")
        expected = [get_market_price(ts) for ts in timestamps]
        np.testing.assert_allclose(market_prices(timestamps), expected)

    def test_vectorized_accepts_series(self):
        series = pd.Series(pd.to_datetime(["2024-01-01 00:00", "2025-01-01 00:00"]))
        np.testing.assert_allclose(market_prices(series), [0.07008, 0.08591])

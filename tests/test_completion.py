"""Tests for battery_calculator.completion module."""

import pandas as pd
import pytest

from battery_calculator.completion import (
    FALLBACK_CONSUMPTION_KWH,
    SEASON_FACTORS,
    build_hourly_fallback,
    build_profiles,
    complete_year,
    expected_slot_count,
    prepare_year,
    select_target_year,
    year_slots,
)
from battery_calculator.errors import DataQualityWarning, InsufficientDataError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_records(timestamps, consumption=0.2, injection=0.0):
    """Metering series for the given timestamps with constant or listed values."""
    timestamps = pd.DatetimeIndex(pd.to_datetime(list(timestamps)))
    n = len(timestamps)
    cons = consumption if isinstance(consumption, list) else [consumption] * n
    inj = injection if isinstance(injection, list) else [injection] * n
    return pd.DataFrame({
        "Date & Time": timestamps,
        "Consumption (kWh)": cons,
        "Injection (kWh)": inj,
        "is_imputed": False,
    })


def _value_at(df, ts, column="Consumption (kWh)"):
    row = df[df["Date & Time"] == pd.Timestamp(ts)]
    assert len(row) == 1
    return row[column].iloc[0]


# ---------------------------------------------------------------------------
# TestSlotCounts
# ---------------------------------------------------------------------------

class TestSlotCounts:
    @pytest.mark.parametrize("year, expected", [
        (2023, 35040),
        (2024, 35136),
        (2025, 35040),
        (2100, 35040),
        (2000, 35136),
    ])
    def test_expected_slot_count(self, year, expected):
        assert expected_slot_count(year) == expected

    def test_year_slots_bounds(self):
        slots = year_slots(2025)
        assert slots[0] == pd.Timestamp("2025-01-01 00:00")
        assert slots[-1] == pd.Timestamp("2025-12-31 23:45")
        assert len(slots) == 35040


# ---------------------------------------------------------------------------
# TestBuckets
# ---------------------------------------------------------------------------

class TestBuckets:
    def test_profile_bucket_average_and_count(self):
        # Two Mondays in January, same quarter hour
        df = _make_records(["2024-01-01 10:00", "2024-01-08 10:00"], consumption=[0.4, 0.6])
        profiles = build_profiles(df)
        bucket = profiles.loc[(1, 0, 10, 0)]
        assert bucket["count"] == 2
        assert bucket["avg_consumption"] == pytest.approx(0.5)

    def test_empty_profiles(self):
        profiles = build_profiles(_make_records([]))
        assert profiles.empty

    def test_hourly_fallback_has_all_slots(self):
        fallback = build_hourly_fallback(_make_records(["2024-03-05 06:30"], consumption=0.8))
        assert len(fallback) == 96
        assert fallback.loc[(6, 2), "avg_consumption"] == pytest.approx(0.8)
        assert fallback.loc[(0, 0), "avg_consumption"] == pytest.approx(FALLBACK_CONSUMPTION_KWH)
        assert fallback.loc[(0, 0), "avg_injection"] == 0.0


# ---------------------------------------------------------------------------
# TestCompleteYear
# ---------------------------------------------------------------------------

class TestCompleteYear:
    @pytest.mark.parametrize("year, expected", [(2024, 35136), (2025, 35040)])
    def test_output_length(self, year, expected):
        df = _make_records([f"{year}-02-03 12:00"])
        full, info = complete_year(df, year, silent=True)
        assert len(full) == expected
        assert info.total_count == expected
        assert full["Date & Time"].is_monotonic_increasing
        assert full["Date & Time"].is_unique

    def test_existing_records_copied_through(self):
        df = _make_records(["2025-04-01 08:00", "2025-04-01 08:15"],
                           consumption=[0.123, 0.456], injection=[0.01, 0.02])
        full, _ = complete_year(df, 2025, silent=True)
        assert _value_at(full, "2025-04-01 08:00") == 0.123
        assert _value_at(full, "2025-04-01 08:15") == 0.456
        assert _value_at(full, "2025-04-01 08:15", "Injection (kWh)") == 0.02
        assert not _value_at(full, "2025-04-01 08:00", "is_imputed")
        assert _value_at(full, "2025-04-01 08:30", "is_imputed")

    def test_counts_and_coverage(self):
        timestamps = pd.date_range("2025-01-01", periods=96 * 100, freq="15min")
        full, info = complete_year(_make_records(timestamps), 2025, silent=True)
        assert info.original_count == 9600
        assert info.imputed_count + info.original_count == info.total_count
        assert info.coverage_pct == round(9600 / 35040 * 100, 1)
        assert int(full["is_imputed"].sum()) == info.imputed_count

    def test_records_outside_year_ignored(self):
        df = _make_records(["2024-12-31 23:45", "2025-01-01 00:00"])
        full, info = complete_year(df, 2025, silent=True)
        assert info.original_count == 1
        assert full["Date & Time"].dt.year.eq(2025).all()

    def test_trusted_bucket_used(self):
        # Mondays Jan 1 and Jan 8 2024 observed; Jan 15 is a Monday too
        df = _make_records(["2024-01-01 10:00", "2024-01-08 10:00"], consumption=[0.4, 0.6])
        full, _ = complete_year(df, 2024, silent=True)
        assert _value_at(full, "2024-01-15 10:00") == pytest.approx(0.5)

    def test_untrusted_bucket_uses_seasonal_fallback(self):
        # Single observation: bucket untrusted, hour average * January factor
        df = _make_records(["2024-01-01 10:00"], consumption=0.4)
        full, _ = complete_year(df, 2024, silent=True)
        cons_factor, _ = SEASON_FACTORS[1]
        assert _value_at(full, "2024-01-08 10:00") == pytest.approx(0.4 * cons_factor)

    def test_seasonal_factor_differs_per_month(self):
        df = _make_records(["2024-01-01 10:00"], consumption=0.4, injection=0.1)
        full, _ = complete_year(df, 2024, silent=True)
        cons_factor, inj_factor = SEASON_FACTORS[7]
        assert _value_at(full, "2024-07-02 10:00") == pytest.approx(0.4 * cons_factor)
        assert _value_at(full, "2024-07-02 10:00", "Injection (kWh)") == pytest.approx(0.1 * inj_factor)

    def test_never_observed_slot_uses_default(self):
        df = _make_records(["2024-01-01 10:00"], consumption=0.4)
        full, _ = complete_year(df, 2024, silent=True)
        cons_factor, _ = SEASON_FACTORS[12]
        assert _value_at(full, "2024-12-10 03:00") == pytest.approx(
            FALLBACK_CONSUMPTION_KWH * cons_factor)
        assert _value_at(full, "2024-12-10 03:00", "Injection (kWh)") == 0.0

    def test_imputed_values_non_negative(self):
        df = _make_records(["2024-02-05 12:00", "2024-02-12 12:00"],
                           consumption=[-0.5, -0.3], injection=[-0.1, -0.1])
        full, _ = complete_year(df, 2024, silent=True)
        imputed = full[full["is_imputed"]]
        assert (imputed["Consumption (kWh)"] >= 0).all()
        assert (imputed["Injection (kWh)"] >= 0).all()


# ---------------------------------------------------------------------------
# TestYearSelection
# ---------------------------------------------------------------------------

class TestYearSelection:
    def test_most_records_wins(self):
        df = _make_records(
            list(pd.date_range("2024-06-01", periods=10, freq="15min"))
            + list(pd.date_range("2025-06-01", periods=20, freq="15min"))
        )
        assert select_target_year(df) == 2025

    def test_tie_goes_to_earliest(self):
        df = _make_records(["2024-06-01 00:00", "2025-06-01 00:00"])
        assert select_target_year(df) == 2024

    def test_years_before_min_year_ignored(self):
        df = _make_records(
            list(pd.date_range("2023-01-01", periods=500, freq="15min"))
            + ["2024-03-01 00:00"]
        )
        assert select_target_year(df) == 2024

    def test_no_qualifying_year(self):
        df = _make_records(["2022-01-01 00:00", "2023-01-01 00:00"])
        with pytest.raises(InsufficientDataError):
            select_target_year(df)


# ---------------------------------------------------------------------------
# TestPrepareYear
# ---------------------------------------------------------------------------

class TestPrepareYear:
    def test_missing_year_raises(self):
        df = _make_records(["2025-01-01 00:00"])
        with pytest.raises(InsufficientDataError):
            prepare_year(df, year=2026, silent=True)

    def test_high_coverage_used_as_is(self):
        slots = year_slots(2025)[96:]  # drop one day
        df = _make_records(slots)
        year_df, prep = prepare_year(df, silent=True)
        assert prep.year == 2025
        assert len(year_df) == len(slots)
        assert not prep.was_completed
        assert prep.warning is None

    def test_low_coverage_triggers_completion(self):
        df = _make_records(pd.date_range("2025-03-01", periods=96 * 30, freq="15min"))
        year_df, prep = prepare_year(df, silent=True)
        assert prep.was_completed
        assert len(year_df) == 35040
        assert isinstance(prep.warning, DataQualityWarning)
        assert prep.warning.coverage_pct == prep.coverage_pct
        assert prep.completion.original_count == 96 * 30

    def test_threshold_is_configurable(self):
        df = _make_records(year_slots(2025)[96:])
        _, prep = prepare_year(df, threshold_pct=100.0, silent=True)
        assert prep.was_completed
        assert prep.completion.imputed_count == 96

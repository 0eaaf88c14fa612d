"""Completion of an incomplete metering year.

Missing quarter hours are imputed from the household's own history: first
from the average of the same month, weekday, hour and quarter; when that
slot has fewer than two observations, from the all-year average of the same
hour and quarter corrected with a seasonal factor.
"""

import calendar
from dataclasses import dataclass
from typing import Optional

import pandas as pd
from rich.console import Console

from battery_calculator.errors import DataQualityWarning, InsufficientDataError
from battery_calculator.normalizer import SERIES_COLUMNS

console = Console()

SLOTS_PER_DAY = 96

# Month -> (consumption factor, injection factor).
# Consumption is higher in winter, injection (PV) higher in summer.
SEASON_FACTORS = {
    1: (1.3, 0.3),
    2: (1.2, 0.5),
    3: (1.1, 0.8),
    4: (1.0, 1.1),
    5: (0.9, 1.3),
    6: (0.8, 1.4),
    7: (0.8, 1.3),
    8: (0.8, 1.2),
    9: (0.9, 0.9),
    10: (1.0, 0.6),
    11: (1.2, 0.4),
    12: (1.3, 0.2),
}

# Used for an hour/quarter that was never observed at all
FALLBACK_CONSUMPTION_KWH = 0.1
FALLBACK_INJECTION_KWH = 0.0

MIN_TRUSTED_COUNT = 2

PROFILE_KEYS = ["month", "weekday", "hour", "quarter"]
FALLBACK_KEYS = ["hour", "quarter"]


@dataclass
class CompletionInfo:
    """Summary of a completion run."""
    original_count: int = 0
    imputed_count: int = 0
    total_count: int = 0
    coverage_pct: float = 0.0


@dataclass
class YearPreparation:
    """Outcome of selecting and (if needed) completing the simulation year."""
    year: int
    record_count: int
    coverage_pct: float
    completion: Optional[CompletionInfo] = None
    warning: Optional[DataQualityWarning] = None

    @property
    def was_completed(self) -> bool:
        return self.completion is not None


def expected_slot_count(year: int) -> int:
    """Quarter hours in a calendar year: 35,040 or 35,136 in a leap year."""
    days = 366 if calendar.isleap(year) else 365
    return days * SLOTS_PER_DAY


def year_slots(year: int) -> pd.DatetimeIndex:
    """Every quarter hour from Jan 1 00:00 up to and including Dec 31 23:45."""
    return pd.date_range(f"{year}-01-01 00:00", f"{year}-12-31 23:45", freq="15min")


def _slot_keys(timestamps) -> pd.DataFrame:
    """Profile key columns for a sequence of timestamps."""
    dt = pd.DatetimeIndex(timestamps)
    return pd.DataFrame({
        "month": dt.month,
        "weekday": dt.dayofweek,
        "hour": dt.hour,
        "quarter": dt.minute // 15,
    })


def build_profiles(df: pd.DataFrame) -> pd.DataFrame:
    """Average consumption/injection per (month, weekday, hour, quarter).

    Returns a DataFrame indexed by the four keys with columns count,
    avg_consumption and avg_injection.
    """
    if df.empty:
        return pd.DataFrame(
            columns=["count", "avg_consumption", "avg_injection"],
            index=pd.MultiIndex.from_tuples([], names=PROFILE_KEYS),
        )
    keys = _slot_keys(df["Date & Time"])
    keys["consumption"] = df["Consumption (kWh)"].to_numpy()
    keys["injection"] = df["Injection (kWh)"].to_numpy()
    return keys.groupby(PROFILE_KEYS).agg(
        count=("consumption", "size"),
        avg_consumption=("consumption", "mean"),
        avg_injection=("injection", "mean"),
    )


def build_hourly_fallback(df: pd.DataFrame) -> pd.DataFrame:
    """Average consumption/injection per (hour, quarter) over all days.

    Always has all 96 rows; never-observed slots keep the fixed defaults.
    """
    full_index = pd.MultiIndex.from_product([range(24), range(4)], names=FALLBACK_KEYS)
    fallback = pd.DataFrame({
        "avg_consumption": FALLBACK_CONSUMPTION_KWH,
        "avg_injection": FALLBACK_INJECTION_KWH,
    }, index=full_index)
    if df.empty:
        return fallback

    keys = _slot_keys(df["Date & Time"])
    keys["consumption"] = df["Consumption (kWh)"].to_numpy()
    keys["injection"] = df["Injection (kWh)"].to_numpy()
    observed = keys.groupby(FALLBACK_KEYS).agg(
        avg_consumption=("consumption", "mean"),
        avg_injection=("injection", "mean"),
    )
    fallback.update(observed)
    return fallback


def _impute(slots: pd.DatetimeIndex, profiles: pd.DataFrame,
            fallback: pd.DataFrame) -> pd.DataFrame:
    """Imputed consumption/injection for the given (missing) slots."""
    buckets = profiles.to_dict("index")
    hourly = fallback.to_dict("index")

    consumption = []
    injection = []
    for ts in slots:
        quarter = ts.minute // 15
        bucket = buckets.get((ts.month, ts.dayofweek, ts.hour, quarter))
        if bucket is not None and bucket["count"] >= MIN_TRUSTED_COUNT:
            cons = bucket["avg_consumption"]
            inj = bucket["avg_injection"]
        else:
            hour_bucket = hourly[(ts.hour, quarter)]
            cons_factor, inj_factor = SEASON_FACTORS[ts.month]
            cons = hour_bucket["avg_consumption"] * cons_factor
            inj = hour_bucket["avg_injection"] * inj_factor
        consumption.append(max(0.0, float(cons)))
        injection.append(max(0.0, float(inj)))

    return pd.DataFrame({
        "Date & Time": slots,
        "Consumption (kWh)": consumption,
        "Injection (kWh)": injection,
        "is_imputed": True,
    })


def complete_year(df: pd.DataFrame, year: int,
                  silent: bool = False) -> tuple[pd.DataFrame, CompletionInfo]:
    """Fill every missing quarter hour of `year`.

    Existing records are copied through unchanged; records outside the year
    are ignored. Returns (full_year_df, CompletionInfo).
    """
    in_year = df[df["Date & Time"].dt.year == year]
    in_year = in_year.drop_duplicates(subset="Date & Time", keep="first")

    slots = year_slots(year)
    profiles = build_profiles(in_year)
    fallback = build_hourly_fallback(in_year)

    # Hashed timestamp index for presence lookup
    existing = in_year.set_index("Date & Time")
    present = slots.isin(existing.index)

    kept = existing.loc[existing.index.isin(slots), ["Consumption (kWh)", "Injection (kWh)"]]
    kept = kept.reset_index()
    kept["is_imputed"] = False

    imputed = _impute(slots[~present], profiles, fallback)

    parts = [part for part in (kept, imputed) if not part.empty]
    if parts:
        full = pd.concat(parts, ignore_index=True)
    else:
        full = kept
    full = full.sort_values("Date & Time").reset_index(drop=True)[SERIES_COLUMNS]
    full["is_imputed"] = full["is_imputed"].astype(bool)

    total = len(full)
    original = int(present.sum())
    info = CompletionInfo(
        original_count=original,
        imputed_count=total - original,
        total_count=total,
        coverage_pct=round(original / total * 100, 1) if total else 0.0,
    )

    if not silent:
        console.print(f"\n  [bold]Year completion {year}[/bold]")
        console.print(f"  Original records: {info.original_count}")
        console.print(f"  Imputed records:  {info.imputed_count}")
        console.print(f"  Coverage: [bold]{info.coverage_pct:.1f}%[/bold]")

    return full, info


def select_target_year(df: pd.DataFrame, min_year: int = 2024) -> int:
    """Pick the year (>= min_year) with the most records; ties go to the earliest."""
    years = df["Date & Time"].dt.year
    counts = years[years >= min_year].value_counts().sort_index()
    if counts.empty:
        raise InsufficientDataError(f"No metering data from {min_year} or later found")
    return int(counts.idxmax())


def prepare_year(df: pd.DataFrame, year: int | None = None,
                 threshold_pct: float = 95.0, min_year: int = 2024,
                 silent: bool = False) -> tuple[pd.DataFrame, YearPreparation]:
    """Restrict the series to one year and complete it when coverage is too low.

    Raises InsufficientDataError when the year has no records.
    """
    if not silent:
        console.print("\n[bold cyan]Step 3: Preparing Simulation Year[/bold cyan]")

    if year is None:
        year = select_target_year(df, min_year)

    year_df = df[df["Date & Time"].dt.year == year].reset_index(drop=True)
    if year_df.empty:
        raise InsufficientDataError(f"No metering data found for {year}")

    coverage = len(year_df) / expected_slot_count(year) * 100
    prep = YearPreparation(year=year, record_count=len(year_df),
                           coverage_pct=round(coverage, 1))

    if not silent:
        console.print(f"  Year: [bold]{year}[/bold], {len(year_df)} records "
                      f"({prep.coverage_pct:.1f}% of the year)")

    if coverage >= threshold_pct:
        return year_df, prep

    prep.warning = DataQualityWarning(
        f"Only {prep.coverage_pct:.1f}% of {year} has metering data; "
        f"the remaining quarter hours were estimated from the household profile.",
        coverage_pct=prep.coverage_pct,
    )
    if not silent:
        console.print(f"  [yellow]{prep.warning}[/yellow]")

    year_df, prep.completion = complete_year(year_df, year, silent=silent)
    return year_df, prep

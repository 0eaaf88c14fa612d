"""Synthetic PV production for a Belgian residential installation.

Production follows a half-sine between sunrise and sunset, scaled by each
month's share of the annual yield and by a reproducible weather draw per day.
All randomness comes from seeded_random(), a pure function of an integer seed,
so the same timestamps always give the same production.
"""

import math

import numpy as np
import pandas as pd

# Share of annual production per month (sums to 1)
MONTHLY_PV_FACTORS = {
    1: 0.032, 2: 0.052, 3: 0.082, 4: 0.108, 5: 0.128, 6: 0.138,
    7: 0.132, 8: 0.118, 9: 0.088, 10: 0.062, 11: 0.038, 12: 0.022,
}

# (sunrise, sunset) in decimal hours
SUN_TIMES = {
    1: (8.5, 17.0), 2: (7.8, 18.0), 3: (7.0, 19.0), 4: (6.5, 20.5),
    5: (5.8, 21.2), 6: (5.3, 22.0), 7: (5.5, 21.8), 8: (6.2, 21.0),
    9: (7.0, 20.0), 10: (7.8, 18.8), 11: (8.0, 17.2), 12: (8.5, 16.5),
}

SUMMER_MONTHS = (6, 7, 8)

# (probability upper bound, base, spread) per weather class: good, partly cloudy, poor
SUMMER_WEATHER = ((0.65, 0.9, 0.15), (0.85, 0.5, 0.3), (1.0, 0.1, 0.3))
DEFAULT_WEATHER = ((0.4, 0.85, 0.15), (0.75, 0.4, 0.35), (1.0, 0.1, 0.25))


def seeded_random(seed) -> float:
    """Deterministic value in [0, 1): frac(sin(seed) * 10000)."""
    x = math.sin(seed) * 10000
    return x - math.floor(x)


def day_seed(ts: pd.Timestamp) -> int:
    """Weather seed for the day of `ts`: day-of-year + year * 1000."""
    return ts.dayofyear + ts.year * 1000


def epoch_millis(ts: pd.Timestamp) -> int:
    """Wall-clock timestamp as milliseconds since 1970-01-01 (read as UTC)."""
    return int((ts - pd.Timestamp("1970-01-01")) // pd.Timedelta(milliseconds=1))


def weather_factor(seed: int, month: int) -> float:
    """Daily weather multiplier; summer days are more often sunny."""
    classes = SUMMER_WEATHER if month in SUMMER_MONTHS else DEFAULT_WEATHER
    draw = seeded_random(seed)
    for offset, (upper, base, spread) in enumerate(classes, start=1):
        if draw < upper:
            return base + seeded_random(seed + offset) * spread
    # draw < 1.0 always matches the last class
    _, base, spread = classes[-1]
    return base + seeded_random(seed + len(classes)) * spread


def pv_production(ts: pd.Timestamp, annual_kwh: float = 10000.0) -> float:
    """Expected PV energy (kWh) in the quarter hour starting at `ts`.

    This is the shape phase only: values are roughly on the scale of
    `annual_kwh` but not normalized. Use generate_pv_year() for a year that
    sums exactly to the target.
    """
    ts = pd.Timestamp(ts)
    hour = ts.hour + ts.minute / 60
    month = ts.month

    sunrise, sunset = SUN_TIMES[month]
    if hour < sunrise or hour > sunset:
        return 0.0

    day_length = sunset - sunrise
    day_position = (hour - sunrise) / day_length
    daily_shape = math.sin(math.pi * day_position)

    daily_kwh = annual_kwh * MONTHLY_PV_FACTORS[month] / ts.days_in_month
    # Integral of the half-sine over the window, in quarter-hour slots
    intervals_per_day = day_length * 4
    base_per_interval = daily_kwh / (intervals_per_day * 2 / math.pi)

    weather = weather_factor(day_seed(ts), month)
    jitter = 0.9 + seeded_random(epoch_millis(ts)) * 0.2

    return max(0.0, daily_shape * base_per_interval * weather * jitter)


def raw_pv_series(timestamps, annual_kwh: float = 10000.0) -> np.ndarray:
    """Shape-phase production for every timestamp.

    Same values as pv_production() per timestamp, computed over whole arrays.
    The weather draw is made once per day. seeded_random() stays on math.sin.
    """
    index = pd.DatetimeIndex(timestamps)
    if len(index) == 0:
        return np.zeros(0)

    month_idx = index.month.to_numpy() - 1
    hours = index.hour.to_numpy() + index.minute.to_numpy() / 60

    sunrise = np.array([SUN_TIMES[m][0] for m in range(1, 13)])[month_idx]
    sunset = np.array([SUN_TIMES[m][1] for m in range(1, 13)])[month_idx]
    shares = np.array([MONTHLY_PV_FACTORS[m] for m in range(1, 13)])[month_idx]

    day_length = sunset - sunrise
    daylight = (hours >= sunrise) & (hours <= sunset)
    daily_shape = np.sin(np.pi * ((hours - sunrise) / day_length))

    daily_kwh = annual_kwh * shares / index.days_in_month.to_numpy()
    base_per_interval = daily_kwh / (day_length * 4 * 2 / np.pi)

    seeds = (index.dayofyear.to_numpy() + index.year.to_numpy() * 1000).tolist()
    day_weather = {}
    for seed, month in zip(seeds, (month_idx + 1).tolist()):
        if seed not in day_weather:
            day_weather[seed] = weather_factor(seed, month)
    weather = np.array([day_weather[seed] for seed in seeds])

    millis = (index - pd.Timestamp("1970-01-01")) // pd.Timedelta(milliseconds=1)
    jitter = 0.9 + np.array([seeded_random(ms) for ms in millis.tolist()]) * 0.2

    production = np.maximum(0.0, daily_shape * base_per_interval * weather * jitter)
    return np.where(daylight, production, 0.0)


def normalize_to_annual(values, annual_kwh: float) -> np.ndarray:
    """Rescale so the values sum to `annual_kwh` (unchanged if they sum to 0)."""
    values = np.asarray(values, dtype=float)
    total = values.sum()
    if total <= 0:
        return values.copy()
    return values * (annual_kwh / total)


def generate_pv_year(timestamps, annual_kwh: float = 10000.0) -> np.ndarray:
    """PV production per timestamp, normalized to the annual target."""
    return normalize_to_annual(raw_pv_series(timestamps, annual_kwh), annual_kwh)

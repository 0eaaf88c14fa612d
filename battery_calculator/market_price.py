"""Day-ahead market price lookup (BELPEX hourly averages)."""

import numpy as np
import pandas as pd

# Average day-ahead price per hour of day, €/MWh
BELPEX_HOURLY_2024 = (
    70.08, 63.71, 60.18, 56.25, 54.71, 58.85, 70.42, 84.05,
    88.18, 76.97, 64.38, 55.05, 48.90, 44.16, 44.13, 50.52,
    60.82, 78.16, 95.39, 106.41, 101.99, 91.38, 86.14, 76.85,
)

BELPEX_HOURLY_2025 = (
    85.91, 79.72, 76.85, 73.85, 73.72, 78.25, 90.09, 103.17,
    105.87, 88.30, 69.33, 56.41, 47.46, 41.21, 43.45, 54.67,
    67.27, 87.70, 109.27, 123.32, 121.36, 110.78, 102.86, 91.06,
)

PROFILE_2025_FROM_YEAR = 2025


def price_profile(year: int) -> tuple:
    """Hourly price table (€/MWh) for a calendar year."""
    return BELPEX_HOURLY_2025 if year >= PROFILE_2025_FROM_YEAR else BELPEX_HOURLY_2024


def get_market_price(ts) -> float:
    """Market price in €/kWh for the hour containing `ts`."""
    ts = pd.Timestamp(ts)
    return price_profile(ts.year)[ts.hour] / 1000


def market_prices(timestamps) -> np.ndarray:
    """Vectorized get_market_price() for a sequence of timestamps."""
    dt = pd.DatetimeIndex(timestamps)
    old = np.array(BELPEX_HOURLY_2024)[dt.hour]
    new = np.array(BELPEX_HOURLY_2025)[dt.hour]
    return np.where(dt.year >= PROFILE_2025_FROM_YEAR, new, old) / 1000

import numpy as np
import pandas as pd

from battery_calculator.market_price import market_prices
from battery_calculator.pv_model import normalize_to_annual, raw_pv_series

PROFILE_COLUMNS = [
    "Date & Time",
    "Consumption (kWh)",
    "Injection (kWh)",
    "PV (kWh)",
    "Self-consumed PV (kWh)",
    "Total Consumption (kWh)",
    "Market Price (EUR/kWh)",
    "is_imputed",
]


def build_energy_profile(year_df: pd.DataFrame, annual_pv_kwh: float = 10000.0) -> pd.DataFrame:
    """Annotate a metering year with estimated PV production and market price.

    The meter only sees what the house does not use itself, so PV production
    is estimated and the self-consumed part is added back to the consumption:
      - PV is the model value, but never less than what was injected
      - PV is rescaled so the year totals `annual_pv_kwh`
      - Self-consumed PV = max(0, PV - injection)
      - Total consumption = grid consumption + self-consumed PV
    """
    df = year_df.sort_values("Date & Time").reset_index(drop=True)
    timestamps = df["Date & Time"]
    consumption = df["Consumption (kWh)"].to_numpy(dtype=float)
    injection = df["Injection (kWh)"].to_numpy(dtype=float)

    raw_pv = raw_pv_series(timestamps, annual_pv_kwh)
    effective_pv = np.maximum(raw_pv, injection)
    pv = normalize_to_annual(effective_pv, annual_pv_kwh)

    self_consumed = np.maximum(0.0, pv - injection)

    if "is_imputed" in df.columns:
        imputed = df["is_imputed"].astype(bool).to_numpy()
    else:
        imputed = np.zeros(len(df), dtype=bool)

    return pd.DataFrame({
        "Date & Time": timestamps,
        "Consumption (kWh)": consumption,
        "Injection (kWh)": injection,
        "PV (kWh)": pv,
        "Self-consumed PV (kWh)": self_consumed,
        "Total Consumption (kWh)": consumption + self_consumed,
        "Market Price (EUR/kWh)": market_prices(timestamps),
        "is_imputed": imputed,
    })[PROFILE_COLUMNS]

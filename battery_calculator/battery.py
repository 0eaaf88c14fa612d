"""
Batterij-calculator - Battery Dispatch Policies
================================================
Two home-battery strategies evaluated over a full year of quarter hours:

  - DumbBatteryPolicy: store PV surplus, cover load from the battery, no
    price signal (fixed-price contract).
  - SmartBatteryPolicy: same physical limits, but on a dynamic contract. It
    sells stored energy when the export price is high and charges from the
    grid when the import price is negative.

The smart policy knows the whole year in advance (future deficit, price
percentile). It is a backtest of what a price-aware battery could earn, not
a controller that could run live.

Both policies consume an energy profile (see profile.build_energy_profile)
and return a SimulationResult with one row per quarter hour.
"""

import math
from dataclasses import dataclass

import numpy as np
import pandas as pd

from battery_calculator.config import BatteryConfig, FlatTariff, MarketTerms

INITIAL_SOC_FRACTION = 0.5

STEP_COLUMNS = [
    "Date & Time",
    "PV (kWh)",
    "Consumption (kWh)",
    "Charge (kWh)",
    "Discharge (kWh)",
    "SOC (kWh)",
    "Grid Import (kWh)",
    "Grid Export (kWh)",
    "Curtailed (kWh)",
    "Arbitrage (kWh)",
    "Import Price (EUR/kWh)",
    "Export Price (EUR/kWh)",
]


# === Simulation Result ===

@dataclass(frozen=True)
class SimulationResult:
    """Per-step dispatch plus yearly totals for one scenario."""
    name: str
    steps: pd.DataFrame
    total_import_kwh: float = 0.0
    total_export_kwh: float = 0.0
    total_cost: float = 0.0              # € paid for grid import
    total_revenue: float = 0.0           # € received for grid export
    arbitrage_kwh: float = 0.0           # Sold from the battery for price reasons
    avg_import_price: float = 0.0        # Realized €/kWh
    avg_export_price: float = 0.0

    @property
    def net_cost(self) -> float:
        return self.total_cost - self.total_revenue


def build_result(name: str, timestamps, columns: dict) -> SimulationResult:
    """Assemble a SimulationResult from per-step arrays.

    `columns` maps STEP_COLUMNS names (except Date & Time) to arrays; missing
    ones are filled with zeros.
    """
    n = len(timestamps)
    steps = pd.DataFrame({"Date & Time": pd.Series(timestamps).reset_index(drop=True)})
    for col in STEP_COLUMNS[1:]:
        values = columns.get(col)
        steps[col] = np.zeros(n) if values is None else np.asarray(values, dtype=float)

    grid_import = steps["Grid Import (kWh)"]
    grid_export = steps["Grid Export (kWh)"]
    total_import = float(grid_import.sum())
    total_export = float(grid_export.sum())
    total_cost = float((grid_import * steps["Import Price (EUR/kWh)"]).sum())
    total_revenue = float((grid_export * steps["Export Price (EUR/kWh)"]).sum())

    return SimulationResult(
        name=name,
        steps=steps,
        total_import_kwh=total_import,
        total_export_kwh=total_export,
        total_cost=total_cost,
        total_revenue=total_revenue,
        arbitrage_kwh=float(steps["Arbitrage (kWh)"].sum()),
        avg_import_price=total_cost / total_import if total_import > 0 else 0.0,
        avg_export_price=total_revenue / total_export if total_export > 0 else 0.0,
    )


def _profile_arrays(profile: pd.DataFrame) -> tuple[pd.Series, np.ndarray, np.ndarray]:
    """Timestamps, PV and total consumption of a profile, in time order."""
    if not profile["Date & Time"].is_monotonic_increasing:
        raise ValueError("Energy profile must be sorted by timestamp")
    return (
        profile["Date & Time"],
        profile["PV (kWh)"].to_numpy(dtype=float),
        profile["Total Consumption (kWh)"].to_numpy(dtype=float),
    )


# === Look-ahead pre-computations ===

def compute_future_deficits(consumption, pv) -> np.ndarray:
    """Energy shortfall from each step to the end of the series.

    future_deficit[t] = max(0, sum over i >= t of (consumption[i] - pv[i]))
    """
    net = np.asarray(consumption, dtype=float) - np.asarray(pv, dtype=float)
    remaining = np.cumsum(net[::-1])[::-1]
    return np.maximum(0.0, remaining)


def compute_arbitrage_threshold(market_prices, injection_cost: float,
                                default: float, percentile: float = 0.75) -> float:
    """Export price above which selling from the battery is worthwhile.

    Takes the positive export prices (market - injection cost), sorts them
    and returns the value at index floor(percentile * count). Falls back to
    `default` when no export price is positive.
    """
    export_prices = np.asarray(market_prices, dtype=float) - injection_cost
    positive = np.sort(export_prices[export_prices > 0])
    if positive.size == 0:
        return default
    return float(positive[math.floor(percentile * positive.size)])


def arbitrage_price_factor(price_export: float, margin: float) -> float:
    """Share of the sellable energy to sell: 0 at the margin, 1 from twice the margin."""
    if margin <= 0:
        return 1.0
    return max(0.0, min(1.0, (price_export - margin) / margin))


# === Policies ===

class DumbBatteryPolicy:
    """
    Self-consumption battery on a fixed-price contract.

    Usage:
        policy = DumbBatteryPolicy(BatteryConfig.from_capacity(9), FlatTariff())
        result = policy.simulate(profile)
    """

    name = "dumb"

    def __init__(self, battery: BatteryConfig, tariff: FlatTariff):
        self.battery = battery
        self.tariff = tariff

    def simulate(self, profile: pd.DataFrame) -> SimulationResult:
        timestamps, pv_values, load_values = _profile_arrays(profile)
        capacity = self.battery.capacity_kwh
        step_limit = self.battery.max_energy_per_step_kwh
        n = len(pv_values)

        charge = []
        discharge = []
        soc_trace = []
        grid_import = []
        grid_export = []

        soc = capacity * INITIAL_SOC_FRACTION
        # Step over plain floats, not numpy scalars
        for pv, load in zip(pv_values.tolist(), load_values.tolist()):
            # 1) PV straight to the house
            direct = min(pv, load)
            pv_left = pv - direct
            load_left = load - direct

            # 2) Store the surplus
            charged = min(pv_left, step_limit, capacity - soc)
            pv_left -= charged
            soc += charged

            # 3) Cover the rest of the load from the battery
            discharged = min(load_left, step_limit, soc)
            soc -= discharged
            load_left -= discharged

            soc = min(capacity, max(0.0, soc))

            charge.append(charged)
            discharge.append(discharged)
            soc_trace.append(soc)
            grid_import.append(load_left)
            grid_export.append(pv_left)

        return build_result(self.name, timestamps, {
            "PV (kWh)": pv_values,
            "Consumption (kWh)": load_values,
            "Charge (kWh)": charge,
            "Discharge (kWh)": discharge,
            "SOC (kWh)": soc_trace,
            "Grid Import (kWh)": grid_import,
            "Grid Export (kWh)": grid_export,
            "Import Price (EUR/kWh)": np.full(n, self.tariff.import_eur_per_kwh),
            "Export Price (EUR/kWh)": np.full(n, self.tariff.export_eur_per_kwh),
        })


class SmartBatteryPolicy:
    """
    Price-aware battery on a dynamic (day-ahead indexed) contract.

    Per quarter hour, in order:
      1. PV to the house
      2. PV surplus into the battery
      3. Remaining PV exported, unless the export price is negative (curtailed)
      4. Battery covers the remaining load
      5. Arbitrage: sell what is not needed for the rest of the year when the
         export price beats both the fixed margin and the 75th percentile
      6. Charge from the grid when the import price is negative, PV is not
         abundant and a future deficit exists
    """

    name = "smart"

    def __init__(self, battery: BatteryConfig, market: MarketTerms | None = None):
        self.battery = battery
        self.market = market or MarketTerms()

    def simulate(self, profile: pd.DataFrame) -> SimulationResult:
        timestamps, pv_values, load_values = _profile_arrays(profile)
        market_values = profile["Market Price (EUR/kWh)"].to_numpy(dtype=float)
        m = self.market
        capacity = self.battery.capacity_kwh
        step_limit = self.battery.max_energy_per_step_kwh

        # Full-horizon pre-scans, completed before the forward pass
        pv_abundant = pv_values.sum() > load_values.sum() * m.abundance_ratio
        future_deficits = compute_future_deficits(load_values, pv_values)
        high_price_threshold = compute_arbitrage_threshold(
            market_values, m.injection_cost_eur_per_kwh,
            default=m.arbitrage_margin_eur_per_kwh,
            percentile=m.threshold_percentile,
        )
        price_import = market_values + m.import_surcharge_eur_per_kwh
        price_export = market_values - m.injection_cost_eur_per_kwh

        charge_trace = []
        discharge_trace = []
        soc_trace = []
        grid_import = []
        grid_export = []
        curtailed_trace = []
        arbitrage_trace = []

        soc = capacity * INITIAL_SOC_FRACTION
        steps = zip(pv_values.tolist(), load_values.tolist(), price_import.tolist(),
                    price_export.tolist(), future_deficits.tolist())
        for pv, load, p_import, p_export, future_deficit in steps:
            max_charge = min(step_limit, capacity - soc)
            max_discharge = min(step_limit, soc)

            direct = min(pv, load)
            pv_left = pv - direct
            load_left = load - direct

            charge = min(pv_left, max_charge)
            pv_after_battery = pv_left - charge

            export_pv = pv_after_battery if p_export >= 0 else 0.0
            curtailed = pv_after_battery - export_pv

            discharge = 0.0
            net_import = 0.0
            if load_left > 0:
                for_house = min(load_left, max_discharge)
                discharge += for_house
                net_import = load_left - for_house

            arbitrage = 0.0
            if p_export > m.arbitrage_margin_eur_per_kwh:
                reserve = future_deficit + m.safety_margin_kwh
                headroom = max_discharge - discharge
                available = soc + charge - discharge
                sellable = min(max(0.0, available - reserve), headroom)
                if sellable > 0 and p_export > high_price_threshold:
                    arbitrage = sellable * arbitrage_price_factor(
                        p_export, m.arbitrage_margin_eur_per_kwh)
                    discharge += arbitrage

            if not pv_abundant and future_deficit > 0 and p_import < 0:
                remaining_charge = max_charge - charge
                if remaining_charge > 0 and soc < capacity * m.grid_charge_soc_limit:
                    grid_charge = min(remaining_charge, future_deficit)
                    charge += grid_charge
                    net_import += grid_charge

            soc = max(0.0, min(capacity, soc + charge - discharge))

            charge_trace.append(charge)
            discharge_trace.append(discharge)
            soc_trace.append(soc)
            grid_import.append(net_import)
            grid_export.append(export_pv + arbitrage)
            curtailed_trace.append(curtailed)
            arbitrage_trace.append(arbitrage)

        return build_result(self.name, timestamps, {
            "PV (kWh)": pv_values,
            "Consumption (kWh)": load_values,
            "Charge (kWh)": charge_trace,
            "Discharge (kWh)": discharge_trace,
            "SOC (kWh)": soc_trace,
            "Grid Import (kWh)": grid_import,
            "Grid Export (kWh)": grid_export,
            "Curtailed (kWh)": curtailed_trace,
            "Arbitrage (kWh)": arbitrage_trace,
            "Import Price (EUR/kWh)": price_import,
            "Export Price (EUR/kWh)": price_export,
        })

"""
Batterij-calculator - Scenario Comparison
==========================================
Runs the three scenarios on one energy profile and rolls them up:

  - baseline: no battery, flat tariff on the metered consumption/injection
  - dumb:     DumbBatteryPolicy on the flat tariff
  - smart:    SmartBatteryPolicy on the dynamic contract

All three are SimulationResults, so the rollups below do not care which
policy produced them: cost and revenue always come from each step's own
import/export price.
"""

import math
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import pandas as pd

from battery_calculator.battery import (
    DumbBatteryPolicy, SimulationResult, SmartBatteryPolicy, build_result,
)
from battery_calculator.config import FlatTariff, SimulationSettings, validate_settings

BASELINE = "baseline"
DUMB = "dumb"
SMART = "smart"
SCENARIOS = (BASELINE, DUMB, SMART)

SCENARIO_LABELS = {
    BASELINE: "No battery",
    DUMB: "Battery (fixed tariff)",
    SMART: "Smart battery (dynamic tariff)",
}


@dataclass(frozen=True)
class ScenarioComparison:
    """Annual comparison of the three scenarios plus monthly/daily rollups."""
    results: dict
    total_pv_kwh: float
    total_consumption_kwh: float
    avg_market_price: float
    self_consumption_pct: dict
    savings: dict                     # € per year vs. baseline, per battery scenario
    smart_vs_dumb_savings: float
    payback_years: dict
    monthly: pd.DataFrame
    daily: pd.DataFrame
    year: Optional[int] = None
    settings: SimulationSettings = field(default_factory=SimulationSettings)

    @property
    def baseline(self) -> SimulationResult:
        return self.results[BASELINE]

    @property
    def dumb(self) -> SimulationResult:
        return self.results[DUMB]

    @property
    def smart(self) -> SimulationResult:
        return self.results[SMART]


def simulate_baseline(profile: pd.DataFrame, tariff: FlatTariff) -> SimulationResult:
    """No battery: the metered consumption/injection at the flat tariff."""
    n = len(profile)
    return build_result(BASELINE, profile["Date & Time"], {
        "PV (kWh)": profile["PV (kWh)"],
        "Consumption (kWh)": profile["Total Consumption (kWh)"],
        "Grid Import (kWh)": profile["Consumption (kWh)"],
        "Grid Export (kWh)": profile["Injection (kWh)"],
        "Import Price (EUR/kWh)": np.full(n, tariff.import_eur_per_kwh),
        "Export Price (EUR/kWh)": np.full(n, tariff.export_eur_per_kwh),
    })


def self_consumption_ratio(total_pv_kwh: float, total_export_kwh: float) -> float:
    """Share of PV production used on site, in %."""
    if total_pv_kwh <= 0:
        return 0.0
    return (total_pv_kwh - total_export_kwh) / total_pv_kwh * 100


def payback_years(battery_price_eur: float, annual_savings_eur: float) -> float:
    """Years until the savings repay the battery; infinite without savings."""
    if annual_savings_eur <= 0:
        return math.inf
    return battery_price_eur / annual_savings_eur


def monthly_rollup(results: dict) -> pd.DataFrame:
    """Per month and scenario: grid volumes, cost, revenue and realized prices."""
    frames = []
    for name, result in results.items():
        steps = result.steps
        grouped = pd.DataFrame({
            "month": steps["Date & Time"].dt.strftime("%Y-%m"),
            "import_kwh": steps["Grid Import (kWh)"],
            "export_kwh": steps["Grid Export (kWh)"],
            "cost": steps["Grid Import (kWh)"] * steps["Import Price (EUR/kWh)"],
            "revenue": steps["Grid Export (kWh)"] * steps["Export Price (EUR/kWh)"],
        }).groupby("month", as_index=False).sum()
        grouped.insert(1, "scenario", name)
        frames.append(grouped)

    columns = ["month", "scenario", "import_kwh", "export_kwh", "cost", "revenue",
               "net_cost", "avg_import_price", "avg_export_price"]
    if not frames:
        return pd.DataFrame(columns=columns)

    monthly = pd.concat(frames, ignore_index=True)
    monthly["net_cost"] = monthly["cost"] - monthly["revenue"]
    monthly["avg_import_price"] = np.where(
        monthly["import_kwh"] > 0,
        monthly["cost"] / monthly["import_kwh"].where(monthly["import_kwh"] > 0, 1.0), 0.0)
    monthly["avg_export_price"] = np.where(
        monthly["export_kwh"] > 0,
        monthly["revenue"] / monthly["export_kwh"].where(monthly["export_kwh"] > 0, 1.0), 0.0)
    return monthly.sort_values(["month", "scenario"]).reset_index(drop=True)[columns]


def daily_rollup(profile: pd.DataFrame, smart: SimulationResult) -> pd.DataFrame:
    """Per day: PV, total consumption and the smart battery's grid flows."""
    daily = pd.DataFrame({
        "date": profile["Date & Time"].dt.date.to_numpy(),
        "pv_kwh": profile["PV (kWh)"].to_numpy(),
        "consumption_kwh": profile["Total Consumption (kWh)"].to_numpy(),
        "smart_import_kwh": smart.steps["Grid Import (kWh)"].to_numpy(),
        "smart_export_kwh": smart.steps["Grid Export (kWh)"].to_numpy(),
    })
    return daily.groupby("date", as_index=False).sum()


def compare_scenarios(profile: pd.DataFrame, settings: SimulationSettings | None = None,
                      year: int | None = None) -> ScenarioComparison:
    """Run baseline, dumb and smart scenarios on an energy profile."""
    settings = validate_settings(settings or SimulationSettings())

    results = {
        BASELINE: simulate_baseline(profile, settings.tariff),
        DUMB: DumbBatteryPolicy(settings.battery, settings.tariff).simulate(profile),
        SMART: SmartBatteryPolicy(settings.battery, settings.market).simulate(profile),
    }

    total_pv = float(profile["PV (kWh)"].sum())
    total_consumption = float(profile["Total Consumption (kWh)"].sum())
    avg_market_price = (float(profile["Market Price (EUR/kWh)"].mean())
                        if len(profile) else 0.0)

    self_consumption = {
        name: self_consumption_ratio(total_pv, result.total_export_kwh)
        for name, result in results.items()
    }

    baseline_cost = results[BASELINE].net_cost
    savings = {name: baseline_cost - results[name].net_cost for name in (DUMB, SMART)}
    payback = {name: payback_years(settings.battery_price_eur, savings[name])
               for name in (DUMB, SMART)}

    return ScenarioComparison(
        results=results,
        total_pv_kwh=total_pv,
        total_consumption_kwh=total_consumption,
        avg_market_price=avg_market_price,
        self_consumption_pct=self_consumption,
        savings=savings,
        smart_vs_dumb_savings=results[DUMB].net_cost - results[SMART].net_cost,
        payback_years=payback,
        monthly=monthly_rollup(results),
        daily=daily_rollup(profile, results[SMART]),
        year=year,
        settings=settings,
    )


def scenario_table(comparison: ScenarioComparison) -> pd.DataFrame:
    """One row per scenario with the headline figures."""
    rows = []
    for name in SCENARIOS:
        result = comparison.results[name]
        payback = comparison.payback_years.get(name)
        rows.append({
            "Scenario": SCENARIO_LABELS[name],
            "Grid Import (kWh)": round(result.total_import_kwh, 1),
            "Grid Export (kWh)": round(result.total_export_kwh, 1),
            "Import Cost (€)": round(result.total_cost, 2),
            "Export Revenue (€)": round(result.total_revenue, 2),
            "Net Cost (€)": round(result.net_cost, 2),
            "Avg Import (€/kWh)": round(result.avg_import_price, 4),
            "Avg Export (€/kWh)": round(result.avg_export_price, 4),
            "Self-Consumption (%)": round(comparison.self_consumption_pct[name], 1),
            "Savings (€/year)": round(comparison.savings.get(name, 0.0), 2),
            "Payback (years)": (None if payback is None
                                else (math.inf if math.isinf(payback) else round(payback, 1))),
            "Arbitrage Sold (kWh)": round(result.arbitrage_kwh, 1),
        })
    return pd.DataFrame(rows)

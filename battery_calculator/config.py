"""
Batterij-calculator - Simulation Settings
==========================================
Defines the battery, tariff and market parameters used by the dispatch
policies and the scenario comparison. Settings can be saved to and loaded
from JSON so a calculation can be repeated with the same inputs.
"""

import json
import math
import os
from dataclasses import dataclass, field, asdict

from battery_calculator.errors import InputError


# === Battery ===

@dataclass
class BatteryConfig:
    """Physical battery limits."""
    capacity_kwh: float = 9.0
    max_power_kw: float = 4.5          # Charge and discharge limit

    @classmethod
    def from_capacity(cls, capacity_kwh: float) -> "BatteryConfig":
        """Battery with a 2-hour full cycle (power = half the capacity)."""
        return cls(capacity_kwh=capacity_kwh, max_power_kw=capacity_kwh / 2)

    @property
    def max_energy_per_step_kwh(self) -> float:
        """Energy that fits through the inverter in one quarter hour."""
        return self.max_power_kw / 4


# === Tariffs ===

@dataclass
class FlatTariff:
    """Fixed-price contract used by the baseline and the flat-tariff battery."""
    import_eur_per_kwh: float = 0.36     # Afname, all-in
    export_eur_per_kwh: float = 0.02     # Injectie compensation


@dataclass
class MarketTerms:
    """Dynamic contract terms on top of the day-ahead price."""
    import_surcharge_eur_per_kwh: float = 0.14    # Grid fees, levies, supplier margin
    injection_cost_eur_per_kwh: float = 0.0115    # Deducted from the market price
    arbitrage_margin_eur_per_kwh: float = 0.05    # Minimum export price to sell from the battery
    safety_margin_kwh: float = 0.5                # Kept on top of the future deficit
    abundance_ratio: float = 1.1                  # PV/consumption above which grid charging is off
    grid_charge_soc_limit: float = 0.9            # No grid charging above this SOC fraction
    threshold_percentile: float = 0.75            # Dynamic arbitrage threshold


# === Complete settings ===

@dataclass
class SimulationSettings:
    """Everything needed to run the three scenarios for one household."""
    battery: BatteryConfig = field(default_factory=BatteryConfig)
    battery_price_eur: float = 4500.0
    annual_pv_kwh: float = 10000.0
    tariff: FlatTariff = field(default_factory=FlatTariff)
    market: MarketTerms = field(default_factory=MarketTerms)

    # Data preparation
    completion_threshold_pct: float = 95.0   # Complete the year below this coverage
    min_year: int = 2024                     # Oldest year with a price table

    def summary(self) -> str:
        """Return a human-readable summary of the settings."""
        lines = [
            f"Battery: {self.battery.capacity_kwh} kWh / {self.battery.max_power_kw} kW",
            f"Battery price: €{self.battery_price_eur:,.0f}",
            f"Annual PV production: {self.annual_pv_kwh:,.0f} kWh",
            f"Flat tariff: {self.tariff.import_eur_per_kwh} €/kWh import, "
            f"{self.tariff.export_eur_per_kwh} €/kWh export",
            f"Dynamic surcharge: +{self.market.import_surcharge_eur_per_kwh} €/kWh import, "
            f"-{self.market.injection_cost_eur_per_kwh} €/kWh export",
        ]
        return "\n".join(lines)


def validate_settings(settings: SimulationSettings) -> SimulationSettings:
    """Reject negative or non-finite values before they reach the simulation.

    A zero capacity or power is accepted: the battery then simply does nothing.
    """
    checks = {
        "battery capacity": settings.battery.capacity_kwh,
        "battery power": settings.battery.max_power_kw,
        "battery price": settings.battery_price_eur,
        "annual PV production": settings.annual_pv_kwh,
        "safety margin": settings.market.safety_margin_kwh,
        "arbitrage margin": settings.market.arbitrage_margin_eur_per_kwh,
    }
    for name, value in checks.items():
        if not isinstance(value, (int, float)) or not math.isfinite(value):
            raise InputError(f"Invalid {name}: {value!r}")
        if value < 0:
            raise InputError(f"{name.capitalize()} cannot be negative ({value})")

    for name, value in (("import tariff", settings.tariff.import_eur_per_kwh),
                        ("export tariff", settings.tariff.export_eur_per_kwh)):
        if not isinstance(value, (int, float)) or not math.isfinite(value):
            raise InputError(f"Invalid {name}: {value!r}")

    if not 0 < settings.market.threshold_percentile < 1:
        raise InputError("Threshold percentile must be between 0 and 1")
    if not 0 <= settings.market.grid_charge_soc_limit <= 1:
        raise InputError("Grid charge SOC limit must be between 0 and 1")
    if not 0 <= settings.completion_threshold_pct <= 100:
        raise InputError("Completion threshold must be a percentage")
    return settings


# === Serialization / Deserialization ===

def settings_to_dict(settings: SimulationSettings) -> dict:
    """Serialize SimulationSettings to a JSON-compatible dict."""
    return asdict(settings)


def settings_from_dict(d: dict) -> SimulationSettings:
    """Deserialize a dict (from JSON) into SimulationSettings.

    Missing keys fall back to the defaults.
    """
    defaults = SimulationSettings()
    battery_d = d.get("battery", {})
    tariff_d = d.get("tariff", {})
    market_d = d.get("market", {})

    battery = BatteryConfig(
        capacity_kwh=battery_d.get("capacity_kwh", defaults.battery.capacity_kwh),
        max_power_kw=battery_d.get("max_power_kw", defaults.battery.max_power_kw),
    )
    tariff = FlatTariff(
        import_eur_per_kwh=tariff_d.get("import_eur_per_kwh",
                                        defaults.tariff.import_eur_per_kwh),
        export_eur_per_kwh=tariff_d.get("export_eur_per_kwh",
                                        defaults.tariff.export_eur_per_kwh),
    )
    market = MarketTerms(**{
        key: market_d.get(key, value)
        for key, value in asdict(defaults.market).items()
    })

    return SimulationSettings(
        battery=battery,
        battery_price_eur=d.get("battery_price_eur", defaults.battery_price_eur),
        annual_pv_kwh=d.get("annual_pv_kwh", defaults.annual_pv_kwh),
        tariff=tariff,
        market=market,
        completion_threshold_pct=d.get("completion_threshold_pct",
                                       defaults.completion_threshold_pct),
        min_year=int(d.get("min_year", defaults.min_year)),
    )


def save_settings_json(settings: SimulationSettings, path: str):
    """Save settings to a JSON file."""
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings_to_dict(settings), f, indent=2, ensure_ascii=False)


def load_settings_json(path: str) -> SimulationSettings:
    """Load and validate settings from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        d = json.load(f)
    return validate_settings(settings_from_dict(d))

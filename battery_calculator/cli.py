import math
import os
import sys

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, FloatPrompt, Prompt
from rich.table import Table

from battery_calculator.completion import prepare_year
from battery_calculator.config import (
    BatteryConfig, FlatTariff, SimulationSettings, load_settings_json, validate_settings,
)
from battery_calculator.exporter import save_scenarios_xlsx
from battery_calculator.file_reader import clean_path, display_preview, extract_meter_rows, load_file
from battery_calculator.normalizer import normalize_meter_rows
from battery_calculator.profile import build_energy_profile
from battery_calculator.scenarios import ScenarioComparison, compare_scenarios, scenario_table

console = Console()


def prompt_file_path() -> str:
    """Prompt user for the meter export path."""
    console.print(Panel(
        "[bold]Batterij-calculator[/bold]\n"
        "Estimates what a home battery saves, based on a Fluvius quarter-hour export.",
        title="Welcome",
        border_style="cyan",
    ))
    while True:
        path = Prompt.ask("\nEnter file path (drag & drop supported)")
        path = clean_path(path)
        if os.path.isfile(path):
            return path
        console.print(f"[red]File not found: {path}[/red]")


def prompt_settings(defaults: SimulationSettings | None = None) -> SimulationSettings:
    """Ask for battery and tariff parameters, offering the defaults."""
    defaults = defaults or SimulationSettings()
    console.print("\n[bold cyan]Battery & Tariff Settings[/bold cyan]")

    capacity = FloatPrompt.ask("  Battery capacity (kWh)",
                               default=defaults.battery.capacity_kwh)
    price = FloatPrompt.ask("  Battery price (€)", default=defaults.battery_price_eur)
    annual_pv = FloatPrompt.ask("  Annual PV production (kWh)",
                                default=defaults.annual_pv_kwh)
    import_tariff = FloatPrompt.ask("  Fixed import tariff (€/kWh)",
                                    default=defaults.tariff.import_eur_per_kwh)
    export_tariff = FloatPrompt.ask("  Fixed export tariff (€/kWh)",
                                    default=defaults.tariff.export_eur_per_kwh)

    settings = SimulationSettings(
        battery=BatteryConfig.from_capacity(capacity),
        battery_price_eur=price,
        annual_pv_kwh=annual_pv,
        tariff=FlatTariff(import_eur_per_kwh=import_tariff,
                          export_eur_per_kwh=export_tariff),
        market=defaults.market,
        completion_threshold_pct=defaults.completion_threshold_pct,
        min_year=defaults.min_year,
    )
    return validate_settings(settings)


def _format_payback(years: float) -> str:
    if math.isinf(years):
        return "never"
    return f"{years:.1f} years"


def display_comparison(comparison: ScenarioComparison):
    """Print the scenario comparison as rich tables."""
    table = Table(title=f"Scenario Comparison {comparison.year or ''}".strip(),
                  show_lines=True)
    for col in ("Scenario", "Grid Import (kWh)", "Grid Export (kWh)", "Net Cost (€)",
                "Self-Consumption (%)", "Savings (€/year)", "Payback (years)"):
        table.add_column(col, justify="left" if col == "Scenario" else "right")

    for row in scenario_table(comparison).to_dict("records"):
        payback = row["Payback (years)"]
        table.add_row(
            row["Scenario"],
            f"{row['Grid Import (kWh)']:,.0f}",
            f"{row['Grid Export (kWh)']:,.0f}",
            f"€{row['Net Cost (€)']:,.2f}",
            f"{row['Self-Consumption (%)']:.1f}%",
            f"€{row['Savings (€/year)']:,.2f}",
            "-" if payback is None or math.isnan(payback) else _format_payback(payback),
        )
    console.print(table)

    smart = comparison.smart
    console.print(f"  PV production: [bold]{comparison.total_pv_kwh:,.0f} kWh[/bold], "
                  f"consumption: [bold]{comparison.total_consumption_kwh:,.0f} kWh[/bold]")
    console.print(f"  Smart battery: avg import €{smart.avg_import_price:.4f}/kWh, "
                  f"avg export €{smart.avg_export_price:.4f}/kWh, "
                  f"arbitrage sold {smart.arbitrage_kwh:,.1f} kWh")
    console.print(f"  Smart vs fixed-tariff battery: "
                  f"[bold]€{comparison.smart_vs_dumb_savings:,.2f}[/bold] per year")

    monthly = Table(title="Monthly Net Cost (€)", show_lines=False)
    monthly.add_column("Month")
    for name in comparison.results:
        monthly.add_column(name.capitalize(), justify="right")
    pivot = comparison.monthly.pivot(index="month", columns="scenario", values="net_cost")
    for month, row in pivot.iterrows():
        monthly.add_row(month, *[f"{row[name]:,.2f}" for name in comparison.results])
    console.print(monthly)


def run(file_path: str | None = None, settings_path: str | None = None):
    """Main orchestrator: load, prepare, simulate, report."""
    try:
        file_path = clean_path(file_path) if file_path else prompt_file_path()
        defaults = load_settings_json(settings_path) if settings_path else None

        raw, _ = load_file(file_path)
        display_preview(raw)
        rows = extract_meter_rows(raw)
        records = normalize_meter_rows(rows)

        settings = prompt_settings(defaults)

        year_df, prep = prepare_year(
            records,
            threshold_pct=settings.completion_threshold_pct,
            min_year=settings.min_year,
        )

        console.print("\n[bold cyan]Step 4: Simulating Scenarios[/bold cyan]")
        profile = build_energy_profile(year_df, settings.annual_pv_kwh)
        comparison = compare_scenarios(profile, settings, year=prep.year)
        display_comparison(comparison)

        if prep.warning is not None:
            console.print(f"\n  [yellow]Note: {prep.warning}[/yellow]")

        if Confirm.ask("\nSave results to XLSX?", default=True):
            base_name = os.path.splitext(os.path.basename(file_path))[0]
            output_dir = os.path.dirname(os.path.abspath(file_path))
            default_name = f"{base_name}_battery_{prep.year}.xlsx"
            out_name = Prompt.ask("  Output file name", default=default_name)
            save_scenarios_xlsx(comparison, os.path.join(output_dir, out_name))

        console.print("\n[bold green]Done![/bold green]")

    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled by user.[/yellow]")
        sys.exit(0)
    except Exception as e:
        console.print(f"\n[bold red]Error: {e}[/bold red]")
        console.print_exception(show_locals=False)
        sys.exit(1)


def main():
    """Console entry point: optional file path and settings JSON as arguments."""
    args = sys.argv[1:]
    run(
        file_path=args[0] if len(args) > 0 else None,
        settings_path=args[1] if len(args) > 1 else None,
    )

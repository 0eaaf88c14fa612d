import math
import os

import pandas as pd
from openpyxl import load_workbook
from openpyxl.styles import Font, Alignment
from openpyxl.utils import get_column_letter
from rich.console import Console

from battery_calculator.scenarios import SCENARIO_LABELS, ScenarioComparison, scenario_table

console = Console()


def _excel_safe(value):
    """Excel has no infinity: show a payback that never happens as text."""
    if isinstance(value, float) and math.isinf(value):
        return "never"
    return value


def save_scenarios_xlsx(comparison: ScenarioComparison, output_path: str,
                        include_steps: bool = False):
    """Save a scenario comparison to a formatted XLSX file.

    Sheets: Summary, Monthly Breakdown, Daily, and optionally one sheet of
    quarter-hour steps per scenario.
    """
    console.print(f"\n  Saving scenario XLSX: [bold]{os.path.basename(output_path)}[/bold]")

    summary = scenario_table(comparison)
    summary = summary.apply(lambda col: col.map(_excel_safe))

    settings = comparison.settings
    info_rows = [
        {"Metric": "Year", "Value": comparison.year if comparison.year is not None else ""},
        {"Metric": "Total PV Production (kWh)", "Value": round(comparison.total_pv_kwh, 1)},
        {"Metric": "Total Consumption (kWh)",
         "Value": round(comparison.total_consumption_kwh, 1)},
        {"Metric": "Average Market Price (€/kWh)",
         "Value": round(comparison.avg_market_price, 4)},
        {"Metric": "Battery Capacity (kWh)", "Value": settings.battery.capacity_kwh},
        {"Metric": "Battery Power (kW)", "Value": settings.battery.max_power_kw},
        {"Metric": "Battery Price (€)", "Value": settings.battery_price_eur},
        {"Metric": "Smart vs Fixed Savings (€/year)",
         "Value": round(comparison.smart_vs_dumb_savings, 2)},
    ]

    monthly = comparison.monthly.copy()
    monthly["scenario"] = monthly["scenario"].map(SCENARIO_LABELS)
    monthly = monthly.rename(columns={
        "month": "Month",
        "scenario": "Scenario",
        "import_kwh": "Grid Import (kWh)",
        "export_kwh": "Grid Export (kWh)",
        "cost": "Import Cost (€)",
        "revenue": "Export Revenue (€)",
        "net_cost": "Net Cost (€)",
        "avg_import_price": "Avg Import (€/kWh)",
        "avg_export_price": "Avg Export (€/kWh)",
    }).round(4)

    daily = comparison.daily.rename(columns={
        "date": "Date",
        "pv_kwh": "PV (kWh)",
        "consumption_kwh": "Consumption (kWh)",
        "smart_import_kwh": "Smart Import (kWh)",
        "smart_export_kwh": "Smart Export (kWh)",
    }).round(3)

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        summary.to_excel(writer, sheet_name="Summary", index=False)
        pd.DataFrame(info_rows).to_excel(writer, sheet_name="Inputs", index=False)
        monthly.to_excel(writer, sheet_name="Monthly Breakdown", index=False)
        daily.to_excel(writer, sheet_name="Daily", index=False)

        if include_steps:
            for name, result in comparison.results.items():
                steps = result.steps.copy()
                steps["Date & Time"] = steps["Date & Time"].dt.strftime("%Y-%m-%d %H:%M")
                steps.to_excel(writer, sheet_name=f"Steps {name}", index=False)

    # Format with openpyxl
    wb = load_workbook(output_path)
    header_font = Font(bold=True, size=11)
    for ws in wb.worksheets:
        for col_idx in range(1, ws.max_column + 1):
            cell = ws.cell(row=1, column=col_idx)
            cell.font = header_font
            cell.alignment = Alignment(horizontal="center")
            col_letter = get_column_letter(col_idx)
            header = str(cell.value or "")
            ws.column_dimensions[col_letter].width = 32 if header in ("Scenario", "Metric") else 18

    wb.save(output_path)
    console.print(f"  [green]Saved: {output_path}[/green]")

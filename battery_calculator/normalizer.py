import re

import pandas as pd
from rich.console import Console

console = Console()

CONSUMPTION_KEYWORDS = ("afname", "consumption")
INJECTION_KEYWORDS = ("injectie", "injection")

DATE_FORMATS = [
    "%d-%m-%Y",
    "%Y-%m-%d",
    "%d/%m/%Y",
    "%Y-%m-%d %H:%M:%S",     # Excel date cell read as text
    "%d-%m-%Y %H:%M:%S",
]

TIME_PATTERN = r"^\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*$"

SERIES_COLUMNS = ["Date & Time", "Consumption (kWh)", "Injection (kWh)", "is_imputed"]


def parse_european_number(value) -> float:
    """Parse a number string handling European format.

    Handles:
      - European: 1.234,56 → 1234.56
      - European decimal only: 0,123 → 0.123
      - US: 1,234.56 → 1234.56
      - Non-breaking spaces and trailing units (kWh)
      - Empty/blank → NaN
    """
    if isinstance(value, (int, float)):
        if pd.isna(value):
            return float("nan")
        return float(value)

    if pd.isna(value):
        return float("nan")

    value = str(value).strip()
    if not value:
        return float("nan")

    value = value.replace("\xa0", "").replace("\u202f", "").replace(" ", "")
    value = re.sub(r'[a-zA-Z%]+$', '', value).strip()

    if not value:
        return float("nan")

    if "," in value and "." in value:
        if value.rfind(",") > value.rfind("."):
            # European: 1.234,56
            value = value.replace(".", "").replace(",", ".")
        else:
            # US: 1,234.56
            value = value.replace(",", "")
    elif "," in value:
        value = value.replace(",", ".")

    try:
        return float(value)
    except ValueError:
        return float("nan")


def parse_dates(series: pd.Series) -> pd.Series:
    """Parse day-level dates, trying each known format in turn.

    Excel date cells read as text carry a midnight time ("2024-01-01 00:00:00");
    any time of day is dropped so the register time can be added separately.
    """
    text = series.astype(str).str.strip()
    dates = pd.Series(pd.NaT, index=series.index, dtype="datetime64[ns]")
    for fmt in DATE_FORMATS:
        missing = dates.isna()
        if not missing.any():
            break
        dates[missing] = pd.to_datetime(text[missing], format=fmt, errors="coerce")
    return dates.dt.normalize()


def parse_times(series: pd.Series) -> pd.Series:
    """Parse HH:MM or HH:MM:SS into an offset from midnight (NaT if invalid)."""
    parts = series.astype(str).str.extract(TIME_PATTERN)
    hours = pd.to_numeric(parts[0], errors="coerce")
    minutes = pd.to_numeric(parts[1], errors="coerce")
    valid = hours.notna() & minutes.notna() & (hours < 24) & (minutes < 60)
    offsets = pd.to_timedelta(hours * 60 + minutes, unit="min")
    return offsets.where(valid)


def classify_register(register) -> str | None:
    """Return 'consumption', 'injection' or None for a register label."""
    label = str(register).lower()
    if any(k in label for k in CONSUMPTION_KEYWORDS):
        return "consumption"
    if any(k in label for k in INJECTION_KEYWORDS):
        return "injection"
    return None


def empty_series() -> pd.DataFrame:
    """Metering series with no rows but the standard columns."""
    return pd.DataFrame({
        "Date & Time": pd.Series(dtype="datetime64[ns]"),
        "Consumption (kWh)": pd.Series(dtype=float),
        "Injection (kWh)": pd.Series(dtype=float),
        "is_imputed": pd.Series(dtype=bool),
    })


def normalize_meter_rows(rows, silent: bool = False) -> pd.DataFrame:
    """Turn register/date/time/volume rows into one record per quarter hour.

    Readings that land on the same timestamp are summed per register, so a
    consumption row and an injection row for 00:15 become a single record.
    Rows whose date or time cannot be parsed are skipped.

    Returns a DataFrame with columns:
      - Date & Time (datetime, ascending, unique)
      - Consumption (kWh)
      - Injection (kWh)
      - is_imputed (always False here)
    """
    if rows is None or len(rows) == 0:
        return empty_series()
    if not isinstance(rows, pd.DataFrame):
        rows = pd.DataFrame(list(rows))

    if not silent:
        console.print("\n[bold cyan]Step 2: Normalizing Meter Readings[/bold cyan]")

    dates = parse_dates(rows["date"])
    times = parse_times(rows["time"])
    timestamps = dates + times

    volumes = rows["volume"].apply(parse_european_number).fillna(0.0)
    kinds = rows["register"].apply(classify_register)

    frame = pd.DataFrame({
        "Date & Time": timestamps,
        "Consumption (kWh)": volumes.where(kinds == "consumption", 0.0),
        "Injection (kWh)": volumes.where(kinds == "injection", 0.0),
    })

    skipped = int(frame["Date & Time"].isna().sum())
    frame = frame.dropna(subset=["Date & Time"])
    if frame.empty:
        if not silent:
            console.print(f"  [yellow]{skipped} rows skipped, no valid timestamps[/yellow]")
        return empty_series()

    result = (
        frame.groupby("Date & Time", as_index=False, sort=True)
        [["Consumption (kWh)", "Injection (kWh)"]].sum()
    )
    result["is_imputed"] = False

    if not silent:
        if skipped > 0:
            console.print(f"  [yellow]Warning: {skipped} rows with invalid date/time skipped[/yellow]")
        console.print(f"  Normalized [bold]{len(rows) - skipped}[/bold] readings into "
                      f"[bold]{len(result)}[/bold] quarter-hour records")

    return result[SERIES_COLUMNS].reset_index(drop=True)

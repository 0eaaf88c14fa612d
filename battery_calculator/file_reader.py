import os
import chardet
import pandas as pd
from rich.console import Console
from rich.table import Table

from battery_calculator.errors import InputError

console = Console()

# Fluvius quarter-hour export header -> normalizer column
FLUVIUS_COLUMNS = {
    "Register": "register",
    "Van (datum)": "date",
    "Van (tijdstip)": "time",
    "Volume": "volume",
}


def clean_path(path: str) -> str:
    """Clean file path from drag-and-drop (strip quotes and whitespace)."""
    return path.strip().strip('"').strip("'")


def detect_encoding(file_path: str) -> str:
    """Detect file encoding using chardet."""
    with open(file_path, "rb") as f:
        raw = f.read(100_000)
    result = chardet.detect(raw)
    encoding = result["encoding"] or "utf-8"
    confidence = result["confidence"] or 0.0
    console.print(f"  Detected encoding: [bold]{encoding}[/bold] (confidence: {confidence:.0%})")
    return encoding


def detect_delimiter(file_path: str, encoding: str) -> str:
    """Detect delimiter from the header line.

    Fluvius exports use semicolons; anything else falls back to comma.
    """
    with open(file_path, "r", encoding=encoding, errors="replace") as f:
        first_line = f.readline()

    if ";" in first_line:
        console.print("  Detected delimiter: [bold]semicolon[/bold]")
        return ";"
    if "\t" in first_line:
        console.print("  Detected delimiter: [bold]tab[/bold]")
        return "\t"
    console.print("  Detected delimiter: [bold]comma[/bold]")
    return ","


def load_file(file_path: str) -> tuple[pd.DataFrame, dict]:
    """Load a CSV or XLSX export into a string DataFrame. Returns (df, metadata)."""
    file_path = clean_path(file_path)

    if not os.path.isfile(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    ext = os.path.splitext(file_path)[1].lower()
    metadata = {"file_path": file_path, "extension": ext}

    console.print("\n[bold cyan]Step 1: Loading Meter Export[/bold cyan]")
    console.print(f"  File: {os.path.basename(file_path)}")

    if ext == ".xlsx":
        console.print("  Format: Excel")
        df = pd.read_excel(file_path, header=0, dtype=str)
        metadata["encoding"] = None
        metadata["delimiter"] = None
    elif ext in (".csv", ".txt"):
        encoding = detect_encoding(file_path)
        delimiter = detect_delimiter(file_path, encoding)
        metadata["encoding"] = encoding
        metadata["delimiter"] = delimiter

        df = pd.read_csv(
            file_path,
            sep=delimiter,
            encoding=encoding,
            header=0,
            dtype=str,
            keep_default_na=False,
            quotechar='"',
        )
    else:
        raise InputError(f"Unsupported file format: {ext}")

    df.columns = [str(c).strip().strip('"').strip("'") for c in df.columns]
    df = df.fillna("")

    metadata["row_count"] = len(df)
    metadata["col_count"] = len(df.columns)

    console.print(f"  Rows: [bold]{metadata['row_count']}[/bold], Columns: [bold]{metadata['col_count']}[/bold]")

    return df, metadata


def extract_meter_rows(df: pd.DataFrame) -> pd.DataFrame:
    """Map a Fluvius export onto the register/date/time/volume row layout.

    Raises InputError when the file is empty or not a Fluvius quarter-hour export.
    """
    if df.empty:
        raise InputError("No data found in the file")

    if "Van (datum)" not in df.columns:
        raise InputError("Unknown CSV layout. Use a Fluvius quarter-hour export.")

    rows = pd.DataFrame(index=df.index)
    for source, target in FLUVIUS_COLUMNS.items():
        rows[target] = df[source] if source in df.columns else ""

    return rows.reset_index(drop=True)


def display_preview(df: pd.DataFrame, n_rows: int = 10):
    """Display first n rows as a rich table."""
    table = Table(title=f"Preview (first {min(n_rows, len(df))} rows)", show_lines=True)

    table.add_column("#", style="dim", width=5)
    for col in df.columns:
        table.add_column(str(col), overflow="fold", max_width=30)

    for i, (_, row) in enumerate(df.head(n_rows).iterrows()):
        table.add_row(str(i), *[str(v)[:30] for v in row.values])

    console.print(table)

"""Table normalization for analysed documents."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import pandas as pd

from siame.config import setup_logging
from siame.utils.parsing import clean_text, strip_accents

if TYPE_CHECKING:
    from siame.extractor.types import AnalysisTable

logger = setup_logging(__name__)


def table_headers(table: AnalysisTable) -> list[str]:
    """Return one header label per column of ``table``.

    Cells flagged as ``columnHeader`` win; otherwise the row-0 cell is used.
    Columns without any header get ``column_<index>``, and repeated labels
    get a ``_<index>`` suffix so every label is unique.

    Parameters
    ----------
    table
        Analysed table.

    Returns
    -------
    list[str]
        Whitespace-collapsed header labels, in column order.
    """
    headers: list[str] = []
    for col in range(table.column_count):
        header_cell = next(
            (c for c in table.cells if c.is_header and c.column_index == col),
            None,
        ) or table.cell_at(0, col)
        label = clean_text(header_cell.content) if header_cell else ""
        if not label:
            label = f"column_{col}"
        if label in headers:
            label = f"{label}_{col}"
        headers.append(label)
    return headers


def table_to_dataframe(table: AnalysisTable) -> pd.DataFrame:
    """Convert an analysed table into a DataFrame of stripped strings.

    Row 0 is treated as the header row and dropped from the data; missing
    cells become empty strings. The DataFrame index keeps the original row
    index so callers can fall back to it (e.g. for item numbers).

    Parameters
    ----------
    table
        Analysed table.

    Returns
    -------
    pd.DataFrame
        One row per data row (``row_index >= 1``).
    """
    headers = table_headers(table)
    rows: dict[int, list[str]] = {}

    for row in range(1, table.row_count):
        rows[row] = [""] * table.column_count

    for cell in table.cells:
        if cell.row_index < 1 or cell.row_index >= table.row_count:
            continue
        if cell.column_index >= table.column_count:
            continue
        rows[cell.row_index][cell.column_index] = (cell.content or "").strip()

    df = pd.DataFrame.from_dict(rows, orient="index", columns=headers) if rows else pd.DataFrame(columns=headers)
    logger.debug("Normalized table: %s rows, %s columns", len(df), len(df.columns))
    return df


def normalize_column_name(name: str) -> str:
    """Normalize a column label to ASCII snake_case.

    Examples
    --------
    - "PESO (Kg)" -> "peso_kg"
    - "GUÍA AÉREA Nº" -> "guia_aerea_no"
    """
    name = strip_accents(str(name)).replace("º", "o").replace("°", "o").strip()

    # Replace spaces and special chars with underscore
    name = re.sub(r"[\s\-\./]+", "_", name)

    # Remove non-alphanumeric (except underscore)
    name = re.sub(r"[^\w]", "", name, flags=re.ASCII)

    name = re.sub(r"_+", "_", name.lower())
    return name.strip("_")

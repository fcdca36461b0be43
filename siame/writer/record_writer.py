"""Record writer for parsed documents.

Naming convention for saved records (under ``DATA_DIR/processed``):
- guia_valija_24.json
- hoja_remision_5-18-A_37.json

Exports are timestamped so repeated runs never overwrite each other:
- guias_valija_20250905_142310.csv
- hojas_remision_20250905_142310.xlsx
"""

from __future__ import annotations

import json
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from siame.config import DATA_DIR, get_export_columns, setup_logging

logger = setup_logging(__name__)

RECORD_KINDS = ("guia_valija", "hoja_remision")
EXPORT_FORMATS = ("csv", "xlsx")
DEFAULT_EXPORT_NAMES = {"guia_valija": "guias_valija", "hoja_remision": "hojas_remision"}

_HR_PREFIX = re.compile(r"^\s*HR\s*N\s*[º°]\s*", re.IGNORECASE)


def _check_kind(kind: str) -> None:
    if kind not in RECORD_KINDS:
        msg = f"Unknown record kind: {kind}. Must be one of {', '.join(RECORD_KINDS)}"
        raise ValueError(msg)


def _file_safe(text: str) -> str:
    return re.sub(r"[^\w-]+", "_", text.strip()).strip("_")


def record_identifier(kind: str, record: dict[str, Any]) -> str:
    """Return the file-safe identifier of a record.

    Examples
    --------
    - guía with numero_guia "24" -> "24"
    - hoja with numero_completo "HR N°5-18-A/37" -> "5-18-A_37"
    - guía without number read from "guia rota.pdf" -> "sin_numero_guia_rota"
    - record without number or file name -> "sin_numero_<UTC timestamp>"
    """
    _check_kind(kind)
    if kind == "guia_valija":
        raw = str(record.get("numero_guia") or "")
    else:
        raw = _HR_PREFIX.sub("", str(record.get("numero_completo") or "")) or str(record.get("numero") or "")

    safe = _file_safe(raw)
    if safe:
        return safe

    stem = _file_safe(Path(str(record.get("file_name") or "")).stem)
    suffix = stem or datetime.now(UTC).strftime("%Y%m%d_%H%M%S_%f")
    return f"sin_numero_{suffix}"


def save_record(
    kind: str,
    record: dict[str, Any],
    output_dir: Path | None = None,
) -> Path:
    """Save a parsed record as JSON.

    Parameters
    ----------
    kind
        ``"guia_valija"`` or ``"hoja_remision"``.
    record
        Record dictionary (``ParsedGuiaValija.to_dict()`` and the like).
    output_dir
        Custom output directory; defaults to ``DATA_DIR/processed``.

    Returns
    -------
    Path
        Location of the written JSON file.

    Raises
    ------
    ValueError
        If ``kind`` is not a known record kind.
    """
    identifier = record_identifier(kind, record)
    save_dir = output_dir if output_dir is not None else DATA_DIR / "processed"
    save_dir.mkdir(parents=True, exist_ok=True)

    filepath = save_dir / f"{kind}_{identifier}.json"

    output = {
        "kind": kind,
        "identifier": identifier,
        "saved_at": datetime.now(UTC).isoformat(),
        "content": record,
    }

    with filepath.open("w", encoding="utf-8") as f:
        json.dump(output, f, indent=2, ensure_ascii=False, default=str)

    logger.info("Saved %s record: %s", kind, filepath)
    return filepath


def load_record_json(filepath: Path) -> dict[str, Any]:
    """Load the raw JSON (metadata and content) of a saved record."""
    with filepath.open(encoding="utf-8") as f:
        return json.load(f)  # type: ignore[no-any-return]


def load_record(
    kind: str,
    identifier: str,
    input_dir: Path | None = None,
) -> dict[str, Any]:
    """Load a saved record's content.

    Raises
    ------
    FileNotFoundError
        If no record with that identifier was saved.
    ValueError
        If ``kind`` is not a known record kind.
    """
    _check_kind(kind)
    load_dir = input_dir if input_dir is not None else DATA_DIR / "processed"
    filepath = load_dir / f"{kind}_{identifier}.json"

    if not filepath.exists():
        msg = f"Record not found: {filepath}"
        raise FileNotFoundError(msg)

    data = load_record_json(filepath)
    logger.info("Loaded %s record: %s", kind, filepath)
    return data["content"]  # type: ignore[no-any-return]


def list_saved_records(
    kind: str | None = None,
    input_dir: Path | None = None,
) -> list[dict[str, Any]]:
    """List saved record files.

    Returns
    -------
    list[dict[str, Any]]
        ``kind``, ``identifier`` and ``filepath`` per file, sorted by kind
        then identifier.
    """
    search_dir = input_dir if input_dir is not None else DATA_DIR / "processed"
    if not search_dir.exists():
        return []

    results = []
    for filepath in search_dir.glob("*.json"):
        match = re.match(rf"({'|'.join(RECORD_KINDS)})_(.+)\.json$", filepath.name)
        if not match:
            continue
        if kind is not None and match.group(1) != kind:
            continue
        results.append({"kind": match.group(1), "identifier": match.group(2), "filepath": filepath})

    results.sort(key=lambda r: (r["kind"], r["identifier"]))
    return results


def load_all_records(kind: str, input_dir: Path | None = None) -> list[dict[str, Any]]:
    """Load the content of every saved record of ``kind``."""
    _check_kind(kind)
    return [load_record_json(entry["filepath"])["content"] for entry in list_saved_records(kind, input_dir)]


def _cell_value(value: Any) -> Any:
    """Flatten a record value into something a spreadsheet cell can hold."""
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return value


def records_to_dataframe(records: list[dict[str, Any]], kind: str) -> pd.DataFrame:
    """Build the export table for ``records`` with the configured columns.

    Column order and headers follow ``export.columns`` in ``config.json``;
    missing values become empty cells.
    """
    _check_kind(kind)
    columns = get_export_columns(kind)
    rows = [[_cell_value(record.get(col["key"])) for col in columns] for record in records]
    return pd.DataFrame(rows, columns=[col["label"] for col in columns])


def export_records(
    records: list[dict[str, Any]],
    kind: str,
    fmt: str = "csv",
    output_dir: Path | None = None,
    base_name: str | None = None,
) -> Path:
    """Export records to a timestamped CSV or XLSX file.

    Parameters
    ----------
    records
        Record dictionaries of a single kind.
    kind
        ``"guia_valija"`` or ``"hoja_remision"``.
    fmt
        ``"csv"`` or ``"xlsx"``.
    output_dir
        Directory for the export; defaults to ``DATA_DIR/exports``.
    base_name
        File name prefix; defaults to ``guias_valija`` / ``hojas_remision``.

    Returns
    -------
    Path
        Location of the written file (``<base>_YYYYMMDD_HHMMSS.<fmt>``).

    Raises
    ------
    ValueError
        If there is nothing to export, or ``kind``/``fmt`` is unknown.
    """
    _check_kind(kind)
    if fmt not in EXPORT_FORMATS:
        msg = f"Unknown export format: {fmt}. Must be one of {', '.join(EXPORT_FORMATS)}"
        raise ValueError(msg)
    if not records:
        msg = f"No {kind} records to export"
        raise ValueError(msg)

    save_dir = output_dir if output_dir is not None else DATA_DIR / "exports"
    save_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
    filepath = save_dir / f"{base_name or DEFAULT_EXPORT_NAMES[kind]}_{timestamp}.{fmt}"

    df = records_to_dataframe(records, kind)
    if fmt == "csv":
        df.to_csv(filepath, index=False, encoding="utf-8")
    else:
        with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=kind, index=False)

    logger.info("Exported %s %s records to %s", len(records), kind, filepath)
    return filepath

"""Local PDF analysis with pdfplumber.

Used when the cloud analysis service is not configured. The output has the
same shape as the service's, so the parsers work unchanged, but it is much
poorer: tables come from ruling lines only and key-value pairs are guessed
from ``KEY: value`` lines.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

import pdfplumber
from pdfplumber.utils.exceptions import PdfminerException

from siame.config import setup_logging
from siame.extractor.document_intelligence import DocumentAnalysisError
from siame.extractor.types import AnalysisResult, AnalysisTable, KeyValuePair, TableCell

if TYPE_CHECKING:
    from pathlib import Path

logger = setup_logging(__name__)

LOCAL_PAIR_CONFIDENCE = 0.5

# Upper-case label (letters, spaces, º/°, dots, parentheses) then a colon
_PAIR_LINE = re.compile(r"^\s*([A-ZÁÉÍÓÚÑ][A-ZÁÉÍÓÚÑº°.()/ ]{1,60}?)\s*:\s*(.+?)\s*$")

_TABLE_SETTINGS: dict[str, Any] = {
    "vertical_strategy": "lines",
    "horizontal_strategy": "lines",
    "snap_tolerance": 3,
    "join_tolerance": 3,
}


def extract_key_value_lines(text: str) -> list[KeyValuePair]:
    """Guess key-value pairs from ``KEY: value`` lines.

    Examples
    --------
    - "PARA: EMBAJADA DEL PERÚ EN JAPÓN" -> ("PARA", "EMBAJADA DEL PERÚ EN JAPÓN")
    - "Lima, 5 de septiembre" -> no pair
    """
    pairs: list[KeyValuePair] = []
    for line in text.splitlines():
        match = _PAIR_LINE.match(line)
        if match:
            pairs.append(
                KeyValuePair(
                    key=match.group(1).strip(),
                    value=match.group(2).strip(),
                    confidence=LOCAL_PAIR_CONFIDENCE,
                ),
            )
    return pairs


def table_from_rows(rows: list[list[str | None]]) -> AnalysisTable:
    """Build an :class:`AnalysisTable` from pdfplumber rows.

    Row 0 cells are marked ``columnHeader``; ``None`` cells are skipped.
    """
    column_count = max((len(row) for row in rows), default=0)
    cells = [
        TableCell(
            row_index=row_index,
            column_index=column_index,
            content=" ".join(value.split()),
            kind="columnHeader" if row_index == 0 else "content",
        )
        for row_index, row in enumerate(rows)
        for column_index, value in enumerate(row)
        if value is not None
    ]
    return AnalysisTable(row_count=len(rows), column_count=column_count, cells=cells)


def analyze_pdf_locally(file_path: Path) -> AnalysisResult:
    """Analyse a PDF without the cloud service.

    Parameters
    ----------
    file_path : Path
        PDF to read.

    Returns
    -------
    AnalysisResult
        Page text joined as ``content``, one table per pdfplumber table in
        page order, and the ``KEY: value`` lines as pairs.

    Raises
    ------
    FileNotFoundError
        If ``file_path`` does not exist.
    DocumentAnalysisError
        If pdfplumber cannot read the file.
    """
    logger.info("Analyzing PDF locally: %s", file_path)

    if not file_path.exists():
        msg = f"PDF file not found: {file_path}"
        raise FileNotFoundError(msg)

    texts: list[str] = []
    tables: list[AnalysisTable] = []

    try:
        with pdfplumber.open(file_path) as pdf:
            page_count = len(pdf.pages)
            logger.debug("PDF has %s pages", page_count)

            for idx, page in enumerate(pdf.pages, start=1):
                text = page.extract_text() or ""
                texts.append(text)
                page_tables = page.extract_tables(table_settings=_TABLE_SETTINGS)
                tables.extend(table_from_rows(rows) for rows in page_tables if rows)
                logger.debug("Page %s: %s characters, %s tables", idx, len(text), len(page_tables))
    except PdfminerException as e:
        msg = f"Could not read PDF {file_path.name}: {e}"
        raise DocumentAnalysisError(msg) from e

    content = "\n".join(texts)
    result = AnalysisResult(
        content=content,
        tables=tables,
        key_value_pairs=extract_key_value_lines(content),
        metadata={"pageCount": page_count or 1, "title": file_path.name, "languages": [], "source": "pdfplumber"},
    )

    logger.info(
        "Local analysis: %s tables, %s key-value pairs from %s pages",
        len(result.tables),
        len(result.key_value_pairs),
        page_count,
    )
    return result

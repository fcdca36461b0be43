"""Hoja de Remisión (transmittal sheet) parser.

A transmittal sheet carries its identifier in a key such as
``"HOJA DE REMISIÓN (DAO) Nº"`` whose value is the number (``"5-18-A/37"``);
the unit acronym sits in the parentheses. The DOCUMENTO / ASUNTO / DESTINO
block is a two-row table, and the remaining fields are key-value pairs.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from siame.config import get_confidence_scores, get_extraction_specs, get_key_aliases, setup_logging
from siame.extractor.guia_valija import find_first_key_value
from siame.extractor.types import AnalysisResult, AnalysisTable, KeyValuePair, ParsedHojaRemision
from siame.utils.parsing import extract_peso, parse_fecha, strip_accents, truncate

if TYPE_CHECKING:
    from datetime import date

    from siame.transformer.source_tracker import SourceTracker

logger = setup_logging(__name__)

RECORD = "hoja_remision"
TABLE_FIELDS = ("documento", "asunto", "destino")

_HOJA_KEY_MARKER = "HOJA DE REMISION"
_SIGLA_IN_KEY = re.compile(r"\(([^)]+)\)")
_NUMERO_IN_VALUE = re.compile(r"(\d[\d\-]*[A-Za-z]?(?:\s*/\s*[\d\-]+)?)")
_HR_IN_CONTENT = re.compile(r"HR\s*N\s*[º°o]\s*(\d+[^/\n]*)", re.IGNORECASE)
_FIRST_INT = re.compile(r"(\d+)")
_LEADING_CITY = re.compile(r"^[^\W\d_]+,\s*")


def extract_from_tables(
    tables: list[AnalysisTable] | None,
    tracker: SourceTracker | None = None,
) -> dict[str, str | None]:
    """Read DOCUMENTO, ASUNTO and DESTINO from the first table.

    The table has the header cells in row 0 and the values in row 1 of the
    same column.

    Returns
    -------
    dict[str, str | None]
        Keys ``documento``, ``asunto`` and ``destino``; ``None`` for any
        column that is not present.
    """
    found: dict[str, str | None] = dict.fromkeys(TABLE_FIELDS)
    if not tables:
        return found

    table = tables[0]
    for header in table.header_cells():
        label = strip_accents(header.content or "").upper()
        for field_name in TABLE_FIELDS:
            if found[field_name] is not None or field_name.upper() not in label:
                continue
            cell = table.cell_at(1, header.column_index)
            if cell is None or cell.is_header or not cell.content.strip():
                continue
            found[field_name] = cell.content.strip()
            if tracker is not None:
                tracker.add_source(
                    field_name,
                    "table_cell",
                    f"table 0, row 1, column {header.column_index}",
                    confidence=cell.confidence if cell.confidence is not None else 1.0,
                    raw_value=cell.content,
                )

    logger.debug(
        "Table fields: DOCUMENTO=%s ASUNTO=%s DESTINO=%s",
        truncate(found["documento"]) or "No encontrado",
        truncate(found["asunto"]) or "No encontrado",
        truncate(found["destino"]) or "No encontrado",
    )
    return found


def _find_hoja_pair(pairs: list[KeyValuePair]) -> KeyValuePair | None:
    """Return the pair whose key announces the transmittal sheet number."""
    for pair in pairs:
        if _HOJA_KEY_MARKER in strip_accents(pair.key or "").upper():
            return pair
    return None


def extract_numero_hoja(
    pairs: list[KeyValuePair],
    content: str | None,
    tracker: SourceTracker | None = None,
) -> tuple[str, int, str | None]:
    """Extract the full number, the leading integer and the unit acronym.

    Parameters
    ----------
    pairs
        Key-value pairs from the analysis result.
    content
        Raw document text, searched for ``HR Nº...`` when no pair is found.
    tracker
        Optional provenance tracker.

    Returns
    -------
    tuple[str, int, str | None]
        ``(numero_completo, numero, sigla_unidad)``; for example
        ``("HR N°5-18-A/37", 5, "DAO")``. ``sigla_unidad`` is ``None`` when
        the key carries no parenthesised acronym.
    """
    numero_completo = ""
    numero = 0
    sigla: str | None = None

    hoja_pair = _find_hoja_pair(pairs)
    if hoja_pair is not None:
        logger.debug("Hoja de Remisión pair: key=%r value=%r", hoja_pair.key, hoja_pair.value)

        sigla_match = _SIGLA_IN_KEY.search(hoja_pair.key)
        if sigla_match and sigla_match.group(1).strip():
            sigla = sigla_match.group(1).strip().upper()
            if tracker is not None:
                tracker.add_source("sigla_unidad", "key_value", f"key '{hoja_pair.key}'", raw_value=hoja_pair.key)

        numero_match = _NUMERO_IN_VALUE.search(hoja_pair.value or "")
        if numero_match:
            cleaned = re.sub(r"\s+", "", numero_match.group(1))
            numero_completo = f"HR N°{cleaned}"
            if tracker is not None:
                tracker.add_source(
                    "numero_completo",
                    "key_value",
                    f"key '{hoja_pair.key}'",
                    confidence=hoja_pair.confidence if hoja_pair.confidence is not None else 1.0,
                    raw_value=hoja_pair.value,
                )

    if not numero_completo and content:
        content_match = _HR_IN_CONTENT.search(content)
        if content_match:
            numero_completo = f"HR N°{content_match.group(1).strip()}"
            if tracker is not None:
                tracker.add_source("numero_completo", "content", "HR Nº pattern", raw_value=content_match.group(0))

    first_int = _FIRST_INT.search(numero_completo)
    if first_int:
        numero = int(first_int.group(1))

    return numero_completo, numero, sigla


def extract_fecha(
    pairs: list[KeyValuePair],
    tracker: SourceTracker | None = None,
) -> date | None:
    """Extract the issue date, dropping a leading city (``"Lima, 5 de ..."``)."""
    fecha_str = find_first_key_value(
        pairs,
        get_key_aliases(RECORD, "fecha"),
        field_name="fecha",
        tracker=tracker,
    )
    if not fecha_str:
        return None

    fecha = parse_fecha(_LEADING_CITY.sub("", fecha_str.strip()))
    if fecha is None:
        logger.warning("Unparseable FECHA: %s", fecha_str)
    return fecha


def _confidence(
    parsed: ParsedHojaRemision,
    has_hoja_pair: bool,
    has_table_data: bool,
) -> dict[str, float]:
    """Score each field by how it was obtained (0 when absent)."""
    scores = get_confidence_scores(RECORD)

    def score(present: object, key: str) -> float:
        return float(scores.get(key, 0.0)) if present else 0.0

    confidence = {
        "numero_completo": score(parsed.numero_completo, "numero_completo"),
        "numero": score(parsed.numero > 0, "numero"),
        "sigla_unidad": float(
            scores.get("sigla_unidad", 0.8) if has_hoja_pair else scores.get("sigla_unidad_default", 0.5),
        ),
        "fecha": score(parsed.fecha, "fecha"),
        "para": score(parsed.para, "para"),
        "remitente": score(parsed.remitente, "remitente"),
        "referencia": score(parsed.referencia, "referencia"),
        "peso": score(parsed.peso, "peso"),
    }
    table_key = "table_field" if has_table_data else "pair_field"
    for field_name in TABLE_FIELDS:
        confidence[field_name] = score(getattr(parsed, field_name), table_key)
    return confidence


def parse_hoja_remision(
    result: AnalysisResult,
    tracker: SourceTracker | None = None,
) -> ParsedHojaRemision:
    """Build a Hoja de Remisión record from an analysis result.

    Table values take priority over key-value pairs for DOCUMENTO, ASUNTO
    and DESTINO. The unit acronym defaults to the configured value (``HH``)
    when the number key has no parentheses.

    Parameters
    ----------
    result
        Output of the document analysis service.
    tracker
        Optional provenance tracker.

    Returns
    -------
    ParsedHojaRemision
        Record with a ``confidence`` score per field.
    """
    pairs = result.key_value_pairs
    default_sigla = get_extraction_specs().get("defaults", {}).get(RECORD, {}).get("sigla_unidad", "HH")

    logger.info("Parsing Hoja de Remisión")

    table_data = extract_from_tables(result.tables, tracker=tracker)
    numero_completo, numero, sigla = extract_numero_hoja(pairs, result.content, tracker=tracker)

    def lookup(field_name: str) -> str | None:
        return find_first_key_value(
            pairs,
            get_key_aliases(RECORD, field_name),
            field_name=field_name,
            tracker=tracker,
        )

    peso_str = lookup("peso")

    parsed = ParsedHojaRemision(
        numero_completo=numero_completo,
        numero=numero,
        sigla_unidad=sigla or default_sigla,
        fecha=extract_fecha(pairs, tracker=tracker),
        para=lookup("para"),
        remitente=lookup("remitente"),
        referencia=lookup("referencia"),
        documento=table_data["documento"] or lookup("documento"),
        asunto=table_data["asunto"] or lookup("asunto"),
        destino=table_data["destino"] or lookup("destino"),
        peso=extract_peso(peso_str) if peso_str else None,
    )
    parsed.confidence = _confidence(
        parsed,
        has_hoja_pair=_find_hoja_pair(pairs) is not None,
        has_table_data=any(table_data.values()),
    )

    logger.info(
        "Parsed %s (sigla %s, fecha %s): para=%s asunto=%s",
        parsed.numero_completo or "HR sin número",
        parsed.sigla_unidad,
        parsed.fecha.isoformat() if parsed.fecha else "No detectada",
        truncate(parsed.para) or "No detectado",
        truncate(parsed.asunto) or "No detectado",
    )
    return parsed

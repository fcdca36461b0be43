"""Shared parsing utilities for OCR text, Spanish dates and weights.

This module provides the low-level normalizers used by the Guía de Valija and
Hoja de Remisión parsers. None of these functions raise on noisy input: they
return ``None`` (or an empty string) when a value cannot be interpreted.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from datetime import date
from decimal import Decimal, InvalidOperation

from siame.config import get_month_names

logger = logging.getLogger(__name__)

# Characters Azure OCR tends to glue onto dates, e.g. "19(/12/2025"
_OCR_NOISE = re.compile(r"[()\[\]{}]")
_DATE_SEPARATOR_SPACES = re.compile(r"\s*([/\-.])\s*")
_ISO_DATE = re.compile(r"\b(\d{4})-(\d{1,2})-(\d{1,2})\b")
_NUMERIC_DATE = re.compile(r"(?<!\d)(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})(?!\d)")
_LONG_DATE = re.compile(r"(\d{1,2})\s+de\s+([a-z]+)\s+(?:del?\s+)?(\d{4})")
_NUMBER_TOKEN = re.compile(r"\d[\d.,]*")


def clean_text(text: str) -> str:
    """Collapse whitespace runs and strip the ends of ``text``."""
    return re.sub(r"\s+", " ", text).strip()


def strip_accents(text: str) -> str:
    """Remove diacritics from ``text``.

    Examples
    --------
    - "GUÍA DE VALIJA DIPLOMÁTICA" -> "GUIA DE VALIJA DIPLOMATICA"
    - "Nº" keeps the ordinal indicator (it is not a combining mark)
    """
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_key(text: str) -> str:
    """Normalize an OCR key for comparisons.

    Lowercases, strips accents and removes colons and whitespace, so that
    ``"Fecha de Envío :"`` and ``"FECHA DE ENVIO"`` compare equal.
    """
    return re.sub(r"[:\s]", "", strip_accents(text).lower().strip())


def _safe_date(year: int, month: int, day: int) -> date | None:
    """Build a date, returning ``None`` for impossible calendar values."""
    try:
        return date(year, month, day)
    except ValueError:
        logger.debug("Invalid calendar date: %s-%s-%s", year, month, day)
        return None


def parse_fecha(value: str | None) -> date | None:
    """Parse a date written in any of the formats found on pouch documents.

    Supported inputs, tried in order:

    1. ``D/M/YYYY`` or ``DD/MM/YYYY`` (``-`` and ``.`` also accepted)
    2. Spanish long form ``"5 de Septiembre del 2025"``, optionally preceded
       by a city (``"Lima, 5 de ..."``)
    3. ISO ``YYYY-MM-DD``

    OCR noise such as stray brackets (``"19(/12/2025"``) and blanks around
    separators (``"19 / 12 / 2025"``) is removed first.

    Parameters
    ----------
    value
        Raw date string from a key-value pair or table cell.

    Returns
    -------
    date | None
        Parsed date, or ``None`` when the text holds no valid date.
    """
    if not value or not value.strip():
        return None

    cleaned = _OCR_NOISE.sub("", value)
    cleaned = _DATE_SEPARATOR_SPACES.sub(r"\1", cleaned)
    cleaned = clean_text(cleaned)

    numeric = _NUMERIC_DATE.search(cleaned)
    if numeric:
        day, month, year = (int(g) for g in numeric.groups())
        return _safe_date(year, month, day)

    long_form = _LONG_DATE.search(strip_accents(cleaned).lower())
    if long_form:
        day_str, month_name, year_str = long_form.groups()
        month = get_month_names().get(month_name)
        if month is not None:
            return _safe_date(int(year_str), month, int(day_str))
        logger.debug("Unknown month name: %s", month_name)

    iso = _ISO_DATE.search(cleaned)
    if iso:
        year, month, day = (int(g) for g in iso.groups())
        return _safe_date(year, month, day)

    logger.debug("Could not parse date: %s", value)
    return None


def parse_decimal(token: str) -> float | None:
    """Parse a numeric token whose separators may be ``.`` or ``,``.

    A single separator is read as the decimal mark. When both appear, the
    rightmost one is the decimal mark and the other groups thousands.

    Examples
    --------
    - "63.810" -> 63.81
    - "34,5" -> 34.5
    - "1.234,56" -> 1234.56
    - "1,234.56" -> 1234.56
    - "1.234.567" -> 1234567.0

    Parameters
    ----------
    token
        Digits and separators only.

    Returns
    -------
    float | None
        Parsed value, or ``None`` if the token is not numeric.
    """
    text = token.strip().strip(".,")
    if not text:
        return None

    last_dot = text.rfind(".")
    last_comma = text.rfind(",")

    if last_dot >= 0 and last_comma >= 0:
        decimal_mark = "." if last_dot > last_comma else ","
        thousands = "," if decimal_mark == "." else "."
        text = text.replace(thousands, "").replace(decimal_mark, ".")
    elif last_comma >= 0:
        text = text.replace(",", "") if text.count(",") > 1 else text.replace(",", ".")
    elif text.count(".") > 1:
        text = text.replace(".", "")

    try:
        return float(Decimal(text))
    except InvalidOperation:
        logger.debug("Could not parse number: %s", token)
        return None


def extract_peso(value: str | None) -> float | None:
    """Extract the first weight figure from a string such as ``"63.810 Kgrs."``.

    Returns
    -------
    float | None
        Weight in kilograms, or ``None`` when no number is present.
    """
    if not value:
        return None

    match = _NUMBER_TOKEN.search(value)
    if not match:
        return None
    return parse_decimal(match.group(0))


def parse_peso_oficial(value: str | None) -> float | None:
    """Parse the official weight, which may be written as a sum.

    Examples
    --------
    - "34.700+34.500" -> 69.2
    - "63.810 Kgrs." -> 63.81

    Parts that hold no number count as zero; if no part holds a number the
    result is ``None``.
    """
    if not value:
        return None

    if "+" not in value:
        return extract_peso(value)

    parts = [extract_peso(part) for part in value.split("+")]
    if all(part is None for part in parts):
        return None
    return round(sum(part or 0.0 for part in parts), 3)


def parse_int(value: str | None) -> int | None:
    """Keep only the digits of ``value`` and parse them as an integer."""
    if not value:
        return None
    digits = re.sub(r"\D", "", value)
    return int(digits) if digits else None


def truncate(text: str | None, length: int = 50) -> str:
    """Shorten ``text`` for log lines, appending ``...`` when cut."""
    if not text:
        return ""
    return text if len(text) <= length else f"{text[:length]}..."

"""Shared utility functions for the siame package."""

from siame.utils.parsing import (
    clean_text,
    extract_peso,
    normalize_key,
    parse_decimal,
    parse_fecha,
    parse_int,
    parse_peso_oficial,
    strip_accents,
    truncate,
)

__all__ = [
    "clean_text",
    "extract_peso",
    "normalize_key",
    "parse_decimal",
    "parse_fecha",
    "parse_int",
    "parse_peso_oficial",
    "strip_accents",
    "truncate",
]

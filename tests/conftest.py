"""Pytest configuration for siame tests.

This module provides:
- Builders for analysis payload tables
- Fixtures with realistic Guía de Valija and Hoja de Remisión payloads
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv

from siame.extractor.types import AnalysisResult, AnalysisTable, KeyValuePair, TableCell

# Load environment variables from project .env so Azure settings are visible in tests
PROJECT_ROOT = Path(__file__).parent.parent
load_dotenv(PROJECT_ROOT / ".env")


def make_table(rows: list[list[str]], header: bool = True) -> AnalysisTable:
    """Build an analysed table; row 0 is flagged ``columnHeader`` when ``header``."""
    cells = [
        TableCell(
            row_index=r,
            column_index=c,
            content=value,
            kind="columnHeader" if header and r == 0 else "content",
            confidence=0.95,
        )
        for r, row in enumerate(rows)
        for c, value in enumerate(row)
    ]
    return AnalysisTable(row_count=len(rows), column_count=max(len(row) for row in rows), cells=cells)


def make_pairs(entries: list[tuple[str, str]], confidence: float = 0.9) -> list[KeyValuePair]:
    """Build key-value pairs from ``(key, value)`` tuples."""
    return [KeyValuePair(key=k, value=v, confidence=confidence) for k, v in entries]


GUIA_CONTENT = """GUÍA DE VALIJA DIPLOMÁTICA Nº 24 SALIDA
DE: UNIDAD DE VALIJA DIPLOMÁTICA - LIMA
PARA: EMBAJADA DEL PERÚ EN JAPÓN - TOKIO
FECHA DE ENVIO: 05/09/2025
"""

HOJA_CONTENT = """HOJA DE REMISIÓN (DAO) Nº 5-18-A/37
Lima, 5 de septiembre de 2025
PARA: EMBAJADA DEL PERÚ EN JAPÓN
DE LA: DIRECCIÓN DE ASUNTOS CONSULARES
"""


@pytest.fixture
def guia_result() -> AnalysisResult:
    """Outbound pouch manifest from Lima to Tokyo with seals and three items."""
    precintos = make_table(
        [
            ["PRECINTO", "PRECINTO/CABLE", "Nº BOLSA/TAMAÑO", "GUÍA AÉREA Nº"],
            ["A-1023", "C-556", "3 / GRANDE", "045-7781"],
        ],
    )
    items = make_table(
        [
            ["Nº", "DESTINATARIO", "CONTENIDO", "REMITENTE", "CAN", "PESO"],
            ["1", "EMBAJADA EN JAPÓN", "HR Nº5-18-A/ 46 PAQUETE", "DGC", "1", "2,5"],
            ["", "CONSULADO EN NAGOYA", "HR N°12-DAO/ 4 SOBRE", "", "2", "0.8"],
            ["3", "CONSULADO EN OSAKA", "CAJA MEDICINAS", "DAO", "1", "12.300 Kg"],
            ["", "", "", "", "", ""],
        ],
    )
    return AnalysisResult(
        content=GUIA_CONTENT,
        tables=[precintos, items],
        key_value_pairs=make_pairs(
            [
                ("DE:", "UNIDAD DE VALIJA DIPLOMÁTICA - LIMA"),
                ("PARA:", "EMBAJADA DEL PERÚ EN JAPÓN - TOKIO"),
                ("FECHA DE ENVIO:", "05/09/2025"),
                ("FECHA DE RECIBO:", "19(/12/2025"),
                ("Total de Items:", "3 items"),
                ("Peso Total:", "63.810 Kgrs."),
                ("Peso Oficial:", "34.700+34.500"),
                ("Preparado Por:", "J. QUISPE"),
                ("Revisado Por:", "M. TORRES"),
                ("OBSERVACIONES:", "SIN NOVEDAD"),
            ],
        ),
        metadata={"pageCount": 1, "title": "guia_24.pdf"},
    )


@pytest.fixture
def hoja_result() -> AnalysisResult:
    """Transmittal sheet 5-18-A/37 issued by DAO."""
    bloque = make_table(
        [
            ["DOCUMENTO", "ASUNTO", "DESTINO"],
            ["OF. RE (DAO) Nº 2-5-A/123", "Remite pasaportes renovados del mes de agosto", "EMBAJADA EN TOKIO"],
        ],
    )
    return AnalysisResult(
        content=HOJA_CONTENT,
        tables=[bloque],
        key_value_pairs=make_pairs(
            [
                ("HOJA DE REMISIÓN (DAO) Nº", "5-18-A / 37"),
                ("FECHA:", "Lima, 5 de septiembre de 2025"),
                ("PARA:", "EMBAJADA DEL PERÚ EN JAPÓN"),
                ("DE LA:", "DIRECCIÓN DE ASUNTOS CONSULARES"),
                ("REFERENCIA:", "Memorándum 45-2025"),
                ("PESO:", "1,25 kg"),
            ],
        ),
        metadata={"pageCount": 1, "title": "hr_37.pdf"},
    )


@pytest.fixture
def azure_payload() -> dict[str, Any]:
    """Raw ``analyzeResult`` response as returned by the REST API."""
    return {
        "status": "succeeded",
        "analyzeResult": {
            "apiVersion": "2023-07-31",
            "modelId": "prebuilt-document",
            "content": GUIA_CONTENT,
            "pages": [{"pageNumber": 1}],
            "languages": [{"locale": "es", "confidence": 0.9}],
            "tables": [
                {
                    "rowCount": 2,
                    "columnCount": 2,
                    "cells": [
                        {"kind": "columnHeader", "rowIndex": 0, "columnIndex": 0, "content": "PRECINTO"},
                        {"kind": "columnHeader", "rowIndex": 0, "columnIndex": 1, "content": "PRECINTO/CABLE"},
                        {"rowIndex": 1, "columnIndex": 0, "content": "A-1023"},
                        {"rowIndex": 1, "columnIndex": 1, "content": "C-556"},
                    ],
                },
            ],
            "keyValuePairs": [
                {"key": {"content": "PARA:"}, "value": {"content": "EMBAJADA DEL PERÚ EN JAPÓN"}, "confidence": 0.91},
                {"key": {"content": "FIRMA DEL RECEPTOR"}, "confidence": 0.4},
            ],
        },
    }

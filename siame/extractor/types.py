"""Analysis payload and domain record dataclasses.

This module contains pure data structures with no parsing logic, so they can
be imported anywhere without circular dependencies.

Analysis payload
    ``KeyValuePair``, ``TableCell``, ``AnalysisTable`` and ``AnalysisResult``
    mirror what the document analysis service returns. ``from_dict`` accepts
    both the camelCase JSON stored by the web application and the raw service
    response (``analyzeResult`` with nested ``key.content``).

Domain records
    ``GuiaValijaItem``, ``GuiaValijaPrecinto``, ``ParsedGuiaValija`` and
    ``ParsedHojaRemision`` are what the parsers build from a payload.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any

__all__ = [
    "AnalysisResult",
    "AnalysisTable",
    "GuiaValijaItem",
    "GuiaValijaPrecinto",
    "KeyValuePair",
    "ParsedGuiaValija",
    "ParsedHojaRemision",
    "TableCell",
]


def _content_of(value: Any) -> str:
    """Return the text of a plain string or a ``{"content": ...}`` element."""
    if value is None:
        return ""
    if isinstance(value, dict):
        return str(value.get("content") or "")
    return str(value)


def _serialize(value: Any) -> Any:
    """Convert dates nested in ``asdict`` output into ISO strings."""
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    return value


# =============================================================================
# Analysis Payload
# =============================================================================


@dataclass
class KeyValuePair:
    """A key/value pair detected by the analysis service."""

    key: str
    value: str = ""
    confidence: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KeyValuePair:
        """Build from a stored pair or a raw service pair."""
        return cls(
            key=_content_of(data.get("key")),
            value=_content_of(data.get("value")),
            confidence=data.get("confidence"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase representation stored by the web application."""
        return {"key": self.key, "value": self.value, "confidence": self.confidence}


@dataclass
class TableCell:
    """One cell of an analysed table."""

    row_index: int
    column_index: int
    content: str = ""
    kind: str = "content"  # "content", "columnHeader", "rowHeader", ...
    confidence: float | None = None

    @property
    def is_header(self) -> bool:
        """Whether the service flagged this cell as a column header."""
        return self.kind == "columnHeader"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TableCell:
        """Build from a camelCase cell dictionary."""
        return cls(
            row_index=int(data.get("rowIndex", 0)),
            column_index=int(data.get("columnIndex", 0)),
            content=str(data.get("content") or ""),
            kind=str(data.get("kind") or "content"),
            confidence=data.get("confidence"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase representation."""
        return {
            "kind": self.kind,
            "content": self.content,
            "rowIndex": self.row_index,
            "columnIndex": self.column_index,
            "confidence": self.confidence,
        }


@dataclass
class AnalysisTable:
    """A table detected by the analysis service."""

    row_count: int
    column_count: int
    cells: list[TableCell] = field(default_factory=list)

    def cell_at(self, row: int, column: int) -> TableCell | None:
        """Return the cell at ``(row, column)`` or ``None`` if it was not detected."""
        for cell in self.cells:
            if cell.row_index == row and cell.column_index == column:
                return cell
        return None

    def header_cells(self) -> list[TableCell]:
        """Return the cells flagged as column headers."""
        return [cell for cell in self.cells if cell.is_header]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisTable:
        """Build from a camelCase table dictionary."""
        return cls(
            row_count=int(data.get("rowCount", 0)),
            column_count=int(data.get("columnCount", 0)),
            cells=[TableCell.from_dict(c) for c in data.get("cells") or []],
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase representation."""
        return {
            "rowCount": self.row_count,
            "columnCount": self.column_count,
            "cells": [cell.to_dict() for cell in self.cells],
        }


@dataclass
class AnalysisResult:
    """Complete output of one document analysis."""

    content: str = ""
    tables: list[AnalysisTable] = field(default_factory=list)
    key_value_pairs: list[KeyValuePair] = field(default_factory=list)
    entities: list[dict[str, Any]] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisResult:
        """Build from stored JSON or a raw service response.

        Parameters
        ----------
        data
            Either ``{"content", "tables", "keyValuePairs", ...}`` or a service
            response holding those keys under ``analyzeResult``.
        """
        payload = data.get("analyzeResult", data)
        metadata = dict(data.get("metadata") or {})

        if "pages" in payload and "pageCount" not in metadata:
            metadata["pageCount"] = len(payload.get("pages") or []) or 1
        if "languages" in payload and "languages" not in metadata:
            metadata["languages"] = payload.get("languages") or []

        return cls(
            content=str(payload.get("content") or ""),
            tables=[AnalysisTable.from_dict(t) for t in payload.get("tables") or []],
            key_value_pairs=[KeyValuePair.from_dict(p) for p in payload.get("keyValuePairs") or []],
            entities=list(payload.get("entities") or []),
            metadata=metadata,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase representation stored by the web application."""
        return {
            "content": self.content,
            "tables": [table.to_dict() for table in self.tables],
            "keyValuePairs": [pair.to_dict() for pair in self.key_value_pairs],
            "entities": self.entities,
            "metadata": self.metadata,
        }


# =============================================================================
# Domain Records
# =============================================================================


@dataclass
class GuiaValijaItem:
    """One line of the items table of a pouch manifest."""

    numero_item: int
    destinatario: str = ""
    contenido: str = ""
    remitente: str | None = None
    cantidad: int | None = None
    peso: float | None = None


@dataclass
class GuiaValijaPrecinto:
    """One security seal row of a pouch manifest."""

    precinto: str | None = None
    precinto_cable: str | None = None
    numero_bolsa_tamano: str | None = None
    guia_aerea_numero: str | None = None

    def has_data(self) -> bool:
        """Whether any seal column was filled."""
        return any(asdict(self).values())


@dataclass
class ParsedGuiaValija:
    """Structured Guía de Valija reconstructed from an analysis result."""

    numero_guia: str
    tipo_valija: str
    destinatario_nombre: str
    remitente_nombre: str
    fecha_envio: date | None = None
    fecha_recibo: date | None = None
    origen_ciudad: str | None = None
    destino_ciudad: str | None = None
    origen_pais: str | None = None
    destino_pais: str | None = None
    peso_valija: float | None = None
    peso_oficial: float | None = None
    numero_paquetes: int | None = None
    observaciones: str | None = None
    preparado_por: str | None = None
    revisado_por: str | None = None
    firma_receptor: str | None = None
    items: list[GuiaValijaItem] = field(default_factory=list)
    precintos: list[GuiaValijaPrecinto] = field(default_factory=list)
    processing_status: str = "completed"
    file_name: str | None = None
    contenido_texto: str = ""
    pares_clave_valor: list[KeyValuePair] = field(default_factory=list)
    tablas: list[AnalysisTable] = field(default_factory=list)

    def to_dict(self, include_raw: bool = False) -> dict[str, Any]:
        """Serialize to a JSON-ready dictionary.

        Parameters
        ----------
        include_raw
            Keep the OCR content, pairs and tables alongside the fields.
        """
        data = _serialize(asdict(self))
        if include_raw:
            data["pares_clave_valor"] = [pair.to_dict() for pair in self.pares_clave_valor]
            data["tablas"] = [table.to_dict() for table in self.tablas]
        else:
            for key in ("contenido_texto", "pares_clave_valor", "tablas"):
                data.pop(key, None)
        return data


@dataclass
class ParsedHojaRemision:
    """Structured Hoja de Remisión with per-field confidence."""

    numero_completo: str
    numero: int
    sigla_unidad: str | None
    fecha: date | None = None
    para: str | None = None
    remitente: str | None = None
    referencia: str | None = None
    documento: str | None = None
    asunto: str | None = None
    destino: str | None = None
    peso: float | None = None
    confidence: dict[str, float] = field(default_factory=dict)
    origen: str = "documento"  # "documento" or "guia_valija_item"
    numero_item: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dictionary."""
        return _serialize(asdict(self))  # type: ignore[no-any-return]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParsedHojaRemision:
        """Rebuild a record saved with :meth:`to_dict`."""
        fecha = data.get("fecha")
        return cls(
            numero_completo=str(data.get("numero_completo") or ""),
            numero=int(data.get("numero") or 0),
            sigla_unidad=data.get("sigla_unidad"),
            fecha=date.fromisoformat(fecha) if isinstance(fecha, str) and fecha else None,
            para=data.get("para"),
            remitente=data.get("remitente"),
            referencia=data.get("referencia"),
            documento=data.get("documento"),
            asunto=data.get("asunto"),
            destino=data.get("destino"),
            peso=data.get("peso"),
            confidence=dict(data.get("confidence") or {}),
            origen=str(data.get("origen") or "documento"),
            numero_item=data.get("numero_item"),
        )

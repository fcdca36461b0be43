"""Validation schemas for parsed records and uploaded files.

Pydantic models carrying the same limits and Spanish messages as the web
forms, so a record parsed from OCR output can be checked before an operator
confirms it. :func:`validate_record` flattens validation errors into
``"field: message"`` strings.
"""

from __future__ import annotations

import re
from datetime import date
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from siame.config import get_config

_SIGLA_PATTERN = re.compile(r"^[A-Z0-9-]+$")
_DEFAULT_EXTENSIONS = ["pdf", "docx", "xlsx", "jpg", "jpeg", "png", "bmp", "tiff", "heif", "html", "txt"]

_TYPE_MESSAGES = {
    "missing": "Campo requerido",
    "int_parsing": "Debe ser un número entero",
    "int_from_float": "Debe ser un número entero",
    "int_type": "Debe ser un número entero",
    "float_parsing": "Debe ser un valor numérico",
    "float_type": "Debe ser un valor numérico",
    "date_parsing": "Formato de fecha inválido",
    "date_from_datetime_parsing": "Formato de fecha inválido",
    "date_type": "Formato de fecha inválido",
    "string_type": "Debe ser texto",
    "list_type": "Debe ser una lista",
}


def _check_length(
    value: str | None,
    minimum: int,
    maximum: int,
    min_message: str,
    max_message: str | None = None,
) -> str | None:
    """Validate a text length; empty optional values pass untouched."""
    if value is None or (minimum == 0 and value == ""):
        return value
    length = len(value.strip())
    if length < minimum:
        raise ValueError(min_message)
    if length > maximum:
        raise ValueError(max_message or f"Máximo {maximum} caracteres")
    return value


def _check_peso(value: float | None, label: str = "El peso") -> float | None:
    if value is None:
        return value
    if value <= 0:
        msg = f"{label} debe ser mayor a 0"
        raise ValueError(msg)
    if value > 1000:
        msg = f"{label} no puede exceder 1000 kg"
        raise ValueError(msg)
    return value


class _RecordSchema(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


# =============================================================================
# Guía de Valija
# =============================================================================


class GuiaValijaItemSchema(_RecordSchema):
    """One pouch item."""

    numero_item: int
    destinatario: str
    contenido: str
    remitente: str | None = None
    cantidad: int | None = None
    peso: float | None = None

    @field_validator("numero_item")
    @classmethod
    def _numero_item(cls, v: int) -> int:
        if v < 1:
            msg = "El número debe ser mayor a 0"
            raise ValueError(msg)
        return v

    @field_validator("destinatario")
    @classmethod
    def _destinatario(cls, v: str) -> str:
        return _check_length(v, 3, 200, "El destinatario debe tener al menos 3 caracteres")  # type: ignore[return-value]

    @field_validator("contenido")
    @classmethod
    def _contenido(cls, v: str) -> str:
        return _check_length(v, 3, 500, "El contenido debe tener al menos 3 caracteres")  # type: ignore[return-value]

    @field_validator("remitente")
    @classmethod
    def _remitente(cls, v: str | None) -> str | None:
        return _check_length(v, 0, 200, "")

    @field_validator("cantidad")
    @classmethod
    def _cantidad(cls, v: int | None) -> int | None:
        if v is not None and v <= 0:
            msg = "La cantidad debe ser mayor a 0"
            raise ValueError(msg)
        return v

    @field_validator("peso")
    @classmethod
    def _peso(cls, v: float | None) -> float | None:
        return _check_peso(v)


class GuiaValijaSchema(_RecordSchema):
    """A pouch manifest ready to be registered."""

    numero_guia: str
    tipo_valija: Literal["ENTRADA", "SALIDA"]
    fecha_envio: date | None = None
    fecha_recibo: date | None = None
    origen_ciudad: str
    origen_pais: str
    destino_ciudad: str
    destino_pais: str
    remitente_nombre: str | None = None
    destinatario_nombre: str | None = None
    peso_valija: float | None = None
    peso_oficial: float | None = None
    numero_paquetes: int | None = None
    observaciones: str | None = None
    preparado_por: str | None = None
    revisado_por: str | None = None
    firma_receptor: str | None = None
    estado: Literal["recibido", "en_transito", "entregado", "cancelado"] = "recibido"
    items: list[GuiaValijaItemSchema] = Field(default_factory=list, validate_default=True)

    @field_validator("numero_guia")
    @classmethod
    def _numero_guia(cls, v: str) -> str:
        return _check_length(v, 3, 50, "El número debe tener al menos 3 caracteres")  # type: ignore[return-value]

    @field_validator("origen_ciudad", "origen_pais", "destino_ciudad", "destino_pais")
    @classmethod
    def _lugar(cls, v: str) -> str:
        return _check_length(v, 2, 100, "Mínimo 2 caracteres")  # type: ignore[return-value]

    @field_validator("remitente_nombre", "destinatario_nombre", "preparado_por", "revisado_por", "firma_receptor")
    @classmethod
    def _persona(cls, v: str | None) -> str | None:
        return _check_length(v, 0, 200, "")

    @field_validator("observaciones")
    @classmethod
    def _observaciones(cls, v: str | None) -> str | None:
        return _check_length(v, 0, 2000, "")

    @field_validator("peso_valija")
    @classmethod
    def _peso_valija(cls, v: float | None) -> float | None:
        return _check_peso(v)

    @field_validator("peso_oficial")
    @classmethod
    def _peso_oficial(cls, v: float | None) -> float | None:
        return _check_peso(v, "El peso oficial")

    @field_validator("numero_paquetes")
    @classmethod
    def _numero_paquetes(cls, v: int | None) -> int | None:
        if v is None:
            return v
        if v <= 0:
            msg = "Debe ser mayor a 0"
            raise ValueError(msg)
        if v > 1000:
            msg = "Máximo 1000 paquetes"
            raise ValueError(msg)
        return v

    @field_validator("items")
    @classmethod
    def _items(cls, v: list[GuiaValijaItemSchema]) -> list[GuiaValijaItemSchema]:
        if not v:
            msg = "Debe agregar al menos un item"
            raise ValueError(msg)
        if len(v) > 100:
            msg = "Máximo 100 items por guía"
            raise ValueError(msg)
        return v


# =============================================================================
# Hoja de Remisión
# =============================================================================


class HojaRemisionSchema(_RecordSchema):
    """A transmittal sheet ready to be registered."""

    numero: int
    sigla_unidad: str
    fecha: date
    para: str
    remitente: str
    referencia: str | None = None
    documento: str
    asunto: str
    destino: str
    peso: float | None = None
    estado: Literal["borrador", "enviada", "recibida", "anulada"] = "borrador"

    @field_validator("numero")
    @classmethod
    def _numero(cls, v: int) -> int:
        if v < 1:
            msg = "El número debe ser mayor a 0"
            raise ValueError(msg)
        return v

    @field_validator("sigla_unidad")
    @classmethod
    def _sigla_unidad(cls, v: str) -> str:
        _check_length(
            v,
            2,
            10,
            "La sigla debe tener al menos 2 caracteres",
            "La sigla no puede exceder 10 caracteres",
        )
        if not _SIGLA_PATTERN.match(v):
            msg = "Solo permite mayúsculas, números y guiones"
            raise ValueError(msg)
        return v

    @field_validator("para")
    @classmethod
    def _para(cls, v: str) -> str:
        return _check_length(  # type: ignore[return-value]
            v,
            5,
            500,
            "El destinatario debe tener al menos 5 caracteres",
            "El destinatario no puede exceder 500 caracteres",
        )

    @field_validator("remitente")
    @classmethod
    def _remitente(cls, v: str) -> str:
        return _check_length(  # type: ignore[return-value]
            v,
            5,
            500,
            "El remitente debe tener al menos 5 caracteres",
            "El remitente no puede exceder 500 caracteres",
        )

    @field_validator("referencia")
    @classmethod
    def _referencia(cls, v: str | None) -> str | None:
        return _check_length(v, 0, 500, "", "La referencia no puede exceder 500 caracteres")

    @field_validator("documento", "asunto")
    @classmethod
    def _texto_largo(cls, v: str, info: ValidationInfo) -> str:
        label = "El documento" if info.field_name == "documento" else "El asunto"
        return _check_length(  # type: ignore[return-value]
            v,
            10,
            2000,
            f"{label} debe tener al menos 10 caracteres",
            f"{label} no puede exceder 2000 caracteres",
        )

    @field_validator("destino")
    @classmethod
    def _destino(cls, v: str) -> str:
        return _check_length(  # type: ignore[return-value]
            v,
            5,
            2000,
            "El destino debe tener al menos 5 caracteres",
            "El destino no puede exceder 2000 caracteres",
        )

    @field_validator("peso")
    @classmethod
    def _peso(cls, v: float | None) -> float | None:
        return _check_peso(v)


# =============================================================================
# Uploaded Files
# =============================================================================


class DocumentFileSchema(_RecordSchema):
    """An uploaded file, checked by extension and size."""

    file_name: str
    file_size: int

    @field_validator("file_name")
    @classmethod
    def _file_name(cls, v: str) -> str:
        if not v:
            msg = "Debe seleccionar un archivo"
            raise ValueError(msg)
        allowed = get_config().get("upload", {}).get("allowed_extensions", _DEFAULT_EXTENSIONS)
        extension = Path(v).suffix.lstrip(".").lower()
        if extension not in allowed:
            msg = "Extensión de archivo no permitida. Usa: PDF, DOCX, XLSX, JPG, PNG"
            raise ValueError(msg)
        return v

    @field_validator("file_size")
    @classmethod
    def _file_size(cls, v: int) -> int:
        upload = get_config().get("upload", {})
        if v > upload.get("max_size_bytes", 50 * 1024 * 1024):
            msg = "El archivo excede el tamaño máximo de 50MB"
            raise ValueError(msg)
        if v < upload.get("min_size_bytes", 1024):
            msg = "El archivo está vacío o es muy pequeño (mínimo 1KB)"
            raise ValueError(msg)
        return v


# =============================================================================
# Helpers
# =============================================================================


def _error_message(error: dict[str, Any]) -> str:
    if error["type"] == "value_error":
        return str(error["ctx"]["error"])
    if error["type"] == "literal_error":
        return f"Valor no permitido. Usa: {error['ctx']['expected']}"
    if error.get("input", "") is None:
        return _TYPE_MESSAGES["missing"]
    return _TYPE_MESSAGES.get(error["type"], error["msg"])


def validate_record(schema: type[BaseModel], data: dict[str, Any]) -> list[str]:
    """Validate ``data`` against ``schema``.

    Parameters
    ----------
    schema
        One of the schema classes in this module.
    data
        Record dictionary, e.g. ``ParsedGuiaValija.to_dict()``.

    Returns
    -------
    list[str]
        ``"field: message"`` entries (nested locations joined with dots,
        e.g. ``"items.0.destinatario"``); empty when the record is valid.
    """
    try:
        schema.model_validate(data)
    except ValidationError as e:
        return [
            f"{'.'.join(str(part) for part in error['loc']) or '__root__'}: {_error_message(error)}"
            for error in e.errors()
        ]
    return []


def validate_document_file(path: Path) -> list[str]:
    """Validate an uploaded file on disk by name and size."""
    if not path.exists():
        return [f"file_name: Archivo no encontrado: {path}"]
    return validate_record(DocumentFileSchema, {"file_name": path.name, "file_size": path.stat().st_size})

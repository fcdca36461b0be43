"""Automatic detection of document language, type and direction.

Scores keyword hits on the accent-stripped, lower-cased text of a document
to guess which form should be used to register it. Keyword lists live in
``extraction_specs.json`` under ``detector``.

Confidences
-----------
* language: hits / 20, capped at 1
* document type: 2 points per hit, / 10, capped at 1
* direction: hits of the winning side / 5, capped at 1; 0.5 when no
  direction keyword appears at all
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from siame.config import get_detector_keywords, setup_logging
from siame.extractor.guia_valija import find_first_key_value
from siame.utils.parsing import extract_peso, strip_accents

if TYPE_CHECKING:
    from siame.extractor.types import AnalysisResult, KeyValuePair

logger = setup_logging(__name__)

DEFAULT_LANGUAGE = "español"
DEFAULT_DOCUMENT_TYPE = "guia_valija"
DOCUMENT_TYPE_WEIGHT = 2

_GUIA_NUMBER = re.compile(r"(gu[ií]a|guide)[\s.\-]*(\d{2,4}[-/]\d{4})", re.IGNORECASE)
_DATES = re.compile(r"\d{1,2}[/\-]\d{1,2}[/\-]\d{4}|\d{4}[/\-]\d{1,2}[/\-]\d{1,2}")
_HOJA_NUMBER = re.compile(r"(?:n[úu]mero|\bno\s*\.?|n\s*[º°])\s*(\d+)", re.IGNORECASE)
_HOJA_SIGLA = re.compile(r"\(([A-Z]{2,4})\)")
_PARA = re.compile(r"^\s*(?:para|a)\s*:\s*([^\n]+)", re.IGNORECASE | re.MULTILINE)
_REMITENTE = re.compile(r"^\s*(?:de|desde|remitente)\s*:\s*([^\n]+)", re.IGNORECASE | re.MULTILINE)
_ASUNTO = re.compile(r"(?:asunto|referencia)\s*:\s*([^\n]+)", re.IGNORECASE)
_NOTA_ASUNTO = re.compile(r"(?:asunto|referencia):?[ \t]+([^\n]+)", re.IGNORECASE)
_ENTIDAD = re.compile(r"(?:embajada|consulado|ministerio)[ \t]+[^\n]+", re.IGNORECASE)


@dataclass
class DetectionScore:
    """Winner of one detection pass."""

    label: str
    confidence: float
    keywords: list[str] = field(default_factory=list)


@dataclass
class DocumentAnalysis:
    """Language, type and direction detected for one document."""

    idioma: str
    tipo_documento: str
    direccion: str
    confidence: dict[str, float]
    extracted_data: dict[str, Any] = field(default_factory=dict)
    key_indicators: dict[str, list[str]] = field(default_factory=dict)

    @property
    def average_confidence(self) -> float:
        """Mean of the three detection confidences."""
        if not self.confidence:
            return 0.0
        return sum(self.confidence.values()) / len(self.confidence)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


def normalize_content(content: str | None) -> str:
    """Lower-case ``content`` and strip its accents."""
    return strip_accents(content or "").lower()


def _normalized_keywords(keywords: list[str]) -> list[str]:
    """Accent-strip keywords, dropping duplicates while keeping order."""
    seen: dict[str, None] = {}
    for keyword in keywords:
        normalized = normalize_content(keyword).strip()
        if normalized:
            seen.setdefault(normalized, None)
    return list(seen)


def _count_keywords(content: str, keywords: list[str]) -> tuple[int, list[str]]:
    """Count whole-word hits of ``keywords`` in normalized ``content``."""
    score = 0
    found: list[str] = []
    for keyword in _normalized_keywords(keywords):
        hits = len(re.findall(rf"\b{re.escape(keyword)}\b", content))
        if hits:
            score += hits
            found.append(keyword)
    return score, found


def _best_group(
    content: str,
    groups: dict[str, list[str]],
    default: str,
    weight: int = 1,
) -> tuple[str, int, list[str]]:
    """Return the keyword group with the highest (strictly greater) score."""
    best_label, best_score, best_found = default, 0, []
    for label, keywords in groups.items():
        hits, found = _count_keywords(content, keywords)
        score = hits * weight
        if score > best_score:
            best_label, best_score, best_found = label, score, found
    return best_label, best_score, best_found


def detect_language(content: str) -> DetectionScore:
    """Detect the language of normalized ``content`` (default español)."""
    groups = get_detector_keywords().get("language", {})
    label, score, found = _best_group(content, groups, DEFAULT_LANGUAGE)
    return DetectionScore(label, min(score / 20, 1.0), found)


def detect_document_type(content: str) -> DetectionScore:
    """Detect the document type of normalized ``content`` (default guía de valija)."""
    groups = get_detector_keywords().get("document_type", {})
    label, score, found = _best_group(content, groups, DEFAULT_DOCUMENT_TYPE, weight=DOCUMENT_TYPE_WEIGHT)
    return DetectionScore(label, min(score / 10, 1.0), found)


def detect_direction(content: str) -> DetectionScore:
    """Detect whether normalized ``content`` is inbound or outbound.

    ``salida`` wins only with strictly more hits than ``entrada``.
    """
    groups = get_detector_keywords().get("direction", {})
    entrada_score, entrada_found = _count_keywords(content, groups.get("entrada", []))
    salida_score, salida_found = _count_keywords(content, groups.get("salida", []))
    found = entrada_found + salida_found

    if salida_score > entrada_score:
        return DetectionScore("salida", min(salida_score / 5, 1.0), found)
    if entrada_score > 0:
        return DetectionScore("entrada", min(entrada_score / 5, 1.0), found)
    return DetectionScore("entrada", 0.5, found)


# =============================================================================
# Structured Extraction
# =============================================================================


def _extract_guia_data(content: str, pairs: list[KeyValuePair]) -> dict[str, Any]:
    data: dict[str, Any] = {}

    guia_match = _GUIA_NUMBER.search(content)
    if guia_match:
        data["numero_guia"] = guia_match.group(2)

    fechas = _DATES.findall(content)
    if fechas:
        data["fechas_encontradas"] = fechas

    for pair in pairs:
        key = normalize_content(pair.key)
        value = (pair.value or "").strip()
        if not value:
            continue
        if "numero" in key or re.match(r"n\s*[º°o](?!\w)", key):
            data["numero_guia"] = value
        elif "fecha" in key:
            data.setdefault("fecha_emision", value)
        elif "peso" in key:
            peso = extract_peso(value)
            data["peso"] = peso if peso is not None else value

    return data


def _extract_hoja_data(content: str, pairs: list[KeyValuePair]) -> dict[str, Any]:
    data: dict[str, Any] = {}

    numero_match = _HOJA_NUMBER.search(content)
    if numero_match:
        data["numero"] = int(numero_match.group(1))

    sigla_match = _HOJA_SIGLA.search(content)
    if sigla_match:
        data["sigla_unidad"] = sigla_match.group(1)

    para = find_first_key_value(pairs, ["PARA"])
    para_match = _PARA.search(content)
    if para or para_match:
        data["para"] = para or para_match.group(1).strip()

    remitente = find_first_key_value(pairs, ["DE LA", "REMITENTE"])
    remitente_match = _REMITENTE.search(content)
    if remitente or remitente_match:
        data["remitente"] = remitente or remitente_match.group(1).strip()

    asunto_match = _ASUNTO.search(content)
    if asunto_match:
        data["asunto"] = asunto_match.group(1).strip()

    if "numero" in data:
        data["numero_completo"] = f"HR N°{data['numero']}-{data.get('sigla_unidad', 'HH')}"

    return data


def _extract_nota_data(content: str) -> dict[str, Any]:
    data: dict[str, Any] = {}

    asunto_match = _NOTA_ASUNTO.search(content)
    if asunto_match:
        data["asunto"] = asunto_match.group(1).strip()

    entidad_match = _ENTIDAD.search(content)
    if entidad_match:
        data["entidad_emisora"] = entidad_match.group(0).strip()

    return data


def extract_structured_data(
    content: str,
    tipo_documento: str,
    idioma: str,
    direccion: str,
    pairs: list[KeyValuePair] | None = None,
) -> dict[str, Any]:
    """Pull the few fields a detected document type exposes in plain text.

    Parameters
    ----------
    content
        Raw (not normalized) document text.
    tipo_documento, idioma, direccion
        Detection outcome, copied into the result.
    pairs
        Key-value pairs, consulted before the content for guía fields.

    Returns
    -------
    dict[str, Any]
        Detection labels, ``detected_at`` and the type-specific fields.
    """
    data: dict[str, Any] = {
        "tipo_documento": tipo_documento,
        "idioma": idioma,
        "direccion": direccion,
        "detected_at": datetime.now(UTC).isoformat(),
    }

    if tipo_documento == "guia_valija":
        data.update(_extract_guia_data(content, pairs or []))
    elif tipo_documento == "hoja_remision":
        data.update(_extract_hoja_data(content, pairs or []))
    elif tipo_documento == "nota_diplomatica":
        data.update(_extract_nota_data(content))

    return data


def analyze(result: AnalysisResult) -> DocumentAnalysis:
    """Detect language, type and direction of an analysed document.

    Parameters
    ----------
    result
        Output of the document analysis service.

    Returns
    -------
    DocumentAnalysis
        Labels, per-dimension confidences, structured data and the keywords
        that decided each label.
    """
    normalized = normalize_content(result.content)

    language = detect_language(normalized)
    document_type = detect_document_type(normalized)
    direction = detect_direction(normalized)

    analysis = DocumentAnalysis(
        idioma=language.label,
        tipo_documento=document_type.label,
        direccion=direction.label,
        confidence={
            "idioma": language.confidence,
            "tipo_documento": document_type.confidence,
            "direccion": direction.confidence,
        },
        extracted_data=extract_structured_data(
            result.content,
            document_type.label,
            language.label,
            direction.label,
            result.key_value_pairs,
        ),
        key_indicators={
            "language_keywords": language.keywords,
            "document_type_keywords": document_type.keywords,
            "direction_keywords": direction.keywords,
        },
    )

    logger.info("Detected: %s - %s (%s)", analysis.tipo_documento, analysis.direccion, analysis.idioma)
    logger.info("Confidence: %s%%", round(analysis.average_confidence * 100))
    return analysis


def get_recommendation(tipo_documento: str, direccion: str, idioma: str) -> dict[str, str]:
    """Suggest the registration form for a detected document.

    Returns
    -------
    dict[str, str]
        ``title``, ``description`` and ``form_path``; unknown types get the
        manual-review entry.
    """
    direction_text = "Entrada" if direccion == "entrada" else "Salida"

    forms = {
        "guia_valija": ("Guía de Valija", "la guía de valija", "/dashboard/guias-valija/new"),
        "hoja_remision": ("Hoja de Remisión", "la hoja de remisión", "/dashboard/hojas-remision/new"),
        "nota_diplomatica": ("Nota Diplomática", "la nota diplomática", "/documents/notes/new"),
    }
    if tipo_documento not in forms:
        return {
            "title": "Documento Requiere Revisión Manual",
            "description": f"No se pudo determinar el tipo de documento ({idioma})",
            "form_path": "/documents/manual-entry",
        }

    title, subject, form_path = forms[tipo_documento]
    return {
        "title": f"{title} - {direction_text}",
        "description": f"Verificar detalles de {subject} {direction_text} detectada como {idioma}",
        "form_path": form_path,
    }

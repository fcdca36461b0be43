"""Extractor module for document analysis and record parsing.

Key exports:
    AnalysisResult: Payload returned by the document analysis service
    analyze_document: Azure Document Intelligence client (httpx)
    analyze_pdf_locally: pdfplumber fallback with the same payload shape
    analyze: Language, document type and direction detection
    parse_guia_valija: Guía de Valija record from a payload
    parse_hoja_remision: Hoja de Remisión record from a payload
    link_items_to_hojas: Cross-reference pouch items with transmittal sheets
"""

from siame.extractor.cross_reference import (
    CrossReferenceReport,
    HojaReference,
    build_hojas_from_guia,
    extract_hr_numero_from_contenido,
    link_items_to_hojas,
)
from siame.extractor.document_analyzer import (
    DocumentAnalysis,
    analyze,
    extract_structured_data,
    get_recommendation,
)
from siame.extractor.document_intelligence import (
    DocumentAnalysisError,
    analyze_document,
    get_supported_formats,
    log_key_value_pairs,
)
from siame.extractor.guia_valija import (
    determinar_tipo_valija,
    extract_ciudad,
    extract_numero_guia,
    find_first_key_value,
    find_key_value,
    get_pais_from_ciudad,
    parse_guia_valija,
    parse_items_from_tables,
    parse_precintos_from_tables,
)
from siame.extractor.hoja_remision import (
    extract_fecha,
    extract_from_tables,
    extract_numero_hoja,
    parse_hoja_remision,
)
from siame.extractor.pdf_parser import analyze_pdf_locally
from siame.extractor.types import (
    AnalysisResult,
    AnalysisTable,
    GuiaValijaItem,
    GuiaValijaPrecinto,
    KeyValuePair,
    ParsedGuiaValija,
    ParsedHojaRemision,
    TableCell,
)

__all__ = [
    # Payload and records
    "AnalysisResult",
    "AnalysisTable",
    "CrossReferenceReport",
    "DocumentAnalysis",
    "DocumentAnalysisError",
    "GuiaValijaItem",
    "GuiaValijaPrecinto",
    "HojaReference",
    "KeyValuePair",
    "ParsedGuiaValija",
    "ParsedHojaRemision",
    "TableCell",
    # Detection
    "analyze",
    # Analysis service
    "analyze_document",
    "analyze_pdf_locally",
    # Cross-references
    "build_hojas_from_guia",
    # Guía de Valija
    "determinar_tipo_valija",
    "extract_ciudad",
    # Hoja de Remisión
    "extract_fecha",
    "extract_from_tables",
    "extract_hr_numero_from_contenido",
    "extract_numero_guia",
    "extract_numero_hoja",
    "extract_structured_data",
    "find_first_key_value",
    "find_key_value",
    "get_pais_from_ciudad",
    "get_recommendation",
    "get_supported_formats",
    "link_items_to_hojas",
    "log_key_value_pairs",
    "parse_guia_valija",
    "parse_hoja_remision",
    "parse_items_from_tables",
    "parse_precintos_from_tables",
]

#!/usr/bin/env python3
"""Document orchestrator - analyse a file, parse it, validate and save.

This module orchestrates the complete extraction workflow:
1. Analyse the file (Azure Document Intelligence, local pdfplumber or a
   stored JSON payload)
2. Detect language, document type and direction
3. Parse a Guía de Valija or a Hoja de Remisión
4. Validate the record and cross-reference pouch items with saved sheets
5. Save the record and its source mapping to JSON
6. Print formatted report

Usage (from project root):
    python -m siame.main analyze data/raw/guia_24.pdf
    python -m siame.main analyze data/raw/hr_37.pdf --type hoja
    python -m siame.main analyze data/raw/guia_24.json --from-json --no-save
    python -m siame.main export --kind guia --format xlsx

CLI Flags (analyze):
    --type, -t          auto (default), guia or hoja
    --from-json         Read a stored analysis payload instead of the file
    --local             Use pdfplumber instead of the cloud service
    --no-save           Don't save JSON output
    --quiet             Suppress report output
    --fail-on-invalid   Exit with error code if the record fails validation
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Add project root to path when running directly
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from siame.config import is_azure_configured, setup_logging  # noqa: E402
from siame.extractor import (  # noqa: E402
    AnalysisResult,
    CrossReferenceReport,
    DocumentAnalysis,
    DocumentAnalysisError,
    ParsedHojaRemision,
    analyze,
    analyze_document,
    analyze_pdf_locally,
    build_hojas_from_guia,
    get_recommendation,
    link_items_to_hojas,
    log_key_value_pairs,
    parse_guia_valija,
    parse_hoja_remision,
)
from siame.schemas import (  # noqa: E402
    GuiaValijaSchema,
    HojaRemisionSchema,
    validate_document_file,
    validate_record,
)
from siame.transformer import SourceTracker  # noqa: E402
from siame.writer import export_records, load_all_records, save_record  # noqa: E402

logger = setup_logging(__name__)

TYPE_ALIASES = {"guia": "guia_valija", "hoja": "hoja_remision"}


@dataclass
class AnalyzeOutcome:
    """Everything produced for one analysed file."""

    kind: str
    analysis: DocumentAnalysis
    recommendation: dict[str, str]
    record: dict[str, Any] | None = None
    issues: list[str] = field(default_factory=list)
    derived_hojas: list[ParsedHojaRemision] = field(default_factory=list)
    cross_reference: CrossReferenceReport | None = None
    saved_path: Path | None = None


# =============================================================================
# Analysis
# =============================================================================


def load_analysis(file_path: Path, from_json: bool = False, local: bool = False) -> AnalysisResult:
    """Obtain the analysis payload for ``file_path``.

    Parameters
    ----------
    file_path : Path
        Document to analyse, or a stored JSON payload with ``from_json``.
    from_json : bool, optional
        Read ``file_path`` as a stored analysis payload.
    local : bool, optional
        Use pdfplumber even when the cloud service is configured. PDFs fall
        back to pdfplumber when the service is not configured.

    Returns
    -------
    AnalysisResult
        Payload ready for the parsers.

    Raises
    ------
    FileNotFoundError
        If ``file_path`` does not exist.
    DocumentAnalysisError
        If the analysis fails, or the cloud service is needed but not
        configured.
    ValueError
        If a stored payload is not valid JSON or not a JSON object.
    """
    if not file_path.exists():
        msg = f"File not found: {file_path}"
        raise FileNotFoundError(msg)

    if from_json:
        with file_path.open(encoding="utf-8") as f:
            payload = json.load(f)
        if not isinstance(payload, dict):
            msg = f"Stored analysis must be a JSON object: {file_path.name}"
            raise ValueError(msg)
        result = AnalysisResult.from_dict(payload)
        result.metadata.setdefault("title", file_path.name)
        logger.info("Loaded stored analysis: %s", file_path)
        return result

    is_pdf = file_path.suffix.lower() == ".pdf"
    if local or (is_pdf and not is_azure_configured()):
        if not local:
            logger.warning("Azure Document Intelligence not configured, using local PDF analysis")
        if not is_pdf:
            msg = f"Local analysis only supports PDF files: {file_path.name}"
            raise DocumentAnalysisError(msg)
        return analyze_pdf_locally(file_path)

    return analyze_document(file_path)


def _process_guia(outcome: AnalyzeOutcome, result: AnalysisResult, tracker: SourceTracker, file_name: str) -> None:
    guia = parse_guia_valija(result, file_name=file_name, tracker=tracker)
    outcome.record = guia.to_dict()
    outcome.issues = validate_record(GuiaValijaSchema, outcome.record)
    outcome.derived_hojas = build_hojas_from_guia(guia)

    saved_hojas = [ParsedHojaRemision.from_dict(r) for r in load_all_records("hoja_remision")]
    outcome.cross_reference = link_items_to_hojas(guia.items, saved_hojas)


def _process_hoja(outcome: AnalyzeOutcome, result: AnalysisResult, tracker: SourceTracker) -> None:
    hoja = parse_hoja_remision(result, tracker=tracker)
    outcome.record = hoja.to_dict()
    outcome.issues = validate_record(HojaRemisionSchema, outcome.record)


def process_file(
    file_path: Path,
    doc_type: str = "auto",
    from_json: bool = False,
    local: bool = False,
    save: bool = True,
    verbose: bool = True,
) -> AnalyzeOutcome | None:
    """Run the end-to-end workflow for one file.

    Parameters
    ----------
    file_path : Path
        Document (or stored payload) to process.
    doc_type : str, optional
        ``"auto"`` to use the detected type, or ``"guia"``/``"hoja"``.
    from_json : bool, optional
        Read a stored analysis payload.
    local : bool, optional
        Force local pdfplumber analysis.
    save : bool, optional
        Persist the record and its source mapping when ``True``.
    verbose : bool, optional
        Print a human-readable report when ``True``.

    Returns
    -------
    AnalyzeOutcome | None
        Outcome when the file could be analysed; ``None`` on failure.
    """
    logger.info("=" * 60)
    logger.info("Processing %s", file_path.name)

    if not from_json:
        file_issues = validate_document_file(file_path)
        if file_issues:
            for issue in file_issues:
                logger.error("  • %s", issue)
            return None

    try:
        result = load_analysis(file_path, from_json=from_json, local=local)
    except (FileNotFoundError, DocumentAnalysisError, ValueError) as e:
        logger.error("Analysis failed for %s: %s", file_path.name, e)
        return None

    log_key_value_pairs(result)

    analysis = analyze(result)
    kind = TYPE_ALIASES.get(doc_type, analysis.tipo_documento)
    outcome = AnalyzeOutcome(
        kind=kind,
        analysis=analysis,
        recommendation=get_recommendation(kind, analysis.direccion, analysis.idioma),
    )

    tracker = SourceTracker(document=file_path.name)
    if kind == "guia_valija":
        _process_guia(outcome, result, tracker, file_path.name)
    elif kind == "hoja_remision":
        _process_hoja(outcome, result, tracker)
    else:
        logger.info("No parser for %s documents; %s", kind, outcome.recommendation["description"])

    if outcome.issues:
        logger.warning("Record needs review (%s validation issues)", len(outcome.issues))

    if save and outcome.record is not None:
        outcome.saved_path = save_record(kind, outcome.record)
        tracker.save()

    if verbose:
        print_report(outcome)

    return outcome


# =============================================================================
# Reporting
# =============================================================================


def print_report(outcome: AnalyzeOutcome) -> None:
    """Log a formatted summary of an analysed file."""
    analysis = outcome.analysis
    logger.info("=" * 60)
    logger.info("%s", outcome.recommendation["title"])
    logger.info("=" * 60)
    logger.info(
        "Idioma: %s | Tipo: %s | Dirección: %s | Confianza: %s%%",
        analysis.idioma,
        analysis.tipo_documento,
        analysis.direccion,
        round(analysis.average_confidence * 100),
    )

    if outcome.record is not None:
        for key, value in outcome.record.items():
            if isinstance(value, (list, dict)):
                continue
            logger.info("  %-22s %s", key, "" if value is None else value)
        for item in outcome.record.get("items", []):
            logger.info("  item %s: %s - %s", item["numero_item"], item["destinatario"], item["contenido"])

    for hoja in outcome.derived_hojas:
        logger.info("  HR in item %s: %s", hoja.numero_item, hoja.numero_completo)

    if outcome.cross_reference is not None:
        for item, hoja in outcome.cross_reference.links:
            logger.info("  ✓ item %s ↔ %s", item.numero_item, hoja.numero_completo)
        for item in outcome.cross_reference.unmatched_items:
            logger.warning("  ✗ item %s: %s not registered", item.numero_item, item.contenido)

    for issue in outcome.issues:
        logger.warning("  • %s", issue)

    if outcome.saved_path is not None:
        logger.info("Saved to: %s", outcome.saved_path)
    logger.info("=" * 60)


# =============================================================================
# CLI
# =============================================================================


def _run_analyze(args: argparse.Namespace) -> int:
    success_count = 0
    for file_name in args.files:
        outcome = process_file(
            Path(file_name),
            doc_type=args.type,
            from_json=args.from_json,
            local=args.local,
            save=not args.no_save,
            verbose=not args.quiet,
        )
        if outcome is None:
            continue
        if args.fail_on_invalid and outcome.issues:
            logger.error("Validation failed and --fail-on-invalid is set: %s", file_name)
            continue
        success_count += 1

    return 0 if success_count == len(args.files) else 1


def _run_export(args: argparse.Namespace) -> int:
    kind = TYPE_ALIASES[args.kind]
    records = load_all_records(kind)
    try:
        output_path = export_records(records, kind, fmt=args.format)
    except ValueError as e:
        logger.error("Export failed: %s", e)
        return 1
    logger.info("Exported to: %s", output_path)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Parse CLI flags and run the requested command.

    Returns
    -------
    int
        ``0`` when every requested file (or the export) succeeded; ``1``
        otherwise.
    """
    parser = argparse.ArgumentParser(
        description="Analyse diplomatic pouch documents and export the parsed records.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m siame.main analyze guia_24.pdf                      # Detect type automatically
  python -m siame.main analyze hr_37.pdf --type hoja            # Force Hoja de Remisión
  python -m siame.main analyze guia_24.pdf --local              # No cloud service
  python -m siame.main analyze payload.json --from-json --no-save
  python -m siame.main export --kind hoja --format csv
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser("analyze", help="Analyse and parse documents")
    analyze_parser.add_argument("files", nargs="+", help="Document(s) to process")
    analyze_parser.add_argument(
        "--type",
        "-t",
        choices=["auto", "guia", "hoja"],
        default="auto",
        help="Document type (default: detect)",
    )
    analyze_parser.add_argument("--from-json", action="store_true", help="Read stored analysis JSON payloads")
    analyze_parser.add_argument("--local", action="store_true", help="Analyse PDFs locally with pdfplumber")
    analyze_parser.add_argument("--no-save", action="store_true", help="Don't save to JSON")
    analyze_parser.add_argument("--quiet", action="store_true", help="Don't print report")
    analyze_parser.add_argument(
        "--fail-on-invalid",
        action="store_true",
        help="Exit with error if a parsed record fails validation",
    )

    export_parser = subparsers.add_parser("export", help="Export saved records to CSV or XLSX")
    export_parser.add_argument("--kind", "-k", choices=["guia", "hoja"], required=True, help="Record kind")
    export_parser.add_argument("--format", "-f", choices=["csv", "xlsx"], default="csv", help="Output format")

    args = parser.parse_args(argv)

    if args.command == "analyze":
        return _run_analyze(args)
    return _run_export(args)


if __name__ == "__main__":
    sys.exit(main())

"""Tests for the command-line orchestrator.

Stored analysis payloads (``--from-json``) are used so no cloud service is
needed; saved records are redirected to ``tmp_path``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from siame import main as cli
from siame.extractor.document_intelligence import DocumentAnalysisError
from siame.extractor.types import AnalysisResult
from siame.transformer.source_tracker import SourceTracker
from siame.writer import export_records, save_record


@pytest.fixture
def guia_json(tmp_path: Path, guia_result: AnalysisResult) -> Path:
    """Stored analysis payload of the fixture pouch manifest."""
    path = tmp_path / "guia_24.json"
    path.write_text(json.dumps(guia_result.to_dict(), ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def hoja_json(tmp_path: Path, hoja_result: AnalysisResult) -> Path:
    """Stored analysis payload of the fixture transmittal sheet."""
    path = tmp_path / "hr_37.json"
    path.write_text(json.dumps(hoja_result.to_dict(), ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def saved_hojas(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    """Replace the saved-record store with an in-memory list."""
    records: list[dict[str, Any]] = [
        {"numero_completo": "HR N°12-DAO/4", "numero": 12, "sigla_unidad": "DAO", "fecha": "2025-09-01"},
    ]
    monkeypatch.setattr(cli, "load_all_records", lambda kind: records if kind == "hoja_remision" else [])
    return records


class TestLoadAnalysis:
    """Tests for load_analysis."""

    def test_from_json(self, guia_json: Path) -> None:
        """Stored payloads are loaded and titled after the file."""
        result = cli.load_analysis(guia_json, from_json=True)

        assert result.content.startswith("GUÍA DE VALIJA")
        assert result.metadata["title"] == "guia_24.pdf"

    def test_missing_file(self, tmp_path: Path) -> None:
        """Missing files raise FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            cli.load_analysis(tmp_path / "missing.pdf")

    def test_payload_must_be_an_object(self, tmp_path: Path) -> None:
        """Stored payloads that are not JSON objects are rejected."""
        payload = tmp_path / "lista.json"
        payload.write_text("[1, 2, 3]", encoding="utf-8")

        with pytest.raises(ValueError, match="must be a JSON object"):
            cli.load_analysis(payload, from_json=True)

    def test_local_requires_pdf(self, tmp_path: Path) -> None:
        """Local analysis only reads PDFs."""
        docx = tmp_path / "nota.docx"
        docx.write_bytes(b"PK" + b"0" * 2048)

        with pytest.raises(DocumentAnalysisError, match="only supports PDF"):
            cli.load_analysis(docx, local=True)


class TestProcessFile:
    """Tests for process_file."""

    def test_guia_workflow(self, guia_json: Path, saved_hojas: list[dict[str, Any]]) -> None:
        """A manifest is detected, parsed, validated and cross-referenced."""
        outcome = cli.process_file(guia_json, from_json=True, save=False, verbose=False)

        assert outcome is not None
        assert outcome.kind == "guia_valija"
        assert outcome.recommendation["form_path"] == "/dashboard/guias-valija/new"
        assert outcome.record is not None
        assert outcome.record["numero_guia"] == "24"
        assert outcome.issues == ["numero_guia: El número debe tener al menos 3 caracteres"]
        assert [h.numero for h in outcome.derived_hojas] == [5, 12]
        assert outcome.cross_reference is not None
        assert [item.numero_item for item, _ in outcome.cross_reference.links] == [2]
        assert [item.numero_item for item in outcome.cross_reference.unmatched_items] == [1]
        assert outcome.saved_path is None

    def test_hoja_workflow(self, hoja_json: Path, saved_hojas: list[dict[str, Any]]) -> None:
        """A transmittal sheet is detected and parsed without issues."""
        outcome = cli.process_file(hoja_json, from_json=True, save=False)

        assert outcome is not None
        assert outcome.kind == "hoja_remision"
        assert outcome.record is not None
        assert outcome.record["numero_completo"] == "HR N°5-18-A/37"
        assert outcome.issues == []

    def test_forced_type(self, guia_json: Path, saved_hojas: list[dict[str, Any]]) -> None:
        """``--type`` overrides detection."""
        outcome = cli.process_file(guia_json, doc_type="hoja", from_json=True, save=False, verbose=False)

        assert outcome is not None
        assert outcome.kind == "hoja_remision"
        assert outcome.analysis.tipo_documento == "guia_valija"

    def test_saves_record_and_sources(
        self,
        guia_json: Path,
        saved_hojas: list[dict[str, Any]],
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Saving writes the record and its source mapping."""
        records_dir = tmp_path / "processed"
        audit_dir = tmp_path / "audit"
        monkeypatch.setattr(cli, "save_record", lambda kind, record: save_record(kind, record, output_dir=records_dir))
        real_save = SourceTracker.save
        monkeypatch.setattr(SourceTracker, "save", lambda self, output_dir=None: real_save(self, audit_dir))

        outcome = cli.process_file(guia_json, from_json=True, verbose=False)

        assert outcome is not None
        assert outcome.saved_path == records_dir / "guia_valija_24.json"
        mapping = json.loads((audit_dir / "source_mapping.json").read_text(encoding="utf-8"))
        assert "destinatario" in mapping["mappings"]

    def test_unreadable_payload(self, tmp_path: Path) -> None:
        """Broken JSON payloads are reported, not raised."""
        broken = tmp_path / "broken.json"
        broken.write_text("{not json", encoding="utf-8")

        assert cli.process_file(broken, from_json=True, save=False, verbose=False) is None

    def test_rejected_upload(self, tmp_path: Path) -> None:
        """Files failing upload validation are not analysed."""
        tiny = tmp_path / "guia.pdf"
        tiny.write_bytes(b"%PDF")

        assert cli.process_file(tiny, save=False, verbose=False) is None


class TestMain:
    """Tests for the CLI entry point."""

    def test_corrupt_pdf_fails_the_run(self, tmp_path: Path) -> None:
        """An unreadable PDF counts as a failed file instead of aborting."""
        corrupt = tmp_path / "guia_rota.pdf"
        corrupt.write_bytes(b"%PDF-1.7\n" + b"\x00garbage" * 400)

        assert cli.main(["analyze", str(corrupt), "--local", "--no-save", "--quiet"]) == 1

    def test_non_object_payload_fails_the_run(self, tmp_path: Path) -> None:
        """A JSON array payload counts as a failed file."""
        payload = tmp_path / "lista.json"
        payload.write_text("[]", encoding="utf-8")

        assert cli.main(["analyze", str(payload), "--from-json", "--no-save", "--quiet"]) == 1

    def test_analyze_success(self, guia_json: Path, saved_hojas: list[dict[str, Any]]) -> None:
        """Parsed files exit with 0 even when they need review."""
        assert cli.main(["analyze", str(guia_json), "--from-json", "--no-save", "--quiet"]) == 0

    def test_fail_on_invalid(self, guia_json: Path, saved_hojas: list[dict[str, Any]]) -> None:
        """``--fail-on-invalid`` turns validation issues into exit code 1."""
        argv = ["analyze", str(guia_json), "--from-json", "--no-save", "--quiet", "--fail-on-invalid"]
        assert cli.main(argv) == 1

    def test_any_failed_file_fails_the_run(
        self,
        hoja_json: Path,
        tmp_path: Path,
        saved_hojas: list[dict[str, Any]],
    ) -> None:
        """One missing file among several gives exit code 1."""
        argv = ["analyze", str(hoja_json), str(tmp_path / "missing.json"), "--from-json", "--no-save", "--quiet"]
        assert cli.main(argv) == 1

    def test_export_without_records(self, saved_hojas: list[dict[str, Any]]) -> None:
        """Exporting an empty store fails."""
        assert cli.main(["export", "--kind", "guia"]) == 1

    def test_export(self, tmp_path: Path, saved_hojas: list[dict[str, Any]], monkeypatch: pytest.MonkeyPatch) -> None:
        """Saved sheets export to the requested format."""
        monkeypatch.setattr(
            cli,
            "export_records",
            lambda records, kind, fmt: export_records(records, kind, fmt=fmt, output_dir=tmp_path),
        )

        assert cli.main(["export", "--kind", "hoja", "--format", "csv"]) == 0
        assert len(list(tmp_path.glob("hojas_remision_*.csv"))) == 1

    def test_requires_command(self) -> None:
        """A command is mandatory."""
        with pytest.raises(SystemExit):
            cli.main([])

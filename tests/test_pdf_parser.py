"""Tests for the local pdfplumber fallback."""

from __future__ import annotations

from pathlib import Path

import pytest

from siame.extractor.document_intelligence import DocumentAnalysisError
from siame.extractor.guia_valija import parse_precintos_from_tables
from siame.extractor.pdf_parser import (
    LOCAL_PAIR_CONFIDENCE,
    analyze_pdf_locally,
    extract_key_value_lines,
    table_from_rows,
)


class TestExtractKeyValueLines:
    """Tests for extract_key_value_lines."""

    def test_upper_case_labels(self) -> None:
        """``KEY: value`` lines become pairs with the local confidence."""
        text = "GUÍA DE VALIJA Nº 24\nPARA: EMBAJADA DEL PERÚ EN JAPÓN\nDE LA: DIRECCIÓN DE ASUNTOS CONSULARES\n"

        pairs = extract_key_value_lines(text)

        assert [(p.key, p.value) for p in pairs] == [
            ("PARA", "EMBAJADA DEL PERÚ EN JAPÓN"),
            ("DE LA", "DIRECCIÓN DE ASUNTOS CONSULARES"),
        ]
        assert all(p.confidence == LOCAL_PAIR_CONFIDENCE for p in pairs)

    def test_value_may_contain_colons(self) -> None:
        """Only the first colon separates the label."""
        pairs = extract_key_value_lines("HORA: 10:30")
        assert (pairs[0].key, pairs[0].value) == ("HORA", "10:30")

    def test_ordinary_sentences_ignored(self) -> None:
        """Lower-case text and lines without value are not pairs."""
        assert extract_key_value_lines("Lima, 5 de septiembre de 2025\nOBSERVACIONES:\n") == []


class TestTableFromRows:
    """Tests for table_from_rows."""

    def test_header_row_and_missing_cells(self) -> None:
        """Row 0 is the header; ``None`` cells are dropped; blanks collapse."""
        table = table_from_rows([["PRECINTO", "PRECINTO/\nCABLE"], ["A-1023", None]])

        assert table.row_count == 2
        assert table.column_count == 2
        assert [c.content for c in table.header_cells()] == ["PRECINTO", "PRECINTO/ CABLE"]
        assert table.cell_at(1, 1) is None

    def test_tables_feed_the_parsers(self) -> None:
        """Rebuilt tables work with the seal parser."""
        table = table_from_rows([["PRECINTO", "GUÍA AÉREA Nº"], ["A-1023", "045-7781"]])

        precintos = parse_precintos_from_tables([table])

        assert precintos[0].precinto == "A-1023"
        assert precintos[0].guia_aerea_numero == "045-7781"

    def test_empty_rows(self) -> None:
        """No rows gives an empty table."""
        table = table_from_rows([])
        assert (table.row_count, table.column_count, table.cells) == (0, 0, [])


class TestAnalyzePdfLocally:
    """Tests for analyze_pdf_locally."""

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing PDF raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            analyze_pdf_locally(tmp_path / "missing.pdf")

    def test_corrupt_pdf(self, tmp_path: Path) -> None:
        """Unreadable PDFs raise DocumentAnalysisError."""
        corrupt = tmp_path / "guia_rota.pdf"
        corrupt.write_bytes(b"%PDF-1.7\n" + b"\x00garbage" * 400)

        with pytest.raises(DocumentAnalysisError, match="Could not read PDF guia_rota.pdf"):
            analyze_pdf_locally(corrupt)

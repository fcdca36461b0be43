"""Tests for the Hoja de Remisión parser."""

from __future__ import annotations

from datetime import date

import pytest

from siame.extractor.hoja_remision import (
    extract_fecha,
    extract_from_tables,
    extract_numero_hoja,
    parse_hoja_remision,
)
from siame.extractor.types import AnalysisResult, ParsedHojaRemision
from siame.transformer.source_tracker import SourceTracker
from tests.conftest import make_pairs, make_table


class TestExtractNumeroHoja:
    """Tests for extract_numero_hoja."""

    def test_number_and_acronym_from_key(self) -> None:
        """The acronym comes from the key, the number from the value."""
        pairs = make_pairs([("HOJA DE REMISIÓN (DAO) Nº", "5-18-A / 37")])

        assert extract_numero_hoja(pairs, None) == ("HR N°5-18-A/37", 5, "DAO")

    def test_key_without_parentheses(self) -> None:
        """No parenthesised acronym means no acronym."""
        pairs = make_pairs([("HOJA DE REMISION Nº", "88-2025")])

        numero_completo, numero, sigla = extract_numero_hoja(pairs, None)

        assert numero_completo == "HR N°88-2025"
        assert numero == 88
        assert sigla is None

    def test_falls_back_to_content(self) -> None:
        """Without the key the ``HR Nº`` marker in the text is used."""
        numero_completo, numero, sigla = extract_numero_hoja([], "Adjunto HR Nº 12-DAO/ 4 del mes")

        assert numero_completo == "HR N°12-DAO"
        assert numero == 12
        assert sigla is None

    def test_nothing_found(self) -> None:
        """No key and no marker gives an empty number."""
        assert extract_numero_hoja([], "Oficio sin número") == ("", 0, None)

    def test_tracker_records_key(self) -> None:
        """The number is traced to the key it came from."""
        tracker = SourceTracker(document="hr.pdf")
        pairs = make_pairs([("HOJA DE REMISIÓN (DAO) Nº", "5-18-A / 37")], confidence=0.85)

        extract_numero_hoja(pairs, None, tracker=tracker)

        source = tracker.get_primary_source("numero_completo")
        assert source is not None
        assert source.source_type == "key_value"
        assert source.confidence == 0.85
        assert tracker.get_primary_source("sigla_unidad") is not None


class TestExtractFecha:
    """Tests for extract_fecha."""

    def test_leading_city_removed(self) -> None:
        """``Lima, 5 de septiembre de 2025`` parses to the date."""
        pairs = make_pairs([("FECHA:", "Lima, 5 de septiembre de 2025")])
        assert extract_fecha(pairs) == date(2025, 9, 5)

    def test_numeric_date(self) -> None:
        """Numeric dates are accepted too."""
        pairs = make_pairs([("FECHA DE EMISIÓN", "05/09/2025")])
        assert extract_fecha(pairs) == date(2025, 9, 5)

    def test_missing_or_unparseable(self) -> None:
        """Absent or unreadable dates give None."""
        assert extract_fecha([]) is None
        assert extract_fecha(make_pairs([("FECHA:", "pendiente")])) is None


class TestExtractFromTables:
    """Tests for extract_from_tables."""

    def test_values_below_headers(self, hoja_result: AnalysisResult) -> None:
        """Each value is the row-1 cell under its header."""
        found = extract_from_tables(hoja_result.tables)

        assert found == {
            "documento": "OF. RE (DAO) Nº 2-5-A/123",
            "asunto": "Remite pasaportes renovados del mes de agosto",
            "destino": "EMBAJADA EN TOKIO",
        }

    def test_missing_columns(self) -> None:
        """Absent headers and blank cells give None."""
        table = make_table([["DOCUMENTO", "ASUNTO"], ["OF. 123", "  "]])

        found = extract_from_tables([table])

        assert found["documento"] == "OF. 123"
        assert found["asunto"] is None
        assert found["destino"] is None

    def test_no_tables(self) -> None:
        """Documents without tables give all None."""
        assert extract_from_tables([]) == {"documento": None, "asunto": None, "destino": None}

    def test_tracker_records_cells(self, hoja_result: AnalysisResult) -> None:
        """Table values are traced to their cell."""
        tracker = SourceTracker(document="hr_37.pdf")
        extract_from_tables(hoja_result.tables, tracker=tracker)

        source = tracker.get_primary_source("destino")
        assert source is not None
        assert source.source_type == "table_cell"
        assert source.location == "table 0, row 1, column 2"


class TestParseHojaRemision:
    """Tests for parse_hoja_remision."""

    def test_full_record(self, hoja_result: AnalysisResult) -> None:
        """Every field is recovered from pairs and the table."""
        hoja = parse_hoja_remision(hoja_result)

        assert hoja.numero_completo == "HR N°5-18-A/37"
        assert hoja.numero == 5
        assert hoja.sigla_unidad == "DAO"
        assert hoja.fecha == date(2025, 9, 5)
        assert hoja.para == "EMBAJADA DEL PERÚ EN JAPÓN"
        assert hoja.remitente == "DIRECCIÓN DE ASUNTOS CONSULARES"
        assert hoja.referencia == "Memorándum 45-2025"
        assert hoja.documento == "OF. RE (DAO) Nº 2-5-A/123"
        assert hoja.asunto == "Remite pasaportes renovados del mes de agosto"
        assert hoja.destino == "EMBAJADA EN TOKIO"
        assert hoja.peso == pytest.approx(1.25)
        assert hoja.origen == "documento"

    def test_confidence_scores(self, hoja_result: AnalysisResult) -> None:
        """Scores reflect how each field was obtained."""
        confidence = parse_hoja_remision(hoja_result).confidence

        assert confidence["numero_completo"] == pytest.approx(0.9)
        assert confidence["numero"] == pytest.approx(0.9)
        assert confidence["sigla_unidad"] == pytest.approx(0.8)
        assert confidence["fecha"] == pytest.approx(0.7)
        assert confidence["referencia"] == pytest.approx(0.6)
        assert confidence["documento"] == pytest.approx(0.9)
        assert confidence["asunto"] == pytest.approx(0.9)

    def test_pairs_used_when_no_table(self) -> None:
        """DOCUMENTO/ASUNTO/DESTINO fall back to pairs with a lower score."""
        result = AnalysisResult(
            content="HR Nº 12-DAO/ 4",
            key_value_pairs=make_pairs([("ASUNTO:", "Remite documentación consular")]),
        )

        hoja = parse_hoja_remision(result)

        assert hoja.asunto == "Remite documentación consular"
        assert hoja.confidence["asunto"] == pytest.approx(0.6)
        assert hoja.confidence["documento"] == 0.0

    def test_default_acronym(self) -> None:
        """Without an acronym the configured default is used at low confidence."""
        hoja = parse_hoja_remision(AnalysisResult(content="HR Nº 12-DAO/ 4"))

        assert hoja.numero_completo == "HR N°12-DAO"
        assert hoja.sigla_unidad == "HH"
        assert hoja.confidence["sigla_unidad"] == pytest.approx(0.5)
        assert hoja.fecha is None
        assert hoja.confidence["fecha"] == 0.0

    def test_to_dict_round_trip(self, hoja_result: AnalysisResult) -> None:
        """Saved records can be rebuilt with from_dict."""
        hoja = parse_hoja_remision(hoja_result)
        data = hoja.to_dict()

        assert data["fecha"] == "2025-09-05"
        assert ParsedHojaRemision.from_dict(data) == hoja

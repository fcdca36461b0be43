"""Tests for linking pouch items to transmittal sheets."""

from __future__ import annotations

from datetime import date

import pytest

from siame.extractor.cross_reference import (
    build_hojas_from_guia,
    extract_hr_numero_from_contenido,
    link_items_to_hojas,
)
from siame.extractor.guia_valija import parse_guia_valija
from siame.extractor.types import AnalysisResult, GuiaValijaItem, ParsedHojaRemision


class TestExtractHrNumero:
    """Tests for extract_hr_numero_from_contenido."""

    def test_reference_without_acronym(self) -> None:
        """A number-only HR has no acronym."""
        reference = extract_hr_numero_from_contenido("HR Nº5-18-A/ 46 PAQUETE")

        assert reference is not None
        assert reference.numero == 5
        assert reference.sigla_unidad is None
        assert reference.numero_completo == "HR Nº5-18-A/ 46 PAQUETE"

    def test_reference_with_acronym(self) -> None:
        """Two to four letters before the slash are the unit acronym."""
        reference = extract_hr_numero_from_contenido("HR N°12-DAO/ 4 SOBRE")

        assert reference is not None
        assert reference.numero == 12
        assert reference.sigla_unidad == "DAO"

    @pytest.mark.parametrize("contenido", ["CAJA MEDICINAS", "", None, "ENVÍO HR Nº 5"])
    def test_not_a_reference(self, contenido: str | None) -> None:
        """Only contents that start with an HR number count."""
        assert extract_hr_numero_from_contenido(contenido) is None


class TestBuildHojasFromGuia:
    """Tests for build_hojas_from_guia."""

    def test_drafts_from_hr_items(self, guia_result: AnalysisResult) -> None:
        """One draft per HR item, filled from the item and the manifest."""
        guia = parse_guia_valija(guia_result)

        hojas = build_hojas_from_guia(guia)

        assert [h.numero for h in hojas] == [5, 12]
        first, second = hojas
        assert first.para == "EMBAJADA EN JAPÓN"
        assert first.remitente == "DGC"
        assert first.fecha == date(2025, 9, 5)
        assert first.destino == "TOKIO"
        assert first.peso == pytest.approx(2.5)
        assert first.origen == "guia_valija_item"
        assert first.numero_item == 1
        assert second.sigla_unidad == "DAO"
        assert second.numero_item == 2

    def test_missing_item_sender_uses_manifest_sender(self, guia_result: AnalysisResult) -> None:
        """Items without REMITENTE inherit the manifest sender."""
        hojas = build_hojas_from_guia(parse_guia_valija(guia_result))
        assert hojas[1].remitente == "UNIDAD DE VALIJA DIPLOMÁTICA - LIMA"


class TestLinkItemsToHojas:
    """Tests for link_items_to_hojas."""

    def test_matching_ignores_spacing_and_trailing_text(self) -> None:
        """``HR Nº5-18-A/ 47 PAQUETE`` matches the sheet ``HR N°5-18-A/47``."""
        item = GuiaValijaItem(numero_item=1, destinatario="EMBAJADA", contenido="HR Nº5-18-A/ 47 PAQUETE")
        hoja = ParsedHojaRemision(numero_completo="HR N°5-18-A/47", numero=5, sigla_unidad="DAO")

        report = link_items_to_hojas([item], [hoja])

        assert report.links == [(item, hoja)]
        assert report.all_linked

    def test_count_after_number_is_not_part_of_reference(self) -> None:
        """A quantity after the sheet number does not change the match."""
        item = GuiaValijaItem(numero_item=1, destinatario="EMBAJADA", contenido="HR Nº5-18-A/ 47 3 SOBRES")
        hojas = [
            ParsedHojaRemision(numero_completo="HR N°5-18-A/473", numero=5, sigla_unidad=None),
            ParsedHojaRemision(numero_completo="HR N°5-18-A/47", numero=5, sigla_unidad=None),
        ]

        report = link_items_to_hojas([item], hojas)

        assert report.links == [(item, hojas[1])]
        assert report.unmatched_items == []

    def test_unmatched_and_plain_items(self) -> None:
        """Unknown references are reported; plain items are ignored."""
        items = [
            GuiaValijaItem(numero_item=1, contenido="HR Nº5-18-A/ 46 PAQUETE"),
            GuiaValijaItem(numero_item=2, contenido="CAJA MEDICINAS"),
        ]
        hoja = ParsedHojaRemision(numero_completo="HR N°5-18-A/37", numero=5, sigla_unidad="DAO")

        report = link_items_to_hojas(items, [hoja])

        assert report.links == []
        assert report.unmatched_items == [items[0]]
        assert not report.all_linked

    def test_no_sheets(self) -> None:
        """Without sheets every HR item is unmatched."""
        items = [GuiaValijaItem(numero_item=1, contenido="HR N°12-DAO/ 4 SOBRE")]
        assert link_items_to_hojas(items, []).unmatched_items == items

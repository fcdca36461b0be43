"""Cross-references between pouch items and transmittal sheets.

Items of a Guía de Valija often stand for a Hoja de Remisión travelling in
the pouch; their content then starts with the sheet number, for example
``"HR Nº5-18-A/ 47 PAQUETE"``. This module recognises those references,
derives draft transmittal-sheet records from them, and links items to
already parsed sheets.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from siame.config import setup_logging
from siame.extractor.types import GuiaValijaItem, ParsedGuiaValija, ParsedHojaRemision

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = setup_logging(__name__)

_HR_PREFIX = re.compile(r"^\s*HR\s*N\s*[º°]\s*(\d+)([^/]*)", re.IGNORECASE)
_SIGLA = re.compile(r"HR\s*N\s*[º°]\s*\d+[^/]*-([A-Z]{2,4})\s*(?:/|$)", re.IGNORECASE)
_REFERENCE_KEY = re.compile(r"^\s*HR\s*N\s*[º°]\s*(\d[^/]*?)\s*/\s*(\d+)", re.IGNORECASE)


@dataclass
class HojaReference:
    """An HR reference found in an item's content."""

    numero_completo: str
    numero: int
    sigla_unidad: str | None


@dataclass
class CrossReferenceReport:
    """Outcome of linking pouch items to transmittal sheets."""

    links: list[tuple[GuiaValijaItem, ParsedHojaRemision]] = field(default_factory=list)
    unmatched_items: list[GuiaValijaItem] = field(default_factory=list)

    @property
    def all_linked(self) -> bool:
        """Whether every HR-referencing item found its sheet."""
        return not self.unmatched_items


def extract_hr_numero_from_contenido(contenido: str | None) -> HojaReference | None:
    """Recognise an item content that starts with an HR number.

    Examples
    --------
    - "HR N°5-18-A/ 46" -> numero 5, sigla None
    - "HR N°12-DAO/ 4 SOBRE" -> numero 12, sigla "DAO"
    - "CAJA MEDICINAS" -> None
    """
    if not contenido:
        return None

    match = _HR_PREFIX.match(contenido)
    if not match:
        return None

    sigla_match = _SIGLA.search(contenido)
    return HojaReference(
        numero_completo=contenido.strip(),
        numero=int(match.group(1)),
        sigla_unidad=sigla_match.group(1).upper() if sigla_match else None,
    )


def _reference_key(numero_completo: str) -> str:
    """Canonical form used to compare HR numbers.

    Only the ``<num>.../<num>`` prefix is kept, without blanks, so
    ``"HR Nº5-18-A/ 47 3 SOBRES"`` and ``"HR N°5-18-A/47"`` compare equal.
    """
    match = _REFERENCE_KEY.match(numero_completo)
    if match:
        prefix = re.sub(r"\s+", "", match.group(1)).upper()
        return f"{prefix}/{match.group(2)}"
    return re.sub(r"\s+", "", numero_completo).upper().replace("º", "°")


def build_hojas_from_guia(guia: ParsedGuiaValija) -> list[ParsedHojaRemision]:
    """Derive draft transmittal sheets from the HR items of a pouch manifest.

    Each draft takes its recipient, sender and weight from the item and its
    date and destination from the manifest. Items without an HR reference
    are ignored.
    """
    hojas: list[ParsedHojaRemision] = []
    for item in guia.items:
        reference = extract_hr_numero_from_contenido(item.contenido)
        if reference is None:
            continue

        hojas.append(
            ParsedHojaRemision(
                numero_completo=reference.numero_completo,
                numero=reference.numero,
                sigla_unidad=reference.sigla_unidad,
                fecha=guia.fecha_envio,
                para=item.destinatario or None,
                remitente=item.remitente or guia.remitente_nombre,
                destino=guia.destino_ciudad,
                peso=item.peso,
                origen="guia_valija_item",
                numero_item=item.numero_item,
            ),
        )

    logger.info("Derived %s hojas de remisión from guía Nº%s", len(hojas), guia.numero_guia or "?")
    return hojas


def link_items_to_hojas(
    items: Iterable[GuiaValijaItem],
    hojas: Iterable[ParsedHojaRemision],
) -> CrossReferenceReport:
    """Pair each HR-referencing item with the sheet that has the same number.

    Items whose content is not an HR reference are skipped; referencing items
    with no matching sheet are reported as unmatched.
    """
    by_key: dict[str, ParsedHojaRemision] = {}
    for hoja in hojas:
        if hoja.numero_completo:
            by_key.setdefault(_reference_key(hoja.numero_completo), hoja)

    report = CrossReferenceReport()
    for item in items:
        reference = extract_hr_numero_from_contenido(item.contenido)
        if reference is None:
            continue
        hoja = by_key.get(_reference_key(reference.numero_completo))
        if hoja is None:
            report.unmatched_items.append(item)
        else:
            report.links.append((item, hoja))

    if report.unmatched_items:
        logger.warning(
            "%s items reference an HR that was not found: %s",
            len(report.unmatched_items),
            ", ".join(item.contenido for item in report.unmatched_items),
        )
    return report

"""Guía de Valija (diplomatic pouch manifest) parser.

Turns the key-value pairs, tables and raw content returned by the document
analysis service into a :class:`ParsedGuiaValija`:

* header fields (recipient, sender, dates, weights, item count, signatures)
  come from key-value pairs, looked up through the aliases configured in
  ``extraction_specs.json``;
* the guide number comes from the raw content;
* the seals table (index 0) and the items table (index 1) are read by
  column header;
* direction, cities and countries are inferred from sender and recipient.

Persistence is not done here: callers receive the record and decide where
to store it.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from siame.config import (
    get_city_catalogue,
    get_extraction_specs,
    get_key_aliases,
    get_pouch_office_markers,
    setup_logging,
)
from siame.extractor.types import (
    AnalysisResult,
    AnalysisTable,
    GuiaValijaItem,
    GuiaValijaPrecinto,
    KeyValuePair,
    ParsedGuiaValija,
)
from siame.transformer.normalizer import normalize_column_name, table_to_dataframe
from siame.utils.parsing import (
    extract_peso,
    normalize_key,
    parse_fecha,
    parse_int,
    parse_peso_oficial,
    strip_accents,
    truncate,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from siame.transformer.source_tracker import SourceTracker

logger = setup_logging(__name__)

RECORD = "guia_valija"
ITEMS_TABLE_INDEX = 1
PRECINTOS_TABLE_INDEX = 0

# Keys shorter than this (after normalization) only match exactly, so that
# "DE" does not match "FECHA DE ENVIO".
_MIN_PARTIAL_KEY_LENGTH = 3

_NUMBER_MARKER = r"(?:\bN\s*[º°]|\bNO\b\.?|\bNRO\b\.?|#)\s*[:.]?\s*(\d+)"
_GUIA_HEADER_NUMBER = re.compile(r"GU[IÍ]A\s+DE\s+VALIJA[^\n]*?" + _NUMBER_MARKER, re.IGNORECASE)
_ANY_NUMBER = re.compile(_NUMBER_MARKER, re.IGNORECASE)


# =============================================================================
# Key-Value Lookup
# =============================================================================


def _key_phrase(text: str) -> str:
    """Lower-case, accent-free words of a key, padded for whole-word search."""
    words = re.findall(r"\w+", strip_accents(text).lower())
    return f" {' '.join(words)} "


def find_pair(pairs: Iterable[KeyValuePair], search_key: str) -> KeyValuePair | None:
    """Find the pair whose key best matches ``search_key``.

    Keys are compared after :func:`normalize_key` (case, accents, colons and
    whitespace ignored). An exact match wins; otherwise the shortest key whose
    words contain, or are contained in, the search key's words (``"PARA"``
    does not match ``"Preparado Por"``). Pairs with an empty value are
    ignored.

    Parameters
    ----------
    pairs
        Key-value pairs from the analysis result.
    search_key
        Label as printed on the form, e.g. ``"FECHA DE ENVIO"``.

    Returns
    -------
    KeyValuePair | None
        Best matching pair, or ``None``.
    """
    wanted = normalize_key(search_key)
    if not wanted:
        return None
    wanted_phrase = _key_phrase(search_key)

    partial: list[tuple[int, KeyValuePair]] = []
    for pair in pairs:
        if not pair.value or not pair.value.strip():
            continue
        key = normalize_key(pair.key)
        if not key:
            continue
        if key == wanted:
            return pair
        if min(len(key), len(wanted)) < _MIN_PARTIAL_KEY_LENGTH:
            continue
        key_phrase = _key_phrase(pair.key)
        if wanted_phrase in key_phrase or key_phrase in wanted_phrase:
            partial.append((len(key), pair))

    if not partial:
        return None
    return min(partial, key=lambda entry: entry[0])[1]


def find_key_value(pairs: Iterable[KeyValuePair] | None, search_key: str) -> str | None:
    """Return the stripped value for ``search_key``, or ``None`` if absent."""
    if not pairs:
        return None
    pair = find_pair(pairs, search_key)
    return pair.value.strip() if pair else None


def find_first_key_value(
    pairs: Iterable[KeyValuePair] | None,
    aliases: Iterable[str],
    *,
    field_name: str | None = None,
    tracker: SourceTracker | None = None,
) -> str | None:
    """Return the value of the first alias present in ``pairs``.

    Parameters
    ----------
    pairs
        Key-value pairs from the analysis result.
    aliases
        Labels to try, in priority order.
    field_name
        Record field being filled; required to record provenance.
    tracker
        Optional provenance tracker.
    """
    if not pairs:
        return None
    pair_list = list(pairs)
    for alias in aliases:
        pair = find_pair(pair_list, alias)
        if pair is None:
            continue
        if tracker is not None and field_name:
            tracker.add_source(
                field_name,
                "key_value",
                f"key '{pair.key}'",
                confidence=pair.confidence if pair.confidence is not None else 1.0,
                raw_value=pair.value,
            )
        return pair.value.strip()
    return None


# =============================================================================
# Field Normalizers
# =============================================================================


def extract_numero_guia(text: str | None) -> str:
    """Extract the guide number from document text.

    Numbers next to the "GUÍA DE VALIJA" heading are preferred; otherwise
    the first ``Nº``/``N°``/``NO``/``#`` marker is used. The digits are
    returned as printed (no padding).

    Examples
    --------
    - "GUÍA DE VALIJA DIPLOMÁTICA Nº 24 ENTRADA" -> "24"
    - "Nº 12 - GUÍA DE VALIJA" -> "12"
    - "SIN NÚMERO DE GUÍA" -> ""
    """
    if not text:
        return ""

    match = _GUIA_HEADER_NUMBER.search(text) or _ANY_NUMBER.search(text)
    return match.group(1) if match else ""


def determinar_tipo_valija(remitente: str, destinatario: str) -> str:
    """Determine whether the pouch is inbound (ENTRADA) or outbound (SALIDA).

    The pouch office sending means SALIDA; the pouch office receiving means
    ENTRADA. When neither side mentions it the pouch is assumed SALIDA.
    """
    markers = [strip_accents(m).upper() for m in get_pouch_office_markers()]
    sender = strip_accents(remitente or "").upper()
    recipient = strip_accents(destinatario or "").upper()

    if any(marker in sender for marker in markers):
        return "SALIDA"
    if any(marker in recipient for marker in markers):
        return "ENTRADA"
    return str(get_extraction_specs().get("defaults", {}).get(RECORD, {}).get("tipo_valija", "SALIDA"))


def extract_ciudad(texto: str | None) -> str | None:
    """Return the first known city named in ``texto``.

    Longer names are tried first so multi-word cities win over shorter ones,
    and matches must fall on word boundaries.

    Examples
    --------
    - "LEPRU TOKIO" -> "TOKIO"
    - "Consulado General en São Paulo" -> "SAO PAULO"
    """
    if not texto:
        return None

    upper = strip_accents(texto).upper()
    for ciudad in sorted(get_city_catalogue(), key=len, reverse=True):
        if re.search(rf"\b{re.escape(ciudad)}\b", upper):
            return ciudad
    return None


def get_pais_from_ciudad(ciudad: str) -> str:
    """Map a city to its country; ``DESCONOCIDO`` when it is not catalogued."""
    upper = strip_accents(ciudad or "").upper()
    for city_key, pais in get_city_catalogue().items():
        if city_key in upper:
            return pais
    return str(get_extraction_specs().get("defaults", {}).get(RECORD, {}).get("pais", "DESCONOCIDO"))


# =============================================================================
# Tables
# =============================================================================


def _item_column_role(header: str) -> str | None:
    """Map an items-table header to the item attribute it holds."""
    name = normalize_column_name(header)
    if "destinatario" in name:
        return "destinatario"
    if "contenido" in name:
        return "contenido"
    if "remitente" in name:
        return "remitente"
    if name.startswith("can"):
        return "cantidad"
    if "peso" in name:
        return "peso"
    if name in {"n", "no", "nro", "item"} or name.startswith("no_") or "numero" in name:
        return "numero_item"
    return None


def _precinto_column_role(header: str) -> str | None:
    """Map a seals-table header to the seal attribute it holds."""
    name = normalize_column_name(header)
    if "precinto" in name and "cable" in name:
        return "precinto_cable"
    if "precinto" in name:
        return "precinto"
    if "bolsa" in name:
        return "numero_bolsa_tamano"
    if "guia" in name or "aerea" in name:
        return "guia_aerea_numero"
    return None


def parse_items_from_tables(tables: list[AnalysisTable] | None) -> list[GuiaValijaItem]:
    """Parse pouch items from the second table of the document.

    Rows with neither recipient nor content are skipped. When the item
    number cell is empty the table row index is used instead.

    Parameters
    ----------
    tables
        All tables from the analysis result.

    Returns
    -------
    list[GuiaValijaItem]
        Items in table order.
    """
    if not tables or len(tables) <= ITEMS_TABLE_INDEX:
        return []

    df = table_to_dataframe(tables[ITEMS_TABLE_INDEX])
    roles = {column: _item_column_role(column) for column in df.columns}

    items: list[GuiaValijaItem] = []
    for row_index, row in df.iterrows():
        values: dict[str, str] = {}
        for column, role in roles.items():
            if role and role not in values:
                values[role] = row[column]

        destinatario = values.get("destinatario", "")
        contenido = values.get("contenido", "")
        if not destinatario and not contenido:
            continue

        items.append(
            GuiaValijaItem(
                numero_item=parse_int(values.get("numero_item")) or int(row_index),
                destinatario=destinatario,
                contenido=contenido,
                remitente=values.get("remitente") or None,
                cantidad=parse_int(values.get("cantidad")),
                peso=extract_peso(values.get("peso")),
            ),
        )

    logger.debug("Parsed %s items from table %s", len(items), ITEMS_TABLE_INDEX)
    return items


def parse_precintos_from_tables(tables: list[AnalysisTable] | None) -> list[GuiaValijaPrecinto]:
    """Parse security seals from the first table of the document."""
    if not tables or len(tables) <= PRECINTOS_TABLE_INDEX:
        return []

    df = table_to_dataframe(tables[PRECINTOS_TABLE_INDEX])
    roles = {column: _precinto_column_role(column) for column in df.columns}

    precintos: list[GuiaValijaPrecinto] = []
    for _, row in df.iterrows():
        precinto = GuiaValijaPrecinto()
        for column, role in roles.items():
            if role and row[column] and getattr(precinto, role) is None:
                setattr(precinto, role, row[column])
        if precinto.has_data():
            precintos.append(precinto)

    logger.debug("Parsed %s precintos from table %s", len(precintos), PRECINTOS_TABLE_INDEX)
    return precintos


# =============================================================================
# Record Assembly
# =============================================================================


def parse_guia_valija(
    result: AnalysisResult,
    file_name: str | None = None,
    tracker: SourceTracker | None = None,
) -> ParsedGuiaValija:
    """Build a Guía de Valija record from an analysis result.

    Parameters
    ----------
    result
        Output of the document analysis service.
    file_name
        Uploaded file name, kept on the record.
    tracker
        Optional provenance tracker filled with one entry per field.

    Returns
    -------
    ParsedGuiaValija
        Record with every field the document allowed to recover. Fields the
        OCR output does not contain stay ``None``.
    """
    pairs = result.key_value_pairs
    defaults = get_extraction_specs().get("defaults", {}).get(RECORD, {})

    def lookup(field_name: str) -> str | None:
        return find_first_key_value(
            pairs,
            get_key_aliases(RECORD, field_name),
            field_name=field_name,
            tracker=tracker,
        )

    def fallback(field_name: str, value: str) -> str:
        if tracker is not None:
            tracker.add_source(field_name, "default", "extraction_specs.defaults", confidence=0.0, raw_value=value)
        return value

    destinatario = lookup("destinatario") or fallback("destinatario", defaults.get("destinatario", "DESCONOCIDO"))
    remitente = lookup("remitente") or fallback("remitente", defaults.get("remitente", "UNIDAD DE VALIJA DIPLOMÁTICA"))

    numero_guia = extract_numero_guia(result.content or remitente or destinatario)
    if tracker is not None and numero_guia:
        tracker.add_source("numero_guia", "content", "guide number marker", raw_value=numero_guia)

    fecha_envio_str = lookup("fecha_envio")
    fecha_recibo_str = lookup("fecha_recibo")
    total_items_str = lookup("total_items")
    peso_total_str = lookup("peso_total")
    peso_oficial_str = lookup("peso_oficial")

    origen_ciudad = extract_ciudad(remitente)
    destino_ciudad = extract_ciudad(destinatario)

    guia = ParsedGuiaValija(
        numero_guia=numero_guia,
        tipo_valija=determinar_tipo_valija(remitente, destinatario),
        destinatario_nombre=destinatario,
        remitente_nombre=remitente,
        fecha_envio=parse_fecha(fecha_envio_str),
        fecha_recibo=parse_fecha(fecha_recibo_str),
        origen_ciudad=origen_ciudad,
        destino_ciudad=destino_ciudad,
        origen_pais=get_pais_from_ciudad(origen_ciudad) if origen_ciudad else None,
        destino_pais=get_pais_from_ciudad(destino_ciudad) if destino_ciudad else None,
        peso_valija=extract_peso(peso_total_str),
        peso_oficial=parse_peso_oficial(peso_oficial_str),
        numero_paquetes=parse_int(total_items_str),
        observaciones=lookup("observaciones"),
        preparado_por=lookup("preparado_por"),
        revisado_por=lookup("revisado_por"),
        firma_receptor=lookup("firma_receptor"),
        items=parse_items_from_tables(result.tables),
        precintos=parse_precintos_from_tables(result.tables),
        file_name=file_name,
        contenido_texto=result.content,
        pares_clave_valor=list(pairs),
        tablas=list(result.tables),
    )

    if fecha_envio_str and guia.fecha_envio is None:
        logger.warning("Unparseable FECHA DE ENVIO: %s", fecha_envio_str)
    if fecha_recibo_str and guia.fecha_recibo is None:
        logger.warning("Unparseable FECHA DE RECIBO: %s", fecha_recibo_str)

    logger.info(
        "Parsed Guía de Valija Nº%s (%s): %s items, %s precintos, destinatario=%s",
        guia.numero_guia or "?",
        guia.tipo_valija,
        len(guia.items),
        len(guia.precintos),
        truncate(guia.destinatario_nombre),
    )
    return guia

"""Writer module for JSON records and CSV/XLSX exports.

Record naming convention: guia_valija_24.json, hoja_remision_5-18-A_37.json
Export naming convention: guias_valija_20250905_142310.xlsx
"""

from siame.writer.record_writer import (
    export_records,
    list_saved_records,
    load_all_records,
    load_record,
    load_record_json,
    record_identifier,
    records_to_dataframe,
    save_record,
)

__all__ = [
    "export_records",
    "list_saved_records",
    "load_all_records",
    "load_record",
    "load_record_json",
    "record_identifier",
    "records_to_dataframe",
    "save_record",
]

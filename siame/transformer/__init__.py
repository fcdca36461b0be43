"""Transformer module for table normalization and source tracking.

Submodules
----------
normalizer
    Pandas-based table normalization.
    Turns analysed tables into DataFrames with unique header labels.
source_tracker
    Provenance tracking for audit trails.
    Records which key-value pair, table cell or pattern each field came from.
"""

# Normalizer for analysed tables
from siame.transformer.normalizer import normalize_column_name, table_headers, table_to_dataframe

# Source tracking for audit trails
from siame.transformer.source_tracker import SOURCE_TYPES, SourceInfo, SourceTracker

__all__ = [
    "SOURCE_TYPES",
    "SourceInfo",
    "SourceTracker",
    "normalize_column_name",
    "table_headers",
    "table_to_dataframe",
]

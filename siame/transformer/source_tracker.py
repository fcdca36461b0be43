"""Source tracking for audit and provenance.

This module tracks the origin of each extracted field for audit purposes.
Every field can be traced back to its source: an OCR key-value pair, a table
cell, a pattern match on the raw content, or a configured default.

Classes
-------
SourceInfo
    Dataclass holding source metadata (type, location, confidence, raw value).
SourceTracker
    Aggregates SourceInfo entries per field and persists to JSON.

Notes
-----
Source mappings are saved to audit/{document}/source_mapping.json, so that
an operator can see why a field holds the value it does before confirming a
record.
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from siame.config import AUDIT_DIR, setup_logging

if TYPE_CHECKING:
    from pathlib import Path

# Module logger for source tracking operations
logger = setup_logging(__name__)

SOURCE_TYPES = ("key_value", "table_cell", "content", "default")


@dataclass
class SourceInfo:
    """Information about where a field value came from.

    Attributes
    ----------
    source_type : str
        One of "key_value", "table_cell", "content" or "default".
    location : str
        Lookup key for pairs ("key 'PARA'"), cell coordinates for tables
        ("table 1, row 2, column 0"), or the pattern name for content.
    confidence : float
        Confidence score from 0.0 to 1.0. OCR pair confidence when known.
    timestamp : str
        ISO 8601 timestamp when source was recorded.
    raw_value : str or None
        Original extracted string before parsing/normalization.
    """

    source_type: str
    location: str
    confidence: float = 1.0
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    raw_value: str | None = None


@dataclass
class SourceTracker:
    """Track field sources for one analysed document.

    Maintains a mapping from field names to their source information.
    Supports multiple sources per field (e.g. table cell and key-value pair).

    Attributes
    ----------
    document : str
        Document identifier, usually the uploaded file name.
    mappings : dict[str, list[SourceInfo]]
        Field name to list of sources.
    """

    document: str
    mappings: dict[str, list[SourceInfo]] = field(default_factory=dict)

    def add_source(
        self,
        field_name: str,
        source_type: str,
        location: str,
        confidence: float = 1.0,
        raw_value: str | None = None,
    ) -> None:
        """Add a source mapping for a field.

        Parameters
        ----------
        field_name : str
            Name of the record field (e.g., "numero_guia").
        source_type : str
            One of ``SOURCE_TYPES``.
        location : str
            Where the value was found.
        confidence : float, optional
            Confidence score. Default 1.0.
        raw_value : str or None, optional
            Raw extracted value before normalization.

        Raises
        ------
        ValueError
            If ``source_type`` is not a known source type.
        """
        if source_type not in SOURCE_TYPES:
            msg = f"Unknown source type: {source_type}. Must be one of {', '.join(SOURCE_TYPES)}"
            raise ValueError(msg)

        source = SourceInfo(
            source_type=source_type,
            location=location,
            confidence=confidence,
            raw_value=raw_value,
        )

        self.mappings.setdefault(field_name, []).append(source)
        logger.debug("Added source for '%s': %s @ %s", field_name, source_type, location)

    def get_primary_source(self, field_name: str) -> SourceInfo | None:
        """Get the primary (highest confidence) source for a field.

        Notes
        -----
        Ties prefer table cells, then key-value pairs, then content matches.
        """
        sources = self.mappings.get(field_name, [])
        if not sources:
            return None

        rank = {"table_cell": 3, "key_value": 2, "content": 1, "default": 0}
        return max(sources, key=lambda s: (s.confidence, rank.get(s.source_type, 0)))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "document": self.document,
            "generated_at": datetime.now(UTC).isoformat(),
            "mappings": {
                name: [asdict(s) for s in sources] for name, sources in self.mappings.items()
            },
        }

    def save(self, output_dir: Path | None = None) -> Path:
        """Save source mappings to the audit directory.

        Parameters
        ----------
        output_dir : Path or None, optional
            Directory to save to. Defaults to AUDIT_DIR/{document}.

        Returns
        -------
        Path
            Path to saved JSON file.
        """
        safe_document = re.sub(r"[^\w.-]+", "_", self.document)
        save_dir = output_dir if output_dir is not None else AUDIT_DIR / safe_document
        save_dir.mkdir(parents=True, exist_ok=True)
        filepath = save_dir / "source_mapping.json"

        # Write with UTF-8 encoding for Spanish characters
        with filepath.open("w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

        logger.info("Saved source mapping to: %s", filepath)
        return filepath

    @classmethod
    def load(cls, filepath: Path) -> SourceTracker:
        """Load a source tracker from a ``source_mapping.json`` file."""
        with filepath.open(encoding="utf-8") as f:
            data = json.load(f)

        tracker = cls(document=data["document"])

        for field_name, sources in data.get("mappings", {}).items():
            for source_data in sources:
                tracker.add_source(
                    field_name=field_name,
                    source_type=source_data["source_type"],
                    location=source_data["location"],
                    confidence=source_data.get("confidence", 1.0),
                    raw_value=source_data.get("raw_value"),
                )

        return tracker

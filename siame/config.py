"""Configuration management for SIAME.

This module centralizes file-system paths, environment variables, and the
JSON configuration loaders used by the analysis and extraction pipeline.

Configuration files
-------------------
* ``config.json``: service settings (Azure model, polling, retry policy,
  upload limits, export columns)
* ``extraction_specs.json``: extraction rules (key aliases, city catalogue,
  pouch office markers, month names, detector keywords, confidences)

Environment variables
---------------------
``DATA_DIR``, ``AUDIT_DIR`` and ``LOGS_DIR`` override default directories;
the document analysis service relies on ``AZURE_FORM_RECOGNIZER_ENDPOINT``
and ``AZURE_FORM_RECOGNIZER_KEY``. Directories are created eagerly on import
so downstream callers can rely on their existence.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_DIR = PROJECT_ROOT / "config"
DATA_DIR = Path(os.getenv("DATA_DIR", PROJECT_ROOT / "data"))
AUDIT_DIR = Path(os.getenv("AUDIT_DIR", PROJECT_ROOT / "audit"))
LOGS_DIR = Path(os.getenv("LOGS_DIR", PROJECT_ROOT / "logs"))

# Ensure directories exist
DATA_DIR.mkdir(parents=True, exist_ok=True)
AUDIT_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Azure Document Intelligence credentials
AZURE_ENDPOINT = os.getenv("AZURE_FORM_RECOGNIZER_ENDPOINT", "")
AZURE_KEY = os.getenv("AZURE_FORM_RECOGNIZER_KEY", "")

_PLACEHOLDER_ENDPOINT = "your-azure-endpoint"


def _load_json(filename: str, label: str) -> dict[str, Any]:
    """Read a JSON file from ``CONFIG_DIR``.

    Raises
    ------
    FileNotFoundError
        If the file is missing.
    json.JSONDecodeError
        If the file exists but is not valid JSON.
    """
    path = CONFIG_DIR / filename
    if not path.exists():
        msg = f"{label} not found: {path}"
        raise FileNotFoundError(msg)

    with path.open(encoding="utf-8") as f:
        return json.load(f)  # type: ignore[no-any-return]


@lru_cache(maxsize=1)
def get_config() -> dict[str, Any]:
    """Load the primary project configuration.

    Returns
    -------
    dict[str, Any]
        Parsed contents of ``config/config.json`` including the Azure model,
        polling policy and export column definitions.

    Raises
    ------
    FileNotFoundError
        If ``config/config.json`` is missing.
    json.JSONDecodeError
        If the file exists but is not valid JSON.
    """
    return _load_json("config.json", "Configuration file")


@lru_cache(maxsize=1)
def get_extraction_specs() -> dict[str, Any]:
    """Load field extraction rules from ``extraction_specs.json``.

    Returns
    -------
    dict[str, Any]
        Key aliases per record field, the city/country catalogue, pouch
        office markers, month names and detector keyword lists.

    Raises
    ------
    FileNotFoundError
        If the specs file is missing.
    json.JSONDecodeError
        If the specs file cannot be parsed.
    """
    return _load_json("extraction_specs.json", "Extraction specs")


def setup_logging(name: str = "siame") -> logging.Logger:
    """Configure a console+file logger if not already present.

    Parameters
    ----------
    name : str, optional
        Logger namespace; reused to avoid duplicate handlers.

    Returns
    -------
    logging.Logger
        Logger with INFO-level console handler and DEBUG-level daily file
        handler under ``LOGS_DIR``.
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(logging.DEBUG)

        # Console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)
        console_format = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
        console_handler.setFormatter(console_format)
        logger.addHandler(console_handler)

        # File handler
        log_filename = f"{datetime.now(UTC).strftime('%Y-%m-%d')}_run.log"
        file_handler = logging.FileHandler(LOGS_DIR / log_filename, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_format = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

    return logger


def is_azure_configured() -> bool:
    """Return whether both Azure credentials are present and not placeholders."""
    return bool(AZURE_ENDPOINT and AZURE_KEY and AZURE_ENDPOINT != _PLACEHOLDER_ENDPOINT)


def get_azure_settings() -> dict[str, Any]:
    """Return the Azure analysis settings merged with credentials.

    Returns
    -------
    dict[str, Any]
        ``endpoint``, ``key``, ``api_version``, ``model_id``, ``polling`` and
        ``retry`` entries.

    Raises
    ------
    ValueError
        If the Azure credentials are not configured.
    """
    if not is_azure_configured():
        msg = (
            "Azure Document Intelligence client not configured. Please set "
            "AZURE_FORM_RECOGNIZER_ENDPOINT and AZURE_FORM_RECOGNIZER_KEY in your .env file."
        )
        raise ValueError(msg)

    azure_config = get_config().get("azure", {})
    return {
        "endpoint": AZURE_ENDPOINT.rstrip("/"),
        "key": AZURE_KEY,
        "api_version": azure_config.get("api_version", "2023-07-31"),
        "model_id": azure_config.get("model_id", "prebuilt-document"),
        "polling": azure_config.get("polling", {}),
        "retry": azure_config.get("retry", {}),
        "timeout": azure_config.get("timeout", {}),
    }


# =============================================================================
# Extraction Spec Accessors
# =============================================================================


def get_key_aliases(record: str, field_name: str) -> list[str]:
    """Return the ordered key aliases used to find ``field_name`` in a record.

    Parameters
    ----------
    record : str
        ``"guia_valija"`` or ``"hoja_remision"``.
    field_name : str
        Record field, e.g. ``"destinatario"``.

    Returns
    -------
    list[str]
        Aliases in priority order; empty when the field is not configured.
    """
    aliases = get_extraction_specs().get("key_aliases", {}).get(record, {})
    return cast("list[str]", aliases.get(field_name, []))


def get_city_catalogue() -> dict[str, str]:
    """Return the city → country catalogue (upper-case, accent-free keys)."""
    return cast("dict[str, str]", get_extraction_specs().get("cities", {}))


def get_pouch_office_markers() -> list[str]:
    """Return text markers identifying the pouch office as sender or recipient."""
    return cast("list[str]", get_extraction_specs().get("pouch_office_markers", []))


def get_month_names() -> dict[str, int]:
    """Return Spanish month names mapped to month numbers (1-12)."""
    return cast("dict[str, int]", get_extraction_specs().get("months", {}))


def get_detector_keywords() -> dict[str, dict[str, list[str]]]:
    """Return language, document type and direction keyword lists."""
    return cast("dict[str, dict[str, list[str]]]", get_extraction_specs().get("detector", {}))


def get_confidence_scores(record: str) -> dict[str, float]:
    """Return the per-field confidence scores configured for ``record``."""
    return cast("dict[str, float]", get_extraction_specs().get("confidence", {}).get(record, {}))


def get_export_columns(kind: str) -> list[dict[str, str]]:
    """Return the ``{key, label}`` column definitions for an export kind.

    Parameters
    ----------
    kind : str
        ``"guia_valija"`` or ``"hoja_remision"``.
    """
    columns = get_config().get("export", {}).get("columns", {})
    return cast("list[dict[str, str]]", columns.get(kind, []))

"""SIAME: field extraction for diplomatic pouch documents.

The package turns the output of a document analysis service (raw text,
key-value pairs and table cells) into structured, validated records for
pouch manifests (Guía de Valija) and transmittal sheets (Hoja de Remisión).

Architecture
------------
* ``extractor``: Azure Document Intelligence client (httpx), pdfplumber
  fallback, document type detection and the record parsers.
* ``transformer``: Table normalization (pandas) and source provenance
  tracking for auditability.
* ``utils``: Date, weight and text normalizers shared by the parsers.
* ``schemas``: Pydantic validation with the web forms' limits.
* ``writer``: JSON records and CSV/XLSX exports.

Configuration and credentials
-----------------------------
Paths default to the ``data/``, ``audit/`` and ``logs/`` trees but respect
``DATA_DIR``, ``AUDIT_DIR`` and ``LOGS_DIR`` overrides. The analysis service
uses ``AZURE_FORM_RECOGNIZER_ENDPOINT`` and ``AZURE_FORM_RECOGNIZER_KEY``.

Examples
--------
Analyse a pouch manifest:

    >>> python -m siame.main analyze data/raw/guia_24.pdf

Export every saved transmittal sheet:

    >>> python -m siame.main export --kind hoja --format xlsx
"""

__version__ = "0.1.0"
__all__ = ["__version__"]

# Public helper for introspection tools.
def get_version() -> str:
    """Return the current package version string.

    Returns
    -------
    str
        Semantic version identifier (e.g., ``"0.1.0"``).
    """
    return __version__


__all__.append("get_version")

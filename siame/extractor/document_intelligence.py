"""Azure Document Intelligence client.

Sends a document to the ``prebuilt-document`` model over the REST API and
polls the returned ``Operation-Location`` until the analysis finishes. The
``analyzeResult`` payload is mapped into :class:`AnalysisResult`.

Requests that time out, hit a transport error (network, protocol), or get
a 429/5xx answer are retried with exponential backoff following ``azure.retry`` in
``config.json``.
"""

from __future__ import annotations

import json
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import httpx

from siame.config import AUDIT_DIR, get_azure_settings, setup_logging
from siame.extractor.types import AnalysisResult

logger = setup_logging(__name__)

SUPPORTED_FORMATS = ["pdf", "jpg", "jpeg", "png", "bmp", "tiff", "heif", "docx", "xlsx", "pptx", "html", "txt"]

_RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}
_SUCCEEDED = "succeeded"
_FAILED = {"failed", "canceled"}


class DocumentAnalysisError(Exception):
    """Raised when the document analysis service cannot produce a result."""


def get_supported_formats() -> list[str]:
    """Return the file extensions accepted by the analysis service."""
    return list(SUPPORTED_FORMATS)


def _build_timeout(timeout_config: dict[str, Any]) -> httpx.Timeout:
    return httpx.Timeout(
        connect=timeout_config.get("connect", 10.0),
        read=timeout_config.get("read", 120.0),
        write=timeout_config.get("write", 60.0),
        pool=timeout_config.get("pool", 5.0),
    )


def _request_with_retries(
    client: httpx.Client,
    method: str,
    url: str,
    retry_config: dict[str, Any],
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, retrying transient failures with exponential backoff.

    Raises
    ------
    DocumentAnalysisError
        On a non-retryable HTTP error or once all attempts are exhausted.
    """
    max_attempts = int(retry_config.get("max_attempts", 3))
    base_delay = float(retry_config.get("base_delay_seconds", 1.0))
    max_delay = float(retry_config.get("max_delay_seconds", 10.0))

    last_error = ""
    for attempt in range(max_attempts):
        try:
            response = client.request(method, url, **kwargs)
        except httpx.UnsupportedProtocol as e:
            msg = f"Invalid Azure Document Intelligence endpoint {url!r}: {e}"
            raise DocumentAnalysisError(msg) from e
        except httpx.TransportError as e:
            last_error = f"{type(e).__name__}: {e}"
            logger.warning("Request attempt %s/%s failed: %s", attempt + 1, max_attempts, last_error)
        except httpx.HTTPError as e:
            msg = f"Azure Document Intelligence request failed ({type(e).__name__}: {e})"
            raise DocumentAnalysisError(msg) from e
        else:
            if response.status_code < 400:
                return response
            last_error = f"HTTP {response.status_code}: {response.text[:500]}"
            if response.status_code not in _RETRYABLE_STATUS:
                msg = f"Azure Document Intelligence request failed ({last_error})"
                raise DocumentAnalysisError(msg)
            logger.warning("Request attempt %s/%s failed: %s", attempt + 1, max_attempts, last_error)

        if attempt < max_attempts - 1:
            delay = min(base_delay * (2**attempt), max_delay)
            logger.debug("Waiting %ss before retry...", delay)
            time.sleep(delay)

    msg = f"Azure Document Intelligence request failed after {max_attempts} attempts ({last_error})"
    raise DocumentAnalysisError(msg)


def _poll_operation(
    client: httpx.Client,
    operation_location: str,
    headers: dict[str, str],
    settings: dict[str, Any],
) -> dict[str, Any]:
    """Poll the analysis operation until it succeeds.

    Raises
    ------
    DocumentAnalysisError
        If the operation fails or does not finish within the attempt limit.
    """
    polling = settings.get("polling", {})
    interval = float(polling.get("interval_seconds", 2.0))
    max_attempts = int(polling.get("max_attempts", 60))

    for attempt in range(max_attempts):
        response = _request_with_retries(client, "GET", operation_location, settings.get("retry", {}), headers=headers)
        payload: dict[str, Any] = response.json()
        status = str(payload.get("status", "")).lower()

        if status == _SUCCEEDED:
            return payload
        if status in _FAILED:
            msg = f"Azure Document Intelligence analysis failed: {payload.get('error', {})}"
            raise DocumentAnalysisError(msg)

        logger.debug("Analysis status '%s' (poll %s/%s)", status, attempt + 1, max_attempts)
        time.sleep(interval)

    msg = f"Azure Document Intelligence analysis did not finish after {max_attempts} polls"
    raise DocumentAnalysisError(msg)


def _save_audit_response(payload: dict[str, Any], audit_dir: Path, file_name: str) -> Path:
    """Persist the raw service response for traceability."""
    audit_dir.mkdir(parents=True, exist_ok=True)

    stem = Path(file_name).stem.replace(" ", "_") or "document"
    timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S")
    filepath = audit_dir / f"azure_{stem}_{timestamp}.json"

    with filepath.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)

    logger.debug("Audit response saved: %s", filepath)
    return filepath


def analyze_document(
    document: Path | bytes,
    file_name: str | None = None,
    *,
    save_response: bool = True,
    audit_dir: Path | None = None,
    client: httpx.Client | None = None,
) -> AnalysisResult:
    """Analyse a document with Azure Document Intelligence.

    Parameters
    ----------
    document
        Path to the file, or its bytes.
    file_name
        Name recorded in the metadata; defaults to the path name.
    save_response
        Write the raw service response to ``audit_dir``.
    audit_dir
        Audit destination; defaults to ``AUDIT_DIR``.
    client
        Preconfigured HTTP client; one is created (and closed) otherwise.

    Returns
    -------
    AnalysisResult
        Content, tables, key-value pairs, entities and metadata
        (``pageCount``, ``title``, ``languages``).

    Raises
    ------
    DocumentAnalysisError
        If the service is not configured or the analysis fails.
    FileNotFoundError
        If ``document`` is a path that does not exist.
    """
    try:
        settings = get_azure_settings()
    except ValueError as e:
        raise DocumentAnalysisError(str(e)) from e

    if isinstance(document, Path):
        if not document.exists():
            msg = f"Document not found: {document}"
            raise FileNotFoundError(msg)
        data = document.read_bytes()
        file_name = file_name or document.name
    else:
        data = document
    file_name = file_name or "document"

    url = (
        f"{settings['endpoint']}/formrecognizer/documentModels/{settings['model_id']}:analyze"
        f"?api-version={settings['api_version']}"
    )
    headers = {"Ocp-Apim-Subscription-Key": settings["key"]}

    logger.info("Analyzing document: %s (%.2f KB)", file_name, len(data) / 1024)

    owns_client = client is None
    http = client or httpx.Client(timeout=_build_timeout(settings.get("timeout", {})))
    try:
        logger.info("Sending document to Azure Document Intelligence...")
        response = _request_with_retries(
            http,
            "POST",
            url,
            settings.get("retry", {}),
            headers={**headers, "Content-Type": "application/octet-stream"},
            content=data,
        )

        operation_location = response.headers.get("Operation-Location")
        if not operation_location:
            msg = "Azure Document Intelligence did not return an Operation-Location header"
            raise DocumentAnalysisError(msg)

        logger.info("Waiting for Azure analysis to complete...")
        payload = _poll_operation(http, operation_location, headers, settings)
    finally:
        if owns_client:
            http.close()

    if save_response:
        _save_audit_response(payload, audit_dir or AUDIT_DIR, file_name)

    result = AnalysisResult.from_dict(payload)
    result.metadata.setdefault("pageCount", 1)
    result.metadata.setdefault("languages", [])
    result.metadata["title"] = file_name

    logger.info("Extracted %s tables", len(result.tables))
    logger.info("Extracted %s key-value pairs", len(result.key_value_pairs))
    logger.info("Extracted %s entities", len(result.entities))
    logger.info("Document has %s page(s)", result.metadata["pageCount"])
    return result


def log_key_value_pairs(result: AnalysisResult) -> dict[str, str]:
    """Log the captured key-value pairs and return them as a key → value map."""
    keys_map = {pair.key: pair.value for pair in result.key_value_pairs}

    logger.info("=" * 60)
    logger.info("Captured keys")
    logger.info("=" * 60)

    if not result.key_value_pairs:
        logger.warning("No key-value pairs detected")
        return keys_map

    logger.debug("Keys map: %s", json.dumps(keys_map, indent=2, ensure_ascii=False))
    for idx, pair in enumerate(result.key_value_pairs, start=1):
        confidence = f"{pair.confidence:.2f}" if pair.confidence is not None else "n/a"
        logger.info('  %s. "%s" = "%s" (confidence: %s)', idx, pair.key, pair.value, confidence)

    return keys_map

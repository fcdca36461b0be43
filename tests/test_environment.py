"""Environment validation tests for SIAME."""

import sys

import pytest


def test_python_version() -> None:
    """Verify Python version is 3.11 or higher."""
    assert sys.version_info >= (3, 11), f"Python 3.11+ required, got {sys.version}"


def test_core_imports() -> None:
    """Verify core packages can be imported."""
    import dotenv  # noqa: F401
    import httpx  # noqa: F401
    import openpyxl  # noqa: F401
    import pandas as pd  # noqa: F401
    import pdfplumber  # noqa: F401
    import pydantic  # noqa: F401


def test_project_structure() -> None:
    """Verify project module structure."""
    from siame import __version__, get_version
    from siame.config import PROJECT_ROOT

    assert __version__ == "0.1.0"
    assert get_version() == __version__
    assert PROJECT_ROOT.exists()


def test_config_loads() -> None:
    """Verify config.json can be loaded."""
    from siame.config import get_config

    config = get_config()
    assert "azure" in config
    assert "upload" in config
    assert "export" in config


def test_data_directories_exist() -> None:
    """Verify data directories exist."""
    from siame.config import AUDIT_DIR, DATA_DIR, LOGS_DIR

    assert DATA_DIR.exists()
    assert AUDIT_DIR.exists()
    assert LOGS_DIR.exists()


@pytest.mark.skipif(
    not __import__("os").getenv("AZURE_FORM_RECOGNIZER_KEY"),
    reason="AZURE_FORM_RECOGNIZER_KEY not set",
)
def test_azure_settings() -> None:
    """Verify Azure settings resolve when credentials are set."""
    from siame.config import get_azure_settings

    settings = get_azure_settings()
    assert settings["endpoint"].startswith("https://")
    assert settings["model_id"] == "prebuilt-document"

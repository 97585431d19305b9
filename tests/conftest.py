"""Shared pytest fixtures and configuration for the Pricepulse test suite.

This file is loaded automatically by pytest before any test module.
It provides project-wide fixtures used across unit tests.
"""

from __future__ import annotations

import logging
import os

import pytest
from pydantic_settings import SettingsConfigDict

from pricepulse.core import configure_logging
from pricepulse.core.settings import Settings

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _configure_test_logging() -> None:
    """Force DEBUG logging in text format for every test."""
    configure_logging(level="DEBUG", fmt="text", force=True)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove Pricepulse env vars and disable ``.env`` loading for a test."""
    prefixes = (
        "SCHEDULING_",
        "RETRY_",
        "SCRAPE_",
        "DATABASE_",
        "LOG_LEVEL",
        "LOG_FORMAT",
    )
    for key in list(os.environ):
        if any(key.startswith(prefix) for prefix in prefixes):
            monkeypatch.delenv(key, raising=False)

    monkeypatch.setattr(
        Settings,
        "model_config",
        SettingsConfigDict(
            env_file=None,
            env_file_encoding="utf-8",
            extra="ignore",
        ),
    )


# ---------------------------------------------------------------------------
# Misc helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def logger() -> logging.Logger:
    """Return a ``logging.Logger`` scoped to the running test."""
    return logging.getLogger("tests")

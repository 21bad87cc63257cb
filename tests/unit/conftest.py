"""Shared fixtures for unit tests."""

import pytest

from confmd.config import Settings
from confmd.converter.markup import ScanContext


@pytest.fixture
def settings() -> Settings:
    """Default settings, ignoring any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def context() -> ScanContext:
    """Scan context without a placeholder store."""
    return ScanContext()

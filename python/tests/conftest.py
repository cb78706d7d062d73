"""Pytest configuration and fixtures for epubkit tests.

Test isolation strategy:
- Settings are built per test from explicit values, never from the environment
- The settings cache is cleared around every test
- Log context is cleared after every test
"""

import pytest

from epubkit.config import Settings, clear_settings_cache
from epubkit.diagnostics import Diagnostics
from epubkit.logging import clear_parse_context
from epubkit.storage import FakeFileProvider
from tests.helpers import epub_files


@pytest.fixture
def settings() -> Settings:
    """Default settings, independent of the environment."""
    return Settings(
        default_rootfile_path="OEBPS/content.opf",
        require_valid_documents=False,
        load_manifest_items=True,
    )


@pytest.fixture
def diags() -> Diagnostics:
    return Diagnostics("epub")


@pytest.fixture
def provider() -> FakeFileProvider:
    """A provider holding a small valid EPUB3."""
    return FakeFileProvider(epub_files())


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_parse_context():
    yield
    clear_parse_context()

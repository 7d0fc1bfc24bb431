"""Pytest configuration and fixtures for quire tests.

Test isolation strategy:
- Settings are built explicitly per test, or read from a monkeypatched
  environment with the settings cache cleared around every test
- Publications are assembled in memory (InMemoryContainer or zip bytes)
- Logging context is cleared after every test
"""

import sys
from collections.abc import Generator
from pathlib import Path

# Add the python/ directory to sys.path for importing quire and tests
_python_root = Path(__file__).parent.parent
if str(_python_root) not in sys.path:
    sys.path.insert(0, str(_python_root))

import pytest

from quire.config import Settings, clear_settings_cache
from quire.logging import clear_publication_context


@pytest.fixture(autouse=True)
def _isolated_state() -> Generator[None, None, None]:
    """Reset cached settings and logging context around each test."""
    clear_settings_cache()
    clear_publication_context()
    yield
    clear_settings_cache()
    clear_publication_context()


@pytest.fixture
def settings() -> Settings:
    """Settings with test defaults, independent of the environment."""
    return Settings(QUIRE_ENV="test", QUIRE_LOG_JSON=False)

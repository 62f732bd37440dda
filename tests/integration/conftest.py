"""
Auto-mark all tests in this directory as integration tests.

These run the whole pipeline (bundled registry → engine → result) against
small workspaces built on disk.

Run ONLY integration tests:
    pytest tests/integration/ -m integration

Run ONLY unit tests:
    pytest -m "not integration"
"""

import pytest

from stackprobe.core.config.stack_loader import load_default_registry
from stackprobe.core.models.stack import StackRegistry


def pytest_collection_modifyitems(items):
    """Auto-apply the 'integration' marker to every test in this directory."""
    for item in items:
        if "/integration/" in str(item.fspath):
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def bundled_registry() -> StackRegistry:
    """The registry shipped with the package, loaded once."""
    return load_default_registry()

"""
Bundled data — the default stack registry shipped with the package.

The registry document lives next to this module as ``stacks.json``.
Loading and validation go through ``stackprobe.core.config.stack_loader``;
this module only knows where the bundled files are.

Usage::

    from stackprobe.core.data import default_registry_path

    path = default_registry_path()
"""

from __future__ import annotations

from pathlib import Path

_DATA_DIR = Path(__file__).parent

DEFAULT_REGISTRY_FILE = "stacks.json"


def data_path(relative_path: str) -> Path:
    """Resolve a file relative to the data directory."""
    return _DATA_DIR / relative_path


def default_registry_path() -> Path:
    """Path to the bundled stack registry document."""
    return data_path(DEFAULT_REGISTRY_FILE)

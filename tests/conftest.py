"""
Shared test fixtures and configuration.
"""

import logging
from pathlib import Path

import pytest

from stackprobe.core.config.stack_loader import parse_registry
from stackprobe.core.models.stack import StackRegistry


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Return an empty workspace directory."""
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture
def make_tree():
    """Return a helper that writes ``{relative path: content}`` under a root.

    A path ending in ``/`` creates an empty directory.
    """

    def _make(root: Path, files: dict[str, str]) -> Path:
        for rel, content in files.items():
            target = root / rel
            if rel.endswith("/"):
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        return root

    return _make


def _stack_doc(
    stack_id: str,
    *,
    category: str = "language",
    required_any: list[dict] | None = None,
    required_all: list[dict] | None = None,
    optional: list[dict] | None = None,
    conflicts_with: list[str] | None = None,
    depends_on: list[str] | None = None,
    min_score: float = 1,
    **detection,
) -> dict:
    """Build one camelCase stack definition for a test registry."""
    indicators: dict = {}
    if required_any:
        indicators["requiredAny"] = required_any
    if required_all:
        indicators["requiredAll"] = required_all
    if optional:
        indicators["optional"] = optional
    if conflicts_with:
        indicators["conflictsWith"] = conflicts_with

    doc: dict = {
        "id": stack_id,
        "displayName": stack_id.title(),
        "category": category,
        "indicators": indicators,
        "detection": {"minScore": min_score, **detection},
    }
    if depends_on:
        doc["dependsOn"] = depends_on
    return doc


def _file_exists(path: str, weight: float = 1) -> dict:
    return {"kind": "fileExists", "path": path, "weight": weight}


@pytest.fixture
def stack_doc():
    """Return the stack definition builder."""
    return _stack_doc


@pytest.fixture
def file_exists():
    """Return a builder for fileExists indicator documents."""
    return _file_exists


@pytest.fixture
def make_registry():
    """Return a helper that validates a list of stack docs into a registry."""

    def _make(*stacks: dict) -> StackRegistry:
        return parse_registry({"version": "test", "stacks": {s["id"]: s for s in stacks}})

    return _make


@pytest.fixture
def restore_root_logger():
    """Undo ``setup_logging`` side effects on the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)

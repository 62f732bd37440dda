"""
Detection use case — load the registry and scan one workspace.

Ties together registry loading and the detection engine, and turns the
expected failures (bad registry, bad workspace, bad options) into an
``error`` on the result instead of an exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from stackprobe.core.config.stack_loader import (
    RegistryError,
    load_registry,
    resolve_registry_path,
)
from stackprobe.core.models.detection import DetectionOptions, WorkspaceStackDetectionResult
from stackprobe.core.services.detection import DetectionError, StackDetectionEngine

logger = logging.getLogger(__name__)


@dataclass
class DetectResult:
    """Result of the detect use case."""

    detection: WorkspaceStackDetectionResult | None = None
    registry_path: Path | None = None
    registry_version: str | None = None
    stacks_loaded: int = 0
    error: str | None = None

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["registry_path"] = str(self.registry_path) if self.registry_path else None
        result["registry_version"] = self.registry_version
        result["stacks_loaded"] = self.stacks_loaded

        if self.detection:
            result["detection"] = self.detection.to_dict()

        return result


def run_detect(
    root: Path,
    registry_path: Path | None = None,
    options: DetectionOptions | dict | None = None,
    workspace_id: str | None = None,
) -> DetectResult:
    """Run stack detection on a workspace.

    Args:
        root: Workspace directory to scan.
        registry_path: Optional explicit registry document.
        options: Detection options (model or mapping).
        workspace_id: Identifier echoed in the result. Defaults to the
            directory name.

    Returns:
        DetectResult with the detection result or an error.
    """
    result = DetectResult()

    # Load registry
    try:
        result.registry_path = resolve_registry_path(registry_path)
        registry = load_registry(result.registry_path)
    except RegistryError as e:
        result.error = str(e)
        if len(e.errors) > 1 or e.errors[0] != str(e):
            result.error += "\n" + "\n".join(f"  {err}" for err in e.errors)
        return result

    result.registry_version = registry.version
    result.stacks_loaded = len(registry)

    # Run detection
    if workspace_id is None:
        workspace_id = Path(root).resolve().name or str(root)

    try:
        result.detection = StackDetectionEngine(registry).detect_stacks(
            workspace_id, root, options
        )
    except DetectionError as e:
        logger.debug("Detection rejected: %s", e)
        result.error = str(e)

    return result

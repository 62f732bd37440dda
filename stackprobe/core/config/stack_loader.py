"""
Stack loader — loads the stack registry document into domain models.

The registry is a single JSON (or YAML) document::

    {
      "version": "1.0.0",
      "stacks": {
        "nodejs": {"id": "nodejs", "displayName": "Node.js", ...},
        ...
      }
    }

Every schema violation is reported here, at load time. A malformed stack
that silently never fires is worse than a loud load error, so nothing is
skipped: the first invalid document raises ``RegistryError`` listing
every problem found.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from stackprobe.core.data import default_registry_path
from stackprobe.core.models.stack import StackRegistry

logger = logging.getLogger(__name__)

REGISTRY_ENV_VAR = "STACKPROBE_REGISTRY"

_YAML_SUFFIXES = (".yml", ".yaml")


class RegistryError(Exception):
    """Raised when a stack registry is missing or invalid."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors: list[str] = errors or [message]


def resolve_registry_path(path: Path | None = None) -> Path:
    """Pick the registry document: explicit path > env var > bundled."""
    if path is not None:
        return path
    env_path = os.environ.get(REGISTRY_ENV_VAR)
    if env_path:
        return Path(env_path)
    return default_registry_path()


def load_registry(path: Path | None = None) -> StackRegistry:
    """Load and validate a stack registry document.

    Args:
        path: Registry file (JSON, or YAML by suffix). If None, uses
            ``$STACKPROBE_REGISTRY`` or the bundled registry.

    Returns:
        Validated, immutable StackRegistry.

    Raises:
        RegistryError: If the file is missing, unparsable, or invalid.
    """
    path = resolve_registry_path(path)

    if not path.is_file():
        raise RegistryError(f"Registry file not found: {path}")

    logger.debug("Loading stack registry from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise RegistryError(f"Cannot read {path}: {e}") from e

    if path.suffix.lower() in _YAML_SUFFIXES:
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise RegistryError(f"Invalid YAML in {path}: {e}") from e
    else:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise RegistryError(f"Invalid JSON in {path}: {e}") from e

    registry = parse_registry(data, source=str(path))
    logger.info(
        "Loaded %d stacks from %s (registry version %s)",
        len(registry), path, registry.version or "unversioned",
    )
    return registry


def load_default_registry() -> StackRegistry:
    """Load the registry bundled with the package."""
    return load_registry(default_registry_path())


def parse_registry(data: object, source: str = "<registry>") -> StackRegistry:
    """Validate an already-decoded registry document.

    Raises:
        RegistryError: With one entry in ``errors`` per problem.
    """
    if not isinstance(data, dict):
        raise RegistryError(
            f"Expected a mapping in {source}, got {type(data).__name__}"
        )
    if not isinstance(data.get("stacks"), dict):
        raise RegistryError(f"{source}: 'stacks' must be a mapping of id to definition")

    try:
        return StackRegistry.model_validate(data)
    except ValidationError as e:
        errors = [_format_error(err) for err in e.errors()]
        raise RegistryError(
            f"Invalid stack registry in {source}: {len(errors)} problem(s)",
            errors=errors,
        ) from e


def _format_error(err: dict) -> str:
    """Render one pydantic error as ``stacks.nodejs.indicators.requiredAny.0: msg``."""
    loc = ".".join(str(part) for part in err.get("loc", ()))
    msg = err.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg

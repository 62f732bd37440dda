"""
Registry check use case — validate a stack registry and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from stackprobe.core.config.stack_loader import (
    RegistryError,
    load_registry,
    resolve_registry_path,
)
from stackprobe.core.models.stack import (
    CATEGORIES,
    StackDefinition,
    StackRegistry,
)


@dataclass
class RegistryCheckResult:
    """Result of registry validation."""

    valid: bool = False
    registry: StackRegistry | None = None
    registry_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        by_category = {c: 0 for c in CATEGORIES}
        if self.registry:
            for stack in self.registry.stacks.values():
                by_category[stack.category] += 1
        return {
            "valid": self.valid,
            "registry_path": str(self.registry_path) if self.registry_path else None,
            "registry_version": self.registry.version if self.registry else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "stack_count": len(self.registry) if self.registry else 0,
            "by_category": by_category,
        }


def check_registry(registry_path: Path | None = None) -> RegistryCheckResult:
    """Validate a stack registry and report issues.

    Schema problems are errors. Stacks that load but can never (or never
    in fast mode) be detected are warnings.

    Args:
        registry_path: Optional explicit registry document.

    Returns:
        RegistryCheckResult with validation status and any issues.
    """
    result = RegistryCheckResult()
    result.registry_path = resolve_registry_path(registry_path)

    try:
        registry = load_registry(result.registry_path)
        result.registry = registry
    except RegistryError as e:
        result.errors.extend(e.errors)
        return result

    if not len(registry):
        result.warnings.append("Registry defines no stacks. Nothing will be detected.")

    for stack_id in registry.ids:
        result.warnings.extend(stack_warnings(registry.stacks[stack_id]))

    result.valid = len(result.errors) == 0
    return result


def stack_warnings(stack: StackDefinition) -> list[str]:
    """Semantic problems in one otherwise valid stack definition."""
    warnings: list[str] = []
    indicators = stack.indicators
    min_score = stack.detection.min_score

    reachable = indicators.total_weight
    cap = stack.detection.max_indicators_counted
    if cap is not None:
        weights = sorted((ind.weight for _, _, ind in indicators.all_indicators()), reverse=True)
        reachable = sum(weights[:cap])

    if reachable < min_score:
        warnings.append(
            f"Stack '{stack.id}' can never be detected: "
            f"best possible score {reachable:g} < minScore {min_score:g}"
        )
        return warnings

    if stack.max_score < min_score:
        warnings.append(
            f"Stack '{stack.id}' has maxScore {stack.max_score:g} below minScore {min_score:g}"
        )

    if not fast_mode_reachable(stack):
        warnings.append(f"Stack '{stack.id}' is never detected in fast mode")

    return warnings


def fast_mode_reachable(stack: StackDefinition) -> bool:
    """True if existence checks alone can meet the stack's gates and threshold."""
    indicators = stack.indicators
    if any(not ind.is_cheap for ind in indicators.required_all):
        return False
    if indicators.required_any and not any(ind.is_cheap for ind in indicators.required_any):
        return False

    cheap = sorted(
        (ind.weight for _, _, ind in indicators.all_indicators() if ind.is_cheap),
        reverse=True,
    )
    cap = stack.detection.max_indicators_counted
    if cap is not None:
        cheap = cheap[:cap]
    return sum(cheap) >= stack.detection.min_score

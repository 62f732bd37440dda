"""
Domain models — stack registry types and detection results.

All models are re-exported here for convenient access:

    from stackprobe.core.models import StackRegistry, DetectionOptions, WorkspaceStackDetectionResult
"""

from stackprobe.core.models.detection import (
    ConsideredStack,
    DetectedStack,
    DetectionLimits,
    DetectionOptions,
    DetectionStats,
    DetectionSummary,
    IndicatorEvidence,
    ScanMode,
    WorkspaceStackDetectionResult,
)
from stackprobe.core.models.stack import (
    CATEGORIES,
    DetectionConfig,
    DirExistsIndicator,
    FileContainsIndicator,
    FileExistsIndicator,
    FilePatternExistsIndicator,
    Indicator,
    IndicatorSet,
    JsonFieldIndicator,
    PathPatternIndicator,
    StackCategory,
    StackDefinition,
    StackRegistry,
    TomlFieldIndicator,
)

__all__ = [
    "CATEGORIES",
    # detection.py
    "ConsideredStack",
    "DetectedStack",
    # stack.py
    "DetectionConfig",
    "DetectionLimits",
    "DetectionOptions",
    "DetectionStats",
    "DetectionSummary",
    "DirExistsIndicator",
    "FileContainsIndicator",
    "FileExistsIndicator",
    "FilePatternExistsIndicator",
    "Indicator",
    "IndicatorEvidence",
    "IndicatorSet",
    "JsonFieldIndicator",
    "PathPatternIndicator",
    "ScanMode",
    "StackCategory",
    "StackDefinition",
    "StackRegistry",
    "TomlFieldIndicator",
    "WorkspaceStackDetectionResult",
]

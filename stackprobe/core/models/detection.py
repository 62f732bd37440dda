"""
Detection models — options in, evidence and results out.

Options are pydantic models so callers can hand in camelCase or
snake_case mappings. Evidence and results are plain dataclasses created
fresh for every detection call and owned by its result object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from stackprobe.core.models.stack import CATEGORIES

ScanMode = Literal["fast", "thorough"]

INCOMPLETE_TIMEOUT = "timeout"
INCOMPLETE_FILE_LIMIT = "file-limit"

DEFAULT_MAX_FILES = 20_000
DEFAULT_MAX_BYTES_PER_FILE = 1024 * 1024
DEFAULT_TIMEOUT_MS = 30_000


class _OptionsModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )


class DetectionLimits(_OptionsModel):
    """Global safety caps, enforced across the whole run."""

    max_files: int = Field(default=DEFAULT_MAX_FILES, ge=1)
    max_bytes_per_file: int = Field(default=DEFAULT_MAX_BYTES_PER_FILE, ge=1)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, ge=1)


class DetectionOptions(_OptionsModel):
    """Per-call detection options."""

    include_stacks: tuple[str, ...] = ()
    exclude_stacks: tuple[str, ...] = ()
    max_depth: int | None = Field(default=None, ge=0)
    scan_mode: ScanMode = "thorough"
    limits: DetectionLimits = Field(default_factory=DetectionLimits)
    workers: int = Field(default=4, ge=1)


# ── Evidence ────────────────────────────────────────────────────


@dataclass(frozen=True)
class IndicatorEvidence:
    """The record produced when an indicator's condition holds."""

    kind: str
    weight: float
    indicator_id: str = ""
    path: str | None = None
    glob: str | None = None
    regex: str | None = None
    field_path: str | None = None
    field_value: Any = None
    matched_paths: tuple[str, ...] = ()
    note: str = ""

    def to_dict(self) -> dict:
        d: dict = {"kind": self.kind, "weight": self.weight}
        if self.indicator_id:
            d["indicatorId"] = self.indicator_id
        if self.path is not None:
            d["path"] = self.path
        if self.glob is not None:
            d["glob"] = self.glob
        if self.regex is not None:
            d["regex"] = self.regex
        if self.field_path is not None:
            d["fieldPath"] = self.field_path
            d["fieldValue"] = self.field_value
        if self.matched_paths:
            d["matchedPaths"] = list(self.matched_paths)
        if self.note:
            d["note"] = self.note
        return d


# ── Stacks in the result ────────────────────────────────────────


@dataclass
class ConsideredStack:
    """A stack with some evidence that did not make it into the detected list."""

    id: str
    display_name: str
    category: str
    score: float
    confidence: float
    evidence: list[IndicatorEvidence] = field(default_factory=list)
    suppressed_by: str | None = None  # conflicting stack that won

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "displayName": self.display_name,
            "category": self.category,
            "score": self.score,
            "confidence": self.confidence,
            "evidence": [e.to_dict() for e in self.evidence],
        }
        if self.suppressed_by:
            d["suppressedBy"] = self.suppressed_by
        return d


@dataclass
class DetectedStack:
    """A stack whose score met its minimum threshold."""

    id: str
    display_name: str
    category: str
    score: float
    confidence: float
    evidence: list[IndicatorEvidence] = field(default_factory=list)
    resolved_dependencies: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "category": self.category,
            "score": self.score,
            "confidence": self.confidence,
            "resolvedDependencies": self.resolved_dependencies,
            "evidence": [e.to_dict() for e in self.evidence],
        }


@dataclass
class DetectionSummary:
    """Per-category digest of the detected stacks."""

    dominant_languages: list[str] = field(default_factory=list)
    primary_by_category: dict[str, list[str]] = field(
        default_factory=lambda: {c: [] for c in CATEGORIES}
    )
    by_category: dict[str, list[str]] = field(
        default_factory=lambda: {c: [] for c in CATEGORIES}
    )

    def to_dict(self) -> dict:
        return {
            "dominantLanguages": self.dominant_languages,
            "primaryByCategory": self.primary_by_category,
            "byCategory": self.by_category,
        }


@dataclass
class DetectionStats:
    """Bookkeeping for one detection run."""

    stacks_total: int = 0
    stacks_evaluated: int = 0
    files_scanned: int = 0
    elapsed_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "stacksTotal": self.stacks_total,
            "stacksEvaluated": self.stacks_evaluated,
            "filesScanned": self.files_scanned,
            "elapsedMs": self.elapsed_ms,
        }


@dataclass
class WorkspaceStackDetectionResult:
    """Result of one ``detect_stacks`` call.

    ``complete`` is False when a resource limit cut the run short; the
    stacks present were still fully evaluated (see ``incomplete_reason``).
    """

    workspace_id: str
    root_path: str
    detected_stacks: list[DetectedStack] = field(default_factory=list)
    considered_stacks: list[ConsideredStack] = field(default_factory=list)
    summary: DetectionSummary = field(default_factory=DetectionSummary)
    complete: bool = True
    incomplete_reason: str | None = None
    stats: DetectionStats = field(default_factory=DetectionStats)

    def get_detected(self, stack_id: str) -> DetectedStack | None:
        for s in self.detected_stacks:
            if s.id == stack_id:
                return s
        return None

    def get_considered(self, stack_id: str) -> ConsideredStack | None:
        for s in self.considered_stacks:
            if s.id == stack_id:
                return s
        return None

    @property
    def detected_ids(self) -> list[str]:
        return [s.id for s in self.detected_stacks]

    def to_dict(self) -> dict:
        return {
            "workspaceId": self.workspace_id,
            "rootPath": self.root_path,
            "complete": self.complete,
            "incompleteReason": self.incomplete_reason,
            "detectedStacks": [s.to_dict() for s in self.detected_stacks],
            "consideredStacks": [s.to_dict() for s in self.considered_stacks],
            "summary": self.summary.to_dict(),
            "stats": self.stats.to_dict(),
        }

"""
Detection service — score every registry stack against a workspace.

This is the core intelligence layer. For each stack it evaluates the
indicators, applies the hard gates, sums the weights of the indicators
that fired into a score, normalizes the score into a confidence, and
finally resolves conflicts and dependencies across the whole candidate
set.

Scores are a pure function of (indicator set, workspace state). Stacks
may be evaluated concurrently; everything that compares stacks with each
other runs afterwards, single-threaded, on the fully scored set.

Pure logic — no side effects, no persistence.
"""

from __future__ import annotations

import concurrent.futures
import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from stackprobe.core.models.detection import (
    INCOMPLETE_FILE_LIMIT,
    INCOMPLETE_TIMEOUT,
    ConsideredStack,
    DetectedStack,
    DetectionOptions,
    DetectionStats,
    DetectionSummary,
    IndicatorEvidence,
    WorkspaceStackDetectionResult,
)
from stackprobe.core.models.stack import (
    CATEGORIES,
    GROUP_REQUIRED_ALL,
    GROUP_REQUIRED_ANY,
    Indicator,
    StackDefinition,
    StackRegistry,
)
from stackprobe.core.services.indicators import IndicatorEvaluator
from stackprobe.core.services.workspace_scan import (
    DetectionTimeout,
    ScanBudget,
    WorkspaceScanner,
)

logger = logging.getLogger(__name__)

# How many language stacks the summary calls "dominant"
DOMINANT_LANGUAGES = 3


class DetectionError(Exception):
    """Base for caller errors rejected before any evaluation starts."""


class WorkspaceError(DetectionError):
    """The workspace root is missing or not a directory."""


class InvalidOptionsError(DetectionError):
    """Detection options failed validation."""


@dataclass
class StackEvaluation:
    """Score and evidence of one stack that passed its hard gates."""

    stack: StackDefinition
    score: float = 0.0
    confidence: float = 0.0
    evidence: list[IndicatorEvidence] = field(default_factory=list)

    @property
    def passes_threshold(self) -> bool:
        return self.score >= self.stack.detection.min_score


def calculate_confidence(stack: StackDefinition, score: float) -> float:
    """Normalize a score into [0, 1] against the stack's max score."""
    max_score = stack.max_score
    if max_score <= 0:
        return 0.0
    return min(1.0, max(0.0, score / max_score))


class StackDetectionEngine:
    """Runs stack detection against workspaces using one registry.

    The registry is held by reference and never modified; one engine can
    serve any number of concurrent ``detect_stacks`` calls.
    """

    def __init__(self, registry: StackRegistry) -> None:
        self.registry = registry

    # ── Entry point ──────────────────────────────────────────────

    def detect_stacks(
        self,
        workspace_id: str,
        workspace_root: str | Path,
        options: DetectionOptions | dict | None = None,
    ) -> WorkspaceStackDetectionResult:
        """Detect the stacks present in a workspace.

        Args:
            workspace_id: Caller's identifier for the workspace.
            workspace_root: Existing directory to scan.
            options: DetectionOptions, or a mapping of option fields.

        Returns:
            The ranked result. ``complete`` is False when the timeout or
            file cap cut the run short.

        Raises:
            WorkspaceError: If the root does not exist or is not a directory.
            InvalidOptionsError: If ``options`` is a mapping that fails validation.
        """
        opts = _coerce_options(options)
        root = _validate_root(workspace_root)

        limits = opts.limits
        budget = ScanBudget(limits.max_files, limits.timeout_ms)
        scanner = WorkspaceScanner(
            root,
            budget,
            max_depth=opts.max_depth,
            max_bytes_per_file=limits.max_bytes_per_file,
        )
        evaluator = IndicatorEvaluator(scanner, opts.scan_mode)

        stacks = self.select_stacks(opts)
        logger.debug(
            "Detecting %d stacks in %s (mode=%s, workers=%d)",
            len(stacks), root, opts.scan_mode, opts.workers,
        )

        evaluated, timed_out = self._evaluate_all(stacks, evaluator, opts.workers)
        passed = [ev for ev in evaluated if ev is not None]

        result = self._build_result(workspace_id, root, passed)
        result.stats = DetectionStats(
            stacks_total=len(stacks),
            stacks_evaluated=len(evaluated),
            files_scanned=budget.files_scanned,
            elapsed_ms=budget.elapsed_ms,
        )

        if timed_out:
            result.complete = False
            result.incomplete_reason = INCOMPLETE_TIMEOUT
        elif scanner.truncated:
            result.complete = False
            result.incomplete_reason = INCOMPLETE_FILE_LIMIT

        if not result.complete:
            logger.warning(
                "Partial detection for %s (%s): %d/%d stacks evaluated",
                workspace_id, result.incomplete_reason, len(evaluated), len(stacks),
            )

        logger.info(
            "Detected %d stacks in %s (%d considered, %d ms)",
            len(result.detected_stacks), workspace_id,
            len(result.considered_stacks), result.stats.elapsed_ms,
        )
        return result

    # ── Stack selection ──────────────────────────────────────────

    def select_stacks(self, options: DetectionOptions) -> list[StackDefinition]:
        """Apply include/exclude filters. Include wins when an id is in both."""
        include = set(options.include_stacks)
        exclude = set(options.exclude_stacks)

        unknown = sorted((include | exclude) - set(self.registry.stacks))
        if unknown:
            logger.warning("Ignoring unknown stack ids: %s", ", ".join(unknown))

        ids = self.registry.ids
        if include:
            ids = [i for i in ids if i in include]
        ids = [i for i in ids if i not in exclude or i in include]
        return [self.registry.stacks[i] for i in ids]

    # ── Per-stack evaluation ─────────────────────────────────────

    def evaluate_stack(
        self, stack: StackDefinition, evaluator: IndicatorEvaluator
    ) -> StackEvaluation | None:
        """Score one stack. None when a hard gate is not met.

        Raises:
            DetectionTimeout: If the run's deadline passes mid-evaluation.
        """
        roots = stack.effective_search_roots
        ind_set = stack.indicators
        # (declared position, indicator, evidence) for each indicator that fired
        satisfied: list[tuple[int, Indicator, list[IndicatorEvidence]]] = []
        position = 0

        def run(group: str, index: int, indicator: Indicator) -> list[IndicatorEvidence]:
            return evaluator.evaluate(
                indicator,
                indicator_id=f"{stack.id}:{group}[{index}]",
                search_roots=roots,
            )

        for group, indicators in ind_set.groups():
            group_hits = 0
            for index, indicator in enumerate(indicators):
                evidence = run(group, index, indicator)
                if evidence:
                    satisfied.append((position, indicator, evidence))
                    group_hits += 1
                elif group == GROUP_REQUIRED_ALL:
                    logger.debug("Stack %s: requiredAll[%d] missing", stack.id, index)
                    return None
                position += 1

            if group == GROUP_REQUIRED_ANY and indicators and group_hits == 0:
                logger.debug("Stack %s: no requiredAny indicator matched", stack.id)
                return None

        # The cap ranks required and optional hits alike; a gate hit may be cut
        cap = stack.detection.max_indicators_counted
        if cap is not None and len(satisfied) > cap:
            heaviest = sorted(satisfied, key=lambda item: (-item[1].weight, item[0]))[:cap]
            satisfied = sorted(heaviest, key=lambda item: item[0])

        score = sum(indicator.weight for _, indicator, _ in satisfied)
        evidence = [e for _, _, ev in satisfied for e in ev]
        confidence = calculate_confidence(stack, score)

        logger.debug(
            "Stack %s: score=%.2f confidence=%.3f (%d indicators)",
            stack.id, score, confidence, len(satisfied),
        )
        return StackEvaluation(stack=stack, score=score, confidence=confidence, evidence=evidence)

    def _evaluate_all(
        self,
        stacks: list[StackDefinition],
        evaluator: IndicatorEvaluator,
        workers: int,
    ) -> tuple[list[StackEvaluation | None], bool]:
        """Evaluate stacks, keeping those that finished before the deadline.

        Returns (evaluations, timed_out). Gate failures appear as None.
        Output is ordered by stack id whatever the completion order.
        """
        finished: dict[str, StackEvaluation | None] = {}
        timed_out = False

        if workers <= 1 or len(stacks) <= 1:
            for stack in stacks:
                try:
                    finished[stack.id] = self.evaluate_stack(stack, evaluator)
                except DetectionTimeout:
                    timed_out = True
                    break
        else:
            with concurrent.futures.ThreadPoolExecutor(
                max_workers=min(workers, len(stacks)),
            ) as pool:
                futures = {
                    pool.submit(self.evaluate_stack, s, evaluator): s for s in stacks
                }
                for future in concurrent.futures.as_completed(futures):
                    stack = futures[future]
                    try:
                        finished[stack.id] = future.result()
                    except DetectionTimeout:
                        timed_out = True

        return [finished[i] for i in sorted(finished)], timed_out

    # ── Cross-stack resolution ───────────────────────────────────

    def _build_result(
        self,
        workspace_id: str,
        root: Path,
        evaluations: list[StackEvaluation],
    ) -> WorkspaceStackDetectionResult:
        candidates: list[StackEvaluation] = []
        considered: list[ConsideredStack] = []

        for ev in evaluations:
            if not ev.evidence:
                continue
            if ev.passes_threshold:
                candidates.append(ev)
            else:
                considered.append(_to_considered(ev))

        winners, suppressed = self.resolve_conflicts(candidates)
        for ev, winner_id in suppressed:
            considered.append(_to_considered(ev, suppressed_by=winner_id))

        detected_ids = {ev.stack.id for ev in winners}
        detected = [
            DetectedStack(
                id=ev.stack.id,
                display_name=ev.stack.display_name,
                category=ev.stack.category,
                score=ev.score,
                confidence=ev.confidence,
                evidence=ev.evidence,
                resolved_dependencies=[d for d in ev.stack.depends_on if d in detected_ids],
            )
            for ev in winners
        ]

        detected.sort(key=_rank_key)
        considered.sort(key=_rank_key)

        return WorkspaceStackDetectionResult(
            workspace_id=workspace_id,
            root_path=str(root),
            detected_stacks=detected,
            considered_stacks=considered,
            summary=self.summarize(detected),
        )

    def resolve_conflicts(
        self, candidates: list[StackEvaluation]
    ) -> tuple[list[StackEvaluation], list[tuple[StackEvaluation, str]]]:
        """Demote the losing side of every conflicting pair.

        Candidates are ranked by score, then priority, then id. Walking
        that ranking, a candidate that conflicts with one already kept is
        suppressed. The outcome depends only on the candidate set.
        A suppressed candidate no longer suppresses anything, so in a chain
        where a beats b and b beats c, both a and c are kept.

        Returns:
            (kept, [(suppressed, winner_id), ...])
        """
        ranked = sorted(
            candidates,
            key=lambda ev: (-ev.score, -ev.stack.priority, ev.stack.id),
        )
        kept: list[StackEvaluation] = []
        suppressed: list[tuple[StackEvaluation, str]] = []

        for ev in ranked:
            winner = next((k for k in kept if k.stack.conflicts_with(ev.stack)), None)
            if winner is None:
                kept.append(ev)
                continue
            logger.info(
                "Stack %s (score %.2f) suppressed by conflicting %s (score %.2f)",
                ev.stack.id, ev.score, winner.stack.id, winner.score,
            )
            suppressed.append((ev, winner.stack.id))

        return kept, suppressed

    def summarize(self, detected: list[DetectedStack]) -> DetectionSummary:
        """Group detected stacks by category and pick the primary ones."""
        summary = DetectionSummary()
        grouped: dict[str, list[DetectedStack]] = {c: [] for c in CATEGORIES}
        for d in detected:
            grouped.setdefault(d.category, []).append(d)

        def priority(d: DetectedStack) -> int:
            definition = self.registry.get(d.id)
            return definition.priority if definition else 0

        for category, stacks in grouped.items():
            ranked = sorted(stacks, key=lambda d: (-priority(d), -d.confidence, d.id))
            summary.by_category[category] = [d.id for d in ranked]
            if not stacks:
                summary.primary_by_category[category] = []
                continue

            top_priority = max(priority(d) for d in stacks)
            top = [d for d in stacks if priority(d) == top_priority]
            top_confidence = max(d.confidence for d in top)
            summary.primary_by_category[category] = sorted(
                d.id for d in top if d.confidence == top_confidence
            )

        languages = sorted(grouped["language"], key=lambda d: (-d.confidence, d.id))
        summary.dominant_languages = [d.id for d in languages[:DOMINANT_LANGUAGES]]
        return summary


def detect_stacks(
    registry: StackRegistry,
    workspace_id: str,
    workspace_root: str | Path,
    options: DetectionOptions | dict | None = None,
) -> WorkspaceStackDetectionResult:
    """Convenience wrapper: one-off detection with a fresh engine."""
    return StackDetectionEngine(registry).detect_stacks(workspace_id, workspace_root, options)


# ── Helpers ─────────────────────────────────────────────────────


def _coerce_options(options: DetectionOptions | dict | None) -> DetectionOptions:
    if options is None:
        return DetectionOptions()
    if isinstance(options, DetectionOptions):
        return options
    try:
        return DetectionOptions.model_validate(options)
    except ValidationError as e:
        raise InvalidOptionsError(f"Invalid detection options: {e}") from e


def _validate_root(workspace_root: str | Path) -> Path:
    root = Path(workspace_root)
    if not root.exists():
        raise WorkspaceError(f"Workspace root does not exist: {root}")
    if not root.is_dir():
        raise WorkspaceError(f"Workspace root is not a directory: {root}")
    return root.resolve()


def _to_considered(ev: StackEvaluation, suppressed_by: str | None = None) -> ConsideredStack:
    return ConsideredStack(
        id=ev.stack.id,
        display_name=ev.stack.display_name,
        category=ev.stack.category,
        score=ev.score,
        confidence=ev.confidence,
        evidence=ev.evidence,
        suppressed_by=suppressed_by,
    )


def _rank_key(s: DetectedStack | ConsideredStack) -> tuple[float, float, str]:
    return (-s.confidence, -s.score, s.id)

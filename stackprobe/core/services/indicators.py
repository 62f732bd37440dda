"""
Indicator evaluation — one declarative evidence rule against one workspace.

Evaluation is exploratory: for most (stack, workspace) pairs the files an
indicator looks for do not exist, or exist in some other shape. A missing
file, an unreadable file and a malformed document are all the same
answer — no evidence — and never an error. The only exception that
escapes ``evaluate`` is ``DetectionTimeout``.
"""

from __future__ import annotations

import json
import logging
import re
import tomllib
from collections.abc import Callable, Sequence
from typing import Any

from stackprobe.core.models.detection import IndicatorEvidence, ScanMode
from stackprobe.core.models.stack import (
    INDICATOR_TYPES,
    DirExistsIndicator,
    FileContainsIndicator,
    FileExistsIndicator,
    FilePatternExistsIndicator,
    Indicator,
    JsonFieldIndicator,
    PathPatternIndicator,
    TomlFieldIndicator,
)
from stackprobe.core.services.field_lookup import (
    MISSING,
    json_pointer_get,
    matches_expected,
    toml_path_get,
)
from stackprobe.core.services.workspace_scan import (
    WorkspaceScanner,
    glob_match,
    join_relative,
)

logger = logging.getLogger(__name__)

# Pattern indicators stop collecting after this many paths unless maxMatches says otherwise
DEFAULT_MATCH_CAP = 10


class IndicatorEvaluator:
    """Evaluates indicators against the workspace behind a scanner.

    Args:
        scanner: Bounded view of the workspace for this detection call.
        scan_mode: ``fast`` evaluates only cheap kinds (file/dir existence);
            every other kind yields no evidence.
    """

    def __init__(self, scanner: WorkspaceScanner, scan_mode: ScanMode = "thorough") -> None:
        self.scanner = scanner
        self.scan_mode = scan_mode

    def should_evaluate(self, indicator: Indicator) -> bool:
        return self.scan_mode == "thorough" or indicator.is_cheap

    def evaluate(
        self,
        indicator: Indicator,
        indicator_id: str = "",
        search_roots: Sequence[str] = (".",),
    ) -> list[IndicatorEvidence]:
        """Evaluate one indicator. Returns zero or one evidence record."""
        self.scanner.budget.check_deadline()

        if not self.should_evaluate(indicator):
            return []

        handler = _HANDLERS.get(type(indicator))
        if handler is None:
            raise TypeError(f"No evaluator for indicator kind {type(indicator).__name__}")

        roots = (".",) if indicator.root_relative else tuple(search_roots) or (".",)
        try:
            return handler(self, indicator, indicator_id, roots)
        except (OSError, ValueError) as e:
            logger.debug("Indicator %s yielded no evidence: %s", indicator_id, e)
            return []

    # ── Existence ────────────────────────────────────────────────

    def _file_exists(
        self, ind: FileExistsIndicator, indicator_id: str, roots: tuple[str, ...]
    ) -> list[IndicatorEvidence]:
        for base in roots:
            if self.scanner.is_file(self.scanner.resolve(ind.path, base)):
                rel = join_relative(base, ind.path)
                return [IndicatorEvidence(
                    kind=ind.kind,
                    weight=ind.weight,
                    indicator_id=indicator_id,
                    path=rel,
                    note=f"Found file: {rel}",
                )]
        return []

    def _dir_exists(
        self, ind: DirExistsIndicator, indicator_id: str, roots: tuple[str, ...]
    ) -> list[IndicatorEvidence]:
        for base in roots:
            if self.scanner.is_dir(self.scanner.resolve(ind.path, base)):
                rel = join_relative(base, ind.path)
                return [IndicatorEvidence(
                    kind=ind.kind,
                    weight=ind.weight,
                    indicator_id=indicator_id,
                    path=rel,
                    note=f"Found directory: {rel}",
                )]
        return []

    # ── Listing-based ────────────────────────────────────────────

    def _collect(
        self,
        roots: tuple[str, ...],
        predicate: Callable[[str], bool],
        limit: int,
    ) -> list[str]:
        matches: list[str] = []
        for base in roots:
            self.scanner.budget.check_deadline()
            for rel in self.scanner.files_under(base):
                if predicate(rel):
                    matches.append(join_relative(base, rel))
                    if len(matches) >= limit:
                        return matches
        return matches

    def _file_pattern_exists(
        self, ind: FilePatternExistsIndicator, indicator_id: str, roots: tuple[str, ...]
    ) -> list[IndicatorEvidence]:
        limit = ind.max_matches or DEFAULT_MATCH_CAP
        matches = self._collect(roots, lambda rel: glob_match(rel, ind.glob), limit)
        if not matches:
            return []
        # Weight counts once however many files match
        return [IndicatorEvidence(
            kind=ind.kind,
            weight=ind.weight,
            indicator_id=indicator_id,
            glob=ind.glob,
            matched_paths=tuple(matches),
            note=f"Found {len(matches)} file(s) matching pattern: {ind.glob}",
        )]

    def _path_pattern(
        self, ind: PathPatternIndicator, indicator_id: str, roots: tuple[str, ...]
    ) -> list[IndicatorEvidence]:
        pattern = re.compile(ind.regex)
        matches = self._collect(roots, lambda rel: pattern.search(rel) is not None, DEFAULT_MATCH_CAP)
        if not matches:
            return []
        return [IndicatorEvidence(
            kind=ind.kind,
            weight=ind.weight,
            indicator_id=indicator_id,
            regex=ind.regex,
            matched_paths=tuple(matches),
            note=f"Found {len(matches)} path(s) matching regex: {ind.regex}",
        )]

    # ── Content ──────────────────────────────────────────────────

    def _file_contains(
        self, ind: FileContainsIndicator, indicator_id: str, roots: tuple[str, ...]
    ) -> list[IndicatorEvidence]:
        pattern = re.compile(ind.regex)
        for base in roots:
            path = self.scanner.resolve(ind.path, base)
            if path is None or not self.scanner.is_file(path):
                continue
            if pattern.search(self.scanner.read_text(path)):
                rel = join_relative(base, ind.path)
                return [IndicatorEvidence(
                    kind=ind.kind,
                    weight=ind.weight,
                    indicator_id=indicator_id,
                    path=rel,
                    regex=ind.regex,
                    note=f"File {rel} contains pattern: {ind.regex}",
                )]
        return []

    def _structured_field(
        self,
        ind: JsonFieldIndicator | TomlFieldIndicator,
        indicator_id: str,
        roots: tuple[str, ...],
        parse: Callable[[str], Any],
        lookup: Callable[[Any, str], Any],
        field_path: str,
        label: str,
    ) -> list[IndicatorEvidence]:
        for base in roots:
            path = self.scanner.resolve(ind.path, base)
            if path is None or not self.scanner.is_file(path):
                continue
            try:
                doc = parse(self.scanner.read_text(path))
            except (OSError, ValueError, RecursionError) as e:
                logger.debug("Cannot parse %s for %s: %s", path, indicator_id, e)
                continue

            value = lookup(doc, field_path)
            if value is MISSING:
                continue
            if ind.expected_value is not None and not matches_expected(value, ind.expected_value):
                continue

            rel = join_relative(base, ind.path)
            return [IndicatorEvidence(
                kind=ind.kind,
                weight=ind.weight,
                indicator_id=indicator_id,
                path=rel,
                field_path=field_path,
                field_value=value,
                note=f"Found {label} field {field_path} in {rel}",
            )]
        return []

    def _json_field(
        self, ind: JsonFieldIndicator, indicator_id: str, roots: tuple[str, ...]
    ) -> list[IndicatorEvidence]:
        return self._structured_field(
            ind, indicator_id, roots, json.loads, json_pointer_get, ind.json_pointer, "JSON"
        )

    def _toml_field(
        self, ind: TomlFieldIndicator, indicator_id: str, roots: tuple[str, ...]
    ) -> list[IndicatorEvidence]:
        return self._structured_field(
            ind, indicator_id, roots, tomllib.loads, toml_path_get, ind.toml_path, "TOML"
        )


_HANDLERS: dict[type, Callable[..., list[IndicatorEvidence]]] = {
    FileExistsIndicator: IndicatorEvaluator._file_exists,
    DirExistsIndicator: IndicatorEvaluator._dir_exists,
    FilePatternExistsIndicator: IndicatorEvaluator._file_pattern_exists,
    FileContainsIndicator: IndicatorEvaluator._file_contains,
    PathPatternIndicator: IndicatorEvaluator._path_pattern,
    JsonFieldIndicator: IndicatorEvaluator._json_field,
    TomlFieldIndicator: IndicatorEvaluator._toml_field,
}

_unhandled = [t.__name__ for t in INDICATOR_TYPES if t not in _HANDLERS]
if _unhandled:
    raise RuntimeError(f"Indicator kinds without an evaluator: {', '.join(_unhandled)}")

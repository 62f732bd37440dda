"""
Tests for domain models — indicators, stack definitions, registry, options.
"""

import pytest
from pydantic import ValidationError

from stackprobe.core.models.detection import (
    DetectionOptions,
    DetectionSummary,
    IndicatorEvidence,
    WorkspaceStackDetectionResult,
)
from stackprobe.core.models.stack import (
    CATEGORIES,
    FileContainsIndicator,
    FileExistsIndicator,
    JsonFieldIndicator,
    StackDefinition,
    StackRegistry,
    TomlFieldIndicator,
)

# ── Indicators ───────────────────────────────────────────────────────


def _stack(**indicators) -> dict:
    return {
        "id": "demo",
        "displayName": "Demo",
        "category": "language",
        "indicators": indicators,
        "detection": {"minScore": 1},
    }


class TestIndicators:
    def test_discriminated_by_kind(self):
        stack = StackDefinition.model_validate(_stack(
            requiredAny=[
                {"kind": "fileExists", "path": "a.txt", "weight": 1},
                {"kind": "jsonField", "path": "package.json", "jsonPointer": "/name", "weight": 2},
                {"kind": "tomlField", "path": "Cargo.toml", "tomlPath": "package.name", "weight": 3},
            ],
        ))
        first, second, third = stack.indicators.required_any
        assert isinstance(first, FileExistsIndicator)
        assert isinstance(second, JsonFieldIndicator)
        assert second.json_pointer == "/name"
        assert isinstance(third, TomlFieldIndicator)

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            StackDefinition.model_validate(_stack(
                requiredAny=[{"kind": "astMatch", "path": "a", "weight": 1}],
            ))

    def test_negative_weight_rejected(self):
        with pytest.raises(ValidationError):
            FileExistsIndicator(path="a", weight=-1)

    def test_zero_weight_allowed(self):
        assert FileExistsIndicator(path="a", weight=0).weight == 0

    @pytest.mark.parametrize("path", ["/etc/passwd", "../outside.txt", "a/../../b"])
    def test_escaping_paths_rejected(self, path: str):
        with pytest.raises(ValidationError):
            FileExistsIndicator(path=path, weight=1)

    def test_nested_relative_path_allowed(self):
        assert FileExistsIndicator(path="src/main/java", weight=1).path == "src/main/java"

    def test_invalid_regex_rejected(self):
        with pytest.raises(ValidationError):
            FileContainsIndicator(path="a", regex="(unclosed", weight=1)

    def test_json_pointer_must_start_with_slash(self):
        with pytest.raises(ValidationError):
            JsonFieldIndicator(path="package.json", json_pointer="dependencies/react", weight=1)

    def test_empty_json_pointer_allowed(self):
        assert JsonFieldIndicator(path="package.json", json_pointer="", weight=1).json_pointer == ""

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValidationError):
            StackDefinition.model_validate(_stack(
                requiredAny=[{"kind": "fileExists", "path": "a", "weight": 1, "colour": "red"}],
            ))

    def test_cheap_kinds(self):
        assert FileExistsIndicator(path="a", weight=1).is_cheap
        assert not FileContainsIndicator(path="a", regex="x", weight=1).is_cheap


# ── Stack definitions ────────────────────────────────────────────────


class TestStackDefinition:
    def test_camel_case_fields(self):
        stack = StackDefinition.model_validate({
            **_stack(optional=[{"kind": "fileExists", "path": "a", "weight": 1}]),
            "dependsOn": ["other"],
            "searchRoots": ["packages/api"],
        })
        assert stack.display_name == "Demo"
        assert stack.depends_on == ("other",)
        assert stack.effective_search_roots == ("packages/api",)

    def test_default_search_root(self):
        stack = StackDefinition.model_validate(_stack(
            optional=[{"kind": "fileExists", "path": "a", "weight": 1}],
        ))
        assert stack.effective_search_roots == (".",)

    def test_empty_indicator_set_rejected(self):
        with pytest.raises(ValidationError, match="no indicators"):
            StackDefinition.model_validate(_stack())

    def test_self_dependency_rejected(self):
        doc = _stack(optional=[{"kind": "fileExists", "path": "a", "weight": 1}])
        doc["dependsOn"] = ["demo"]
        with pytest.raises(ValidationError, match="depends on itself"):
            StackDefinition.model_validate(doc)

    def test_self_conflict_rejected(self):
        doc = _stack(
            optional=[{"kind": "fileExists", "path": "a", "weight": 1}],
            conflictsWith=["demo"],
        )
        with pytest.raises(ValidationError, match="conflicts with itself"):
            StackDefinition.model_validate(doc)

    def test_unknown_category_rejected(self):
        doc = _stack(optional=[{"kind": "fileExists", "path": "a", "weight": 1}])
        doc["category"] = "database"
        with pytest.raises(ValidationError):
            StackDefinition.model_validate(doc)

    def test_derived_max_score_is_total_weight(self):
        stack = StackDefinition.model_validate(_stack(
            requiredAny=[{"kind": "fileExists", "path": "a", "weight": 3}],
            optional=[
                {"kind": "fileExists", "path": "b", "weight": 2},
                {"kind": "dirExists", "path": "c", "weight": 0.5},
            ],
        ))
        assert stack.max_score == 5.5

    def test_explicit_max_score_wins(self):
        doc = _stack(requiredAny=[{"kind": "fileExists", "path": "a", "weight": 3}])
        doc["detection"]["maxScore"] = 10
        assert StackDefinition.model_validate(doc).max_score == 10

    def test_priority_defaults_to_zero(self):
        stack = StackDefinition.model_validate(_stack(
            optional=[{"kind": "fileExists", "path": "a", "weight": 1}],
        ))
        assert stack.priority == 0


# ── Registry ─────────────────────────────────────────────────────────


class TestStackRegistry:
    def test_conflicts_are_symmetric(self, make_registry, stack_doc, file_exists):
        registry = make_registry(
            stack_doc("make", optional=[file_exists("Makefile")], conflicts_with=["cmake"]),
            stack_doc("cmake", optional=[file_exists("CMakeLists.txt")]),
        )
        make, cmake = registry.get("make"), registry.get("cmake")
        assert make.conflicts_with(cmake)
        assert cmake.conflicts_with(make)

    def test_key_must_match_id(self, stack_doc, file_exists):
        with pytest.raises(ValidationError, match="does not match id"):
            StackRegistry.model_validate({
                "stacks": {"alias": stack_doc("real", optional=[file_exists("a")])},
            })

    def test_unknown_dependency_rejected(self, stack_doc, file_exists):
        doc = stack_doc("react", optional=[file_exists("a")], depends_on=["nodejs"])
        with pytest.raises(ValidationError, match="unknown stack 'nodejs'"):
            StackRegistry.model_validate({"stacks": {"react": doc}})

    def test_unknown_conflict_rejected(self, stack_doc, file_exists):
        doc = stack_doc("make", optional=[file_exists("a")], conflicts_with=["ninja"])
        with pytest.raises(ValidationError, match="unknown stack 'ninja'"):
            StackRegistry.model_validate({"stacks": {"make": doc}})

    def test_lookup_helpers(self, make_registry, stack_doc, file_exists):
        registry = make_registry(
            stack_doc("zig", optional=[file_exists("build.zig")]),
            stack_doc("docker", category="tooling", optional=[file_exists("Dockerfile")]),
            stack_doc("ada", optional=[file_exists("a.gpr")]),
        )
        assert registry.ids == ["ada", "docker", "zig"]
        assert len(registry) == 3
        assert "zig" in registry
        assert registry.get("cobol") is None
        assert [s.id for s in registry.by_category("language")] == ["ada", "zig"]

    def test_registry_is_immutable(self, make_registry, stack_doc, file_exists):
        registry = make_registry(stack_doc("zig", optional=[file_exists("build.zig")]))
        with pytest.raises(ValidationError):
            registry.version = "2"


# ── Options ──────────────────────────────────────────────────────────


class TestDetectionOptions:
    def test_defaults(self):
        opts = DetectionOptions()
        assert opts.scan_mode == "thorough"
        assert opts.include_stacks == ()
        assert opts.max_depth is None
        assert opts.limits.max_files == 20_000
        assert opts.limits.max_bytes_per_file == 1024 * 1024
        assert opts.limits.timeout_ms == 30_000

    def test_camel_case_mapping(self):
        opts = DetectionOptions.model_validate({
            "scanMode": "fast",
            "includeStacks": ["nodejs"],
            "maxDepth": 2,
            "limits": {"maxFiles": 10, "timeoutMs": 500},
        })
        assert opts.scan_mode == "fast"
        assert opts.include_stacks == ("nodejs",)
        assert opts.max_depth == 2
        assert opts.limits.max_files == 10
        assert opts.limits.timeout_ms == 500

    def test_unknown_scan_mode_rejected(self):
        with pytest.raises(ValidationError):
            DetectionOptions.model_validate({"scanMode": "paranoid"})

    @pytest.mark.parametrize("limits", [{"maxFiles": 0}, {"maxBytesPerFile": -1}, {"timeoutMs": 0}])
    def test_non_positive_limits_rejected(self, limits: dict):
        with pytest.raises(ValidationError):
            DetectionOptions.model_validate({"limits": limits})


# ── Results ──────────────────────────────────────────────────────────


class TestResults:
    def test_evidence_to_dict_omits_unset(self):
        ev = IndicatorEvidence(kind="fileExists", weight=5, path="package.json")
        assert ev.to_dict() == {"kind": "fileExists", "weight": 5, "path": "package.json"}

    def test_evidence_to_dict_field(self):
        ev = IndicatorEvidence(
            kind="jsonField", weight=2, path="package.json",
            field_path="/dependencies/react", field_value="^18.0.0",
        )
        d = ev.to_dict()
        assert d["fieldPath"] == "/dependencies/react"
        assert d["fieldValue"] == "^18.0.0"

    def test_summary_has_every_category(self):
        d = DetectionSummary().to_dict()
        assert set(d["primaryByCategory"]) == set(CATEGORIES)
        assert set(d["byCategory"]) == set(CATEGORIES)

    def test_result_to_dict(self):
        result = WorkspaceStackDetectionResult(workspace_id="ws", root_path="/tmp/ws")
        d = result.to_dict()
        assert d["workspaceId"] == "ws"
        assert d["complete"] is True
        assert d["incompleteReason"] is None
        assert d["detectedStacks"] == []
        assert d["consideredStacks"] == []
        assert result.get_detected("nodejs") is None

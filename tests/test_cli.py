"""
Tests for CLI commands — detect, stacks, registry, and global options.
"""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from stackprobe.main import cli


@pytest.fixture(autouse=True)
def _isolate_logging(restore_root_logger):
    yield


@pytest.fixture
def registry_file(tmp_path: Path, stack_doc, file_exists) -> Path:
    path = tmp_path / "stacks.json"
    stacks = [
        stack_doc(
            "go",
            required_any=[file_exists("go.mod", 6)],
            optional=[{"kind": "filePatternExists", "glob": "**/*.go", "weight": 2}],
            min_score=5,
            maxScore=10,
        ),
        stack_doc(
            "django",
            category="framework",
            required_any=[file_exists("manage.py", 4)],
            min_score=5,
        ),
        stack_doc("docker", category="tooling", required_any=[file_exists("Dockerfile", 5)]),
    ]
    path.write_text(json.dumps({"version": "3.1", "stacks": {s["id"]: s for s in stacks}}))
    return path


def _invoke(registry: Path, *args: str):
    return CliRunner().invoke(cli, ["--registry", str(registry), *args])


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "detect the technology stacks" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestDetectCommand:
    def test_detect(self, registry_file: Path, workspace: Path, make_tree):
        make_tree(workspace, {"go.mod": "module x\n", "main.go": "package main\n"})
        result = _invoke(registry_file, "detect", str(workspace))
        assert result.exit_code == 0
        assert "✓ go" in result.output
        assert "80%" in result.output

    def test_detect_json(self, registry_file: Path, workspace: Path, make_tree):
        make_tree(workspace, {"go.mod": ""})
        result = _invoke(registry_file, "detect", str(workspace), "--json", "--workspace-id", "svc")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        detection = data["detection"]
        assert detection["workspaceId"] == "svc"
        assert detection["complete"] is True
        assert [s["id"] for s in detection["detectedStacks"]] == ["go"]
        assert data["registry_version"] == "3.1"

    def test_detect_fast_mode(self, registry_file: Path, workspace: Path, make_tree):
        make_tree(workspace, {"go.mod": "", "main.go": ""})
        result = _invoke(registry_file, "detect", str(workspace), "--mode", "fast", "--json")
        detected = json.loads(result.stdout)["detection"]["detectedStacks"]
        assert detected[0]["score"] == 6

    def test_detect_nothing(self, registry_file: Path, workspace: Path):
        result = _invoke(registry_file, "detect", str(workspace))
        assert result.exit_code == 0
        assert "No stacks detected" in result.output

    def test_detect_considered(self, registry_file: Path, workspace: Path, make_tree):
        make_tree(workspace, {"manage.py": ""})
        result = _invoke(registry_file, "detect", str(workspace), "--considered")
        assert result.exit_code == 0
        assert "~ django" in result.output
        assert "below threshold" in result.output

    def test_detect_include_exclude(self, registry_file: Path, workspace: Path, make_tree):
        make_tree(workspace, {"go.mod": "", "Dockerfile": ""})
        result = _invoke(
            registry_file, "detect", str(workspace), "--json",
            "--include", "docker", "--include", "go", "--exclude", "go",
        )
        ids = [s["id"] for s in json.loads(result.stdout)["detection"]["detectedStacks"]]
        assert sorted(ids) == ["docker", "go"]

    def test_detect_partial(self, registry_file: Path, workspace: Path, make_tree):
        make_tree(workspace, {"go.mod": "", "a.go": "", "b.go": ""})
        result = _invoke(registry_file, "detect", str(workspace), "--max-files", "1")
        assert result.exit_code == 0
        assert "Partial result (file-limit)" in result.output

    def test_detect_missing_path(self, registry_file: Path, tmp_path: Path):
        result = _invoke(registry_file, "detect", str(tmp_path / "missing"))
        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_detect_invalid_limit(self, registry_file: Path, workspace: Path):
        result = _invoke(registry_file, "detect", str(workspace), "--max-files", "0")
        assert result.exit_code == 1
        assert "Invalid detection options" in result.output

    def test_detect_bad_registry_json(self, tmp_path: Path, workspace: Path):
        result = _invoke(tmp_path / "missing.json", "detect", str(workspace), "--json")
        assert result.exit_code == 1
        assert "not found" in json.loads(result.stdout)["error"]


class TestStacksCommands:
    def test_list(self, registry_file: Path):
        result = _invoke(registry_file, "stacks", "list")
        assert result.exit_code == 0
        assert "3 stacks" in result.output
        assert "go" in result.output
        assert "docker" in result.output

    def test_list_category(self, registry_file: Path):
        result = _invoke(registry_file, "stacks", "list", "--category", "tooling", "--json")
        assert result.exit_code == 0
        assert [s["id"] for s in json.loads(result.stdout)] == ["docker"]

    def test_show(self, registry_file: Path):
        result = _invoke(registry_file, "stacks", "show", "go")
        assert result.exit_code == 0
        assert "fileExists go.mod" in result.output
        assert "filePatternExists **/*.go" in result.output
        assert "max 10" in result.output

    def test_show_json(self, registry_file: Path):
        result = _invoke(registry_file, "stacks", "show", "go", "--json")
        data = json.loads(result.stdout)
        assert data["displayName"] == "Go"
        assert data["indicators"]["requiredAny"][0]["path"] == "go.mod"

    def test_show_unknown(self, registry_file: Path):
        result = _invoke(registry_file, "stacks", "show", "cobol")
        assert result.exit_code == 1
        assert "Unknown stack" in result.output

    def test_invalid_registry(self, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text('{"stacks": {"x": {"id": "x"}}}')
        result = _invoke(bad, "stacks", "list")
        assert result.exit_code == 1
        assert "Invalid stack registry" in result.output


class TestRegistryCheckCommand:
    def test_valid(self, registry_file: Path):
        result = CliRunner().invoke(cli, ["registry", "check", str(registry_file)])
        assert result.exit_code == 0
        assert "Registry is valid" in result.output
        assert "Stacks: 3" in result.output
        assert "django" in result.output  # manage.py alone never reaches minScore

    def test_uses_global_registry(self, registry_file: Path):
        result = _invoke(registry_file, "registry", "check", "--json")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["stack_count"] == 3

    def test_invalid(self, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text('{"stacks": {"a": {"id": "b"}}}')
        result = CliRunner().invoke(cli, ["registry", "check", str(bad)])
        assert result.exit_code == 1
        assert "Registry errors" in result.output

    def test_invalid_json_output(self, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text("not json")
        result = CliRunner().invoke(cli, ["registry", "check", str(bad), "--json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["valid"] is False
        assert "Invalid JSON" in data["errors"][0]

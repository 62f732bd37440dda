"""
Stack model — technology knowledge.

Stacks define how a technology shows up on disk: which indicators prove
it is present, how much each piece of evidence weighs, and how the stack
relates to other stacks (dependencies, conflicts). Stacks live in a
registry document that is loaded once and shared read-only by every
detection run.

The registry document is camelCase (``displayName``, ``requiredAny``,
``minScore``); Python code uses the snake_case attribute names.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from pathlib import PurePosixPath
from typing import Annotated, ClassVar, Literal, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

StackCategory = Literal["language", "framework", "runtime", "tooling"]

CATEGORIES: tuple[str, ...] = ("language", "framework", "runtime", "tooling")

ExpectedValue = Union[str, int, float, bool, list[Union[str, int, float, bool]]]

# Indicator group names, as they appear in the registry document
GROUP_REQUIRED_ANY = "requiredAny"
GROUP_REQUIRED_ALL = "requiredAll"
GROUP_OPTIONAL = "optional"


class RegistryModel(BaseModel):
    """Base for every registry model: immutable, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )


def _check_relative(value: str) -> str:
    """Reject absolute paths and paths that climb out of the workspace."""
    p = PurePosixPath(value.replace("\\", "/"))
    if p.is_absolute() or ".." in p.parts:
        raise ValueError(f"path must stay inside the workspace: {value!r}")
    return value


def _check_regex(value: str) -> str:
    try:
        re.compile(value)
    except re.error as e:
        raise ValueError(f"invalid regex {value!r}: {e}") from e
    return value


RelativePath = Annotated[str, AfterValidator(_check_relative)]
Regex = Annotated[str, AfterValidator(_check_regex)]


# ── Indicators ──────────────────────────────────────────────────


class _IndicatorBase(RegistryModel):
    """Fields shared by every indicator kind."""

    weight: float = Field(ge=0, allow_inf_nan=False)
    root_relative: bool = False

    # Cheap kinds only stat the filesystem; fast scans evaluate nothing else.
    is_cheap: ClassVar[bool] = False


class FileExistsIndicator(_IndicatorBase):
    """A regular file exists at ``path``."""

    kind: Literal["fileExists"] = "fileExists"
    path: RelativePath

    is_cheap: ClassVar[bool] = True


class DirExistsIndicator(_IndicatorBase):
    """A directory exists at ``path``."""

    kind: Literal["dirExists"] = "dirExists"
    path: RelativePath

    is_cheap: ClassVar[bool] = True


class FilePatternExistsIndicator(_IndicatorBase):
    """At least one file matches ``glob``."""

    kind: Literal["filePatternExists"] = "filePatternExists"
    glob: RelativePath
    max_matches: int | None = Field(default=None, ge=1)


class FileContainsIndicator(_IndicatorBase):
    """The file at ``path`` contains a match for ``regex``."""

    kind: Literal["fileContains"] = "fileContains"
    path: RelativePath
    regex: Regex


class PathPatternIndicator(_IndicatorBase):
    """Some relative file path in the workspace matches ``regex``."""

    kind: Literal["pathPattern"] = "pathPattern"
    regex: Regex


class JsonFieldIndicator(_IndicatorBase):
    """A JSON document has a field at ``json_pointer`` (optionally equal to a value)."""

    kind: Literal["jsonField"] = "jsonField"
    path: RelativePath
    json_pointer: str
    expected_value: ExpectedValue | None = None

    @field_validator("json_pointer")
    @classmethod
    def _pointer_ok(cls, value: str) -> str:
        if value and not value.startswith("/"):
            raise ValueError(f"JSON pointer must be empty or start with '/': {value!r}")
        return value


class TomlFieldIndicator(_IndicatorBase):
    """A TOML document has a field at dotted ``toml_path`` (optionally equal to a value)."""

    kind: Literal["tomlField"] = "tomlField"
    path: RelativePath
    toml_path: str = Field(min_length=1)
    expected_value: ExpectedValue | None = None


Indicator = Annotated[
    Union[
        FileExistsIndicator,
        DirExistsIndicator,
        FilePatternExistsIndicator,
        FileContainsIndicator,
        PathPatternIndicator,
        JsonFieldIndicator,
        TomlFieldIndicator,
    ],
    Field(discriminator="kind"),
]

INDICATOR_TYPES: tuple[type[_IndicatorBase], ...] = (
    FileExistsIndicator,
    DirExistsIndicator,
    FilePatternExistsIndicator,
    FileContainsIndicator,
    PathPatternIndicator,
    JsonFieldIndicator,
    TomlFieldIndicator,
)


# ── Indicator sets and scoring ──────────────────────────────────


class IndicatorSet(RegistryModel):
    """The evidence rules of one stack.

    ``required_any`` and ``required_all`` are hard gates: if they are not
    met the stack is dropped before scoring. ``optional`` indicators only
    raise the score.
    """

    required_any: tuple[Indicator, ...] = ()
    required_all: tuple[Indicator, ...] = ()
    optional: tuple[Indicator, ...] = ()
    conflicts_with: tuple[str, ...] = ()

    def groups(self) -> list[tuple[str, tuple[Indicator, ...]]]:
        return [
            (GROUP_REQUIRED_ANY, self.required_any),
            (GROUP_REQUIRED_ALL, self.required_all),
            (GROUP_OPTIONAL, self.optional),
        ]

    def all_indicators(self) -> Iterator[tuple[str, int, Indicator]]:
        """Yield (group, index, indicator) in declared order."""
        for group, indicators in self.groups():
            for index, indicator in enumerate(indicators):
                yield group, index, indicator

    @property
    def is_empty(self) -> bool:
        return not (self.required_any or self.required_all or self.optional)

    @property
    def total_weight(self) -> float:
        """Sum of every indicator weight, required and optional."""
        return sum(ind.weight for _, _, ind in self.all_indicators())


class DetectionConfig(RegistryModel):
    """Thresholds and ranking for one stack."""

    min_score: float = Field(ge=0, allow_inf_nan=False)
    max_score: float | None = Field(default=None, ge=0, allow_inf_nan=False)
    max_indicators_counted: int | None = Field(default=None, ge=1)
    priority: int | None = None

    @property
    def effective_priority(self) -> int:
        return self.priority if self.priority is not None else 0


class StackDefinition(RegistryModel):
    """Technology knowledge — how one stack is recognised on disk."""

    id: str = Field(min_length=1)
    display_name: str = Field(min_length=1)
    category: StackCategory
    description: str = ""
    tags: tuple[str, ...] = ()

    # Semantic dependencies, e.g. react depends on nodejs
    depends_on: tuple[str, ...] = ()

    # Workspace-relative directories indicators resolve against
    search_roots: tuple[str, ...] = ()

    indicators: IndicatorSet
    detection: DetectionConfig

    @field_validator("search_roots")
    @classmethod
    def _roots_ok(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for root in value:
            _check_relative(root)
        return value

    @model_validator(mode="after")
    def _check_definition(self) -> StackDefinition:
        if self.indicators.is_empty:
            raise ValueError(f"stack '{self.id}' has no indicators")
        if self.id in self.depends_on:
            raise ValueError(f"stack '{self.id}' depends on itself")
        if self.id in self.indicators.conflicts_with:
            raise ValueError(f"stack '{self.id}' conflicts with itself")
        return self

    @property
    def effective_search_roots(self) -> tuple[str, ...]:
        return self.search_roots or (".",)

    @property
    def max_score(self) -> float:
        """Normalization ceiling: explicit ``maxScore`` or the derived total weight."""
        if self.detection.max_score is not None:
            return self.detection.max_score
        return self.indicators.total_weight

    @property
    def priority(self) -> int:
        return self.detection.effective_priority

    def conflicts_with(self, other: StackDefinition) -> bool:
        """Conflicts are symmetric: either side may declare them."""
        return (
            other.id in self.indicators.conflicts_with
            or self.id in other.indicators.conflicts_with
        )


# ── Registry ────────────────────────────────────────────────────


class StackRegistry(RegistryModel):
    """Immutable catalog of stack definitions keyed by id.

    Built once at startup and passed by reference into every detection
    call. Never mutated.
    """

    stacks: dict[str, StackDefinition]
    version: str | None = None
    updated_at: str | None = None
    description: str | None = None

    @model_validator(mode="after")
    def _check_references(self) -> StackRegistry:
        problems: list[str] = []
        for key, stack in self.stacks.items():
            if key != stack.id:
                problems.append(f"stack key '{key}' does not match id '{stack.id}'")
            for dep in stack.depends_on:
                if dep not in self.stacks:
                    problems.append(f"stack '{key}' depends on unknown stack '{dep}'")
            for other in stack.indicators.conflicts_with:
                if other not in self.stacks:
                    problems.append(f"stack '{key}' conflicts with unknown stack '{other}'")
        if problems:
            raise ValueError("; ".join(problems))
        return self

    def get(self, stack_id: str) -> StackDefinition | None:
        return self.stacks.get(stack_id)

    @property
    def ids(self) -> list[str]:
        return sorted(self.stacks)

    def by_category(self, category: str) -> list[StackDefinition]:
        return [self.stacks[i] for i in self.ids if self.stacks[i].category == category]

    def __len__(self) -> int:
        return len(self.stacks)

    def __contains__(self, stack_id: object) -> bool:
        return stack_id in self.stacks

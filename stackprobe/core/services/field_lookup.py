"""
Structured field lookup for JSON and TOML documents.

Navigation never raises for a missing field; it returns ``MISSING`` so
that a present-but-null JSON value stays distinguishable from "absent".
"""

from __future__ import annotations

from typing import Any


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def _step(current: Any, key: str) -> Any:
    if isinstance(current, dict):
        return current.get(key, MISSING)
    if isinstance(current, list):
        if not key.isdigit():
            return MISSING
        index = int(key)
        return current[index] if index < len(current) else MISSING
    return MISSING


def json_pointer_get(doc: Any, pointer: str) -> Any:
    """Resolve an RFC 6901 JSON pointer (``/dependencies/react``).

    The empty pointer addresses the whole document. ``~1`` decodes to
    ``/`` and ``~0`` to ``~`` (``/dependencies/@types~1node``).
    """
    if pointer == "":
        return doc
    if not pointer.startswith("/"):
        return MISSING

    current = doc
    for token in pointer[1:].split("/"):
        key = token.replace("~1", "/").replace("~0", "~")
        current = _step(current, key)
        if current is MISSING:
            return MISSING
    return current


def toml_path_get(doc: Any, dotted: str) -> Any:
    """Resolve a dotted TOML path (``package.name``, ``workspace.members.0``)."""
    current = doc
    for key in dotted.split("."):
        current = _step(current, key)
        if current is MISSING:
            return MISSING
    return current


def _same(actual: Any, expected: Any) -> bool:
    # bool is an int subclass; True must not equal 1 here
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    return actual == expected


def matches_expected(actual: Any, expected: Any) -> bool:
    """Scalar equality, or membership when ``expected`` is a list."""
    if isinstance(expected, (list, tuple)):
        return any(_same(actual, e) for e in expected)
    return _same(actual, expected)

"""
CLI commands for validating stack registry documents.

Thin wrappers over ``stackprobe.core.use_cases.registry_check``.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click


@click.group()
def registry() -> None:
    """Registry — validate stack registry documents."""


@registry.command("check")
@click.argument(
    "path",
    required=False,
    type=click.Path(dir_okay=False, path_type=Path),
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check(ctx: click.Context, path: Path | None, as_json: bool) -> None:
    """Validate a registry document (default: the active registry)."""
    from stackprobe.core.use_cases.registry_check import check_registry

    result = check_registry(path or ctx.obj.get("registry_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)
        return

    if result.valid:
        assert result.registry is not None  # guaranteed when valid
        click.secho("✅ Registry is valid", fg="green", bold=True)
        click.echo(f"   File: {result.registry_path}")
        click.echo(f"   Stacks: {len(result.registry)}")
        if result.registry.version:
            click.echo(f"   Version: {result.registry.version}")
    else:
        click.secho("❌ Registry errors:", fg="red", bold=True)
        click.echo(f"   File: {result.registry_path}")
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings and not ctx.obj.get("quiet"):
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()

"""
CLI commands for browsing the stack registry.

Thin wrappers over ``stackprobe.core.config.stack_loader``.
"""

from __future__ import annotations

import json
import sys

import click

from stackprobe.core.models.stack import CATEGORIES, Indicator, StackRegistry


def _load(ctx: click.Context) -> StackRegistry:
    """Load the registry selected on the command line, or exit 1."""
    from stackprobe.core.config.stack_loader import RegistryError, load_registry

    try:
        return load_registry(ctx.obj.get("registry_path"))
    except RegistryError as e:
        click.secho(f"❌ {e}", fg="red")
        for err in e.errors:
            if err != str(e):
                click.echo(f"   • {err}")
        sys.exit(1)


def describe_indicator(indicator: Indicator) -> str:
    """One-line human description of an indicator."""
    kind = indicator.kind
    if kind in ("fileExists", "dirExists"):
        target = indicator.path
    elif kind == "filePatternExists":
        target = indicator.glob
    elif kind == "pathPattern":
        target = f"/{indicator.regex}/"
    elif kind == "fileContains":
        target = f"{indicator.path} =~ /{indicator.regex}/"
    elif kind == "jsonField":
        target = f"{indicator.path}#{indicator.json_pointer}"
    else:
        target = f"{indicator.path}:{indicator.toml_path}"

    expected = getattr(indicator, "expected_value", None)
    if expected is not None:
        target += f" == {expected!r}"
    if indicator.root_relative:
        target += " (root)"
    return f"{kind} {target}"


@click.group()
def stacks() -> None:
    """Stacks — browse the stack registry."""


@stacks.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--category",
    type=click.Choice(list(CATEGORIES)),
    default=None,
    help="Only show one category.",
)
@click.pass_context
def list_stacks(ctx: click.Context, as_json: bool, category: str | None) -> None:
    """List the stacks in the registry."""
    registry = _load(ctx)
    categories = [category] if category else list(CATEGORIES)

    if as_json:
        data = [
            {
                "id": s.id,
                "displayName": s.display_name,
                "category": s.category,
                "priority": s.priority,
                "dependsOn": list(s.depends_on),
            }
            for c in categories
            for s in registry.by_category(c)
        ]
        click.echo(json.dumps(data, indent=2))
        return

    version = f" (version {registry.version})" if registry.version else ""
    click.secho(f"\n📚 Stack registry: {len(registry)} stacks{version}", fg="cyan", bold=True)

    for c in categories:
        members = registry.by_category(c)
        if not members:
            continue
        click.echo()
        click.secho(f"   {c.capitalize()} ({len(members)})", fg="white", bold=True)
        for s in members:
            deps = f"  → {', '.join(s.depends_on)}" if s.depends_on else ""
            click.echo(f"     • {s.id:<16} {s.display_name}{deps}")

    click.echo()


@stacks.command("show")
@click.argument("stack_id")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show_stack(ctx: click.Context, stack_id: str, as_json: bool) -> None:
    """Show how one stack is detected."""
    registry = _load(ctx)
    stack = registry.get(stack_id)

    if stack is None:
        click.secho(f"❌ Unknown stack: {stack_id}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(
            stack.model_dump(mode="json", by_alias=True, exclude_none=True),
            indent=2,
        ))
        return

    click.secho(f"\n🧩 {stack.display_name} ({stack.id})", fg="cyan", bold=True)
    click.echo(f"   Category: {stack.category}")
    if stack.description:
        click.echo(f"   {stack.description}")
    if stack.depends_on:
        click.echo(f"   Depends on: {', '.join(stack.depends_on)}")
    if stack.indicators.conflicts_with:
        click.echo(f"   Conflicts with: {', '.join(stack.indicators.conflicts_with)}")

    det = stack.detection
    click.echo(
        f"   Threshold: {det.min_score:g} / max {stack.max_score:g}"
        f"  (priority {stack.priority})"
    )
    if det.max_indicators_counted:
        click.echo(f"   Counts at most {det.max_indicators_counted} indicators")

    for group, indicators in stack.indicators.groups():
        if not indicators:
            continue
        click.echo()
        click.secho(f"   {group}:", fg="white", bold=True)
        for ind in indicators:
            click.echo(f"     • {describe_indicator(ind)}  (+{ind.weight:g})")

    click.echo()

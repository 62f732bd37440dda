"""
stackprobe — CLI entrypoint.

Usage:
    python -m stackprobe.main --help
    python -m stackprobe.main detect path/to/project
    python -m stackprobe.main stacks list
    python -m stackprobe.main registry check
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from stackprobe import __version__
from stackprobe.core.observability.logging_config import (
    resolve_level,
    setup_logging_from_env,
)


@click.group()
@click.version_option(version=__version__, prog_name="stackprobe")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--registry",
    "-r",
    "registry_path",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Stack registry document (default: $STACKPROBE_REGISTRY or bundled).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    registry_path: str | None,
) -> None:
    """stackprobe — detect the technology stacks a project uses."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["registry_path"] = Path(registry_path) if registry_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging_from_env(resolve_level(debug=debug, verbose=verbose, quiet=quiet))


@cli.command()
@click.argument(
    "path",
    type=click.Path(file_okay=True, dir_okay=True, path_type=Path),
    default=Path("."),
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--mode",
    "scan_mode",
    type=click.Choice(["fast", "thorough"]),
    default="thorough",
    show_default=True,
    help="fast checks file/dir existence only.",
)
@click.option("--include", "include", multiple=True, help="Only evaluate these stack ids.")
@click.option("--exclude", "exclude", multiple=True, help="Skip these stack ids.")
@click.option("--max-depth", type=int, default=None, help="Directory depth limit for listings.")
@click.option("--max-files", type=int, default=None, help="Cap on files listed.")
@click.option("--max-bytes", type=int, default=None, help="Bytes read per file.")
@click.option("--timeout-ms", type=int, default=None, help="Wall-clock budget in milliseconds.")
@click.option("--workers", type=int, default=None, help="Stacks evaluated in parallel.")
@click.option("--workspace-id", default=None, help="Identifier echoed in the result.")
@click.option("--considered", "show_considered", is_flag=True, help="Also list considered stacks.")
@click.pass_context
def detect(
    ctx: click.Context,
    path: Path,
    as_json: bool,
    scan_mode: str,
    include: tuple[str, ...],
    exclude: tuple[str, ...],
    max_depth: int | None,
    max_files: int | None,
    max_bytes: int | None,
    timeout_ms: int | None,
    workers: int | None,
    workspace_id: str | None,
    show_considered: bool,
) -> None:
    """Detect the stacks used by the project at PATH.

    Examples:

        stackprobe detect

        stackprobe detect ../api --mode fast

        stackprobe detect . --include python --include django --json
    """
    from stackprobe.core.use_cases.detect import run_detect

    limits = {
        key: value
        for key, value in (
            ("max_files", max_files),
            ("max_bytes_per_file", max_bytes),
            ("timeout_ms", timeout_ms),
        )
        if value is not None
    }
    options: dict = {
        "scan_mode": scan_mode,
        "include_stacks": list(include),
        "exclude_stacks": list(exclude),
        "max_depth": max_depth,
        "limits": limits,
    }
    if workers is not None:
        options["workers"] = workers

    result = run_detect(
        root=path,
        registry_path=ctx.obj.get("registry_path"),
        options=options,
        workspace_id=workspace_id,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
        if result.error:
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    detection = result.detection
    assert detection is not None  # guaranteed after error check above
    verbose = ctx.obj.get("verbose", False)
    quiet = ctx.obj.get("quiet", False)

    if not quiet:
        click.secho(f"\n🔍 Stack detection: {detection.workspace_id}", fg="cyan", bold=True)
        click.echo(f"   Root: {detection.root_path}")
        click.echo(
            f"   Stacks: {result.stacks_loaded} loaded, "
            f"{detection.stats.stacks_evaluated} evaluated ({scan_mode})"
        )
        click.echo()

    if not detection.detected_stacks:
        click.secho("   No stacks detected", fg="yellow")

    for stack in detection.detected_stacks:
        click.secho(f"   ✓ {stack.id} ", fg="green", nl=False)
        click.echo(
            f"[{stack.category}] {stack.confidence:.0%}  (score {stack.score:g})"
        )
        if stack.resolved_dependencies:
            click.echo(f"     ↳ uses {', '.join(stack.resolved_dependencies)}")
        if verbose:
            for ev in stack.evidence:
                click.echo(f"     │ {ev.note or ev.kind}  (+{ev.weight:g})")

    if show_considered and detection.considered_stacks:
        click.echo()
        click.secho("   Considered:", fg="white", bold=True)
        for stack in detection.considered_stacks:
            reason = (
                f"suppressed by {stack.suppressed_by}"
                if stack.suppressed_by
                else "below threshold"
            )
            click.secho(f"   ~ {stack.id} ", fg="yellow", nl=False)
            click.echo(f"{stack.confidence:.0%}  (score {stack.score:g}, {reason})")

    summary = detection.summary
    if summary.dominant_languages and not quiet:
        click.echo()
        click.echo(f"   Languages: {', '.join(summary.dominant_languages)}")
        for category, ids in summary.primary_by_category.items():
            if ids and category != "language":
                click.echo(f"   Primary {category}: {', '.join(ids)}")

    if not detection.complete:
        click.echo()
        click.secho(
            f"   ⚠️  Partial result ({detection.incomplete_reason}): "
            f"{detection.stats.stacks_evaluated}/{detection.stats.stacks_total} stacks evaluated, "
            f"{detection.stats.files_scanned} files listed",
            fg="yellow",
        )

    click.echo()


# ── Register sub-command groups from stackprobe/ui/cli/ ───────────

from stackprobe.ui.cli.registry import registry  # noqa: E402
from stackprobe.ui.cli.stacks import stacks  # noqa: E402

cli.add_command(stacks)
cli.add_command(registry)


if __name__ == "__main__":
    cli()

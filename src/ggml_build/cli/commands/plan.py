"""Linkage planning and native configuration commands (no build)."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ggml_build.native.cmake import cmake_defines
from ggml_build.native.linkage import plan_linkage
from ggml_build.options import features_from_environment, resolve_options
from ggml_build.platform import resolve_platform

console = Console()


def _selection(features):
    # Environment feature flags count too, as they do for a full build
    return resolve_options([*features, *features_from_environment()])


@click.command()
@click.option("--feature", "features", multiple=True, help="Enable a backend (repeatable)")
@click.option("--target-os", help="Target OS (default: host)")
@click.option(
    "--lib-dir",
    type=click.Path(file_okay=False),
    help="Search path attached to the native static libraries",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "args", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def plan(ctx, features, target_os, lib_dir, output_format):
    """Show the ordered link directives for a backend selection.

    \b
    Examples:
      ggml-build plan --feature cuda
      ggml-build plan --feature metal --target-os macos --format args
      ggml-build plan --target-os windows --feature cuda --feature vulkan
    """
    json_output = ctx.obj.get("json", False) or output_format == "json"

    selection = _selection(features)
    platform = resolve_platform(target_os)
    link_plan = plan_linkage(selection, platform, Path(lib_dir) if lib_dir else None)

    if json_output:
        data = link_plan.to_dict()
        data["backends"] = [name for name, enabled in selection.as_flags().items() if enabled]
        data["linker_args"] = link_plan.linker_args()
        click.echo(json.dumps(data, indent=2))
    elif output_format == "args":
        click.echo(" ".join(link_plan.linker_args()))
    else:
        table = Table(
            title=f"Link Plan ({platform.os}, {platform.family.value})", show_header=True
        )
        table.add_column("#", style="dim", justify="right")
        table.add_column("Kind", style="yellow")
        table.add_column("Name", style="cyan")
        table.add_column("Search Path", style="dim")
        for idx, directive in enumerate(link_plan.directives, start=1):
            table.add_row(
                str(idx), directive.kind.value, directive.name, str(directive.search_path or "")
            )
        console.print(table)


@click.command()
@click.option("--feature", "features", multiple=True, help="Enable a backend (repeatable)")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "args", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def configure(ctx, features, output_format):
    """Show the CMake defines a build would use.

    \b
    Examples:
      ggml-build configure --feature vulkan
      ggml-build configure --format args
    """
    json_output = ctx.obj.get("json", False) or output_format == "json"
    defines = cmake_defines(_selection(features))

    if json_output:
        click.echo(json.dumps({"defines": defines}, indent=2))
    elif output_format == "args":
        click.echo(" ".join(f"-D{key}={value}" for key, value in defines.items()))
    else:
        table = Table(title="CMake Defines", show_header=True)
        table.add_column("Define", style="cyan")
        table.add_column("Value")
        for key, value in defines.items():
            style = "green" if value == "ON" else "dim"
            table.add_row(key, f"[{style}]{value}[/{style}]")
        console.print(table)

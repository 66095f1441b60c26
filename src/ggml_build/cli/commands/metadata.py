"""Revision metadata command."""

import json
from pathlib import Path

import click
from rich.console import Console

from ggml_build.native.metadata import UNKNOWN_REVISION, extract_metadata

console = Console()


@click.command()
@click.argument("source_dir", type=click.Path(exists=True, file_okay=False))
@click.pass_context
def metadata(ctx, source_dir):
    """Show the revision and commit time of SOURCE_DIR.

    Never fails: without git history the revision is "unknown" and the
    timestamp is the current epoch time.
    """
    json_output = ctx.obj.get("json", False)
    quiet = ctx.obj.get("quiet", False)

    result = extract_metadata(Path(source_dir))

    if json_output:
        click.echo(json.dumps(result.as_constants(), indent=2))
    elif quiet:
        click.echo(f"{result.revision} {result.timestamp}")
    else:
        console.print(f"[bold]Revision:[/bold] {result.revision}")
        console.print(f"[bold]Commit time:[/bold] {result.timestamp}")
        if result.revision == UNKNOWN_REVISION:
            console.print("\n[dim]No git history found; using fallback values[/dim]")

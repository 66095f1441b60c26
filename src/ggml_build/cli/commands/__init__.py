"""CLI subcommands and the error reporting they share."""

import json

import click
from rich.console import Console
from rich.markup import escape

from ggml_build.exceptions import ConfigurationUnavailable

console = Console()


def fail(ctx: click.Context, error: Exception) -> None:
    """Report a fatal error and exit 1.

    Tool diagnostics (compiler or CMake output) go to stderr verbatim.
    """
    json_output = ctx.obj.get("json", False)
    diagnostics = getattr(error, "diagnostics", "")

    if json_output:
        payload = {"status": "error", "error": str(error), "type": type(error).__name__}
        if isinstance(error, ConfigurationUnavailable) and error.missing:
            payload["missing"] = error.missing
        if diagnostics:
            payload["diagnostics"] = diagnostics
        click.echo(json.dumps(payload))
    else:
        console.print(f"\n[bold red]❌ Error:[/bold red] {escape(str(error))}")
        if diagnostics:
            click.echo(diagnostics, err=True)
    ctx.exit(1)

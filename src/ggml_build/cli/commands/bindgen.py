"""Binding generation command."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from ggml_build.bindings.generator import BindingGenerator
from ggml_build.cli.commands import fail
from ggml_build.exceptions import GGMLBuildError
from ggml_build.models import BindingOptions
from ggml_build.native.metadata import extract_metadata

console = Console()


@click.command()
@click.argument("header", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "-I",
    "--include",
    "include_dirs",
    multiple=True,
    type=click.Path(exists=True, file_okay=False),
    help="Include directory for the preprocessor (repeatable)",
)
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False),
    default="bindings.py",
    show_default=True,
    help="Generated module path",
)
@click.option(
    "--enum-style",
    type=click.Choice(["extensible", "constants"]),
    default="extensible",
    show_default=True,
    help="IntEnum classes that accept unknown values, or plain integer constants",
)
@click.option(
    "--source-dir",
    type=click.Path(exists=True, file_okay=False),
    help="Source tree whose revision is embedded (default: the header's directory)",
)
@click.option("--layout-tests", is_flag=True, help="Emit sizeof asserts (needs --layout-sizes)")
@click.option(
    "--layout-sizes",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file mapping record names to their expected sizeof",
)
@click.pass_context
def bindgen(ctx, header, include_dirs, output, enum_style, source_dir, layout_tests, layout_sizes):
    """Generate ctypes bindings for the ggml_/gguf_ symbols of HEADER.

    \b
    Examples:
      ggml-build bindgen wrapper.h -I ggml/include
      ggml-build bindgen wrapper.h -I ggml/include -o ggml_ffi.py --enum-style constants
    """
    json_output = ctx.obj.get("json", False)
    quiet = ctx.obj.get("quiet", False)

    try:
        sizes = json.loads(Path(layout_sizes).read_text()) if layout_sizes else {}
        options = BindingOptions(
            enum_style=enum_style, layout_tests=layout_tests, layout_sizes=sizes
        )
        metadata = extract_metadata(Path(source_dir or Path(header).parent))
        generator = BindingGenerator(header, include_dirs=include_dirs, options=options)

        if not quiet and not json_output:
            with console.status(f"[cyan]Generating bindings for {header}..."):
                result = generator.generate(Path(output), metadata.as_constants())
        else:
            result = generator.generate(Path(output), metadata.as_constants())
    except (GGMLBuildError, ValueError) as e:
        fail(ctx, e)
        return

    if json_output:
        click.echo(
            json.dumps(
                {
                    "status": "success",
                    "path": str(result.path),
                    "counts": result.counts,
                    "skipped": result.skipped,
                    "line_count": result.line_count,
                    "byte_count": result.byte_count,
                },
                indent=2,
            )
        )
    elif quiet:
        click.echo(str(result.path))
    else:
        console.print(f"\n[bold green]✓[/bold green] Bindings written: {result.path}\n")
        table = Table(title="Allowlisted Symbols", show_header=True)
        table.add_column("Kind", style="cyan")
        table.add_column("Count", justify="right")
        for kind, count in result.counts.items():
            table.add_row(kind, str(count))
        console.print(table)
        if result.skipped:
            console.print(
                f"\n[yellow]⚠[/yellow] Skipped (unparsed or not representable): {', '.join(result.skipped)}"
            )

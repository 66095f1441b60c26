"""Full build command."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TimeElapsedColumn
from rich.table import Table

from ggml_build.cli.commands import fail
from ggml_build.config import DEFAULT_CONFIG_FILE, load_settings
from ggml_build.exceptions import GGMLBuildError
from ggml_build.orchestrator import BuildOrchestrator, BuildReport, BuildStep

console = Console()

STEP_LABELS = {
    BuildStep.OPTIONS: "Resolving backend options",
    BuildStep.NATIVE: "Building native library (CMake)",
    BuildStep.LINKAGE: "Planning linkage",
    BuildStep.METADATA: "Reading revision metadata",
    BuildStep.BINDINGS: "Generating bindings",
}


def _default_config(config_path):
    if config_path:
        return config_path
    candidate = Path(DEFAULT_CONFIG_FILE)
    return candidate if candidate.is_file() else None


def _print_report(report: BuildReport) -> None:
    console.print(
        f"\n[bold green]✓[/bold green] Build completed in {report.duration_seconds:.1f}s\n"
    )
    console.print(f"  Backends: {', '.join(report.backends)}")
    console.print(f"  Platform: {report.platform.os} ({report.platform.family.value})")
    console.print(f"  Revision: {report.metadata.revision} ({report.metadata.timestamp})")
    console.print(f"  Libraries: {report.lib_dir}")
    console.print(f"  Bindings: {report.bindings_path}\n")

    table = Table(title="Link Directives", show_header=True)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Kind", style="yellow")
    table.add_column("Name", style="cyan")
    table.add_column("Search Path", style="dim")
    for idx, directive in enumerate(report.directives, start=1):
        table.add_row(
            str(idx),
            directive.kind.value,
            directive.name,
            str(directive.search_path or ""),
        )
    console.print(table)

    if report.skipped_symbols:
        console.print(
            f"\n[yellow]⚠[/yellow] {len(report.skipped_symbols)} declarations could not be bound "
            "(run with -v for details)"
        )

    console.print("\n[dim]Rebuild when these change:[/dim]")
    for path in report.rerun_if_changed:
        console.print(f"  {path}")


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help=f"Settings file (default: ./{DEFAULT_CONFIG_FILE} if present)",
)
@click.option("--source-dir", type=click.Path(file_okay=False), help="Vendored ggml source tree")
@click.option("--out-dir", type=click.Path(file_okay=False), help="Build output directory")
@click.option("--target-os", help="Target OS (linux, macos, windows, android, ...)")
@click.option("--entry-header", type=click.Path(dir_okay=False), help="Binding entry header")
@click.option("--feature", "features", multiple=True, help="Enable a backend (repeatable)")
@click.option("-j", "--jobs", type=int, help="Parallel native build jobs")
@click.pass_context
def build(ctx, config_path, source_dir, out_dir, target_os, entry_header, features, jobs):
    """Build ggml, plan its linkage and generate its bindings.

    \b
    Examples:
      ggml-build build --source-dir ggml --out-dir build
      ggml-build build --config ggml-build.yaml --feature cuda
      GGML_BUILD_FEATURE_VULKAN=1 ggml-build build
    """
    json_output = ctx.obj.get("json", False)
    quiet = ctx.obj.get("quiet", False)

    try:
        settings = load_settings(
            _default_config(config_path),
            overrides={
                "source_dir": source_dir,
                "out_dir": out_dir,
                "target_os": target_os,
                "entry_header": entry_header,
                "features": features,
                "jobs": jobs,
            },
        )
        orchestrator = BuildOrchestrator(settings)

        if not quiet and not json_output:
            console.print(f"\n[cyan]Building:[/cyan] {settings.source_dir}")
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TimeElapsedColumn(),
                console=console,
            ) as progress:
                task = progress.add_task("[cyan]Starting...", total=len(BuildStep))

                def on_step(step):
                    if step is not BuildStep.OPTIONS:
                        progress.advance(task)
                    progress.update(task, description=f"[cyan]{STEP_LABELS[step]}")

                report = orchestrator.run(on_step=on_step)
                progress.update(task, completed=len(BuildStep))
        else:
            report = orchestrator.run()
    except GGMLBuildError as e:
        fail(ctx, e)
        return

    if json_output:
        click.echo(json.dumps({"status": "success", **report.model_dump(mode="json")}, indent=2))
    elif quiet:
        click.echo(str(report.bindings_path))
    else:
        _print_report(report)

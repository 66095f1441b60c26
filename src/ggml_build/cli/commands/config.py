"""Configuration management commands."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax

from ggml_build.cli.commands import fail
from ggml_build.config import (
    DEFAULT_CONFIG_FILE,
    BuildSettings,
    load_settings,
    save_settings,
    settings_to_yaml,
)
from ggml_build.exceptions import ConfigurationUnavailable

console = Console()

config_path_option = click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=DEFAULT_CONFIG_FILE,
    show_default=True,
    help="Settings file",
)


@click.group()
def config():
    """Manage ggml-build.yaml.

    \b
    Examples:
      # Create a settings file
      ggml-build config init --source-dir ggml --out-dir build

      # Show resolved settings (file + environment)
      ggml-build config show
    """
    pass


@config.command()
@config_path_option
@click.option("--source-dir", default="ggml", show_default=True, help="Vendored ggml sources")
@click.option("--out-dir", default="build", show_default=True, help="Build output directory")
@click.option("--feature", "features", multiple=True, help="Enable a backend (repeatable)")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def init(ctx, config_path, source_dir, out_dir, features, force):
    """Initialize a settings file."""
    json_output = ctx.obj.get("json", False)
    config_file = Path(config_path)

    if config_file.exists() and not force:
        console.print("[yellow]⚠[/yellow] Configuration file already exists")
        if not click.confirm("Overwrite?"):
            ctx.exit(0)

    settings = BuildSettings(source_dir=source_dir, out_dir=out_dir, features=list(features))
    save_settings(settings, config_file, include_defaults=True)

    if json_output:
        click.echo(json.dumps({"status": "success", "config_file": str(config_file)}))
    else:
        console.print(f"\n[green]✓[/green] Configuration initialized: {config_file}")
        console.print("\n[dim]Edit this file to customize your build[/dim]")


@config.command()
@config_path_option
@click.pass_context
def show(ctx, config_path):
    """Show resolved settings (file, then environment)."""
    json_output = ctx.obj.get("json", False)
    config_file = Path(config_path)

    if not config_file.exists():
        console.print("[yellow]⚠[/yellow] No configuration file found")
        console.print("\n[dim]Run 'ggml-build config init' to create one[/dim]")
        ctx.exit(1)

    try:
        settings = load_settings(config_file)
    except ConfigurationUnavailable as e:
        fail(ctx, e)
        return

    if json_output:
        click.echo(
            json.dumps(
                {"config_file": str(config_file), "settings": settings.model_dump(mode="json")},
                indent=2,
            )
        )
    else:
        console.print(f"\n[bold]Configuration:[/bold] {config_file}\n")
        syntax = Syntax(
            settings_to_yaml(settings, include_defaults=True),
            "yaml",
            theme="monokai",
            line_numbers=True,
        )
        console.print(syntax)


@config.command()
@config_path_option
@click.pass_context
def validate(ctx, config_path):
    """Validate a settings file."""
    json_output = ctx.obj.get("json", False)
    config_file = Path(config_path)

    try:
        settings = load_settings(config_file)
    except ConfigurationUnavailable as e:
        if json_output:
            click.echo(json.dumps({"valid": False, "error": str(e), "missing": e.missing}))
        else:
            console.print(f"[bold red]❌ Error:[/bold red] {escape(str(e))}")
        ctx.exit(1)
        return

    warnings = []
    if not settings.source_dir.is_dir():
        warnings.append(f"source_dir does not exist: {settings.source_dir}")
    if not settings.resolved_entry_header.is_file():
        warnings.append(f"entry header does not exist: {settings.resolved_entry_header}")

    if json_output:
        click.echo(
            json.dumps({"valid": True, "config_file": str(config_file), "warnings": warnings})
        )
    else:
        console.print("[green]✓[/green] Configuration is valid")
        for warning in warnings:
            console.print(f"[yellow]⚠[/yellow] {warning}")

"""ggml-build CLI.

Command-line interface for building ggml, planning its linkage and
generating its bindings.
"""

import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from ggml_build import __version__

# Initialize rich console for output
console = Console()
err_console = Console(stderr=True)


def configure_logging(verbose: int, quiet: bool = False) -> None:
    """Route ``ggml_build`` logs through rich. ``-v`` is INFO, ``-vv`` DEBUG."""
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    handler = RichHandler(console=err_console, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger = logging.getLogger("ggml_build")
    logger.handlers = [handler]
    logger.setLevel(level)
    logger.propagate = False


@click.group()
@click.version_option(version=__version__, prog_name="ggml-build")
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase verbosity (-v for progress, -vv for tool output)",
)
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option("--quiet", is_flag=True, help="Minimal output")
@click.pass_context
def cli(ctx, verbose, json, quiet):
    """ggml-build - Build ggml from source and generate its bindings.

    \b
    Examples:
      ggml-build build --config ggml-build.yaml
      ggml-build plan --feature cuda --target-os windows
      ggml-build bindgen wrapper.h --include ggml/include -o bindings.py
      ggml-build metadata ggml/
    """
    # Store settings in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["json"] = json
    ctx.obj["quiet"] = quiet

    configure_logging(verbose, quiet or json)

    # Show banner (unless quiet)
    if not quiet and not json and ctx.invoked_subcommand:
        console.print(
            Panel.fit(
                "[bold cyan]ggml-build[/bold cyan]\n"
                f"Version {__version__}",
                border_style="cyan",
            )
        )


def main():
    """Entry point for the CLI."""
    # Import subcommands
    from ggml_build.cli.commands import bindgen
    from ggml_build.cli.commands import build
    from ggml_build.cli.commands import config
    from ggml_build.cli.commands import metadata
    from ggml_build.cli.commands import plan

    # Register commands
    cli.add_command(build.build)
    cli.add_command(plan.plan)
    cli.add_command(plan.configure)
    cli.add_command(bindgen.bindgen)
    cli.add_command(metadata.metadata)
    cli.add_command(config.config)

    # Run CLI
    cli(obj={})


if __name__ == "__main__":
    main()

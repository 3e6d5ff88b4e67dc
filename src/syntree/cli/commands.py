"""
CLI commands for syntree.

Main entry point: `syntree` runs the interactive supervisor;
`syntree args` and `syntree resolve` show what would be launched.
"""

import asyncio
import json
import sys
from typing import Optional

import click
from dotenv import load_dotenv
from rich.markup import escape

from syntree.cli import ui
from syntree.config import ServerConfig, Settings
from syntree.lsp.args import build_args
from syntree.lsp.resolver import CommandResolver
from syntree.utils.logger import OutputChannel, configure_logging


@click.group(invoke_without_command=True)
@click.option(
    "--settings",
    "settings_file",
    default=None,
    type=click.Path(dir_okay=False),
    help="JSON settings file (default: .syntree/settings.json)",
)
@click.option(
    "--workspace",
    "-w",
    default=None,
    type=click.Path(exists=True, file_okay=False),
    help="Workspace folder used as the server's working directory",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Minimum level written to log files",
)
@click.option(
    "--log-dir",
    default=None,
    type=click.Path(file_okay=False),
    help="Write per-level log files to this directory",
)
@click.option(
    "--json-logs",
    is_flag=True,
    help="Write log files as JSON lines",
)
@click.pass_context
def main(
    ctx,
    settings_file: Optional[str],
    workspace: Optional[str],
    log_level: str,
    log_dir: Optional[str],
    json_logs: bool,
):
    """
    syntree - supervisor for the Syntax Tree Ruby language server

    Usage:
        syntree                         # Interactive mode
        syntree args                    # Print the server arguments
        syntree resolve -w ./my-app     # Print the command that would run
    """
    # Load environment variables
    load_dotenv()

    if log_dir:
        configure_logging(level=log_level, log_dir=log_dir, json_mode=json_logs)

    ctx.ensure_object(dict)
    ctx.obj["workspace"] = workspace
    ctx.obj["settings"] = Settings(settings_file=settings_file, workspace_root=workspace)

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@main.command()
@click.pass_context
def args(ctx):
    """Print the arguments passed to stree"""
    config = ServerConfig.from_settings(ctx.obj["settings"])
    click.echo(json.dumps(build_args(config)))


@main.command()
@click.pass_context
def resolve(ctx):
    """Print the command that would be launched"""
    settings: Settings = ctx.obj["settings"]
    config = ServerConfig.from_settings(settings)
    cwd = settings.workspace_root

    # Capture resolver notes (e.g. a bogus commandPath) for display
    channel = OutputChannel()
    channel.attach()
    try:
        target = asyncio.run(CommandResolver().resolve(config, cwd, build_args(config)))
    finally:
        channel.detach()

    for line in channel.show():
        ui.print_warning(escape(line))
    click.echo(target.command_line)


@main.command()
@click.option(
    "--handshake-timeout",
    default=None,
    type=float,
    help="Seconds to wait for the server to answer initialize",
)
@click.pass_context
def run(ctx, handshake_timeout: Optional[float] = None):
    """Run the language server with an interactive prompt"""
    from syntree.cli.interactive import InteractiveSession
    from syntree.extension import Extension

    workspace = ctx.obj["workspace"]
    extension = Extension(
        ctx.obj["settings"],
        prompter=ui.DialogRecoveryPrompter(),
        workspace_folders=[workspace] if workspace else None,
        show_output=ui.show_output_channel,
        handshake_timeout=handshake_timeout,
    )

    try:
        asyncio.run(InteractiveSession(extension).run())
    except KeyboardInterrupt:
        ui.console.print("\n")
        sys.exit(130)


@main.command()
def version():
    """Show version information"""
    from syntree import __version__

    ui.console.print(f"\n[bold]syntree[/bold] v{__version__}\n")


if __name__ == "__main__":
    main()

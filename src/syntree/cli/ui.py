"""
Terminal UI utilities using Rich.

Provides:
- Colored console output
- Output channel and status display
- The recovery dialog shown after a failed server start
"""

from typing import List, Optional, Sequence

from prompt_toolkit.shortcuts import button_dialog
from prompt_toolkit.styles import Style
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from syntree.lsp.recovery import RecoveryAction, RecoveryPrompter
from syntree.lsp.supervisor import LanguageServerSupervisor

# Global console instance
console = Console()

DIALOG_STYLE = Style.from_dict({
    'dialog': 'bg:#1e1e1e',
    'dialog.body': 'bg:#1e1e1e #ffffff',
    'dialog shadow': 'bg:#000000',
    'button': 'bg:#4a4a4a #ffffff',
    'button.focused': 'bg:#d40000 #ffffff bold',
    'button.arrow': '#ffffff',
})


def print_success(message: str) -> None:
    console.print(f"[green]✓ {message}[/green]")


def print_warning(message: str) -> None:
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_error(message: str) -> None:
    console.print(f"[red]✗ {message}[/red]")


def show_output_channel(lines: List[str], title: str = "Syntax Tree") -> None:
    """Display the diagnostics log."""
    body = "\n".join(lines) if lines else "[dim](empty)[/dim]"
    console.print(Panel(body, title=title, border_style="cyan", expand=True))


def show_status(supervisor: LanguageServerSupervisor) -> None:
    """Display supervisor state and the running command."""
    table = Table(show_header=False, border_style="cyan")
    table.add_column("Attribute", style="cyan", no_wrap=True)
    table.add_column("Value")

    state = supervisor.state.value
    color = "green" if supervisor.is_running else "yellow"
    table.add_row("State", f"[{color}]{state}[/{color}]")

    handle = supervisor.handle
    if handle is not None:
        table.add_row("Command", handle.target.command_line)
        table.add_row("Working directory", handle.target.cwd or "[dim](inherited)[/dim]")

    console.print(table)


def show_tree(file_path: str, tree: str) -> None:
    """Display a visualized syntax tree."""
    console.print(Panel(tree or "[dim](no output)[/dim]", title=file_path, border_style="cyan"))


class DialogRecoveryPrompter(RecoveryPrompter):
    """
    Asks the operator what to do after a failed start.

    Uses arrow keys to navigate and Enter to select; Escape or Ctrl-C
    dismisses the dialog.
    """

    async def prompt(
        self, message: str, actions: Sequence[RecoveryAction]
    ) -> Optional[RecoveryAction]:
        buttons = [(action.label, action) for action in actions]
        buttons.append(("Dismiss", None))

        try:
            return await button_dialog(
                title="Syntax Tree",
                text=message,
                buttons=buttons,
                style=DIALOG_STYLE,
            ).run_async()
        except (KeyboardInterrupt, EOFError):
            console.print("\n[yellow]Dismissed[/yellow]")
            return None

"""
Interactive REPL mode for syntree.

Keeps one Extension active for the whole session and maps slash commands
onto its operator commands:
- /start, /stop, /restart drive the supervisor
- /log shows the output channel
- /visualize renders the syntax tree of a document
- /set and /reload change settings, which restarts the server
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.styles import Style
from rich.console import Console
from rich.table import Table

from syntree.cli import ui
from syntree.cli.command_completer import CommandCompleter
from syntree.extension import Extension
from syntree.lsp.errors import SyntreeError


# Color scheme
STYLE = Style.from_dict({
    'prompt': '#00d7ff bold',
    'prompt-symbol': '#00d7ff bold',
    'secondary': 'ansibrightblack',

    # Completion menu styling (for autocomplete dropdown)
    'completion-menu': 'bg:#1a1a1a #ffffff',
    'completion-menu.completion': 'bg:#1a1a1a #e0e0e0',
    'completion-menu.completion.current': 'bg:#00d7ff #000000 bold',
    'completion-menu.meta': 'bg:#1a1a1a #808080',
    'completion-menu.meta.current': 'bg:#00d7ff #000000',
})

COMMAND_DESCRIPTIONS = {
    'start': 'Start the language server',
    'stop': 'Stop the language server',
    'restart': 'Restart the language server',
    'log': 'Show the output channel',
    'visualize': 'Show the syntax tree of a file',
    'status': 'Show server state',
    'set': 'Change a setting',
    'reload': 'Re-read settings file and environment',
    'help': 'Show help message',
    'exit': 'Exit syntree',
    'quit': 'Exit syntree',
}


def _parse_value(raw: str) -> Any:
    """Parse a /set value as JSON, falling back to a plain string."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


class InteractiveSession:
    """
    Manages an interactive REPL session around one Extension.

    Args:
        extension: Extension to activate for the session
        console: Rich console (creates new if None)
        history_file: Prompt history location
    """

    def __init__(
        self,
        extension: Extension,
        console: Optional[Console] = None,
        history_file: Optional[Path] = None,
    ):
        self.extension = extension
        self.console = console or ui.console

        self.running = True
        self.start_time = datetime.now()
        self.commands = self._register_commands()

        history_file = history_file or Path.home() / ".syntree_history"
        self.prompt_session = PromptSession(
            history=FileHistory(str(history_file)),
            style=STYLE,
            completer=CommandCompleter(COMMAND_DESCRIPTIONS, list(extension.settings.items())),
            complete_while_typing=True,
        )

    async def run(self):
        """Activate the extension and run the REPL until /exit."""
        self._print_welcome()
        await self.extension.activate()

        try:
            while self.running:
                try:
                    with patch_stdout():
                        user_input = await self.prompt_session.prompt_async(
                            HTML('<prompt-symbol>stree ▶</prompt-symbol> ')
                        )
                except KeyboardInterrupt:
                    self.console.print("[dim]Use /exit to quit[/dim]")
                    continue
                except EOFError:
                    break

                user_input = user_input.strip()
                if not user_input:
                    continue

                if not user_input.startswith('/'):
                    self.console.print("[dim]Type /help for available commands[/dim]")
                    continue

                try:
                    await self.execute(user_input)
                except SyntreeError as e:
                    ui.print_error(str(e))
        finally:
            await self.extension.deactivate()
            self._print_goodbye()

    async def execute(self, cmd_input: str):
        """
        Execute a slash command.

        Args:
            cmd_input: Command string (e.g., "/restart")
        """
        parts = cmd_input.split(maxsplit=2)
        cmd_name = parts[0][1:]
        cmd_args = parts[1:]

        handler = self.commands.get(cmd_name)
        if handler is None:
            ui.print_error(f"Unknown command: /{cmd_name}")
            self.console.print("[dim]Type /help for available commands[/dim]")
            return

        await handler(cmd_args)

    def _register_commands(self) -> Dict[str, Callable]:
        return {
            'start': self._cmd_start,
            'stop': self._cmd_stop,
            'restart': self._cmd_restart,
            'log': self._cmd_log,
            'visualize': self._cmd_visualize,
            'status': self._cmd_status,
            'set': self._cmd_set,
            'reload': self._cmd_reload,
            'help': self._cmd_help,
            'exit': self._cmd_exit,
            'quit': self._cmd_exit,
        }

    def _print_welcome(self):
        self.console.print()
        self.console.print("[bold white]syntree[/bold white] - Syntax Tree language server")
        self.console.print(
            f"[ansibrightblack]Working directory:[/ansibrightblack] {self.extension.get_cwd()}"
        )
        self.console.print("[ansibrightblack]Type /help for commands[/ansibrightblack]")
        self.console.print()

    def _print_goodbye(self):
        duration = datetime.now() - self.start_time
        minutes = int(duration.total_seconds() / 60)
        seconds = int(duration.total_seconds() % 60)
        self.console.print(f"\n[dim]Session ended | {minutes}m {seconds}s[/dim]\n")

    # Command handlers

    async def _cmd_start(self, args: List[str]):
        await self.extension.execute_command("start")
        self._report_state()

    async def _cmd_stop(self, args: List[str]):
        await self.extension.execute_command("stop")
        self._report_state()

    async def _cmd_restart(self, args: List[str]):
        await self.extension.execute_command("restart")
        self._report_state()

    async def _cmd_log(self, args: List[str]):
        await self.extension.execute_command("showOutputChannel")

    async def _cmd_visualize(self, args: List[str]):
        if args:
            self.extension.active_document = str(Path(" ".join(args)).expanduser())
        if not self.extension.active_document:
            ui.print_warning("Usage: /visualize <file>")
            return

        tree = await self.extension.execute_command("visualize")
        if tree is None:
            ui.print_warning("Nothing to visualize (is the server running?)")
            return
        ui.show_tree(self.extension.active_document, tree)

    async def _cmd_status(self, args: List[str]):
        ui.show_status(self.extension.supervisor)

    async def _cmd_set(self, args: List[str]):
        if not args:
            ui.print_warning("Usage: /set <key> [value]")
            return

        key = args[0]
        if not key.startswith("syntaxTree."):
            key = f"syntaxTree.{key}"
        value = _parse_value(args[1]) if len(args) > 1 else None

        self.extension.settings.update(key, value)
        if value is None:
            ui.print_success(f"Cleared {key}")
        else:
            ui.print_success(f"{key} = {json.dumps(value)}")
        await self._wait_for_restart()

    async def _cmd_reload(self, args: List[str]):
        self.extension.settings.reload()
        ui.print_success("Settings reloaded")
        await self._wait_for_restart()

    async def _cmd_help(self, args: List[str]):
        table = Table(show_header=True, header_style="cyan", border_style="cyan")
        table.add_column("Command", style="cyan")
        table.add_column("Description")

        table.add_row("/start", "Start the language server")
        table.add_row("/stop", "Stop the language server")
        table.add_row("/restart", "Restart the language server")
        table.add_row("/log", "Show the output channel")
        table.add_row("/visualize <file>", "Show the syntax tree of a Ruby or HAML file")
        table.add_row("/status", "Show server state and command")
        table.add_row("/set <key> [value]", "Change a setting (JSON value; omit to clear)")
        table.add_row("/reload", "Re-read settings file and environment")
        table.add_row("/exit, /quit", "Exit syntree")

        self.console.print(table)
        self.console.print()
        self.console.print("[cyan]Settings:[/cyan]")
        for key, value in sorted(self.extension.settings.items().items()):
            self.console.print(f"  {key} = [dim]{json.dumps(value)}[/dim]")
        self.console.print()

    async def _cmd_exit(self, args: List[str]):
        self.running = False

    def _report_state(self):
        if self.extension.supervisor.is_running:
            ui.print_success("Language server running")
        else:
            ui.print_warning(f"Language server {self.extension.supervisor.state.value}")

    async def _wait_for_restart(self):
        task = self.extension.supervisor.pending_restart
        if task is None:
            return
        await task
        self._report_state()

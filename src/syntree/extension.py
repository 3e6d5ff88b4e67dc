"""
Extension host integration.

An Extension owns everything for one workspace: the output channel, the
settings, the supervisor and its dependent features. Hosts (the CLI, an
editor bridge, tests) construct one, call activate(), dispatch operator
commands through execute_command(), and call deactivate() on shutdown.
"""

import logging
import os
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from syntree.config import SECTION, ConfigurationChangeEvent, Settings
from syntree.lsp.client import LanguageClient
from syntree.lsp.errors import SyntreeError
from syntree.lsp.protocol import path_to_uri
from syntree.lsp.recovery import GemInstaller, RecoveryPrompter
from syntree.lsp.resolver import CommandResolver, RunTarget
from syntree.lsp.supervisor import LanguageServerSupervisor, ServerHandle
from syntree.utils.disposable import Disposable
from syntree.utils.logger import OutputChannel
from syntree.visualize import Visualizer

logger = logging.getLogger(__name__)

START_COMMAND = "syntaxTree.start"
STOP_COMMAND = "syntaxTree.stop"
RESTART_COMMAND = "syntaxTree.restart"
SHOW_OUTPUT_COMMAND = "syntaxTree.showOutputChannel"
VISUALIZE_COMMAND = "syntaxTree.visualize"


class Extension:
    """
    Wires settings, supervisor and features together for one workspace.

    Args:
        settings: Settings for the workspace
        prompter: Recovery prompter shown on launch failures
        workspace_folders: Open folders; the first one is the working directory
        output: Diagnostics sink (a fresh "Syntax Tree" channel by default)
        resolver: Command resolver override
        installer: Gem installer override
        client_factory: Client factory override
        show_output: Called with the output lines by showOutputChannel
        handshake_timeout: Seconds to wait for the server's initialize reply
    """

    def __init__(
        self,
        settings: Settings,
        prompter: Optional[RecoveryPrompter] = None,
        workspace_folders: Optional[Sequence[str]] = None,
        output: Optional[OutputChannel] = None,
        resolver: Optional[CommandResolver] = None,
        installer: Optional[GemInstaller] = None,
        client_factory: Optional[Callable[[RunTarget], LanguageClient]] = None,
        show_output: Optional[Callable[[List[str]], None]] = None,
        handshake_timeout: Optional[float] = None,
    ):
        self.settings = settings
        self.output = output or OutputChannel()
        self.workspace_folders = list(workspace_folders or [])
        self.show_output = show_output
        self.handshake_timeout = handshake_timeout
        self.active_document: Optional[str] = None
        self.visualizer: Optional[Visualizer] = None

        self.supervisor = LanguageServerSupervisor(
            settings,
            prompter=prompter,
            resolver=resolver,
            installer=installer,
            client_factory=client_factory or self._create_client,
            feature_factories=[self._create_visualizer],
            cwd_provider=self.get_cwd,
        )

        self._commands: Dict[str, Callable[[], Awaitable[Any]]] = {}
        self._subscriptions: List[Disposable] = []
        self._active = False

    def get_cwd(self) -> str:
        """First workspace folder, falling back to the process cwd."""
        if self.workspace_folders:
            return self.workspace_folders[0]
        return os.getcwd()

    @property
    def commands(self) -> List[str]:
        return sorted(self._commands)

    async def activate(self) -> None:
        """Register commands, subscribe to settings and start the server."""
        if self._active:
            return
        self._active = True

        self.output.attach()
        self._subscriptions.append(Disposable(self.output.detach))

        # Registered once here rather than on every server start
        self._commands = {
            START_COMMAND: self.supervisor.start,
            STOP_COMMAND: self.supervisor.stop,
            RESTART_COMMAND: self.supervisor.restart,
            SHOW_OUTPUT_COMMAND: self._show_output_channel,
            VISUALIZE_COMMAND: self._visualize,
        }
        self._subscriptions.append(Disposable(self._commands.clear))
        self._subscriptions.append(self.settings.on_did_change(self._on_settings_changed))

        await self.supervisor.start()

    async def deactivate(self) -> None:
        """Tear down the server and every registration."""
        if not self._active:
            return
        self._active = False

        await self.supervisor.dispose()
        while self._subscriptions:
            self._subscriptions.pop().dispose()

    async def execute_command(self, command: str) -> Any:
        """Run a registered command; ``start`` is short for ``syntaxTree.start``."""
        name = command if "." in command else f"{SECTION}.{command}"
        handler = self._commands.get(name)
        if handler is None:
            raise SyntreeError(f"Unknown command: {command}")
        return await handler()

    # --- Internal methods ---

    def _on_settings_changed(self, event: ConfigurationChangeEvent) -> None:
        if event.affects_configuration(SECTION):
            self.supervisor.request_restart()

    def _create_client(self, target: RunTarget) -> LanguageClient:
        return LanguageClient(
            target,
            root_uri=path_to_uri(self.get_cwd()),
            output=self.output,
            handshake_timeout=self.handshake_timeout,
        )

    def _create_visualizer(self, handle: ServerHandle) -> Visualizer:
        self.visualizer = Visualizer(handle)
        return self.visualizer

    async def _show_output_channel(self) -> List[str]:
        lines = self.output.show()
        if self.show_output is not None:
            self.show_output(lines)
        return lines

    async def _visualize(self) -> Optional[str]:
        if self.visualizer is None or not self.visualizer.active:
            logger.warning("Cannot visualize: language server is not running")
            return None
        if not self.active_document:
            logger.warning("Cannot visualize: no active document")
            return None
        return await self.visualizer.visualize(self.active_document)

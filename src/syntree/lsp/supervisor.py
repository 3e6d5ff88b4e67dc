"""
Language Server Supervisor - owns the single Syntax Tree server instance.

State machine:

    IDLE --start()--> STARTING --handshake ok--> RUNNING
      ^                  |                          |
      |            launch failure                 stop()
      |                  v                          v
      +------------------+--------- IDLE <------ STOPPING

start() is a no-op while STARTING or RUNNING, stop() is a no-op while IDLE,
and restart() always finishes stop() before it calls start(). Launch
failures never escape: the supervisor returns to IDLE and asks the
RecoveryPrompter what to do next.
"""

import asyncio
import logging
import os
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Set

from syntree.config import ServerConfig, Settings
from syntree.lsp.args import build_args
from syntree.lsp.client import LanguageClient
from syntree.lsp.config import language_for
from syntree.lsp.errors import ServerNotRunningError
from syntree.lsp.protocol import path_to_uri
from syntree.lsp.recovery import (
    GemInstaller,
    LoggingPrompter,
    RecoveryAction,
    RecoveryPrompter,
    classify_failure,
)
from syntree.lsp.resolver import CommandResolver, RunTarget

logger = logging.getLogger(__name__)


class SupervisorState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class ServerHandle:
    """
    Read/command view of the live client given to dependent features.

    The supervisor invalidates the handle the moment stop() begins; after
    that every call raises ServerNotRunningError.
    """

    def __init__(self, client: LanguageClient):
        self._client: Optional[LanguageClient] = client
        self.target: RunTarget = client.target

    @property
    def alive(self) -> bool:
        return self._client is not None and self._client.is_running

    def invalidate(self) -> None:
        self._client = None

    async def request(self, method: str, params: Optional[Any] = None) -> Any:
        return await self._require().request(method, params)

    def notify(self, method: str, params: Optional[Any] = None) -> None:
        self._require().notify(method, params)

    def handles(self, file_path: str) -> bool:
        return language_for(file_path) is not None

    def _require(self) -> LanguageClient:
        if self._client is None:
            raise ServerNotRunningError("Syntax Tree language server is not running")
        return self._client


ClientFactory = Callable[[RunTarget], LanguageClient]
# Builds a dependent feature from a live handle; the feature must have dispose()
FeatureFactory = Callable[[ServerHandle], Any]


class LanguageServerSupervisor:
    """
    Starts, stops and restarts the language server.

    Args:
        settings: Settings read fresh on every start
        prompter: Asked what to do after a launch failure
        resolver: Picks the executable to run
        installer: Remediation for "command not found"
        client_factory: Creates the client for a RunTarget
        feature_factories: Dependent features built after each successful start
        cwd_provider: Returns the working directory for resolution and install
    """

    def __init__(
        self,
        settings: Settings,
        prompter: Optional[RecoveryPrompter] = None,
        resolver: Optional[CommandResolver] = None,
        installer: Optional[GemInstaller] = None,
        client_factory: Optional[ClientFactory] = None,
        feature_factories: Optional[Sequence[FeatureFactory]] = None,
        cwd_provider: Optional[Callable[[], str]] = None,
    ):
        self.settings = settings
        self.prompter = prompter or LoggingPrompter()
        self.resolver = resolver or CommandResolver()
        self.installer = installer or GemInstaller()
        self.client_factory = client_factory or self._default_client_factory
        self.feature_factories: List[FeatureFactory] = list(feature_factories or [])
        self._cwd_provider = cwd_provider

        self._state = SupervisorState.IDLE
        self._client: Optional[LanguageClient] = None
        self._handle: Optional[ServerHandle] = None
        self._features: List[Any] = []
        # Bumped by stop(); a start attempt that sees a new value was abandoned
        self._generation = 0
        self._stopped: Optional[asyncio.Event] = None
        self._restart_lock: Optional[asyncio.Lock] = None
        self._queued_restart: Optional[asyncio.Task] = None
        self._restart_tasks: Set[asyncio.Task] = set()
        self._disposed = False

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SupervisorState.RUNNING

    @property
    def handle(self) -> Optional[ServerHandle]:
        """Handle to the live server, or None unless RUNNING."""
        return self._handle

    @property
    def features(self) -> List[Any]:
        return list(self._features)

    @property
    def pending_restart(self) -> Optional[asyncio.Task]:
        """The queued configuration-triggered restart, if one has not begun."""
        return self._queued_restart

    def get_cwd(self) -> str:
        if self._cwd_provider is not None:
            return self._cwd_provider()
        return os.getcwd()

    async def start(self) -> None:
        """Start the server unless it is already starting or running."""
        if self._disposed:
            return

        if self._state in (SupervisorState.STARTING, SupervisorState.RUNNING):
            logger.debug(f"Start ignored: language server is {self._state.value}")
            return

        if self._state is SupervisorState.STOPPING:
            await self._wait_until_stopped()
            if self._state is not SupervisorState.IDLE:
                return

        self._state = SupervisorState.STARTING
        generation = self._generation

        try:
            config = ServerConfig.from_settings(self.settings)
            args = build_args(config)
            target = await self.resolver.resolve(config, self.get_cwd(), args)
            if generation != self._generation:
                return

            logger.info(f"Starting language server: {target.command_line}")
            client = self.client_factory(target)
            self._client = client
            await client.start()
        except Exception as error:
            if generation != self._generation:
                logger.debug(f"Abandoned start failed: {error}")
                return
            await self._release_partial()
            self._state = SupervisorState.IDLE
            logger.error(f"Language server failed to start: {error}")
            await self._recover(error)
            return

        if generation != self._generation:
            # stop() ran during the handshake and already released the slot
            await client.stop()
            return

        self._handle = ServerHandle(client)
        self._state = SupervisorState.RUNNING
        self._features = self._create_features(self._handle)
        logger.info("Language server started")

    async def stop(self) -> None:
        """Stop the server. Waits for an in-flight stop instead of repeating it."""
        if self._state is SupervisorState.IDLE:
            return

        if self._state is SupervisorState.STOPPING:
            await self._wait_until_stopped()
            return

        logger.info("Stopping language server...")
        self._state = SupervisorState.STOPPING
        self._stopped = asyncio.Event()
        self._generation += 1

        handle, self._handle = self._handle, None
        if handle is not None:
            handle.invalidate()
        features, self._features = self._features, []
        client, self._client = self._client, None

        try:
            for feature in features:
                try:
                    feature.dispose()
                except Exception as e:
                    logger.error(f"Error disposing {type(feature).__name__}: {e}")
            if client is not None:
                await client.stop()
        except Exception as e:
            logger.error(f"Error shutting down language server: {e}")
        finally:
            self._state = SupervisorState.IDLE
            self._stopped.set()

    async def restart(self) -> None:
        """Stop the server completely, then start it again."""
        logger.info("Restarting language server...")
        async with self._lock():
            await self._stop_then_start()

    def request_restart(self) -> Optional[asyncio.Task]:
        """
        Schedule a restart, e.g. after a settings change.

        Requests arriving before the queued restart has begun share it: the
        restart reads settings when it starts, so it already sees them.
        Returns None when no event loop is running.
        """
        if self._queued_restart is not None:
            logger.debug("Restart already queued")
            return self._queued_restart

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Restart not scheduled: no running event loop")
            return None

        task = loop.create_task(self._run_queued_restart())
        self._queued_restart = task
        self._restart_tasks.add(task)
        task.add_done_callback(self._restart_tasks.discard)
        return task

    async def dispose(self) -> None:
        """Host teardown: stop the server whatever state it is in."""
        self._disposed = True
        self._queued_restart = None
        await self.stop()

    # --- Internal methods ---

    def _lock(self) -> asyncio.Lock:
        if self._restart_lock is None:
            self._restart_lock = asyncio.Lock()
        return self._restart_lock

    async def _run_queued_restart(self) -> None:
        async with self._lock():
            self._queued_restart = None
            if self._disposed:
                return
            logger.info("Restarting language server...")
            await self._stop_then_start()

    async def _stop_then_start(self) -> None:
        await self.stop()
        await self.start()

    async def _wait_until_stopped(self) -> None:
        if self._stopped is not None:
            await self._stopped.wait()

    async def _release_partial(self) -> None:
        client, self._client = self._client, None
        if client is None:
            return
        try:
            await client.stop()
        except Exception as e:
            logger.debug(f"Error releasing failed client: {e}")

    def _create_features(self, handle: ServerHandle) -> List[Any]:
        features = []
        for factory in self.feature_factories:
            try:
                features.append(factory(handle))
            except Exception as e:
                logger.error(f"Failed to initialize feature: {e}")
        return features

    async def _recover(self, error: Exception) -> None:
        plan = classify_failure(error)

        try:
            action = await self.prompter.prompt(plan.message, plan.actions)
        except Exception as e:
            logger.error(f"Recovery prompt failed: {e}")
            return

        if action is None:
            return

        if action not in plan.actions:
            logger.warning(f"Ignoring recovery action {action.label!r}: not offered")
            return

        if self._disposed:
            logger.debug(f"Ignoring recovery action {action.label!r}: supervisor disposed")
            return

        if action is RecoveryAction.INSTALL:
            if await self.installer.install(self.get_cwd()):
                await self.start()
        elif action is RecoveryAction.RESTART:
            await self.start()

    def _default_client_factory(self, target: RunTarget) -> LanguageClient:
        return LanguageClient(target, root_uri=path_to_uri(self.get_cwd()))

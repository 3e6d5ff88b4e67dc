"""
Command Resolver - decides which stree executable to launch.

Tries three places, in order of preference:
  1. Explicit path from syntaxTree.advanced.commandPath, if provided
  2. The bundle inside the working directory, if syntax_tree is in it
  3. Anywhere on $PATH (i.e. a system gem)

Only the last strategy is guaranteed to succeed. Failures of the first two
are logged and resolution moves on; they are never raised.
"""

import asyncio
import logging
import os
import stat
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from syntree.config import ServerConfig
from syntree.lsp.args import build_args
from syntree.lsp.config import BUNDLE_PROBE, BUNDLE_RUNNER, EXECUTABLE_NAME
from syntree.lsp.variables import substitute

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunTarget:
    """Resolved executable, arguments and working directory."""

    executable: str
    args: Tuple[str, ...] = ()
    cwd: Optional[str] = None

    @property
    def command(self) -> List[str]:
        return [self.executable, *self.args]

    @property
    def command_line(self) -> str:
        return " ".join(self.command)


@dataclass(frozen=True)
class ResolutionResult:
    """Outcome of one resolver strategy."""

    target: Optional[RunTarget] = None
    reason: str = ""
    # Failures the user most likely cares about (a bogus commandPath)
    notable: bool = False

    @property
    def success(self) -> bool:
        return self.target is not None

    @classmethod
    def ok(cls, target: RunTarget) -> "ResolutionResult":
        return cls(target=target)

    @classmethod
    def failed(cls, reason: str, notable: bool = False) -> "ResolutionResult":
        return cls(reason=reason, notable=notable)


class ResolverStrategy(ABC):
    """One tier of the fallback chain."""

    name = "strategy"

    @abstractmethod
    async def resolve(
        self, config: ServerConfig, cwd: str, args: Sequence[str]
    ) -> ResolutionResult:
        pass


class ExplicitPathStrategy(ResolverStrategy):
    """Use commandPath when it names an existing regular file."""

    name = "commandPath"

    async def resolve(
        self, config: ServerConfig, cwd: str, args: Sequence[str]
    ) -> ResolutionResult:
        if not config.command_path:
            return ResolutionResult.failed("No commandPath configured")

        command_path = substitute(config.command_path, cwd)

        try:
            mode = os.stat(command_path).st_mode
        except OSError:
            return ResolutionResult.failed(
                f"Ignoring bogus commandPath ({command_path} does not exist); falling back.",
                notable=True,
            )

        if not stat.S_ISREG(mode):
            return ResolutionResult.failed(
                f"Ignoring bogus commandPath ({command_path} is not a file); falling back.",
                notable=True,
            )

        return ResolutionResult.ok(RunTarget(command_path, tuple(args)))


class BundleStrategy(ResolverStrategy):
    """Use ``bundle exec stree`` when the workspace bundle has syntax_tree."""

    name = "bundle"

    def __init__(
        self,
        probe: Sequence[str] = tuple(BUNDLE_PROBE),
        runner: str = BUNDLE_RUNNER,
        executable: str = EXECUTABLE_NAME,
    ):
        self.probe = list(probe)
        self.runner = runner
        self.executable = executable

    async def resolve(
        self, config: ServerConfig, cwd: str, args: Sequence[str]
    ) -> ResolutionResult:
        probe_line = " ".join(self.probe)

        try:
            process = await asyncio.create_subprocess_exec(
                *self.probe,
                cwd=cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            returncode = await process.wait()
        except (OSError, ValueError) as e:
            return ResolutionResult.failed(f"`{probe_line}` could not run: {e}")

        if returncode != 0:
            return ResolutionResult.failed(f"`{probe_line}` exited with code {returncode}")

        return ResolutionResult.ok(
            RunTarget(self.runner, ("exec", self.executable, *args), cwd)
        )


class GlobalStrategy(ResolverStrategy):
    """Run the executable from $PATH."""

    name = "global"

    def __init__(self, executable: str = EXECUTABLE_NAME):
        self.executable = executable

    async def resolve(
        self, config: ServerConfig, cwd: str, args: Sequence[str]
    ) -> ResolutionResult:
        return ResolutionResult.ok(RunTarget(self.executable, tuple(args)))


def default_strategies() -> List[ResolverStrategy]:
    return [ExplicitPathStrategy(), BundleStrategy(), GlobalStrategy()]


class CommandResolver:
    """
    Runs strategies in order and returns the first success.

    Never raises: a strategy that fails or blows up is logged and skipped,
    and if every strategy fails the global executable is used.
    """

    def __init__(self, strategies: Optional[Sequence[ResolverStrategy]] = None):
        self.strategies = list(strategies) if strategies is not None else default_strategies()

    async def resolve(
        self,
        config: ServerConfig,
        cwd: str,
        args: Optional[Sequence[str]] = None,
    ) -> RunTarget:
        if args is None:
            args = build_args(config)

        for strategy in self.strategies:
            try:
                result = await strategy.resolve(config, cwd, args)
            except Exception as e:
                logger.warning(f"{strategy.name} resolution failed: {e}")
                continue

            if result.success:
                logger.debug(f"Resolved via {strategy.name}: {result.target.command_line}")
                return result.target

            if result.notable:
                logger.warning(result.reason)
            else:
                logger.debug(result.reason)

        return RunTarget(EXECUTABLE_NAME, tuple(args))

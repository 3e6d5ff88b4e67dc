"""
Recovery from language server launch failures.

A failed launch is classified into a RecoveryPlan (message plus the actions
to offer). A RecoveryPrompter shows the plan to the operator and returns the
chosen action; the supervisor decides what the action means.
"""

import asyncio
import errno
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from syntree.lsp.config import INSTALL_COMMAND
from syntree.lsp.errors import ServerExitedError

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Command not found. Is the syntax_tree gem installed?"
GENERIC_MESSAGE = "Something went wrong."

# Shells and `bundle exec` exit with 127 when the command does not exist
COMMAND_NOT_FOUND_EXIT = 127


class RecoveryAction(Enum):
    """Actions offered after a failed start. Values are the button labels."""

    INSTALL = "Install Gem"
    RESTART = "Restart"

    @property
    def label(self) -> str:
        return self.value


@dataclass(frozen=True)
class RecoveryPlan:
    message: str
    actions: Tuple[RecoveryAction, ...]
    not_found: bool = False


def is_not_found(error: BaseException) -> bool:
    """Whether ``error`` means the executable could not be found."""
    if isinstance(error, FileNotFoundError):
        return True
    if isinstance(error, OSError) and error.errno == errno.ENOENT:
        return True
    if isinstance(error, ServerExitedError) and error.returncode == COMMAND_NOT_FOUND_EXIT:
        return True
    return "ENOENT" in str(error)


def classify_failure(error: BaseException) -> RecoveryPlan:
    if is_not_found(error):
        return RecoveryPlan(
            message=NOT_FOUND_MESSAGE,
            actions=(RecoveryAction.INSTALL, RecoveryAction.RESTART),
            not_found=True,
        )
    return RecoveryPlan(message=GENERIC_MESSAGE, actions=(RecoveryAction.RESTART,))


class RecoveryPrompter(ABC):
    """Presents a failure to the operator."""

    @abstractmethod
    async def prompt(
        self, message: str, actions: Sequence[RecoveryAction]
    ) -> Optional[RecoveryAction]:
        """
        Show ``message`` with one choice per action.

        Returns:
            The chosen action, or None if the prompt was dismissed
        """
        pass


class LoggingPrompter(RecoveryPrompter):
    """Non-interactive prompter: reports the failure and dismisses it."""

    async def prompt(
        self, message: str, actions: Sequence[RecoveryAction]
    ) -> Optional[RecoveryAction]:
        labels = ", ".join(action.label for action in actions)
        logger.error(f"{message} (available actions: {labels})")
        return None


class GemInstaller:
    """Installs the syntax_tree gem."""

    def __init__(self, command: Sequence[str] = tuple(INSTALL_COMMAND)):
        self.command = list(command)

    async def install(self, cwd: Optional[str] = None) -> bool:
        """
        Run the install command in ``cwd``.

        Returns:
            True if the command succeeded. Failures are logged, not raised.
        """
        command_line = " ".join(self.command)
        logger.info(f"Installing gem: {command_line}")

        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                cwd=cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
            output, _ = await process.communicate()
        except (OSError, ValueError) as e:
            logger.error(f"Error installing gem: {e}")
            return False

        text = output.decode("utf-8", errors="replace").strip()
        if process.returncode != 0:
            logger.error(
                f"Error installing gem: `{command_line}` exited with code {process.returncode}"
                + (f"\n{text}" if text else "")
            )
            return False

        if text:
            logger.debug(text)
        logger.info("Gem installed")
        return True

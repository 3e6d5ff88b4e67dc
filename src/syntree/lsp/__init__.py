"""
LSP (Language Server Protocol) module for syntree.

Supervises the Syntax Tree language server (``stree lsp``):
- Command resolution (commandPath, bundle, global)
- Argument synthesis from settings
- Lifecycle (start, stop, restart) and launch-failure recovery
"""

from syntree.lsp.args import build_args
from syntree.lsp.client import LanguageClient
from syntree.lsp.recovery import (
    GemInstaller,
    RecoveryAction,
    RecoveryPlan,
    RecoveryPrompter,
    classify_failure,
)
from syntree.lsp.resolver import CommandResolver, RunTarget
from syntree.lsp.supervisor import LanguageServerSupervisor, ServerHandle, SupervisorState

__all__ = [
    "CommandResolver",
    "GemInstaller",
    "LanguageClient",
    "LanguageServerSupervisor",
    "RecoveryAction",
    "RecoveryPlan",
    "RecoveryPrompter",
    "RunTarget",
    "ServerHandle",
    "SupervisorState",
    "build_args",
    "classify_failure",
]

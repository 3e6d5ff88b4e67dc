"""
syntree - supervisor for the Syntax Tree language server.

Resolves the stree executable, builds its arguments from settings, and
keeps exactly one server running with start/stop/restart and recovery
from failed launches.
"""

__version__ = "0.4.0"

from syntree.config import ServerConfig, Settings
from syntree.extension import Extension
from syntree.lsp.supervisor import LanguageServerSupervisor, SupervisorState

__all__ = [
    "Extension",
    "LanguageServerSupervisor",
    "ServerConfig",
    "Settings",
    "SupervisorState",
    "__version__",
]

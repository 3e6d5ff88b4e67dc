"""
Builds the stree command line arguments from settings.
"""

from typing import Dict, List

from syntree.config import ServerConfig
from syntree.lsp.config import MODE_TOKEN

SINGLE_QUOTES_PLUGIN = "single_quotes"
TRAILING_COMMA_PLUGIN = "trailing_comma"


def build_plugins(config: ServerConfig) -> List[str]:
    """Plugins to load, duplicates collapsed in first-seen order."""
    plugins: Dict[str, None] = {}

    if config.single_quotes:
        plugins[SINGLE_QUOTES_PLUGIN] = None

    if config.trailing_comma:
        plugins[TRAILING_COMMA_PLUGIN] = None

    for plugin in config.additional_plugins:
        plugins.setdefault(plugin, None)

    return list(plugins)


def build_args(config: ServerConfig) -> List[str]:
    """
    Arguments for ``stree``, starting with the server mode token.

    Plugin names and the print width are passed through unchecked; stree
    rejects values it does not understand.
    """
    args = [MODE_TOKEN]

    plugins = build_plugins(config)
    if plugins:
        args.append(f"--plugins={','.join(plugins)}")

    if config.print_width:
        args.append(f"--print-width={config.print_width}")

    return args

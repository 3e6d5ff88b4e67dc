"""
CLI module for syntree - command-line interface and terminal UI.
"""

from syntree.cli import ui
from syntree.cli.commands import main

__all__ = ["main", "ui"]

"""
Tests for building the stree command line from settings.
"""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from syntree.config import ServerConfig, Settings
from syntree.lsp.args import build_args, build_plugins


class TestBuildArgs:
    """Argument list passed to stree."""

    def test_defaults_only_mode_token(self):
        assert build_args(ServerConfig()) == ["lsp"]

    def test_plugins_and_print_width(self):
        config = ServerConfig(
            single_quotes=True,
            trailing_comma=False,
            additional_plugins=("x", "x", "y"),
            print_width=100,
        )

        assert build_args(config) == ["lsp", "--plugins=single_quotes,x,y", "--print-width=100"]

    def test_is_deterministic(self):
        config = ServerConfig(single_quotes=True, additional_plugins=("rbs",), print_width=80)

        assert build_args(config) == build_args(config)

    def test_both_formatting_plugins_in_fixed_order(self):
        config = ServerConfig(single_quotes=True, trailing_comma=True)

        assert build_args(config) == ["lsp", "--plugins=single_quotes,trailing_comma"]

    def test_zero_print_width_is_omitted(self):
        assert build_args(ServerConfig(print_width=0)) == ["lsp"]

    def test_print_width_without_plugins(self):
        assert build_args(ServerConfig(print_width=120)) == ["lsp", "--print-width=120"]


class TestBuildPlugins:
    """Plugin list assembly."""

    def test_additional_plugin_duplicating_builtin_collapses(self):
        config = ServerConfig(trailing_comma=True, additional_plugins=("trailing_comma", "rbs"))

        assert build_plugins(config) == ["trailing_comma", "rbs"]

    def test_additional_plugins_keep_order(self):
        config = ServerConfig(additional_plugins=("b", "a", "c", "a"))

        assert build_plugins(config) == ["b", "a", "c"]

    def test_empty(self):
        assert build_plugins(ServerConfig()) == []


class TestServerConfigFromSettings:
    """Snapshot built from layered settings."""

    def test_reads_both_sections(self, tmp_path):
        settings = Settings(workspace_root=str(tmp_path), environ={})
        settings.update("syntaxTree.singleQuotes", True)
        settings.update("syntaxTree.additionalPlugins", ["rbs"])
        settings.update("syntaxTree.printWidth", 90)
        settings.update("syntaxTree.advanced.commandPath", "/opt/stree")

        config = ServerConfig.from_settings(settings)

        assert config.single_quotes is True
        assert config.trailing_comma is False
        assert config.additional_plugins == ("rbs",)
        assert config.print_width == 90
        assert config.command_path == "/opt/stree"

    def test_empty_command_path_is_none(self, tmp_path):
        settings = Settings(workspace_root=str(tmp_path), environ={})

        assert ServerConfig.from_settings(settings).command_path is None

    def test_single_plugin_string_is_accepted(self, tmp_path):
        settings = Settings(workspace_root=str(tmp_path), environ={})
        settings.update("syntaxTree.additionalPlugins", "rbs")

        assert ServerConfig.from_settings(settings).additional_plugins == ("rbs",)

    def test_end_to_end_args(self, tmp_path):
        settings = Settings(
            workspace_root=str(tmp_path),
            environ={"SYNTREE_TRAILING_COMMA": "true", "SYNTREE_PRINT_WIDTH": "100"},
        )

        assert build_args(ServerConfig.from_settings(settings)) == [
            "lsp",
            "--plugins=trailing_comma",
            "--print-width=100",
        ]

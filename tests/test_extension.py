"""
Tests for the extension host wiring: commands, settings-driven restarts,
the output channel and the visualizer feature.
"""

import os
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fakes import FakePrompter, FakeServer
from syntree.config import Settings
from syntree.extension import Extension
from syntree.lsp.errors import SyntreeError
from syntree.lsp.resolver import CommandResolver, GlobalStrategy
from syntree.lsp.supervisor import SupervisorState
from syntree.visualize import VISUALIZE_METHOD


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def settings(tmp_path):
    return Settings(workspace_root=str(tmp_path), environ={})


@pytest.fixture
def extension(server, settings, tmp_path):
    shown = []
    ext = Extension(
        settings,
        prompter=FakePrompter(),
        workspace_folders=[str(tmp_path)],
        resolver=CommandResolver([GlobalStrategy()]),
        client_factory=server.create,
        show_output=shown.append,
    )
    ext.shown = shown
    return ext


class TestActivation:

    @pytest.mark.asyncio
    async def test_activate_starts_server(self, extension, server):
        await extension.activate()
        try:
            assert extension.supervisor.is_running
            assert extension.commands == [
                "syntaxTree.restart",
                "syntaxTree.showOutputChannel",
                "syntaxTree.start",
                "syntaxTree.stop",
                "syntaxTree.visualize",
            ]
        finally:
            await extension.deactivate()

    @pytest.mark.asyncio
    async def test_activate_twice_is_noop(self, extension, server):
        await extension.activate()
        await extension.activate()
        try:
            assert len(server.clients) == 1
        finally:
            await extension.deactivate()

    @pytest.mark.asyncio
    async def test_deactivate_tears_down(self, extension, server, settings):
        await extension.activate()

        await extension.deactivate()

        assert extension.supervisor.state is SupervisorState.IDLE
        assert server.live == 0
        assert extension.commands == []

        settings.update("syntaxTree.printWidth", 100)
        assert extension.supervisor.pending_restart is None

    @pytest.mark.asyncio
    async def test_deactivate_without_activate(self, extension):
        await extension.deactivate()

        assert extension.supervisor.state is SupervisorState.IDLE


class TestCommands:

    @pytest.mark.asyncio
    async def test_stop_and_start(self, extension):
        await extension.activate()
        try:
            await extension.execute_command("syntaxTree.stop")
            assert extension.supervisor.state is SupervisorState.IDLE

            await extension.execute_command("start")
            assert extension.supervisor.is_running
        finally:
            await extension.deactivate()

    @pytest.mark.asyncio
    async def test_restart(self, extension, server):
        await extension.activate()
        try:
            await extension.execute_command("restart")

            assert server.events == [("start", 0), ("stop", 0), ("start", 1)]
        finally:
            await extension.deactivate()

    @pytest.mark.asyncio
    async def test_unknown_command(self, extension):
        await extension.activate()
        try:
            with pytest.raises(SyntreeError):
                await extension.execute_command("syntaxTree.format")
        finally:
            await extension.deactivate()

    @pytest.mark.asyncio
    async def test_show_output_channel(self, extension):
        await extension.activate()
        try:
            lines = await extension.execute_command("showOutputChannel")
        finally:
            await extension.deactivate()

        assert any("Starting language server: stree lsp" in line for line in lines)
        assert extension.shown == [lines]


class TestSettingsChanges:

    @pytest.mark.asyncio
    async def test_change_restarts_with_new_args(self, extension, server, settings):
        await extension.activate()
        try:
            settings.update("syntaxTree.singleQuotes", True)
            settings.update("syntaxTree.printWidth", 100)
            await extension.supervisor.pending_restart

            assert len(server.clients) == 2
            assert server.last.target.args == (
                "lsp",
                "--plugins=single_quotes",
                "--print-width=100",
            )
            assert server.max_live == 1
        finally:
            await extension.deactivate()

    @pytest.mark.asyncio
    async def test_advanced_section_change_restarts(self, extension, server, settings, tmp_path):
        await extension.activate()
        try:
            settings.update("syntaxTree.advanced.commandPath", str(tmp_path / "missing"))
            assert extension.supervisor.pending_restart is not None
            await extension.supervisor.pending_restart
        finally:
            await extension.deactivate()

    @pytest.mark.asyncio
    async def test_unrelated_change_is_ignored(self, extension, server, settings):
        await extension.activate()
        try:
            settings.update("editor.tabSize", 4)

            assert extension.supervisor.pending_restart is None
            assert len(server.clients) == 1
        finally:
            await extension.deactivate()


class TestWorkingDirectory:

    def test_first_workspace_folder(self, settings, tmp_path):
        ext = Extension(settings, workspace_folders=[str(tmp_path), "/elsewhere"])

        assert ext.get_cwd() == str(tmp_path)

    def test_process_cwd_without_folders(self, settings):
        ext = Extension(settings)

        assert ext.get_cwd() == os.getcwd()


class TestVisualize:

    @pytest.mark.asyncio
    async def test_visualize_active_document(self, extension, server, tmp_path):
        source = tmp_path / "app.rb"
        source.write_text("puts 'hello'\n")

        await extension.activate()
        try:
            extension.active_document = str(source)
            tree = await extension.execute_command("visualize")
        finally:
            await extension.deactivate()

        assert tree == f"(program {VISUALIZE_METHOD})"
        client = server.last
        assert client.notifications[0][0] == "textDocument/didOpen"
        assert client.notifications[0][1]["textDocument"]["languageId"] == "ruby"
        method, params = client.requests[0]
        assert method == VISUALIZE_METHOD
        assert params == {"textDocument": {"uri": source.resolve().as_uri()}}

    @pytest.mark.asyncio
    async def test_visualize_without_document(self, extension):
        await extension.activate()
        try:
            assert await extension.execute_command("visualize") is None
        finally:
            await extension.deactivate()

    @pytest.mark.asyncio
    async def test_visualizer_recreated_after_restart(self, extension):
        await extension.activate()
        try:
            first = extension.visualizer
            await extension.execute_command("restart")

            assert not first.active
            assert extension.visualizer is not first
            assert extension.visualizer.active
        finally:
            await extension.deactivate()

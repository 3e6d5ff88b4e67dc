"""
Tests for the asyncio language client against a fake stdio server.

tests/fixtures/fake_stree.py speaks just enough LSP to stand in for
`stree lsp`, so these run without Ruby.
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from syntree.lsp.client import LanguageClient
from syntree.lsp.errors import ResponseError, ServerExitedError, ServerNotRunningError
from syntree.lsp.protocol import LSPMessage, path_to_uri
from syntree.lsp.resolver import RunTarget
from syntree.utils.logger import OutputChannel

FAKE_SERVER = str(Path(__file__).parent / "fixtures" / "fake_stree.py")


def fake_target(*args, cwd=None) -> RunTarget:
    return RunTarget(sys.executable, (FAKE_SERVER, *args), cwd)


async def wait_until(predicate, timeout: float = 5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def output():
    return OutputChannel()


class TestHandshake:

    @pytest.mark.asyncio
    async def test_initialize(self, tmp_path, output):
        client = LanguageClient(
            fake_target("lsp", "--print-width=100"), path_to_uri(str(tmp_path)), output=output
        )

        await client.start()
        try:
            assert client.is_running
            assert client.initialized
            assert client.server_capabilities == {"documentFormattingProvider": True}
            assert client.server_info["args"] == ["lsp", "--print-width=100"]
        finally:
            await client.stop()

        assert not client.is_running
        assert not client.initialized

    @pytest.mark.asyncio
    async def test_stderr_and_log_messages_reach_output(self, tmp_path, output):
        client = LanguageClient(fake_target("lsp"), path_to_uri(str(tmp_path)), output=output)

        await client.start()
        try:
            await wait_until(lambda: "fake stree: listening" in output.show())
            await wait_until(lambda: "fake stree: ready" in output.show())
        finally:
            await client.stop()

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        client = LanguageClient(
            RunTarget(str(tmp_path / "no-such-stree"), ("lsp",)), path_to_uri(str(tmp_path))
        )

        with pytest.raises(FileNotFoundError):
            await client.start()

        assert not client.is_running

    @pytest.mark.asyncio
    async def test_server_exits_during_handshake(self, tmp_path):
        client = LanguageClient(fake_target("--crash=127"), path_to_uri(str(tmp_path)))

        with pytest.raises(ServerExitedError) as exc_info:
            await client.start()

        assert exc_info.value.returncode == 127
        assert client.process is None

    @pytest.mark.asyncio
    async def test_handshake_timeout(self, tmp_path):
        client = LanguageClient(
            fake_target("--hang"), path_to_uri(str(tmp_path)), handshake_timeout=0.5
        )

        with pytest.raises(asyncio.TimeoutError):
            await client.start()

        assert client.process is None


class TestRequests:

    @pytest.mark.asyncio
    async def test_visualize_open_document(self, tmp_path):
        uri = path_to_uri(str(tmp_path / "app.rb"))
        client = LanguageClient(fake_target("lsp"), path_to_uri(str(tmp_path)))
        await client.start()
        try:
            client.notify(
                "textDocument/didOpen",
                LSPMessage.text_document_did_open(uri, "ruby", 1, "puts 1\n"),
            )
            result = await client.request(
                "syntaxTree/visualizing", {"textDocument": {"uri": uri}}
            )
        finally:
            await client.stop()

        assert result == "(program puts 1)"

    @pytest.mark.asyncio
    async def test_error_response(self, tmp_path):
        client = LanguageClient(fake_target("lsp"), path_to_uri(str(tmp_path)))
        await client.start()
        try:
            with pytest.raises(ResponseError) as exc_info:
                await client.request(
                    "syntaxTree/visualizing", {"textDocument": {"uri": "file:///nowhere.rb"}}
                )
        finally:
            await client.stop()

        assert exc_info.value.code == -32602

    @pytest.mark.asyncio
    async def test_concurrent_requests_are_correlated(self, tmp_path):
        client = LanguageClient(fake_target("lsp"), path_to_uri(str(tmp_path)))
        await client.start()
        try:
            uris = [path_to_uri(str(tmp_path / f"file{i}.rb")) for i in range(3)]
            for i, uri in enumerate(uris):
                client.notify(
                    "textDocument/didOpen",
                    LSPMessage.text_document_did_open(uri, "ruby", 1, f"x = {i}"),
                )
            results = await asyncio.gather(
                *(
                    client.request("syntaxTree/visualizing", {"textDocument": {"uri": uri}})
                    for uri in uris
                )
            )
        finally:
            await client.stop()

        assert results == ["(program x = 0)", "(program x = 1)", "(program x = 2)"]

    @pytest.mark.asyncio
    async def test_request_after_stop(self, tmp_path):
        client = LanguageClient(fake_target("lsp"), path_to_uri(str(tmp_path)))
        await client.start()
        await client.stop()

        with pytest.raises(ServerNotRunningError):
            await client.request("syntaxTree/visualizing", {})
        with pytest.raises(ServerNotRunningError):
            client.notify("initialized", {})


class TestShutdown:

    @pytest.mark.asyncio
    async def test_graceful_exit_code(self, tmp_path):
        client = LanguageClient(fake_target("lsp"), path_to_uri(str(tmp_path)))
        await client.start()
        process = client.process

        await client.stop()

        assert process.returncode == 0

    @pytest.mark.asyncio
    async def test_stop_twice(self, tmp_path):
        client = LanguageClient(fake_target("lsp"), path_to_uri(str(tmp_path)))
        await client.start()

        await client.stop()
        await client.stop()

        assert client.process is None


    @pytest.mark.asyncio
    async def test_stop_while_spawning_kills_process(self, tmp_path, monkeypatch):
        spawned = []
        spawn_done = asyncio.Event()
        release = asyncio.Event()
        real_exec = asyncio.create_subprocess_exec

        async def gated_exec(*args, **kwargs):
            process = await real_exec(*args, **kwargs)
            spawned.append(process)
            spawn_done.set()
            await release.wait()
            return process

        monkeypatch.setattr(asyncio, "create_subprocess_exec", gated_exec)
        client = LanguageClient(fake_target("--hang"), path_to_uri(str(tmp_path)))

        start = asyncio.ensure_future(client.start())
        await spawn_done.wait()
        assert client.process is None

        await client.stop()
        release.set()

        with pytest.raises(ServerExitedError):
            await start
        assert spawned[0].returncode is not None
        assert client.process is None
        assert not client.is_running


class TestStderr:

    @pytest.mark.asyncio
    async def test_oversized_line_does_not_stop_forwarding(self, tmp_path, output):
        client = LanguageClient(
            fake_target("--long-stderr=200000", "lsp"),
            path_to_uri(str(tmp_path)),
            output=output,
            handshake_timeout=10,
        )

        await client.start()
        try:
            assert client.initialized
            await wait_until(lambda: "fake stree: listening" in output.show())
            await wait_until(lambda: "fake stree: ready" in output.show())
        finally:
            await client.stop()

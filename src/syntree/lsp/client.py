"""
LSP Client - communicates with a single language server.
"""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

from syntree.lsp.config import CLIENT_NAME, DEFAULT_DOCUMENT_SELECTOR, DocumentFilter
from syntree.lsp.errors import ResponseError, ServerExitedError, ServerNotRunningError
from syntree.lsp.protocol import LSPMessage, read_message
from syntree.lsp.resolver import RunTarget
from syntree.utils.logger import OutputChannel

logger = logging.getLogger(__name__)


class LanguageClient:
    """
    Client for communicating with a Language Server.

    Manages:
    - Server process lifecycle (spawn, handshake, shutdown)
    - JSON-RPC message exchange over stdio
    - Request/response correlation via IDs
    - Forwarding server stderr to the output channel
    """

    # Graceful shutdown gets this long before the process is killed
    SHUTDOWN_TIMEOUT = 5.0
    # How long to wait for an exit status once stdout closes
    EXIT_GRACE = 1.0

    def __init__(
        self,
        target: RunTarget,
        root_uri: str,
        output: Optional[OutputChannel] = None,
        handshake_timeout: Optional[float] = None,
        document_selector: Optional[List[DocumentFilter]] = None,
        name: str = CLIENT_NAME,
    ):
        """
        Initialize LSP client.

        Args:
            target: Resolved command to spawn
            root_uri: Project root as file:// URI
            output: Channel that receives server stderr
            handshake_timeout: Seconds to wait for initialize; None waits forever
            document_selector: Documents the server handles
            name: Display name used in log messages
        """
        self.target = target
        self.root_uri = root_uri
        self.output = output
        self.handshake_timeout = handshake_timeout
        self.document_selector = document_selector or DEFAULT_DOCUMENT_SELECTOR
        self.name = name
        self.process: Optional[asyncio.subprocess.Process] = None
        self.server_capabilities: Dict[str, Any] = {}
        self.server_info: Dict[str, Any] = {}
        self._request_id = 0
        self._pending_requests: Dict[int, asyncio.Future] = {}
        self._reader_task: Optional[asyncio.Task] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._stderr_tail: List[str] = []
        self._initialized = False
        self._shutdown_requested = False
        # stop() during the spawn sets this; start() kills the new process
        self._spawning = False
        self._cancelled = False

    async def start(self) -> None:
        """
        Start the language server process and initialize.

        Raises:
            FileNotFoundError: If the executable does not exist
            ServerExitedError: If the server exits before answering
            ResponseError: If the server rejects initialize
        """
        if self.process is not None:
            return

        logger.debug(f"Spawning {self.target.command_line} (cwd={self.target.cwd})")

        self._spawning = True
        self._cancelled = False
        try:
            process = await asyncio.create_subprocess_exec(
                self.target.executable,
                *self.target.args,
                cwd=self.target.cwd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        finally:
            self._spawning = False

        if self._cancelled:
            self._cancelled = False
            logger.debug(f"{self.name} server stopped while spawning; killing it")
            try:
                process.kill()
            except ProcessLookupError:
                pass
            returncode = await process.wait()
            raise ServerExitedError(returncode)

        self.process = process

        self._reader_task = asyncio.ensure_future(self._read_responses())
        self._stderr_task = asyncio.ensure_future(self._read_stderr())

        try:
            params = LSPMessage.initialize_params(self.root_uri, os.getpid())
            if self.handshake_timeout is None:
                result = await self.request("initialize", params)
            else:
                result = await asyncio.wait_for(
                    self.request("initialize", params), self.handshake_timeout
                )
        except Exception:
            if not self._shutdown_requested:
                await self.stop()
            raise

        if isinstance(result, dict):
            self.server_capabilities = result.get("capabilities", {})
            self.server_info = result.get("serverInfo", {})

        self.notify("initialized", {})
        self._initialized = True
        logger.debug(f"{self.name} language server initialized")

    async def stop(self) -> None:
        """Shutdown the language server gracefully, killing it if it hangs."""
        if self.process is None:
            if self._spawning:
                self._cancelled = True
            return
        if self._shutdown_requested:
            return

        self._shutdown_requested = True
        process = self.process

        try:
            if process.returncode is None:
                await asyncio.wait_for(self._shutdown(process), self.SHUTDOWN_TIMEOUT)
        except (asyncio.TimeoutError, ResponseError, ServerExitedError, OSError) as e:
            logger.warning(f"Error during graceful shutdown: {str(e) or 'timed out'}")
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
        finally:
            await self._cancel_tasks()
            self._fail_pending(ServerExitedError(process.returncode))
            self.process = None
            self._initialized = False
            self._shutdown_requested = False

    @property
    def is_running(self) -> bool:
        """Check if the server is running."""
        return self.process is not None and self.process.returncode is None

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def request(self, method: str, params: Optional[Any] = None) -> Any:
        """
        Send a request and wait for its result.

        Raises:
            ServerNotRunningError: If no server process is attached
            ServerExitedError: If the server exits before answering
            ResponseError: If the server answers with an error
        """
        if self.process is None or self.process.stdin is None:
            raise ServerNotRunningError(f"{self.name} language server is not running")

        request_id = self._next_id()
        future = asyncio.get_running_loop().create_future()
        self._pending_requests[request_id] = future

        try:
            self._write(LSPMessage.request(method, request_id, params))
            await self.process.stdin.drain()
            response = await future
        except (BrokenPipeError, ConnectionResetError) as e:
            returncode = await self._wait_for_exit()
            raise ServerExitedError(returncode, "\n".join(self._stderr_tail[-5:])) from e
        finally:
            self._pending_requests.pop(request_id, None)

        if "error" in response:
            error = response["error"] or {}
            raise ResponseError(
                error.get("code", 0), error.get("message", "Unknown error"), error.get("data")
            )
        return response.get("result")

    def notify(self, method: str, params: Optional[Any] = None) -> None:
        """Send notification (no response expected)."""
        if self.process is None or self.process.stdin is None:
            raise ServerNotRunningError(f"{self.name} language server is not running")
        self._write(LSPMessage.notification(method, params))

    # --- Internal methods ---

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _write(self, message: bytes) -> None:
        try:
            self.process.stdin.write(message)
        except (BrokenPipeError, ConnectionResetError, RuntimeError) as e:
            raise ServerExitedError(self.process.returncode) from e

    async def _shutdown(self, process: asyncio.subprocess.Process) -> None:
        if self._initialized:
            await self.request("shutdown")
            self.notify("exit")
        else:
            process.terminate()
        await process.wait()

    async def _read_responses(self) -> None:
        """Read server messages until stdout closes."""
        reader = self.process.stdout

        try:
            while True:
                message = await read_message(reader)
                if message is None:
                    break
                self._handle_message(message)
        except ValueError as e:
            if not self._shutdown_requested:
                logger.error(f"Failed to parse message from {self.name} server: {e}")

        returncode = await self._wait_for_exit()
        if not self._shutdown_requested:
            logger.debug(f"{self.name} server closed its output (exit code {returncode})")
        self._fail_pending(ServerExitedError(returncode, "\n".join(self._stderr_tail[-5:])))

    async def _read_stderr(self) -> None:
        """Forward server stderr line by line."""
        stream = self.process.stderr
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                # Longer than the stream limit; the buffered part is dropped
                logger.debug(f"Dropped oversized stderr line from {self.name} server")
                continue
            if not line:
                break
            text = line.decode("utf-8", errors="replace").rstrip()
            self._stderr_tail = (self._stderr_tail + [text])[-20:]
            if self.output is not None:
                self.output.append_line(text)
            else:
                logger.debug(f"[{self.name}] {text}")

    async def _wait_for_exit(self) -> Optional[int]:
        process = self.process
        if process is None:
            return None
        try:
            return await asyncio.wait_for(process.wait(), self.EXIT_GRACE)
        except asyncio.TimeoutError:
            return process.returncode

    def _handle_message(self, message: Dict) -> None:
        """Dispatch an incoming response, request or notification."""
        method = message.get("method")

        if method is None:
            future = self._pending_requests.get(message.get("id"))
            if future is not None and not future.done():
                future.set_result(message)
            return

        if "id" in message:
            # Requests from the server (registerCapability, workDoneProgress/create, ...)
            # are acknowledged with an empty result.
            try:
                self._write(LSPMessage.response(message["id"], None))
            except ServerExitedError:
                logger.debug(f"Could not answer {method}: server is gone")
            return

        params = message.get("params") or {}
        if method in ("window/logMessage", "window/showMessage"):
            text = params.get("message", "")
            if self.output is not None:
                self.output.append_line(text)
            else:
                logger.info(f"[{self.name}] {text}")
        else:
            logger.debug(f"Ignoring notification {method}")

    def _fail_pending(self, error: Exception) -> None:
        for future in list(self._pending_requests.values()):
            if not future.done():
                future.set_exception(error)

    async def _cancel_tasks(self) -> None:
        for task in (self._reader_task, self._stderr_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._reader_task = None
        self._stderr_task = None

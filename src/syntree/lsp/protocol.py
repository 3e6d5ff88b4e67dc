"""
LSP Protocol definitions - JSON-RPC framing for LSP communication.

Implements the handful of Language Server Protocol messages the supervisor
and its features need, plus Content-Length framing over asyncio streams.
"""

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional


@dataclass
class TextDocumentIdentifier:
    """Identifies a text document."""

    uri: str

    def to_dict(self) -> Dict[str, str]:
        return {"uri": self.uri}


def path_to_uri(path: str) -> str:
    """Convert file path to file:// URI."""
    return Path(path).resolve().as_uri()


class LSPMessage:
    """LSP-specific message formatting."""

    @staticmethod
    def request(method: str, request_id: int, params: Optional[Any] = None) -> bytes:
        message: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            message["params"] = params
        return LSPMessage.encode(message)

    @staticmethod
    def notification(method: str, params: Optional[Any] = None) -> bytes:
        message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        return LSPMessage.encode(message)

    @staticmethod
    def response(request_id: Any, result: Any = None) -> bytes:
        return LSPMessage.encode({"jsonrpc": "2.0", "id": request_id, "result": result})

    @staticmethod
    def initialize_params(root_uri: str, process_id: Optional[int] = None) -> Dict:
        """Parameters for the initialize request."""
        return {
            "processId": process_id,
            "clientInfo": {"name": "syntree"},
            "rootUri": root_uri,
            "capabilities": {
                "textDocument": {
                    "formatting": {},
                    "synchronization": {
                        "didOpen": True,
                        "didClose": True,
                        "didChange": True,
                    },
                },
                "window": {"workDoneProgress": False},
            },
        }

    @staticmethod
    def text_document_did_open(uri: str, language_id: str, version: int, text: str) -> Dict:
        """Parameters for textDocument/didOpen."""
        return {
            "textDocument": {
                "uri": uri,
                "languageId": language_id,
                "version": version,
                "text": text,
            }
        }

    @staticmethod
    def text_document_did_change(uri: str, version: int, text: str) -> Dict:
        """Parameters for a full-content textDocument/didChange."""
        return {
            "textDocument": {"uri": uri, "version": version},
            "contentChanges": [{"text": text}],
        }

    @staticmethod
    def encode(message: Dict) -> bytes:
        """Encode message with Content-Length header (LSP wire format)."""
        content = json.dumps(message).encode("utf-8")
        header = f"Content-Length: {len(content)}\r\n\r\n".encode("ascii")
        return header + content


async def read_message(reader: asyncio.StreamReader) -> Optional[Dict]:
    """
    Read one framed message from a stream.

    Returns:
        The decoded message, or None at end of stream

    Raises:
        ValueError: If the header block or body is malformed
    """
    content_length: Optional[int] = None

    while True:
        line = await reader.readline()
        if not line:
            return None
        line = line.strip()
        if not line:
            break
        name, _, value = line.decode("ascii", errors="replace").partition(":")
        if name.strip().lower() == "content-length":
            content_length = int(value.strip())

    if content_length is None:
        raise ValueError("Message without Content-Length header")

    try:
        body = await reader.readexactly(content_length)
    except asyncio.IncompleteReadError:
        return None

    return json.loads(body.decode("utf-8"))

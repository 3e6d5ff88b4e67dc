"""
Visualizer - shows the syntax tree the server builds for a document.

Created by the supervisor after each successful start and disposed when
the server stops.
"""

import logging
from typing import Any

from syntree.lsp.documents import DocumentManager
from syntree.lsp.errors import ServerNotRunningError, SyntreeError
from syntree.lsp.protocol import TextDocumentIdentifier

logger = logging.getLogger(__name__)

VISUALIZE_METHOD = "syntaxTree/visualizing"


class Visualizer:
    """Asks the server for the tree of a Ruby or HAML document."""

    def __init__(self, handle):
        self.handle = handle
        self.documents = DocumentManager(handle)
        self._disposed = False

    @property
    def active(self) -> bool:
        return not self._disposed and self.handle.alive

    async def visualize(self, file_path: str) -> str:
        """
        Return the server's rendering of the tree for ``file_path``.

        Raises:
            ServerNotRunningError: If the server stopped since this was created
            SyntreeError: If the file is not a document the server handles
        """
        if not self.active:
            raise ServerNotRunningError("Syntax Tree language server is not running")

        if not self.documents.ensure_open(file_path):
            raise SyntreeError(f"Cannot visualize {file_path}: not a Ruby or HAML document")

        document = self.documents.get_document(file_path)
        logger.debug(f"Visualizing {document.uri}")
        result: Any = await self.handle.request(
            VISUALIZE_METHOD, {"textDocument": TextDocumentIdentifier(document.uri).to_dict()}
        )
        return "" if result is None else str(result)

    def dispose(self) -> None:
        # The handle is dead by now, so didClose cannot be sent.
        self._disposed = True
        self.documents.forget_all()

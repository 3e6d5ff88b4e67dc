"""
Document Manager - tracks open documents for LSP synchronization.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from syntree.lsp.config import language_for
from syntree.lsp.protocol import LSPMessage, path_to_uri

logger = logging.getLogger(__name__)


@dataclass
class DocumentState:
    """State of an open document."""

    path: str
    uri: str
    version: int
    content: str
    language: str


class DocumentManager:
    """
    Manages document state for LSP synchronization.

    The server is notified when documents are:
    - Opened (textDocument/didOpen)
    - Changed (textDocument/didChange)

    ``handle`` is anything with ``notify(method, params)``; the supervisor
    hands features a ServerHandle.
    """

    def __init__(self, handle):
        self.handle = handle
        self._documents: Dict[str, DocumentState] = {}

    def open_document(self, file_path: str, content: Optional[str] = None) -> bool:
        """
        Open a document and notify the language server.

        Args:
            file_path: Path to the file
            content: Optional file content (reads from disk if not provided)

        Returns:
            True if document was opened successfully
        """
        abs_path = str(Path(file_path).resolve())

        if abs_path in self._documents:
            return True

        language = language_for(abs_path)
        if language is None:
            logger.debug(f"Not a Syntax Tree document: {abs_path}")
            return False

        if content is None:
            try:
                content = Path(abs_path).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Failed to read {file_path}: {e}")
                return False

        uri = path_to_uri(abs_path)
        self.handle.notify(
            "textDocument/didOpen",
            LSPMessage.text_document_did_open(uri, language, version=1, text=content),
        )

        self._documents[abs_path] = DocumentState(
            path=abs_path, uri=uri, version=1, content=content, language=language
        )
        logger.debug(f"Opened document: {abs_path}")
        return True

    def ensure_open(self, file_path: str) -> bool:
        """Open the document if needed, otherwise sync it with disk."""
        abs_path = str(Path(file_path).resolve())
        if abs_path in self._documents:
            return self.refresh_document(abs_path)
        return self.open_document(abs_path)

    def get_document(self, file_path: str) -> Optional[DocumentState]:
        return self._documents.get(str(Path(file_path).resolve()))

    def forget_all(self) -> None:
        """Drop tracking state without notifying (the server is gone)."""
        self._documents.clear()

    def refresh_document(self, file_path: str) -> bool:
        """
        Re-read a document from disk and send didChange if it changed.
        """
        abs_path = str(Path(file_path).resolve())
        doc = self._documents.get(abs_path)
        if doc is None:
            return self.open_document(abs_path)

        try:
            content = Path(abs_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to refresh {file_path}: {e}")
            return False

        if content == doc.content:
            return True

        doc.content = content
        doc.version += 1
        self.handle.notify(
            "textDocument/didChange",
            LSPMessage.text_document_did_change(doc.uri, doc.version, content),
        )
        return True

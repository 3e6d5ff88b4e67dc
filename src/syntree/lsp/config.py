"""
Syntax Tree server configuration - executable names and document selector.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

CLIENT_NAME = "Syntax Tree"

# The stree CLI and the gem that ships it
EXECUTABLE_NAME = "stree"
MODE_TOKEN = "lsp"
GEM_NAME = "syntax_tree"

BUNDLE_RUNNER = "bundle"
BUNDLE_PROBE = [BUNDLE_RUNNER, "show", GEM_NAME]
INSTALL_COMMAND = ["gem", "install", GEM_NAME]


@dataclass
class DocumentFilter:
    """Matches documents the server handles."""

    language_id: str
    extensions: List[str] = field(default_factory=list)
    filenames: List[str] = field(default_factory=list)

    def matches(self, file_path: str) -> bool:
        path = Path(file_path)
        if path.name in self.filenames:
            return True
        return path.suffix.lower() in self.extensions


DEFAULT_DOCUMENT_SELECTOR: List[DocumentFilter] = [
    DocumentFilter(language_id="haml", extensions=[".haml"]),
    DocumentFilter(language_id="ruby", extensions=[".rb", ".rake", ".gemspec", ".ru"]),
    DocumentFilter(language_id="ruby", filenames=["Gemfile"]),
]


def language_for(
    file_path: str, selector: Optional[List[DocumentFilter]] = None
) -> Optional[str]:
    """Language id the server should see for ``file_path``, or None."""
    for document_filter in selector or DEFAULT_DOCUMENT_SELECTOR:
        if document_filter.matches(file_path):
            return document_filter.language_id
    return None

"""
Completion for the syntree prompt: slash commands, then setting keys
after ``/set``.
"""

from typing import Dict, Iterable, Optional, Sequence

from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

SECTION_PREFIX = "syntaxTree."


class CommandCompleter(Completer):
    """
    Args:
        commands: Command names mapped to descriptions
        setting_keys: Dotted setting keys offered after ``/set``
    """

    def __init__(self, commands: Dict[str, str], setting_keys: Optional[Sequence[str]] = None):
        self.commands = commands
        self.setting_keys = sorted(setting_keys or [])

    def get_completions(self, document: Document, complete_event) -> Iterable[Completion]:
        text = document.text_before_cursor
        if not text.startswith('/'):
            return

        name, space, rest = text[1:].partition(' ')
        if not space:
            yield from self._complete_command(name.lower())
        elif name == 'set' and ' ' not in rest:
            yield from self._complete_setting(rest)

    def _complete_command(self, query: str) -> Iterable[Completion]:
        for cmd_name, description in sorted(self.commands.items()):
            if cmd_name.lower().startswith(query):
                yield Completion(
                    text=cmd_name,
                    start_position=-len(query),
                    display=f"/{cmd_name}",
                    display_meta=description,
                )

    def _complete_setting(self, query: str) -> Iterable[Completion]:
        for key in self.setting_keys:
            # /set accepts keys with or without the section prefix
            short = key[len(SECTION_PREFIX):] if key.startswith(SECTION_PREFIX) else key
            if short.startswith(query) or key.startswith(query):
                yield Completion(text=short, start_position=-len(query), display_meta=key)

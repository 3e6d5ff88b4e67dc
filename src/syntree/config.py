"""
Configuration management for syntree.

Settings live in a two-tier namespace, the same one the editor extension
uses:

    syntaxTree.singleQuotes            bool, default False
    syntaxTree.trailingComma           bool, default False
    syntaxTree.additionalPlugins       list of str, default []
    syntaxTree.printWidth              int, no default
    syntaxTree.advanced.commandPath    str, default ""

Values are layered: built-in defaults, then the JSON settings file, then
SYNTREE_* environment variables, then values set at runtime via update().
"""

import copy
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from syntree.utils.disposable import Disposable

logger = logging.getLogger(__name__)

SECTION = "syntaxTree"
ADVANCED_SECTION = "syntaxTree.advanced"

DEFAULT_SETTINGS_FILE = Path(".syntree") / "settings.json"

DEFAULTS: Dict[str, Any] = {
    "syntaxTree.singleQuotes": False,
    "syntaxTree.trailingComma": False,
    "syntaxTree.additionalPlugins": [],
    "syntaxTree.printWidth": None,
    "syntaxTree.advanced.commandPath": "",
}


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


def _parse_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_optional_int(value: str) -> Optional[int]:
    value = value.strip()
    return int(value) if value else None


# SYNTREE_PRINT_WIDTH=100 -> syntaxTree.printWidth = 100
ENVIRONMENT_KEYS: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "SYNTREE_SINGLE_QUOTES": ("syntaxTree.singleQuotes", _parse_bool),
    "SYNTREE_TRAILING_COMMA": ("syntaxTree.trailingComma", _parse_bool),
    "SYNTREE_ADDITIONAL_PLUGINS": ("syntaxTree.additionalPlugins", _parse_list),
    "SYNTREE_PRINT_WIDTH": ("syntaxTree.printWidth", _parse_optional_int),
    "SYNTREE_COMMAND_PATH": ("syntaxTree.advanced.commandPath", str),
}


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flatten nested sections into dotted keys."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(_flatten(value, full_key))
        else:
            flat[full_key] = value
    return flat


class ConfigurationChangeEvent:
    """Describes which settings keys changed."""

    def __init__(self, changed_keys: Iterable[str]):
        self.changed_keys: FrozenSet[str] = frozenset(changed_keys)

    def affects_configuration(self, section: str) -> bool:
        """True if any changed key is ``section`` or lives under it."""
        return any(
            key == section or key.startswith(section + ".") for key in self.changed_keys
        )

    def __repr__(self) -> str:
        return f"ConfigurationChangeEvent({sorted(self.changed_keys)!r})"


class ConfigurationSection:
    """Typed read access to one section of the settings namespace."""

    def __init__(self, settings: "Settings", section: str):
        self._settings = settings
        self.section = section

    def get(self, key: str, default: Any = None) -> Any:
        value = self._settings.get_value(f"{self.section}.{key}")
        return default if value is None else value

    def has(self, key: str) -> bool:
        return self._settings.get_value(f"{self.section}.{key}") is not None


class Settings:
    """
    Layered settings store with change notification.

    Args:
        settings_file: JSON settings file. Defaults to
            ``<workspace_root>/.syntree/settings.json``.
        workspace_root: Workspace directory. Defaults to cwd.
        environ: Environment mapping. Defaults to ``os.environ``.
    """

    def __init__(
        self,
        settings_file: Optional[str] = None,
        workspace_root: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.workspace_root = workspace_root or os.getcwd()
        if settings_file:
            self.settings_file = Path(settings_file)
        else:
            self.settings_file = Path(self.workspace_root) / DEFAULT_SETTINGS_FILE
        self._environ = environ if environ is not None else os.environ
        self._overrides: Dict[str, Any] = {}
        self._listeners: List[Callable[[ConfigurationChangeEvent], None]] = []
        self._values = self._load()

    def get_value(self, key: str) -> Any:
        return copy.deepcopy(self._values.get(key))

    def get_configuration(self, section: str = SECTION) -> ConfigurationSection:
        return ConfigurationSection(self, section)

    def items(self) -> Dict[str, Any]:
        return copy.deepcopy(self._values)

    def on_did_change(
        self, listener: Callable[[ConfigurationChangeEvent], None]
    ) -> Disposable:
        """Subscribe to changes. Dispose the result to unsubscribe."""
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Disposable(remove)

    def update(self, key: str, value: Any) -> None:
        """Set a value at runtime. ``None`` removes the runtime value."""
        if value is None:
            self._overrides.pop(key, None)
        else:
            self._overrides[key] = value
        self._refresh()

    def reload(self) -> None:
        """Re-read the settings file and environment."""
        self._refresh()

    # --- Internal methods ---

    def _refresh(self) -> None:
        values = self._load()
        changed = {
            key
            for key in set(values) | set(self._values)
            if values.get(key) != self._values.get(key)
        }
        self._values = values
        if not changed:
            return

        event = ConfigurationChangeEvent(changed)
        logger.debug(f"Settings changed: {sorted(changed)}")
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Settings listener failed: {e}")

    def _load(self) -> Dict[str, Any]:
        values = copy.deepcopy(DEFAULTS)
        values.update(self._read_settings_file())
        values.update(self._read_environment())
        values.update(copy.deepcopy(self._overrides))
        return values

    def _read_settings_file(self) -> Dict[str, Any]:
        if not self.settings_file.is_file():
            return {}

        try:
            data = json.loads(self.settings_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.settings_file}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring settings file {self.settings_file}: expected a JSON object")
            return {}

        return _flatten(data)

    def _read_environment(self) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for env_key, (key, parse) in ENVIRONMENT_KEYS.items():
            raw = self._environ.get(env_key)
            if raw is None:
                continue
            try:
                values[key] = parse(raw)
            except ValueError as e:
                logger.warning(f"Ignoring {env_key}={raw!r}: {e}")
        return values


@dataclass(frozen=True)
class ServerConfig:
    """Snapshot of the settings that shape one server launch."""

    single_quotes: bool = False
    trailing_comma: bool = False
    additional_plugins: Tuple[str, ...] = ()
    print_width: Optional[int] = None
    command_path: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ServerConfig":
        config = settings.get_configuration(SECTION)
        advanced = settings.get_configuration(ADVANCED_SECTION)

        plugins = config.get("additionalPlugins", [])
        if isinstance(plugins, str):
            plugins = [plugins]

        return cls(
            single_quotes=bool(config.get("singleQuotes", False)),
            trailing_comma=bool(config.get("trailingComma", False)),
            additional_plugins=tuple(str(plugin) for plugin in plugins),
            print_width=config.get("printWidth"),
            command_path=advanced.get("commandPath") or None,
        )

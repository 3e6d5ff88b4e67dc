"""
Logging for syntree.

There are two sinks:

- OutputChannel: the in-memory "Syntax Tree" diagnostics log. Every record
  from the ``syntree`` logger lands here, and the language server's stderr
  is appended verbatim. The showOutputChannel command displays it.
- Optional file logs, organized in date-stamped folders with separate
  files for each log level:
    logs/YYYY-MM-DD/debug.log
    logs/YYYY-MM-DD/info.log
    logs/YYYY-MM-DD/warning.log
    logs/YYYY-MM-DD/error.log
"""

import json
import logging
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Deque, List, Optional

ROOT_LOGGER = "syntree"


class OutputChannel(logging.Handler):
    """Bounded in-memory log of everything the supervisor reports."""

    def __init__(self, title: str = "Syntax Tree", max_lines: int = 2000):
        super().__init__(level=logging.INFO)
        self.title = title
        self._lines: Deque[str] = deque(maxlen=max_lines)
        self._logger_name: Optional[str] = None
        self.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)-7s %(message)s", datefmt="%H:%M:%S")
        )

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._lines.append(self.format(record))
        except Exception:
            self.handleError(record)

    def append_line(self, line: str) -> None:
        """Append a raw line, e.g. one line of server stderr."""
        self._lines.append(line.rstrip("\r\n"))

    def show(self) -> List[str]:
        return list(self._lines)

    def clear(self) -> None:
        self._lines.clear()

    def attach(self, logger_name: str = ROOT_LOGGER) -> None:
        """Start capturing records from ``logger_name`` and its children."""
        if self._logger_name is not None:
            return
        target = logging.getLogger(logger_name)
        if target.level == logging.NOTSET or target.level > logging.INFO:
            target.setLevel(logging.INFO)
        target.addHandler(self)
        self._logger_name = logger_name

    def detach(self) -> None:
        if self._logger_name is None:
            return
        logging.getLogger(self._logger_name).removeHandler(self)
        self._logger_name = None


def _default_log_dir() -> Path:
    """Get the default log directory path with today's date."""
    today = datetime.now().strftime("%Y-%m-%d")
    return Path("logs") / today


def configure_logging(
    level: str = "INFO",
    log_dir: Optional[str] = None,
    json_mode: bool = False,
) -> Path:
    """
    Configure file logging for the ``syntree`` logger.

    Args:
        level: DEBUG, INFO, WARNING, ERROR (minimum level to log)
        log_dir: Optional directory for logs (default: logs/YYYY-MM-DD/)
        json_mode: Use JSON format for structured parsing

    Returns:
        The directory the log files are written to
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            logger.removeHandler(handler)
            handler.close()

    # Set logger to DEBUG to capture all levels
    logger.setLevel(logging.DEBUG)

    directory = Path(log_dir) if log_dir else _default_log_dir()
    directory.mkdir(parents=True, exist_ok=True)

    if json_mode:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(name)-24s] %(message)s", datefmt="%H:%M:%S"
        )

    min_level = getattr(logging, level.upper(), logging.INFO)

    log_levels = [
        (logging.DEBUG, "debug.log"),
        (logging.INFO, "info.log"),
        (logging.WARNING, "warning.log"),
        (logging.ERROR, "error.log"),
    ]

    for log_level, filename in log_levels:
        if log_level < min_level:
            continue
        handler = logging.FileHandler(directory / filename, mode="a", encoding="utf-8")
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        # Only log the exact level, not higher ones
        handler.addFilter(lambda record, level=log_level: record.levelno == level)
        logger.addHandler(handler)

    return directory


class JsonFormatter(logging.Formatter):
    """Minimal JSON formatter for machine parsing."""

    _RESERVED = {
        "name", "msg", "args", "levelname", "levelno", "pathname",
        "filename", "module", "exc_info", "exc_text", "stack_info",
        "lineno", "funcName", "created", "msecs", "relativeCreated",
        "thread", "threadName", "processName", "process", "message",
        "asctime", "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "time": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for k, v in record.__dict__.items():
            if k not in self._RESERVED:
                data[k] = v
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)

"""
Logging for dbframe operations.

Every module logs through a child of the ``dbframe`` logger, e.g.
``dbframe.connection`` or ``dbframe.lazy``. Child loggers carry no
handlers and no level of their own, so applications configure the whole
library through ``logging.getLogger("dbframe")``. ``enable_console_logging``
and ``log_to_file`` attach handlers to that parent for scripts that do not
configure logging themselves.
"""

import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Generator, Optional, TextIO, Union

ROOT_LOGGER = "dbframe"

_CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LogValue = Union[str, int, float, bool, None]


class ConsoleHandler(logging.StreamHandler):
    """The console handler added by ``enable_console_logging``."""


def root_logger() -> logging.Logger:
    """The stdlib ``dbframe`` logger that all module loggers propagate to."""
    return logging.getLogger(ROOT_LOGGER)


def enable_console_logging(
    level: int = logging.INFO, stream: Optional[TextIO] = None
) -> logging.Handler:
    """
    Print dbframe log records on the console.

    Adds at most one console handler to the ``dbframe`` logger; calling it
    again returns the handler already installed. The ``dbframe`` logger's
    own level is only set when the application left it unset.

    Args:
        level: Lowest level the console handler prints
        stream: Output stream, stdout by default

    Returns:
        The console handler
    """
    root = root_logger()
    for handler in root.handlers:
        if isinstance(handler, ConsoleHandler):
            return handler
    handler = ConsoleHandler(stream or sys.stdout)
    handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    handler.setLevel(level)
    root.addHandler(handler)
    if root.level == logging.NOTSET:
        root.setLevel(level)
    return handler


def disable_console_logging() -> None:
    """Remove the handler added by ``enable_console_logging``."""
    root = root_logger()
    for handler in root.handlers[:]:
        if isinstance(handler, ConsoleHandler):
            root.removeHandler(handler)
            handler.close()


def log_to_file(path: str, level: int = logging.INFO) -> logging.Handler:
    """Append dbframe log records to ``path``; one handler per file."""
    root = root_logger()
    target = os.path.abspath(path)
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == target:
            return handler
    handler = logging.FileHandler(target)
    handler.setFormatter(
        logging.Formatter(_CONSOLE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    )
    handler.setLevel(level)
    root.addHandler(handler)
    if root.level == logging.NOTSET:
        root.setLevel(level)
    return handler


def close_file_logging() -> None:
    """Close and remove every file handler on the ``dbframe`` logger."""
    root = root_logger()
    for handler in root.handlers[:]:
        if isinstance(handler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()


class FrameLogger:
    """
    Keyword-aware front end for one logger in the ``dbframe`` hierarchy.

    ``logger.info("Wrote rows", rows=3)`` logs ``"Wrote rows (rows=3)"``.
    The wrapped stdlib logger is available as ``.logger``.
    """

    def __init__(self, name: str = ROOT_LOGGER):
        if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
            name = f"{ROOT_LOGGER}.{name}"
        self.name = name
        self.logger = logging.getLogger(name)
        self._timers: Dict[str, datetime] = {}

    def __repr__(self) -> str:
        return f"<FrameLogger {self.name}>"

    def debug(self, message: str, **kwargs: LogValue) -> None:
        self.logger.debug(self._format_message(message, kwargs))

    def info(self, message: str, **kwargs: LogValue) -> None:
        self.logger.info(self._format_message(message, kwargs))

    def warning(self, message: str, **kwargs: LogValue) -> None:
        self.logger.warning(self._format_message(message, kwargs))

    def error(self, message: str, **kwargs: LogValue) -> None:
        self.logger.error(self._format_message(message, kwargs))

    def _format_message(self, message: str, kwargs: Dict[str, LogValue]) -> str:
        if not kwargs:
            return message
        pairs = ", ".join(f"{k}={v}" for k, v in kwargs.items())
        return f"{message} ({pairs})"

    @contextmanager
    def time_operation(self, operation_name: str) -> Generator[None, None, None]:
        """Log how long the block took, at DEBUG."""
        start_time = datetime.now(timezone.utc)
        self._timers[operation_name] = start_time
        try:
            yield
        finally:
            duration = (datetime.now(timezone.utc) - start_time).total_seconds()
            self.debug(f"Operation '{operation_name}' took {duration:.3f}s")
            self._timers.pop(operation_name, None)

    def set_level(self, level: int) -> None:
        """Set the level of this logger only."""
        self.logger.setLevel(level)


_loggers: Dict[str, FrameLogger] = {}


def get_logger(name: str = ROOT_LOGGER) -> FrameLogger:
    """
    Return the FrameLogger for ``name``, creating it on first use.

    Names outside the hierarchy are placed under it, so ``get_logger("x")``
    logs as ``dbframe.x``.
    """
    logger = _loggers.get(name)
    if logger is None:
        logger = _loggers[name] = FrameLogger(name)
    return logger

"""Logging for the ``mdthread`` command line.

Handlers are attached to the package loggers (``mdthread`` and the
``PySide6`` logger Qt messages are routed to), never to the root logger, so
embedding applications keep their own logging configuration. Records go to a
rotating file under ``~/.mdthread/logs`` (or ``MDTHREAD_LOG_DIR``) and to a
console stream that only shows warnings unless debug logging is enabled.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import TextIO

__all__ = ["setup_logging", "shutdown_logging", "get_log_path", "route_qt_messages"]

LOGGER = logging.getLogger(__name__)

_LOG_DIR_ENV = "MDTHREAD_LOG_DIR"
_DEFAULT_LOG_DIR = Path.home() / ".mdthread" / "logs"
_LOG_FILE_NAME = "mdthread.log"
_QT_LOGGER_NAME = "PySide6"
_PACKAGE_LOGGERS: tuple[str, ...] = ("mdthread", _QT_LOGGER_NAME)
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_installed_handlers: list[logging.Handler] = []
_log_path: Path | None = None
_qt_routed = False


def setup_logging(
    *,
    debug: bool = False,
    stream: TextIO | None = None,
    log_dir: Path | str | None = None,
    route_qt: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> Path:
    """Attach file and console handlers to the package loggers.

    The file records ``INFO`` and above, or everything when ``debug`` is set
    (``--debug`` or the ``debug_logging`` setting). The console shows
    warnings only, unless ``debug`` is set. Calling this again replaces the
    handlers from the previous call.
    """

    global _log_path
    shutdown_logging()

    target_dir = Path(log_dir or os.environ.get(_LOG_DIR_ENV) or _DEFAULT_LOG_DIR).expanduser()
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / _LOG_FILE_NAME
    formatter = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler = logging.StreamHandler(stream or sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)

    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)
        _installed_handlers.append(handler)
    for name in _PACKAGE_LOGGERS:
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG if debug else logging.INFO)
        for handler in _installed_handlers:
            logger.addHandler(handler)

    if route_qt:
        route_qt_messages()
    _log_path = log_path
    LOGGER.debug("Logging to %s (debug=%s)", log_path, debug)
    return log_path


def shutdown_logging() -> None:
    """Detach and close whatever :func:`setup_logging` installed."""

    global _qt_routed
    for name in _PACKAGE_LOGGERS:
        logger = logging.getLogger(name)
        for handler in _installed_handlers:
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
    for handler in _installed_handlers:
        handler.close()
    _installed_handlers.clear()
    if _qt_routed:
        from PySide6.QtCore import qInstallMessageHandler

        qInstallMessageHandler(None)
        _qt_routed = False


def get_log_path() -> Path | None:
    """Return the file the most recent :func:`setup_logging` call writes to."""

    return _log_path


def route_qt_messages() -> None:
    """Send Qt's own diagnostics (image plugin failures and the like) to the ``PySide6`` logger."""

    global _qt_routed
    from PySide6.QtCore import QtMsgType, qInstallMessageHandler

    levels = {
        QtMsgType.QtDebugMsg: logging.DEBUG,
        QtMsgType.QtInfoMsg: logging.INFO,
        QtMsgType.QtWarningMsg: logging.WARNING,
        QtMsgType.QtCriticalMsg: logging.ERROR,
        QtMsgType.QtFatalMsg: logging.CRITICAL,
    }
    qt_logger = logging.getLogger(_QT_LOGGER_NAME)

    def _handler(mode, context, message):  # type: ignore[no-untyped-def]
        del context
        qt_logger.log(levels.get(mode, logging.INFO), message)

    qInstallMessageHandler(_handler)
    _qt_routed = True

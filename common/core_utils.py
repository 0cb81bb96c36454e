#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Core utility functions for the bootstrap sequence.

This module provides:
- The symbol-aware log formatter.
- Logging setup with an append-only file sink and an optional console mirror.
- A startup buffer for records logged before the sink is open.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Dict, List, Optional

from bootstrap.config_models import SYMBOLS_DEFAULT

module_logger = logging.getLogger(__name__)

LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
STARTUP_BUFFER_CAPACITY = 1000
SIMPLE_LOG_FORMAT_WITH_PREFIX_PLACEHOLDER = "{log_prefix}%(asctime)s - %(levelname)s - %(symbol)s %(name)s - %(message)s"
SIMPLE_LOG_FORMAT_NO_PREFIX = (
    "%(asctime)s - %(levelname)s - %(symbol)s %(name)s - %(message)s"
)


class SymbolFormatter(logging.Formatter):
    """
    A custom formatter that adds symbols to log messages based on the log level.
    """

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        style: str = "%",
        validate: bool = True,
        symbols: Optional[Dict[str, str]] = None,
    ):
        super().__init__(fmt, datefmt, style, validate)
        self.symbols = symbols or SYMBOLS_DEFAULT

    def format(self, record):
        if record.levelno == logging.DEBUG:
            record.symbol = self.symbols.get("debug", "🐛")
        elif record.levelno == logging.INFO:
            record.symbol = self.symbols.get("info", "ℹ️")
        elif record.levelno == logging.WARNING:
            record.symbol = self.symbols.get("warning", "⚠️")
        elif record.levelno == logging.ERROR:
            record.symbol = self.symbols.get("error", "❌")
        elif record.levelno == logging.CRITICAL:
            record.symbol = self.symbols.get("critical", "🔥")
        else:
            record.symbol = ""

        return super().format(record)


def setup_logging(
    log_level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    log_prefix: Optional[str] = None,
    symbols: Optional[Dict[str, str]] = None,
) -> bool:
    """
    Configures the root logger for a bootstrap run.

    The file sink is opened in append mode so the log survives process exit
    and accumulates across re-runs. If the file cannot be opened a warning is
    printed to stderr and console logging is forced on, so diagnostics are
    never lost.

    Parameters:
    log_level: int
        The logging level to configure. Defaults to logging.INFO.
    log_file: Optional[str]
        Path of the append-only log file. Parent directories are created.
    log_to_console: bool
        Whether to mirror records to stdout.
    log_prefix: Optional[str]
        Optional string prepended to every line.
    symbols: Optional[Dict[str, str]]
        Level symbols for the formatter.

    Returns:
    bool
        True if the file sink is active, False otherwise.
    """
    handlers: List[logging.Handler] = []
    file_sink_active = False
    if log_file:
        try:
            log_file_path = Path(log_file)
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file_path, mode="a")
            handlers.append(file_handler)
            file_sink_active = True
        except OSError as e:
            print(
                f"Warning: Could not create file handler for log file {log_file}: {e}",
                file=sys.stderr,
            )
            log_to_console = True

    if log_to_console or not handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        handlers.append(console_handler)

    actual_prefix = (
        (log_prefix.strip() + " ")
        if log_prefix and log_prefix.strip()
        else ""
    )
    if actual_prefix:
        final_format_str = SIMPLE_LOG_FORMAT_WITH_PREFIX_PLACEHOLDER.format(
            log_prefix=actual_prefix
        )
    else:
        final_format_str = SIMPLE_LOG_FORMAT_NO_PREFIX

    formatter = SymbolFormatter(
        fmt=final_format_str,
        datefmt=LOG_DATE_FORMAT,
        symbols=symbols,
    )

    for handler in handlers:
        handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    for handler in handlers:
        root_logger.addHandler(handler)

    module_logger.info(
        f"Logging configured. Level: {logging.getLevelName(log_level)}. "
        f"File sink: {log_file if file_sink_active else 'disabled'}."
    )
    return file_sink_active


def start_log_buffer(log_level: int = logging.INFO) -> logging.handlers.MemoryHandler:
    """
    Holds records emitted before the log sink exists, such as configuration
    loader warnings. The records keep their original timestamps and are
    handed to the sink by `replay_log_buffer` once setup_logging has run.
    """
    log_buffer = logging.handlers.MemoryHandler(
        capacity=STARTUP_BUFFER_CAPACITY, flushLevel=logging.CRITICAL + 1
    )
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(log_buffer)
    return log_buffer


def replay_log_buffer(log_buffer: logging.handlers.MemoryHandler) -> int:
    """
    Passes buffered records to the handlers now installed on the root logger.

    Returns:
        The number of records replayed.
    """
    root_logger = logging.getLogger()
    root_logger.removeHandler(log_buffer)
    records = list(log_buffer.buffer)
    log_buffer.buffer.clear()
    log_buffer.close()
    for record in records:
        root_logger.handle(record)
    return len(records)

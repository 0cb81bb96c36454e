# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system utility functions. Every writer here is idempotent: it compares
the desired content with what is on disk and only touches the file when they
differ.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Dict, List, Optional

from bootstrap.config_models import BootstrapSettings

from .command_utils import get_symbols, log_step

module_logger = logging.getLogger(__name__)


def ensure_directory(
    directory_path: Path,
    mode: int,
    app_settings: Optional[BootstrapSettings],
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Create `directory_path` (and parents) and force its permission bits."""
    logger_to_use = current_logger if current_logger else module_logger
    if not directory_path.is_dir():
        directory_path.mkdir(parents=True, exist_ok=True)
        log_step(
            f"Created directory: {directory_path}",
            "debug",
            logger_to_use,
            app_settings,
        )
    os.chmod(directory_path, mode)


def write_file_if_changed(
    file_path: Path,
    content: str,
    mode: int,
    app_settings: Optional[BootstrapSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Writes `content` to `file_path` unless the file already holds exactly that
    content. Permission bits are enforced in both cases.

    The file is created with `mode` from the start so secret material is
    never readable by others, not even briefly.

    Returns:
        bool: True if the file was (re)written, False if it was already current.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    if file_path.is_file():
        try:
            if file_path.read_text(encoding="utf-8") == content:
                os.chmod(file_path, mode)
                log_step(
                    f"{symbols.get('info', 'ℹ️')} {file_path} is already up to date.",
                    "debug",
                    logger_to_use,
                    app_settings,
                )
                return False
        except UnicodeDecodeError:
            pass

    file_path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(file_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    os.chmod(file_path, mode)
    log_step(
        f"{symbols.get('success', '✅')} Wrote {file_path} (mode {oct(mode)}).",
        "info",
        logger_to_use,
        app_settings,
    )
    return True


def merge_assignment_lines(
    existing_lines: List[str], assignments: Dict[str, str]
) -> List[str]:
    """
    Returns `existing_lines` with every KEY=... line for a key in
    `assignments` replaced by the desired value. The first occurrence keeps its
    position, later duplicates are dropped, and keys that were missing are
    appended in the order given.
    """
    merged: List[str] = []
    seen = set()
    for line in existing_lines:
        key = line.split("=", 1)[0].strip() if "=" in line else None
        if key in assignments:
            if key in seen:
                continue
            seen.add(key)
            merged.append(f"{key}={assignments[key]}")
        else:
            merged.append(line)
    for key, value in assignments.items():
        if key not in seen:
            merged.append(f"{key}={value}")
    return merged


def replace_or_insert_assignments(
    file_path: Path,
    assignments: Dict[str, str],
    app_settings: Optional[BootstrapSettings],
    current_logger: Optional[logging.Logger] = None,
    mode: int = 0o644,
) -> bool:
    """
    Sets KEY=VALUE lines in a file such as /etc/environment without
    duplicating them on repeated runs.

    Returns:
        bool: True if the file changed.
    """
    existing_lines: List[str] = []
    if file_path.is_file():
        existing_lines = file_path.read_text(encoding="utf-8").splitlines()
    merged = merge_assignment_lines(existing_lines, assignments)
    return write_file_if_changed(
        file_path,
        "\n".join(merged) + "\n",
        mode,
        app_settings,
        current_logger=current_logger,
    )


def append_line_if_missing(
    file_path: Path,
    line: str,
    mode: int,
    app_settings: Optional[BootstrapSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """Append `line` to `file_path` unless an identical line exists."""
    existing = ""
    if file_path.is_file():
        existing = file_path.read_text(encoding="utf-8")
        if line in existing.splitlines():
            return False
    if existing and not existing.endswith("\n"):
        existing += "\n"
    return write_file_if_changed(
        file_path,
        existing + line + "\n",
        mode,
        app_settings,
        current_logger=current_logger,
    )


def remove_path(
    path: Path,
    app_settings: Optional[BootstrapSettings],
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Removes a file, symlink or directory tree. Missing paths are ignored.

    Raises:
        OSError: If the removal fails.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)
    else:
        return
    log_step(
        f"{symbols.get('success', '✅')} Removed {path}",
        "info",
        logger_to_use,
        app_settings,
    )

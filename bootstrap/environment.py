# bootstrap/environment.py
# -*- coding: utf-8 -*-
"""
Environment Preparer: locale, log sink, privilege check and secret files.

The locale export and the log sink are set up by `initialize_process`
before any stage runs so that every later line reaches the log file. The
`prepare_environment` stage then checks privilege (the one unconditional
fatal precondition), persists the locale and writes secret material.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from bootstrap import config as static_config
from bootstrap.config_models import BootstrapSettings
from common.command_utils import (
    command_exists,
    get_symbols,
    log_step,
    run_command,
)
from common.core_utils import setup_logging
from common.exceptions import BootstrapError
from common.file_utils import (
    ensure_directory,
    replace_or_insert_assignments,
    write_file_if_changed,
)
from common.system_utils import has_admin_privilege

module_logger = logging.getLogger(__name__)

STAGE_NAME = "Environment Preparer"

SECRET_FILE_NAMES: Dict[str, str] = {
    "cf_api_token": "cf_api_token",
    "cf_origin_cert_pem": "cf_origin_cert.pem",
    "cf_origin_key_pem": "cf_origin_key.pem",
}


def locale_assignments(locale: str) -> Dict[str, str]:
    return {name: locale for name in static_config.LOCALE_VARIABLES}


def render_locale_profile(locale: str) -> str:
    """Content of the login-shell locale script."""
    return "".join(
        f"export {name}={value}\n"
        for name, value in locale_assignments(locale).items()
    )


def export_locale(app_settings: BootstrapSettings) -> None:
    """Sets the locale for this process and every child it starts."""
    for name, value in locale_assignments(app_settings.locale).items():
        os.environ[name] = value


def console_attached(app_settings: BootstrapSettings) -> bool:
    if app_settings.log_to_console is not None:
        return app_settings.log_to_console
    return sys.stdout.isatty()


def initialize_process(app_settings: BootstrapSettings) -> bool:
    """
    Exports the locale and opens the append-only log sink.

    Returns:
        True if the log file sink is active.
    """
    export_locale(app_settings)
    return setup_logging(
        log_level=logging.INFO,
        log_file=app_settings.log_file,
        log_to_console=console_attached(app_settings),
        log_prefix=app_settings.log_prefix,
        symbols=app_settings.symbols,
    )


def require_admin_privilege(
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Raises:
        BootstrapError: If the process does not run as root.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    if not has_admin_privilege():
        raise BootstrapError(
            "This bootstrap must be run as root.", stage=STAGE_NAME
        )
    log_step(
        f"{symbols.get('success', '✅')} Running with administrative privilege.",
        "success",
        logger_to_use,
        app_settings,
    )


def persist_locale(
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
    profile_path: Optional[Path] = None,
    environment_path: Optional[Path] = None,
) -> List[Path]:
    """
    Persists the locale system-wide. Both files are rewritten only when their
    content differs; existing locale lines in the environment file are
    replaced, never duplicated.

    Returns:
        The files that changed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    changed: List[Path] = []
    profile_path = profile_path or static_config.LOCALE_PROFILE_PATH
    environment_path = environment_path or static_config.ETC_ENVIRONMENT_PATH

    if command_exists("update-locale"):
        args = [
            f"{name}={value}"
            for name, value in locale_assignments(app_settings.locale).items()
        ]
        result = run_command(
            ["update-locale", *args],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=logger_to_use,
        )
        if result.returncode != 0:
            log_step(
                f"{symbols.get('warning', '!')} update-locale exited with {result.returncode}; continuing.",
                "warning",
                logger_to_use,
                app_settings,
            )

    if write_file_if_changed(
        profile_path,
        render_locale_profile(app_settings.locale),
        0o644,
        app_settings,
        current_logger=logger_to_use,
    ):
        changed.append(profile_path)

    if replace_or_insert_assignments(
        environment_path,
        locale_assignments(app_settings.locale),
        app_settings,
        current_logger=logger_to_use,
    ):
        changed.append(environment_path)

    return changed


def secret_files(app_settings: BootstrapSettings) -> List[Tuple[Path, str]]:
    """(path, content) pairs for every configured secret."""
    secrets = app_settings.secrets
    secrets_dir = Path(secrets.secrets_dir)
    files: List[Tuple[Path, str]] = []
    for field_name, file_name in SECRET_FILE_NAMES.items():
        value = getattr(secrets, field_name)
        if value:
            files.append((secrets_dir / file_name, _with_newline(value)))
    return files


def _with_newline(value: str) -> str:
    return value if value.endswith("\n") else value + "\n"


def write_secrets(
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> List[Path]:
    """
    Writes the token, PEM blobs and the repository SSH key to root-only
    files. Unchanged files are left alone.

    Returns:
        The files that changed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    changed: List[Path] = []

    files = secret_files(app_settings)
    if files:
        ensure_directory(
            Path(app_settings.secrets.secrets_dir),
            0o700,
            app_settings,
            current_logger=logger_to_use,
        )
    for path, content in files:
        if write_file_if_changed(
            path, content, 0o600, app_settings, current_logger=logger_to_use
        ):
            changed.append(path)

    ssh_key = app_settings.secrets.ansible_repo_ssh_key
    if ssh_key:
        ensure_directory(
            Path(app_settings.ssh_dir),
            0o700,
            app_settings,
            current_logger=logger_to_use,
        )
        if write_file_if_changed(
            app_settings.ssh_key_path,
            _with_newline(ssh_key),
            0o600,
            app_settings,
            current_logger=logger_to_use,
        ):
            changed.append(app_settings.ssh_key_path)
    return changed


def prepare_environment(
    app_settings: BootstrapSettings,
    context: Optional[Dict[str, Any]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Stage 1. Privilege is checked before anything is written."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    require_admin_privilege(app_settings, logger_to_use)
    persist_locale(app_settings, logger_to_use)
    written = write_secrets(app_settings, logger_to_use)
    log_step(
        f"{symbols.get('success', '✅')} Environment prepared "
        f"(locale {app_settings.locale}, {len(written)} secret file(s) updated).",
        "success",
        logger_to_use,
        app_settings,
    )

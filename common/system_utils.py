# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System-level utility functions for the bootstrap sequence.

This module wraps the service manager (systemd) and the privilege check.
"""

import logging
import os
from typing import Optional

from common.command_utils import get_symbols, log_step, run_command
from common.host_state import HostState
from bootstrap.config_models import BootstrapSettings

module_logger = logging.getLogger(__name__)


def has_admin_privilege() -> bool:
    """True when the process runs with an effective UID of 0."""
    return os.geteuid() == 0


def _systemctl_succeeds(
    args: list,
    app_settings: Optional[BootstrapSettings],
    current_logger: Optional[logging.Logger],
) -> bool:
    try:
        result = run_command(
            ["systemctl", *args],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=current_logger,
        )
    except FileNotFoundError:
        return False
    return result.returncode == 0


def is_service_enabled(
    service_name: str,
    app_settings: Optional[BootstrapSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    return _systemctl_succeeds(
        ["is-enabled", "--quiet", service_name], app_settings, current_logger
    )


def is_service_active(
    service_name: str,
    app_settings: Optional[BootstrapSettings],
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    return _systemctl_succeeds(
        ["is-active", "--quiet", service_name], app_settings, current_logger
    )


def query_service_state(
    service_name: str,
    app_settings: Optional[BootstrapSettings],
    current_logger: Optional[logging.Logger] = None,
) -> HostState:
    """
    Reports whether a systemd unit is enabled and running.

    Returns:
        HostState.PRESENT if the unit is both enabled and active,
        HostState.PARTIAL if only one of the two holds,
        HostState.ABSENT otherwise.
    """
    logger_to_use = current_logger if current_logger else module_logger
    enabled = is_service_enabled(service_name, app_settings, logger_to_use)
    active = is_service_active(service_name, app_settings, logger_to_use)
    if enabled and active:
        return HostState.PRESENT
    if enabled or active:
        return HostState.PARTIAL
    return HostState.ABSENT


def ensure_service_running(
    service_name: str,
    state: HostState,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Enables and starts a systemd unit unless `state` says it already is.

    Returns:
        True if systemctl was invoked, False if nothing had to change.

    Raises:
        subprocess.CalledProcessError: If `systemctl enable --now` fails.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    if state == HostState.PRESENT:
        log_step(
            f"{symbols.get('info', 'ℹ️')} Service '{service_name}' is already enabled and running.",
            "info",
            logger_to_use,
            app_settings,
        )
        return False

    log_step(
        f"{symbols.get('gear', '⚙️')} Enabling and starting service '{service_name}'...",
        "info",
        logger_to_use,
        app_settings,
    )
    run_command(
        ["systemctl", "enable", "--now", service_name],
        app_settings,
        current_logger=logger_to_use,
    )
    log_step(
        f"{symbols.get('success', '✅')} Service '{service_name}' enabled and started.",
        "success",
        logger_to_use,
        app_settings,
    )
    return True


def systemd_reload(
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Reload the systemd daemon. Failures are logged, not raised.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    log_step(
        f"{symbols.get('gear', '⚙️')} Reloading systemd daemon...",
        "info",
        logger_to_use,
        app_settings,
    )
    try:
        run_command(
            ["systemctl", "daemon-reload"],
            app_settings,
            current_logger=logger_to_use,
        )
        log_step(
            f"{symbols.get('success', '✅')} Systemd daemon reloaded.",
            "success",
            logger_to_use,
            app_settings,
        )
    except Exception as e:
        log_step(
            f"{symbols.get('error', '❌')} Failed to reload systemd: {e}",
            "error",
            logger_to_use,
            app_settings,
        )

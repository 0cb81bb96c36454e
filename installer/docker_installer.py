# installer/docker_installer.py
# -*- coding: utf-8 -*-
"""
Handles the installation of the container engine (Docker) for the primary
role.
"""

import logging
import subprocess
from typing import Optional

from bootstrap import config as static_config
from bootstrap.config_models import BootstrapSettings
from common.command_utils import command_exists, get_symbols, log_step
from common.debian.apt_manager import AptManager
from common.exceptions import BootstrapError
from common.host_state import HostState
from common.system_utils import ensure_service_running, query_service_state

module_logger = logging.getLogger(__name__)

STAGE_NAME = "Package Installer (container engine)"


def query_container_engine_state(
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> HostState:
    """
    Reports whether the container engine is installed and its service is
    enabled and running. The engine counts as detected when either its
    binary is on PATH or its systemd unit is enabled or active.

    Returns:
        HostState.PRESENT if the service is enabled and active,
        HostState.PARTIAL if the engine is detected but the service is not
        fully up, HostState.ABSENT if neither binary nor unit is found.
    """
    logger_to_use = current_logger if current_logger else module_logger
    service_state = query_service_state(
        static_config.CONTAINER_ENGINE_SERVICE, app_settings, logger_to_use
    )
    if service_state == HostState.PRESENT:
        return HostState.PRESENT
    if service_state == HostState.PARTIAL or command_exists(
        static_config.CONTAINER_ENGINE_COMMAND
    ):
        return HostState.PARTIAL
    return HostState.ABSENT


def ensure_container_engine(
    apt_manager: AptManager,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> HostState:
    """
    Installs the engine when absent and makes sure its service is enabled
    and started. Does nothing when the engine is already fully set up.

    Returns:
        The state observed before any action was taken.

    Raises:
        BootstrapError: If the package install or the service start fails.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    state = query_container_engine_state(app_settings, logger_to_use)
    if state == HostState.PRESENT:
        log_step(
            f"{symbols.get('info', 'ℹ️')} Container engine already installed and running. Skipping.",
            "info",
            logger_to_use,
            app_settings,
        )
        return state

    if state == HostState.ABSENT:
        log_step(
            f"{symbols.get('step', '➡️')} Installing container engine: {', '.join(static_config.CONTAINER_ENGINE_PACKAGES)}",
            "info",
            logger_to_use,
            app_settings,
        )
        if not apt_manager.install(
            static_config.CONTAINER_ENGINE_PACKAGES, app_settings
        ):
            raise BootstrapError(
                "Failed to install the container engine.", stage=STAGE_NAME
            )

    service_state = query_service_state(
        static_config.CONTAINER_ENGINE_SERVICE, app_settings, logger_to_use
    )
    try:
        ensure_service_running(
            static_config.CONTAINER_ENGINE_SERVICE,
            service_state,
            app_settings,
            logger_to_use,
        )
    except subprocess.CalledProcessError as e:
        raise BootstrapError(
            f"Failed to enable and start the '{static_config.CONTAINER_ENGINE_SERVICE}' service.",
            stage=STAGE_NAME,
            returncode=e.returncode,
            original_error=e,
        ) from e

    log_step(
        f"{symbols.get('success', '✅')} Container engine ready.",
        "success",
        logger_to_use,
        app_settings,
    )
    return state

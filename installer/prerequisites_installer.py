# installer/prerequisites_installer.py
# -*- coding: utf-8 -*-
"""
Package Installer stage: index refresh, base packages and the runtime the
deployment role needs.
"""

import logging
from typing import Any, Dict, List, Optional

from bootstrap import config as static_config
from bootstrap.config_models import BootstrapSettings
from common.command_utils import get_symbols, log_step
from common.debian.apt_manager import AptManager
from common.exceptions import BootstrapError
from deploy.roles import DeploymentRole
from installer.ansible_installer import ensure_task_runner
from installer.docker_installer import ensure_container_engine

module_logger = logging.getLogger(__name__)

STAGE_NAME = "Package Installer"


def required_base_packages(app_settings: BootstrapSettings) -> List[str]:
    """Base packages, plus partitioning tools when a disk is configured."""
    packages = list(static_config.BASE_PACKAGES)
    disks = app_settings.disks
    if disks.disk_device or disks.disk2_device:
        packages.extend(static_config.DISK_TOOL_PACKAGES)
    return packages


def refresh_package_index(
    apt_manager: AptManager,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Raises:
        BootstrapError: If the refresh fails twice.
    """
    logger_to_use = current_logger if current_logger else module_logger
    if not apt_manager.update(app_settings, retries=1):
        log_step(
            "Package index refresh failed after one retry.",
            "error",
            logger_to_use,
            app_settings,
        )
        raise BootstrapError(
            "Package index refresh failed after one retry.",
            stage=f"{STAGE_NAME} (index refresh)",
        )


def install_base_packages(
    apt_manager: AptManager,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Raises:
        BootstrapError: If apt-get install fails.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    packages = required_base_packages(app_settings)
    log_step(
        f"{symbols.get('package', '📦')} Ensuring base packages: {', '.join(packages)}",
        "info",
        logger_to_use,
        app_settings,
    )
    if not apt_manager.install(packages, app_settings):
        raise BootstrapError(
            f"Failed to install base packages: {', '.join(packages)}",
            stage=f"{STAGE_NAME} (base packages)",
        )


def install_packages(
    role: DeploymentRole,
    app_settings: BootstrapSettings,
    context: Optional[Dict[str, Any]] = None,
    apt_manager: Optional[AptManager] = None,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Stage 2."""
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    if apt_manager is None:
        apt_manager = AptManager(logger=logger_to_use)

    refresh_package_index(apt_manager, app_settings, logger_to_use)
    install_base_packages(apt_manager, app_settings, logger_to_use)

    if role == DeploymentRole.PRIMARY:
        ensure_container_engine(apt_manager, app_settings, logger_to_use)
    elif role == DeploymentRole.WEB:
        ensure_task_runner(apt_manager, app_settings, logger_to_use)
    else:
        log_step(
            f"{symbols.get('info', 'ℹ️')} No role runtime required for role '{role.value}'.",
            "info",
            logger_to_use,
            app_settings,
        )

    log_step(
        f"{symbols.get('success', '✅')} Required packages are in place.",
        "success",
        logger_to_use,
        app_settings,
    )

# installer/ansible_installer.py
# -*- coding: utf-8 -*-
"""
Handles the installation of the task runner (Ansible) and the collections
the web playbooks rely on.
"""

import logging
import re
import subprocess
from typing import Optional

from bootstrap import config as static_config
from bootstrap.config_models import BootstrapSettings
from common.command_utils import (
    command_exists,
    get_symbols,
    log_step,
    run_command,
)
from common.debian.apt_manager import AptManager
from common.exceptions import BootstrapError
from common.host_state import HostState

module_logger = logging.getLogger(__name__)

STAGE_NAME = "Package Installer (task runner)"


def query_task_runner_state() -> HostState:
    if command_exists(static_config.TASK_RUNNER_COMMAND):
        return HostState.PRESENT
    return HostState.ABSENT


def collection_listed(collection: str, listing: str) -> bool:
    """True if `ansible-galaxy collection list` output names the collection."""
    pattern = re.compile(rf"^{re.escape(collection)}\s+\S+", re.MULTILINE)
    return bool(pattern.search(listing))


def query_collection_state(
    collection: str,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> HostState:
    logger_to_use = current_logger if current_logger else module_logger
    try:
        result = run_command(
            ["ansible-galaxy", "collection", "list", collection],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=logger_to_use,
        )
    except FileNotFoundError:
        return HostState.ABSENT
    if result.returncode == 0 and collection_listed(
        collection, result.stdout or ""
    ):
        return HostState.PRESENT
    return HostState.ABSENT


def install_collection(
    collection: str,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Installs a collection with --force; older ansible-galaxy releases reject
    that flag, so a failure is retried once without it.

    Raises:
        BootstrapError: If both attempts fail.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    try:
        run_command(
            ["ansible-galaxy", "collection", "install", collection, "--force"],
            app_settings,
            current_logger=logger_to_use,
        )
        return
    except subprocess.CalledProcessError:
        log_step(
            f"{symbols.get('warning', '!')} Retrying collection install of '{collection}' without --force.",
            "warning",
            logger_to_use,
            app_settings,
        )
    try:
        run_command(
            ["ansible-galaxy", "collection", "install", collection],
            app_settings,
            current_logger=logger_to_use,
        )
    except subprocess.CalledProcessError as e:
        raise BootstrapError(
            f"Failed to install collection '{collection}'.",
            stage=STAGE_NAME,
            returncode=e.returncode,
            original_error=e,
        ) from e


def ensure_task_runner(
    apt_manager: AptManager,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> HostState:
    """
    Ensures ansible-playbook is on PATH and the required collections are
    installed.

    Returns:
        The task runner state observed before any action was taken.

    Raises:
        BootstrapError: If the package or a collection cannot be installed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    state = query_task_runner_state()
    if state == HostState.PRESENT:
        log_step(
            f"{symbols.get('info', 'ℹ️')} '{static_config.TASK_RUNNER_COMMAND}' found on PATH. Skipping install.",
            "info",
            logger_to_use,
            app_settings,
        )
    else:
        log_step(
            f"{symbols.get('step', '➡️')} Installing task runner: {', '.join(static_config.TASK_RUNNER_PACKAGES)}",
            "info",
            logger_to_use,
            app_settings,
        )
        if not apt_manager.install(
            static_config.TASK_RUNNER_PACKAGES, app_settings
        ):
            raise BootstrapError(
                "Failed to install the task runner.", stage=STAGE_NAME
            )

    for collection in static_config.TASK_RUNNER_COLLECTIONS:
        if (
            query_collection_state(collection, app_settings, logger_to_use)
            == HostState.PRESENT
        ):
            log_step(
                f"{symbols.get('info', 'ℹ️')} Collection '{collection}' already installed.",
                "info",
                logger_to_use,
                app_settings,
            )
            continue
        install_collection(collection, app_settings, logger_to_use)

    log_step(
        f"{symbols.get('success', '✅')} Task runner ready.",
        "success",
        logger_to_use,
        app_settings,
    )
    return state

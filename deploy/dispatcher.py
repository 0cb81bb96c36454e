# deploy/dispatcher.py
# -*- coding: utf-8 -*-
"""
Role Dispatcher: runs exactly one deployment strategy for the resolved role.

    UNDETERMINED -> {PRIMARY_DEPLOY, WEB_DEPLOY, UNKNOWN} -> DONE

The container engine or task runner the strategy needs has already been
ensured by the Package Installer stage.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from bootstrap.config_models import BootstrapSettings
from common.command_utils import get_symbols, log_step
from common.system_utils import is_service_active

from .container_deploy import deploy_container
from .playbook_runner import run_playbook
from .repo_checkout import prepare_checkout
from .roles import DeploymentRole

module_logger = logging.getLogger(__name__)


class DispatchState(str, Enum):
    UNDETERMINED = "Undetermined"
    PRIMARY_DEPLOY = "PrimaryDeploy"
    WEB_DEPLOY = "WebDeploy"
    UNKNOWN = "Unknown"
    DONE = "Done"


_ROLE_TRANSITIONS = {
    DeploymentRole.PRIMARY: DispatchState.PRIMARY_DEPLOY,
    DeploymentRole.WEB: DispatchState.WEB_DEPLOY,
    DeploymentRole.UNKNOWN: DispatchState.UNKNOWN,
}


def verify_web_service(
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> Optional[bool]:
    """
    Logs whether the application's service is active. Never fatal.

    Returns:
        None when no service name is configured, else the active state.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    service_name = app_settings.app.service_name
    if not service_name:
        return None
    active = is_service_active(service_name, app_settings, logger_to_use)
    if active:
        log_step(
            f"{symbols.get('success', '✅')} Service '{service_name}' is active.",
            "success",
            logger_to_use,
            app_settings,
        )
    else:
        log_step(
            f"{symbols.get('warning', '!')} Service '{service_name}' is not active after the playbook run.",
            "warning",
            logger_to_use,
            app_settings,
        )
    return active


def _transition(
    current: DispatchState,
    target: DispatchState,
    app_settings: BootstrapSettings,
    current_logger: logging.Logger,
) -> DispatchState:
    log_step(
        f"Role Dispatcher: {current.value} -> {target.value}",
        "info",
        current_logger,
        app_settings,
    )
    return target


def dispatch(
    role: DeploymentRole,
    app_settings: BootstrapSettings,
    context: Optional[Dict[str, Any]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> DispatchState:
    """
    Stage 5.

    Returns:
        The strategy state that ran before reaching DONE.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    state = _transition(
        DispatchState.UNDETERMINED,
        _ROLE_TRANSITIONS[role],
        app_settings,
        logger_to_use,
    )
    strategy = state

    if state == DispatchState.PRIMARY_DEPLOY:
        deploy_container(app_settings, context, logger_to_use)
    elif state == DispatchState.WEB_DEPLOY:
        prepare_checkout(app_settings, logger_to_use)
        run_playbook(app_settings, logger_to_use)
        verify_web_service(app_settings, logger_to_use)
    else:
        log_step(
            f"{symbols.get('warning', '!')} Unrecognized role for playbook "
            f"'{app_settings.ansible.playbook or '(unset)'}'"
            f"{'' if app_settings.ansible.repo_url else ' or no repository URL'}. "
            "Nothing to deploy.",
            "warning",
            logger_to_use,
            app_settings,
        )

    _transition(state, DispatchState.DONE, app_settings, logger_to_use)
    return strategy

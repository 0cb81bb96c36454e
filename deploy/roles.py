# deploy/roles.py
# -*- coding: utf-8 -*-
"""
Deployment role selection.
"""

import logging
from enum import Enum
from pathlib import PurePosixPath
from typing import Optional

from bootstrap.config import PRIMARY_PLAYBOOK_NAMES, WEB_PLAYBOOK_NAMES
from bootstrap.config_models import BootstrapSettings

module_logger = logging.getLogger(__name__)


class DeploymentRole(str, Enum):
    PRIMARY = "primary"
    WEB = "web"
    UNKNOWN = "unknown"


def resolve_role(playbook: str, repo_url: str) -> DeploymentRole:
    """
    Maps the configured playbook path onto a deployment role.

    Only the basename counts. The web role additionally needs a repository
    to check the playbook out from; without one it resolves to UNKNOWN.
    """
    basename = PurePosixPath(playbook.strip()).name if playbook else ""
    if basename in PRIMARY_PLAYBOOK_NAMES:
        return DeploymentRole.PRIMARY
    if basename in WEB_PLAYBOOK_NAMES and repo_url.strip():
        return DeploymentRole.WEB
    return DeploymentRole.UNKNOWN


def role_for_settings(
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> DeploymentRole:
    logger_to_use = current_logger if current_logger else module_logger
    role = resolve_role(
        app_settings.ansible.playbook, app_settings.ansible.repo_url
    )
    logger_to_use.info(
        f"Deployment role: {role.value} (playbook '{app_settings.ansible.playbook or '(unset)'}')"
    )
    return role

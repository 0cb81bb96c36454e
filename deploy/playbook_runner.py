# deploy/playbook_runner.py
# -*- coding: utf-8 -*-
"""
Invokes the task runner (ansible-playbook) against the local host.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from bootstrap import config as static_config
from bootstrap.config_models import BootstrapSettings
from common.command_utils import (
    build_command_env,
    get_symbols,
    log_step,
    run_command,
)
from common.exceptions import BootstrapError

from .playbook_files import (
    build_extra_variables,
    render_extra_variables,
    roles_path,
    write_inventory,
)

module_logger = logging.getLogger(__name__)

STAGE_NAME = "WebDeploy (task runner)"


def playbook_path(app_settings: BootstrapSettings) -> Path:
    path = Path(app_settings.ansible.playbook)
    if path.is_absolute():
        return path
    return Path(app_settings.ansible.repo_dir) / path


def runner_environment(app_settings: BootstrapSettings) -> Dict[str, str]:
    env = build_command_env(
        {
            "ANSIBLE_ROLES_PATH": roles_path(Path(app_settings.ansible.repo_dir)),
            "ANSIBLE_HOST_KEY_CHECKING": "False",
            "ANSIBLE_TIMEOUT": str(static_config.TASK_RUNNER_TIMEOUT_SECONDS),
            "ANSIBLE_FORCE_COLOR": "0",
            "GIT_SSH_COMMAND": static_config.GIT_SSH_COMMAND,
        }
    )
    env.setdefault("HOME", "/root")
    env.setdefault("USER", "root")
    return env


def build_runner_command(
    app_settings: BootstrapSettings,
    inventory_path: Path,
    extra_variables: Dict[str, str],
) -> List[str]:
    command = [static_config.TASK_RUNNER_COMMAND]
    verbosity = app_settings.ansible.verbosity
    if verbosity > 0:
        command.append("-" + "v" * verbosity)
    command += ["-i", str(inventory_path), str(playbook_path(app_settings))]
    if extra_variables:
        command += ["--extra-vars", render_extra_variables(extra_variables)]
    return command


def run_playbook(
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> int:
    """
    Runs the configured playbook with the local inventory. The runner's full
    output goes to the log.

    Returns:
        The runner's exit status (always 0; failures raise).

    Raises:
        BootstrapError: If the playbook is missing or the runner exits
            non-zero.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    playbook = playbook_path(app_settings)
    if not playbook.is_file():
        raise BootstrapError(
            f"Playbook {playbook} not found in the checkout.",
            stage="WebDeploy (playbook)",
        )

    inventory_path = write_inventory(
        Path(app_settings.ansible.inventory_path), app_settings, logger_to_use
    )
    extra_variables = build_extra_variables(app_settings)
    log_step(
        f"{symbols.get('info', 'ℹ️')} Extra variables: {', '.join(sorted(extra_variables)) or '(none)'}",
        "info",
        logger_to_use,
        app_settings,
    )

    command = build_runner_command(app_settings, inventory_path, extra_variables)
    log_step(
        f"{symbols.get('rocket', '🚀')} Running playbook {playbook}...",
        "info",
        logger_to_use,
        app_settings,
    )
    result = run_command(
        command,
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
        cwd=app_settings.ansible.repo_dir,
        env=runner_environment(app_settings),
    )
    if result.returncode != 0:
        raise BootstrapError(
            f"{static_config.TASK_RUNNER_COMMAND} exited with status {result.returncode}.",
            stage=STAGE_NAME,
            returncode=result.returncode,
        )

    log_step(
        f"{symbols.get('success', '✅')} Playbook completed successfully.",
        "success",
        logger_to_use,
        app_settings,
    )
    return result.returncode

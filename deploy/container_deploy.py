# deploy/container_deploy.py
# -*- coding: utf-8 -*-
"""
PrimaryDeploy: runs the application as a single named container.

At most one container with the configured name runs at a time. A running
container is left untouched unless replacement was requested explicitly.
"""

import logging
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from bootstrap import config as static_config
from bootstrap.config_models import BootstrapSettings
from common.command_utils import get_symbols, log_step, run_command
from common.exceptions import BootstrapError
from common.network_utils import derive_host_ipv4

module_logger = logging.getLogger(__name__)

STAGE_NAME = "PrimaryDeploy"
DOCKER = static_config.CONTAINER_ENGINE_COMMAND


class ContainerState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    ABSENT = "absent"


@dataclass(frozen=True)
class ContainerSpec:
    image: str
    name: str
    ports: List[Tuple[int, int]] = field(default_factory=list)
    environment: Dict[str, str] = field(default_factory=dict)
    volumes: List[Tuple[str, str]] = field(default_factory=list)
    restart_policy: str = "unless-stopped"

    def run_args(self) -> List[str]:
        """Arguments for `docker run`, excluding the executable."""
        args = [
            "run", "-d",
            "--name", self.name,
            "--restart", self.restart_policy,
        ]
        for host_port, container_port in self.ports:
            args += ["-p", f"{host_port}:{container_port}"]
        for key, value in self.environment.items():
            args += ["-e", f"{key}={value}"]
        for volume, mount in self.volumes:
            args += ["-v", f"{volume}:{mount}"]
        args.append(self.image)
        return args


def api_url(app_settings: BootstrapSettings, host_ipv4: Optional[str]) -> str:
    """
    The URL the UI uses to reach the API. An explicit api_base wins; without
    a host address the value stays empty.
    """
    if app_settings.api_base:
        return app_settings.api_base
    if not host_ipv4:
        return ""
    return f"http://{host_ipv4}:{app_settings.container.api_port}"


def build_container_spec(
    app_settings: BootstrapSettings, host_ipv4: Optional[str]
) -> ContainerSpec:
    container = app_settings.container
    return ContainerSpec(
        image=container.image,
        name=container.name,
        ports=[
            (container.api_port, container.api_port),
            (container.ui_port, container.ui_port),
        ],
        environment={container.api_url_env: api_url(app_settings, host_ipv4)},
        volumes=[
            (container.data_volume, container.data_mount),
            (container.db_volume, container.db_mount),
        ],
        restart_policy=container.restart_policy,
    )


def parse_container_status(output: str) -> ContainerState:
    return (
        ContainerState.RUNNING
        if output.strip().lower() == "running"
        else ContainerState.STOPPED
    )


def query_container_state(
    name: str,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> ContainerState:
    logger_to_use = current_logger if current_logger else module_logger
    result = run_command(
        [DOCKER, "inspect", "-f", "{{.State.Status}}", name],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    )
    if result.returncode != 0:
        return ContainerState.ABSENT
    return parse_container_status(result.stdout or "")


def report_container_status(
    name: str,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    run_command(
        [
            DOCKER, "ps", "-a",
            "--filter", f"name=^/{name}$",
            "--format", "{{.Names}}\t{{.Status}}\t{{.Ports}}",
        ],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    )


def _run_or_fail(
    args: List[str],
    step: str,
    app_settings: BootstrapSettings,
    current_logger: logging.Logger,
) -> None:
    try:
        run_command(
            [DOCKER, *args],
            app_settings,
            capture_output=True,
            current_logger=current_logger,
        )
    except subprocess.CalledProcessError as e:
        raise BootstrapError(
            f"'{DOCKER} {args[0]}' failed with exit status {e.returncode}.",
            stage=f"{STAGE_NAME} ({step})",
            returncode=e.returncode,
            original_error=e,
        ) from e


def deploy_container(
    app_settings: BootstrapSettings,
    context: Optional[Dict[str, Any]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> ContainerState:
    """
    Converges the application container.

    Returns:
        The container state observed before any action was taken.

    Raises:
        BootstrapError: If pulling the image or launching the container fails.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    container = app_settings.container

    state = query_container_state(container.name, app_settings, logger_to_use)
    if state == ContainerState.RUNNING and not container.replace:
        log_step(
            f"{symbols.get('info', 'ℹ️')} Container '{container.name}' is already running. Leaving it untouched.",
            "info",
            logger_to_use,
            app_settings,
        )
        report_container_status(container.name, app_settings, logger_to_use)
        return state

    if state != ContainerState.ABSENT:
        log_step(
            f"{symbols.get('step', '➡️')} Removing existing container '{container.name}' ({state.value})...",
            "info",
            logger_to_use,
            app_settings,
        )
        _run_or_fail(["rm", "-f", container.name], "cleanup", app_settings, logger_to_use)

    log_step(
        f"{symbols.get('package', '📦')} Pulling image {container.image}...",
        "info",
        logger_to_use,
        app_settings,
    )
    _run_or_fail(["pull", container.image], "image pull", app_settings, logger_to_use)

    host_ipv4 = derive_host_ipv4(app_settings, logger_to_use)
    spec = build_container_spec(app_settings, host_ipv4)
    api_url_value = spec.environment.get(container.api_url_env, "")
    if not api_url_value:
        log_step(
            f"{symbols.get('warning', '!')} {container.api_url_env} is empty; the UI may not reach the API.",
            "warning",
            logger_to_use,
            app_settings,
        )

    log_step(
        f"{symbols.get('rocket', '🚀')} Launching container '{spec.name}' ({container.api_url_env}={api_url_value or '(empty)'})...",
        "info",
        logger_to_use,
        app_settings,
    )
    _run_or_fail(spec.run_args(), "container launch", app_settings, logger_to_use)
    report_container_status(container.name, app_settings, logger_to_use)
    log_step(
        f"{symbols.get('success', '✅')} Container '{spec.name}' running on ports "
        f"{container.api_port} and {container.ui_port}.",
        "success",
        logger_to_use,
        app_settings,
    )
    return state

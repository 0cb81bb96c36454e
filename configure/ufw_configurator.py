# configure/ufw_configurator.py
# -*- coding: utf-8 -*-
"""
Handles configuration of UFW (Uncomplicated Firewall) rules and service activation.

Rules are declared first and the firewall is force-enabled only afterwards,
and only when the rate limit on the administrative port is in place. Rules
that UFW already knows are not declared again.
"""
import logging
import re
import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from bootstrap import config as static_config
from bootstrap.config_models import STREAMLIT_PORT_DEFAULT, BootstrapSettings
from common.command_utils import get_symbols, log_step, run_command
from common.exceptions import BootstrapError
from common.system_utils import ensure_service_running, query_service_state
from deploy.roles import DeploymentRole

module_logger = logging.getLogger(__name__)

STAGE_NAME = "Firewall Configurator"

_ADDED_RULE_RE = re.compile(
    r"^ufw\s+(allow|limit|deny|reject)\s+(\d+)(?:/(tcp|udp))?\s*$",
    re.MULTILINE,
)


class FirewallStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass(frozen=True)
class FirewallRule:
    port: int
    proto: str = "tcp"
    action: str = "allow"

    def ufw_args(self) -> List[str]:
        return [self.action, f"{self.port}/{self.proto}"]

    def __str__(self) -> str:
        return f"{self.action} {self.port}/{self.proto}"


def build_rule_set(
    app_settings: BootstrapSettings, role: DeploymentRole
) -> List[FirewallRule]:
    """
    The ordered rule set for a role: rate-limited admin port first, then
    HTTP/HTTPS, role ports and configured extras. Duplicates are dropped.
    """
    rules: List[FirewallRule] = [
        FirewallRule(app_settings.firewall.ssh_port, "tcp", "limit"),
        FirewallRule(80),
        FirewallRule(443),
    ]
    if role == DeploymentRole.PRIMARY:
        rules.append(FirewallRule(app_settings.container.api_port))
        rules.append(FirewallRule(app_settings.container.ui_port))
    elif role == DeploymentRole.WEB:
        rules.append(
            FirewallRule(
                app_settings.app.streamlit_port or STREAMLIT_PORT_DEFAULT
            )
        )
    for port in app_settings.firewall.extra_tcp_ports:
        rules.append(FirewallRule(port))

    ordered: List[FirewallRule] = []
    for rule in rules:
        if rule not in ordered:
            ordered.append(rule)
    return ordered


def parse_added_rules(output: str) -> Set[FirewallRule]:
    """Parses `ufw show added`. Rules without a protocol count as tcp."""
    declared: Set[FirewallRule] = set()
    for action, port, proto in _ADDED_RULE_RE.findall(output or ""):
        declared.add(FirewallRule(int(port), proto or "tcp", action))
    return declared


def query_declared_rules(
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> Set[FirewallRule]:
    logger_to_use = current_logger if current_logger else module_logger
    result = run_command(
        ["ufw", "show", "added"],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    )
    if result.returncode != 0:
        return set()
    return parse_added_rules(result.stdout)


def query_firewall_status(
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> FirewallStatus:
    logger_to_use = current_logger if current_logger else module_logger
    result = run_command(
        ["ufw", "status"],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    )
    for line in (result.stdout or "").splitlines():
        if line.strip().lower() == "status: active":
            return FirewallStatus.ACTIVE
    return FirewallStatus.INACTIVE


def declare_rules(
    rules: List[FirewallRule],
    declared: Set[FirewallRule],
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> List[FirewallRule]:
    """
    Declares every rule in `rules` that is not in `declared`.

    Returns:
        The rules that were added.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)
    added: List[FirewallRule] = []
    for rule in rules:
        if rule in declared:
            log_step(
                f"{symbols.get('info', 'ℹ️')} Rule '{rule}' already declared.",
                "debug",
                logger_to_use,
                app_settings,
            )
            continue
        log_step(
            f"{symbols.get('info', 'ℹ️')} Declaring UFW rule '{rule}'...",
            "info",
            logger_to_use,
            app_settings,
        )
        run_command(
            ["ufw", *rule.ufw_args()],
            app_settings,
            capture_output=True,
            current_logger=logger_to_use,
        )
        added.append(rule)
    return added


def enable_firewall(
    status: FirewallStatus,
    admin_rule: FirewallRule,
    declared: Set[FirewallRule],
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Force-enables UFW unless it already is active.

    Returns:
        True if `ufw --force enable` was run.

    Raises:
        BootstrapError: If no rules are declared or the admin rate limit is
            missing; enabling then would lock out remote administration.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    if not declared or admin_rule not in declared:
        raise BootstrapError(
            f"Refusing to enable UFW: rule '{admin_rule}' is not declared.",
            stage=STAGE_NAME,
        )
    if status == FirewallStatus.ACTIVE:
        log_step(
            f"{symbols.get('info', 'ℹ️')} UFW is already active.",
            "info",
            logger_to_use,
            app_settings,
        )
        return False

    run_command(
        ["ufw", "--force", "enable"],
        app_settings,
        capture_output=True,
        current_logger=logger_to_use,
    )
    log_step(
        f"{symbols.get('success', '✅')} UFW enabled.",
        "success",
        logger_to_use,
        app_settings,
    )
    return True


def configure_firewall(
    role: DeploymentRole,
    app_settings: BootstrapSettings,
    context: Optional[Dict[str, Any]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> List[FirewallRule]:
    """
    Stage 3.

    Returns:
        The rules added during this run; empty on a converged host.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    log_step(
        f"{symbols.get('step', '➡️')} Applying UFW rules for role '{role.value}'...",
        "info",
        logger_to_use,
        app_settings,
    )
    rules = build_rule_set(app_settings, role)
    try:
        declared = query_declared_rules(app_settings, logger_to_use)
        added = declare_rules(rules, declared, app_settings, logger_to_use)
        declared = query_declared_rules(app_settings, logger_to_use)
        status = query_firewall_status(app_settings, logger_to_use)
        enable_firewall(status, rules[0], declared, app_settings, logger_to_use)

        ensure_service_running(
            static_config.FIREWALL_SERVICE,
            query_service_state(
                static_config.FIREWALL_SERVICE, app_settings, logger_to_use
            ),
            app_settings,
            logger_to_use,
        )
    except subprocess.CalledProcessError as e:
        raise BootstrapError(
            f"A UFW command failed: {e.cmd}",
            stage=STAGE_NAME,
            returncode=e.returncode,
            original_error=e,
        ) from e

    run_command(
        ["ufw", "status", "verbose"],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    )
    log_step(
        f"{symbols.get('success', '✅')} Firewall configured ({len(added)} rule(s) added).",
        "success",
        logger_to_use,
        app_settings,
    )
    return added

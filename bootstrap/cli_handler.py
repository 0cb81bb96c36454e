# bootstrap/cli_handler.py
# -*- coding: utf-8 -*-
"""
Command-line interface helpers: argument parsing and the effective
configuration view.
"""

import argparse
import logging
from typing import List, Optional

from bootstrap import config as static_config
from bootstrap.config_models import BootstrapSettings
from common.command_utils import log_step

module_logger = logging.getLogger(__name__)

MASK = "****"


def mask(value: Optional[str]) -> str:
    """
    Masks a secret for display. Values longer than eight characters keep
    their first and last four characters.
    """
    if not value:
        return "(unset)"
    if len(value) <= 8:
        return MASK
    return f"{value[:4]}{MASK}{value[-4:]}"


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Converge a freshly booted VM into its configured deployment role.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Configuration precedence: defaults < environment variables "
            "< YAML file < command-line options."
        ),
    )
    parser.add_argument(
        "--config",
        default=str(static_config.DEFAULT_CONFIG_FILE),
        help="Path to the YAML configuration file. (default: %(default)s)",
    )
    parser.add_argument(
        "--view-config",
        action="store_true",
        help="Print the effective configuration and exit.",
    )
    parser.add_argument(
        "--replace-container",
        action="store_true",
        help="Replace a running application container instead of leaving it untouched.",
    )
    parser.add_argument(
        "--playbook",
        default=None,
        help="Playbook path inside the checkout. Its basename selects the deployment role.",
    )
    parser.add_argument(
        "--api-base",
        default=None,
        help="API base URL passed to the deployment.",
    )
    parser.add_argument(
        "--log-file", default=None, help="Append-only log file."
    )
    parser.add_argument(
        "--log-prefix", default=None, help="Prefix for every log line."
    )
    parser.add_argument(
        "--console",
        action="store_true",
        help="Mirror log output to the console even without a TTY.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {static_config.SCRIPT_VERSION}",
    )
    return parser


def format_configuration(app_config: BootstrapSettings) -> str:
    """Renders the effective configuration with secrets masked."""
    symbols = app_config.symbols
    lines: List[str] = [
        f"{symbols.get('info', 'ℹ️')} Effective configuration (CLI > YAML > ENV > Defaults):",
        "",
        f"  Script version:            {static_config.SCRIPT_VERSION}",
        f"  Log file:                  {app_config.log_file}",
        f"  Log prefix:                {app_config.log_prefix}",
        f"  Locale:                    {app_config.locale}",
        f"  API base:                  {app_config.api_base or '(derived on primary)'}",
        "",
        "  Task runner (ansible.*):",
        f"    Repository URL:          {app_config.ansible.repo_url or '(unset)'}",
        f"    Repository ref:          {app_config.ansible.repo_ref}",
        f"    Playbook:                {app_config.ansible.playbook or '(unset)'}",
        f"    Checkout directory:      {app_config.ansible.repo_dir}",
        f"    Inventory:               {app_config.ansible.inventory_path}",
        f"    Git host:                {app_config.git_host}",
        "",
        "  Application (app.*):",
        f"    Repository URL:          {app_config.app.repo_url or '(unset)'}",
        f"    Repository ref:          {app_config.app.repo_ref or '(unset)'}",
        f"    App directory:           {app_config.app.app_dir or '(unset)'}",
        f"    Port:                    {app_config.app.streamlit_port or '(unset)'}",
        f"    Service:                 {app_config.app.service_name or '(unset)'}",
        "",
        "  Container (container.*):",
        f"    Image:                   {app_config.container.image}",
        f"    Name:                    {app_config.container.name}",
        f"    Ports:                   {app_config.container.api_port}, {app_config.container.ui_port}",
        f"    Replace running:         {app_config.container.replace}",
        "",
        "  Firewall (firewall.*):",
        f"    Admin port (limited):    {app_config.firewall.ssh_port}",
        f"    Extra TCP ports:         {', '.join(map(str, app_config.firewall.extra_tcp_ports)) or '(none)'}",
        "",
        "  Disks (disks.*):",
        f"    Disk 1:                  {app_config.disks.disk_device or '(unset)'} -> {app_config.disks.mount_point or '(unset)'}",
        f"    Disk 2:                  {app_config.disks.disk2_device or '(unset)'} -> {app_config.disks.mount2_point or '(unset)'}",
        "",
        "  Secrets (secrets.*):",
        f"    API token:               {mask(app_config.secrets.cf_api_token)}",
        f"    Origin certificate:      {mask(app_config.secrets.cf_origin_cert_pem)}",
        f"    Origin key:              {mask(app_config.secrets.cf_origin_key_pem)}",
        f"    Repository SSH key:      {mask(app_config.secrets.ansible_repo_ssh_key)}",
        f"    Secrets directory:       {app_config.secrets.secrets_dir}",
    ]
    return "\n".join(lines)


def view_configuration(
    app_config: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Logs the effective configuration; secrets are masked."""
    logger_to_use = current_logger if current_logger else module_logger
    log_step(
        format_configuration(app_config), "info", logger_to_use, app_config
    )

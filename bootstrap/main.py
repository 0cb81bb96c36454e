# bootstrap/main.py
# -*- coding: utf-8 -*-
"""
Main entry point for the VM bootstrap.

Parses arguments, builds the settings record once, opens the log sink and
runs the five stages in order.
"""

import logging
import sys
from typing import List, Optional

from bootstrap import config as static_config
from bootstrap.cli_handler import build_arg_parser, view_configuration
from bootstrap.config_loader import ConfigurationError, load_bootstrap_settings
from bootstrap.config_models import LOG_PREFIX_DEFAULT
from bootstrap.environment import initialize_process, prepare_environment
from common.core_utils import replay_log_buffer, setup_logging, start_log_buffer
from common.orchestrator import FAILURE_MARKER, Orchestrator
from configure.disk_configurator import configure_disks
from configure.ufw_configurator import configure_firewall
from deploy.dispatcher import dispatch
from deploy.roles import role_for_settings
from installer.prerequisites_installer import install_packages

logger = logging.getLogger("bootstrap")

CONFIGURATION_STAGE = "Configuration"


def build_orchestrator(app_settings, role) -> Orchestrator:
    orchestrator = Orchestrator(app_settings, logger)
    orchestrator.add_task("Environment Preparer", prepare_environment)
    orchestrator.add_task("Package Installer", install_packages, args=[role])
    orchestrator.add_task("Firewall Configurator", configure_firewall, args=[role])
    orchestrator.add_task("Disk Layout", configure_disks)
    orchestrator.add_task("Role Dispatcher", dispatch, args=[role])
    return orchestrator


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    startup_buffer = start_log_buffer()
    try:
        app_settings = load_bootstrap_settings(args, args.config)
    except ConfigurationError as e:
        setup_logging(
            log_level=logging.INFO,
            log_file=e.log_file,
            log_to_console=sys.stdout.isatty(),
            log_prefix=LOG_PREFIX_DEFAULT,
        )
        replay_log_buffer(startup_buffer)
        logger.critical(
            f"{FAILURE_MARKER} at stage '{CONFIGURATION_STAGE}' (exit status 1): {e}"
        )
        raise

    if args.view_config:
        setup_logging(
            log_level=logging.INFO,
            log_file=None,
            log_to_console=True,
            log_prefix=app_settings.log_prefix,
            symbols=app_settings.symbols,
        )
        replay_log_buffer(startup_buffer)
        view_configuration(app_settings, logger)
        return 0

    initialize_process(app_settings)
    replay_log_buffer(startup_buffer)
    logger.info(
        f"VM bootstrap {static_config.SCRIPT_VERSION} starting."
    )
    view_configuration(app_settings, logger)

    role = role_for_settings(app_settings, logger)
    build_orchestrator(app_settings, role).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())

# common/network_utils.py
# -*- coding: utf-8 -*-
"""
Network-related utility functions.
"""
import ipaddress
import logging
import re
import subprocess
from typing import Optional

from bootstrap.config import ROUTE_PROBE_ADDRESS
from bootstrap.config_models import BootstrapSettings
from .command_utils import get_symbols, log_step, run_command

module_logger = logging.getLogger(__name__)

_ROUTE_SRC_RE = re.compile(r"\bsrc\s+(\S+)")


def _is_ipv4(candidate: str) -> bool:
    try:
        return isinstance(ipaddress.ip_address(candidate), ipaddress.IPv4Address)
    except ValueError:
        return False


def first_ipv4_from_hostname_output(output: str) -> Optional[str]:
    """Pick the first IPv4 address from `hostname -I` output."""
    for token in output.split():
        if _is_ipv4(token):
            return token
    return None


def ipv4_from_route_output(output: str) -> Optional[str]:
    """Extract the source address from `ip -4 route get <addr>` output."""
    match = _ROUTE_SRC_RE.search(output)
    if match and _is_ipv4(match.group(1)):
        return match.group(1)
    return None


def derive_host_ipv4(
    app_settings: Optional[BootstrapSettings],
    current_logger: Optional[logging.Logger] = None,
) -> Optional[str]:
    """
    Determine the host's routable IPv4 address.

    The local interface list (`hostname -I`) is asked first; when it yields
    nothing usable, the kernel's route to a well-known external address is
    looked up (`ip -4 route get`) and its source address used. No traffic is
    sent in either case.

    Returns:
        The address, or None if neither query produced one.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    try:
        result = run_command(
            ["hostname", "-I"],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=logger_to_use,
        )
        if result.returncode == 0 and result.stdout:
            address = first_ipv4_from_hostname_output(result.stdout)
            if address:
                return address
    except (FileNotFoundError, subprocess.SubprocessError) as e:
        log_step(
            f"{symbols.get('warning', '!')} Local interface query failed: {e}",
            "warning",
            logger_to_use,
            app_settings,
        )

    try:
        result = run_command(
            ["ip", "-4", "route", "get", ROUTE_PROBE_ADDRESS],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=logger_to_use,
        )
        if result.returncode == 0 and result.stdout:
            address = ipv4_from_route_output(result.stdout)
            if address:
                return address
    except (FileNotFoundError, subprocess.SubprocessError) as e:
        log_step(
            f"{symbols.get('warning', '!')} Route lookup failed: {e}",
            "warning",
            logger_to_use,
            app_settings,
        )

    log_step(
        f"{symbols.get('warning', '!')} Could not determine the host's IPv4 address.",
        "warning",
        logger_to_use,
        app_settings,
    )
    return None

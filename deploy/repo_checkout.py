# deploy/repo_checkout.py
# -*- coding: utf-8 -*-
"""
Repository checkout for the web role.

The local checkout is converged onto the configured ref: a valid checkout is
updated in place, anything else at the path is removed and cloned afresh.
All Git transport runs non-interactively with a bounded connect timeout.
"""

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
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
from common.file_utils import (
    append_line_if_missing,
    ensure_directory,
    remove_path,
)
from common.host_state import HostState

module_logger = logging.getLogger(__name__)

STAGE_NAME = "Repository Checkout"


class CheckoutState(str, Enum):
    VALID = "valid"
    STALE = "stale"
    ABSENT = "absent"


@dataclass(frozen=True)
class RepoCheckout:
    url: str
    ref: str
    local_path: Path

    @classmethod
    def from_settings(cls, app_settings: BootstrapSettings) -> "RepoCheckout":
        ansible = app_settings.ansible
        return cls(
            url=ansible.repo_url,
            ref=ansible.repo_ref or "main",
            local_path=Path(ansible.repo_dir),
        )


def git_environment() -> Dict[str, str]:
    return build_command_env(
        {
            "GIT_SSH_COMMAND": static_config.GIT_SSH_COMMAND,
            "GIT_TERMINAL_PROMPT": "0",
        }
    )


def uses_ssh_transport(url: str) -> bool:
    if url.startswith(("http://", "https://", "file://")):
        return False
    return url.startswith("ssh://") or ":" in url


def _git(
    checkout: RepoCheckout,
    args: List[str],
    app_settings: BootstrapSettings,
    current_logger: logging.Logger,
    check: bool = True,
) -> subprocess.CompletedProcess:
    return run_command(
        ["git", "-C", str(checkout.local_path), *args],
        app_settings,
        check=check,
        capture_output=True,
        current_logger=current_logger,
        env=git_environment(),
    )


def query_known_host(
    host: str,
    known_hosts_path: Path,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> HostState:
    """
    Looks the host up with `ssh-keygen -F`, which also matches hashed
    entries written by `ssh-keyscan -H`.
    """
    logger_to_use = current_logger if current_logger else module_logger
    if not known_hosts_path.is_file():
        return HostState.ABSENT
    result = run_command(
        ["ssh-keygen", "-F", host, "-f", str(known_hosts_path)],
        app_settings,
        check=False,
        capture_output=True,
        current_logger=logger_to_use,
    )
    return HostState.PRESENT if result.returncode == 0 else HostState.ABSENT


def ensure_known_host(
    host: str,
    state: HostState,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> bool:
    """
    Adds the Git host's keys to known_hosts when `state` is ABSENT. A failed
    scan is only a warning; the transport does not require a known key.

    Returns:
        True if known_hosts changed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    ensure_directory(
        Path(app_settings.ssh_dir), 0o700, app_settings, current_logger=logger_to_use
    )
    if state == HostState.PRESENT:
        log_step(
            f"{symbols.get('info', 'ℹ️')} Host key for {host} already known.",
            "info",
            logger_to_use,
            app_settings,
        )
        return False

    log_step(
        f"{symbols.get('step', '➡️')} Adding host key for {host}...",
        "info",
        logger_to_use,
        app_settings,
    )
    try:
        result = run_command(
            [
                "ssh-keyscan", "-H",
                "-T", str(static_config.TASK_RUNNER_TIMEOUT_SECONDS),
                host,
            ],
            app_settings,
            check=False,
            capture_output=True,
            current_logger=logger_to_use,
        )
    except FileNotFoundError:
        result = None
    keys = [
        line
        for line in ((result.stdout or "") if result else "").splitlines()
        if line.strip() and not line.startswith("#")
    ]
    if not keys:
        log_step(
            f"{symbols.get('warning', '!')} Could not scan host key for {host}.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return False

    changed = False
    for key_line in keys:
        changed |= append_line_if_missing(
            app_settings.known_hosts_path,
            key_line,
            0o600,
            app_settings,
            current_logger=logger_to_use,
        )
    return changed


def query_checkout_state(
    checkout: RepoCheckout,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> CheckoutState:
    """
    ABSENT if nothing is at the path; VALID if it is a Git work tree whose
    origin is the configured URL; STALE otherwise.
    """
    logger_to_use = current_logger if current_logger else module_logger
    path = checkout.local_path
    if not path.exists() and not path.is_symlink():
        return CheckoutState.ABSENT
    if not (path / ".git").exists():
        return CheckoutState.STALE
    inside = _git(
        checkout,
        ["rev-parse", "--is-inside-work-tree"],
        app_settings,
        logger_to_use,
        check=False,
    )
    if inside.returncode != 0 or (inside.stdout or "").strip() != "true":
        return CheckoutState.STALE
    origin = _git(
        checkout,
        ["remote", "get-url", "origin"],
        app_settings,
        logger_to_use,
        check=False,
    )
    if origin.returncode != 0 or (origin.stdout or "").strip() != checkout.url:
        return CheckoutState.STALE
    return CheckoutState.VALID


def _fail(step: str, error: subprocess.CalledProcessError) -> BootstrapError:
    return BootstrapError(
        f"git {step} failed with exit status {error.returncode}.",
        stage=f"{STAGE_NAME} ({step})",
        returncode=error.returncode,
        original_error=error,
    )


def clone(
    checkout: RepoCheckout,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    checkout.local_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        run_command(
            ["git", "clone", checkout.url, str(checkout.local_path)],
            app_settings,
            capture_output=True,
            current_logger=logger_to_use,
            env=git_environment(),
        )
    except subprocess.CalledProcessError as e:
        raise _fail("clone", e) from e
    try:
        _git(checkout, ["checkout", "--force", checkout.ref], app_settings, logger_to_use)
    except subprocess.CalledProcessError as e:
        raise _fail("checkout", e) from e


def update(
    checkout: RepoCheckout,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """Fetches, checks out the ref and hard-resets a branch to its remote."""
    logger_to_use = current_logger if current_logger else module_logger
    try:
        _git(checkout, ["fetch", "--prune", "--tags", "origin"], app_settings, logger_to_use)
    except subprocess.CalledProcessError as e:
        raise _fail("fetch", e) from e
    try:
        _git(checkout, ["checkout", "--force", checkout.ref], app_settings, logger_to_use)
    except subprocess.CalledProcessError as e:
        raise _fail("checkout", e) from e

    remote_branch = _git(
        checkout,
        ["rev-parse", "--verify", "--quiet", f"refs/remotes/origin/{checkout.ref}"],
        app_settings,
        logger_to_use,
        check=False,
    )
    if remote_branch.returncode == 0:
        try:
            _git(
                checkout,
                ["reset", "--hard", f"origin/{checkout.ref}"],
                app_settings,
                logger_to_use,
            )
        except subprocess.CalledProcessError as e:
            raise _fail("reset", e) from e


def converge_checkout(
    checkout: RepoCheckout,
    state: CheckoutState,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Raises:
        BootstrapError: If any Git step fails. The stage name names the step.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    if state == CheckoutState.VALID:
        log_step(
            f"{symbols.get('step', '➡️')} Updating checkout at {checkout.local_path} to '{checkout.ref}'...",
            "info",
            logger_to_use,
            app_settings,
        )
        update(checkout, app_settings, logger_to_use)
    else:
        if state == CheckoutState.STALE:
            log_step(
                f"{symbols.get('warning', '!')} {checkout.local_path} is not a valid checkout of {checkout.url}. Removing it.",
                "warning",
                logger_to_use,
                app_settings,
            )
            remove_path(checkout.local_path, app_settings, logger_to_use)
        log_step(
            f"{symbols.get('step', '➡️')} Cloning {checkout.url} into {checkout.local_path}...",
            "info",
            logger_to_use,
            app_settings,
        )
        clone(checkout, app_settings, logger_to_use)

    log_step(
        f"{symbols.get('success', '✅')} Checkout at {checkout.local_path} is at '{checkout.ref}'.",
        "success",
        logger_to_use,
        app_settings,
    )


def prepare_checkout(
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> CheckoutState:
    """
    Trusts the Git host and converges the playbook checkout.

    Returns:
        The checkout state observed before any action was taken.
    """
    logger_to_use = current_logger if current_logger else module_logger
    checkout = RepoCheckout.from_settings(app_settings)

    if uses_ssh_transport(checkout.url):
        host = app_settings.git_host
        ensure_known_host(
            host,
            query_known_host(
                host, app_settings.known_hosts_path, app_settings, logger_to_use
            ),
            app_settings,
            logger_to_use,
        )

    state = query_checkout_state(checkout, app_settings, logger_to_use)
    log_step(
        f"Checkout state of {checkout.local_path}: {state.value}",
        "info",
        logger_to_use,
        app_settings,
    )
    converge_checkout(checkout, state, app_settings, logger_to_use)
    return state

# common/debian/apt_manager.py
# -*- coding: utf-8 -*-
import logging
import subprocess
from typing import List, Optional, Union

from common.command_utils import (
    build_command_env,
    command_exists,
    run_command,
)
from bootstrap.config_models import BootstrapSettings

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


class AptManager:
    """
    A centralized manager for Debian apt packages using the command-line tools.
    All operations run non-interactively.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initializes the AptManager.
        Args:
            logger: An optional logging object.
        """
        self.logger = logger or logging.getLogger(__name__)
        self.index_refreshed = False
        if not command_exists("apt-get"):
            self.logger.critical(
                "'apt-get' command not found. This manager cannot function."
            )
            raise FileNotFoundError(
                "'apt-get' not found. Is this a Debian-based system?"
            )

    def update(
        self,
        app_settings: BootstrapSettings,
        raise_error: bool = False,
        retries: int = 1,
    ) -> bool:
        """
        Refreshes the package index using 'apt-get update'.

        A failed refresh (typically a stale or half-written index) is retried
        `retries` more times before giving up.

        Args:
            app_settings: The bootstrap settings.
            raise_error: Whether to raise the last exception on failure.
            retries: Number of additional attempts after the first failure.

        Returns:
            True if successful, False otherwise.
        """
        attempts = retries + 1
        for attempt in range(1, attempts + 1):
            self.logger.info(
                f"Updating apt package lists via 'apt-get update' (attempt {attempt}/{attempts})..."
            )
            try:
                run_command(
                    ["apt-get", "update", "-yq"],
                    app_settings,
                    current_logger=self.logger,
                    env=build_command_env(APT_ENV),
                )
                self.logger.info("Apt package lists updated successfully.")
                self.index_refreshed = True
                return True
            except (subprocess.CalledProcessError, FileNotFoundError) as e:
                self.logger.error(f"Failed to update apt cache: {e}")
                if attempt == attempts:
                    if raise_error:
                        raise
                    return False
                self.logger.warning("Retrying apt index refresh...")
        return False

    def is_installed(
        self, package_name: str, app_settings: BootstrapSettings
    ) -> bool:
        """True if dpkg reports the package as installed."""
        try:
            result = run_command(
                ["dpkg-query", "-W", "-f=${db:Status-Status}", package_name],
                app_settings,
                capture_output=True,
                check=True,
                current_logger=self.logger,
            )
        except subprocess.CalledProcessError:
            return False
        status = (result.stdout or "").strip()
        return status == "installed"

    def missing_packages(
        self, packages: List[str], app_settings: BootstrapSettings
    ) -> List[str]:
        """Returns the subset of `packages` that still needs installing."""
        missing = []
        for pkg_name in packages:
            if self.is_installed(pkg_name, app_settings):
                self.logger.info(
                    f"Package '{pkg_name}' is already installed. Skipping."
                )
            else:
                self.logger.info(
                    f"Marking package for installation: {pkg_name}"
                )
                missing.append(pkg_name)
        return missing

    def install(
        self,
        packages: Union[List[str], str],
        app_settings: BootstrapSettings,
        update_first: bool = True,
    ) -> bool:
        """
        Installs one or more packages using 'apt-get install'. Packages that
        are already installed count as success and are not reinstalled.

        Args:
            packages: A single package name or a list of package names.
            app_settings: The bootstrap settings.
            update_first: Refresh the index before installing, unless it was
                already refreshed by this manager.

        Returns:
            True if successful, False otherwise.
        """
        if not isinstance(packages, list):
            packages = [packages]

        packages_to_install = self.missing_packages(packages, app_settings)
        if not packages_to_install:
            self.logger.info("All requested packages are already installed.")
            return True

        if update_first and not self.index_refreshed:
            if not self.update(app_settings):
                return False

        self.logger.info(
            f"Committing installation for: {', '.join(packages_to_install)}"
        )
        try:
            cmd = ["apt-get", "install", "-yq"] + packages_to_install
            run_command(
                cmd,
                app_settings,
                current_logger=self.logger,
                env=build_command_env(APT_ENV),
            )
            self.logger.info("Packages installed successfully.")
            return True
        except (subprocess.CalledProcessError, FileNotFoundError) as e:
            self.logger.error(f"Failed to install packages: {e}")
            return False

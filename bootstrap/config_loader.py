# bootstrap/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the bootstrap run.

Handles loading settings from Pydantic model defaults, environment variables,
a YAML file, and command-line arguments, applying this order of precedence:
1. Pydantic Model Defaults
2. Environment Variables (read by BaseSettings)
3. YAML Configuration File
4. Command-Line Arguments
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError
from pydantic_settings import SettingsError

from bootstrap.config import DEFAULT_CONFIG_FILE

from .config_models import LOG_FILE_DEFAULT, BootstrapSettings, SecretSettings

module_logger = logging.getLogger(__name__)


class ConfigurationError(SystemExit):
    """
    The settings record could not be built. Ends the process with status 1
    when not handled.

    Attributes:
        log_file: The log sink the run asked for, so the failure can still be
            recorded there.
    """

    def __init__(self, message: str, log_file: str = LOG_FILE_DEFAULT):
        super().__init__(message)
        self.log_file = log_file


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively updates `source` with values from `overrides`. Nested
    dictionaries are merged key by key; None values in `overrides` never
    replace an existing value.

    Parameters:
        source: Dict[str, Any]
            The dictionary to be updated in place.
        overrides: Dict[str, Any]
            The values to apply.

    Returns:
        Dict[str, Any]: The updated `source`.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
        elif key not in source:
            source[key] = value
    return source


def _read_yaml_config(
    yaml_config_path: Path, logger_to_use: logging.Logger
) -> Dict[str, Any]:
    if not (yaml_config_path.exists() and yaml_config_path.is_file()):
        logger_to_use.info(
            f"Configuration file '{yaml_config_path}' not found. Using defaults, environment variables, and CLI args."
        )
        return {}
    try:
        with open(yaml_config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger_to_use.warning(
            f"Could not parse YAML config file '{yaml_config_path}': {e}. Using defaults and environment variables."
        )
        return {}
    except IOError as e:
        logger_to_use.warning(
            f"Could not read config file '{yaml_config_path}': {e}. Using defaults and environment variables."
        )
        return {}

    if yaml_data and isinstance(yaml_data, dict):
        logger_to_use.info(f"Loaded configuration from {yaml_config_path}")
        return yaml_data
    if yaml_data is not None:
        logger_to_use.warning(
            f"Config file '{yaml_config_path}' does not contain a valid YAML dictionary. Ignoring."
        )
    return {}


def _cli_overrides(cli_args: argparse.Namespace) -> Dict[str, Any]:
    """Maps parsed CLI options onto the settings structure."""
    cli_arg_dict = vars(cli_args)
    mapped: Dict[str, Any] = {}

    if cli_arg_dict.get("log_file"):
        mapped["log_file"] = str(cli_arg_dict["log_file"])
    if cli_arg_dict.get("log_prefix"):
        mapped["log_prefix"] = cli_arg_dict["log_prefix"]
    if cli_arg_dict.get("console"):
        mapped["log_to_console"] = True
    if cli_arg_dict.get("replace_container"):
        mapped["container"] = {"replace": True}
    if cli_arg_dict.get("playbook"):
        mapped.setdefault("ansible", {})["playbook"] = cli_arg_dict["playbook"]
    if cli_arg_dict.get("api_base"):
        mapped["api_base"] = cli_arg_dict["api_base"]
    return mapped


def _requested_log_file(values: Dict[str, Any]) -> str:
    """The log sink named in partially merged values, or the default."""
    log_file = values.get("log_file")
    if isinstance(log_file, (str, Path)) and str(log_file).strip():
        return str(log_file)
    return LOG_FILE_DEFAULT


def load_bootstrap_settings(
    cli_args: Optional[argparse.Namespace] = None,
    config_file_path: Union[str, Path, None] = None,
    current_logger: Optional[logging.Logger] = None,
) -> BootstrapSettings:
    """
    Builds the immutable settings record for this run.

    Args:
        cli_args: Parsed command-line arguments (from argparse).
        config_file_path: Path to the YAML configuration file. Defaults to
            DEFAULT_CONFIG_FILE; a missing file is not an error.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        The fully resolved BootstrapSettings.

    Raises:
        ConfigurationError: If the environment or the merged values do not
            validate.
    """
    logger_to_use = current_logger if current_logger else module_logger

    yaml_config_path = Path(config_file_path or DEFAULT_CONFIG_FILE)
    overrides = _read_yaml_config(yaml_config_path, logger_to_use)
    if cli_args:
        overrides = _deep_update(overrides, _cli_overrides(cli_args))

    # Model defaults < environment variables.
    try:
        base_settings = BootstrapSettings()
    except (ValidationError, SettingsError) as e:
        logger_to_use.error(f"Environment configuration is invalid: {e}")
        raise ConfigurationError(
            f"Configuration error: {e}", log_file=_requested_log_file(overrides)
        ) from e
    current_values_dict = base_settings.model_dump(exclude_defaults=False)
    # Secret fields are excluded from dumps; carry them over explicitly.
    current_values_dict["secrets"] = {
        name: getattr(base_settings.secrets, name)
        for name in SecretSettings.model_fields
    }

    current_values_dict = _deep_update(current_values_dict, overrides)

    try:
        final_settings = BootstrapSettings(**current_values_dict)
    except (ValidationError, SettingsError) as e:
        logger_to_use.error(f"Configuration validation failed: {e}")
        raise ConfigurationError(
            f"Configuration error: {e}",
            log_file=_requested_log_file(current_values_dict),
        ) from e

    logger_to_use.debug("Successfully loaded and validated bootstrap settings")
    return final_settings

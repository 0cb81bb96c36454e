# tests/conftest.py
import logging
from typing import Any, Dict
from unittest.mock import MagicMock

import pytest

from bootstrap.config_models import BootstrapSettings

from fakes import FakeHost


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


@pytest.fixture
def make_settings(tmp_path):
    """Factory for fully specified BootstrapSettings rooted in tmp_path."""

    def _make(**overrides: Any) -> BootstrapSettings:
        values: Dict[str, Any] = {
            "api_base": "",
            "log_file": str(tmp_path / "postinstall.log"),
            "log_prefix": "[TEST]",
            "log_to_console": False,
            "locale": "C.UTF-8",
            "ssh_dir": str(tmp_path / "ssh"),
            "ansible": {
                "repo_url": "",
                "repo_ref": "main",
                "playbook": "",
                "repo_dir": str(tmp_path / "ansible-src"),
                "inventory_path": str(tmp_path / "ansible.inventory.yml"),
                "verbosity": 4,
            },
            "app": {},
            "container": {},
            "firewall": {"ssh_port": 22, "extra_tcp_ports": []},
            "disks": {},
            "secrets": {"secrets_dir": str(tmp_path / "secrets")},
        }
        return BootstrapSettings(**_deep_merge(values, overrides))

    return _make


@pytest.fixture
def app_settings(make_settings):
    return make_settings()


@pytest.fixture
def mock_logger():
    """Fixture to create a mock logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def fake_host(mocker, tmp_path):
    """A FakeHost answering every command the bootstrap runs."""
    host = FakeHost(tmp_path)
    host.install(mocker)
    return host


@pytest.fixture
def restore_root_logging():
    """Keeps handlers installed by setup_logging from leaking between tests."""
    root_logger = logging.getLogger()
    saved_handlers = list(root_logger.handlers)
    saved_level = root_logger.level
    yield
    for handler in list(root_logger.handlers):
        if handler not in saved_handlers:
            handler.close()
        root_logger.removeHandler(handler)
    for handler in saved_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(saved_level)

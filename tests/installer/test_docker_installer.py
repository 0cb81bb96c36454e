import subprocess
from unittest.mock import MagicMock

import pytest

from common.exceptions import BootstrapError
from common.host_state import HostState
from installer.docker_installer import (
    ensure_container_engine,
    query_container_engine_state,
)


@pytest.fixture
def apt_manager():
    manager = MagicMock()
    manager.install.return_value = True
    return manager


def test_query_state_absent_without_binary_or_unit(mocker, app_settings):
    mocker.patch("installer.docker_installer.command_exists", return_value=False)
    mocker.patch(
        "installer.docker_installer.query_service_state",
        return_value=HostState.ABSENT,
    )

    assert query_container_engine_state(app_settings) == HostState.ABSENT


@pytest.mark.parametrize(
    "service_state,expected",
    [
        (HostState.PRESENT, HostState.PRESENT),
        (HostState.PARTIAL, HostState.PARTIAL),
    ],
)
def test_query_state_detects_unit_without_binary(
    mocker, app_settings, service_state, expected
):
    mocker.patch("installer.docker_installer.command_exists", return_value=False)
    mocker.patch(
        "installer.docker_installer.query_service_state",
        return_value=service_state,
    )

    assert query_container_engine_state(app_settings) == expected


def test_enabled_unit_without_binary_skips_install(fake_host, app_settings, apt_manager):
    fake_host.commands_on_path.discard("docker")
    fake_host.set_service("docker", enabled=True, active=True)

    assert ensure_container_engine(apt_manager, app_settings) == HostState.PRESENT
    apt_manager.install.assert_not_called()
    assert not fake_host.calls_starting_with("systemctl", "enable")


@pytest.mark.parametrize(
    "service_state,expected",
    [
        (HostState.PRESENT, HostState.PRESENT),
        (HostState.PARTIAL, HostState.PARTIAL),
        (HostState.ABSENT, HostState.PARTIAL),
    ],
)
def test_query_state_with_binary(mocker, app_settings, service_state, expected):
    mocker.patch("installer.docker_installer.command_exists", return_value=True)
    mocker.patch(
        "installer.docker_installer.query_service_state",
        return_value=service_state,
    )

    assert query_container_engine_state(app_settings) == expected


def test_ensure_skips_when_present(mocker, app_settings, apt_manager):
    mocker.patch(
        "installer.docker_installer.query_container_engine_state",
        return_value=HostState.PRESENT,
    )
    mock_ensure = mocker.patch("installer.docker_installer.ensure_service_running")

    assert ensure_container_engine(apt_manager, app_settings) == HostState.PRESENT
    apt_manager.install.assert_not_called()
    mock_ensure.assert_not_called()


def test_ensure_installs_when_absent(mocker, app_settings, apt_manager):
    mocker.patch(
        "installer.docker_installer.query_container_engine_state",
        return_value=HostState.ABSENT,
    )
    mocker.patch(
        "installer.docker_installer.query_service_state",
        return_value=HostState.ABSENT,
    )
    mock_ensure = mocker.patch("installer.docker_installer.ensure_service_running")

    ensure_container_engine(apt_manager, app_settings)

    apt_manager.install.assert_called_once_with(["docker.io"], app_settings)
    assert mock_ensure.call_args.args[:2] == ("docker", HostState.ABSENT)


def test_ensure_partial_only_starts_service(mocker, app_settings, apt_manager):
    mocker.patch(
        "installer.docker_installer.query_container_engine_state",
        return_value=HostState.PARTIAL,
    )
    mocker.patch(
        "installer.docker_installer.query_service_state",
        return_value=HostState.PARTIAL,
    )
    mock_ensure = mocker.patch("installer.docker_installer.ensure_service_running")

    ensure_container_engine(apt_manager, app_settings)

    apt_manager.install.assert_not_called()
    mock_ensure.assert_called_once()


def test_ensure_install_failure_is_fatal(mocker, app_settings, apt_manager):
    mocker.patch(
        "installer.docker_installer.query_container_engine_state",
        return_value=HostState.ABSENT,
    )
    apt_manager.install.return_value = False

    with pytest.raises(BootstrapError):
        ensure_container_engine(apt_manager, app_settings)


def test_ensure_service_failure_carries_status(mocker, app_settings, apt_manager):
    mocker.patch(
        "installer.docker_installer.query_container_engine_state",
        return_value=HostState.PARTIAL,
    )
    mocker.patch(
        "installer.docker_installer.query_service_state",
        return_value=HostState.ABSENT,
    )
    mocker.patch(
        "installer.docker_installer.ensure_service_running",
        side_effect=subprocess.CalledProcessError(5, ["systemctl"]),
    )

    with pytest.raises(BootstrapError) as exc_info:
        ensure_container_engine(apt_manager, app_settings)

    assert exc_info.value.returncode == 5

import subprocess
from unittest.mock import MagicMock

import pytest

from common.exceptions import BootstrapError
from common.host_state import HostState
from installer.ansible_installer import (
    collection_listed,
    ensure_task_runner,
    install_collection,
    query_collection_state,
)

LISTING = """
# /root/.ansible/collections/ansible_collections
Collection        Version
----------------- -------
community.general 9.2.0
"""


def _completed(returncode=0, stdout=""):
    return subprocess.CompletedProcess([], returncode, stdout=stdout, stderr="")


def test_collection_listed():
    assert collection_listed("community.general", LISTING) is True
    assert collection_listed("community.docker", LISTING) is False
    assert collection_listed("community.general", "") is False


def test_query_collection_state(mocker, app_settings):
    mocker.patch(
        "installer.ansible_installer.run_command",
        return_value=_completed(0, LISTING),
    )

    assert query_collection_state("community.general", app_settings) == HostState.PRESENT


def test_query_collection_state_without_galaxy(mocker, app_settings):
    mocker.patch(
        "installer.ansible_installer.run_command", side_effect=FileNotFoundError
    )

    assert query_collection_state("community.general", app_settings) == HostState.ABSENT


def test_install_collection_retries_without_force(mocker, app_settings):
    mock_run = mocker.patch(
        "installer.ansible_installer.run_command",
        side_effect=[subprocess.CalledProcessError(2, ["ansible-galaxy"]), None],
    )

    install_collection("community.general", app_settings)

    assert [c.args[0] for c in mock_run.call_args_list] == [
        ["ansible-galaxy", "collection", "install", "community.general", "--force"],
        ["ansible-galaxy", "collection", "install", "community.general"],
    ]


def test_install_collection_fails_after_retry(mocker, app_settings):
    mocker.patch(
        "installer.ansible_installer.run_command",
        side_effect=subprocess.CalledProcessError(1, ["ansible-galaxy"]),
    )

    with pytest.raises(BootstrapError) as exc_info:
        install_collection("community.general", app_settings)

    assert exc_info.value.returncode == 1


def test_ensure_task_runner_installs_missing(mocker, app_settings):
    apt_manager = MagicMock()
    apt_manager.install.return_value = True
    mocker.patch("installer.ansible_installer.command_exists", return_value=False)
    mocker.patch(
        "installer.ansible_installer.query_collection_state",
        return_value=HostState.ABSENT,
    )
    mock_install_collection = mocker.patch(
        "installer.ansible_installer.install_collection"
    )

    assert ensure_task_runner(apt_manager, app_settings) == HostState.ABSENT

    apt_manager.install.assert_called_once_with(["ansible"], app_settings)
    mock_install_collection.assert_called_once()


def test_ensure_task_runner_short_circuits(mocker, app_settings):
    apt_manager = MagicMock()
    mocker.patch("installer.ansible_installer.command_exists", return_value=True)
    mocker.patch(
        "installer.ansible_installer.query_collection_state",
        return_value=HostState.PRESENT,
    )
    mock_install_collection = mocker.patch(
        "installer.ansible_installer.install_collection"
    )

    assert ensure_task_runner(apt_manager, app_settings) == HostState.PRESENT

    apt_manager.install.assert_not_called()
    mock_install_collection.assert_not_called()

import pytest

from common.exceptions import BootstrapError
from deploy.container_deploy import (
    ContainerState,
    api_url,
    build_container_spec,
    deploy_container,
)


@pytest.fixture
def docker_host(fake_host):
    fake_host.commands_on_path.add("docker")
    return fake_host


def test_api_url(make_settings, app_settings):
    assert api_url(app_settings, "10.0.0.5") == "http://10.0.0.5:5055"
    assert api_url(app_settings, None) == ""
    explicit = make_settings(api_base="https://notebook.example.com/api")
    assert api_url(explicit, "10.0.0.5") == "https://notebook.example.com/api"


def test_container_run_args(app_settings):
    args = build_container_spec(app_settings, "10.0.0.5").run_args()

    assert args[:6] == ["run", "-d", "--name", "opennotebook", "--restart", "unless-stopped"]
    assert "5055:5055" in args and "8502:8502" in args
    assert "API_URL=http://10.0.0.5:5055" in args
    assert "opennotebook_data:/app/data" in args
    assert "opennotebook_surreal:/mydata" in args
    assert args[-1] == "lfnovo/open_notebook:v1-latest-single"


def test_first_deploy_pulls_and_launches(docker_host, app_settings):
    state = deploy_container(app_settings, {})

    assert state == ContainerState.ABSENT
    assert docker_host.containers == {"opennotebook": "running"}
    assert "lfnovo/open_notebook:v1-latest-single" in docker_host.images
    assert not docker_host.calls_starting_with("docker", "rm")
    run_call = docker_host.calls_starting_with("docker", "run")[0]
    assert "API_URL=http://10.0.0.5:5055" in run_call


def test_running_container_is_untouched(docker_host, app_settings):
    docker_host.containers["opennotebook"] = "running"

    assert deploy_container(app_settings, {}) == ContainerState.RUNNING

    for verb in ("rm", "pull", "run"):
        assert not docker_host.calls_starting_with("docker", verb)
    assert docker_host.calls_starting_with("docker", "ps")


def test_replace_flag_recreates_running_container(docker_host, make_settings):
    docker_host.containers["opennotebook"] = "running"
    settings = make_settings(container={"replace": True})

    deploy_container(settings, {})

    verbs = [call[1] for call in docker_host.calls if call[0] == "docker"]
    assert verbs.index("rm") < verbs.index("pull") < verbs.index("run")


def test_stopped_container_is_replaced(docker_host, app_settings):
    docker_host.containers["opennotebook"] = "exited"

    assert deploy_container(app_settings, {}) == ContainerState.STOPPED

    assert docker_host.calls_starting_with("docker", "rm", "-f", "opennotebook")
    assert docker_host.containers["opennotebook"] == "running"


def test_pull_failure_names_step_and_status(docker_host, app_settings):
    docker_host.pull_returncode = 1

    with pytest.raises(BootstrapError) as exc_info:
        deploy_container(app_settings, {})

    assert exc_info.value.stage == "PrimaryDeploy (image pull)"
    assert exc_info.value.returncode == 1
    assert not docker_host.calls_starting_with("docker", "run")


def test_launch_without_address_uses_empty_api_url(docker_host, app_settings):
    docker_host.host_ips = ""

    deploy_container(app_settings, {})

    run_call = docker_host.calls_starting_with("docker", "run")[0]
    assert "API_URL=" in run_call

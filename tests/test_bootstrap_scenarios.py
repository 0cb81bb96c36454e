"""
End-to-end runs of the bootstrap entry point against a FakeHost.
"""

import re

import pytest
import yaml

from bootstrap.main import main

WEB_REPO = "https://example.com/org/deploy.git"
WEB_FILES = {"ansible/site_web.yml": "- hosts: all\n"}


@pytest.fixture
def run_bootstrap(fake_host, tmp_path, monkeypatch, restore_root_logging):
    """Writes a config rooted in tmp_path and runs main() with it."""
    for name in ("LANG", "LC_ALL", "LANGUAGE"):
        monkeypatch.setenv(name, "C.UTF-8")
    log_file = tmp_path / "postinstall.log"

    def _run(ansible=None, **extra):
        config = {
            "log_file": str(log_file),
            "log_to_console": False,
            "ssh_dir": str(tmp_path / "ssh"),
            "ansible": {
                "repo_dir": str(tmp_path / "ansible-src"),
                "inventory_path": str(tmp_path / "ansible.inventory.yml"),
                **(ansible or {}),
            },
            "secrets": {"secrets_dir": str(tmp_path / "secrets")},
            **extra,
        }
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.safe_dump(config))
        return main(["--config", str(config_file)])

    _run.log_file = log_file
    return _run


def test_primary_first_run(fake_host, run_bootstrap):
    assert run_bootstrap({"playbook": "ansible/deploy/site.yml"}) == 0

    assert "docker.io" in fake_host.installed_packages
    assert "lfnovo/open_notebook:v1-latest-single" in fake_host.images
    assert fake_host.containers == {"opennotebook": "running"}
    run_call = fake_host.calls_starting_with("docker", "run")[0]
    assert "5055:5055" in run_call and "8502:8502" in run_call
    assert not fake_host.calls_starting_with("ansible-playbook")

    ufw_calls = [call[1:] for call in fake_host.calls_starting_with("ufw")]
    enable_index = ufw_calls.index(["--force", "enable"])
    rule_indexes = [
        i for i, call in enumerate(ufw_calls) if call and call[0] in ("allow", "limit")
    ]
    assert ufw_calls[rule_indexes[0]] == ["limit", "22/tcp"]
    assert max(rule_indexes) < enable_index

    log_text = run_bootstrap.log_file.read_text()
    assert "BOOTSTRAP COMPLETE: all 5 stages finished successfully." in log_text
    assert "Loaded configuration from" in log_text


def test_primary_rerun_changes_nothing(fake_host, run_bootstrap):
    run_bootstrap({"playbook": "ansible/deploy/site.yml"})
    rules = list(fake_host.ufw_rules)
    fake_host.calls.clear()

    assert run_bootstrap({"playbook": "ansible/deploy/site.yml"}) == 0

    assert not fake_host.calls_starting_with("apt-get", "install")
    assert not fake_host.calls_starting_with("ufw", "--force", "enable")
    assert not fake_host.calls_starting_with("systemctl", "enable")
    for verb in ("rm", "pull", "run"):
        assert not fake_host.calls_starting_with("docker", verb)
    assert fake_host.ufw_rules == rules
    assert run_bootstrap.log_file.read_text().count("BOOTSTRAP COMPLETE") == 2


def test_web_run_deploys_with_task_runner(fake_host, run_bootstrap):
    fake_host.add_remote_repo(WEB_REPO, WEB_FILES)

    exit_code = run_bootstrap(
        {"playbook": "ansible/site_web.yml", "repo_url": WEB_REPO},
        api_base="http://10.0.0.5:5055",
    )

    assert exit_code == 0
    assert "ansible" in fake_host.installed_packages
    assert "community.general" in fake_host.collections
    [playbook_call] = fake_host.calls_starting_with("ansible-playbook")
    assert '{"api_base": "http://10.0.0.5:5055"}' in playbook_call
    assert ["allow", "8501/tcp"] in [c[1:] for c in fake_host.calls_starting_with("ufw")]
    assert not fake_host.calls_starting_with("docker")


def test_web_rerun_updates_checkout_in_place(fake_host, run_bootstrap):
    fake_host.add_remote_repo(WEB_REPO, WEB_FILES)
    web = {"playbook": "ansible/site_web.yml", "repo_url": WEB_REPO}
    run_bootstrap(web)
    fake_host.calls.clear()

    assert run_bootstrap(web) == 0

    assert not fake_host.calls_starting_with("git", "clone")
    assert not fake_host.calls_starting_with("apt-get", "install")
    assert not fake_host.calls_starting_with("ansible-galaxy", "collection", "install")
    assert not fake_host.calls_starting_with("ufw", "allow")
    assert len(fake_host.calls_starting_with("ansible-playbook")) == 1


def test_web_run_with_unreachable_repository(fake_host, run_bootstrap):
    with pytest.raises(SystemExit) as exc_info:
        run_bootstrap({"playbook": "ansible/site_web.yml", "repo_url": WEB_REPO})

    assert exc_info.value.code == 128
    assert not fake_host.calls_starting_with("ansible-playbook")
    log_text = run_bootstrap.log_file.read_text()
    assert "BOOTSTRAP FAILED at stage 'Repository Checkout (clone)'" in log_text
    assert "BOOTSTRAP COMPLETE" not in log_text


def test_unknown_role_finishes_without_deploying(fake_host, run_bootstrap):
    assert run_bootstrap({"playbook": "ansible/other.yml"}) == 0

    assert not fake_host.calls_starting_with("docker")
    assert not fake_host.calls_starting_with("ansible-playbook")
    assert "Nothing to deploy" in run_bootstrap.log_file.read_text()


def test_missing_data_disk_is_skipped(fake_host, run_bootstrap, tmp_path):
    exit_code = run_bootstrap(
        {"playbook": "ansible/deploy/site.yml"},
        disks={"disk_device": str(tmp_path / "sdz"), "mount_point": str(tmp_path / "data")},
    )

    assert exit_code == 0
    for command in ("parted", "mkfs", "mount"):
        assert not fake_host.calls_starting_with(command)


def test_non_root_fails_before_any_change(fake_host, run_bootstrap):
    fake_host.is_root = False

    with pytest.raises(SystemExit) as exc_info:
        run_bootstrap({"playbook": "ansible/deploy/site.yml"})

    assert exc_info.value.code == 1
    assert not fake_host.calls_starting_with("apt-get")
    assert "BOOTSTRAP FAILED at stage 'Environment Preparer'" in (
        run_bootstrap.log_file.read_text()
    )


def test_index_refresh_is_retried_once(fake_host, run_bootstrap):
    fake_host.update_failures = 1

    assert run_bootstrap({"playbook": "ansible/deploy/site.yml"}) == 0
    assert len(fake_host.calls_starting_with("apt-get", "update")) == 2


def test_index_refresh_failing_twice_is_fatal(fake_host, run_bootstrap):
    fake_host.update_failures = 2

    with pytest.raises(SystemExit):
        run_bootstrap({"playbook": "ansible/deploy/site.yml"})

    assert not fake_host.calls_starting_with("apt-get", "install")
    assert "Package Installer (index refresh)" in run_bootstrap.log_file.read_text()


def test_invalid_configuration_is_logged_before_exit(fake_host, run_bootstrap):
    with pytest.raises(SystemExit) as exc_info:
        run_bootstrap(
            {"playbook": "ansible/deploy/site.yml"}, firewall={"ssh_port": "not-a-port"}
        )

    assert str(exc_info.value.code).startswith("Configuration error")
    assert not fake_host.calls
    log_text = run_bootstrap.log_file.read_text()
    assert re.search(
        r"^\[VM-BOOTSTRAP\] \d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} - ERROR - .*"
        r"Configuration validation failed",
        log_text,
        re.MULTILINE,
    )
    assert "BOOTSTRAP FAILED at stage 'Configuration' (exit status 1)" in log_text

import json
from pathlib import Path

import yaml

from deploy.playbook_files import (
    build_extra_variables,
    build_local_inventory,
    render_extra_variables,
    roles_path,
    write_inventory,
)


def test_local_inventory_targets_only_localhost():
    inventory = build_local_inventory()

    hosts = inventory["all"]["hosts"]
    assert list(hosts) == ["localhost"]
    assert hosts["localhost"]["ansible_connection"] == "local"
    assert hosts["localhost"]["ansible_host"] == "127.0.0.1"


def test_write_inventory(app_settings, tmp_path):
    path = write_inventory(tmp_path / "inventory.yml", app_settings)

    assert yaml.safe_load(path.read_text()) == build_local_inventory()
    assert path.stat().st_mode & 0o777 == 0o600


def test_extra_variables_omit_empty_values(make_settings):
    settings = make_settings(
        api_base="http://10.0.0.5:5055",
        app={"repo_url": "https://example.com/app.git", "streamlit_port": 8600},
    )

    extra_variables = build_extra_variables(settings)

    assert extra_variables == {
        "api_base": "http://10.0.0.5:5055",
        "ainotebook_repo_url": "https://example.com/app.git",
        "ainotebook_streamlit_port": "8600",
    }
    assert json.loads(render_extra_variables(extra_variables)) == extra_variables


def test_extra_variables_empty(app_settings):
    assert build_extra_variables(app_settings) == {}


def test_roles_path():
    assert roles_path(Path("/root/ansible-src")).split(":") == [
        "/root/ansible-src/ansible/roles",
        "/root/ansible-src/ansible/deploy/roles",
        "/etc/ansible/roles",
        "/usr/share/ansible/roles",
    ]

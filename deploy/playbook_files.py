# deploy/playbook_files.py
# -*- coding: utf-8 -*-
"""
Builders for the files and values handed to the task runner.

Inventory and extra variables are assembled as plain Python structures and
rendered to YAML/JSON only when written or passed on the command line.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from bootstrap import config as static_config
from bootstrap.config_models import BootstrapSettings
from common.file_utils import write_file_if_changed

module_logger = logging.getLogger(__name__)

SYSTEM_ROLES_PATHS: List[str] = ["/etc/ansible/roles", "/usr/share/ansible/roles"]


def build_local_inventory(
    python_interpreter: str = static_config.TASK_RUNNER_PYTHON,
) -> Dict[str, Any]:
    """An inventory whose only host is this machine over a local connection."""
    return {
        "all": {
            "hosts": {
                "localhost": {
                    "ansible_connection": "local",
                    "ansible_host": "127.0.0.1",
                    "ansible_python_interpreter": python_interpreter,
                }
            }
        }
    }


def render_inventory(inventory: Dict[str, Any]) -> str:
    return yaml.safe_dump(inventory, default_flow_style=False, sort_keys=False)


def write_inventory(
    inventory_path: Path,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> Path:
    write_file_if_changed(
        inventory_path,
        render_inventory(build_local_inventory()),
        0o600,
        app_settings,
        current_logger=current_logger or module_logger,
    )
    return inventory_path


def build_extra_variables(app_settings: BootstrapSettings) -> Dict[str, str]:
    """
    Variables for the web playbook. Keys whose value is empty are left out
    so the playbook's own defaults apply.
    """
    app = app_settings.app
    candidates = {
        "api_base": app_settings.api_base,
        "ainotebook_repo_url": app.repo_url,
        "ainotebook_repo_ref": app.repo_ref,
        "ainotebook_app_dir": app.app_dir,
        "ainotebook_streamlit_port": (
            str(app.streamlit_port) if app.streamlit_port else ""
        ),
        "ainotebook_service_name": app.service_name,
    }
    return {key: value for key, value in candidates.items() if value}


def render_extra_variables(extra_variables: Dict[str, str]) -> str:
    return json.dumps(extra_variables, sort_keys=True)


def roles_path(repo_dir: Path) -> str:
    """ANSIBLE_ROLES_PATH covering the checkout's role directories."""
    paths = [
        str(repo_dir / "ansible" / "roles"),
        str(repo_dir / "ansible" / "deploy" / "roles"),
        *SYSTEM_ROLES_PATHS,
    ]
    return ":".join(paths)

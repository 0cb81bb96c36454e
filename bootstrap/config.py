# bootstrap/config.py
"""
Static constants and default values for the VM bootstrap sequence.

Values here are not user-configurable; everything operators may change lives
in bootstrap/config_models.py and is loaded by bootstrap/config_loader.py.
"""

from pathlib import Path

# Represents the version of the bootstrap logic.
SCRIPT_VERSION: str = "2.1.0"

DEFAULT_CONFIG_FILE: Path = Path("/etc/vm-bootstrap/config.yaml")

# --- Locale persistence ---
LOCALE_VARIABLES: list[str] = ["LANG", "LC_ALL", "LANGUAGE"]
LOCALE_PROFILE_PATH: Path = Path("/etc/profile.d/locale.sh")
ETC_ENVIRONMENT_PATH: Path = Path("/etc/environment")

# --- Package Lists (for apt installation) ---
BASE_PACKAGES: list[str] = [
    "ufw",
    "python3",
    "python3-apt",
    "git",
    "ca-certificates",
    "curl",
]

# Only installed when at least one disk spec is configured.
DISK_TOOL_PACKAGES: list[str] = [
    "parted",
    "e2fsprogs",
]

TASK_RUNNER_PACKAGES: list[str] = [
    "ansible",
]
TASK_RUNNER_COMMAND: str = "ansible-playbook"
TASK_RUNNER_COLLECTIONS: list[str] = [
    "community.general",
]

CONTAINER_ENGINE_PACKAGES: list[str] = [
    "docker.io",
]
CONTAINER_ENGINE_COMMAND: str = "docker"
CONTAINER_ENGINE_SERVICE: str = "docker"

FIREWALL_SERVICE: str = "ufw"

# --- Role indicators (playbook basenames) ---
PRIMARY_PLAYBOOK_NAMES: frozenset[str] = frozenset({"site.yml", "site.yaml"})
WEB_PLAYBOOK_NAMES: frozenset[str] = frozenset(
    {"site_web.yml", "site_web.yaml"}
)

# --- Networking ---
# Address used only for a route lookup; no traffic is sent to it.
ROUTE_PROBE_ADDRESS: str = "1.1.1.1"
DEFAULT_GIT_HOST: str = "github.com"

GIT_SSH_COMMAND: str = (
    "ssh -o StrictHostKeyChecking=no -o BatchMode=yes -o ConnectTimeout=10"
)
TASK_RUNNER_TIMEOUT_SECONDS: int = 10

# Interpreter the task runner should use on the local target.
TASK_RUNNER_PYTHON: str = "/usr/bin/python3"

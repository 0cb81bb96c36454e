# bootstrap/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for the bootstrap configuration.

This module defines the structured settings for a bootstrap run, including
defaults, type annotations, and descriptions. Every model is frozen: the
settings record is built once at process start and handed to each stage.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    EnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from bootstrap.config import DEFAULT_GIT_HOST

# --- Default Static Values (can be overridden by config file/env/cli) ---
LOG_FILE_DEFAULT: str = "/root/postinstall.log"
LOG_PREFIX_DEFAULT: str = "[VM-BOOTSTRAP]"
LOCALE_DEFAULT: str = "C.UTF-8"

ANSIBLE_REPO_REF_DEFAULT: str = "main"
ANSIBLE_REPO_DIR_DEFAULT: str = "/root/ansible-src"
ANSIBLE_INVENTORY_PATH_DEFAULT: str = "/root/ansible.inventory.yml"

STREAMLIT_PORT_DEFAULT: int = 8501

CONTAINER_IMAGE_DEFAULT: str = "lfnovo/open_notebook:v1-latest-single"
CONTAINER_NAME_DEFAULT: str = "opennotebook"
CONTAINER_API_PORT_DEFAULT: int = 5055
CONTAINER_UI_PORT_DEFAULT: int = 8502

SSH_PORT_DEFAULT: int = 22

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
}


class AnsibleSettings(BaseSettings):
    """Configuration-management source and playbook selection."""

    model_config = SettingsConfigDict(
        env_prefix="ANSIBLE_", extra="ignore", frozen=True
    )

    repo_url: str = Field(
        default="", description="Repository holding the playbooks."
    )
    repo_ref: str = Field(
        default=ANSIBLE_REPO_REF_DEFAULT,
        description="Branch, tag or commit to check out.",
    )
    playbook: str = Field(
        default="",
        description="Playbook path relative to the checkout. Its basename selects the deployment role.",
    )
    repo_dir: str = Field(
        default=ANSIBLE_REPO_DIR_DEFAULT,
        description="Local path of the playbook checkout.",
    )
    inventory_path: str = Field(
        default=ANSIBLE_INVENTORY_PATH_DEFAULT,
        description="Where the local-only inventory is rendered.",
    )
    verbosity: int = Field(
        default=4,
        ge=0,
        le=4,
        description="Number of -v flags passed to ansible-playbook.",
    )


class AppRepoSettings(BaseSettings):
    """Application parameters consumed opaquely by the web playbook."""

    model_config = SettingsConfigDict(
        env_prefix="AINOTEBOOK_", extra="ignore", frozen=True
    )

    repo_url: str = Field(default="", description="Application repository URL.")
    repo_ref: str = Field(default="", description="Application repository ref.")
    app_dir: str = Field(default="", description="Application install directory.")
    streamlit_port: Optional[int] = Field(
        default=None,
        description="Application port. The firewall falls back to 8501 when unset.",
    )
    service_name: str = Field(default="", description="systemd unit of the application.")


class ContainerSettings(BaseSettings):
    """Direct container deployment for the primary role."""

    model_config = SettingsConfigDict(
        env_prefix="OPENNOTEBOOK_", extra="ignore", frozen=True
    )

    image: str = Field(default=CONTAINER_IMAGE_DEFAULT, description="Image reference to pull.")
    name: str = Field(default=CONTAINER_NAME_DEFAULT, description="Container name.")
    api_port: int = Field(default=CONTAINER_API_PORT_DEFAULT, description="API port (host and container).")
    ui_port: int = Field(default=CONTAINER_UI_PORT_DEFAULT, description="UI port (host and container).")
    data_volume: str = Field(default="opennotebook_data", description="Named volume for application data.")
    data_mount: str = Field(default="/app/data", description="Mount path of the data volume.")
    db_volume: str = Field(default="opennotebook_surreal", description="Named volume for the embedded database.")
    db_mount: str = Field(default="/mydata", description="Mount path of the database volume.")
    restart_policy: str = Field(default="unless-stopped", description="Docker restart policy.")
    api_url_env: str = Field(
        default="API_URL",
        description="Environment variable receiving the derived API URL.",
    )
    replace: bool = Field(
        default=False,
        description="Stop and remove a running container before deploying.",
    )


class FirewallSettings(BaseSettings):
    """UFW rule parameters."""

    model_config = SettingsConfigDict(
        env_prefix="FIREWALL_", extra="ignore", frozen=True
    )

    ssh_port: int = Field(default=SSH_PORT_DEFAULT, description="Administrative (rate-limited) port.")
    extra_tcp_ports: List[int] = Field(
        default_factory=list, description="Additional TCP ports to allow."
    )


class DiskSettings(BaseSettings):
    """Up to two (device, partition, mount point) triples."""

    model_config = SettingsConfigDict(
        env_prefix="DATA_", extra="ignore", frozen=True
    )

    disk_device: str = ""
    partition_device: str = ""
    mount_point: str = ""
    disk2_device: str = ""
    partition2_device: str = ""
    mount2_point: str = ""
    filesystem: str = Field(default="ext4", description="Filesystem created on new partitions.")


class SecretSettings(BaseSettings):
    """Secret material written to root-only files before the sequence."""

    model_config = SettingsConfigDict(extra="ignore", frozen=True)

    cf_api_token: str = Field(default="", exclude=True)
    cf_origin_cert_pem: str = Field(default="", exclude=True)
    cf_origin_key_pem: str = Field(default="", exclude=True)
    ansible_repo_ssh_key: str = Field(default="", exclude=True)
    secrets_dir: str = Field(
        default="/root/.secrets", description="Directory for token and PEM files."
    )


SECTION_FIELDS = frozenset(
    {"ansible", "app", "container", "firewall", "disks", "secrets", "symbols"}
)


class SectionlessEnvSettingsSource(EnvSettingsSource):
    """
    Environment source that only fills scalar top-level fields.

    Nested sections read their own prefixed variables (ANSIBLE_*, DATA_*, ...).
    Unprefixed names such as `container`, which container runtimes export to
    every process, are never parsed into a section.
    """

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        if field_name in SECTION_FIELDS:
            return None, field_name, False
        return super().get_field_value(field, field_name)


class BootstrapSettings(BaseSettings):
    """Main bootstrap settings."""

    model_config = SettingsConfigDict(extra="ignore", frozen=True)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            SectionlessEnvSettingsSource(settings_cls),
            dotenv_settings,
            file_secret_settings,
        )

    api_base: str = Field(
        default="",
        description="API base URL. Derived from the host address on the primary when empty.",
    )
    log_file: str = Field(default=LOG_FILE_DEFAULT, description="Append-only log sink.")
    log_prefix: str = Field(default=LOG_PREFIX_DEFAULT, description="Prefix for log lines.")
    log_to_console: Optional[bool] = Field(
        default=None,
        description="Mirror log output to stdout. None means only when a TTY is attached.",
    )
    locale: str = Field(default=LOCALE_DEFAULT, description="Locale exported and persisted.")
    ssh_dir: str = Field(default="/root/.ssh", description="SSH directory of the bootstrap user.")

    ansible: AnsibleSettings = Field(default_factory=AnsibleSettings)
    app: AppRepoSettings = Field(default_factory=AppRepoSettings)
    container: ContainerSettings = Field(default_factory=ContainerSettings)
    firewall: FirewallSettings = Field(default_factory=FirewallSettings)
    disks: DiskSettings = Field(default_factory=DiskSettings)
    secrets: SecretSettings = Field(default_factory=SecretSettings)

    symbols: Dict[str, str] = Field(default_factory=lambda: dict(SYMBOLS_DEFAULT))

    @field_validator("api_base", mode="before")
    @classmethod
    def _drop_template_placeholders(cls, value: Optional[str]) -> str:
        # Unrendered template values such as "<primary-ip>" count as unset.
        if value is None:
            return ""
        value = str(value).strip()
        if "<" in value or ">" in value:
            return ""
        return value

    @property
    def git_host(self) -> str:
        """Host name of the Git provider serving the playbook repository."""
        return git_host_from_url(self.ansible.repo_url)

    @property
    def ssh_key_path(self) -> Path:
        return Path(self.ssh_dir) / "id_rsa"

    @property
    def known_hosts_path(self) -> Path:
        return Path(self.ssh_dir) / "known_hosts"


def git_host_from_url(url: str) -> str:
    """
    Extract the host name from an scp-like (git@host:org/repo.git) or URL-style
    repository address. Falls back to the default provider.
    """
    if not url:
        return DEFAULT_GIT_HOST
    if "://" in url:
        host = urlparse(url).hostname
        return host or DEFAULT_GIT_HOST
    if ":" in url:
        user_host = url.split(":", 1)[0]
        return user_host.rsplit("@", 1)[-1] or DEFAULT_GIT_HOST
    return DEFAULT_GIT_HOST

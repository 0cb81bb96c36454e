# configure/disk_configurator.py
# -*- coding: utf-8 -*-
"""
Handles partitioning, formatting and mounting of attached data disks.

Each configured disk is queried first and the resulting state decides which
steps still have to run. A disk whose block device does not exist is
skipped without running any partition, format or mount command.
"""
import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from bootstrap.config_models import BootstrapSettings
from common.command_utils import get_symbols, log_step, run_command
from common.exceptions import BootstrapError
from common.file_utils import append_line_if_missing, ensure_directory
from common.system_utils import systemd_reload

module_logger = logging.getLogger(__name__)

STAGE_NAME = "Disk Layout"
FSTAB_PATH = Path("/etc/fstab")
FSTAB_OPTIONS = "defaults,nofail"
UDEV_LINK_PREFIX = "/dev/disk/by-"


class DiskState(str, Enum):
    DEVICE_MISSING = "device_missing"
    UNPARTITIONED = "unpartitioned"
    UNFORMATTED = "unformatted"
    UNMOUNTED = "unmounted"
    MOUNTED = "mounted"


@dataclass(frozen=True)
class DiskSpec:
    block_device: str
    partition_device: str
    mount_point: str
    filesystem: str = "ext4"


def default_partition_device(block_device: str) -> str:
    """
    First partition of a disk: /dev/sdb -> /dev/sdb1, /dev/nvme1n1 -> /dev/nvme1n1p1,
    /dev/disk/by-id/scsi-0HC_Volume_1 -> /dev/disk/by-id/scsi-0HC_Volume_1-part1.
    """
    if block_device.startswith(UDEV_LINK_PREFIX):
        return f"{block_device}-part1"
    if block_device and block_device[-1].isdigit():
        return f"{block_device}p1"
    return f"{block_device}1"


def disk_specs(app_settings: BootstrapSettings) -> List[DiskSpec]:
    """The zero, one or two disk specs present in the settings."""
    disks = app_settings.disks
    triples = [
        (disks.disk_device, disks.partition_device, disks.mount_point),
        (disks.disk2_device, disks.partition2_device, disks.mount2_point),
    ]
    specs: List[DiskSpec] = []
    for block_device, partition_device, mount_point in triples:
        if not block_device or not mount_point:
            continue
        specs.append(
            DiskSpec(
                block_device=block_device,
                partition_device=partition_device
                or default_partition_device(block_device),
                mount_point=mount_point,
                filesystem=disks.filesystem,
            )
        )
    return specs


def _probe(
    command: List[str],
    app_settings: BootstrapSettings,
    current_logger: logging.Logger,
) -> subprocess.CompletedProcess:
    return run_command(
        command,
        app_settings,
        check=False,
        capture_output=True,
        current_logger=current_logger,
    )


def device_signatures(
    block_device: str,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> Dict[str, str]:
    """
    Partition-table and filesystem signatures written directly on a block
    device, e.g. {"PTTYPE": "gpt"}. Empty for a blank disk.

    Raises:
        BootstrapError: If blkid cannot give a definite answer.
    """
    logger_to_use = current_logger if current_logger else module_logger
    result = _probe(
        ["blkid", "-p", "-o", "export", block_device], app_settings, logger_to_use
    )
    # blkid exits 2 when it finds no signature at all.
    if result.returncode == 2:
        return {}
    if result.returncode != 0:
        raise BootstrapError(
            f"Could not probe {block_device} for existing signatures (blkid exit status {result.returncode}).",
            stage=STAGE_NAME,
            returncode=result.returncode,
        )
    signatures: Dict[str, str] = {}
    for line in (result.stdout or "").splitlines():
        key, _, value = line.partition("=")
        if key in ("PTTYPE", "TYPE") and value:
            signatures[key] = value
    return signatures


def query_disk_state(
    spec: DiskSpec,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> DiskState:
    """
    Raises:
        BootstrapError: If the configured partition is absent but the disk
            already carries a partition table or filesystem. Such a disk is
            never relabelled.
    """
    logger_to_use = current_logger if current_logger else module_logger
    if not Path(spec.block_device).exists():
        return DiskState.DEVICE_MISSING
    if not Path(spec.partition_device).exists():
        signatures = device_signatures(spec.block_device, app_settings, logger_to_use)
        if signatures:
            found = ", ".join(f"{key}={value}" for key, value in sorted(signatures.items()))
            raise BootstrapError(
                f"{spec.block_device} already holds data ({found}) but partition "
                f"{spec.partition_device} does not exist. Refusing to relabel it; "
                "set the partition device explicitly.",
                stage=STAGE_NAME,
            )
        return DiskState.UNPARTITIONED
    fs_type = _probe(
        ["blkid", "-s", "TYPE", "-o", "value", spec.partition_device],
        app_settings,
        logger_to_use,
    )
    if fs_type.returncode != 0 or not (fs_type.stdout or "").strip():
        return DiskState.UNFORMATTED
    mounted = _probe(
        ["findmnt", "-rn", "-S", spec.partition_device, "-M", spec.mount_point],
        app_settings,
        logger_to_use,
    )
    if mounted.returncode == 0:
        return DiskState.MOUNTED
    return DiskState.UNMOUNTED


def partition_uuid(
    spec: DiskSpec,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    logger_to_use = current_logger if current_logger else module_logger
    result = run_command(
        ["blkid", "-s", "UUID", "-o", "value", spec.partition_device],
        app_settings,
        capture_output=True,
        current_logger=logger_to_use,
    )
    return (result.stdout or "").strip()


def fstab_has_mount_point(fstab_content: str, mount_point: str) -> bool:
    for line in fstab_content.splitlines():
        fields = line.split()
        if not fields or fields[0].startswith("#"):
            continue
        if len(fields) > 1 and fields[1] == mount_point:
            return True
    return False


def fstab_entry(uuid: str, spec: DiskSpec) -> str:
    return f"UUID={uuid} {spec.mount_point} {spec.filesystem} {FSTAB_OPTIONS} 0 2"


def ensure_fstab_entry(
    spec: DiskSpec,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
    fstab_path: Optional[Path] = None,
) -> bool:
    """
    Adds a UUID-based entry for the mount point unless one exists.

    Returns:
        True if /etc/fstab changed.
    """
    logger_to_use = current_logger if current_logger else module_logger
    fstab_path = fstab_path or FSTAB_PATH
    existing = fstab_path.read_text(encoding="utf-8") if fstab_path.is_file() else ""
    if fstab_has_mount_point(existing, spec.mount_point):
        return False
    uuid = partition_uuid(spec, app_settings, logger_to_use)
    if not uuid:
        raise BootstrapError(
            f"No filesystem UUID found on {spec.partition_device}.",
            stage=STAGE_NAME,
        )
    changed = append_line_if_missing(
        fstab_path,
        fstab_entry(uuid, spec),
        0o644,
        app_settings,
        current_logger=logger_to_use,
    )
    if changed:
        systemd_reload(app_settings, logger_to_use)
    return changed


def apply_disk_spec(
    spec: DiskSpec,
    state: DiskState,
    app_settings: BootstrapSettings,
    current_logger: Optional[logging.Logger] = None,
    fstab_path: Optional[Path] = None,
) -> None:
    """
    Runs the steps that `state` says are still missing, in order:
    partition, format, fstab entry, mount.

    Raises:
        subprocess.CalledProcessError: If a disk command fails.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    if state == DiskState.DEVICE_MISSING:
        log_step(
            f"{symbols.get('warning', '!')} Block device {spec.block_device} not found. Skipping {spec.mount_point}.",
            "warning",
            logger_to_use,
            app_settings,
        )
        return

    if state == DiskState.UNPARTITIONED:
        log_step(
            f"{symbols.get('step', '➡️')} Creating GPT partition table on {spec.block_device}...",
            "info",
            logger_to_use,
            app_settings,
        )
        run_command(
            ["parted", "-s", spec.block_device, "mklabel", "gpt"],
            app_settings,
            current_logger=logger_to_use,
        )
        run_command(
            [
                "parted", "-s", "-a", "optimal", spec.block_device,
                "mkpart", "primary", spec.filesystem, "0%", "100%",
            ],
            app_settings,
            current_logger=logger_to_use,
        )
        run_command(
            ["udevadm", "settle"],
            app_settings,
            check=False,
            current_logger=logger_to_use,
        )

    if state in (DiskState.UNPARTITIONED, DiskState.UNFORMATTED):
        log_step(
            f"{symbols.get('step', '➡️')} Creating {spec.filesystem} filesystem on {spec.partition_device}...",
            "info",
            logger_to_use,
            app_settings,
        )
        run_command(
            ["mkfs", "-t", spec.filesystem, spec.partition_device],
            app_settings,
            capture_output=True,
            current_logger=logger_to_use,
        )

    if state != DiskState.MOUNTED:
        ensure_directory(
            Path(spec.mount_point), 0o755, app_settings, current_logger=logger_to_use
        )
    ensure_fstab_entry(spec, app_settings, logger_to_use, fstab_path)

    if state == DiskState.MOUNTED:
        log_step(
            f"{symbols.get('info', 'ℹ️')} {spec.partition_device} is already mounted at {spec.mount_point}.",
            "info",
            logger_to_use,
            app_settings,
        )
        return

    run_command(
        ["mount", spec.mount_point], app_settings, current_logger=logger_to_use
    )
    log_step(
        f"{symbols.get('success', '✅')} Mounted {spec.partition_device} at {spec.mount_point}.",
        "success",
        logger_to_use,
        app_settings,
    )


def configure_disks(
    app_settings: BootstrapSettings,
    context: Optional[Dict[str, Any]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> Dict[str, DiskState]:
    """
    Stage 4.

    Returns:
        Mount point -> state observed before any action was taken.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = get_symbols(app_settings)

    specs = disk_specs(app_settings)
    if not specs:
        log_step(
            f"{symbols.get('info', 'ℹ️')} No data disks configured.",
            "info",
            logger_to_use,
            app_settings,
        )
        return {}

    observed: Dict[str, DiskState] = {}
    for spec in specs:
        state = query_disk_state(spec, app_settings, logger_to_use)
        observed[spec.mount_point] = state
        log_step(
            f"{symbols.get('info', 'ℹ️')} {spec.block_device} -> {spec.mount_point}: {state.value}",
            "info",
            logger_to_use,
            app_settings,
        )
        try:
            apply_disk_spec(spec, state, app_settings, logger_to_use)
        except subprocess.CalledProcessError as e:
            raise BootstrapError(
                f"Disk command failed for {spec.block_device}: {e.cmd}",
                stage=STAGE_NAME,
                returncode=e.returncode,
                original_error=e,
            ) from e
    return observed

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .block import partition_path, unmount_partitions, wait_for_partitions
from .command import run_cmd
from .crypt import luks_close, luks_format, luks_open, luks_resize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartitionPlan:
    disk: str
    encrypt: bool = False
    luks_mapper: str = "glitch_luks"
    esp_start_mib: int = 1
    esp_end_mib: int = 101
    root_start_mib: Optional[int] = None
    esp_label: str = "EFI-DEB"
    root_label: str = "gLiTcH-Linux"
    wait_s: int = 10


@dataclass(frozen=True)
class PartitionResult:
    esp_part: str
    root_part: str
    # what gets mounted at /: the mapper when encrypted, else root_part
    root_device: str


def partition_and_format(
    *,
    plan: PartitionPlan,
    passphrase: Optional[str] = None,
    dry_run: bool = False,
) -> PartitionResult:
    """Create a GPT layout of ESP + root and put filesystems on it.

    Layout:
    - ESP (FAT32, esp flag) from esp_start_mib to esp_end_mib
    - root (ext4, optionally inside LUKS1) from root_start_mib to the end of the disk
    """

    disk = plan.disk
    root_start = plan.root_start_mib if plan.root_start_mib is not None else plan.esp_end_mib
    if not (0 < plan.esp_start_mib < plan.esp_end_mib <= root_start):
        raise RuntimeError(
            f"Invalid partition layout: esp {plan.esp_start_mib}-{plan.esp_end_mib}MiB, root from {root_start}MiB"
        )
    if plan.encrypt and not passphrase and not dry_run:
        raise RuntimeError("Encryption requested but no passphrase was provided")

    logger.info("Partitioning disk=%s encrypt=%s", disk, plan.encrypt)

    unmount_partitions(disk, dry_run=dry_run)
    run_cmd(["wipefs", "-a", disk], dry_run=dry_run)
    run_cmd(["parted", "-s", disk, "mklabel", "gpt"], dry_run=dry_run)
    run_cmd(
        ["parted", "-s", disk, "mkpart", plan.esp_label, "fat32", f"{plan.esp_start_mib}MiB", f"{plan.esp_end_mib}MiB"],
        dry_run=dry_run,
    )
    run_cmd(["parted", "-s", disk, "set", "1", "esp", "on"], dry_run=dry_run)
    run_cmd(
        ["parted", "-s", disk, "mkpart", plan.root_label, "ext4", f"{root_start}MiB", "100%"],
        dry_run=dry_run,
    )

    # Inform kernel
    run_cmd(["sync"], dry_run=dry_run)
    run_cmd(["partprobe", disk], check=False, dry_run=dry_run)

    esp_part = partition_path(disk, 1)
    root_part = partition_path(disk, 2)
    wait_for_partitions([esp_part, root_part], timeout_s=plan.wait_s, dry_run=dry_run)

    run_cmd(["mkfs.vfat", "-F", "32", "-n", plan.esp_label[:11], esp_part], dry_run=dry_run)

    root_device = root_part
    if plan.encrypt:
        luks_format(root_part, passphrase or "", dry_run=dry_run)
        root_device = luks_open(root_part, plan.luks_mapper, passphrase or "", dry_run=dry_run)
    run_cmd(["mkfs.ext4", "-F", "-L", plan.root_label[:16], root_device], dry_run=dry_run)

    return PartitionResult(esp_part=esp_part, root_part=root_part, root_device=root_device)


def fetch_image(url: str, dest: str, *, dry_run: bool = False) -> bool:
    """Download the boot image unless ``dest`` already exists.

    Returns True when a download happened (the caller owns the temp file then).
    """

    if Path(dest).is_file():
        logger.info("Using existing image %s", dest)
        return False
    if not url:
        raise RuntimeError("config.image_url is required to download the install image")
    run_cmd(["wget", url, "-O", dest], dry_run=dry_run)
    return True


def flash_image_and_grow(
    *,
    disk: str,
    image_path: str,
    luks_mapper: str,
    passphrase: str,
    wait_s: int = 10,
    dry_run: bool = False,
) -> PartitionResult:
    """Write a pre-built ESP + LUKS image to ``disk`` and grow it to fill the disk."""

    unmount_partitions(disk, dry_run=dry_run)
    run_cmd(["dd", f"if={image_path}", f"of={disk}", "bs=4M", "conv=fsync"], dry_run=dry_run)
    run_cmd(["sync"], dry_run=dry_run)

    # Move the backup GPT header to the real end of the disk.
    run_cmd(["sgdisk", "-e", disk], dry_run=dry_run)
    run_cmd(["partprobe", disk], check=False, dry_run=dry_run)

    esp_part = partition_path(disk, 1)
    root_part = partition_path(disk, 2)
    unmount_partitions(disk, dry_run=dry_run)

    # Recreate partition 2 at the same start so it spans the rest of the disk.
    run_cmd(["sgdisk", "-d", "2", disk], dry_run=dry_run)
    run_cmd(["sgdisk", "-n", "2:0:0", "-t", "2:8300", disk], dry_run=dry_run)
    run_cmd(["partprobe", disk], check=False, dry_run=dry_run)
    wait_for_partitions([esp_part, root_part], timeout_s=wait_s, dry_run=dry_run)

    mapper = luks_open(root_part, luks_mapper, passphrase, dry_run=dry_run)
    luks_resize(luks_mapper, passphrase, dry_run=dry_run)
    run_cmd(["e2fsck", "-f", "-y", mapper], dry_run=dry_run)
    run_cmd(["resize2fs", mapper], dry_run=dry_run)

    return PartitionResult(esp_part=esp_part, root_part=root_part, root_device=mapper)


def mount_target(*, root_device: str, esp_part: str, target_mount: str, dry_run: bool = False) -> None:
    run_cmd(["mkdir", "-p", target_mount], dry_run=dry_run)
    run_cmd(["mount", root_device, target_mount], dry_run=dry_run)
    run_cmd(["mkdir", "-p", f"{target_mount}/boot/efi"], dry_run=dry_run)
    run_cmd(["mount", esp_part, f"{target_mount}/boot/efi"], dry_run=dry_run)


def _is_mountpoint(path: str, *, dry_run: bool) -> bool:
    if dry_run:
        return True
    return run_cmd(["mountpoint", "-q", path], check=False).returncode == 0


def release_target(
    *,
    target_mount: str,
    luks_mapper: Optional[str],
    temp_files: Optional[List[str]] = None,
    dry_run: bool = False,
) -> None:
    """Unmount everything under the target, close LUKS, drop temp files."""

    for rel in ("boot/efi", "dev/pts", "dev", "proc", "sys", "run"):
        p = f"{target_mount}/{rel}"
        if _is_mountpoint(p, dry_run=dry_run):
            run_cmd(["umount", "-R", p], check=False, dry_run=dry_run)

    if _is_mountpoint(target_mount, dry_run=dry_run):
        run_cmd(["umount", "-R", target_mount], check=False, dry_run=dry_run)

    if luks_mapper:
        luks_close(luks_mapper, dry_run=dry_run)

    for f in temp_files or []:
        if dry_run:
            logger.info("Would remove %s", f)
        elif os.path.isfile(f):
            os.remove(f)

    if not dry_run:
        try:
            os.rmdir(target_mount)
        except OSError:
            logger.info("Mount point %s left in place (not empty or missing)", target_mount)

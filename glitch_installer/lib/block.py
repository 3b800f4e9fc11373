from __future__ import annotations

import json
import logging
import os
import re
import stat
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .command import run_cmd

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Disk:
    path: str
    size: str
    model: str

    @property
    def label(self) -> str:
        extra = " ".join(x for x in (self.size, self.model) if x)
        return f"{self.path} ({extra})" if extra else self.path


def partition_path(disk: str, n: int) -> str:
    # nvme/mmcblk/loop devices use a p separator
    if disk.endswith(tuple("0123456789")):
        return f"{disk}p{n}"
    return f"{disk}{n}"


def is_block_device(path: str) -> bool:
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False


def get_uuid(dev: str, *, dry_run: bool = False) -> str:
    """Return filesystem (or LUKS header) UUID for a block device."""

    r = run_cmd(["blkid", "-s", "UUID", "-o", "value", dev], check=False, dry_run=dry_run)
    uuid = (r.stdout or "").strip()
    if not uuid and not dry_run:
        raise RuntimeError(f"Unable to determine UUID for {dev}")
    return uuid


def find_swap_device(*, dry_run: bool = False) -> Optional[str]:
    """First swap partition known to blkid, if any."""

    r = run_cmd(["blkid", "-t", "TYPE=swap", "-o", "device"], check=False, dry_run=dry_run)
    for line in (r.stdout or "").splitlines():
        if line.strip():
            return line.strip()
    return None


def parse_lsblk_disks(text: str) -> List[Disk]:
    data = json.loads(text or "{}")
    disks: List[Disk] = []
    for dev in data.get("blockdevices") or []:
        name = str(dev.get("name") or "")
        if not name or name.startswith("fd"):
            continue
        if dev.get("type") not in (None, "disk"):
            continue
        disks.append(
            Disk(
                path=f"/dev/{name}",
                size=str(dev.get("size") or "").strip(),
                model=str(dev.get("model") or "").strip(),
            )
        )
    return disks


def list_disks(*, dry_run: bool = False) -> List[Disk]:
    # -e 7,11 hides loop and cdrom devices
    r = run_cmd(
        ["lsblk", "-J", "-d", "-o", "NAME,SIZE,MODEL,TYPE", "-e", "7,11"],
        dry_run=dry_run,
    )
    return parse_lsblk_disks(r.stdout)


def mounted_partitions(disk: str, mounts_file: str = "/proc/mounts") -> List[str]:
    """Devices from the mount table that belong to ``disk``."""

    sep = "p" if disk.endswith(tuple("0123456789")) else ""
    own = re.compile(rf"^{re.escape(disk)}(?:{sep}\d+)?$")
    found: List[str] = []
    try:
        with open(mounts_file, encoding="utf-8") as f:
            for line in f:
                dev = line.split(" ", 1)[0]
                if own.match(dev) and dev not in found:
                    found.append(dev)
    except OSError:
        return []
    return found


def unmount_partitions(disk: str, *, dry_run: bool = False) -> None:
    for dev in mounted_partitions(disk):
        run_cmd(["umount", "-f", dev], check=False, dry_run=dry_run)


def wait_for_partitions(parts: Sequence[str], *, timeout_s: int = 10, dry_run: bool = False) -> None:
    if dry_run:
        return
    for i in range(1, timeout_s + 1):
        if all(is_block_device(p) for p in parts):
            logger.info("Partitions present after %ss: %s", i - 1, ", ".join(parts))
            return
        logger.info("Waiting for partitions (%s/%s)...", i, timeout_s)
        time.sleep(1)
    if not all(is_block_device(p) for p in parts):
        raise RuntimeError(f"Partitions not found after creation: {', '.join(parts)}")

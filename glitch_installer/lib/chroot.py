from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Sequence

from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)

# (mount argv prefix, path under target) in mount order
_PSEUDO_MOUNTS = [
    (["mount", "--bind", "/dev"], "dev"),
    (["mount", "--bind", "/dev/pts"], "dev/pts"),
    (["mount", "-t", "proc", "proc"], "proc"),
    (["mount", "-t", "sysfs", "sys"], "sys"),
    (["mount", "-t", "tmpfs", "tmpfs"], "run"),
]


def chroot_cmd(target_root: str, argv: Sequence[str], *, dry_run: bool = False) -> CmdResult:
    """Run a command inside target root."""

    return run_cmd(["chroot", target_root, *argv], dry_run=dry_run)


def mount_chroot_binds(target_root: str, *, dry_run: bool = False) -> None:
    # What update-initramfs and grub-install need to see inside the target
    for prefix, rel in _PSEUDO_MOUNTS:
        dst = f"{target_root}/{rel}"
        run_cmd(["mkdir", "-p", dst], dry_run=dry_run)
        run_cmd([*prefix, dst], dry_run=dry_run)


def copy_resolv_conf(target_root: str, *, host_resolv: str = "/etc/resolv.conf", dry_run: bool = False) -> None:
    src = Path(host_resolv)
    if not src.exists():
        return
    dst = Path(target_root) / "etc/resolv.conf"
    if dry_run:
        logger.info("Would copy %s -> %s", str(src), str(dst))
        return
    dst.parent.mkdir(parents=True, exist_ok=True)
    if dst.is_symlink():
        dst.unlink()
    # follow the host symlink (systemd-resolved stub) and copy real content
    shutil.copyfile(src.resolve(), dst)

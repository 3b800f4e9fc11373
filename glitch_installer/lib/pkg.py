from __future__ import annotations

import logging
import shutil
from typing import Dict, List, Optional, Sequence

from .command import run_cmd

logger = logging.getLogger(__name__)

BASE_HOST_PACKAGES = [
    "wget",
    "cryptsetup-bin",
    "cryptsetup-initramfs",
    "grub-common",
    "grub-pc-bin",
    "grub-efi-amd64-bin",
    "parted",
    "dosfstools",
    "mtools",
    "e2fsprogs",
]

HOST_PACKAGES_BY_MODE: Dict[str, List[str]] = {
    "copy": ["rsync"],
    "squashfs": ["squashfs-tools"],
    "minimal": ["rsync", "debootstrap"],
    "image": ["rsync", "gdisk"],
}

# executables each mode shells out to
REQUIRED_TOOLS_BY_MODE: Dict[str, List[str]] = {
    "copy": ["rsync"],
    "squashfs": ["unsquashfs"],
    "minimal": ["debootstrap", "rsync"],
    "image": ["wget", "dd", "sgdisk", "e2fsck", "resize2fs", "rsync"],
}

BASE_REQUIRED_TOOLS = ["parted", "partprobe", "wipefs", "mkfs.vfat", "mkfs.ext4", "blkid", "chroot", "cryptsetup"]

DEFAULT_MINIMAL_PACKAGES = [
    "systemd", "systemd-sysv", "udev", "dbus", "logrotate", "bash", "coreutils", "util-linux",
    "findutils", "grep", "sed", "gawk", "tar", "gzip", "xz-utils", "bzip2", "less", "procps",
    "iproute2", "iputils-ping", "net-tools", "dhcpcd5", "openssh-client", "openssh-server",
    "ca-certificates", "apt", "apt-utils", "gnupg", "debian-archive-keyring", "wget", "curl",
    "rsync", "nano", "vim-tiny", "locales", "adduser", "passwd", "login", "libpam-systemd",
    "ifupdown", "isc-dhcp-client", "netbase", "initramfs-tools", "linux-image-amd64",
    "linux-headers-amd64", "grub-common", "grub-pc-bin", "grub-efi-amd64-bin", "cryptsetup",
    "cryptsetup-initramfs",
]


def host_packages(mode: Optional[str]) -> List[str]:
    """Live-system packages for ``mode``; every mode's packages while the mode is still unknown."""

    extra = HOST_PACKAGES_BY_MODE.get(mode, []) if mode else [p for ps in HOST_PACKAGES_BY_MODE.values() for p in ps]
    return list(dict.fromkeys([*BASE_HOST_PACKAGES, *extra]))


def required_tools(mode: Optional[str]) -> List[str]:
    return [*BASE_REQUIRED_TOOLS, *REQUIRED_TOOLS_BY_MODE.get(mode or "", [])]


def missing_tools(tools: Sequence[str]) -> List[str]:
    return [t for t in tools if shutil.which(t) is None]


def apt_install_host(packages: Sequence[str], *, dry_run: bool = False) -> None:
    """Install installer dependencies into the running (live) system."""

    if not packages:
        return
    run_cmd(["apt-get", "update"], dry_run=dry_run)
    run_cmd(
        ["apt-get", "install", "-y", *packages],
        env={"DEBIAN_FRONTEND": "noninteractive"},
        dry_run=dry_run,
    )


def debootstrap_rootfs(
    *,
    target_root: str,
    suite: str = "stable",
    mirror: str = "http://deb.debian.org/debian",
    variant: str | None = "minbase",
    include: Sequence[str] = (),
    arch: str | None = None,
    dry_run: bool = False,
) -> None:
    argv = ["debootstrap"]
    if variant:
        argv.append(f"--variant={variant}")
    if include:
        # de-dup while preserving order
        seen: List[str] = []
        for p in include:
            if p not in seen:
                seen.append(p)
        argv.append("--include=" + ",".join(seen))
    if arch:
        argv += ["--arch", arch]
    argv += [suite, target_root, mirror]
    run_cmd(argv, dry_run=dry_run)

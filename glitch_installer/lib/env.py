from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    target_mount: str = "/mnt/glitch_install"
    state_default: str = "/var/lib/glitch-installer/state.json"
    log_default: str = "/var/log/glitch-installer.log"
    exclude_file: str = "/tmp/rsync_excludes.txt"
    image_download: str = "/tmp/LUKS-BOOTLOADER-BIOS-UEFI-100MB.img"
    chroot_script: str = "/chroot_prep.sh"


PATHS = Paths()

from __future__ import annotations

from pathlib import Path


def detect_firmware(sys_root: str = "/") -> str:
    """Detect firmware type for the *currently running* environment.

    Returns: 'efi' or 'bios'.

    The installed system inherits the firmware the live session booted with;
    config.firmware overrides this.
    """

    if (Path(sys_root) / "sys/firmware/efi").exists():
        return "efi"
    return "bios"

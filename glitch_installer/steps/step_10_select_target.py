from __future__ import annotations

import logging
from typing import Any, Dict

from ..install_config import INSTALL_MODES
from ..lib.block import is_block_device, list_disks
from ..lib.pkg import missing_tools, required_tools
from ..ui.base import Frontend, InstallAborted

logger = logging.getLogger(__name__)

MODE_LABELS = {
    "copy": "Full system copy of the running live system (rsync)",
    "squashfs": "Extract the live filesystem.squashfs",
    "minimal": "Minimal Debian system (debootstrap)",
    "image": "Flash the prebuilt LUKS boot image and copy the system",
}


class SelectTargetStep:
    step_id = "10_select_target"
    title = "Selecting the target disk"
    progress = 5

    def __init__(self, frontend: Frontend) -> None:
        self.frontend = frontend

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.setdefault("config", {})
        dry_run = bool(cfg.get("dry_run", False))

        disk = cfg.get("target_disk")
        if not disk:
            disks = list_disks(dry_run=dry_run)
            if not disks:
                raise RuntimeError("No installable disks found (set config.target_disk)")
            disk = self.frontend.choose(
                "Select the target disk (ALL DATA WILL BE ERASED)",
                [(d.path, d.label) for d in disks],
            )
        if not dry_run and not is_block_device(disk):
            raise RuntimeError(f"{disk} is not a valid block device")
        cfg["target_disk"] = disk

        if not self.frontend.confirm(
            f"WARNING: ALL DATA ON {disk} WILL BE ERASED!\nContinue?", default=False, require_word="yes"
        ):
            raise InstallAborted(f"Installation cancelled: {disk} left untouched")

        mode = cfg.get("install_mode")
        if mode not in INSTALL_MODES:
            mode = self.frontend.choose(
                "Select the installation type",
                [(m, MODE_LABELS[m]) for m in INSTALL_MODES],
                default="minimal",
            )
        cfg["install_mode"] = mode

        # 00_preflight ran before the mode was known
        missing = missing_tools(required_tools(mode))
        if missing:
            if not dry_run:
                raise RuntimeError(f"Missing tools for install_mode={mode}: {', '.join(missing)}")
            self.frontend.warn(f"Missing tools for install_mode={mode} (ignored in dry run): {', '.join(missing)}")

        if mode == "image":
            # the image ships a LUKS container
            if cfg.get("encrypt") is False:
                self.frontend.warn("Image installs are always encrypted; ignoring encrypt=false")
            cfg["encrypt"] = True
        elif cfg.get("encrypt") is None:
            cfg["encrypt"] = self.frontend.confirm("Enable LUKS encryption for the root partition?", default=True)

        logger.info("Target disk=%s mode=%s encrypt=%s", disk, mode, cfg["encrypt"])
        return state

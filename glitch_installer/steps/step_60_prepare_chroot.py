from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.bootloader import ChrootPlan, render_chroot_script
from ..lib.chroot import chroot_cmd, copy_resolv_conf, mount_chroot_binds
from ..lib.env import PATHS
from ..lib.sysconf import write_file
from ..ui.base import Frontend

logger = logging.getLogger(__name__)


def manual_instructions(target_root: str) -> str:
    return (
        "To finish the installation manually run:\n"
        f"  sudo chroot {target_root} /bin/bash {PATHS.chroot_script}\n"
        "then exit the chroot and reboot."
    )


class PrepareChrootStep:
    step_id = "60_prepare_chroot"
    title = "Installing the bootloader"
    progress = 90

    def __init__(self, frontend: Frontend) -> None:
        self.frontend = frontend

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        exe = state.setdefault("execution", {})
        mounts = exe.setdefault("mounts", {})
        decisions = exe.setdefault("decisions", {})

        target_root = mounts.get("target_root")
        firmware = decisions.get("firmware")
        if not target_root or not firmware:
            raise RuntimeError("Missing target_root/firmware; run 50_configure_system first")

        dry_run = bool(cfg.get("dry_run", False))

        mount_chroot_binds(target_root, dry_run=dry_run)
        mounts["chroot_binds"] = True
        copy_resolv_conf(target_root, dry_run=dry_run)

        plan = ChrootPlan(
            hostname=str(cfg.get("hostname") or "glitch"),
            firmware=str(firmware),
            disk=str(cfg.get("target_disk")),
            encrypted=bool(cfg.get("encrypt", False)),
            bootloader_id=str(cfg.get("bootloader_id") or "GRUB"),
            efi_removable=bool(cfg.get("efi_removable", True)),
            reinstall_kernel=cfg.get("install_mode") == "squashfs",
        )
        write_file(target_root, PATHS.chroot_script, render_chroot_script(plan), dry_run=dry_run, mode=0o755)

        auto = cfg.get("auto_chroot")
        if auto is None:
            auto = self.frontend.confirm("Run the chroot configuration automatically now?", default=False)

        if auto:
            self.frontend.progress(95, "Running chroot configuration...")
            chroot_cmd(target_root, ["/bin/bash", PATHS.chroot_script], dry_run=dry_run)
            logger.info("Chroot configuration completed")
        else:
            self.frontend.info(manual_instructions(target_root), title="Manual chroot")
        decisions["chroot_ran"] = bool(auto)
        return state

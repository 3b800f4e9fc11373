from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.rootfs import (
    SQUASHFS_CANDIDATES,
    extract_squashfs,
    locate_squashfs,
    minimal_system_install,
    rsync_live_system,
    scale_progress,
)
from ..ui.base import Frontend

logger = logging.getLogger(__name__)

PROGRESS_LO = 40
PROGRESS_HI = 79


class PopulateRootfsStep:
    step_id = "40_populate_rootfs"
    title = "Installing the system files"
    progress = PROGRESS_LO

    def __init__(self, frontend: Frontend) -> None:
        self.frontend = frontend

    def _progress(self, percent: int, message: str) -> None:
        self.frontend.progress(scale_progress(percent, PROGRESS_LO, PROGRESS_HI), message)

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        exe = state.setdefault("execution", {})
        target_root = (exe.get("mounts") or {}).get("target_root")
        if not target_root:
            raise RuntimeError("Missing target_root; run 30_mount_target first")

        dry_run = bool(cfg.get("dry_run", False))
        mode = cfg.get("install_mode")

        if mode in {"copy", "image"}:
            exclude_file = str(cfg.get("exclude_file"))
            rsync_live_system(
                target_root=target_root,
                exclude_file=exclude_file,
                progress=self._progress,
                dry_run=dry_run,
            )
            exe.setdefault("temp_files", []).append(exclude_file)
        elif mode == "squashfs":
            try:
                image = locate_squashfs(cfg.get("squashfs_image"))
            except RuntimeError:
                if not dry_run:
                    raise
                image = SQUASHFS_CANDIDATES[0]
                logger.warning("No squashfs image found, planning with %s", image)
            exe.setdefault("decisions", {})["squashfs_image"] = image
            extract_squashfs(image=image, target_root=target_root, progress=self._progress, dry_run=dry_run)
        elif mode == "minimal":
            self._progress(0, "Installing a minimal Debian system...")
            minimal_system_install(
                target_root=target_root,
                hostname=str(cfg.get("hostname")),
                suite=str(cfg.get("debian_suite")),
                mirror=str(cfg.get("debian_mirror")),
                packages=list(cfg.get("minimal_packages") or []),
                dry_run=dry_run,
            )
        else:
            raise RuntimeError(f"Unknown install_mode: {mode}")

        self._progress(100, "System files installed")
        logger.info("Root filesystem populated (mode=%s)", mode)
        return state

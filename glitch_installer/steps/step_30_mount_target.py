from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.storage import mount_target

logger = logging.getLogger(__name__)


class MountTargetStep:
    step_id = "30_mount_target"
    title = "Mounting the target filesystems"
    progress = 35

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        mounts = state.setdefault("execution", {}).setdefault("mounts", {})

        root_device = mounts.get("root_device")
        esp_part = mounts.get("esp_part")
        if not root_device or not esp_part:
            raise RuntimeError("Missing root_device/esp_part; run 20_prepare_disk first")

        target_mount = str(cfg.get("target_mount"))
        mount_target(
            root_device=root_device,
            esp_part=esp_part,
            target_mount=target_mount,
            dry_run=bool(cfg.get("dry_run", False)),
        )
        mounts["target_root"] = target_mount
        return state

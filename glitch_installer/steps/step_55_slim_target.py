from __future__ import annotations

import logging
from typing import Any, Dict

from ..lib.rootfs import slim_target

logger = logging.getLogger(__name__)


class SlimTargetStep:
    step_id = "55_slim_target"
    title = "Removing unneeded files"
    progress = 85

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        target_root = ((state.get("execution") or {}).get("mounts") or {}).get("target_root")
        if not target_root:
            raise RuntimeError("Missing target_root; run 30_mount_target first")

        enabled = cfg.get("slim_target")
        if enabled is None:
            enabled = cfg.get("install_mode") == "minimal"
        if not enabled:
            logger.info("Slimming disabled for install_mode=%s", cfg.get("install_mode"))
            return state

        slim_target(target_root, dry_run=bool(cfg.get("dry_run", False)))
        return state

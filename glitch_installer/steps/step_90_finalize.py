from __future__ import annotations

import logging
from typing import Any, Dict

from ..ui.base import Frontend

logger = logging.getLogger(__name__)


class FinalizeStep:
    step_id = "90_finalize"
    title = "Finishing"
    progress = 100

    def __init__(self, frontend: Frontend) -> None:
        self.frontend = frontend

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        decisions = (state.get("execution") or {}).get("decisions") or {}

        logger.info("Finalize summary: %s", decisions)

        lines = [
            "Installation complete!",
            f"Disk: {cfg.get('target_disk')}",
            f"Mode: {cfg.get('install_mode')}",
            f"Encrypted: {'yes' if cfg.get('encrypt') else 'no'}",
            f"Kernel: {decisions.get('kernel_version')}",
        ]
        if cfg.get("encrypt"):
            lines.append("You will be asked for the LUKS passphrase at boot.")
        if not decisions.get("chroot_ran"):
            lines.append("Remember to run the chroot script before rebooting.")
        self.frontend.info("\n".join(lines), title="Installation Complete")
        return state

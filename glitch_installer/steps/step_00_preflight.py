from __future__ import annotations

import logging
import os
from typing import Any, Dict

from ..lib.pkg import apt_install_host, host_packages, missing_tools, required_tools
from ..ui.base import Frontend

logger = logging.getLogger(__name__)


class PreflightStep:
    step_id = "00_preflight"
    title = "Checking the live system"
    progress = 0

    def __init__(self, frontend: Frontend) -> None:
        self.frontend = frontend

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        dry_run = bool(cfg.get("dry_run", False))
        mode = cfg.get("install_mode")

        if not dry_run and os.geteuid() != 0:
            raise RuntimeError("This installer must be run as root")

        if cfg.get("install_host_dependencies", True):
            apt_install_host(host_packages(mode), dry_run=dry_run)

        missing = missing_tools(required_tools(mode))
        if missing:
            if not dry_run:
                raise RuntimeError(f"Missing required tools: {', '.join(missing)}")
            # a dry run plans on machines that lack the tools
            self.frontend.warn(f"Missing required tools (ignored in dry run): {', '.join(missing)}")
            state.setdefault("execution", {}).setdefault("warnings", []).append(
                f"missing tools: {', '.join(missing)}"
            )
        logger.info("Preflight done (mode=%s, dry_run=%s)", mode or "undecided", dry_run)
        return state

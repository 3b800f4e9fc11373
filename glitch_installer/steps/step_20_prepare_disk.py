from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..lib.storage import PartitionPlan, fetch_image, flash_image_and_grow, partition_and_format
from ..ui.base import Frontend

logger = logging.getLogger(__name__)


class PrepareDiskStep:
    step_id = "20_prepare_disk"
    title = "Partitioning and formatting"
    progress = 10

    def __init__(self, frontend: Frontend) -> None:
        self.frontend = frontend

    def _passphrase(self, state: Dict[str, Any]) -> Optional[str]:
        cfg = state.get("config") or {}
        if cfg.get("passphrase"):
            return str(cfg["passphrase"])
        return self.frontend.ask_passphrase("Enter the LUKS passphrase", confirm=cfg.get("install_mode") != "image")

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        exe = state.setdefault("execution", {})
        mounts = exe.setdefault("mounts", {})

        disk = cfg.get("target_disk")
        if not disk:
            raise RuntimeError("config.target_disk is required; run 10_select_target first")

        dry_run = bool(cfg.get("dry_run", False))
        # image installs always carry a LUKS container
        encrypt = bool(cfg.get("encrypt", False)) or cfg.get("install_mode") == "image"
        mapper = str(cfg.get("luks_mapper") or "glitch_luks")

        if cfg.get("install_mode") == "image":
            image = str(cfg.get("image_path"))
            if fetch_image(str(cfg.get("image_url") or ""), image, dry_run=dry_run):
                exe.setdefault("temp_files", []).append(image)
            self.frontend.progress(15, "Writing the boot image...")
            passphrase = self._passphrase(state) or ""
            result = flash_image_and_grow(
                disk=disk,
                image_path=image,
                luks_mapper=mapper,
                passphrase=passphrase,
                wait_s=int(cfg.get("partition_wait_s", 10)),
                dry_run=dry_run,
            )
        else:
            plan = PartitionPlan(
                disk=disk,
                encrypt=encrypt,
                luks_mapper=mapper,
                esp_start_mib=int(cfg.get("esp_start_mib", 1)),
                esp_end_mib=int(cfg.get("esp_end_mib", 101)),
                root_start_mib=cfg.get("root_start_mib"),
                esp_label=str(cfg.get("esp_label", "EFI-DEB")),
                root_label=str(cfg.get("root_label", "gLiTcH-Linux")),
                wait_s=int(cfg.get("partition_wait_s", 10)),
            )
            passphrase = self._passphrase(state) if encrypt else None
            result = partition_and_format(plan=plan, passphrase=passphrase, dry_run=dry_run)

        mounts["esp_part"] = result.esp_part
        mounts["root_part"] = result.root_part
        mounts["root_device"] = result.root_device
        mounts["luks_mapper"] = mapper if encrypt else None

        logger.info("Disk prepared: esp=%s root=%s device=%s", result.esp_part, result.root_part, result.root_device)
        return state

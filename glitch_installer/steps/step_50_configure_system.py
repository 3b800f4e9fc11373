from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..lib.block import find_swap_device, get_uuid
from ..lib.bootloader import IMAGE_EXTRA_ENTRIES, GrubMenu, configure_efi_fallback, render_grub_cfg
from ..lib.firmware import detect_firmware
from ..lib.fstab import FstabEntry, esp_entry, render_fstab, root_entry, swap_entry
from ..lib.kernel import BootFiles, find_kernel_initrd
from ..lib.sysconf import (
    CRYPTSETUP_INITRAMFS_CONF,
    add_hostname_to_hosts,
    enable_grub_cryptodisk,
    render_crypttab,
    render_initramfs_modules,
    render_resume,
    write_file,
)

logger = logging.getLogger(__name__)


def _read_target(target_root: str, rel: str) -> str:
    p = Path(target_root) / rel
    return p.read_text(encoding="utf-8") if p.is_file() else ""


class ConfigureSystemStep:
    step_id = "50_configure_system"
    title = "Writing the boot configuration"
    progress = 80

    def _boot_files(self, target_root: str, *, dry_run: bool) -> BootFiles:
        try:
            return find_kernel_initrd(target_root)
        except RuntimeError:
            if not dry_run:
                raise
            # nothing was installed during a dry run
            logger.warning("No kernel in %s/boot, planning with placeholders", target_root)
            return BootFiles(kernel_version="VERSION", initrd="initrd.img-VERSION")

    def run(self, state: Dict[str, Any]) -> Dict[str, Any]:
        cfg = state.get("config") or {}
        exe = state.setdefault("execution", {})
        mounts = exe.get("mounts") or {}
        decisions = exe.setdefault("decisions", {})

        target_root = mounts.get("target_root")
        root_part = mounts.get("root_part")
        root_device = mounts.get("root_device")
        esp_part = mounts.get("esp_part")
        if not target_root or not root_part or not root_device or not esp_part:
            raise RuntimeError(
                "Missing target_root/root_part/root_device/esp_part; run 20_prepare_disk and 30_mount_target first"
            )

        dry_run = bool(cfg.get("dry_run", False))
        encrypted = bool(cfg.get("encrypt", False))
        mapper = str(cfg.get("luks_mapper") or "glitch_luks")
        hostname = str(cfg.get("hostname") or "glitch")

        # the LUKS header UUID (crypttab, cryptomount) differs from the ext4 UUID inside it
        root_fs_uuid = get_uuid(root_device, dry_run=dry_run)
        root_part_uuid: Optional[str] = get_uuid(root_part, dry_run=dry_run) if encrypted else None
        esp_uuid = get_uuid(esp_part, dry_run=dry_run)
        if dry_run:
            root_fs_uuid = root_fs_uuid or "ROOT-FS-UUID"
            esp_uuid = esp_uuid or "ESP-UUID"
            if encrypted:
                root_part_uuid = root_part_uuid or "LUKS-UUID"

        swap_uuid: Optional[str] = None
        if cfg.get("swap", "auto") == "auto":
            swap_dev = find_swap_device(dry_run=dry_run)
            if swap_dev:
                swap_uuid = get_uuid(swap_dev, dry_run=dry_run) or None

        firmware = cfg.get("firmware") or detect_firmware()
        boot = self._boot_files(target_root, dry_run=dry_run)

        decisions.update(
            {
                "root_fs_uuid": root_fs_uuid,
                "root_part_uuid": root_part_uuid,
                "esp_uuid": esp_uuid,
                "swap_uuid": swap_uuid,
                "firmware": firmware,
                "kernel_version": boot.kernel_version,
                "initrd": boot.initrd,
            }
        )

        entries: List[FstabEntry] = [root_entry(root_fs_uuid), esp_entry(esp_uuid)]
        if swap_uuid:
            entries.append(swap_entry(swap_uuid))
        write_file(target_root, "/etc/fstab", render_fstab(entries), dry_run=dry_run)
        if swap_uuid:
            write_file(target_root, "/etc/initramfs-tools/conf.d/resume", render_resume(swap_uuid), dry_run=dry_run)

        if encrypted:
            assert root_part_uuid is not None
            write_file(target_root, "/etc/crypttab", render_crypttab(mapper, root_part_uuid), dry_run=dry_run)
            write_file(
                target_root,
                "/etc/initramfs-tools/conf.d/cryptsetup",
                CRYPTSETUP_INITRAMFS_CONF,
                dry_run=dry_run,
            )
            write_file(target_root, "/etc/initramfs-tools/modules", render_initramfs_modules(), dry_run=dry_run)
            grub_defaults = enable_grub_cryptodisk(_read_target(target_root, "etc/default/grub"))
            write_file(target_root, "/etc/default/grub", grub_defaults, dry_run=dry_run)

        write_file(target_root, "/etc/hostname", hostname + "\n", dry_run=dry_run)
        hosts = add_hostname_to_hosts(_read_target(target_root, "etc/hosts"), hostname)
        write_file(target_root, "/etc/hosts", hosts, dry_run=dry_run)

        menu = GrubMenu(
            root_fs_uuid=root_fs_uuid,
            kernel_version=boot.kernel_version,
            initrd=boot.initrd,
            root_part_uuid=root_part_uuid,
            luks_mapper=mapper if encrypted else None,
            extra_entries=IMAGE_EXTRA_ENTRIES if cfg.get("install_mode") == "image" else "",
        )
        write_file(target_root, "/boot/grub/grub.cfg", render_grub_cfg(menu), dry_run=dry_run)

        bootloader_id = str(cfg.get("bootloader_id") or "GRUB")
        if firmware == "efi" and not configure_efi_fallback(
            f"{target_root}/boot/efi", bootloader_id=bootloader_id, dry_run=dry_run
        ):
            exe.setdefault("warnings", []).append("GRUB EFI binary not present yet; fallback copied by chroot script")

        logger.info(
            "System configured (kernel=%s initrd=%s firmware=%s encrypted=%s)",
            boot.kernel_version,
            boot.initrd,
            firmware,
            encrypted,
        )
        return state

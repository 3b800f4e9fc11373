from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

MENU_TITLE = "Glitch Linux"

GRUB_THEME_HEADER = """\
loadfont /usr/share/grub/unicode.pf2

set gfxmode=640x480
load_video
insmod gfxterm
set locale_dir=/boot/grub/locale
set lang=C
insmod gettext
background_image -m stretch /boot/grub/grub.png
terminal_output gfxterm
insmod png
if background_image /boot/grub/grub.png; then
    true
else
    set menu_color_normal=cyan/blue
    set menu_color_highlight=white/blue
fi
"""

# Tools shipped on the prebuilt boot image's ESP.
IMAGE_EXTRA_ENTRIES = """\
menuentry "Debian X - Encrypted Persistence" {
	linux /live/vmlinuz boot=live components quiet splash noeject findiso=${iso_path} persistent=cryptsetup persistence-encryption=luks persistence
	initrd /live/initrd.gz
}

menuentry "Grub-Multiarch (BIOS)" {
    insmod multiboot
    multiboot /boot/grub/grub_multiarch/grubfm.elf
    boot
}

menuentry "Netboot.xyz (BIOS)" {
    linux16 /boot/grub/netboot.xyz/netboot.xyz.lkrn
}

menuentry "Netboot.xyz (UEFI)" {
    chainloader /boot/grub/netboot.xyz/EFI/BOOT/BOOTX64.EFI
}

menuentry "GRUBFM (UEFI)" {
    chainloader /EFI/GRUB-FM/E2B-bootx64.efi
}

menuentry "rEFInd (UEFI)" {
    chainloader /EFI/rEFInd/bootx64.efi
}
"""


@dataclass(frozen=True)
class GrubMenu:
    root_fs_uuid: str
    kernel_version: str
    initrd: str
    # set for LUKS roots
    root_part_uuid: Optional[str] = None
    luks_mapper: Optional[str] = None
    title: str = MENU_TITLE
    extra_entries: str = ""

    @property
    def encrypted(self) -> bool:
        return bool(self.root_part_uuid)


def _menu_entry(menu: GrubMenu, *, title: str, mode_arg: str) -> str:
    lines = [f'menuentry "{title}" {{', "    insmod part_gpt"]
    cmdline = f"root=UUID={menu.root_fs_uuid}"
    if menu.encrypted:
        lines += ["    insmod cryptodisk", "    insmod luks"]
    lines += ["    insmod ext2", ""]
    if menu.encrypted:
        lines += [
            f"    cryptomount -u {menu.root_part_uuid}",
            "    set root='(crypto0)'",
        ]
        cmdline += f" cryptdevice=UUID={menu.root_part_uuid}:{menu.luks_mapper}"
    lines += [
        f"    search --no-floppy --fs-uuid --set=root {menu.root_fs_uuid}",
        f"    linux /boot/vmlinuz-{menu.kernel_version} {cmdline} ro {mode_arg}",
        f"    initrd /boot/{menu.initrd}",
        "}",
    ]
    return "\n".join(lines) + "\n"


def render_grub_cfg(menu: GrubMenu) -> str:
    if menu.encrypted and not menu.luks_mapper:
        raise ValueError("luks_mapper is required for an encrypted GRUB menu")
    parts = [
        GRUB_THEME_HEADER,
        _menu_entry(menu, title=menu.title, mode_arg="quiet"),
        _menu_entry(menu, title=f"{menu.title} (recovery mode)", mode_arg="single"),
    ]
    if menu.extra_entries:
        parts.append(menu.extra_entries)
    return "\n".join(parts)


def configure_efi_fallback(efi_mount: str, *, bootloader_id: str = "GRUB", dry_run: bool = False) -> bool:
    """Mirror EFI/<bootloader_id>/grubx64.efi into the removable-media path EFI/BOOT.

    Returns False (and logs a warning) when grubx64.efi is not there yet;
    the chroot script repeats the copy after grub-install.
    """

    efi = Path(efi_mount)
    boot_dir = efi / "EFI/BOOT"
    grub_dir = efi / "EFI" / bootloader_id
    if dry_run:
        logger.info("Would populate %s from %s", str(boot_dir), str(grub_dir))
        return True

    boot_dir.mkdir(parents=True, exist_ok=True)
    grub_dir.mkdir(parents=True, exist_ok=True)

    grub_efi = grub_dir / "grubx64.efi"
    if not grub_efi.is_file():
        logger.warning("GRUB EFI files not found in %s", str(grub_dir))
        return False

    shutil.copy2(grub_efi, boot_dir / "bootx64.efi")
    shutil.copy2(grub_efi, boot_dir / "grubx64.efi")
    if (grub_dir / "grub.cfg").is_file():
        shutil.copy2(grub_dir / "grub.cfg", boot_dir / "grub.cfg")
    return True


@dataclass(frozen=True)
class ChrootPlan:
    hostname: str
    firmware: str  # efi|bios
    disk: str
    encrypted: bool
    bootloader_id: str = "GRUB"
    efi_removable: bool = True
    # squashfs extracts may carry stale boot files
    reinstall_kernel: bool = False


KERNEL_REINSTALL = (
    "KERNEL_PKG=$(dpkg -l | grep '^ii.*linux-image' | awk '{print $2}' | sort -V | tail -n1)\n"
    '[ -n "$KERNEL_PKG" ] && apt-get install --reinstall -y "$KERNEL_PKG"'
)


def render_chroot_script(plan: ChrootPlan) -> str:
    """Script run inside the target to rebuild the initramfs and install GRUB."""

    lines: List[str] = [
        "#!/bin/bash",
        "# Set up basic system",
        f'echo "{plan.hostname}" > /etc/hostname',
        f'grep -q "^127.0.1.1 {plan.hostname}$" /etc/hosts || echo "127.0.1.1 {plan.hostname}" >> /etc/hosts',
        "",
        "apt-get update",
    ]
    if plan.encrypted:
        lines.append("apt-get install -y cryptsetup-initramfs cryptsetup")
    if plan.reinstall_kernel:
        lines += ["", KERNEL_REINSTALL]
    lines += [
        "",
        'update-initramfs -u -k all || { echo "Initramfs update failed"; exit 1; }',
        "",
    ]
    if plan.firmware == "efi":
        install = (
            f"grub-install --target=x86_64-efi --efi-directory=/boot/efi "
            f"--bootloader-id={plan.bootloader_id} --recheck"
        )
        if plan.efi_removable:
            install += " --removable"
        lines += [
            "mkdir -p /boot/efi/EFI/BOOT /boot/efi/EFI/GRUB",
            f'{install} || {{ echo "EFI GRUB install failed"; exit 1; }}',
            f"if [ -f /boot/efi/EFI/{plan.bootloader_id}/grubx64.efi ]; then",
            f"    cp /boot/efi/EFI/{plan.bootloader_id}/grubx64.efi /boot/efi/EFI/BOOT/bootx64.efi",
            f"    cp /boot/efi/EFI/{plan.bootloader_id}/grubx64.efi /boot/efi/EFI/BOOT/grubx64.efi",
            "fi",
            "cp /boot/grub/grub.cfg /boot/efi/EFI/BOOT/grub.cfg",
        ]
    else:
        lines.append(f'grub-install {plan.disk} --recheck || {{ echo "BIOS GRUB install failed"; exit 1; }}')
    lines += [
        "",
        'update-grub || { echo "GRUB update failed"; exit 1; }',
    ]
    if plan.encrypted:
        lines += [
            "",
            'lsinitramfs "$(ls -1 /boot/initrd.img-* | sort -V | tail -n1)" | grep -q cryptsetup '
            '|| echo "Warning: cryptsetup not found in initramfs"',
        ]
    lines += [
        "",
        "rm -f /chroot_prep.sh",
    ]
    return "\n".join(lines) + "\n"

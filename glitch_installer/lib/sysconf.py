from __future__ import annotations

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

INITRAMFS_CRYPT_MODULES = ["dm-crypt", "cryptodisk", "luks", "aes", "sha256", "ext4"]

_CRYPTODISK_RE = re.compile(r"^GRUB_ENABLE_CRYPTODISK=")

CRYPTSETUP_INITRAMFS_CONF = "KEYFILE_PATTERN=/etc/luks/*.keyfile\nUMASK=0077\n"

NETWORK_INTERFACES = (
    "auto lo\n"
    "iface lo inet loopback\n"
    "\n"
    "auto eth0\n"
    "iface eth0 inet dhcp\n"
)


def write_file(root: str, rel: str, contents: str, *, dry_run: bool, mode: int | None = None) -> Path:
    p = Path(root) / rel.lstrip("/")
    if dry_run:
        logger.info("Would write %s", str(p))
        return p
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(contents, encoding="utf-8")
    if mode is not None:
        p.chmod(mode)
    logger.info("Wrote %s", str(p))
    return p


def render_crypttab(mapper: str, root_part_uuid: str) -> str:
    return f"{mapper} UUID={root_part_uuid} none luks,discard\n"


def render_initramfs_modules(modules=None) -> str:
    return "\n".join(modules or INITRAMFS_CRYPT_MODULES) + "\n"


def render_resume(swap_uuid: str) -> str:
    return f"RESUME=UUID={swap_uuid}\n"


def enable_grub_cryptodisk(text: str) -> str:
    """Return /etc/default/grub contents with GRUB_ENABLE_CRYPTODISK=y set exactly once."""

    wanted = "GRUB_ENABLE_CRYPTODISK=y"
    out: list[str] = []
    seen = False
    for ln in text.splitlines():
        if _CRYPTODISK_RE.match(ln):
            if not seen:
                out.append(wanted)
                seen = True
            continue
        out.append(ln)
    if not seen:
        out.append(wanted)
    return "\n".join(out) + "\n"


def add_hostname_to_hosts(text: str, hostname: str) -> str:
    entry = f"127.0.1.1 {hostname}"
    lines = [ln for ln in text.splitlines() if not ln.startswith("127.0.1.1")]
    if not lines:
        lines = ["127.0.0.1 localhost"]
    lines.append(entry)
    return "\n".join(lines) + "\n"

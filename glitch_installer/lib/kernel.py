from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Tuple, Union

logger = logging.getLogger(__name__)

INITRD_PATTERNS = ("initrd.img-{v}", "initramfs-{v}.img", "initrd-{v}.gz")

_KERNEL_RE = re.compile(r"^vmlinuz-(\d.*)$")


@dataclass(frozen=True)
class BootFiles:
    kernel_version: str
    initrd: str

    @property
    def kernel(self) -> str:
        return f"vmlinuz-{self.kernel_version}"


def version_key(version: str) -> Tuple[Tuple[int, Union[int, str]], ...]:
    """Sort key comparing digit runs numerically, like ``sort -V``."""

    parts: List[Tuple[int, Union[int, str]]] = []
    for tok in re.findall(r"\d+|[^\d]+", version):
        if tok.isdigit():
            parts.append((1, int(tok)))
        else:
            parts.append((0, tok))
    return tuple(parts)


def kernel_versions(boot_dir: str) -> List[str]:
    """Installed kernel versions under ``boot_dir``, oldest first."""

    p = Path(boot_dir)
    if not p.is_dir():
        return []
    versions = []
    for entry in p.iterdir():
        m = _KERNEL_RE.match(entry.name)
        if m:
            versions.append(m.group(1))
    return sorted(versions, key=version_key)


def find_kernel_initrd(target_root: str) -> BootFiles:
    boot = Path(target_root) / "boot"
    versions = kernel_versions(str(boot))
    if not versions:
        raise RuntimeError(f"Kernel not found under {boot}")

    version = versions[-1]
    for pattern in INITRD_PATTERNS:
        name = pattern.format(v=version)
        if (boot / name).is_file():
            logger.info("Found kernel: vmlinuz-%s initrd: %s", version, name)
            return BootFiles(kernel_version=version, initrd=name)

    raise RuntimeError(f"Initrd not found for kernel {version}")

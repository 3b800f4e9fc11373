from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

FSTAB_HEADER = "# <file system> <mount point>   <type>  <options>       <dump>  <pass>"


@dataclass(frozen=True)
class FstabEntry:
    spec: str
    mountpoint: str
    fstype: str
    options: str = "defaults"
    dump: int = 0
    passno: int = 0

    def render(self) -> str:
        return f"{self.spec} {self.mountpoint:<15} {self.fstype:<7} {self.options} {self.dump} {self.passno}"


def render_fstab(entries: Sequence[FstabEntry]) -> str:
    return "\n".join([FSTAB_HEADER, *(e.render() for e in entries)]) + "\n"


def root_entry(root_fs_uuid: str) -> FstabEntry:
    return FstabEntry(spec=f"UUID={root_fs_uuid}", mountpoint="/", fstype="ext4", options="errors=remount-ro", passno=1)


def esp_entry(esp_uuid: str) -> FstabEntry:
    return FstabEntry(spec=f"UUID={esp_uuid}", mountpoint="/boot/efi", fstype="vfat", options="umask=0077", passno=1)


def swap_entry(swap_uuid: str) -> FstabEntry:
    return FstabEntry(spec=f"UUID={swap_uuid}", mountpoint="none", fstype="swap", options="sw")

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from .command import run_cmd, stream_cmd
from .kernel import kernel_versions
from .pkg import debootstrap_rootfs
from .sysconf import NETWORK_INTERFACES, write_file

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int, str], None]

BASE_EXCLUDES = [
    "/dev/*",
    "/proc/*",
    "/sys/*",
    "/run/*",
    "/tmp/*",
    "/lost+found",
    "/mnt/*",
    "/media/*",
    "/var/cache/*",
    "/var/tmp/*",
]

SQUASHFS_CANDIDATES = [
    "/run/live/medium/live/filesystem.squashfs",
    "/cdrom/live/filesystem.squashfs",
    "/run/initramfs/live/filesystem.squashfs",
    "/lib/live/mount/medium/live/filesystem.squashfs",
]

SQUASHFS_SEARCH_ROOTS = ["/run", "/cdrom", "/media"]

HOST_IDENTITY_FILES = [
    "etc/localtime",
    "etc/timezone",
    "etc/locale.gen",
    "etc/default/locale",
    "etc/default/keyboard",
]

# (path, mode, type, major, minor)
DEVICE_NODES = [
    ("dev/null", "666", "c", 1, 3),
    ("dev/zero", "666", "c", 1, 5),
    ("dev/random", "666", "c", 1, 8),
    ("dev/urandom", "666", "c", 1, 9),
    ("dev/tty", "666", "c", 5, 0),
    ("dev/console", "600", "c", 5, 1),
]

RSYNC_VANISHED = 24

_PERCENT_RE = re.compile(r"\s(\d{1,3})%(\s|$)")


def scale_progress(percent: int, lo: int, hi: int) -> int:
    """Map a 0..100 sub-task percentage into the lo..hi band of the overall bar."""

    percent = max(0, min(100, percent))
    return lo + (hi - lo) * percent // 100


def parse_rsync_percent(line: str) -> Optional[int]:
    m = _PERCENT_RE.search(line)
    if not m:
        return None
    return min(100, int(m.group(1)))


def render_excludes(target_mount: str, extra: Sequence[str] = ()) -> str:
    lines = [*BASE_EXCLUDES, *extra, f"{target_mount.rstrip('/')}/*"]
    return "\n".join(lines) + "\n"


def rsync_live_system(
    *,
    target_root: str,
    exclude_file: str,
    source: str = "/",
    progress: Optional[ProgressFn] = None,
    dry_run: bool = False,
) -> None:
    if dry_run:
        logger.info("Would write %s", exclude_file)
    else:
        Path(exclude_file).parent.mkdir(parents=True, exist_ok=True)
        Path(exclude_file).write_text(render_excludes(target_root), encoding="utf-8")

    def _on_line(line: str) -> None:
        pct = parse_rsync_percent(line)
        if pct is not None and progress is not None:
            progress(pct, f"Copying system files ({pct}%)...")

    rc = stream_cmd(
        [
            "rsync",
            "-aAXH",
            "--info=progress2",
            f"--exclude-from={exclude_file}",
            "--exclude=/boot/efi",
            "--exclude=/boot/grub",
            source.rstrip("/") + "/",
            target_root,
        ],
        on_line=_on_line,
        check=False,
        dry_run=dry_run,
    )
    if rc == RSYNC_VANISHED:
        # files of the running system disappeared mid-copy (logs, sockets)
        logger.warning("rsync: some source files vanished during the copy (exit %s)", rc)
    elif rc != 0:
        raise RuntimeError(f"Command failed ({rc}): rsync to {target_root}")


def locate_squashfs(configured: Optional[str] = None) -> str:
    if configured:
        if not Path(configured).is_file():
            raise RuntimeError(f"SquashFS image not found at {configured}")
        return configured

    for candidate in SQUASHFS_CANDIDATES:
        if Path(candidate).is_file():
            logger.info("Found squashfs at %s", candidate)
            return candidate

    for root in SQUASHFS_SEARCH_ROOTS:
        r = Path(root)
        if not r.is_dir():
            continue
        for hit in r.rglob("filesystem.squashfs"):
            if hit.is_file():
                logger.info("Found squashfs at %s", str(hit))
                return str(hit)

    raise RuntimeError("Could not find filesystem.squashfs")


def count_squashfs_entries(image: str, *, dry_run: bool = False) -> int:
    r = run_cmd(["unsquashfs", "-l", image], dry_run=dry_run)
    return sum(1 for ln in r.stdout.splitlines() if ln.startswith("squashfs-root"))


def extract_squashfs(
    *,
    image: str,
    target_root: str,
    progress: Optional[ProgressFn] = None,
    dry_run: bool = False,
) -> None:
    total = count_squashfs_entries(image, dry_run=dry_run)
    logger.info("Total files to extract: %s", total)
    prefix = target_root.rstrip("/")
    state = {"count": 0}

    def _on_line(line: str) -> None:
        if not (line.startswith(prefix) or line.startswith(("created", "extracted"))):
            return
        state["count"] += 1
        n = state["count"]
        if progress is not None and total and n % 100 == 0:
            pct = min(100, n * 100 // total)
            progress(pct, f"Extracting: {n} of {total} files ({pct}%)...")

    stream_cmd(["unsquashfs", "-f", "-i", "-d", target_root, image], on_line=_on_line, dry_run=dry_run)
    if progress is not None:
        progress(100, "Extraction complete!")


def _copy_if_exists(src: Path, dst: Path, *, dry_run: bool) -> bool:
    if not src.exists():
        return False
    if dry_run:
        logger.info("Would copy %s -> %s", str(src), str(dst))
        return True
    dst.parent.mkdir(parents=True, exist_ok=True)
    if src.is_dir():
        shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)
    else:
        shutil.copy2(src, dst, follow_symlinks=False)
    return True


def seed_apt_config(target_root: str, *, host_root: str = "/", dry_run: bool = False) -> None:
    root = Path(target_root)
    host = Path(host_root)
    for rel in ("etc/apt", "var/lib/apt/lists/partial", "var/cache/apt/archives/partial"):
        if not dry_run:
            (root / rel).mkdir(parents=True, exist_ok=True)
    for rel in ("etc/apt/sources.list", "etc/apt/sources.list.d", "etc/apt/trusted.gpg", "etc/apt/trusted.gpg.d"):
        _copy_if_exists(host / rel, root / rel, dry_run=dry_run)


def copy_host_identity(target_root: str, *, hostname: str, host_root: str = "/", dry_run: bool = False) -> None:
    root = Path(target_root)
    host = Path(host_root)
    if not _copy_if_exists(host / "etc/hostname", root / "etc/hostname", dry_run=dry_run):
        write_file(target_root, "/etc/hostname", hostname + "\n", dry_run=dry_run)
    if not _copy_if_exists(host / "etc/hosts", root / "etc/hosts", dry_run=dry_run):
        write_file(target_root, "/etc/hosts", "127.0.0.1 localhost\n", dry_run=dry_run)
    for rel in HOST_IDENTITY_FILES:
        _copy_if_exists(host / rel, root / rel, dry_run=dry_run)


def create_device_nodes(target_root: str, *, dry_run: bool = False) -> None:
    for rel, mode, kind, major, minor in DEVICE_NODES:
        p = Path(target_root) / rel
        if p.exists():
            continue
        run_cmd(["mknod", "-m", mode, str(p), kind, str(major), str(minor)], check=False, dry_run=dry_run)


def copy_user_data(target_root: str, *, host_root: str = "/", dry_run: bool = False) -> List[str]:
    """Carry accounts, homes and sudo rules from the live system. Returns the users found."""

    root = Path(target_root)
    host = Path(host_root)

    for rel in ("etc/passwd", "etc/shadow", "etc/group", "etc/gshadow"):
        _copy_if_exists(host / rel, root / rel, dry_run=dry_run)

    users: List[str] = []
    home = host / "home"
    if home.is_dir():
        run_cmd(["mkdir", "-p", str(root / "home")], dry_run=dry_run)
        run_cmd(["rsync", "-a", f"{home}/", f"{root / 'home'}/"], dry_run=dry_run)
        users = sorted(p.name for p in home.iterdir() if p.is_dir())

    skel = host / "etc/skel"
    if skel.is_dir():
        run_cmd(["rsync", "-a", f"{skel}/", f"{root / 'etc/skel'}/"], dry_run=dry_run)

    run_cmd(["chmod", "755", str(root / "home")], check=False, dry_run=dry_run)
    for user in users:
        run_cmd(["chown", "-R", f"{user}:{user}", str(root / "home" / user)], check=False, dry_run=dry_run)

    _copy_if_exists(host / "etc/sudoers", root / "etc/sudoers", dry_run=dry_run)
    _copy_if_exists(host / "etc/sudoers.d", root / "etc/sudoers.d", dry_run=dry_run)
    return users


def minimal_system_install(
    *,
    target_root: str,
    hostname: str,
    suite: str,
    mirror: str,
    packages: Sequence[str],
    host_root: str = "/",
    dry_run: bool = False,
) -> None:
    seed_apt_config(target_root, host_root=host_root, dry_run=dry_run)
    debootstrap_rootfs(
        target_root=target_root,
        suite=suite,
        mirror=mirror,
        variant="minbase",
        include=packages,
        dry_run=dry_run,
    )
    copy_host_identity(target_root, hostname=hostname, host_root=host_root, dry_run=dry_run)
    write_file(target_root, "/etc/network/interfaces", NETWORK_INTERFACES, dry_run=dry_run)
    create_device_nodes(target_root, dry_run=dry_run)
    copy_user_data(target_root, host_root=host_root, dry_run=dry_run)


def _clear_dir(path: Path, *, keep: Sequence[str] = (), dry_run: bool) -> None:
    if not path.is_dir():
        return
    for child in path.iterdir():
        if child.name in keep:
            continue
        if dry_run:
            logger.info("Would remove %s", str(child))
        elif child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def slim_target(target_root: str, *, dry_run: bool = False) -> None:
    """Drop docs, extra locales, caches, stale kernels and desktop data from the target."""

    root = Path(target_root)
    for rel in ("usr/share/doc", "usr/share/man", "usr/share/info"):
        _clear_dir(root / rel, dry_run=dry_run)
    _clear_dir(root / "usr/share/locale", keep=("en_US",), dry_run=dry_run)
    for rel in ("var/cache/apt", "var/lib/apt/lists", "tmp", "var/tmp", "lib/firmware", "var/log/journal"):
        _clear_dir(root / rel, dry_run=dry_run)

    versions = kernel_versions(str(root / "boot"))
    if versions:
        current = versions[-1]
        for v in versions[:-1]:
            for name in (f"vmlinuz-{v}", f"initrd.img-{v}", f"System.map-{v}", f"config-{v}"):
                p = root / "boot" / name
                if p.exists():
                    if dry_run:
                        logger.info("Would remove %s", str(p))
                    else:
                        p.unlink()
        _clear_dir(root / "lib/modules", keep=(current,), dry_run=dry_run)

    for rel in (
        "usr/share/X11",
        "usr/share/xsessions",
        "usr/share/wayland-sessions",
        "usr/share/desktop-directories",
        "usr/share/applications",
    ):
        p = root / rel
        if p.is_dir():
            if dry_run:
                logger.info("Would remove %s", str(p))
            else:
                shutil.rmtree(p)
    logger.info("Target filesystem slimmed: %s", target_root)

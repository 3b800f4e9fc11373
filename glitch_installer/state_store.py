from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict

import yaml

from .lib.env import PATHS
from .lib.pkg import DEFAULT_MINIMAL_PACKAGES

logger = logging.getLogger(__name__)

# never persisted
_SECRET_KEYS = {"passphrase", "luks_passphrase"}


def _detect_format(path: Path) -> str:
    ext = path.suffix.lower().lstrip(".")
    if ext in {"json", "yaml", "yml"}:
        return ext
    # Default to JSON for unknown extensions.
    return "json"


def load_state(path: str) -> Dict[str, Any]:
    p = Path(path)
    if not p.exists():
        return {}

    fmt = _detect_format(p)
    data: Dict[str, Any]

    if fmt in {"yaml", "yml"}:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    else:
        data = json.loads(p.read_text(encoding="utf-8"))

    if not isinstance(data, dict):
        raise ValueError(f"State file must be an object/dict, got {type(data)}")

    return data


def _scrub(state: Dict[str, Any]) -> Dict[str, Any]:
    cfg = dict(state.get("config") or {})
    for k in _SECRET_KEYS:
        cfg.pop(k, None)
    return {**state, "config": cfg}


def save_state(path: str, state: Dict[str, Any]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    data = _scrub(state)
    fmt = _detect_format(p)
    if fmt in {"yaml", "yml"}:
        p.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    else:
        p.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def ensure_defaults(state: Dict[str, Any]) -> Dict[str, Any]:
    """Fill required keys with sane defaults (without overriding user values)."""

    state.setdefault("version", "1.0")
    state.setdefault("config", {})
    state.setdefault("execution", {})

    cfg = state["config"]
    cfg.setdefault("target_disk", None)
    # None: ask the frontend
    cfg.setdefault("encrypt", None)
    cfg.setdefault("install_mode", None)
    cfg.setdefault("frontend", "console")
    cfg.setdefault("hostname", "glitch")
    cfg.setdefault("luks_mapper", "glitch_luks")
    cfg.setdefault("target_mount", PATHS.target_mount)
    # Partition layout (MiB). root_start_mib None means "right after the ESP".
    cfg.setdefault("esp_start_mib", 1)
    cfg.setdefault("esp_end_mib", 101)
    cfg.setdefault("root_start_mib", None)
    cfg.setdefault("esp_label", "EFI-DEB")
    cfg.setdefault("root_label", "gLiTcH-Linux")
    cfg.setdefault("partition_wait_s", 10)
    # Population sources.
    cfg.setdefault("squashfs_image", None)
    cfg.setdefault("image_url", "https://glitchlinux.wtf/FILES/LUKS-BOOTLOADER-BIOS-UEFI-100MB.img")
    cfg.setdefault("image_path", PATHS.image_download)
    cfg.setdefault("exclude_file", PATHS.exclude_file)
    cfg.setdefault("debian_suite", "stable")
    cfg.setdefault("debian_mirror", "http://deb.debian.org/debian")
    cfg.setdefault("minimal_packages", list(DEFAULT_MINIMAL_PACKAGES))
    # Boot + system configuration.
    # slim_target None: on for minimal installs only. firmware None: detect efi|bios.
    cfg.setdefault("swap", "auto")
    cfg.setdefault("slim_target", None)
    cfg.setdefault("bootloader_id", "GRUB")
    cfg.setdefault("efi_removable", True)
    cfg.setdefault("firmware", None)
    # Interaction. auto_chroot None: ask the frontend.
    cfg.setdefault("auto_chroot", None)
    cfg.setdefault("cleanup", "ask")
    cfg.setdefault("install_host_dependencies", True)
    cfg.setdefault("assume_yes", False)
    cfg.setdefault("dry_run", False)

    exe = state["execution"]
    exe.setdefault("current_step", None)
    exe.setdefault("completed_steps", [])
    exe.setdefault("errors", [])
    exe.setdefault("warnings", [])
    exe.setdefault("mounts", {})
    exe.setdefault("decisions", {})
    exe.setdefault("temp_files", [])

    return state


def mark_step_completed(state: Dict[str, Any], step_id: str) -> None:
    exe = state.setdefault("execution", {})
    completed = exe.setdefault("completed_steps", [])
    if step_id not in completed:
        completed.append(step_id)


def is_step_completed(state: Dict[str, Any], step_id: str) -> bool:
    exe = state.get("execution") or {}
    completed = exe.get("completed_steps") or []
    return step_id in completed

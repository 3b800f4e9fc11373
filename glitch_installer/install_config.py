from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml

INSTALL_MODES = ("copy", "squashfs", "minimal", "image")
FRONTENDS = ("console", "zenity", "none")
CLEANUP_POLICIES = ("ask", "keep", "teardown")


def load_install_config(path: str) -> Dict[str, Any]:
    """Read an install config file (YAML or JSON, both parse as YAML)."""

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(path)

    if p.suffix.lower() not in {".yaml", ".yml", ".json"}:
        raise ValueError("install config must be YAML or JSON")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{p.name} must contain a mapping/object")

    # allow either a bare mapping or {config: {...}}
    if isinstance(raw.get("config"), dict):
        raw = raw["config"]
    return raw


def validate_config(cfg: Dict[str, Any]) -> None:
    mode = cfg.get("install_mode")
    # None: chosen interactively by 10_select_target
    if mode is not None and mode not in INSTALL_MODES:
        raise ValueError(f"config.install_mode must be one of {', '.join(INSTALL_MODES)}, got {mode!r}")
    frontend = cfg.get("frontend")
    if frontend not in FRONTENDS:
        raise ValueError(f"config.frontend must be one of {', '.join(FRONTENDS)}, got {frontend!r}")
    cleanup = cfg.get("cleanup")
    if cleanup not in CLEANUP_POLICIES:
        raise ValueError(f"config.cleanup must be one of {', '.join(CLEANUP_POLICIES)}, got {cleanup!r}")
    if cfg.get("swap") not in {"auto", "none"}:
        raise ValueError(f"config.swap must be 'auto' or 'none', got {cfg.get('swap')!r}")
    packages = cfg.get("minimal_packages")
    if not isinstance(packages, list):
        raise ValueError("config.minimal_packages must be a list of package names")

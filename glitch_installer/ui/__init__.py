from __future__ import annotations

from typing import Any, Dict

from .base import Frontend, InstallAborted, StaticFrontend
from .console import ConsoleFrontend
from .zenity import ZenityFrontend


def make_frontend(cfg: Dict[str, Any], *, log_path: str) -> Frontend:
    kind = cfg.get("frontend", "console")
    assume_yes = bool(cfg.get("assume_yes", False))
    if kind == "zenity":
        return ZenityFrontend(log_path=log_path, assume_yes=assume_yes)
    if kind == "none":
        return StaticFrontend(assume_yes=assume_yes)
    return ConsoleFrontend(assume_yes=assume_yes)


__all__ = [
    "ConsoleFrontend",
    "Frontend",
    "InstallAborted",
    "StaticFrontend",
    "ZenityFrontend",
    "make_frontend",
]

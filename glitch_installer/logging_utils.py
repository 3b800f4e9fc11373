from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

from .lib.env import PATHS

DEFAULT_LOG_PATH = PATHS.log_default
FALLBACK_LOG_PATHS = ["/tmp/glitch-installer.log"]


def _open_file_handler(candidates: List[str]) -> tuple[Optional[logging.Handler], Optional[str]]:
    for path in candidates:
        try:
            Path(os.path.dirname(path) or ".").mkdir(parents=True, exist_ok=True)
            return logging.FileHandler(path), path
        except OSError:
            continue
    return None, None


def configure_logging(
    log_path: str = DEFAULT_LOG_PATH,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Configure logging for an install run.

    The file log keeps every command line and decision. When the requested
    path is not writable (read-only live media) the log goes to /tmp, then
    to the working directory; the path actually used is returned so it can be
    shown in error dialogs and recorded in state.
    """

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(root, "_glitch_configured", False):
        return getattr(root, "_glitch_log_path", log_path)

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    file_handler, chosen_path = _open_file_handler(
        [log_path, *FALLBACK_LOG_PATHS, str(Path.cwd() / "glitch-installer.log")]
    )
    if file_handler is None or chosen_path is None:
        raise RuntimeError(f"No writable location for the installer log (tried {log_path})")
    # the file always gets command output
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setLevel(level)
        console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        root.addHandler(console)

    setattr(root, "_glitch_configured", True)
    setattr(root, "_glitch_log_path", chosen_path)

    logging.getLogger(__name__).info("Logging initialized (requested=%s, actual=%s)", log_path, chosen_path)
    return chosen_path

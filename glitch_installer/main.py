from __future__ import annotations

import argparse
import logging
from typing import Any, Dict, Optional

from .install_config import CLEANUP_POLICIES, FRONTENDS, INSTALL_MODES, load_install_config, validate_config
from .lib.env import PATHS
from .lib.storage import release_target
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .pipeline import run_pipeline
from .state_store import ensure_defaults, load_state, save_state
from .steps import (
    ConfigureSystemStep,
    FinalizeStep,
    MountTargetStep,
    PopulateRootfsStep,
    PreflightStep,
    PrepareChrootStep,
    PrepareDiskStep,
    SelectTargetStep,
    SlimTargetStep,
)
from .ui import Frontend, InstallAborted, make_frontend

logger = logging.getLogger(__name__)


DEFAULT_STATE_PATH = PATHS.state_default


def build_steps(frontend: Frontend):
    return [
        PreflightStep(frontend),
        SelectTargetStep(frontend),
        PrepareDiskStep(frontend),
        MountTargetStep(),
        PopulateRootfsStep(frontend),
        ConfigureSystemStep(),
        SlimTargetStep(),
        PrepareChrootStep(frontend),
        FinalizeStep(frontend),
    ]


def apply_cleanup(state: Dict[str, Any], frontend: Frontend) -> str:
    """Keep or tear down what the run left mounted/open. Returns the policy applied."""

    cfg = state.get("config") or {}
    exe = state.setdefault("execution", {})
    mounts = exe.get("mounts") or {}
    temp_files = list(exe.get("temp_files") or [])

    if not mounts and not temp_files:
        return "none"

    target_mount = str(mounts.get("target_root") or cfg.get("target_mount") or PATHS.target_mount)
    mapper = mounts.get("luks_mapper") or (cfg.get("luks_mapper") if cfg.get("encrypt") else None)

    policy = cfg.get("cleanup", "ask")
    if policy == "ask":
        policy = frontend.choose(
            "What should happen to the installed system's mounts?",
            [
                ("keep", "Keep everything mounted (inspect or chroot manually)"),
                ("teardown", "Unmount everything and close the encrypted volume"),
            ],
            default="keep",
        )
    if policy != "teardown":
        policy = "keep"

    if policy == "teardown":
        release_target(
            target_mount=target_mount,
            luks_mapper=mapper,
            temp_files=temp_files,
            dry_run=bool(cfg.get("dry_run", False)),
        )
        exe["mounts"] = {}
        exe["temp_files"] = []
    else:
        manual = [f"sudo umount -R {target_mount}"]
        if mapper:
            manual.append(f"sudo cryptsetup close {mapper}")
        logger.info("Leaving %s mounted. To clean up later: %s", target_mount, "; ".join(manual))

    exe.setdefault("decisions", {})["cleanup"] = policy
    return policy


def run(
    *,
    state_path: str = DEFAULT_STATE_PATH,
    log_path: str = DEFAULT_LOG_PATH,
    config_path: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    start_at: Optional[str] = None,
    stop_after: Optional[str] = None,
    force: bool = False,
    verbose: bool = False,
    frontend: Optional[Frontend] = None,
) -> Dict[str, Any]:
    """Run the installer pipeline, persisting state for resume.

    Config precedence: built-in defaults, then the saved state, then the
    config file, then ``overrides`` (CLI flags; None values are ignored).
    """

    actual_log_path = configure_logging(log_path=log_path, level=logging.DEBUG if verbose else logging.INFO)

    state = ensure_defaults(load_state(state_path))
    cfg = state["config"]
    if config_path:
        cfg.update(load_install_config(config_path))
    cfg.update({k: v for k, v in (overrides or {}).items() if v is not None})
    validate_config(cfg)

    paths = state.setdefault("execution", {}).setdefault("paths", {})
    paths["log_path_requested"] = log_path
    paths["log_path_actual"] = actual_log_path

    if frontend is None:
        frontend = make_frontend(cfg, log_path=actual_log_path)
    fe = frontend

    def _announce(step) -> None:
        fe.progress(step.progress, f"{step.title}...")

    try:
        result = run_pipeline(
            state=state,
            steps=build_steps(fe),
            start_at=start_at,
            stop_after=stop_after,
            force=force,
            on_step=_announce,
        )
        state = result.state
        state.setdefault("execution", {}).setdefault("summary", {})["ran_steps"] = result.ran_steps
        state.setdefault("execution", {}).setdefault("summary", {})["skipped_steps"] = result.skipped_steps
        return state
    except InstallAborted as e:
        logger.info("Aborted: %s", e)
        fe.info(str(e), title="Installation cancelled")
        raise
    except Exception as e:
        logger.exception("Installer failed")
        state.setdefault("execution", {}).setdefault("errors", []).append(
            {
                "step": (state.get("execution") or {}).get("current_step"),
                "error": str(e),
            }
        )
        fe.error(f"Installation failed: {e}")
        raise
    finally:
        try:
            apply_cleanup(state, fe)
        finally:
            save_state(state_path, state)
            fe.close()


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="glitch-installer", description="Install Glitch Linux to a disk")
    p.add_argument("--config", default=None, help="Install config (yaml|json)")
    p.add_argument("--state", default=DEFAULT_STATE_PATH, help="Path to installer state (json|yaml)")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to installer log")
    p.add_argument("--device", dest="target_disk", default=None, help="Target disk, e.g. /dev/sda")
    p.add_argument("--mode", dest="install_mode", choices=INSTALL_MODES, default=None, help="Install mode")
    enc = p.add_mutually_exclusive_group()
    enc.add_argument("--encrypt", dest="encrypt", action="store_true", default=None, help="Encrypt root with LUKS")
    enc.add_argument("--no-encrypt", dest="encrypt", action="store_false", help="Plain ext4 root")
    p.add_argument("--frontend", choices=FRONTENDS, default=None, help="Dialog frontend")
    p.add_argument("--yes", dest="assume_yes", action="store_true", default=None, help="Answer yes to confirmations")
    p.add_argument("--dry-run", action="store_true", default=None, help="Log commands without running them")
    p.add_argument("--cleanup", choices=CLEANUP_POLICIES, default=None, help="What to do with mounts on exit")
    chroot = p.add_mutually_exclusive_group()
    chroot.add_argument("--auto-chroot", dest="auto_chroot", action="store_true", default=None)
    chroot.add_argument("--no-auto-chroot", dest="auto_chroot", action="store_false")
    p.add_argument("--start-at", default=None, help="Start at step_id (e.g. 40_populate_rootfs)")
    p.add_argument("--stop-after", default=None, help="Stop after step_id")
    p.add_argument("--force", action="store_true", help="Re-run steps even if marked completed")
    p.add_argument("-v", "--verbose", action="store_true", help="Show debug output on the console")

    args = p.parse_args(argv)

    overrides = {
        "target_disk": args.target_disk,
        "install_mode": args.install_mode,
        "encrypt": args.encrypt,
        "frontend": args.frontend,
        "assume_yes": args.assume_yes,
        "dry_run": args.dry_run,
        "cleanup": args.cleanup,
        "auto_chroot": args.auto_chroot,
    }

    try:
        run(
            state_path=args.state,
            log_path=args.log,
            config_path=args.config,
            overrides=overrides,
            start_at=args.start_at,
            stop_after=args.stop_after,
            force=args.force,
            verbose=args.verbose,
        )
    except InstallAborted:
        return 0
    except Exception as e:
        # already logged in run() once logging is up
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

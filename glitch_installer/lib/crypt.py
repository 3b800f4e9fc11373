from __future__ import annotations

import logging

from .command import run_cmd

logger = logging.getLogger(__name__)


def mapper_path(name: str) -> str:
    return f"/dev/mapper/{name}"


def luks_format(part: str, passphrase: str, *, dry_run: bool = False) -> None:
    """Create a LUKS1 container (GRUB's cryptodisk reads LUKS1 headers)."""

    run_cmd(
        ["cryptsetup", "luksFormat", "--type", "luks1", "--batch-mode", "--key-file=-", part],
        input_text=passphrase,
        dry_run=dry_run,
    )


def luks_open(part: str, name: str, passphrase: str, *, dry_run: bool = False) -> str:
    run_cmd(
        ["cryptsetup", "open", "--key-file=-", part, name],
        input_text=passphrase,
        dry_run=dry_run,
    )
    return mapper_path(name)


def luks_resize(name: str, passphrase: str, *, dry_run: bool = False) -> None:
    run_cmd(["cryptsetup", "resize", "--key-file=-", name], input_text=passphrase, dry_run=dry_run)


def luks_is_open(name: str, *, dry_run: bool = False) -> bool:
    if dry_run:
        return False
    r = run_cmd(["cryptsetup", "status", name], check=False)
    return r.returncode == 0


def luks_close(name: str, *, dry_run: bool = False) -> None:
    if luks_is_open(name, dry_run=dry_run):
        run_cmd(["cryptsetup", "close", name], check=False, dry_run=dry_run)
        logger.info("Closed LUKS mapping %s", name)

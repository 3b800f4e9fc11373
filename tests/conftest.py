from __future__ import annotations

from typing import Callable, Dict, List

import pytest

from glitch_installer.lib import block, chroot, crypt, pkg, rootfs, storage
from glitch_installer.lib.command import CmdResult

# every module that imported run_cmd by name
_PATCHED = (block, chroot, crypt, pkg, rootfs, storage)


class CommandRecorder:
    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.inputs: List[str] = []
        self.stdout: Dict[str, str] = {}
        self.returncodes: Dict[str, int] = {}

    def respond(self, prefix: str, *, stdout: str = "", returncode: int = 0) -> None:
        """Canned output for commands whose joined argv starts with ``prefix``."""

        self.stdout[prefix] = stdout
        self.returncodes[prefix] = returncode

    def _lookup(self, table: Dict[str, object], joined: str, default):
        for prefix, value in table.items():
            if joined.startswith(prefix):
                return value
        return default

    def __call__(self, argv, *, check=True, env=None, cwd=None, input_text=None, log_output=True, dry_run=False) -> CmdResult:
        argv = list(argv)
        self.calls.append(argv)
        if input_text is not None:
            self.inputs.append(input_text)
        joined = " ".join(argv)
        rc = int(self._lookup(self.returncodes, joined, 0))
        if check and rc != 0:
            raise RuntimeError(f"Command failed ({rc}): {joined}")
        return CmdResult(argv=argv, returncode=rc, stdout=str(self._lookup(self.stdout, joined, "")), stderr="")

    def joined(self) -> List[str]:
        return [" ".join(c) for c in self.calls]

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]


@pytest.fixture
def commands(monkeypatch) -> CommandRecorder:
    rec = CommandRecorder()
    for mod in _PATCHED:
        monkeypatch.setattr(mod, "run_cmd", rec)
    return rec


@pytest.fixture
def make_boot(tmp_path) -> Callable[..., str]:
    def _make(*names: str) -> str:
        boot = tmp_path / "target" / "boot"
        boot.mkdir(parents=True, exist_ok=True)
        for name in names:
            (boot / name).write_text("", encoding="utf-8")
        return str(tmp_path / "target")

    return _make

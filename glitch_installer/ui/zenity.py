from __future__ import annotations

import logging
import subprocess
from typing import List, Optional, Sequence

from ..lib.command import run_cmd
from .base import Choice, InstallAborted

logger = logging.getLogger(__name__)

WIDTH = "450"


class ZenityFrontend:
    """GTK dialogs through the zenity command line tool."""

    def __init__(self, *, log_path: str, title: str = "Glitch Linux Installer", assume_yes: bool = False) -> None:
        self.log_path = log_path
        self.assume_yes = assume_yes
        self.title = title
        self._progress: Optional[subprocess.Popen] = None

    def _zenity(self, args: List[str], *, log_output: bool = True):
        return run_cmd(["zenity", *args], check=False, log_output=log_output)

    def info(self, text: str, *, title: str = "Glitch Installer") -> None:
        self._zenity(["--info", f"--title={title}", f"--text={text}", f"--width={WIDTH}"])

    def warn(self, text: str) -> None:
        logger.warning(text)
        self._zenity(["--warning", f"--title={self.title}", f"--text={text}", f"--width={WIDTH}"])

    def error(self, text: str) -> None:
        logger.error(text)
        self.close()
        self._zenity(
            [
                "--error",
                "--title=Installation Error",
                f"--text={text}\n\nCheck the log file: {self.log_path}",
                f"--width={WIDTH}",
            ]
        )

    def confirm(self, question: str, *, default: bool = False, require_word: Optional[str] = None) -> bool:
        if self.assume_yes:
            logger.info("%s -> yes (assumed)", question)
            return True
        # require_word is ignored: clicking Yes in the dialog is already explicit
        r = self._zenity(["--question", f"--title={self.title}", f"--text={question}", f"--width={WIDTH}"])
        return r.returncode == 0

    def choose(self, title: str, choices: Sequence[Choice], *, default: Optional[str] = None) -> str:
        if not choices:
            raise RuntimeError(f"Nothing to choose for: {title}")
        selected = default if default is not None else choices[0][0]
        rows: List[str] = []
        for value, label in choices:
            rows += ["TRUE" if value == selected else "FALSE", value, label]
        r = self._zenity(
            [
                "--list",
                "--radiolist",
                f"--title={self.title}",
                f"--text={title}",
                "--column=Select",
                "--column=Value",
                "--column=Description",
                "--hide-column=2",
                "--print-column=2",
                "--height=300",
                f"--width={WIDTH}",
                *rows,
            ]
        )
        answer = r.stdout.strip()
        if r.returncode != 0 or not answer:
            raise InstallAborted(f"No selection for: {title}")
        return answer

    def ask_passphrase(self, prompt: str, *, confirm: bool = True) -> str:
        for _ in range(3):
            first = self._password(prompt)
            if not first:
                continue
            if not confirm or self._password("Verify passphrase") == first:
                return first
            self._zenity(["--warning", f"--title={self.title}", "--text=Passphrases do not match."])
        raise RuntimeError("No matching passphrase entered")

    def _password(self, prompt: str) -> str:
        r = self._zenity(["--password", f"--title={prompt}"], log_output=False)
        if r.returncode != 0:
            raise InstallAborted("Passphrase dialog cancelled")
        return r.stdout.rstrip("\n")

    def progress(self, percent: int, message: str) -> None:
        if self._progress is None:
            self._progress = subprocess.Popen(
                [
                    "zenity",
                    "--progress",
                    f"--title={self.title}",
                    "--text=Preparing for installation...",
                    "--percentage=0",
                    "--auto-close",
                    f"--width={WIDTH}",
                ],
                stdin=subprocess.PIPE,
                text=True,
            )
        if self._progress.poll() is not None:
            # dialog closed: either the user hit Cancel or it auto-closed at 100
            if percent < 100:
                raise InstallAborted("Installation cancelled from the progress dialog")
            return
        assert self._progress.stdin is not None
        try:
            self._progress.stdin.write(f"{max(0, min(100, percent))}\n# {message}\n")
            self._progress.stdin.flush()
        except BrokenPipeError as e:
            raise InstallAborted("Installation cancelled from the progress dialog") from e

    def close(self) -> None:
        if self._progress is None:
            return
        p = self._progress
        self._progress = None
        if p.stdin is not None:
            try:
                p.stdin.close()
            except BrokenPipeError:
                pass
        try:
            p.wait(timeout=5)
        except subprocess.TimeoutExpired:
            p.terminate()

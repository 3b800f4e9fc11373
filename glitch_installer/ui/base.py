from __future__ import annotations

import os
from typing import List, Optional, Protocol, Sequence, Tuple

# (value, label)
Choice = Tuple[str, str]

PASSPHRASE_ENV = "GLITCH_LUKS_PASSPHRASE"


class InstallAborted(Exception):
    """The user declined to continue; not an error."""


class Frontend(Protocol):
    def info(self, text: str, *, title: str = "Glitch Installer") -> None:
        ...

    def warn(self, text: str) -> None:
        ...

    def error(self, text: str) -> None:
        ...

    def confirm(self, question: str, *, default: bool = False, require_word: Optional[str] = None) -> bool:
        """Yes/no question. With ``require_word`` only that exact answer counts as yes."""
        ...

    def choose(self, title: str, choices: Sequence[Choice], *, default: Optional[str] = None) -> str:
        ...

    def ask_passphrase(self, prompt: str, *, confirm: bool = True) -> str:
        ...

    def progress(self, percent: int, message: str) -> None:
        ...

    def close(self) -> None:
        ...


class StaticFrontend:
    """Non-interactive frontend: every answer comes from config or the environment."""

    def __init__(self, *, assume_yes: bool = False, passphrase: Optional[str] = None) -> None:
        self.assume_yes = assume_yes
        self._passphrase = passphrase
        self.messages: List[Tuple[str, str]] = []

    def info(self, text: str, *, title: str = "Glitch Installer") -> None:
        self.messages.append(("info", text))

    def warn(self, text: str) -> None:
        self.messages.append(("warn", text))

    def error(self, text: str) -> None:
        self.messages.append(("error", text))

    def confirm(self, question: str, *, default: bool = False, require_word: Optional[str] = None) -> bool:
        return True if self.assume_yes else default

    def choose(self, title: str, choices: Sequence[Choice], *, default: Optional[str] = None) -> str:
        if default is None:
            raise RuntimeError(f"Non-interactive run needs a configured value for: {title}")
        return default

    def ask_passphrase(self, prompt: str, *, confirm: bool = True) -> str:
        passphrase = self._passphrase or os.environ.get(PASSPHRASE_ENV)
        if not passphrase:
            raise RuntimeError(f"Encryption passphrase required: set {PASSPHRASE_ENV} for non-interactive runs")
        return passphrase

    def progress(self, percent: int, message: str) -> None:
        self.messages.append(("progress", f"{percent} {message}"))

    def close(self) -> None:
        pass

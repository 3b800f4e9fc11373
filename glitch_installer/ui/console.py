from __future__ import annotations

import getpass
import logging
from typing import Callable, Optional, Sequence

from .base import Choice

logger = logging.getLogger(__name__)


class ConsoleFrontend:
    """Terminal prompts via input()/getpass."""

    def __init__(
        self,
        *,
        assume_yes: bool = False,
        input_fn: Callable[[str], str] = input,
        getpass_fn: Callable[[str], str] = getpass.getpass,
        print_fn: Callable[[str], None] = print,
    ) -> None:
        self.assume_yes = assume_yes
        self._input = input_fn
        self._getpass = getpass_fn
        self._print = print_fn

    def info(self, text: str, *, title: str = "Glitch Installer") -> None:
        self._print(text)

    def warn(self, text: str) -> None:
        logger.warning(text)

    def error(self, text: str) -> None:
        logger.error(text)

    def confirm(self, question: str, *, default: bool = False, require_word: Optional[str] = None) -> bool:
        if self.assume_yes:
            logger.info("%s -> yes (assumed)", question)
            return True
        if require_word is not None:
            answer = self._input(f"{question} (type '{require_word}' to confirm): ").strip()
            return answer == require_word
        hint = "[Y/n]" if default else "[y/N]"
        answer = self._input(f"{question} {hint} ").strip().lower()
        if not answer:
            return default
        return answer in {"y", "yes"}

    def choose(self, title: str, choices: Sequence[Choice], *, default: Optional[str] = None) -> str:
        self._print(f"\n{title}:")
        for i, (_, label) in enumerate(choices, start=1):
            self._print(f"{i}) {label}")
        answer = self._input(f"Choose [1-{len(choices)}]: ").strip()
        if answer.isdigit() and 1 <= int(answer) <= len(choices):
            return choices[int(answer) - 1][0]
        values = [v for v, _ in choices]
        if answer in values:
            return answer
        fallback = default if default is not None else values[0]
        logger.warning("Invalid choice %r, using %s", answer, fallback)
        return fallback

    def ask_passphrase(self, prompt: str, *, confirm: bool = True) -> str:
        for _ in range(3):
            first = self._getpass(f"{prompt}: ")
            if not first:
                self._print("Passphrase must not be empty.")
                continue
            if not confirm or self._getpass("Verify passphrase: ") == first:
                return first
            self._print("Passphrases do not match.")
        raise RuntimeError("No matching passphrase entered")

    def progress(self, percent: int, message: str) -> None:
        logger.info("[%3d%%] %s", percent, message)

    def close(self) -> None:
        pass

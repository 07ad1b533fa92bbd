"""
Blocking line prompts.

``Prompter`` turns any line reader into a request/response call: ``ask``
blocks the calling thread until one line has been read.
"""

from typing import Callable, Optional

from approtator.errors import UserAbortError
from approtator.log import console

CONFIRM_ANSWERS = ("y", "yes")


class Prompter:
    def __init__(self, reader: Optional[Callable[[str], str]] = None):
        self._reader = reader or console.input
        self._closed = False

    def _read(self, question: str) -> str:
        if self._closed:
            raise RuntimeError("prompter is closed")
        return self._reader(question).rstrip("\r\n")

    def ask(self, question: str) -> str:
        return self._read(question).strip()

    def require_confirmation(self, question: str):
        """Proceed only on an exact "y" or "yes"; anything else aborts."""
        answer = self._read(question)
        if answer not in CONFIRM_ANSWERS:
            raise UserAbortError(answer)

    def close(self):
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

from __future__ import annotations

import logging
import sys
from typing import List, Optional, Protocol, TextIO

logger = logging.getLogger(__name__)


class Confirmation(Protocol):
    """Blocks until the operator confirms a manual step."""

    def confirm(self, prompt: str) -> bool:
        ...


class StdinConfirmation:
    """Reads one line from stdin. End of input counts as "not confirmed"."""

    def __init__(self, stream: Optional[TextIO] = None, out: Optional[TextIO] = None) -> None:
        self._stream = stream
        self._out = out

    def confirm(self, prompt: str) -> bool:
        stream = self._stream or sys.stdin
        out = self._out or sys.stdout
        out.write(prompt + "\n")
        out.flush()
        line = stream.readline()
        if line == "":
            logger.warning("No operator input available (end of input)")
            return False
        return True


class PresetConfirmation:
    def __init__(self, answer: bool = True) -> None:
        self.answer = answer
        self.prompts: List[str] = []

    def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.answer

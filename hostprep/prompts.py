"""Console questions asked during interactive runs."""
import sys
from typing import List, Optional, Protocol

import typer


class Prompt(Protocol):
    """What the bootstrap needs from a human."""

    def ask(self, text: str, default: Optional[str] = None) -> str:
        ...

    def secret(self, text: str) -> str:
        ...

    def confirm(self, text: str, default: bool = False) -> bool:
        ...

    def read_lines(self) -> List[str]:
        ...


class TerminalPrompt:
    """Blocking prompts on the controlling terminal."""

    def ask(self, text: str, default: Optional[str] = None) -> str:
        return typer.prompt(text, default=default or "", show_default=bool(default))

    def secret(self, text: str) -> str:
        # Empty answers come back as "" so the caller can report them
        return typer.prompt(text, default="", hide_input=True, show_default=False)

    def confirm(self, text: str, default: bool = False) -> bool:
        return typer.confirm(text, default=default)

    def read_lines(self) -> List[str]:
        """Read lines until an empty line or end of input."""
        lines = []
        for line in sys.stdin:
            line = line.rstrip("\n")
            if not line:
                break
            lines.append(line)
        return lines

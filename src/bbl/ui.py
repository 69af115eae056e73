"""
bbl.ui — Operator-facing output.

Step lines, plain lines, progress dots and yes/no prompts go to the
operator's terminal. Diagnostics go through the stdlib ``logging`` module
instead (see bbl.cli).
"""

from __future__ import annotations

import sys
from typing import TextIO


class Logger:
    def __init__(self, stdout: TextIO | None = None, stdin: TextIO | None = None) -> None:
        self._stdout = stdout or sys.stdout
        self._stdin = stdin or sys.stdin
        self._mid_line = False

    def _write(self, text: str) -> None:
        self._stdout.write(text)
        self._stdout.flush()

    def _end_line(self) -> None:
        if self._mid_line:
            self._write("\n")
            self._mid_line = False

    def step(self, message: str) -> None:
        self._end_line()
        self._write(f"step: {message}\n")

    def dot(self) -> None:
        self._write(".")
        self._mid_line = True

    def println(self, message: str) -> None:
        self._end_line()
        self._write(f"{message}\n")

    def prompt(self, message: str) -> bool:
        """Ask a yes/no question; anything but y/yes is a no."""
        self._end_line()
        self._write(f"{message} (y/N): ")
        answer = self._stdin.readline().strip().lower()
        return answer in {"y", "yes"}

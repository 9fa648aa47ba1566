"""Progress messages written to standard error."""

from __future__ import annotations

import os
import sys
from typing import Callable, TypeVar

T = TypeVar("T")

_BULLET = "•"
_CHECK = "✓"

_BOLD = "1"
_RED = "31"
_GREEN = "32"
_CYAN = "36"


def _colors_enabled(stream) -> bool:
    if os.environ.get("CLICOLOR_FORCE", "0") != "0":
        return True
    if "NO_COLOR" in os.environ:
        return False
    if os.environ.get("CLICOLOR") == "0":
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


def _style(text: str, *codes: str) -> str:
    if not _colors_enabled(sys.stderr):
        return text
    return f"\x1b[{';'.join(codes)}m{text}\x1b[0m"


def _emit(line: str) -> None:
    print(line, file=sys.stderr)


def handle_step(msg: str, func: Callable[[], T]) -> T:
    """Announce a step, run ``func`` and report whether it succeeded."""
    bullet = _style(_BULLET, _BOLD, _CYAN)
    _emit(f"{bullet} {msg}")
    try:
        result = func()
    except BaseException:
        _emit(f"{bullet} {_style('failed', _BOLD, _RED)}\n")
        raise
    _emit(f"{bullet} {_style('done', _BOLD, _GREEN)}\n")
    return result


def step(msg: str) -> None:
    """Announce a step."""
    _emit(f"{_style(_BULLET, _BOLD, _CYAN)} {msg}")


def success(msg: str) -> None:
    """Announce a successful outcome."""
    _emit(f"{_style(_CHECK, _BOLD, _GREEN)} {msg}")
"""Rich Console factory and theme for dotoring output.

Consoles render to a StringIO buffer so formatting stays a pure
``ServiceResult -> str`` function. In non-TTY environments (tests, pipes)
Rich disables color codes on its own.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

DOTO_THEME = Theme(
    {
        "doto.ok": "bold green",
        "doto.error": "bold red",
        "doto.warning": "bold yellow",
        "doto.op": "bold cyan",
        "doto.key": "dim",
        "doto.id": "bold blue",
        "doto.kind.lead": "magenta",
        "doto.kind.d1": "yellow",
        "doto.past": "dim strike",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer."""
    return Console(
        file=StringIO(),
        theme=DOTO_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_kind(kind: str) -> str:
    return f"doto.kind.{kind}" if kind in ("lead", "d1") else ""

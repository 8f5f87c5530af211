"""Subcommand modules for the dotoring diagnostics CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register command groups on the root CLI group (deferred imports keep --help fast)."""
    from dotoring.commands.schedule import schedule

    cli.add_command(schedule)

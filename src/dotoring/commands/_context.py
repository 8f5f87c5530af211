"""AppContext — shared Click context for all commands.

Created once by the root CLI group and passed to subcommands via
``@click.pass_obj``. The local database is opened lazily so ``--help``
and pure commands (``plan``) never touch disk.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from dotoring.output.formatters import format_result

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from dotoring.config.settings import DotoringSettings
    from dotoring.infrastructure.kv_store import SqliteKeyValueStore
    from dotoring.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy."""

    def __init__(self, settings: DotoringSettings) -> None:
        self.settings = settings
        self._engine: Engine | None = None
        self._kv: SqliteKeyValueStore | None = None

        from dotoring.config.logging import configure_logging

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)

        if settings.verbose:
            from dotoring.services.telemetry import enable_telemetry

            enable_telemetry()

    @property
    def kv(self) -> SqliteKeyValueStore:
        """Key-value store over ``{data_dir}/dotoring.db`` (opened on first access)."""
        if self._kv is None:
            from dotoring.infrastructure.database.engine import init_database
            from dotoring.infrastructure.kv_store import SqliteKeyValueStore

            self._engine = init_database(self.settings.data_dir)
            self._kv = SqliteKeyValueStore(self._engine)
        return self._kv

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._kv = None

    def emit(self, result: ServiceResult) -> None:
        """Print a ServiceResult; failures go to stderr with exit code 1."""
        output = format_result(result, json_output=self.settings.json_output)
        if result.ok:
            click.echo(output)
            if not self.settings.json_output:
                for warning in result.warnings:
                    click.echo(f"WARNING: {warning}", err=True)
        else:
            click.echo(output, err=True)
            raise SystemExit(1)

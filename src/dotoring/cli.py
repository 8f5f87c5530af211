"""Root CLI group for dotoring with global flags and command registration."""

from __future__ import annotations

import click

from dotoring import __version__
from dotoring.commands import register_commands
from dotoring.commands._base import DotoGroup
from dotoring.commands._context import AppContext
from dotoring.config.settings import ConfigError, DotoringSettings


@click.group(cls=DotoGroup, invoke_without_command=True)
@click.version_option(version=__version__, prog_name="dotoring")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging and telemetry spans.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
) -> None:
    """dotoring — coupon expiry reminder diagnostics."""
    ctx.ensure_object(dict)
    try:
        settings = DotoringSettings.load(
            config_path=config_path,
            json_output=json_output,
            verbose=verbose,
            log_json=log_json,
        )
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


register_commands(cli)

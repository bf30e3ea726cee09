"""hookguard CLI entry point."""

import click

from hookguard.logging_setup import configure_logging


@click.group()
@click.option("--log-level", default="warn", help="Logging level (error, warn, info, debug).")
def cli(log_level: str):
    """hookguard: lifecycle hook and validation rule tooling."""
    configure_logging(log_level)


# Register subcommand groups
from hookguard.cli.config_cmd import config  # noqa: E402
from hookguard.cli.rules_cmd import rules  # noqa: E402

cli.add_command(config)
cli.add_command(rules)

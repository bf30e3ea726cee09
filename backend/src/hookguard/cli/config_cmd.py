"""Configuration CLI commands: show and check."""

from pathlib import Path

import click
import yaml

from hookguard.config import HookConfigManager, load_config_file
from hookguard.exceptions import ConfigurationError


@click.group()
def config():
    """Hook configuration commands."""
    pass


@config.command("show")
@click.option(
    "--file",
    "config_file",
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Configuration file to load instead of the environment defaults.",
)
def show(config_file: Path | None):
    """Print the effective configuration as YAML."""
    try:
        manager = load_config_file(config_file) if config_file else HookConfigManager()
    except (ConfigurationError, yaml.YAMLError) as e:
        click.echo(click.style(f"Invalid configuration: {e}", fg="red"), err=True)
        raise SystemExit(1)
    click.echo(yaml.safe_dump(manager.to_dict(), sort_keys=False).rstrip())


@config.command("check")
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def check(config_file: Path):
    """Validate a configuration file."""
    try:
        manager = load_config_file(config_file)
    except (ConfigurationError, yaml.YAMLError) as e:
        click.echo(click.style(f"Invalid configuration: {e}", fg="red"), err=True)
        raise SystemExit(1)

    categories = manager.to_dict()["contentCategories"]
    click.echo(f"Environment: {manager.environment or 'none'}")
    click.echo(f"Category overrides: {len(categories)}")
    for name in categories:
        click.echo(f"  ✓ {name}")
    click.echo(click.style("\nConfiguration is valid.", fg="green", bold=True))

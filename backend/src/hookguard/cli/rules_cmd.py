"""Rule manifest CLI commands."""

from pathlib import Path

import click
import yaml

from hookguard.exceptions import ConfigurationError
from hookguard.validation.loader import check_manifest, load_manifest


@click.group()
def rules():
    """Validation rule commands."""
    pass


@rules.command("check")
@click.argument("manifest_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def check(manifest_file: Path):
    """Check a rule manifest and print the execution order per category."""
    try:
        manifest = load_manifest(manifest_file)
    except (ConfigurationError, yaml.YAMLError) as e:
        click.echo(click.style(f"Invalid manifest: {e}", fg="red"), err=True)
        raise SystemExit(1)

    report = check_manifest(manifest)
    for error in report.errors:
        click.echo(click.style(error, fg="red"))
    if not report.valid:
        click.echo(click.style(f"\n{len(report.errors)} error(s) found", fg="red", bold=True))
        raise SystemExit(1)

    for category, order in report.execution_order.items():
        click.echo(f"{category}:")
        for position, rule_id in enumerate(order, start=1):
            click.echo(f"  {position}. {rule_id}")
    click.echo(click.style("\nManifest is valid.", fg="green", bold=True))

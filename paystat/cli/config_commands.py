"""Config CLI commands for Pay Stat.

- config: settings.json (default country, data dir) and country rate files
"""

import click
import json
import os
from pathlib import Path

from pydantic import ValidationError

from paystat.sdk import (
    get_config_dir,
    get_settings_path,
    get_data_path,
    get_country_config_path,
    load_settings,
    get_setting,
    set_setting,
    load_country_config,
    load_country_config_file,
    find_config_errors,
    ConfigNotFoundError,
    ConfigurationError,
)


@click.group()
def config():
    """Manage settings (settings.json) and country rate configuration.

    Country files live in countries/<CC>.yaml under the config directory
    and hold statutory types with their rate bands, relief rules, relief
    schemes and tax settings.
    """
    pass


@config.command("path")
def config_path():
    """Show configuration and data paths."""
    click.echo("Configuration paths:")
    click.echo()
    env_path = os.environ.get("PAY_STAT_CONFIG_PATH")
    if env_path:
        click.echo(f"  PAY_STAT_CONFIG_PATH: {env_path}")
    click.echo(f"  Config dir:    {get_config_dir()}")
    click.echo(f"  Settings file: {get_settings_path()}")
    click.echo(f"  Data dir:      {get_data_path()}")

    country = get_setting("default_country")
    if country:
        click.echo(f"  Country file:  {get_country_config_path(country)} (default country {country})")


@config.command("show")
def config_show():
    """Show current settings (settings.json)."""
    settings_path = get_settings_path()
    try:
        settings = load_settings().model_dump(exclude_none=True)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    if not settings:
        click.echo(f"# No settings configured yet")
        click.echo(f"# Settings file: {settings_path}")
        return

    click.echo(f"# Settings: {settings_path}")
    click.echo()
    click.echo(json.dumps(settings, indent=2))


@config.command("set-country")
@click.argument("country")
def config_set_country(country):
    """Set the default country code used when a request names none."""
    code = country.strip().upper()
    try:
        settings_file = set_setting("default_country", code)
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    click.echo(f"Set default_country = {code}")
    click.echo(f"Saved to: {settings_file}")

    if not get_country_config_path(code).exists():
        click.echo(click.style(
            f"Warning: {get_country_config_path(code)} does not exist yet", fg="yellow"
        ))


@config.command("validate")
@click.argument("country", required=False)
@click.option("--file", "config_file", type=click.Path(exists=True, path_type=Path),
              help="Validate this country file instead of the configured one.")
def config_validate(country, config_file):
    """Validate a country configuration.

    Checks the file against the schema and checks every statutory type's
    active bands for overlaps (per age window).
    """
    try:
        cfg = load_country_config_file(config_file) if config_file else load_country_config(country)
    except ConfigNotFoundError as e:
        raise click.ClickException(str(e))
    except ValidationError as e:
        raise click.ClickException(f"Schema validation failed:\n{e}")

    errors = find_config_errors(cfg)
    if errors:
        for error in errors:
            click.echo(click.style(f"  ✗ {error}", fg="red"))
        raise click.ClickException(f"{cfg.country}: {len(errors)} configuration error(s)")

    click.echo(click.style(
        f"✓ {cfg.country}: {len(cfg.statutory_types)} statutory type(s), "
        f"{len(cfg.relief_rules)} relief rule(s), {len(cfg.relief_schemes)} scheme(s) OK",
        fg="green",
    ))

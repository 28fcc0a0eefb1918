"""Pay Stat CLI - Command-line interface for statutory deduction calculation."""

import json
import logging
import os
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console

from paystat import __version__
from paystat.sdk import (
    ConfigNotFoundError,
    StatutoryCalculationError,
    append_history,
    build_calculation_input,
    calculate_statutory_deductions,
    entry_from_result,
    get_history_path,
    load_country_config,
    load_country_config_file,
    load_history,
    load_request,
)

from .config_commands import config as config_group
from .renderers.result_renderer import render_result


def _configure_logging() -> None:
    """Configure logging based on the LOG_LEVEL environment variable."""
    level = os.environ.get("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s.%(msecs)03d %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


@click.group()
@click.version_option(version=__version__, prog_name="pay-stat")
def cli():
    """Pay Stat - Statutory deductions and tax relief per pay period.

    Computes one employee's government-mandated withholdings (social
    security style contributions and progressive income tax) for one
    pay period.

    Configuration is loaded from (in order):

    \b
    1. PAY_STAT_CONFIG_PATH environment variable
    2. ~/.config/pay-stat/ (XDG default)

    Country rates live in countries/<CC>.yaml. Run 'pay-stat config path'
    to see where.
    """
    _configure_logging()


cli.add_command(config_group)


@cli.command("calc")
@click.argument("request_file", type=click.Path(exists=True, path_type=Path))
@click.option("--country", help="Country code (default: request 'country', then settings default_country)")
@click.option("--country-file", type=click.Path(exists=True, path_type=Path),
              help="Use this country YAML instead of the configured one.")
@click.option("--history", "history_file", type=click.Path(path_type=Path),
              help="Payroll history JSON (default: data dir history/<employee_id>.json)")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]), default="text",
              help="Output format (default: text)")
@click.option("--record", is_flag=True, help="Append the result to the payroll history.")
def calc(request_file, country, country_file, history_file, output_format, record):
    """Calculate statutory deductions for one pay period.

    REQUEST_FILE is a YAML or JSON file with gross_pay, pay_period_id,
    effective_date and optional age, opening balances and relief
    enrollments. YTD and same-period amounts come from the payroll
    history unless given explicitly in the request.
    """
    try:
        request = load_request(request_file)
        if country_file:
            country_config = load_country_config_file(country_file)
        else:
            country_config = load_country_config(country or request.country)

        if history_file is None and request.employee_id:
            history_file = get_history_path(request.employee_id)
        history = load_history(history_file) if history_file else []

        inputs = build_calculation_input(request, country_config, history)
        result = calculate_statutory_deductions(inputs)
    except (ConfigNotFoundError, StatutoryCalculationError) as e:
        raise click.ClickException(str(e))
    except ValidationError as e:
        raise click.ClickException(f"Validation failed:\n{e}")

    if output_format == "json":
        click.echo(json.dumps(result.model_dump(mode="json", exclude_none=True), indent=2))
    else:
        title = f"{country_config.country} {request.pay_period_id}"
        if request.employee_id:
            title = f"{request.employee_id} - {title}"
        render_result(Console(), result, title=title)

    if record:
        if history_file is None:
            raise click.ClickException("--record needs --history or an employee_id in the request")
        saved = append_history(history_file, entry_from_result(result, request))
        click.echo(f"Recorded {request.pay_period_id} to {saved}", err=True)


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()

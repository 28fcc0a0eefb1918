"""Pay Stat MCP Server - FastMCP implementation for statutory calculation tools."""

import logging
from datetime import date
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from paystat.sdk import (
    PeriodRequest,
    build_calculation_input,
    calculate_statutory_deductions,
    find_config_errors,
    get_history_path,
    load_country_config,
    load_history,
)

logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP("pay-stat")


# --- Tools ---

@mcp.tool()
async def calculate_statutory(
    country: str = Field(description="Country code with a configured countries/<CC>.yaml (e.g., 'JM')"),
    gross_pay: float = Field(description="Gross pay for the period"),
    effective_date: str = Field(description="Pay date / effective date (YYYY-MM-DD)"),
    pay_period_id: str = Field(default="", description="Pay period identifier (default: effective date)"),
    employee_id: str | None = Field(default=None, description="Employee ID, used to find payroll history"),
    employee_age: int | None = Field(default=None, description="Employee age, if known"),
    monday_count: int | None = Field(default=None, description="Qualifying Mondays in the period (default 4)"),
    history_path: str | None = Field(default=None, description="Payroll history JSON path (overrides employee_id lookup)"),
) -> dict[str, Any]:
    """Calculate one employee's statutory deductions, tax relief and income tax for one pay period."""
    try:
        request = PeriodRequest(
            employee_id=employee_id,
            country=country,
            pay_period_id=pay_period_id or effective_date,
            gross_pay=gross_pay,
            effective_date=date.fromisoformat(effective_date),
            employee_age=employee_age,
            monday_count=monday_count,
        )
        if history_path:
            history = load_history(Path(history_path))
        elif employee_id:
            history = load_history(get_history_path(employee_id))
        else:
            history = []

        inputs = build_calculation_input(request, load_country_config(country), history)
        result = calculate_statutory_deductions(inputs)
        return result.model_dump(mode="json", exclude_none=True)

    except Exception as e:
        logger.error(f"Error calculating statutory deductions: {e}")
        return {"error": str(e)}


@mcp.tool()
async def validate_country_config(
    country: str = Field(description="Country code to validate"),
) -> dict[str, Any]:
    """Validate a country's rate configuration: schema, band overlaps and income tax setup."""
    try:
        cfg = load_country_config(country)
        errors = find_config_errors(cfg)
        return {
            "country": cfg.country,
            "valid": not errors,
            "errors": errors,
            "statutory_types": [t.code for t in cfg.statutory_types],
            "relief_rules": [r.statutory_type_code for r in cfg.relief_rules],
            "relief_schemes": [s.scheme_code for s in cfg.relief_schemes],
        }

    except Exception as e:
        logger.error(f"Error validating {country}: {e}")
        return {"error": str(e)}


def run_server():
    """Entry point for the MCP server."""
    mcp.run()


if __name__ == "__main__":
    run_server()

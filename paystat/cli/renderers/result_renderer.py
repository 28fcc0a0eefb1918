"""Rich renderer for statutory calculation results.

Transforms StatutoryCalculationResult into formatted Rich tables.
"""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from paystat.sdk import StatutoryCalculationResult


def _money(value) -> str:
    return f"{value:,.2f}"


def render_result(console: Console, result: StatutoryCalculationResult, title: str = "Statutory Deductions") -> None:
    """Render a calculation result as Rich tables.

    Args:
        console: Rich Console instance
        result: Result from calculate_statutory_deductions()
        title: Panel title for the deductions table
    """
    _render_deductions(console, result, title)
    if result.reliefs:
        _render_reliefs(console, result)
    if result.income_tax is not None:
        _render_income_tax(console, result)


def _render_deductions(console: Console, result: StatutoryCalculationResult, title: str) -> None:
    table = Table(box=box.SIMPLE_HEAD, header_style="bold")
    table.add_column("Code", style="cyan")
    table.add_column("Deduction")
    table.add_column("Method", style="dim")
    table.add_column("Employee", justify="right")
    table.add_column("Employer", justify="right")

    for line in result.deductions:
        style = "green" if line.is_refund else None
        table.add_row(
            line.statutory_code,
            line.statutory_name,
            line.calculation_method,
            _money(line.employee_amount),
            _money(line.employer_amount),
            style=style,
        )

    table.add_section()
    table.add_row(
        "", "[bold]Total[/bold]", "",
        f"[bold]{_money(result.total_employee_deductions)}[/bold]",
        f"[bold]{_money(result.total_employer_contributions)}[/bold]",
    )
    console.print(Panel(table, title=title, border_style="dim"))


def _render_reliefs(console: Console, result: StatutoryCalculationResult) -> None:
    table = Table(box=box.SIMPLE_HEAD, header_style="bold")
    table.add_column("Code", style="cyan")
    table.add_column("Relief")
    table.add_column("Source", style="dim")
    table.add_column("Type")
    table.add_column("Amount", justify="right")

    for relief in result.reliefs or []:
        table.add_row(
            relief.relief_code,
            relief.relief_name,
            relief.source,
            relief.relief_type,
            _money(relief.amount),
        )

    table.add_section()
    table.add_row("", "Taxable income reduction", "", "", _money(result.total_taxable_income_reduction))
    table.add_row("", "Tax credits", "", "", _money(result.total_tax_credits))
    console.print(Panel(table, title="Tax Relief", border_style="dim"))


def _render_income_tax(console: Console, result: StatutoryCalculationResult) -> None:
    summary = result.income_tax
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("key", style="dim")
    table.add_column("value", justify="right")

    table.add_row("Method", summary.method.replace("_", "-"))
    table.add_row("Adjusted taxable income", _money(result.adjusted_taxable_income))
    table.add_row("YTD taxable income", _money(summary.ytd_taxable_income))
    table.add_row("Total tax due", _money(summary.total_tax_due))
    table.add_row("Previously withheld", _money(summary.previous_ytd_tax + summary.period_tax_already_paid))
    table.add_row("This period", _money(summary.amount))
    if summary.forfeited_refund:
        table.add_row("[yellow]Refund not paid[/yellow]", f"[yellow]{_money(summary.forfeited_refund)}[/yellow]")
    table.add_row("YTD tax paid", _money(summary.ytd_tax_paid))

    status_style = {"refund": "green", "clamped": "yellow"}.get(summary.status, "white")
    console.print(Panel(
        table,
        title=f"Income Tax ([{status_style}]{summary.status}[/{status_style}])",
        border_style="dim",
    ))

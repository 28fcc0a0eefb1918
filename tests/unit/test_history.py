"""Tests for payroll history aggregation and engine input assembly.

Uses tmp_path for history files so nothing touches the real data dir.
"""

import json
import pytest
from datetime import date
from decimal import Decimal

from paystat.sdk.errors import InvalidInputError
from paystat.sdk.history import (
    PayrollHistoryEntry,
    aggregate_period,
    aggregate_relief_claims,
    aggregate_ytd,
    append_history,
    build_calculation_input,
    entry_from_result,
    load_history,
    load_request,
    save_history,
)
from paystat.sdk.schemas import CountryConfig, PeriodRequest
from paystat.sdk.statutory import calculate_statutory_deductions


def make_entry(period_id, pay_date, tax_year=2025, nis=("0", "0"), paye="0", taxable="0",
               run_type="regular", reliefs=None):
    return PayrollHistoryEntry.model_validate({
        "pay_period_id": period_id,
        "pay_date": pay_date,
        "tax_year": tax_year,
        "run_type": run_type,
        "taxable_income": taxable,
        "statutory": [
            {"code": "NIS", "employee_amount": nis[0], "employer_amount": nis[1]},
            {"code": "PAYE", "employee_amount": paye},
        ],
        "reliefs": reliefs or {},
    })


@pytest.fixture
def history():
    """Two regular months, an off-cycle run in May, and a prior-year run."""
    return [
        make_entry("2024-12", "2024-12-31", tax_year=2024, nis=("500", "500"), paye="900", taxable="9000"),
        make_entry("2025-04", "2025-04-30", nis=("250", "250"), paye="200", taxable="5000",
                   reliefs={"NIS": "250"}),
        make_entry("2025-05", "2025-05-31", nis=("250", "250"), paye="200", taxable="5000",
                   reliefs={"NIS": "250"}),
        make_entry("2025-05", "2025-05-31", run_type="off_cycle", nis=("50", "50"), paye="100",
                   taxable="1000", reliefs={"NIS": "50"}),
    ]


@pytest.fixture
def country():
    return CountryConfig.model_validate({
        "country": "jm",
        "statutory_types": [
            {"code": "NIS", "name": "National Insurance", "bands": [{"employee_rate": 5, "employer_rate": 5}]},
            {"code": "PAYE", "name": "Income Tax", "statutory_type": "income_tax", "bands": [
                {"min_amount": 0, "max_amount": 3000, "employee_rate": 0},
                {"min_amount": 3000, "employee_rate": 10},
            ]},
            {"code": "OLD_LEVY", "name": "Old levy", "effective_to": "2024-12-31",
             "bands": [{"employee_rate": 1}]},
        ],
        "relief_rules": [{"statutory_type_code": "NIS"}],
    })


class TestAggregation:
    """YTD, period and relief-claim snapshots from history."""

    def test_ytd_excludes_current_period_and_other_years(self, history):
        ytd = aggregate_ytd(history, 2025, "2025-06")
        assert ytd.taxable_income == Decimal("11000")
        assert ytd.get("NIS").employee_amount == Decimal("550")
        assert ytd.get("PAYE").employee_amount == Decimal("500")

    def test_ytd_for_off_cycle_excludes_same_period(self, history):
        ytd = aggregate_ytd(history, 2025, "2025-05")
        assert ytd.taxable_income == Decimal("5000")
        assert ytd.get("PAYE").employee_amount == Decimal("200")

    def test_period_sums_earlier_runs(self, history):
        period = aggregate_period(history, 2025, "2025-05")
        assert period.taxable_income == Decimal("6000")
        assert period.get("NIS").employer_amount == Decimal("300")
        assert period.get("PAYE").employee_amount == Decimal("300")

    def test_period_empty_for_new_period(self, history):
        period = aggregate_period(history, 2025, "2025-06")
        assert period.amounts == {}
        assert period.taxable_income == Decimal("0")

    def test_relief_claims_whole_tax_year(self, history):
        assert aggregate_relief_claims(history, 2025) == {"NIS": Decimal("550")}
        assert aggregate_relief_claims(history, 2023) == {}


class TestBuildCalculationInput:
    """Request + country + history -> engine input."""

    def test_history_snapshots(self, history, country):
        request = PeriodRequest(pay_period_id="2025-06", gross_pay=Decimal("5000"), effective_date=date(2025, 6, 30))
        inputs = build_calculation_input(request, country, history)

        assert inputs.ytd_amounts.taxable_income == Decimal("11000")
        assert inputs.period_amounts.amounts == {}
        assert inputs.relief_context.ytd_reliefs_claimed == {"NIS": Decimal("550")}

    def test_types_out_of_effect_dropped(self, history, country):
        request = PeriodRequest(pay_period_id="2025-06", gross_pay=Decimal("5000"), effective_date=date(2025, 6, 30))
        inputs = build_calculation_input(request, country, history)
        assert [t.code for t in inputs.statutory_types] == ["NIS", "PAYE"]

    def test_explicit_snapshot_wins(self, history, country):
        request = PeriodRequest.model_validate({
            "pay_period_id": "2025-06",
            "gross_pay": "5000",
            "effective_date": "2025-06-30",
            "ytd_amounts": {"taxable_income": "100", "amounts": {"PAYE": {"employee_amount": "1"}}},
        })
        inputs = build_calculation_input(request, country, history)
        assert inputs.ytd_amounts.taxable_income == Decimal("100")
        assert inputs.ytd_amounts.get("PAYE").employee_amount == Decimal("1")

    def test_retired_codes_in_history_ignored(self, country):
        history = [PayrollHistoryEntry.model_validate({
            "pay_period_id": "2025-01",
            "pay_date": "2025-01-31",
            "tax_year": 2025,
            "statutory": [{"code": "RETIRED", "employee_amount": "10"}],
            "reliefs": {"RETIRED": "10"},
        })]
        request = PeriodRequest(pay_period_id="2025-06", gross_pay=Decimal("5000"), effective_date=date(2025, 6, 30))
        inputs = build_calculation_input(request, country, history)

        assert "RETIRED" not in inputs.ytd_amounts.amounts
        assert inputs.relief_context.ytd_reliefs_claimed == {}
        calculate_statutory_deductions(inputs)

    def test_no_relief_context_without_reliefs(self, history, country):
        bare = country.model_copy(update={"relief_rules": []})
        request = PeriodRequest(pay_period_id="2025-06", gross_pay=Decimal("5000"), effective_date=date(2025, 6, 30))
        assert build_calculation_input(request, bare, history).relief_context is None

    def test_tax_year_override(self, history, country):
        request = PeriodRequest(
            pay_period_id="2024-13", tax_year=2024,
            gross_pay=Decimal("5000"), effective_date=date(2025, 1, 15),
        )
        inputs = build_calculation_input(request, country, history)
        assert inputs.ytd_amounts.taxable_income == Decimal("9000")

    def test_cumulative_tax_from_history(self, history, country):
        request = PeriodRequest(pay_period_id="2025-06", gross_pay=Decimal("5000"), effective_date=date(2025, 6, 30))
        result = calculate_statutory_deductions(build_calculation_input(request, country, history))

        # 11000 + 4750 = 15750 YTD: (15750 - 3000) x 10% = 1275, less 500 withheld
        assert result.get("PAYE").employee_amount == Decimal("775.00")
        assert result.get("PAYE").ytd_taxable_income == Decimal("15750.00")


class TestHistoryFiles:
    """History JSON persistence."""

    def test_missing_file_is_empty(self, tmp_path):
        assert load_history(tmp_path / "none.json") == []

    def test_save_sorts_by_pay_date(self, tmp_path, history):
        path = save_history(tmp_path / "history" / "E1.json", list(reversed(history)))
        data = json.loads(path.read_text())
        assert [e["pay_date"] for e in data] == sorted(e["pay_date"] for e in data)
        assert len(load_history(path)) == 4

    def test_record_result_then_aggregate(self, tmp_path, country):
        path = tmp_path / "E1.json"
        request = PeriodRequest(
            employee_id="E1", pay_period_id="2025-06",
            gross_pay=Decimal("5000"), effective_date=date(2025, 6, 30),
        )
        result = calculate_statutory_deductions(build_calculation_input(request, country, []))
        entry = entry_from_result(result, request)

        assert entry.taxable_income == Decimal("4750.00")
        assert entry.reliefs == {"NIS": Decimal("250.00")}
        assert [line.code for line in entry.statutory] == ["NIS", "PAYE"]

        append_history(path, entry)
        ytd = aggregate_ytd(load_history(path), 2025, "2025-07")
        assert ytd.get("PAYE").employee_amount == Decimal("175.00")
        assert ytd.get("NIS").employer_amount == Decimal("250.00")


class TestLoadRequest:

    def test_yaml_request(self, tmp_path):
        path = tmp_path / "request.yaml"
        path.write_text(
            "employee_id: E1\n"
            "country: jm\n"
            "pay_period_id: \"2025-06\"\n"
            "gross_pay: 5000\n"
            "effective_date: 2025-06-30\n"
            "enrollments:\n"
            "  - scheme_code: prsa\n"
            "    contribution_amount: 200\n"
        )
        request = load_request(path)
        assert request.country == "JM"
        assert request.pay_period_id == "2025-06"
        assert request.enrollments[0].scheme_code == "PRSA"
        assert request.resolved_tax_year == 2025

    def test_missing_file(self, tmp_path):
        with pytest.raises(InvalidInputError, match="not found"):
            load_request(tmp_path / "missing.yaml")

    def test_negative_gross_rejected(self, tmp_path):
        path = tmp_path / "request.yaml"
        path.write_text("pay_period_id: p1\ngross_pay: -5\neffective_date: 2025-06-30\n")
        with pytest.raises(InvalidInputError, match="Invalid request"):
            load_request(path)

    def test_unknown_field_rejected(self, tmp_path):
        path = tmp_path / "request.yaml"
        path.write_text("pay_period_id: p1\ngross_pay: 5\neffective_date: 2025-06-30\nbonus: 1\n")
        with pytest.raises(InvalidInputError):
            load_request(path)

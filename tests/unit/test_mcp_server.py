"""Tests for the MCP tools (requires the 'mcp' extra)."""

import asyncio
import json
import pytest
import yaml
from decimal import Decimal

pytest.importorskip("mcp")

from paystat.mcp.server import calculate_statutory, validate_country_config


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    config_dir = tmp_path / "config"
    (config_dir / "countries").mkdir(parents=True)
    monkeypatch.setenv("PAY_STAT_CONFIG_PATH", str(config_dir))
    (config_dir / "settings.json").write_text(json.dumps({"data_dir": str(tmp_path / "data")}))
    (config_dir / "countries" / "JM.yaml").write_text(yaml.safe_dump({
        "country": "JM",
        "statutory_types": [
            {"code": "NIS", "name": "NIS", "bands": [{"employee_rate": 3, "employer_rate": 3}]},
        ],
    }))
    return config_dir


def calculate(**overrides):
    args = {
        "country": "JM",
        "gross_pay": 1000.0,
        "effective_date": "2025-06-30",
        "pay_period_id": "2025-06",
        "employee_id": None,
        "employee_age": None,
        "monday_count": None,
        "history_path": None,
    }
    args.update(overrides)
    return asyncio.run(calculate_statutory(**args))


class TestCalculateStatutory:

    def test_returns_result(self, isolated_env):
        out = calculate()
        assert out["deductions"][0]["statutory_code"] == "NIS"
        assert Decimal(out["total_employee_deductions"]) == Decimal("30")

    def test_error_returned_not_raised(self, isolated_env):
        out = calculate(country="ZZ")
        assert "not found" in out["error"]


class TestValidateCountryConfig:

    def test_valid(self, isolated_env):
        out = asyncio.run(validate_country_config(country="JM"))
        assert out["valid"] is True
        assert out["statutory_types"] == ["NIS"]

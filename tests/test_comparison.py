"""Tests for finstmt.reports.comparison."""

from datetime import date

import pytest

from finstmt.errors import InputError, NotFoundError
from finstmt.reports.balance_sheet import generate_balance_sheet
from finstmt.reports.comparison import get_comparison_data, get_stats
from finstmt.reports.profit_loss import generate_profit_loss
from finstmt.versioning import change_status
from tests.helpers import post


class TestGetComparisonData:
    def test_previous_month(self, engine):
        generate_balance_sheet(engine.calculator, engine.store, date(2024, 1, 31), "monthly")
        post(engine.ledger, "F1", date(2024, 2, 10), "1110", "4001", 1000.0)
        february = generate_balance_sheet(
            engine.calculator, engine.store, date(2024, 2, 29), "monthly"
        )

        result = get_comparison_data(engine.store, february.statement_id)

        assert result["statement"] == "BS-M202402-001"
        assert result["comparison_statement"] == "BS-M202401-001"
        total_assets = result["fields"]["total_assets"]
        assert total_assets == {
            "current": 16400.0,
            "comparison": 15400.0,
            "change": 1000.0,
            "percentage_change": 6.49,
        }

    def test_profit_loss_fields(self, engine):
        generate_profit_loss(
            engine.calculator, engine.store, date(2024, 1, 1), date(2024, 1, 31), "monthly"
        )
        post(engine.ledger, "F1", date(2024, 2, 10), "1110", "4001", 1000.0)
        february = generate_profit_loss(
            engine.calculator, engine.store, date(2024, 2, 1), date(2024, 2, 29), "monthly"
        )

        fields = get_comparison_data(engine.store, february.statement_id)["fields"]

        assert fields["total_revenue"]["change"] == -4200.0
        assert fields["net_income"]["current"] == 1000.0
        assert fields["net_income"]["comparison"] == 2400.0

    def test_no_comparison_statement(self, engine):
        statement = generate_balance_sheet(
            engine.calculator, engine.store, date(2024, 1, 31), "monthly"
        )

        result = get_comparison_data(engine.store, statement.statement_id, "year_ago")

        assert result["comparison_statement"] is None
        assert result["fields"] == {}

    def test_invalid_comparison_type(self, engine):
        statement = generate_balance_sheet(
            engine.calculator, engine.store, date(2024, 1, 31), "monthly"
        )
        with pytest.raises(InputError, match="Invalid comparison type"):
            get_comparison_data(engine.store, statement.statement_id, "quarter_ago")

    def test_unknown_statement(self, engine):
        with pytest.raises(NotFoundError):
            get_comparison_data(engine.store, "missing")


class TestGetStats:
    def test_counts_by_status(self, engine):
        january = generate_balance_sheet(
            engine.calculator, engine.store, date(2024, 1, 31), "monthly"
        )
        generate_balance_sheet(engine.calculator, engine.store, date(2024, 2, 29), "monthly")
        change_status(engine.store, january.statement_id, "review", "alice")

        stats = get_stats(engine.store, "balance_sheet")

        assert stats["total"] == 2
        assert stats["by_status"] == {"review": 1, "draft": 1}
        assert stats["latest_statement_date"] == "2024-02-29"

    def test_empty(self, engine):
        stats = get_stats(engine.store, "profit_loss")
        assert stats["total"] == 0
        assert stats["latest_statement_date"] is None

"""Tests for finstmt.reports.profit_loss."""

import json
from datetime import date

import pytest

from finstmt.errors import ConflictError, InputError
from finstmt.reports.profit_loss import (
    PLInputs,
    calculate_pl_totals,
    calculate_variances,
    format_as_json,
    format_as_text,
    gather_pl_inputs,
    generate_profit_loss,
)
from finstmt.periods import DateRange
from tests.helpers import make_account, post

JANUARY = DateRange(date(2024, 1, 1), date(2024, 1, 31))


def _generate_january(engine, **kwargs):
    return generate_profit_loss(
        engine.calculator, engine.store, JANUARY.start, JANUARY.end, "monthly", **kwargs
    )


# ---------------------------------------------------------------------------
# calculate_pl_totals (pure)
# ---------------------------------------------------------------------------


class TestCalculatePLTotals:
    def test_revenue_section(self):
        data = calculate_pl_totals(PLInputs(
            gross_sales=1000.0, sales_returns=50.0, sales_discounts=20.0, other_revenue=70.0,
        ))
        revenue = data["revenue"]

        assert revenue["net_sales"]["amount"] == 930.0
        assert revenue["total_revenue"]["amount"] == 1000.0
        assert revenue["total_revenue"]["margin"] == 100.0
        assert revenue["sales_returns"]["margin"] == 5.0

    def test_transaction_cogs_preferred(self):
        data = calculate_pl_totals(PLInputs(
            gross_sales=1000.0, transaction_cogs=400.0,
            beginning_inventory=500.0, purchases=300.0, ending_inventory=200.0,
        ))
        cogs = data["cost_of_goods_sold"]

        assert cogs["total_cogs"]["amount"] == 400.0
        assert cogs["total_cogs"]["calculation_method"] == "transaction"
        assert cogs["cogs_from_inventory_formula"] == 600.0
        assert data["gross_profit"]["amount"] == 600.0

    def test_inventory_formula_fallback(self):
        data = calculate_pl_totals(PLInputs(
            gross_sales=1000.0,
            beginning_inventory=500.0, purchases=300.0, freight_in=20.0,
            purchase_returns=10.0, purchase_discounts=5.0, ending_inventory=200.0,
        ))
        total_cogs = data["cost_of_goods_sold"]["total_cogs"]

        assert total_cogs["amount"] == 605.0
        assert total_cogs["calculation_method"] == "inventory_formula"

    def test_inventory_formula_forced(self):
        data = calculate_pl_totals(PLInputs(
            gross_sales=1000.0, transaction_cogs=400.0,
            beginning_inventory=100.0, purchases=100.0,
            cogs_method="inventory_formula",
        ))
        assert data["cost_of_goods_sold"]["total_cogs"]["amount"] == 200.0

    def test_operating_and_other_sections(self):
        data = calculate_pl_totals(PLInputs(
            gross_sales=1000.0,
            selling_expenses=100.0, administrative_expenses=200.0,
            interest_income=30.0, rental_income=20.0,
            interest_expense=40.0, depreciation=25.0, amortization=5.0, other_expenses=10.0,
        ))

        assert data["operating_expenses"]["total_operating_expenses"]["amount"] == 300.0
        assert data["operating_income"]["amount"] == 700.0
        assert data["other_income"]["total_other_income"]["amount"] == 50.0
        assert data["other_expenses"]["total_other_expenses"]["amount"] == 80.0
        assert data["earnings_before_tax"]["amount"] == 670.0
        assert data["key_metrics"]["ebitda"] == 730.0
        assert data["key_metrics"]["ebitda_margin"] == 73.0

    def test_income_tax(self):
        data = calculate_pl_totals(PLInputs(
            gross_sales=1000.0, current_tax=150.0, deferred_tax=50.0,
        ))
        tax = data["income_tax"]

        assert tax["total"]["amount"] == 200.0
        assert tax["effective_tax_rate"] == 20.0
        assert data["net_income"]["amount"] == 800.0
        assert data["key_metrics"]["net_margin"] == 80.0

    def test_zero_revenue_margins(self):
        data = calculate_pl_totals(PLInputs(administrative_expenses=100.0))

        assert data["net_income"]["amount"] == -100.0
        assert data["net_income"]["margin"] == 0.0
        assert data["key_metrics"]["gross_margin"] == 0.0
        assert data["income_tax"]["effective_tax_rate"] == 0.0


# ---------------------------------------------------------------------------
# gather_pl_inputs
# ---------------------------------------------------------------------------


class TestGatherPLInputs:
    def test_seeded_books(self, engine):
        inputs = gather_pl_inputs(engine.calculator, JANUARY, "transaction")

        assert inputs.gross_sales == 5000.0
        assert inputs.other_revenue == 200.0
        assert inputs.transaction_cogs == 2000.0
        assert inputs.selling_expenses == 300.0
        assert inputs.administrative_expenses == 500.0
        assert inputs.beginning_inventory == 0.0
        assert inputs.ending_inventory == 1000.0

    def test_debits_to_sales_are_returns(self, engine):
        post(engine.ledger, "R1", date(2024, 1, 29), "4001", "1110", 100.0)

        inputs = gather_pl_inputs(engine.calculator, JANUARY, "transaction")

        assert inputs.gross_sales == 5000.0
        assert inputs.sales_returns == 100.0

    def test_interest_income_is_non_operating(self, engine):
        engine.registry.add(make_account("4300", "revenue", "other_revenue", "interest_income",
                                         parent_code="4000"))
        post(engine.ledger, "I1", date(2024, 1, 30), "1120", "4300", 50.0)

        inputs = gather_pl_inputs(engine.calculator, JANUARY, "transaction")

        assert inputs.interest_income == 50.0
        assert inputs.other_revenue == 200.0

    def test_period_bounds(self, engine):
        inputs = gather_pl_inputs(
            engine.calculator, DateRange(date(2024, 1, 11), date(2024, 1, 31)), "transaction"
        )
        assert inputs.gross_sales == 0.0
        assert inputs.beginning_inventory == 1000.0


# ---------------------------------------------------------------------------
# generate_profit_loss
# ---------------------------------------------------------------------------


class TestGenerateProfitLoss:
    def test_seeded_books(self, engine):
        statement = _generate_january(engine)
        data = statement.data

        assert statement.statement_number == "PL-M202401-001"
        assert statement.statement_date == date(2024, 1, 31)
        assert data["revenue"]["gross_sales"]["amount"] == 5000.0
        assert data["revenue"]["net_sales"]["amount"] == 5000.0
        assert data["revenue"]["total_revenue"]["amount"] == 5200.0
        assert data["cost_of_goods_sold"]["total_cogs"]["amount"] == 2000.0
        assert data["cost_of_goods_sold"]["total_cogs"]["calculation_method"] == "transaction"
        assert data["gross_profit"]["amount"] == 3200.0
        assert data["gross_profit"]["margin"] == 61.54
        assert data["operating_expenses"]["total_operating_expenses"]["amount"] == 800.0
        assert data["operating_income"]["amount"] == 2400.0
        assert data["net_income"]["amount"] == 2400.0

    def test_net_income_matches_calculator(self, engine):
        statement = _generate_january(engine)
        expected = engine.calculator.net_income(JANUARY.start, JANUARY.end)
        assert statement.data["net_income"]["amount"] == pytest.approx(expected)

    def test_string_dates(self, engine):
        statement = generate_profit_loss(
            engine.calculator, engine.store, "2024-01-01", "2024-01-31", "monthly"
        )
        assert statement.period_start == date(2024, 1, 1)

    def test_duplicate_period_conflict(self, engine):
        _generate_january(engine)
        with pytest.raises(ConflictError, match="P&L statement already exists"):
            _generate_january(engine)

    def test_end_before_start(self, engine):
        with pytest.raises(InputError, match="cannot be after"):
            generate_profit_loss(
                engine.calculator, engine.store, "2024-01-31", "2024-01-01", "monthly"
            )

    def test_invalid_period_type(self, engine):
        with pytest.raises(InputError, match="Invalid period type"):
            generate_profit_loss(
                engine.calculator, engine.store, "2024-01-01", "2024-01-31", "weekly"
            )

    def test_invalid_cogs_option(self, engine):
        with pytest.raises(InputError, match="Invalid COGS method"):
            _generate_january(engine, options={"cogs_method": "fifo"})

    def test_options(self, engine):
        statement = _generate_january(
            engine, options={"cogs_method": "inventory_formula", "notes": "Preliminary"}
        )
        cogs = statement.data["cost_of_goods_sold"]["total_cogs"]

        assert cogs["calculation_method"] == "inventory_formula"
        assert cogs["amount"] == -1000.0
        assert statement.notes == "Preliminary"

    def test_metadata_and_audit(self, engine):
        statement = _generate_january(engine, generated_by="bob")

        assert statement.metadata["generated_by"] == "bob"
        assert statement.metadata["version"] == 1
        assert statement.audit_trail[0]["action"] == "created"
        assert engine.store.get(statement.statement_id) is statement


class TestPeriodRules:
    def test_partial_month_rejected_for_monthly(self, engine):
        _generate_january(engine)
        with pytest.raises(InputError, match="must run from 2024-01-01 to 2024-01-31"):
            generate_profit_loss(
                engine.calculator, engine.store, "2024-01-01", "2024-01-15", "monthly"
            )
        assert len(engine.store.list_statements()) == 1

    def test_multi_month_range_rejected_for_monthly(self, engine):
        with pytest.raises(InputError, match="Use a custom period"):
            generate_profit_loss(
                engine.calculator, engine.store, "2024-01-01", "2024-03-31", "monthly"
            )
        assert engine.store.list_statements() == []

    def test_whole_quarter(self, engine):
        statement = generate_profit_loss(
            engine.calculator, engine.store, "2024-01-01", "2024-03-31", "quarterly"
        )
        assert statement.statement_number == "PL-Q1-2024-001"

    def test_custom_range_accepted(self, engine):
        _generate_january(engine)
        statement = generate_profit_loss(
            engine.calculator, engine.store, "2024-01-01", "2024-01-15", "custom"
        )
        assert statement.statement_number == "PL-C20240115-001"


class TestGeneratedVariances:
    def test_against_previous_month(self, engine):
        january = _generate_january(engine)
        post(engine.ledger, "F1", date(2024, 2, 10), "1110", "4001", 1000.0)

        february = generate_profit_loss(
            engine.calculator, engine.store, date(2024, 2, 1), date(2024, 2, 29), "monthly"
        )
        variances = february.data["variances"]

        assert february.metadata["variance_basis"] == january.statement_number
        assert variances["total_revenue"]["change"] == -4200.0
        assert variances["net_income"]["previous"] == 2400.0
        assert variances["net_income"]["current"] == 1000.0
        assert variances["net_income"]["percentage_change"] == pytest.approx(-58.33)
        assert "VARIANCE VS PL-M202401-001" in format_as_text(february)

    def test_first_period_has_none(self, engine):
        statement = _generate_january(engine)
        assert "variances" not in statement.data
        assert statement.metadata["variance_basis"] is None

    def test_custom_period_has_none(self, engine):
        _generate_january(engine)
        statement = generate_profit_loss(
            engine.calculator, engine.store, "2024-02-01", "2024-02-10", "custom"
        )
        assert "variances" not in statement.data


class TestVariances:
    def test_changes_and_percentages(self):
        previous = calculate_pl_totals(PLInputs(gross_sales=1000.0, administrative_expenses=200.0))
        current = calculate_pl_totals(PLInputs(gross_sales=1500.0, administrative_expenses=300.0))

        variances = calculate_variances(current, previous)

        assert variances["total_revenue"]["change"] == 500.0
        assert variances["total_revenue"]["percentage_change"] == 50.0
        assert variances["net_income"]["previous"] == 800.0
        assert variances["net_income"]["current"] == 1200.0
        assert variances["net_income"]["percentage_change"] == 50.0

    def test_zero_previous(self):
        current = calculate_pl_totals(PLInputs(gross_sales=100.0))
        variances = calculate_variances(current, {})
        assert variances["gross_profit"]["percentage_change"] == 0.0
        assert variances["gross_profit"]["change"] == 100.0


class TestFormatters:
    def test_text(self, engine):
        text = format_as_text(_generate_january(engine))

        assert "PROFIT & LOSS STATEMENT" in text
        assert "For the period January 01, 2024 to January 31, 2024" in text
        assert "Total COGS (transaction)" in text
        assert "NET INCOME" in text
        assert "2,400.00" in text

    def test_text_net_loss(self, engine):
        statement = _generate_january(engine)
        statement.data["net_income"]["amount"] = -5.0
        assert "NET LOSS" in format_as_text(statement)

    def test_json(self, engine):
        data = json.loads(format_as_json(_generate_january(engine)))
        assert data["profit_loss"]["data"]["net_income"]["amount"] == 2400.0

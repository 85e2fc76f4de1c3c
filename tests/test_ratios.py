"""Tests for finstmt.reports.ratios."""

from datetime import date

import pytest

from finstmt.reports.balance_sheet import generate_balance_sheet
from finstmt.reports.profit_loss import generate_profit_loss
from finstmt.reports.ratios import (
    RatioInputs,
    calculate_ratios,
    compute_ratios,
    safe_divide,
    tree_value,
)
from tests.helpers import post


class TestComputeRatios:
    def test_liquidity(self):
        ratios = compute_ratios(RatioInputs(
            current_assets=200.0, current_liabilities=100.0, inventory=50.0,
        ))
        assert ratios.current_ratio == 2.0
        assert ratios.quick_ratio == 1.5
        assert ratios.working_capital == 100.0

    def test_zero_denominators(self):
        ratios = compute_ratios(RatioInputs(current_assets=200.0))
        assert ratios.current_ratio == 0.0
        assert ratios.quick_ratio == 0.0
        assert ratios.debt_to_equity == 0.0
        assert ratios.inventory_turnover == 0.0

    def test_profitability_needs_positive_base(self):
        ratios = compute_ratios(RatioInputs(
            total_assets=1000.0, total_equity=-50.0, net_income=100.0,
        ))
        assert ratios.return_on_assets == 0.1
        assert ratios.return_on_equity == 0.0

    def test_turnover_uses_average_balances(self):
        ratios = compute_ratios(RatioInputs(
            cost_of_goods_sold=1200.0, inventory=500.0, beginning_inventory=300.0,
            net_sales=2000.0, receivables=600.0, beginning_receivables=200.0,
            payables=100.0,
        ))
        assert ratios.inventory_turnover == 3.0
        assert ratios.accounts_receivable_turnover == 5.0
        # Beginning defaults to ending when unknown.
        assert ratios.accounts_payable_turnover == 12.0

    def test_to_dict_rounds(self):
        ratios = compute_ratios(RatioInputs(current_assets=1.0, current_liabilities=3.0))
        assert ratios.to_dict()["current_ratio"] == 0.3333


class TestHelpers:
    def test_safe_divide(self):
        assert safe_divide(1.0, 0.0) == 0.0
        assert safe_divide(1.0, 4.0) == 0.25

    def test_tree_value_tolerates_gaps(self):
        tree = {"a": {"b": 2.5, "c": "text"}}
        assert tree_value(tree, "a", "b") == 2.5
        assert tree_value(tree, "a", "missing") == 0.0
        assert tree_value(tree, "a", "c") == 0.0
        assert tree_value(tree, "a", "b", "deeper", default=-1.0) == -1.0


class TestCalculateRatios:
    def test_from_balance_sheet_alone(self, engine):
        statement = generate_balance_sheet(
            engine.calculator, engine.store, date(2024, 1, 31), "monthly"
        )
        ratios = calculate_ratios(statement, engine.store).to_dict()

        assert ratios["current_ratio"] == pytest.approx(5.1333)
        assert ratios["quick_ratio"] == pytest.approx(4.8)
        assert ratios["debt_to_equity"] == pytest.approx(0.2419)
        assert ratios["return_on_assets"] == pytest.approx(0.1558)
        assert ratios["return_on_equity"] == pytest.approx(0.1935)
        assert ratios["inventory_turnover"] == 0.0
        assert ratios["net_income_source"] == "balance_sheet"

    def test_uses_matching_profit_loss(self, engine):
        generate_profit_loss(
            engine.calculator, engine.store, date(2024, 1, 1), date(2024, 1, 31), "monthly"
        )
        statement = generate_balance_sheet(
            engine.calculator, engine.store, date(2024, 1, 31), "monthly"
        )

        assert statement.ratios["net_income_source"] == "profit_loss"
        assert statement.ratios["inventory_turnover"] == pytest.approx(2.0)
        assert statement.ratios["accounts_payable_turnover"] == pytest.approx(0.6667)

    def test_beginning_balances_from_prior_period(self, engine):
        generate_balance_sheet(engine.calculator, engine.store, date(2024, 1, 31), "monthly")
        # February: buy 1000 more inventory on credit and sell with COGS 500.
        post(engine.ledger, "F1", date(2024, 2, 5), "1200", "2110", 1000.0)
        post(engine.ledger, "F2", date(2024, 2, 10), "5001", "1200", 500.0)
        generate_profit_loss(
            engine.calculator, engine.store, date(2024, 2, 1), date(2024, 2, 29), "monthly"
        )

        february = generate_balance_sheet(
            engine.calculator, engine.store, date(2024, 2, 29), "monthly"
        )

        # Average inventory (1000 + 1500) / 2 = 1250
        assert february.ratios["inventory_turnover"] == pytest.approx(0.4)
        # Average payables (3000 + 4000) / 2 = 3500
        assert february.ratios["accounts_payable_turnover"] == pytest.approx(0.1429)

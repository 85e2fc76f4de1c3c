"""
Financial ratio calculation.

Liquidity, leverage, profitability and turnover ratios computed from an
assembled balance sheet, the matching-period P&L statement and the balance
sheet of the preceding period. Every division is guarded: a zero
denominator yields 0 rather than an error.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Optional

from ..periods import previous_period_start
from ..store import Statement, StatementStore

logger = logging.getLogger(__name__)


@dataclass
class RatioInputs:
    """
    Figures feeding the ratio calculation.

    Beginning balances default to the ending balances when no prior-period
    statement is available.
    """

    current_assets: float = 0.0
    current_liabilities: float = 0.0
    inventory: float = 0.0
    total_assets: float = 0.0
    total_liabilities: float = 0.0
    total_equity: float = 0.0
    net_income: float = 0.0
    cost_of_goods_sold: float = 0.0
    net_sales: float = 0.0
    receivables: float = 0.0
    payables: float = 0.0
    beginning_inventory: Optional[float] = None
    beginning_receivables: Optional[float] = None
    beginning_payables: Optional[float] = None


@dataclass
class RatioSet:
    """Computed financial ratios."""

    current_ratio: float = 0.0
    quick_ratio: float = 0.0
    debt_to_equity: float = 0.0
    return_on_assets: float = 0.0
    return_on_equity: float = 0.0
    inventory_turnover: float = 0.0
    accounts_receivable_turnover: float = 0.0
    accounts_payable_turnover: float = 0.0
    working_capital: float = 0.0
    net_income_source: str = "balance_sheet"

    def to_dict(self) -> dict:
        data = asdict(self)
        return {
            key: round(value, 4) if isinstance(value, float) else value
            for key, value in data.items()
        }


def safe_divide(numerator: float, denominator: float) -> float:
    """Divide, returning 0.0 for a zero denominator."""
    if denominator == 0:
        return 0.0
    return numerator / denominator


def _average(beginning: Optional[float], ending: float) -> float:
    if beginning is None:
        beginning = ending
    return (beginning + ending) / 2


def compute_ratios(inputs: RatioInputs, net_income_source: str = "balance_sheet") -> RatioSet:
    """
    Compute ratios from assembled totals.

    Args:
        inputs: Balance sheet and P&L figures.
        net_income_source: Where net income came from, recorded on the result.

    Returns:
        RatioSet.
    """
    ratios = RatioSet(net_income_source=net_income_source)

    ratios.current_ratio = safe_divide(inputs.current_assets, inputs.current_liabilities)
    ratios.quick_ratio = safe_divide(
        inputs.current_assets - inputs.inventory, inputs.current_liabilities
    )
    ratios.debt_to_equity = safe_divide(inputs.total_liabilities, inputs.total_equity)
    ratios.working_capital = inputs.current_assets - inputs.current_liabilities

    # Profitability ratios are only meaningful over a positive base.
    if inputs.total_assets > 0:
        ratios.return_on_assets = inputs.net_income / inputs.total_assets
    if inputs.total_equity > 0:
        ratios.return_on_equity = inputs.net_income / inputs.total_equity

    ratios.inventory_turnover = safe_divide(
        inputs.cost_of_goods_sold,
        _average(inputs.beginning_inventory, inputs.inventory),
    )
    ratios.accounts_receivable_turnover = safe_divide(
        inputs.net_sales,
        _average(inputs.beginning_receivables, inputs.receivables),
    )
    ratios.accounts_payable_turnover = safe_divide(
        inputs.cost_of_goods_sold,
        _average(inputs.beginning_payables, inputs.payables),
    )

    return ratios


# ---------------------------------------------------------------------------
# Statement-level calculation
# ---------------------------------------------------------------------------


def tree_value(tree: dict, *path: str, default: float = 0.0) -> float:
    """Read a number from a nested statement tree, tolerating gaps."""
    node = tree
    for key in path:
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node if isinstance(node, (int, float)) else default


def balance_sheet_figures(data: dict) -> dict:
    """Headline figures of a balance sheet tree used by ratio analysis."""
    current = ("assets", "current_assets")
    current_liab = ("liabilities", "current_liabilities")
    return {
        "current_assets": tree_value(data, *current, "total_current_assets"),
        "inventory": tree_value(data, *current, "inventory", "total"),
        "receivables": tree_value(data, *current, "accounts_receivable", "net_receivables"),
        "total_assets": tree_value(data, "assets", "total_assets"),
        "current_liabilities": tree_value(data, *current_liab, "total_current_liabilities"),
        "payables": tree_value(data, *current_liab, "accounts_payable", "total"),
        "total_liabilities": tree_value(data, "liabilities", "total_liabilities"),
        "total_equity": tree_value(data, "equity", "total_equity"),
        "current_period_earnings": tree_value(
            data, "equity", "retained_earnings", "current_period_earnings"
        ),
    }


def calculate_ratios(statement: Statement, store: StatementStore) -> RatioSet:
    """
    Calculate ratios for a balance sheet statement.

    Net income, COGS and net sales come from the P&L statement covering the
    same period when one exists; otherwise net income falls back to the
    balance sheet's current-period earnings. Beginning balances for the
    turnover ratios come from the preceding period's balance sheet.

    Args:
        statement: Balance sheet statement (persisted or in assembly).
        store: Statement store used for the cross-statement lookups.

    Returns:
        RatioSet.
    """
    figures = balance_sheet_figures(statement.data)

    inputs = RatioInputs(
        current_assets=figures["current_assets"],
        current_liabilities=figures["current_liabilities"],
        inventory=figures["inventory"],
        total_assets=figures["total_assets"],
        total_liabilities=figures["total_liabilities"],
        total_equity=figures["total_equity"],
        receivables=figures["receivables"],
        payables=figures["payables"],
        net_income=figures["current_period_earnings"],
    )

    source = "balance_sheet"
    profit_loss = store.find_matching_period("profit_loss", statement.period)
    if profit_loss is not None:
        inputs.net_income = tree_value(profit_loss.data, "net_income", "amount")
        inputs.cost_of_goods_sold = tree_value(
            profit_loss.data, "cost_of_goods_sold", "total_cogs", "amount"
        )
        inputs.net_sales = tree_value(profit_loss.data, "revenue", "net_sales", "amount")
        source = "profit_loss"
        logger.debug(f"Using P&L {profit_loss.statement_number} for ratio inputs")

    prior_start = previous_period_start(statement.period_start, statement.period_type)
    previous = store.find_by_period_start("balance_sheet", prior_start, statement.period_type)
    if previous is not None and previous.statement_id != statement.statement_id:
        prior = balance_sheet_figures(previous.data)
        inputs.beginning_inventory = prior["inventory"]
        inputs.beginning_receivables = prior["receivables"]
        inputs.beginning_payables = prior["payables"]
        logger.debug(f"Using {previous.statement_number} for beginning balances")
    else:
        logger.debug("No prior-period balance sheet; beginning balances default to current")

    return compute_ratios(inputs, net_income_source=source)

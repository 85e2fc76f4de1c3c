"""
Period-over-period statement comparison.

Pairs a statement with the previous period's statement (or the same period
one year earlier) of the same type and reports changes in headline totals.
"""

import logging
from collections import Counter

from ..errors import InputError
from ..periods import previous_period_start, year_ago_start
from ..store import Statement, StatementStore
from .ratios import tree_value

logger = logging.getLogger(__name__)


COMPARISON_TYPES = ("previous", "year_ago")

HEADLINE_PATHS = {
    "balance_sheet": {
        "total_assets": ("assets", "total_assets"),
        "total_current_assets": ("assets", "current_assets", "total_current_assets"),
        "total_liabilities": ("liabilities", "total_liabilities"),
        "total_current_liabilities": (
            "liabilities", "current_liabilities", "total_current_liabilities",
        ),
        "total_equity": ("equity", "total_equity"),
    },
    "profit_loss": {
        "total_revenue": ("revenue", "total_revenue", "amount"),
        "total_cogs": ("cost_of_goods_sold", "total_cogs", "amount"),
        "gross_profit": ("gross_profit", "amount"),
        "operating_income": ("operating_income", "amount"),
        "net_income": ("net_income", "amount"),
    },
}


def find_comparison_statement(
    store: StatementStore,
    statement: Statement,
    comparison: str = "previous",
):
    """
    Locate the statement a given statement is compared against.

    Returns:
        The comparison Statement, or None if it has not been generated.
    """
    if comparison == "previous":
        start = previous_period_start(statement.period_start, statement.period_type)
    elif comparison == "year_ago":
        start = year_ago_start(statement.period_start)
    else:
        raise InputError(
            f"Invalid comparison type '{comparison}'. "
            f"Must be one of {', '.join(COMPARISON_TYPES)}."
        )
    return store.find_by_period_start(statement.statement_type, start, statement.period_type)


def _change(current: float, previous: float) -> dict:
    change = current - previous
    return {
        "current": current,
        "comparison": previous,
        "change": round(change, 2),
        "percentage_change": round(change / abs(previous) * 100, 2) if previous != 0 else 0.0,
    }


def get_comparison_data(
    store: StatementStore,
    statement_id: str,
    comparison: str = "previous",
) -> dict:
    """
    Compare a statement's headline totals with another period.

    Args:
        store: Statement store.
        statement_id: Statement to compare.
        comparison: "previous" for the preceding period or "year_ago" for the
                    same period one year earlier.

    Returns:
        Dict with the two statement numbers and per-field
        {current, comparison, change, percentage_change}. When no
        comparison statement exists, "comparison_statement" is None and
        "fields" is empty.

    Raises:
        NotFoundError: If the statement does not exist.
        InputError: If the comparison type is unknown.
    """
    statement = store.get(statement_id)
    other = find_comparison_statement(store, statement, comparison)

    result = {
        "statement": statement.statement_number,
        "comparison_type": comparison,
        "comparison_statement": other.statement_number if other else None,
        "fields": {},
    }
    if other is None:
        logger.info(f"No {comparison} statement to compare with {statement.statement_number}")
        return result

    for name, path in HEADLINE_PATHS[statement.statement_type].items():
        result["fields"][name] = _change(
            tree_value(statement.data, *path),
            tree_value(other.data, *path),
        )
    return result


def get_stats(store: StatementStore, statement_type: str) -> dict:
    """
    Statement counts by status and the most recent statement date.

    Args:
        store: Statement store.
        statement_type: balance_sheet or profit_loss.

    Returns:
        Dict with total, by_status and latest_statement_date.
    """
    statements = list(store.iter_current(statement_type))
    by_status = Counter(s.status for s in statements)
    latest = max((s.statement_date for s in statements), default=None)
    return {
        "statement_type": statement_type,
        "total": len(statements),
        "by_status": dict(by_status),
        "latest_statement_date": latest.isoformat() if latest else None,
    }

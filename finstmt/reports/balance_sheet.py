"""
Balance Sheet report generation.

Assembles a structured Balance Sheet statement from account balances:
current and fixed assets, current and long-term liabilities, and equity
with a retained-earnings rollforward. Accounts reach their line items
through the registry's declarative category mapping.

Each bucket is computed independently; a failing bucket is zeroed and
flagged instead of aborting the statement. An accounting equation
violation (Assets != Liabilities + Equity beyond tolerance) is recorded
in the statement metadata and the statement is still persisted as a draft.
"""

import csv
import json
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from io import StringIO
from typing import Optional, Union

from ..balances import BalanceCalculator
from ..config import EngineConfig
from ..errors import ConflictError, InputError, attempt, fold_results
from ..periods import (
    DateRange,
    check_within_calendar_period,
    coerce_date,
    describe_period,
    previous_period_start,
    resolve_period,
    validate_period_type,
)
from ..store import Statement, StatementStore, now_iso
from ..versioning import make_audit_entry
from .ratios import calculate_ratios, tree_value

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Bucket builders
# ---------------------------------------------------------------------------


def _group(li: dict[str, float], keys: tuple[str, ...]) -> dict:
    """Line items for a group plus their total."""
    values = {key: li.get(key, 0.0) for key in keys}
    values["total"] = sum(values.values())
    return values


def _zero_group(keys: tuple[str, ...]) -> dict:
    return {**{key: 0.0 for key in keys}, "total": 0.0}


CASH_ITEMS = ("cash_on_hand", "bank_accounts", "petty_cash")
INVENTORY_ITEMS = ("raw_materials", "work_in_progress", "finished_goods")
PPE_ITEMS = (
    "land", "buildings", "equipment", "vehicles",
    "furniture_and_fixtures", "computer_equipment",
)
INTANGIBLE_ITEMS = ("goodwill", "patents", "trademarks", "software")
PAYABLE_ITEMS = ("trade_payables", "other_payables")
ACCRUED_ITEMS = (
    "salaries_payable", "utilities_payable", "rent_payable",
    "taxes_payable", "interest_payable", "other_accrued_expenses",
)
SHORT_TERM_DEBT_ITEMS = ("credit_lines", "short_term_loans", "credit_card_debt")
LONG_TERM_DEBT_ITEMS = ("mortgages", "long_term_loans", "bonds_payable")
CONTRIBUTED_ITEMS = ("common_stock", "preferred_stock", "additional_paid_in_capital")

RECEIVABLE_ZERO = {
    "trade_receivables": 0.0,
    "other_receivables": 0.0,
    "allowance_for_doubtful_accounts": 0.0,
    "net_receivables": 0.0,
}
RETAINED_ZERO = {
    "beginning_retained_earnings": 0.0,
    "current_period_earnings": 0.0,
    "dividends_paid": 0.0,
    "ending_retained_earnings": 0.0,
}
OTHER_EQUITY_ZERO = {
    "treasury_stock": 0.0,
    "accumulated_other_comprehensive_income": 0.0,
    "total": 0.0,
}


def build_receivables(li: dict[str, float], config: EngineConfig) -> dict:
    """
    Accounts receivable with allowance for doubtful accounts.

    A posted allowance account is used when one exists; otherwise the
    allowance is estimated as allowance_rate of positive gross receivables.
    """
    trade = li.get("trade_receivables", 0.0)
    other = li.get("other_receivables", 0.0)
    gross = trade + other

    if "allowance_for_doubtful_accounts" in li:
        allowance = li["allowance_for_doubtful_accounts"]
    else:
        allowance = config.allowance_rate * max(0.0, gross)

    return {
        "trade_receivables": trade,
        "other_receivables": other,
        "allowance_for_doubtful_accounts": allowance,
        "net_receivables": gross - allowance,
    }


def build_other_equity(li: dict[str, float]) -> dict:
    treasury = li.get("treasury_stock", 0.0)
    aoci = li.get("accumulated_other_comprehensive_income", 0.0)
    return {
        "treasury_stock": treasury,
        "accumulated_other_comprehensive_income": aoci,
        "total": aoci - treasury,
    }


@dataclass
class RetainedEarningsContext:
    """Inputs for the retained earnings rollforward of one statement."""

    calculator: BalanceCalculator
    store: StatementStore
    period: DateRange
    period_type: str
    as_of_date: date


def build_retained_earnings(ctx: RetainedEarningsContext) -> dict:
    """
    Retained earnings rollforward: beginning + current earnings - dividends.

    Beginning comes from the prior period's balance sheet when one exists;
    otherwise it is derived from the ledger as of the day before the period.
    Current earnings come from a P&L covering the same period, falling back
    to revenue minus expenses posted in the period.
    """
    calculator = ctx.calculator
    day_before = ctx.period.start - timedelta(days=1)

    prior_start = previous_period_start(ctx.period.start, ctx.period_type)
    previous = ctx.store.find_by_period_start("balance_sheet", prior_start, ctx.period_type)
    if previous is not None:
        beginning = tree_value(
            previous.data, "equity", "retained_earnings", "ending_retained_earnings"
        )
        logger.debug(f"Beginning retained earnings from {previous.statement_number}")
    else:
        beginning = (
            calculator.sum_line_item("retained_earnings", day_before)
            + calculator.net_income_to_date(day_before)
            - calculator.sum_line_item("dividends", day_before)
        )

    earnings_period = DateRange(ctx.period.start, min(ctx.period.end, ctx.as_of_date))
    profit_loss = ctx.store.find_matching_period("profit_loss", ctx.period)
    if profit_loss is not None:
        current = tree_value(profit_loss.data, "net_income", "amount")
        logger.debug(f"Current period earnings from {profit_loss.statement_number}")
    else:
        current = calculator.net_income(earnings_period.start, earnings_period.end)

    dividend_codes = calculator.registry.codes_for_line_item("dividends")
    activity = calculator.period_activity(
        dividend_codes, earnings_period.start, earnings_period.end
    )
    dividends = sum(act.debits for act in activity.values())

    return {
        "beginning_retained_earnings": beginning,
        "current_period_earnings": current,
        "dividends_paid": dividends,
        "ending_retained_earnings": beginning + current - dividends,
    }


def _round_tree(node, places: int):
    if isinstance(node, dict):
        return {key: _round_tree(value, places) for key, value in node.items()}
    if isinstance(node, float):
        return round(node, places)
    return node


def assemble_balance_sheet(
    calculator: BalanceCalculator,
    store: StatementStore,
    as_of_date: date,
    period: DateRange,
    period_type: str,
    config: EngineConfig,
) -> tuple[dict, list]:
    """
    Compute the balance sheet tree.

    Returns:
        Tuple of (data tree, list of CalculationErrors).
    """
    balances_result = attempt("account_balances", lambda: calculator.line_item_balances(as_of_date), {})
    li = {k: v for k, v in balances_result.value.items() if k != "has_error"}

    re_ctx = RetainedEarningsContext(calculator, store, period, period_type, as_of_date)

    buckets, errors = fold_results([
        balances_result,
        attempt("cash_and_cash_equivalents", lambda: _group(li, CASH_ITEMS), _zero_group(CASH_ITEMS)),
        attempt("accounts_receivable", lambda: build_receivables(li, config), RECEIVABLE_ZERO),
        attempt("inventory", lambda: _group(li, INVENTORY_ITEMS), _zero_group(INVENTORY_ITEMS)),
        attempt("property_plant_equipment", lambda: _group(li, PPE_ITEMS), _zero_group(PPE_ITEMS)),
        attempt("intangible_assets", lambda: _group(li, INTANGIBLE_ITEMS), _zero_group(INTANGIBLE_ITEMS)),
        attempt("accounts_payable", lambda: _group(li, PAYABLE_ITEMS), _zero_group(PAYABLE_ITEMS)),
        attempt("accrued_expenses", lambda: _group(li, ACCRUED_ITEMS), _zero_group(ACCRUED_ITEMS)),
        attempt("short_term_debt", lambda: _group(li, SHORT_TERM_DEBT_ITEMS), _zero_group(SHORT_TERM_DEBT_ITEMS)),
        attempt("long_term_debt", lambda: _group(li, LONG_TERM_DEBT_ITEMS), _zero_group(LONG_TERM_DEBT_ITEMS)),
        attempt("contributed_capital", lambda: _group(li, CONTRIBUTED_ITEMS), _zero_group(CONTRIBUTED_ITEMS)),
        attempt("retained_earnings", lambda: build_retained_earnings(re_ctx), RETAINED_ZERO),
        attempt("other_equity", lambda: build_other_equity(li), OTHER_EQUITY_ZERO),
    ])

    cash = buckets["cash_and_cash_equivalents"]
    receivables = buckets["accounts_receivable"]
    inventory = buckets["inventory"]
    prepaid = li.get("prepaid_expenses", 0.0)
    other_current = li.get("other_current_assets", 0.0)

    current_assets = {
        "cash_and_cash_equivalents": cash,
        "accounts_receivable": receivables,
        "inventory": inventory,
        "prepaid_expenses": prepaid,
        "other_current_assets": other_current,
        "total_current_assets": (
            cash["total"] + receivables["net_receivables"] + inventory["total"]
            + prepaid + other_current
        ),
    }

    ppe = buckets["property_plant_equipment"]
    accumulated_depreciation = li.get("accumulated_depreciation", 0.0)
    net_ppe = ppe["total"] - accumulated_depreciation
    intangibles = buckets["intangible_assets"]
    investments = li.get("long_term_investments", 0.0)
    other_assets = li.get("other_assets", 0.0)

    fixed_assets = {
        "property_plant_equipment": ppe,
        "accumulated_depreciation": accumulated_depreciation,
        "net_property_plant_equipment": net_ppe,
        "intangible_assets": intangibles,
        "long_term_investments": investments,
        "other_assets": other_assets,
        "total_fixed_assets": net_ppe + intangibles["total"] + investments + other_assets,
    }

    payables = buckets["accounts_payable"]
    accrued = buckets["accrued_expenses"]
    short_term_debt = buckets["short_term_debt"]
    deferred_revenue = li.get("deferred_revenue", 0.0)
    other_current_liabilities = li.get("other_current_liabilities", 0.0)

    current_liabilities = {
        "accounts_payable": payables,
        "accrued_expenses": accrued,
        "short_term_debt": short_term_debt,
        "deferred_revenue": deferred_revenue,
        "other_current_liabilities": other_current_liabilities,
        "total_current_liabilities": (
            payables["total"] + accrued["total"] + short_term_debt["total"]
            + deferred_revenue + other_current_liabilities
        ),
    }

    long_term_debt = buckets["long_term_debt"]
    deferred_tax = li.get("deferred_tax_liabilities", 0.0)
    pension = li.get("pension_liabilities", 0.0)
    other_long_term = li.get("other_long_term_liabilities", 0.0)

    long_term_liabilities = {
        "long_term_debt": long_term_debt,
        "deferred_tax_liabilities": deferred_tax,
        "pension_liabilities": pension,
        "other_long_term_liabilities": other_long_term,
        "total_long_term_liabilities": (
            long_term_debt["total"] + deferred_tax + pension + other_long_term
        ),
    }

    contributed = buckets["contributed_capital"]
    retained = buckets["retained_earnings"]
    other_equity = buckets["other_equity"]

    data = {
        "assets": {
            "current_assets": current_assets,
            "fixed_assets": fixed_assets,
            "total_assets": (
                current_assets["total_current_assets"] + fixed_assets["total_fixed_assets"]
            ),
        },
        "liabilities": {
            "current_liabilities": current_liabilities,
            "long_term_liabilities": long_term_liabilities,
            "total_liabilities": (
                current_liabilities["total_current_liabilities"]
                + long_term_liabilities["total_long_term_liabilities"]
            ),
        },
        "equity": {
            "contributed_capital": contributed,
            "retained_earnings": retained,
            "other_equity": other_equity,
            "total_equity": (
                contributed["total"] + retained["ending_retained_earnings"] + other_equity["total"]
            ),
        },
    }

    return data, errors


# ---------------------------------------------------------------------------
# Core generation function
# ---------------------------------------------------------------------------


def check_balance(data: dict, config: EngineConfig) -> tuple[bool, float]:
    """
    Verify Assets = Liabilities + Equity on a balance sheet tree.

    Returns:
        Tuple of (is_balanced, difference) where difference is
        assets - (liabilities + equity), rounded.
    """
    assets = tree_value(data, "assets", "total_assets")
    liabilities = tree_value(data, "liabilities", "total_liabilities")
    equity = tree_value(data, "equity", "total_equity")
    difference = config.round(assets - (liabilities + equity))
    return abs(difference) <= config.numeric_tolerance, difference


def generate_balance_sheet(
    calculator: BalanceCalculator,
    store: StatementStore,
    statement_date: Union[date, str],
    period_type: Optional[str] = None,
    generated_by: str = "system",
    date_range: Optional[DateRange] = None,
    config: Optional[EngineConfig] = None,
) -> Statement:
    """
    Generate and persist a Balance Sheet statement.

    Args:
        calculator: Balance calculator over the registry and ledger.
        store: Statement store the statement is persisted to.
        statement_date: Balance date (date or YYYY-MM-DD string).
        period_type: monthly, quarterly, yearly or custom.
        generated_by: User generating the statement.
        date_range: Explicit period; required for custom periods.
        config: Optional configuration; uses default if not provided.

    Returns:
        The persisted draft Statement.

    Raises:
        InputError: If the date or period is invalid.
        ConflictError: If a balance sheet already exists for the period.
    """
    if config is None:
        from ..config import default_config
        config = default_config

    as_of_date = coerce_date(statement_date, "statement_date")
    period_type = validate_period_type(period_type or config.default_period_type)
    if period_type == "custom" and date_range is None:
        raise InputError("Custom periods require an explicit date range")
    if date_range is not None and period_type != "custom":
        check_within_calendar_period(date_range, period_type, as_of_date)
    period = resolve_period(as_of_date, period_type, date_range)
    description = describe_period(period_type, period)

    logger.info(f"Generating Balance Sheet as of {as_of_date} ({description})")

    # STEP 1: One statement per period.
    logger.info("Step 1: Checking for an existing statement")
    existing = store.find_for_period("balance_sheet", period_type, period)
    if existing is not None:
        raise ConflictError(
            f"Balance sheet already exists for {period_type} period ending "
            f"{period.end.isoformat()}"
        )

    # STEP 2: Statement number.
    statement_number = store.next_statement_number("balance_sheet", period_type, period)
    logger.info(f"Step 2: Assigned statement number {statement_number}")

    # STEP 3: Buckets and rollups.
    logger.info("Step 3: Calculating balance sheet buckets")
    data, errors = assemble_balance_sheet(
        calculator, store, as_of_date, period, period_type, config
    )
    for error in errors:
        logger.warning(f"[!] Bucket '{error.bucket}' failed and was zeroed: {error.message}")

    # STEP 4: Accounting equation.
    logger.info("Step 4: Verifying accounting equation (Assets = Liabilities + Equity)")
    is_balanced, difference = check_balance(data, config)
    data = _round_tree(data, config.rounding_places)

    metadata = {
        "generated_by": generated_by,
        "generated_at": now_iso(),
        "version": 1,
        "as_of_date": as_of_date.isoformat(),
        "period_description": description,
        "currency": config.default_currency,
        "has_imbalance": not is_balanced,
        "imbalance_difference": difference if not is_balanced else 0.0,
        "calculation_errors": [error.to_dict() for error in errors],
    }

    if is_balanced:
        logger.info("[OK] Accounting equation verified (within tolerance)")
    else:
        logger.warning(
            f"[!] Balance sheet imbalance: Assets - (Liabilities + Equity) = {difference:,.2f}"
        )

    statement = Statement(
        statement_number=statement_number,
        statement_type="balance_sheet",
        statement_date=as_of_date,
        period_type=period_type,
        period_start=period.start,
        period_end=period.end,
        data=data,
        metadata=metadata,
    )

    # STEP 5: Ratios.
    logger.info("Step 5: Calculating financial ratios")
    statement.ratios = calculate_ratios(statement, store).to_dict()

    statement.audit_trail.append(make_audit_entry(
        "created",
        generated_by,
        details=f"Balance sheet generated for {description}",
    ))

    store.insert(statement)

    logger.info(f"Total Assets: {data['assets']['total_assets']:,.2f}")
    logger.info(f"Total Liabilities: {data['liabilities']['total_liabilities']:,.2f}")
    logger.info(f"Total Equity: {data['equity']['total_equity']:,.2f}")
    logger.info(f"[OK] Balance sheet {statement_number} saved as draft")

    return statement


# ---------------------------------------------------------------------------
# Equation check
# ---------------------------------------------------------------------------


@dataclass
class BalanceCheckResult:
    """
    Structured result of an accounting equation check.

    Attributes:
        as_of_date: Date checked.
        balanced: True if the accounting equation holds within tolerance.
        assets: Total asset balance.
        liabilities: Total liability balance.
        equity: Total equity including net income to date.
        difference: assets - (liabilities + equity).
    """

    as_of_date: date
    balanced: bool
    assets: float = 0.0
    liabilities: float = 0.0
    equity: float = 0.0
    difference: float = 0.0

    def to_dict(self) -> dict:
        return {
            "as_of_date": self.as_of_date.isoformat(),
            "balanced": self.balanced,
            "assets": self.assets,
            "liabilities": self.liabilities,
            "equity": self.equity,
            "difference": self.difference,
        }


def validate_balance_sheet_equation(
    calculator: BalanceCalculator,
    as_of_date: Union[date, str],
    config: Optional[EngineConfig] = None,
) -> BalanceCheckResult:
    """
    Check Assets = Liabilities + Equity directly from account balances.

    Unclosed revenue and expense balances are folded into equity as net
    income to date.

    Args:
        calculator: Balance calculator.
        as_of_date: Date to check (date or YYYY-MM-DD string).
        config: Optional configuration; uses default if not provided.

    Returns:
        BalanceCheckResult.
    """
    if config is None:
        from ..config import default_config
        config = default_config

    as_of = coerce_date(as_of_date, "as_of_date")
    totals = calculator.type_totals(as_of)

    assets = config.round(totals["asset"])
    liabilities = config.round(totals["liability"])
    equity = config.round(totals["equity"] + totals["revenue"] - totals["expense"])
    difference = config.round(assets - (liabilities + equity))
    balanced = abs(difference) <= config.numeric_tolerance

    if balanced:
        logger.info(f"[OK] Accounting equation holds as of {as_of}")
    else:
        logger.warning(f"[!] Accounting equation off by {difference:,.2f} as of {as_of}")

    return BalanceCheckResult(
        as_of_date=as_of,
        balanced=balanced,
        assets=assets,
        liabilities=liabilities,
        equity=equity,
        difference=difference,
    )


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def _label(key: str) -> str:
    return key.replace("_", " ").title()


def _walk_tree(node: dict, level: int = 0):
    """Yield (label, amount or None, level) rows for a statement subtree."""
    for key, value in node.items():
        if key == "has_error":
            continue
        if isinstance(value, dict):
            yield _label(key), None, level
            yield from _walk_tree(value, level + 1)
        else:
            label = "Total" if key == "total" else _label(key)
            yield label, value, level


def format_as_text(statement: Statement) -> str:
    """
    Format a Balance Sheet statement as human-readable text.

    Args:
        statement: Balance sheet statement to format.

    Returns:
        Formatted text string.
    """
    out = StringIO()
    sep = "=" * 80
    thin = "-" * 80
    metadata = statement.metadata

    out.write(sep + "\n")
    out.write("BALANCE SHEET\n")
    out.write(f"{statement.statement_number} ({statement.status})\n")
    out.write(f"As of {statement.statement_date.strftime('%B %d, %Y')}\n")
    out.write(f"Currency: {metadata.get('currency', 'USD')}\n")
    out.write(sep + "\n")

    for section in ("assets", "liabilities", "equity"):
        out.write(f"\n{section.upper()}\n")
        out.write(thin + "\n")
        for label, amount, level in _walk_tree(statement.data.get(section, {})):
            indent = "  " * level
            if amount is None:
                out.write(f"{indent}{label}\n")
            else:
                out.write(f"{indent + label:<60} {amount:>18,.2f}\n")

    out.write("\n" + sep + "\n")
    if metadata.get("has_imbalance"):
        out.write(
            f"[X] IMBALANCE: Assets - (Liabilities + Equity) = "
            f"{metadata.get('imbalance_difference', 0.0):,.2f}\n"
        )
    else:
        out.write("[OK] BALANCED (Assets = Liabilities + Equity)\n")

    for error in metadata.get("calculation_errors", []):
        out.write(f"[!] {error['bucket']} could not be calculated: {error['message']}\n")

    if statement.ratios:
        out.write("\nRATIOS\n")
        out.write(thin + "\n")
        for key, value in statement.ratios.items():
            if isinstance(value, float):
                out.write(f"{_label(key):<60} {value:>18,.4f}\n")

    return out.getvalue()


def format_as_csv(statement: Statement) -> str:
    """
    Format a Balance Sheet statement as CSV.

    Args:
        statement: Balance sheet statement to format.

    Returns:
        CSV string.
    """
    out = StringIO()
    writer = csv.writer(out)

    writer.writerow(["Balance Sheet"])
    writer.writerow([statement.statement_number])
    writer.writerow([f"As of {statement.statement_date.isoformat()}"])
    writer.writerow([])
    writer.writerow(["Section", "Line Item", "Level", "Amount"])

    for section in ("assets", "liabilities", "equity"):
        for label, amount, level in _walk_tree(statement.data.get(section, {})):
            writer.writerow([
                section.title(),
                label,
                level,
                f"{amount:.2f}" if amount is not None else "",
            ])

    writer.writerow([])
    writer.writerow(["Has Imbalance", statement.metadata.get("has_imbalance", False)])
    writer.writerow(["Imbalance", f"{statement.metadata.get('imbalance_difference', 0.0):.2f}"])

    return out.getvalue()


def format_as_json(statement: Statement) -> str:
    """
    Format a Balance Sheet statement as JSON.

    Args:
        statement: Balance sheet statement to format.

    Returns:
        JSON string.
    """
    return json.dumps({"balance_sheet": statement.to_dict()}, indent=2)

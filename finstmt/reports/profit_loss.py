"""
Profit & Loss statement generation.

Derives revenue, cost of goods sold, operating expenses, other income and
expenses, income tax and net income for a period from ledger activity.
Every amount carries a margin expressed as a percentage of total revenue.

COGS is taken from posted cost-of-goods-sold transactions when there are
any; otherwise it falls back to the periodic inventory formula
(beginning inventory + purchases + freight in - returns - discounts -
ending inventory). The method used is recorded on the statement.
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from io import StringIO
from typing import Optional, Union

from ..balances import BalanceCalculator
from ..config import EngineConfig, resolve_account_codes
from ..errors import ConflictError, InputError
from ..ledger import AccountActivity
from ..periods import (
    DateRange,
    check_whole_calendar_period,
    coerce_date,
    describe_period,
    previous_period_start,
    validate_period_type,
)
from ..store import Statement, StatementStore, now_iso
from ..versioning import make_audit_entry

logger = logging.getLogger(__name__)


INVENTORY_ITEMS = ("raw_materials", "work_in_progress", "finished_goods")

# Line items whose period activity feeds the P&L, grouped by the side
# on which they increase.
CREDIT_SIDE_ITEMS = ("gross_sales", "other_income", "interest_income", "rental_income",
                     "purchase_returns", "purchase_discounts")
DEBIT_SIDE_ITEMS = (
    "sales_returns", "sales_discounts", "cost_of_goods_sold", "purchases", "freight_in",
    "selling_expenses", "administrative_expenses", "interest_expense",
    "depreciation_expense", "amortization_expense", "other_expenses",
    "income_tax", "deferred_income_tax",
)

VARIANCE_FIELDS = ("total_revenue", "gross_profit", "operating_income", "net_income")


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass
class PLInputs:
    """
    Raw period figures feeding the P&L computation.

    All amounts are positive on their natural side.
    """

    gross_sales: float = 0.0
    sales_returns: float = 0.0
    sales_discounts: float = 0.0
    other_revenue: float = 0.0
    transaction_cogs: float = 0.0
    beginning_inventory: float = 0.0
    purchases: float = 0.0
    freight_in: float = 0.0
    purchase_returns: float = 0.0
    purchase_discounts: float = 0.0
    ending_inventory: float = 0.0
    selling_expenses: float = 0.0
    administrative_expenses: float = 0.0
    interest_income: float = 0.0
    rental_income: float = 0.0
    interest_expense: float = 0.0
    depreciation: float = 0.0
    amortization: float = 0.0
    other_expenses: float = 0.0
    current_tax: float = 0.0
    deferred_tax: float = 0.0
    cogs_method: str = "transaction"


def _sum_activity(
    activity: dict[str, AccountActivity],
    codes: list[str],
    credit_side: bool,
) -> float:
    total = 0.0
    for code in codes:
        act = activity.get(code, AccountActivity())
        total += (act.credits - act.debits) if credit_side else (act.debits - act.credits)
    return total


def gather_pl_inputs(
    calculator: BalanceCalculator,
    period: DateRange,
    cogs_method: str,
) -> PLInputs:
    """
    Collect P&L inputs for a period in one batched ledger pass.

    Debits posted against gross sales accounts are treated as sales returns.
    When no account is mapped to gross_sales, the resolved sales revenue
    account is used.
    """
    registry = calculator.registry
    grouped = registry.codes_by_line_item()
    codes = {item: grouped.get(item, []) for item in CREDIT_SIDE_ITEMS + DEBIT_SIDE_ITEMS}
    if not codes["gross_sales"]:
        codes["gross_sales"] = [resolve_account_codes(registry).sales_revenue]

    all_codes = [code for item_codes in codes.values() for code in item_codes]
    activity = calculator.period_activity(all_codes, period.start, period.end)

    def credit(item: str) -> float:
        return _sum_activity(activity, codes[item], credit_side=True)

    def debit(item: str) -> float:
        return _sum_activity(activity, codes[item], credit_side=False)

    sales_activity = [activity.get(code, AccountActivity()) for code in codes["gross_sales"]]

    day_before = period.start - timedelta(days=1)
    inventory_codes = [code for item in INVENTORY_ITEMS for code in grouped.get(item, [])]
    beginning_inventory = sum(calculator.balances(inventory_codes, day_before).values())
    ending_inventory = sum(calculator.balances(inventory_codes, period.end).values())

    return PLInputs(
        gross_sales=sum(act.credits for act in sales_activity),
        sales_returns=sum(act.debits for act in sales_activity) + debit("sales_returns"),
        sales_discounts=debit("sales_discounts"),
        other_revenue=credit("other_income"),
        transaction_cogs=debit("cost_of_goods_sold"),
        beginning_inventory=beginning_inventory,
        purchases=debit("purchases"),
        freight_in=debit("freight_in"),
        purchase_returns=credit("purchase_returns"),
        purchase_discounts=credit("purchase_discounts"),
        ending_inventory=ending_inventory,
        selling_expenses=debit("selling_expenses"),
        administrative_expenses=debit("administrative_expenses"),
        interest_income=credit("interest_income"),
        rental_income=credit("rental_income"),
        interest_expense=debit("interest_expense"),
        depreciation=debit("depreciation_expense"),
        amortization=debit("amortization_expense"),
        other_expenses=debit("other_expenses"),
        current_tax=debit("income_tax"),
        deferred_tax=debit("deferred_income_tax"),
        cogs_method=cogs_method,
    )


# ---------------------------------------------------------------------------
# Computation
# ---------------------------------------------------------------------------


def _margin(amount: float, total_revenue: float) -> float:
    if total_revenue == 0:
        return 0.0
    return amount / total_revenue * 100


def calculate_pl_totals(inputs: PLInputs, places: int = 2) -> dict:
    """
    Compute the P&L statement tree from raw inputs.

    Pure function: no ledger or store access.

    Args:
        inputs: Period figures.
        places: Decimal places for rounding amounts.

    Returns:
        Nested dict keyed by statement section.
    """
    net_sales = inputs.gross_sales - inputs.sales_returns - inputs.sales_discounts
    total_revenue = net_sales + inputs.other_revenue

    def line(amount: float, **extra) -> dict:
        return {
            "amount": round(amount, places),
            "margin": round(_margin(amount, total_revenue), places),
            **extra,
        }

    formula_cogs = (
        inputs.beginning_inventory
        + inputs.purchases
        + inputs.freight_in
        - inputs.purchase_returns
        - inputs.purchase_discounts
        - inputs.ending_inventory
    )
    if inputs.cogs_method == "transaction" and inputs.transaction_cogs != 0:
        total_cogs = inputs.transaction_cogs
        method = "transaction"
    else:
        total_cogs = formula_cogs
        method = "inventory_formula"

    gross_profit = total_revenue - total_cogs
    total_operating = inputs.selling_expenses + inputs.administrative_expenses
    operating_income = gross_profit - total_operating

    total_other_income = inputs.interest_income + inputs.rental_income
    total_other_expenses = (
        inputs.interest_expense + inputs.depreciation + inputs.amortization + inputs.other_expenses
    )
    earnings_before_tax = operating_income + total_other_income - total_other_expenses

    total_tax = inputs.current_tax + inputs.deferred_tax
    effective_rate = total_tax / earnings_before_tax * 100 if earnings_before_tax != 0 else 0.0
    net_income = earnings_before_tax - total_tax

    ebitda = operating_income + inputs.depreciation + inputs.amortization

    return {
        "revenue": {
            "gross_sales": line(inputs.gross_sales),
            "sales_returns": line(inputs.sales_returns),
            "sales_discounts": line(inputs.sales_discounts),
            "net_sales": line(net_sales),
            "other_revenue": line(inputs.other_revenue),
            "total_revenue": line(total_revenue),
        },
        "cost_of_goods_sold": {
            "beginning_inventory": round(inputs.beginning_inventory, places),
            "purchases": round(inputs.purchases, places),
            "freight_in": round(inputs.freight_in, places),
            "purchase_returns": round(inputs.purchase_returns, places),
            "purchase_discounts": round(inputs.purchase_discounts, places),
            "ending_inventory": round(inputs.ending_inventory, places),
            "cogs_from_inventory_formula": round(formula_cogs, places),
            "total_cogs": line(total_cogs, calculation_method=method),
        },
        "gross_profit": line(gross_profit),
        "operating_expenses": {
            "selling_expenses": line(inputs.selling_expenses),
            "administrative_expenses": line(inputs.administrative_expenses),
            "total_operating_expenses": line(total_operating),
        },
        "operating_income": line(operating_income),
        "other_income": {
            "interest_income": line(inputs.interest_income),
            "rental_income": line(inputs.rental_income),
            "total_other_income": line(total_other_income),
        },
        "other_expenses": {
            "interest_expense": line(inputs.interest_expense),
            "depreciation": line(inputs.depreciation),
            "amortization": line(inputs.amortization),
            "other": line(inputs.other_expenses),
            "total_other_expenses": line(total_other_expenses),
        },
        "earnings_before_tax": line(earnings_before_tax),
        "income_tax": {
            "current": line(inputs.current_tax),
            "deferred": line(inputs.deferred_tax),
            "total": line(total_tax),
            "effective_tax_rate": round(effective_rate, places),
        },
        "net_income": line(net_income),
        "key_metrics": {
            "gross_margin": round(_margin(gross_profit, total_revenue), places),
            "operating_margin": round(_margin(operating_income, total_revenue), places),
            "net_margin": round(_margin(net_income, total_revenue), places),
            "ebitda": round(ebitda, places),
            "ebitda_margin": round(_margin(ebitda, total_revenue), places),
        },
    }


def _headline(data: dict, name: str) -> float:
    if name == "total_revenue":
        return data.get("revenue", {}).get("total_revenue", {}).get("amount", 0.0)
    return data.get(name, {}).get("amount", 0.0)


def calculate_variances(current: dict, previous: dict) -> dict:
    """
    Period-over-period variances for headline P&L figures.

    Args:
        current: Data tree of the current P&L.
        previous: Data tree of the comparison P&L.

    Returns:
        Dict of {field: {current, previous, change, percentage_change}}.
    """
    variances = {}
    for name in VARIANCE_FIELDS:
        cur = _headline(current, name)
        prev = _headline(previous, name)
        change = cur - prev
        variances[name] = {
            "current": cur,
            "previous": prev,
            "change": round(change, 2),
            "percentage_change": round(change / abs(prev) * 100, 2) if prev != 0 else 0.0,
        }
    return variances


# ---------------------------------------------------------------------------
# Core generation function
# ---------------------------------------------------------------------------


def generate_profit_loss(
    calculator: BalanceCalculator,
    store: StatementStore,
    period_start: Union[date, str],
    period_end: Union[date, str],
    period_type: Optional[str] = None,
    generated_by: str = "system",
    options: Optional[dict] = None,
    config: Optional[EngineConfig] = None,
) -> Statement:
    """
    Generate and persist a Profit & Loss statement.

    Args:
        calculator: Balance calculator over the registry and ledger.
        store: Statement store the statement is persisted to.
        period_start: First day of the period (date or YYYY-MM-DD string).
        period_end: Last day of the period (date or YYYY-MM-DD string).
        period_type: monthly, quarterly, yearly or custom.
        generated_by: User generating the statement.
        options: Optional dict; "cogs_method" overrides the configured
                 COGS method, "notes" sets the statement notes.
        config: Optional configuration; uses default if not provided.

    Returns:
        The persisted draft Statement.

    Raises:
        InputError: If the dates, period type or options are invalid.
        ConflictError: If a P&L already exists for the period.
    """
    if config is None:
        from ..config import default_config
        config = default_config
    options = options or {}

    start = coerce_date(period_start, "period_start")
    end = coerce_date(period_end, "period_end")
    period_type = validate_period_type(period_type or config.default_period_type)
    period = DateRange(start, end)
    if period_type != "custom":
        check_whole_calendar_period(period, period_type)

    cogs_method = options.get("cogs_method", config.cogs_method)
    if cogs_method not in ("transaction", "inventory_formula"):
        raise InputError(f"Invalid COGS method '{cogs_method}'")

    description = describe_period(period_type, period)
    logger.info(f"Generating P&L statement for {description}")

    # STEP 1: One statement per period.
    logger.info("Step 1: Checking for an existing statement")
    if store.find_for_period("profit_loss", period_type, period) is not None:
        raise ConflictError(
            f"P&L statement already exists for {period_type} period ending {end.isoformat()}"
        )

    statement_number = store.next_statement_number("profit_loss", period_type, period)
    logger.info(f"Step 2: Assigned statement number {statement_number}")

    # STEP 3: Period activity.
    logger.info("Step 3: Gathering period activity")
    inputs = gather_pl_inputs(calculator, period, cogs_method)

    # STEP 4: Totals and margins.
    logger.info("Step 4: Calculating totals and margins")
    data = calculate_pl_totals(inputs, config.rounding_places)
    method = data["cost_of_goods_sold"]["total_cogs"]["calculation_method"]
    if method != cogs_method:
        logger.info(f"No COGS transactions in period; used {method.replace('_', ' ')}")

    # STEP 5: Variances against the preceding period.
    previous = None
    if period_type != "custom":
        previous = store.find_by_period_start(
            "profit_loss", previous_period_start(start, period_type), period_type
        )
    if previous is not None:
        logger.info(f"Step 5: Calculating variances against {previous.statement_number}")
        data["variances"] = calculate_variances(data, previous.data)
    else:
        logger.info("Step 5: No previous period statement; variances skipped")

    statement = Statement(
        statement_number=statement_number,
        statement_type="profit_loss",
        statement_date=end,
        period_type=period_type,
        period_start=start,
        period_end=end,
        data=data,
        metadata={
            "generated_by": generated_by,
            "generated_at": now_iso(),
            "version": 1,
            "period_description": description,
            "currency": config.default_currency,
            "calculation_errors": [],
            "variance_basis": previous.statement_number if previous else None,
        },
        notes=options.get("notes", ""),
    )
    statement.audit_trail.append(make_audit_entry(
        "created",
        generated_by,
        details=f"P&L statement generated for {description}",
    ))

    store.insert(statement)

    logger.info(f"Total Revenue: {data['revenue']['total_revenue']['amount']:,.2f}")
    logger.info(f"Net Income: {data['net_income']['amount']:,.2f}")
    logger.info(f"[OK] P&L statement {statement_number} saved as draft")

    return statement


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_as_text(statement: Statement) -> str:
    """
    Format a P&L statement as human-readable text.

    Args:
        statement: P&L statement to format.

    Returns:
        Formatted text string.
    """
    data = statement.data
    out = StringIO()
    sep = "=" * 80
    thin = "-" * 80

    def row(label: str, entry: dict, indent: int = 2) -> None:
        out.write(
            f"{' ' * indent + label:<50} {entry['amount']:>16,.2f} {entry['margin']:>10.2f}%\n"
        )

    out.write(sep + "\n")
    out.write("PROFIT & LOSS STATEMENT\n")
    out.write(f"{statement.statement_number} ({statement.status})\n")
    out.write(
        f"For the period {statement.period_start.strftime('%B %d, %Y')} "
        f"to {statement.period_end.strftime('%B %d, %Y')}\n"
    )
    out.write(sep + "\n")

    revenue = data["revenue"]
    out.write("\nREVENUE\n" + thin + "\n")
    row("Gross Sales", revenue["gross_sales"])
    row("Less: Sales Returns", revenue["sales_returns"])
    row("Less: Sales Discounts", revenue["sales_discounts"])
    row("Net Sales", revenue["net_sales"])
    row("Other Revenue", revenue["other_revenue"])
    row("Total Revenue", revenue["total_revenue"], indent=0)

    cogs = data["cost_of_goods_sold"]
    out.write("\nCOST OF GOODS SOLD\n" + thin + "\n")
    method = cogs["total_cogs"].get("calculation_method", "transaction").replace("_", " ")
    row(f"Total COGS ({method})", cogs["total_cogs"], indent=0)
    row("GROSS PROFIT", data["gross_profit"], indent=0)

    opex = data["operating_expenses"]
    out.write("\nOPERATING EXPENSES\n" + thin + "\n")
    row("Selling Expenses", opex["selling_expenses"])
    row("Administrative Expenses", opex["administrative_expenses"])
    row("Total Operating Expenses", opex["total_operating_expenses"], indent=0)
    row("OPERATING INCOME", data["operating_income"], indent=0)

    out.write("\nOTHER INCOME AND EXPENSES\n" + thin + "\n")
    row("Total Other Income", data["other_income"]["total_other_income"])
    row("Total Other Expenses", data["other_expenses"]["total_other_expenses"])
    row("EARNINGS BEFORE TAX", data["earnings_before_tax"], indent=0)
    row("Income Tax", data["income_tax"]["total"])

    out.write("\n" + sep + "\n")
    label = "NET INCOME" if data["net_income"]["amount"] >= 0 else "NET LOSS"
    row(label, data["net_income"], indent=0)
    out.write(sep + "\n")

    variances = data.get("variances")
    if variances:
        basis = statement.metadata.get("variance_basis") or "previous period"
        out.write(f"\nVARIANCE VS {basis}\n")
        out.write(thin + "\n")
        for name, v in variances.items():
            out.write(
                f"  {name.replace('_', ' ').title():<30} {v['change']:>16,.2f} "
                f"{v['percentage_change']:>10.2f}%\n"
            )

    return out.getvalue()


def format_as_json(statement: Statement) -> str:
    """Format a P&L statement as JSON."""
    return json.dumps({"profit_loss": statement.to_dict()}, indent=2)

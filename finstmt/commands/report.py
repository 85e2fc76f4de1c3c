"""
Report command group for finstmt.

Commands: balance-sheet, profit-loss, trial-balance, validate-close,
equation-check, ratios
"""

import json
import logging
import sys

import click

from ..config import EngineConfig
from ..errors import FinstmtError, InputError
from ..periods import DateRange, coerce_date
from ..reports import balance_sheet as bs_report
from ..reports import profit_loss as pl_report
from ..reports import trial_balance as tb_report
from ..reports.ratios import calculate_ratios
from ..workspace import Workspace
from ._options import as_of_option, data_dir_option, format_option, period_type_option, user_option

logger = logging.getLogger(__name__)


@click.group(name="report")
def report_group():
    """Financial statement generation and validation commands."""


def _fail(e: Exception, what: str):
    logger.error(f"{what} failed: {e}")
    click.echo(f"\n[ERROR] {e}")
    sys.exit(1)


@report_group.command(name="balance-sheet")
@data_dir_option
@as_of_option(required=True)
@period_type_option
@click.option("--from", "from_date", default=None, help="Period start for custom periods (YYYY-MM-DD).")
@user_option
@click.option("--allowance-rate", type=float, default=None,
              help="Allowance for doubtful accounts as a fraction of receivables (default: 0.03).")
@format_option()
def balance_sheet(data_dir, as_of, period_type, from_date, user, allowance_rate, output_format):
    """
    Generate and save a Balance Sheet as of a date.

    The statement is saved as a draft in statements.json. Only one balance
    sheet may exist per period; generating a second one for the same period
    fails.

    An accounting equation violation does not stop generation: the
    statement is saved with an imbalance flag and the difference is shown.
    """
    logger.info("=== FINSTMT Balance Sheet ===")

    try:
        config = EngineConfig()
        if allowance_rate is not None:
            config = config.with_overrides(allowance_rate=allowance_rate)

        workspace = Workspace.load(data_dir)
        date_range = None
        if period_type == "custom":
            if not from_date:
                raise InputError("Custom periods require --from")
            date_range = DateRange(coerce_date(from_date, "from"), coerce_date(as_of, "as_of"))

        statement = bs_report.generate_balance_sheet(
            workspace.calculator(),
            workspace.store,
            as_of,
            period_type=period_type,
            generated_by=user,
            date_range=date_range,
            config=config,
        )
        workspace.save_statements()

    except FinstmtError as e:
        _fail(e, "Balance sheet generation")
    except Exception as e:
        logger.error(f"Error generating balance sheet: {e}", exc_info=True)
        sys.exit(1)

    if output_format.lower() == "csv":
        output = bs_report.format_as_csv(statement)
    elif output_format.lower() == "json":
        output = bs_report.format_as_json(statement)
    else:
        output = bs_report.format_as_text(statement)

    click.echo()
    click.echo(output)
    click.echo(f"Saved as {statement.statement_number} (id {statement.statement_id})")


@report_group.command(name="profit-loss")
@data_dir_option
@click.option("--from", "from_date", required=True, help="Period start (YYYY-MM-DD).")
@click.option("--to", "to_date", required=True, help="Period end (YYYY-MM-DD).")
@period_type_option
@user_option
@click.option("--cogs-method", type=click.Choice(["transaction", "inventory_formula"]),
              default=None, help="COGS method (default: transaction, with formula fallback).")
@format_option(("text", "json"))
def profit_loss(data_dir, from_date, to_date, period_type, user, cogs_method, output_format):
    """
    Generate and save a Profit & Loss statement for a period.

    Revenue, COGS and expenses are derived from ledger activity between
    --from and --to (inclusive). The statement is saved as a draft.

    Monthly, quarterly and yearly statements must cover exactly one
    calendar period; use -p custom for any other range.
    """
    logger.info("=== FINSTMT Profit & Loss ===")

    try:
        workspace = Workspace.load(data_dir)
        options = {"cogs_method": cogs_method} if cogs_method else None
        statement = pl_report.generate_profit_loss(
            workspace.calculator(),
            workspace.store,
            from_date,
            to_date,
            period_type=period_type,
            generated_by=user,
            options=options,
        )
        workspace.save_statements()

    except FinstmtError as e:
        _fail(e, "P&L generation")
    except Exception as e:
        logger.error(f"Error generating P&L statement: {e}", exc_info=True)
        sys.exit(1)

    if output_format.lower() == "json":
        output = pl_report.format_as_json(statement)
    else:
        output = pl_report.format_as_text(statement)

    click.echo()
    click.echo(output)
    click.echo(f"Saved as {statement.statement_number} (id {statement.statement_id})")


@report_group.command(name="trial-balance")
@data_dir_option
@as_of_option(required=True)
@click.option("--period-id", default=None, help="Identifier of the period being reviewed.")
@format_option()
def trial_balance(data_dir, as_of, period_id, output_format):
    """
    Show the Trial Balance as of a date.

    Advisory only: an unbalanced trial balance is reported but the command
    still succeeds. Use 'validate-close' before closing a period.
    """
    logger.info("=== FINSTMT Trial Balance ===")

    try:
        workspace = Workspace.load(data_dir)
        result = tb_report.generate_trial_balance(workspace.calculator(), as_of, period_id)
    except FinstmtError as e:
        _fail(e, "Trial balance")

    if output_format.lower() == "csv":
        output = tb_report.format_as_csv(result)
    elif output_format.lower() == "json":
        output = tb_report.format_as_json(result)
    else:
        output = tb_report.format_as_text(result)

    click.echo()
    click.echo(output)


@report_group.command(name="validate-close")
@data_dir_option
@as_of_option(required=True)
@click.option("--period-id", default=None, help="Identifier of the period being closed.")
def validate_close(data_dir, as_of, period_id):
    """
    Validate the Trial Balance before closing a period.

    Exits with status 1 if debits do not equal credits within tolerance.
    """
    logger.info("=== FINSTMT Period Close Validation ===")

    try:
        workspace = Workspace.load(data_dir)
        validation = tb_report.validate_trial_balance(workspace.calculator(), as_of, period_id)
    except FinstmtError as e:
        _fail(e, "Close validation")

    summary = tb_report.get_trial_balance_summary(validation.trial_balance)
    click.echo(f"\nTrial balance as of {summary['as_of_date']}: {summary['total_accounts']} accounts")
    click.echo(f"  Total debits:  {summary['total_debits']:>15,.2f}")
    click.echo(f"  Total credits: {summary['total_credits']:>15,.2f}")

    if validation.valid:
        click.echo("\n[OK] Ready to close: trial balance is balanced")
        sys.exit(0)

    click.echo(f"\n[FAIL] Cannot close period: {validation.reason}")
    sys.exit(1)


@report_group.command(name="equation-check")
@data_dir_option
@as_of_option(required=True)
def equation_check(data_dir, as_of):
    """
    Check Assets = Liabilities + Equity from raw account balances.

    Unclosed revenue and expense balances count toward equity. Exits with
    status 1 if the equation does not hold within tolerance.
    """
    try:
        workspace = Workspace.load(data_dir)
        result = bs_report.validate_balance_sheet_equation(workspace.calculator(), as_of)
    except FinstmtError as e:
        _fail(e, "Equation check")

    click.echo(f"\nAccounting equation as of {result.as_of_date}")
    click.echo(f"  Assets:      {result.assets:>15,.2f}")
    click.echo(f"  Liabilities: {result.liabilities:>15,.2f}")
    click.echo(f"  Equity:      {result.equity:>15,.2f}")
    click.echo(f"  Difference:  {result.difference:>15,.2f}")

    if result.balanced:
        click.echo("\n[OK] Assets = Liabilities + Equity")
        sys.exit(0)

    click.echo("\n[X] Accounting equation does not balance")
    sys.exit(1)


@report_group.command(name="ratios")
@data_dir_option
@click.argument("statement_id")
@format_option(("text", "json"))
def ratios(data_dir, statement_id, output_format):
    """
    Recalculate financial ratios for a saved balance sheet.

    Uses the P&L statement of the same period when one exists, and the
    preceding period's balance sheet for beginning balances.
    """
    try:
        workspace = Workspace.load(data_dir)
        statement = workspace.store.get(statement_id)
        if statement.statement_type != "balance_sheet":
            raise InputError("Ratios are calculated for balance sheets only")
        ratio_set = calculate_ratios(statement, workspace.store)
    except FinstmtError as e:
        _fail(e, "Ratio calculation")

    data = ratio_set.to_dict()
    if output_format.lower() == "json":
        click.echo(json.dumps({"statement": statement.statement_number, "ratios": data}, indent=2))
        return

    click.echo(f"\nRatios for {statement.statement_number} (net income from {ratio_set.net_income_source})")
    click.echo("-" * 60)
    for key, value in data.items():
        if key == "net_income_source":
            continue
        click.echo(f"  {key.replace('_', ' ').title():<35} {value:>15,.4f}")

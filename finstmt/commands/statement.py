"""
Statement command group for finstmt.

Commands: list, show, status, update-notes, delete, history, compare, stats
"""

import json
import logging
import sys

import click

from ..errors import FinstmtError, NotFoundError
from ..reports import balance_sheet as bs_report
from ..reports import profit_loss as pl_report
from ..reports.comparison import COMPARISON_TYPES, get_comparison_data, get_stats
from ..store import STATEMENT_TYPES, Statement, StatementStore
from ..versioning import change_status, delete_statement, update_statement
from ..workspace import Workspace
from ._options import data_dir_option, format_option, user_option

logger = logging.getLogger(__name__)


@click.group(name="statement")
def statement_group():
    """Saved statement workflow and history commands."""


def _resolve(store: StatementStore, ref: str) -> Statement:
    """Find a statement by id or by statement number."""
    statement = store.statements.get(ref)
    if statement is not None and not statement.deleted:
        return statement
    statement = store.find_by_number(ref)
    if statement is None:
        raise NotFoundError(f"Statement not found: {ref}")
    return statement


def _fail(e: Exception, what: str):
    logger.error(f"{what} failed: {e}")
    click.echo(f"\n[ERROR] {e}")
    sys.exit(1)


@statement_group.command(name="list")
@data_dir_option
@click.option("--type", "statement_type", type=click.Choice(list(STATEMENT_TYPES)), default=None,
              help="Only list statements of this type.")
@click.option("--status", default=None, help="Only list statements with this status.")
@click.option("--period-type", default=None, help="Only list statements with this period type.")
def list_statements(data_dir, statement_type, status, period_type):
    """List current (non-deleted, non-superseded) statements."""
    workspace = Workspace.load(data_dir)
    statements = workspace.store.list_statements(
        statement_type=statement_type, status=status, period_type=period_type,
    )

    if not statements:
        click.echo("No statements found.")
        return

    click.echo(f"\n{'Number':<24} {'Type':<14} {'Period':<25} {'Status':<10} {'Ver':>4}  {'ID'}")
    click.echo("-" * 115)
    for s in statements:
        period = f"{s.period_start} to {s.period_end}"
        flag = " [!]" if s.metadata.get("has_imbalance") else ""
        click.echo(
            f"{s.statement_number:<24} {s.statement_type:<14} {period:<25} "
            f"{s.status:<10} {s.version:>4}  {s.statement_id}{flag}"
        )
    click.echo(f"\nTotal: {len(statements)} statement(s)")


@statement_group.command(name="show")
@data_dir_option
@click.argument("statement_ref")
@format_option(("text", "json"))
def show(data_dir, statement_ref, output_format):
    """Show a saved statement by id or statement number."""
    try:
        statement = _resolve(Workspace.load(data_dir).store, statement_ref)
    except FinstmtError as e:
        _fail(e, "Show statement")

    if statement.statement_type == "balance_sheet":
        report = bs_report
    else:
        report = pl_report

    if output_format.lower() == "json":
        click.echo(report.format_as_json(statement))
    else:
        click.echo(report.format_as_text(statement))
        if statement.notes:
            click.echo(f"Notes: {statement.notes}")


@statement_group.command(name="status")
@data_dir_option
@click.argument("statement_ref")
@click.argument("new_status")
@user_option
@click.option("--notes", default=None, help="Note recorded with the status change.")
def status(data_dir, statement_ref, new_status, user, notes):
    """
    Move a statement to a new workflow status.

    Balance sheets: draft -> review -> approved -> final.
    P&L statements: draft -> review -> approved -> published.
    """
    try:
        workspace = Workspace.load(data_dir)
        statement = _resolve(workspace.store, statement_ref)
        old_status = statement.status
        statement = change_status(workspace.store, statement.statement_id, new_status, user, notes)
        workspace.save_statements()
    except FinstmtError as e:
        _fail(e, "Status change")

    click.echo(f"[OK] {statement.statement_number}: {old_status} -> {statement.status}")


@statement_group.command(name="update-notes")
@data_dir_option
@click.argument("statement_ref")
@click.argument("notes")
@user_option
@click.option("--reason", default=None, help="Reason recorded with the change.")
def update_notes(data_dir, statement_ref, notes, user, reason):
    """
    Replace a statement's notes as a versioned update.

    Final and published statements are not modified; a new draft version
    carrying the change is created instead.
    """
    try:
        workspace = Workspace.load(data_dir)
        statement = _resolve(workspace.store, statement_ref)
        updated = update_statement(
            workspace.store, statement.statement_id, {"notes": notes}, user, reason
        )
        workspace.save_statements()
    except FinstmtError as e:
        _fail(e, "Update")

    if updated.statement_id != statement.statement_id:
        click.echo(
            f"[OK] {statement.statement_number} is {statement.status}; "
            f"created {updated.statement_number} (id {updated.statement_id})"
        )
    else:
        click.echo(f"[OK] {updated.statement_number} updated to version {updated.version}")


@statement_group.command(name="delete")
@data_dir_option
@click.argument("statement_ref")
@user_option
def delete(data_dir, statement_ref, user):
    """Delete a draft statement. Non-draft statements cannot be deleted."""
    try:
        workspace = Workspace.load(data_dir)
        statement = _resolve(workspace.store, statement_ref)
        result = delete_statement(workspace.store, statement.statement_id, user)
        workspace.save_statements()
    except FinstmtError as e:
        _fail(e, "Delete")

    click.echo(f"[OK] {result['message']}")


@statement_group.command(name="history")
@data_dir_option
@click.argument("statement_ref")
def history(data_dir, statement_ref):
    """Show the version chain, version history and audit trail of a statement."""
    try:
        workspace = Workspace.load(data_dir)
        statement = _resolve(workspace.store, statement_ref)
    except FinstmtError as e:
        _fail(e, "History")

    chain = workspace.store.version_chain(statement.statement_id)
    if len(chain) > 1:
        click.echo("\nVersion chain:")
        for s in chain:
            marker = " (current)" if s.is_current_version else ""
            click.echo(f"  {s.statement_number:<28} {s.status:<10}{marker}")

    click.echo(f"\nVersion history of {statement.statement_number} (version {statement.version}):")
    if not statement.version_history:
        click.echo("  (no changes)")
    for entry in statement.version_history:
        fields = ", ".join(c["field"] for c in entry["changes"]) or "-"
        click.echo(
            f"  v{entry['version']:<3} {entry['changed_at']:<20} {entry['changed_by']:<15} {fields}"
        )

    click.echo("\nAudit trail:")
    for record in statement.audit_trail:
        details = record["details"]
        if isinstance(details, dict):
            details = json.dumps(details, ensure_ascii=False)
        click.echo(
            f"  {record['performed_at']:<20} {record['action']:<16} "
            f"{record['performed_by']:<15} {details or ''}"
        )


@statement_group.command(name="compare")
@data_dir_option
@click.argument("statement_ref")
@click.option("--against", type=click.Choice(list(COMPARISON_TYPES)), default="previous",
              help="Compare with the previous period or the same period last year.")
@format_option(("text", "json"))
def compare(data_dir, statement_ref, against, output_format):
    """Compare a statement's headline totals with another period."""
    try:
        workspace = Workspace.load(data_dir)
        statement = _resolve(workspace.store, statement_ref)
        result = get_comparison_data(workspace.store, statement.statement_id, against)
    except FinstmtError as e:
        _fail(e, "Comparison")

    if output_format.lower() == "json":
        click.echo(json.dumps(result, indent=2))
        return

    if result["comparison_statement"] is None:
        click.echo(f"No {against} statement to compare with {result['statement']}.")
        return

    click.echo(f"\n{result['statement']} vs {result['comparison_statement']}")
    click.echo(f"{'Field':<28} {'Current':>15} {'Comparison':>15} {'Change':>15} {'%':>9}")
    click.echo("-" * 86)
    for name, values in result["fields"].items():
        click.echo(
            f"{name:<28} {values['current']:>15,.2f} {values['comparison']:>15,.2f} "
            f"{values['change']:>15,.2f} {values['percentage_change']:>8.2f}%"
        )


@statement_group.command(name="stats")
@data_dir_option
@click.option("--type", "statement_type", type=click.Choice(list(STATEMENT_TYPES)),
              default="balance_sheet", help="Statement type (default: balance_sheet).")
def stats(data_dir, statement_type):
    """Statement counts by status."""
    result = get_stats(Workspace.load(data_dir).store, statement_type)
    click.echo(f"\n{statement_type}: {result['total']} statement(s)")
    for name, count in sorted(result["by_status"].items()):
        click.echo(f"  {name:<12} {count}")
    if result["latest_statement_date"]:
        click.echo(f"Latest statement date: {result['latest_statement_date']}")

"""
Accounts command group for finstmt.

Commands: init, list, add
"""

import logging
import sys

import click

from ..errors import FinstmtError
from ..registry import ACCOUNT_TYPES, CATEGORY_LINE_ITEMS, Account, default_chart_of_accounts
from ..workspace import Workspace
from ._options import data_dir_option

logger = logging.getLogger(__name__)


@click.group(name="accounts")
def accounts_group():
    """Chart of accounts commands."""


@accounts_group.command(name="init")
@data_dir_option
@click.option("--force", is_flag=True, help="Overwrite an existing chart of accounts.")
def init(data_dir, force):
    """
    Seed the workspace with the default chart of accounts.

    Creates accounts.json containing the basic system accounts (cash, bank,
    receivables, inventory, payables, equity, revenue and expense headers).
    Refuses to overwrite an existing chart unless --force is given.
    """
    logger.info("=== FINSTMT Accounts Init ===")

    workspace = Workspace(data_dir=data_dir)
    if workspace.accounts_path.exists() and not force:
        click.echo(f"[ERROR] {workspace.accounts_path} already exists. Use --force to overwrite.")
        sys.exit(1)

    workspace.registry = default_chart_of_accounts()
    workspace.save_accounts()

    click.echo(
        f"[OK] Created {len(workspace.registry.accounts)} system accounts "
        f"in {workspace.accounts_path}"
    )


@accounts_group.command(name="list")
@data_dir_option
@click.option("--type", "account_type", type=click.Choice(list(ACCOUNT_TYPES)), default=None,
              help="Only list accounts of this type.")
@click.option("--include-inactive", is_flag=True, help="Include inactive accounts.")
def list_accounts(data_dir, account_type, include_inactive):
    """List the chart of accounts as an indented tree."""
    try:
        workspace = Workspace.load(data_dir)
    except FinstmtError as e:
        click.echo(f"\n[ERROR] {e}")
        sys.exit(1)

    registry = workspace.registry
    accounts = [
        acc for acc in registry.iter_accounts(active_only=not include_inactive)
        if account_type is None or acc.account_type == account_type
    ]

    if not accounts:
        click.echo("No accounts found. Run 'finstmt accounts init' to seed the default chart.")
        return

    click.echo(f"\n{'Code':<10} {'Name':<45} {'Type':<10} {'Line Item':<28} {'Normal'}")
    click.echo("-" * 105)
    for acc in sorted(accounts, key=lambda a: a.code):
        name = "  " * registry.level(acc.code) + acc.name
        flags = ""
        if not acc.allow_direct_posting:
            flags += " [header]"
        if not acc.is_active:
            flags += " [inactive]"
        click.echo(
            f"{acc.code:<10} {name:<45} {acc.account_type:<10} "
            f"{acc.line_item:<28} {acc.normal_balance}{flags}"
        )
    click.echo(f"\nTotal: {len(accounts)} account(s)")


@accounts_group.command(name="add")
@data_dir_option
@click.option("--code", required=True, help="Unique account code.")
@click.option("--name", required=True, help="Account name.")
@click.option("--type", "account_type", type=click.Choice(list(ACCOUNT_TYPES)), required=True,
              help="Account type.")
@click.option("--category", type=click.Choice(sorted(CATEGORY_LINE_ITEMS)), required=True,
              help="Account category.")
@click.option("--line-item", default=None, help="Statement line item (default: category default).")
@click.option("--parent", "parent_code", default=None, help="Parent account code.")
@click.option("--opening-balance", type=float, default=0.0, help="Opening balance.")
@click.option("--normal-balance", type=click.Choice(["debit", "credit"]), default=None,
              help="Normal balance (default: from type and line item).")
def add(data_dir, code, name, account_type, category, line_item, parent_code,
        opening_balance, normal_balance):
    """
    Add an account to the chart of accounts.

    The category must be compatible with the account type, and the line
    item (if given) must be one the category allows. Both are checked
    before the account is saved.
    """
    try:
        workspace = Workspace.load(data_dir)
        account = workspace.registry.add(Account(
            code=code,
            name=name,
            account_type=account_type,
            category=category,
            line_item=line_item,
            parent_code=parent_code,
            opening_balance=opening_balance,
            normal_balance=normal_balance,
        ))
        workspace.save_accounts()
    except FinstmtError as e:
        logger.error(f"Could not add account: {e}")
        click.echo(f"\n[ERROR] {e}")
        sys.exit(1)

    click.echo(
        f"[OK] Added account {account.code} '{account.name}' "
        f"({account.account_type}/{account.line_item}, {account.normal_balance}-normal)"
    )

"""
Ledger command group for finstmt.

Commands: import-gnucash, post
"""

import logging
import sys
import uuid
from pathlib import Path

import click

from ..errors import FinstmtError
from ..gnucash_import import GnuCashBook, import_book, load_account_map
from ..ledger import LedgerEntry
from ..periods import coerce_date
from ..workspace import Workspace
from ._options import as_of_option, data_dir_option

logger = logging.getLogger(__name__)


@click.group(name="ledger")
def ledger_group():
    """Ledger import and posting commands."""


@ledger_group.command(name="import-gnucash")
@data_dir_option
@click.option(
    "--file",
    "-f",
    "book_file",
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help="Path to the GnuCash book file (.gnucash).",
)
@click.option(
    "--map",
    "map_file",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Account map JSON overriding type/category/line item per GnuCash account.",
)
@as_of_option()
def import_gnucash(data_dir, book_file, map_file, as_of):
    """
    Import accounts and transactions from a GnuCash book.

    The book is opened read-only. Each non-placeholder GnuCash account
    becomes a registry account and each transaction split becomes one
    completed ledger entry. Importing the same book twice adds nothing.
    """
    logger.info("=== FINSTMT GnuCash Import ===")

    try:
        workspace = Workspace.load(data_dir)
        account_map = load_account_map(map_file) if map_file else None
        cutoff = coerce_date(as_of, "as_of") if as_of else None

        with GnuCashBook(book_file) as book:
            summary = import_book(
                book, workspace.registry, workspace.ledger,
                account_map=account_map, as_of=cutoff,
            )

        workspace.save_accounts()
        workspace.save_ledger()

    except FinstmtError as e:
        logger.error(f"Import failed: {e}")
        click.echo(f"\n[ERROR] {e}")
        sys.exit(1)
    except FileNotFoundError as e:
        logger.error(f"File not found: {e}")
        click.echo(f"\n[ERROR] {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Error importing GnuCash book: {e}", exc_info=True)
        sys.exit(1)

    click.echo(f"\n[OK] Imported from {book_file}")
    click.echo(f"  Accounts created:  {summary.accounts_created}")
    click.echo(f"  Accounts existing: {summary.accounts_existing}")
    click.echo(f"  Entries created:   {summary.entries_created}")
    click.echo(f"  Entries existing:  {summary.entries_existing}")
    click.echo(f"  Splits skipped:    {summary.splits_skipped}")


@ledger_group.command(name="post")
@data_dir_option
@click.option("--date", "entry_date", required=True, help="Posting date (YYYY-MM-DD).")
@click.option("--debit", "debit_code", required=True, help="Account code to debit.")
@click.option("--credit", "credit_code", required=True, help="Account code to credit.")
@click.option("--amount", type=float, required=True, help="Amount (positive).")
@click.option("--description", default="", help="Entry description.")
@click.option("--reference", default=None, help="External reference.")
def post(data_dir, entry_date, debit_code, credit_code, amount, description, reference):
    """
    Post a balanced two-line entry.

    Appends one debit line and one credit line of the same amount. Both
    accounts must exist, be active and allow direct posting.
    """
    try:
        workspace = Workspace.load(data_dir)
        posted = coerce_date(entry_date, "date")
        reference = reference or uuid.uuid4().hex[:12]

        lines = [
            LedgerEntry(
                entry_id=f"{reference}-D",
                account_code=debit_code,
                debit_amount=amount,
                credit_amount=0.0,
                created_at=posted,
                description=description,
                reference=reference,
            ),
            LedgerEntry(
                entry_id=f"{reference}-C",
                account_code=credit_code,
                debit_amount=0.0,
                credit_amount=amount,
                created_at=posted,
                description=description,
                reference=reference,
            ),
        ]
        # Nothing is saved unless both lines are accepted.
        workspace.ledger.extend(lines, workspace.registry)
        workspace.save_ledger()

    except FinstmtError as e:
        logger.error(f"Posting failed: {e}")
        click.echo(f"\n[ERROR] {e}")
        sys.exit(1)

    click.echo(
        f"[OK] Posted {amount:,.2f} on {posted}: Dr {debit_code} / Cr {credit_code} "
        f"(ref {reference})"
    )

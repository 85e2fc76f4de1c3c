"""
Command-line interface for FINSTMT.

Provides the command groups for the chart of accounts, the ledger,
statement generation and the statement workflow.
"""

import logging

import click

from . import __version__
from .commands.accounts import accounts_group
from .commands.ledger import ledger_group
from .commands.report import report_group
from .commands.statement import statement_group
from .config import setup_logging

logger = logging.getLogger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="finstmt")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose (DEBUG level) logging."
)
@click.pass_context
def main(ctx, verbose):
    """
    FINSTMT - Financial Statement Derivation Engine.

    Derives balance sheets and P&L statements from an append-only ledger,
    validates the trial balance before period close, and keeps versioned,
    audited statement history.
    """
    setup_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    logger.debug(f"FINSTMT version {__version__}")


main.add_command(accounts_group)
main.add_command(ledger_group)
main.add_command(report_group)
main.add_command(statement_group)


if __name__ == "__main__":
    main()

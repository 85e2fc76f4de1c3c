"""
Shared Click option decorators for finstmt command groups.

Each decorator factory wraps a single Click option so it can be reused
across multiple commands without repeating the option definition.
"""

from pathlib import Path

import click

from ..periods import PERIOD_TYPES


def data_dir_option(func):
    """--data-dir/-d: workspace directory holding the JSON data files."""
    return click.option(
        "--data-dir",
        "-d",
        "data_dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=".",
        show_default=True,
        help="Workspace directory (accounts.json, ledger.json, statements.json).",
    )(func)


def as_of_option(required: bool = False):
    """--as-of: balance date in YYYY-MM-DD format."""
    def decorator(func):
        return click.option(
            "--as-of",
            type=str,
            required=required,
            default=None,
            help="Date in YYYY-MM-DD format.",
        )(func)
    return decorator


def format_option(choices: tuple = ("text", "json", "csv")):
    """--format: output format selector."""
    def decorator(func):
        return click.option(
            "--format",
            "output_format",
            type=click.Choice(list(choices), case_sensitive=False),
            default=choices[0],
            help=f"Output format (default: {choices[0]}).",
        )(func)
    return decorator


def period_type_option(func):
    """--period-type/-p: reporting period type."""
    return click.option(
        "--period-type",
        "-p",
        type=click.Choice(list(PERIOD_TYPES), case_sensitive=False),
        default="monthly",
        help="Period type (default: monthly).",
    )(func)


def user_option(func):
    """--user/-u: name recorded in audit trails."""
    return click.option(
        "--user",
        "-u",
        type=str,
        default="system",
        help="User recorded in the audit trail (default: system).",
    )(func)

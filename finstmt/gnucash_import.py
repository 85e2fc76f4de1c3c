"""
GnuCash book import.

Provides a read-only view of a GnuCash book through piecash and converts
its accounts and transaction splits into registry accounts and ledger
entries. The book itself is never modified.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional

from .errors import ConflictError, InputError
from .ledger import LedgerEntry, LedgerStore
from .registry import Account, AccountRegistry

logger = logging.getLogger(__name__)


# GnuCash account type -> (account_type, category, line_item)
GNUCASH_TYPE_MAP = {
    "CASH": ("asset", "current_assets", "cash_on_hand"),
    "BANK": ("asset", "current_assets", "bank_accounts"),
    "RECEIVABLE": ("asset", "current_assets", "trade_receivables"),
    "ASSET": ("asset", "current_assets", "other_current_assets"),
    "STOCK": ("asset", "other_assets", "long_term_investments"),
    "MUTUAL": ("asset", "other_assets", "long_term_investments"),
    "CREDIT": ("liability", "current_liabilities", "credit_card_debt"),
    "PAYABLE": ("liability", "current_liabilities", "trade_payables"),
    "LIABILITY": ("liability", "current_liabilities", "other_current_liabilities"),
    "EQUITY": ("equity", "owner_equity", "common_stock"),
    "INCOME": ("revenue", "sales_revenue", "gross_sales"),
    "EXPENSE": ("expense", "operating_expenses", "administrative_expenses"),
}

# Structural account types that never carry postings.
SKIPPED_TYPES = {"ROOT", "TRADING"}


@dataclass
class GCAccount:
    """
    Representation of a GnuCash account.

    Attributes:
        guid: Unique identifier for the account.
        full_name: Colon-separated full account name path
                   (e.g., "Assets:Current Assets:Checking").
        type: GnuCash account type (e.g., "ASSET", "BANK", "INCOME").
        code: GnuCash account code, empty if not set.
        placeholder: True for placeholder (non-postable) accounts.
        parent_guid: GUID of parent account, if any.
    """

    guid: str
    full_name: str
    type: str
    code: str = ""
    placeholder: bool = False
    parent_guid: Optional[str] = None

    @property
    def name(self) -> str:
        return self.full_name.split(":")[-1]


@dataclass
class GCTransactionSplit:
    """
    A split within a GnuCash transaction.

    Attributes:
        guid: Split GUID.
        account_guid: GUID of the account this split belongs to.
        value: Split value; positive is a debit, negative a credit.
        memo: Optional memo text.
    """

    guid: str
    account_guid: str
    value: float
    memo: Optional[str] = None


@dataclass
class GCTransaction:
    """A GnuCash transaction with its post date and splits."""

    guid: str
    post_date: date
    description: str
    num: str = ""
    splits: list[GCTransactionSplit] = field(default_factory=list)


class GnuCashBook:
    """
    Context-managed, read-only access to a GnuCash book.

    Usage:
        with GnuCashBook(path) as book:
            summary = import_book(book, registry, ledger)
    """

    def __init__(self, path: Path):
        self.path = path
        self._book = None

        logger.info(f"Initializing GnuCash book access for: {path}")

    def __enter__(self) -> "GnuCashBook":
        """
        Open the GnuCash book for reading.

        Raises:
            FileNotFoundError: If the book file does not exist.
        """
        if not self.path.exists():
            raise FileNotFoundError(f"GnuCash book file not found: {self.path}")

        import piecash

        logger.debug(f"Opening GnuCash book: {self.path}")
        try:
            # Read-only with do_backup=False so the book is never touched.
            self._book = piecash.open_book(str(self.path), readonly=True, do_backup=False)
        except Exception as e:
            logger.error(f"Failed to open GnuCash book: {e}")
            raise

        logger.info("GnuCash book opened successfully")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._book is not None:
            try:
                self._book.close()
                logger.debug("GnuCash book closed")
            except Exception as e:
                logger.warning(f"Error closing GnuCash book: {e}")
            finally:
                self._book = None

    def _require_open(self):
        if self._book is None:
            raise RuntimeError("Book not opened. Use within 'with' statement.")
        return self._book

    def iter_accounts(self) -> Iterable[GCAccount]:
        """
        Iterate over all accounts in the book.

        Raises:
            RuntimeError: If called outside of context manager.
        """
        book = self._require_open()
        logger.debug("Iterating over accounts")

        for account in book.accounts:
            parent_guid = None
            if account.parent is not None and account.parent.guid:
                parent_guid = str(account.parent.guid)

            yield GCAccount(
                guid=str(account.guid),
                full_name=account.fullname,
                type=account.type,
                code=account.code or "",
                placeholder=bool(account.placeholder),
                parent_guid=parent_guid,
            )

    def iter_transactions(self) -> Iterable[GCTransaction]:
        """
        Iterate over all transactions in the book.

        Transactions whose post date or splits cannot be read are logged
        and skipped.

        Raises:
            RuntimeError: If called outside of context manager.
        """
        book = self._require_open()
        logger.debug("Iterating over transactions")

        skipped = 0
        for transaction in book.transactions:
            guid = str(transaction.guid)
            try:
                post_date = transaction.post_date
                if hasattr(post_date, "date"):
                    post_date = post_date.date()

                splits = []
                for split in transaction.splits:
                    value = float(split.value) if isinstance(split.value, Decimal) else split.value
                    splits.append(GCTransactionSplit(
                        guid=str(split.guid),
                        account_guid=str(split.account.guid),
                        value=value,
                        memo=split.memo or None,
                    ))
            except (ValueError, AttributeError, TypeError) as e:
                logger.error(f"Transaction {guid} has a data integrity error: {e}")
                skipped += 1
                continue

            yield GCTransaction(
                guid=guid,
                post_date=post_date,
                description=transaction.description or "(No description)",
                num=transaction.num or "",
                splits=splits,
            )

        if skipped:
            logger.warning(f"[!] Skipped {skipped} unreadable transaction(s)")


# ---------------------------------------------------------------------------
# Account map
# ---------------------------------------------------------------------------


def load_account_map(path: Path) -> dict[str, dict]:
    """
    Load account classification overrides from a JSON file.

    Format:
        {
          "accounts": {
            "Assets:Current Assets:Inventory": {
              "code": "1200",
              "account_type": "asset",
              "category": "inventory",
              "line_item": "finished_goods"
            }
          }
        }

    Keys are GnuCash full account names. Every field is optional.

    Raises:
        InputError: If the file is not valid JSON.
    """
    logger.info(f"Loading account map from {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InputError(f"Invalid account map JSON in {path}: {e}") from e

    overrides = data.get("accounts", {})
    logger.info(f"Loaded {len(overrides)} account override(s)")
    return overrides


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


@dataclass
class ImportSummary:
    """Counts reported by import_book()."""

    accounts_created: int = 0
    accounts_existing: int = 0
    accounts_skipped: int = 0
    entries_created: int = 0
    entries_existing: int = 0
    splits_skipped: int = 0


def classify_gnucash_account(gc_account: GCAccount, override: Optional[dict] = None) -> dict:
    """
    Account fields for a GnuCash account.

    Args:
        gc_account: Account read from the book.
        override: Optional entry from the account map.

    Returns:
        Dict of Account constructor arguments.

    Raises:
        InputError: If the GnuCash type is not mapped and no override
                    supplies account_type and category.
    """
    override = override or {}
    account_type, category, line_item = GNUCASH_TYPE_MAP.get(gc_account.type, (None, None, None))

    if "category" in override:
        # A category override drops the type default line item.
        line_item = None
    account_type = override.get("account_type", account_type)
    category = override.get("category", category)
    line_item = override.get("line_item", line_item)

    if account_type is None or category is None:
        raise InputError(
            f"No classification for GnuCash account '{gc_account.full_name}' "
            f"of type {gc_account.type}; add it to the account map"
        )

    return {
        "code": override.get("code") or gc_account.code or gc_account.full_name,
        "name": override.get("name", gc_account.name),
        "account_type": account_type,
        "category": category,
        "line_item": line_item,
        "description": f"Imported from GnuCash: {gc_account.full_name}",
    }


def import_book(
    book: GnuCashBook,
    registry: AccountRegistry,
    ledger: LedgerStore,
    account_map: Optional[dict[str, dict]] = None,
    as_of: Optional[date] = None,
) -> ImportSummary:
    """
    Import accounts and splits from an opened GnuCash book.

    One Account is created per non-placeholder GnuCash account that does
    not already exist in the registry. Each split becomes one completed
    ledger entry: a positive value is a debit, a negative value a credit.
    Zero-value splits are skipped. Re-importing the same book is a no-op
    because entry ids derive from split GUIDs.

    Args:
        book: Opened GnuCashBook.
        registry: Registry to add accounts to.
        ledger: Ledger to append entries to.
        account_map: Optional overrides keyed by GnuCash full name.
        as_of: Optional cut-off; later transactions are skipped.

    Returns:
        ImportSummary.
    """
    account_map = account_map or {}
    summary = ImportSummary()

    # STEP 1: Accounts, parents before children.
    logger.info("Step 1: Importing accounts")
    gc_accounts = sorted(book.iter_accounts(), key=lambda a: a.full_name.count(":"))
    code_by_guid: dict[str, str] = {}

    for gc_account in gc_accounts:
        if gc_account.type in SKIPPED_TYPES or gc_account.placeholder:
            summary.accounts_skipped += 1
            continue

        fields = classify_gnucash_account(gc_account, account_map.get(gc_account.full_name))
        code = fields["code"]
        code_by_guid[gc_account.guid] = code

        if registry.find(code) is not None:
            summary.accounts_existing += 1
            continue

        parent_code = code_by_guid.get(gc_account.parent_guid) if gc_account.parent_guid else None
        registry.add(Account(parent_code=parent_code, **fields))
        summary.accounts_created += 1

    logger.info(
        f"Accounts: {summary.accounts_created} created, "
        f"{summary.accounts_existing} existing, {summary.accounts_skipped} skipped"
    )

    # STEP 2: Splits to ledger entries.
    logger.info("Step 2: Importing transaction splits")
    for transaction in book.iter_transactions():
        if as_of is not None and transaction.post_date > as_of:
            continue

        for split in transaction.splits:
            code = code_by_guid.get(split.account_guid)
            if code is None or split.value == 0:
                summary.splits_skipped += 1
                continue

            entry = LedgerEntry(
                entry_id=f"gnc-{split.guid}",
                account_code=code,
                debit_amount=split.value if split.value > 0 else 0.0,
                credit_amount=-split.value if split.value < 0 else 0.0,
                created_at=transaction.post_date,
                description=split.memo or transaction.description,
                reference=transaction.num or transaction.guid,
            )
            try:
                ledger.append(entry, registry)
            except ConflictError:
                summary.entries_existing += 1
                continue
            summary.entries_created += 1

    logger.info(
        f"[OK] Imported {summary.entries_created} entries "
        f"({summary.entries_existing} already present, {summary.splits_skipped} splits skipped)"
    )
    return summary

"""
Shared test helpers for FINSTMT unit tests.

Provides factory functions for accounts and ledger entries, a seeded
engine with a small balanced set of books, and a MockBook that stands in
for GnuCashBook without requiring a real GnuCash file or piecash.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path

from finstmt.balances import BalanceCalculator
from finstmt.gnucash_import import GCAccount, GCTransaction, GCTransactionSplit
from finstmt.ledger import LedgerEntry, LedgerStore
from finstmt.registry import Account, AccountRegistry, default_chart_of_accounts
from finstmt.store import StatementStore


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------


def make_account(
    code: str,
    account_type: str,
    category: str,
    line_item: str | None = None,
    name: str | None = None,
    **kwargs,
) -> Account:
    """Create an Account with sensible defaults."""
    return Account(
        code=code,
        name=name or f"Account {code}",
        account_type=account_type,
        category=category,
        line_item=line_item,
        **kwargs,
    )


def make_entry(
    entry_id: str,
    account_code: str,
    debit: float = 0.0,
    credit: float = 0.0,
    created_at: date = date(2024, 1, 15),
    status: str = "completed",
) -> LedgerEntry:
    """Create a LedgerEntry."""
    return LedgerEntry(
        entry_id=entry_id,
        account_code=account_code,
        debit_amount=debit,
        credit_amount=credit,
        created_at=created_at,
        status=status,
    )


def post(
    ledger: LedgerStore,
    ref: str,
    day: date,
    debit_code: str,
    credit_code: str,
    amount: float,
) -> None:
    """Append a balanced debit/credit pair."""
    ledger.append(make_entry(f"{ref}-D", debit_code, debit=amount, created_at=day))
    ledger.append(make_entry(f"{ref}-C", credit_code, credit=amount, created_at=day))


# ---------------------------------------------------------------------------
# Seeded engine
# ---------------------------------------------------------------------------


@dataclass
class SeededEngine:
    registry: AccountRegistry
    ledger: LedgerStore
    store: StatementStore
    calculator: BalanceCalculator


def seeded_engine() -> SeededEngine:
    """
    Default chart of accounts with a balanced January 2024.

        Jan 02  Owner invests        Dr 1120 Bank        10,000 / Cr 3100 Capital
        Jan 05  Inventory on credit  Dr 1200 Inventory    3,000 / Cr 2110 A/P
        Jan 10  Cash sale            Dr 1110 Cash         5,000 / Cr 4001 Sales
        Jan 10  Cost of sale         Dr 5001 COGS         2,000 / Cr 1200 Inventory
        Jan 15  Rent                 Dr 5210 G&A            500 / Cr 1120 Bank
        Jan 20  Advertising          Dr 5220 Selling        300 / Cr 1120 Bank
        Jan 25  Other revenue        Dr 1120 Bank           200 / Cr 4200 Other

    As of 2024-01-31:
        Assets      = 5,000 cash + 9,400 bank + 1,000 inventory = 15,400
        Liabilities = 3,000
        Equity      = 10,000 capital + 2,400 net income         = 12,400
    """
    registry = default_chart_of_accounts()
    ledger = LedgerStore()

    post(ledger, "J1", date(2024, 1, 2), "1120", "3100", 10000.0)
    post(ledger, "J2", date(2024, 1, 5), "1200", "2110", 3000.0)
    post(ledger, "J3", date(2024, 1, 10), "1110", "4001", 5000.0)
    post(ledger, "J4", date(2024, 1, 10), "5001", "1200", 2000.0)
    post(ledger, "J5", date(2024, 1, 15), "5210", "1120", 500.0)
    post(ledger, "J6", date(2024, 1, 20), "5220", "1120", 300.0)
    post(ledger, "J7", date(2024, 1, 25), "1120", "4200", 200.0)

    return SeededEngine(
        registry=registry,
        ledger=ledger,
        store=StatementStore(),
        calculator=BalanceCalculator(registry, ledger),
    )


def write_workspace(data_dir: Path, engine: SeededEngine) -> None:
    """Save an engine's registry, ledger and statements as workspace files."""
    engine.registry.save(data_dir / "accounts.json")
    engine.ledger.save(data_dir / "ledger.json")
    engine.store.save(data_dir / "statements.json")


# ---------------------------------------------------------------------------
# GnuCash stand-ins
# ---------------------------------------------------------------------------


def make_gc_account(
    guid: str,
    full_name: str,
    account_type: str,
    code: str = "",
    parent_guid: str | None = None,
    placeholder: bool = False,
) -> GCAccount:
    """Create a GCAccount with sensible defaults."""
    return GCAccount(
        guid=guid,
        full_name=full_name,
        type=account_type,
        code=code,
        placeholder=placeholder,
        parent_guid=parent_guid,
    )


def make_gc_transaction(
    guid: str,
    post_date: date,
    splits: list[tuple[str, str, float]],
    description: str = "Test Transaction",
) -> GCTransaction:
    """Create a GCTransaction from (split guid, account guid, value) tuples."""
    return GCTransaction(
        guid=guid,
        post_date=post_date,
        description=description,
        splits=[
            GCTransactionSplit(guid=split_guid, account_guid=account_guid, value=value)
            for split_guid, account_guid, value in splits
        ],
    )


class MockBook:
    """
    Lightweight stand-in for GnuCashBook used in unit tests.

    Bypasses piecash entirely by accepting pre-built GCAccount and
    GCTransaction objects.
    """

    def __init__(
        self,
        accounts: list[GCAccount] | None = None,
        transactions: list[GCTransaction] | None = None,
    ) -> None:
        self._accounts = accounts or []
        self._transactions = transactions or []

    def __enter__(self) -> "MockBook":
        return self

    def __exit__(self, *args) -> None:
        pass

    def iter_accounts(self):
        return iter(self._accounts)

    def iter_transactions(self):
        return iter(self._transactions)

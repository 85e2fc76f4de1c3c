"""
Ledger Store for FINSTMT.

An append-only store of posted debit/credit entries. Entries are frozen once
created, so account balances are always reconstructible by replaying the
store. Aggregation is batched: one pass over the entries serves any number
of account codes.
"""

import json
import logging
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

from .errors import ConflictError, InputError, NotFoundError
from .periods import parse_date

if TYPE_CHECKING:
    from .registry import AccountRegistry

logger = logging.getLogger(__name__)

ENTRY_STATUSES = ("pending", "completed", "voided")


@dataclass(frozen=True)
class LedgerEntry:
    """
    One posted line against a single account.

    Attributes:
        entry_id: Unique identifier.
        account_code: Code of the account posted to.
        debit_amount: Debit side amount (>= 0).
        credit_amount: Credit side amount (>= 0).
        status: pending, completed or voided. Only completed entries
                affect balances.
        created_at: Posting date.
        description: Free-text description.
        reference: External reference (voucher, GnuCash GUID, ...).
    """

    entry_id: str
    account_code: str
    debit_amount: float
    credit_amount: float
    created_at: date
    status: str = "completed"
    description: str = ""
    reference: Optional[str] = None

    def __post_init__(self):
        """Enforce the entry invariant."""
        if self.status not in ENTRY_STATUSES:
            raise InputError(
                f"Invalid entry status: '{self.status}'. "
                f"Must be one of {', '.join(ENTRY_STATUSES)}."
            )
        if self.debit_amount < 0 or self.credit_amount < 0:
            raise InputError(f"Entry {self.entry_id}: amounts cannot be negative")
        if self.status == "completed":
            debit_positive = self.debit_amount > 0
            credit_positive = self.credit_amount > 0
            if debit_positive == credit_positive:
                raise InputError(
                    f"Entry {self.entry_id}: exactly one of debit/credit must be "
                    f"positive (debit={self.debit_amount}, credit={self.credit_amount})"
                )

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    def to_dict(self) -> dict:
        data = asdict(self)
        data["created_at"] = self.created_at.strftime("%Y-%m-%d")
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "LedgerEntry":
        data = dict(data)
        data["created_at"] = parse_date(data["created_at"])
        return cls(**data)


@dataclass
class AccountActivity:
    """Completed debit and credit totals for one account."""

    debits: float = 0.0
    credits: float = 0.0

    def net(self, normal_balance: str) -> float:
        """Signed movement on the account's normal side."""
        if normal_balance == "debit":
            return self.debits - self.credits
        return self.credits - self.debits


@dataclass
class LedgerStore:
    """
    Append-only collection of ledger entries.

    Attributes:
        entries: Entries in posting order.
    """

    entries: list[LedgerEntry] = field(default_factory=list)
    _ids: set = field(default_factory=set, init=False, repr=False)

    def __post_init__(self):
        self._ids = {e.entry_id for e in self.entries}

    def __len__(self) -> int:
        return len(self.entries)

    def append(
        self,
        entry: LedgerEntry,
        registry: Optional["AccountRegistry"] = None,
    ) -> LedgerEntry:
        """
        Append an entry.

        Args:
            entry: Entry to append.
            registry: Optional registry; when given, the account must exist,
                      be active, and allow direct posting.

        Raises:
            ConflictError: If the entry id already exists.
            NotFoundError: If the account is unknown to the registry.
            InputError: If the account is inactive or a header account.
        """
        if entry.entry_id in self._ids:
            raise ConflictError(f"Ledger entry already exists: {entry.entry_id}")

        if registry is not None:
            account = registry.find(entry.account_code)
            if account is None:
                raise NotFoundError(f"Account not found: {entry.account_code}")
            if not account.is_active:
                raise InputError(f"Account {entry.account_code} is inactive")
            if not account.allow_direct_posting:
                raise InputError(
                    f"Account {entry.account_code} does not allow direct posting"
                )

        self.entries.append(entry)
        self._ids.add(entry.entry_id)
        return entry

    def extend(self, entries: Iterable[LedgerEntry], registry=None) -> int:
        count = 0
        for entry in entries:
            self.append(entry, registry)
            count += 1
        return count

    def iter_entries(
        self,
        account_codes: Optional[Iterable[str]] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
        completed_only: bool = True,
    ) -> Iterable[LedgerEntry]:
        """
        Iterate over entries matching the filters.

        Args:
            account_codes: Restrict to these accounts (None = all).
            start: Inclusive lower bound on created_at.
            end: Inclusive upper bound on created_at.
            completed_only: Skip pending and voided entries.
        """
        codes = set(account_codes) if account_codes is not None else None
        for entry in self.entries:
            if completed_only and not entry.is_completed:
                continue
            if codes is not None and entry.account_code not in codes:
                continue
            if start is not None and entry.created_at < start:
                continue
            if end is not None and entry.created_at > end:
                continue
            yield entry

    def totals_by_account(
        self,
        account_codes: Iterable[str],
        end: Optional[date] = None,
        start: Optional[date] = None,
    ) -> dict[str, AccountActivity]:
        """
        Aggregate completed debits/credits per account in a single pass.

        Args:
            account_codes: Accounts to aggregate. Every code gets an entry
                           in the result, zero if it has no activity.
            end: Inclusive upper date bound.
            start: Inclusive lower date bound.

        Returns:
            Mapping of account code to AccountActivity.
        """
        codes = list(account_codes)
        totals: dict[str, AccountActivity] = defaultdict(AccountActivity)
        for code in codes:
            totals[code] = AccountActivity()

        entry_count = 0
        for entry in self.iter_entries(codes, start=start, end=end):
            activity = totals[entry.account_code]
            activity.debits += entry.debit_amount
            activity.credits += entry.credit_amount
            entry_count += 1

        logger.debug(
            f"Aggregated {entry_count} entries across {len(codes)} accounts "
            f"({start or 'beginning'} to {end or 'latest'})"
        )
        return dict(totals)

    @classmethod
    def load(cls, path: Path) -> "LedgerStore":
        """
        Load a ledger from a JSON file.

        Returns:
            LedgerStore; empty if the file does not exist.
        """
        logger.info(f"Loading ledger from {path}")

        if not path.exists():
            logger.warning(f"Ledger file not found: {path}")
            return cls()

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        store = cls()
        for record in data.get("entries", []):
            store.append(LedgerEntry.from_dict(record))

        logger.info(f"Loaded {len(store)} ledger entries")
        return store

    def save(self, path: Path) -> None:
        """Save the ledger to a JSON file."""
        logger.info(f"Saving {len(self)} ledger entries to {path}")

        data = {"entries": [entry.to_dict() for entry in self.entries]}

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

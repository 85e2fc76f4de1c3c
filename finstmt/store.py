"""
Statement persistence for FINSTMT.

Defines the persisted Statement document and an in-memory store with the
uniqueness constraints the assemblers rely on: one statement number per
document, and one current statement per (type, period type, period).
The store can be saved to and loaded from a JSON file.
"""

import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Optional

from .errors import ConflictError, NotFoundError
from .periods import DateRange, parse_date, period_key, period_tag

logger = logging.getLogger(__name__)

STATEMENT_TYPES = ("balance_sheet", "profit_loss")

STATEMENT_PREFIXES = {
    "balance_sheet": "BS",
    "profit_loss": "PL",
}

STATEMENT_LABELS = {
    "balance_sheet": "Balance sheet",
    "profit_loss": "P&L statement",
}

# Attempts at finding a free statement number before giving up.
MAX_NUMBER_ATTEMPTS = 100


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def new_statement_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Statement:
    """
    A persisted Balance Sheet or Profit & Loss statement.

    The ``data`` tree is a snapshot of account balances at generation time;
    the statement stays self-contained even if the chart of accounts
    changes later.

    Attributes:
        statement_id: Unique document id.
        statement_number: Human-facing number, e.g. BS-M202401-001.
        statement_type: balance_sheet or profit_loss.
        statement_date: Reporting date.
        period_type: monthly, quarterly, yearly or custom.
        period_start: First day of the reporting period.
        period_end: Last day of the reporting period.
        status: Workflow status (see finstmt.versioning).
        data: Nested tree of category totals.
        ratios: Financial ratios computed at generation.
        metadata: generated_by, generated_at, version, imbalance flags.
        audit_trail: Append-only action log.
        version_history: Field-level diffs between versions.
        previous_version: statement_id of the version this one replaced.
        is_current_version: False once superseded by a newer version.
        approved_by: User who approved the statement.
        approved_at: Approval timestamp (ISO format).
        notes: Free-text notes.
        deleted: Soft-delete flag.
    """

    statement_number: str
    statement_type: str
    statement_date: date
    period_type: str
    period_start: date
    period_end: date
    status: str = "draft"
    data: dict = field(default_factory=dict)
    ratios: dict = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)
    audit_trail: list = field(default_factory=list)
    version_history: list = field(default_factory=list)
    previous_version: Optional[str] = None
    is_current_version: bool = True
    approved_by: Optional[str] = None
    approved_at: Optional[str] = None
    notes: str = ""
    deleted: bool = False
    statement_id: str = field(default_factory=new_statement_id)

    @property
    def period(self) -> DateRange:
        return DateRange(self.period_start, self.period_end)

    @property
    def period_key(self) -> str:
        return period_key(self.period_type, self.period)

    @property
    def version(self) -> int:
        return self.metadata.get("version", 1)

    def to_dict(self) -> dict:
        return {
            "statement_id": self.statement_id,
            "statement_number": self.statement_number,
            "statement_type": self.statement_type,
            "statement_date": self.statement_date.isoformat(),
            "period_type": self.period_type,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "status": self.status,
            "data": self.data,
            "ratios": self.ratios,
            "metadata": self.metadata,
            "audit_trail": self.audit_trail,
            "version_history": self.version_history,
            "previous_version": self.previous_version,
            "is_current_version": self.is_current_version,
            "approved_by": self.approved_by,
            "approved_at": self.approved_at,
            "notes": self.notes,
            "deleted": self.deleted,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Statement":
        data = dict(data)
        for key in ("statement_date", "period_start", "period_end"):
            data[key] = parse_date(data[key])
        return cls(**data)


@dataclass
class StatementStore:
    """
    In-memory statement repository keyed by statement_id.

    Attributes:
        statements: Documents keyed by statement_id, deleted ones included.
    """

    statements: dict[str, Statement] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, statement: Statement) -> Statement:
        """
        Insert a new statement, enforcing uniqueness.

        Raises:
            ConflictError: If the statement number is taken, or a current
                           statement already exists for the same period.
        """
        if statement.statement_id in self.statements:
            raise ConflictError(f"Statement id already exists: {statement.statement_id}")
        if self.exists_number(statement.statement_number):
            raise ConflictError(
                f"Statement number already exists: {statement.statement_number}"
            )
        if statement.is_current_version:
            existing = self.find_for_period(
                statement.statement_type, statement.period_type, statement.period
            )
            if existing is not None:
                raise ConflictError(
                    f"{STATEMENT_LABELS[statement.statement_type]} already exists for "
                    f"{statement.period_type} period ending {statement.period_end.isoformat()}"
                )

        self.statements[statement.statement_id] = statement
        logger.debug(f"Stored statement {statement.statement_number} ({statement.statement_id})")
        return statement

    def replace(self, statement: Statement) -> Statement:
        """Overwrite an existing statement document."""
        if statement.statement_id not in self.statements:
            raise NotFoundError(f"Statement not found: {statement.statement_id}")
        self.statements[statement.statement_id] = statement
        return statement

    def soft_delete(self, statement_id: str) -> Statement:
        statement = self.get(statement_id)
        statement.deleted = True
        statement.is_current_version = False
        logger.info(f"Soft-deleted statement {statement.statement_number}")
        return statement

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, statement_id: str, include_deleted: bool = False) -> Statement:
        """
        Return a statement by id.

        Raises:
            NotFoundError: If no such (non-deleted) statement exists.
        """
        statement = self.statements.get(statement_id)
        if statement is None or (statement.deleted and not include_deleted):
            raise NotFoundError(f"Statement not found: {statement_id}")
        return statement

    def find_by_number(self, statement_number: str) -> Optional[Statement]:
        for statement in self.statements.values():
            if statement.statement_number == statement_number and not statement.deleted:
                return statement
        return None

    def exists_number(self, statement_number: str) -> bool:
        return any(
            s.statement_number == statement_number for s in self.statements.values()
        )

    def iter_current(self, statement_type: Optional[str] = None) -> Iterable[Statement]:
        """Iterate over current, non-deleted statements."""
        for statement in self.statements.values():
            if statement.deleted or not statement.is_current_version:
                continue
            if statement_type and statement.statement_type != statement_type:
                continue
            yield statement

    def find_for_period(
        self,
        statement_type: str,
        period_type: str,
        period: DateRange,
    ) -> Optional[Statement]:
        """Current statement occupying a (type, period type, period) slot."""
        key = period_key(period_type, period)
        for statement in self.iter_current(statement_type):
            if statement.period_key == key:
                return statement
        return None

    def find_by_period_start(
        self,
        statement_type: str,
        period_start: date,
        period_type: Optional[str] = None,
    ) -> Optional[Statement]:
        """Current statement whose period starts on a given date."""
        for statement in self.iter_current(statement_type):
            if statement.period_start != period_start:
                continue
            if period_type and statement.period_type != period_type:
                continue
            return statement
        return None

    def find_matching_period(self, statement_type: str, period: DateRange) -> Optional[Statement]:
        """Current statement with exactly the given start and end dates."""
        for statement in self.iter_current(statement_type):
            if statement.period_start == period.start and statement.period_end == period.end:
                return statement
        return None

    def latest(
        self,
        statement_type: str,
        period_type: Optional[str] = None,
    ) -> Optional[Statement]:
        candidates = [
            s for s in self.iter_current(statement_type)
            if period_type is None or s.period_type == period_type
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda s: (s.period_start, s.statement_number))

    def list_statements(
        self,
        statement_type: Optional[str] = None,
        status: Optional[str] = None,
        period_type: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[Statement]:
        """List current statements, newest period first."""
        results = []
        for statement in self.iter_current(statement_type):
            if status and statement.status != status:
                continue
            if period_type and statement.period_type != period_type:
                continue
            if start and statement.period_start < start:
                continue
            if end and statement.period_start > end:
                continue
            results.append(statement)
        results.sort(key=lambda s: (s.period_start, s.statement_number), reverse=True)
        return results

    def version_chain(self, statement_id: str) -> list[Statement]:
        """Return a statement and its predecessors, oldest first."""
        chain = []
        current = self.statements.get(statement_id)
        while current is not None:
            chain.append(current)
            if current.previous_version is None:
                break
            current = self.statements.get(current.previous_version)
        return list(reversed(chain))

    # ------------------------------------------------------------------
    # Statement numbers
    # ------------------------------------------------------------------

    def max_sequence(self, base: str) -> int:
        """Highest sequence number used with a number base (e.g. BS-M202401)."""
        pattern = re.compile(rf"^{re.escape(base)}-(\d+)$")
        highest = 0
        for statement in self.statements.values():
            match = pattern.match(statement.statement_number)
            if match:
                highest = max(highest, int(match.group(1)))
        return highest

    def next_statement_number(
        self,
        statement_type: str,
        period_type: str,
        period: DateRange,
    ) -> str:
        """
        Generate the next free statement number for a period.

        Format: <PREFIX>-<PERIOD TAG>-<SEQ>, with SEQ zero-padded to three
        digits and starting at max existing sequence + 1. Existence is
        re-checked and the sequence incremented until a free number is found.

        Raises:
            ConflictError: If no free number is found within the attempt limit.
        """
        base = f"{STATEMENT_PREFIXES[statement_type]}-{period_tag(period_type, period)}"
        sequence = self.max_sequence(base) + 1

        for _ in range(MAX_NUMBER_ATTEMPTS):
            number = f"{base}-{sequence:03d}"
            if not self.exists_number(number):
                return number
            sequence += 1

        raise ConflictError(f"Unable to allocate a statement number for {base}")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path) -> "StatementStore":
        """
        Load statements from a JSON file.

        Returns:
            StatementStore; empty if the file does not exist.
        """
        logger.info(f"Loading statements from {path}")

        if not path.exists():
            logger.warning(f"Statements file not found: {path}")
            return cls()

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        store = cls()
        for record in data.get("statements", []):
            statement = Statement.from_dict(record)
            store.statements[statement.statement_id] = statement

        logger.info(f"Loaded {len(store.statements)} statements")
        return store

    def save(self, path: Path) -> None:
        """Save all statements (including soft-deleted) to a JSON file."""
        logger.info(f"Saving {len(self.statements)} statements to {path}")

        data = {"statements": [s.to_dict() for s in self.statements.values()]}

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

"""
Workspace files for the FINSTMT command line.

A workspace is a directory holding the chart of accounts, the ledger and
the statement store as JSON files.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .balances import BalanceCalculator
from .ledger import LedgerStore
from .registry import AccountRegistry
from .store import StatementStore

logger = logging.getLogger(__name__)

ACCOUNTS_FILE = "accounts.json"
LEDGER_FILE = "ledger.json"
STATEMENTS_FILE = "statements.json"


@dataclass
class Workspace:
    """
    Loaded workspace state.

    Attributes:
        data_dir: Directory holding the workspace files.
        registry: Chart of accounts.
        ledger: Posted ledger entries.
        store: Generated statements.
    """

    data_dir: Path
    registry: AccountRegistry = field(default_factory=AccountRegistry)
    ledger: LedgerStore = field(default_factory=LedgerStore)
    store: StatementStore = field(default_factory=StatementStore)

    @property
    def accounts_path(self) -> Path:
        return self.data_dir / ACCOUNTS_FILE

    @property
    def ledger_path(self) -> Path:
        return self.data_dir / LEDGER_FILE

    @property
    def statements_path(self) -> Path:
        return self.data_dir / STATEMENTS_FILE

    @classmethod
    def load(cls, data_dir: Path) -> "Workspace":
        """Load all workspace files; missing files yield empty collections."""
        logger.debug(f"Loading workspace from {data_dir}")
        workspace = cls(data_dir=data_dir)
        workspace.registry = AccountRegistry.load(workspace.accounts_path)
        workspace.ledger = LedgerStore.load(workspace.ledger_path)
        workspace.store = StatementStore.load(workspace.statements_path)
        return workspace

    def calculator(self) -> BalanceCalculator:
        return BalanceCalculator(self.registry, self.ledger)

    def save_accounts(self) -> None:
        self.registry.save(self.accounts_path)

    def save_ledger(self) -> None:
        self.ledger.save(self.ledger_path)

    def save_statements(self) -> None:
        self.store.save(self.statements_path)

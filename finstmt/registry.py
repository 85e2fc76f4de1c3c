"""
Account Registry (chart of accounts) for FINSTMT.

Holds account metadata (type, category, normal balance, hierarchy) and the
declarative mapping from account category to statement line item. Every
account resolves to exactly one line item at creation time, so statement
assembly is a pure lookup rather than runtime inference over account names.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .errors import ConflictError, InputError, NotFoundError

logger = logging.getLogger(__name__)


ACCOUNT_TYPES = ("asset", "liability", "equity", "revenue", "expense")

NORMAL_BALANCES = ("debit", "credit")

# Account types whose natural (normal) balance is a debit.
DEBIT_NORMAL_TYPES = {"asset", "expense"}


# ---------------------------------------------------------------------------
# Declarative category -> line item mapping
# ---------------------------------------------------------------------------

# category -> owning account type
CATEGORY_TYPES: dict[str, str] = {
    "current_assets": "asset",
    "fixed_assets": "asset",
    "other_assets": "asset",
    "inventory": "asset",
    "prepaid_expenses": "asset",
    "current_liabilities": "liability",
    "long_term_liabilities": "liability",
    "accrued_expenses": "liability",
    "deferred_revenue": "liability",
    "owner_equity": "equity",
    "retained_earnings": "equity",
    "sales_revenue": "revenue",
    "other_revenue": "revenue",
    "cost_of_goods_sold": "expense",
    "operating_expenses": "expense",
    "other_expenses": "expense",
    "manufacturing_overhead": "expense",
    "service_delivery": "expense",
    "quality_control": "expense",
    "warehouse_operations": "expense",
    "shipping_handling": "expense",
    "security_loss_prevention": "expense",
}

_INTANGIBLES = ("goodwill", "patents", "trademarks", "software")
_OPERATING = ("administrative_expenses", "selling_expenses")

# category -> (default line item, allowed line items)
CATEGORY_LINE_ITEMS: dict[str, tuple[str, tuple[str, ...]]] = {
    "current_assets": ("other_current_assets", (
        "cash_on_hand", "bank_accounts", "petty_cash",
        "trade_receivables", "other_receivables", "allowance_for_doubtful_accounts",
        "prepaid_expenses", "other_current_assets",
    )),
    "inventory": ("finished_goods", (
        "raw_materials", "work_in_progress", "finished_goods",
    )),
    "prepaid_expenses": ("prepaid_expenses", ("prepaid_expenses",)),
    "fixed_assets": ("equipment", (
        "land", "buildings", "equipment", "vehicles",
        "furniture_and_fixtures", "computer_equipment",
        "accumulated_depreciation", "long_term_investments",
    ) + _INTANGIBLES),
    "other_assets": ("other_assets", (
        "other_assets", "long_term_investments",
    ) + _INTANGIBLES),
    "current_liabilities": ("other_current_liabilities", (
        "trade_payables", "other_payables",
        "credit_lines", "short_term_loans", "credit_card_debt",
        "taxes_payable", "deferred_revenue", "other_current_liabilities",
    )),
    "accrued_expenses": ("other_accrued_expenses", (
        "salaries_payable", "utilities_payable", "rent_payable",
        "taxes_payable", "interest_payable", "other_accrued_expenses",
    )),
    "deferred_revenue": ("deferred_revenue", ("deferred_revenue",)),
    "long_term_liabilities": ("other_long_term_liabilities", (
        "mortgages", "long_term_loans", "bonds_payable",
        "deferred_tax_liabilities", "pension_liabilities",
        "other_long_term_liabilities",
    )),
    "owner_equity": ("common_stock", (
        "common_stock", "preferred_stock", "additional_paid_in_capital",
        "treasury_stock", "accumulated_other_comprehensive_income", "dividends",
    )),
    "retained_earnings": ("retained_earnings", ("retained_earnings",)),
    "sales_revenue": ("gross_sales", (
        "gross_sales", "sales_returns", "sales_discounts",
    )),
    "other_revenue": ("other_income", (
        "other_income", "interest_income", "rental_income",
    )),
    "cost_of_goods_sold": ("cost_of_goods_sold", (
        "cost_of_goods_sold", "purchases", "freight_in",
        "purchase_returns", "purchase_discounts",
    )),
    "operating_expenses": ("administrative_expenses", _OPERATING),
    "manufacturing_overhead": ("administrative_expenses", _OPERATING),
    "service_delivery": ("administrative_expenses", _OPERATING),
    "quality_control": ("administrative_expenses", _OPERATING),
    "warehouse_operations": ("administrative_expenses", _OPERATING),
    "shipping_handling": ("selling_expenses", _OPERATING),
    "security_loss_prevention": ("administrative_expenses", _OPERATING),
    "other_expenses": ("other_expenses", (
        "other_expenses", "interest_expense", "depreciation_expense",
        "amortization_expense", "income_tax", "deferred_income_tax",
    )),
}

# Contra line items carry the opposite normal balance of their account type.
CONTRA_LINE_ITEMS = {
    "allowance_for_doubtful_accounts",
    "accumulated_depreciation",
    "treasury_stock",
    "dividends",
    "sales_returns",
    "sales_discounts",
    "purchase_returns",
    "purchase_discounts",
}


def default_normal_balance(account_type: str, line_item: Optional[str] = None) -> str:
    """
    Return the conventional normal balance for an account.

    Args:
        account_type: One of ACCOUNT_TYPES.
        line_item: Optional line item; contra line items flip the side.

    Returns:
        "debit" or "credit".
    """
    debit = account_type in DEBIT_NORMAL_TYPES
    if line_item in CONTRA_LINE_ITEMS:
        debit = not debit
    return "debit" if debit else "credit"


def resolve_line_item(category: str, line_item: Optional[str] = None) -> str:
    """
    Resolve the statement line item for a category.

    Args:
        category: Account category.
        line_item: Explicit line item, or None for the category default.

    Returns:
        The resolved line item.

    Raises:
        InputError: If the category is unknown or the line item is not
                    allowed for the category.
    """
    if category not in CATEGORY_LINE_ITEMS:
        raise InputError(f"Unknown account category: '{category}'")

    default, allowed = CATEGORY_LINE_ITEMS[category]
    if line_item is None:
        return default
    if line_item not in allowed:
        raise InputError(
            f"Line item '{line_item}' is not valid for category '{category}'. "
            f"Allowed: {', '.join(allowed)}"
        )
    return line_item


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


@dataclass
class Account:
    """
    A chart-of-accounts entry.

    Attributes:
        code: Unique account code (e.g. "1110").
        name: Display name.
        account_type: asset, liability, equity, revenue or expense.
        category: Sub-classification (see CATEGORY_TYPES).
        normal_balance: "debit" or "credit"; derived from the type when
                        omitted. Fixed once the account is registered.
        opening_balance: Balance before the first ledger entry.
        parent_code: Optional parent account code.
        is_system_account: System accounts cannot be removed or re-typed.
        allow_direct_posting: False for header (summary) accounts.
        is_active: Inactive accounts contribute nothing to balances.
        line_item: Statement line item; resolved from the category.
        description: Free-text description.
    """

    code: str
    name: str
    account_type: str
    category: str
    normal_balance: Optional[str] = None
    opening_balance: float = 0.0
    parent_code: Optional[str] = None
    is_system_account: bool = False
    allow_direct_posting: bool = True
    is_active: bool = True
    line_item: Optional[str] = None
    description: str = ""

    def __post_init__(self):
        """Validate type/category and resolve line item and normal balance."""
        if not self.code or not str(self.code).strip():
            raise InputError("Account code is required")
        if not self.name:
            raise InputError(f"Account name is required (code {self.code})")
        if self.account_type not in ACCOUNT_TYPES:
            raise InputError(
                f"Invalid account type: '{self.account_type}'. "
                f"Must be one of {', '.join(ACCOUNT_TYPES)}."
            )
        expected_type = CATEGORY_TYPES.get(self.category)
        if expected_type is None:
            raise InputError(f"Unknown account category: '{self.category}'")
        if expected_type != self.account_type:
            raise InputError(
                f"Category '{self.category}' belongs to {expected_type} accounts, "
                f"not {self.account_type}"
            )

        self.line_item = resolve_line_item(self.category, self.line_item)

        if self.normal_balance is None:
            self.normal_balance = default_normal_balance(self.account_type, self.line_item)
        elif self.normal_balance not in NORMAL_BALANCES:
            raise InputError(
                f"Invalid normal balance: '{self.normal_balance}'. Must be 'debit' or 'credit'."
            )

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == "debit"

    def to_dict(self) -> dict:
        return asdict(self)


# Fields that may never change on an existing account.
IMMUTABLE_FIELDS = {"code", "normal_balance"}

# Additional fields locked on system accounts.
SYSTEM_LOCKED_FIELDS = {"account_type", "category", "is_system_account"}


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass
class AccountRegistry:
    """
    In-memory chart of accounts keyed by account code.

    Attributes:
        version: Schema version of the accounts file.
        accounts: Accounts keyed by code.
    """

    version: int = 1
    accounts: dict[str, Account] = field(default_factory=dict)

    def add(self, account: Account) -> Account:
        """
        Register a new account.

        Raises:
            ConflictError: If the code is already registered.
            InputError: If the parent account does not exist.
        """
        if account.code in self.accounts:
            raise ConflictError(f"Account code already exists: {account.code}")
        if account.parent_code and account.parent_code not in self.accounts:
            raise InputError(
                f"Parent account '{account.parent_code}' not found for {account.code}"
            )

        self.accounts[account.code] = account
        logger.debug(
            f"Registered account {account.code} '{account.name}' -> {account.line_item}"
        )
        return account

    def find(self, code: str) -> Optional[Account]:
        return self.accounts.get(code)

    def get(self, code: str) -> Account:
        """
        Return the account for a code.

        Raises:
            NotFoundError: If no such account exists.
        """
        account = self.accounts.get(code)
        if account is None:
            raise NotFoundError(f"Account not found: {code}")
        return account

    def iter_accounts(self, active_only: bool = False) -> Iterable[Account]:
        """Iterate over accounts in code order."""
        for code in sorted(self.accounts):
            account = self.accounts[code]
            if active_only and not account.is_active:
                continue
            yield account

    def codes_for_line_item(self, line_item: str, active_only: bool = True) -> list[str]:
        """Return the codes of all accounts mapped to a line item."""
        return [
            acc.code for acc in self.iter_accounts(active_only)
            if acc.line_item == line_item
        ]

    def codes_by_line_item(self, active_only: bool = True) -> dict[str, list[str]]:
        """Group account codes by line item."""
        grouped: dict[str, list[str]] = {}
        for acc in self.iter_accounts(active_only):
            grouped.setdefault(acc.line_item, []).append(acc.code)
        return grouped

    def codes_for_type(self, account_type: str, active_only: bool = True) -> list[str]:
        """Return the codes of all accounts of a given type."""
        return [
            acc.code for acc in self.iter_accounts(active_only)
            if acc.account_type == account_type
        ]

    def level(self, code: str) -> int:
        """Return hierarchy depth (0 for top-level accounts)."""
        depth = 0
        account = self.accounts.get(code)
        seen = set()
        while account and account.parent_code and account.parent_code not in seen:
            seen.add(account.parent_code)
            depth += 1
            account = self.accounts.get(account.parent_code)
        return depth

    def update(self, code: str, **changes) -> Account:
        """
        Update mutable fields on an account.

        Raises:
            NotFoundError: If the account does not exist.
            ConflictError: If an immutable or system-locked field is changed.
            InputError: If the resulting account is invalid.
        """
        account = self.get(code)

        for key, value in changes.items():
            if key in IMMUTABLE_FIELDS and value != getattr(account, key):
                raise ConflictError(f"Field '{key}' cannot be changed on account {code}")
            if account.is_system_account and key in SYSTEM_LOCKED_FIELDS \
                    and value != getattr(account, key):
                raise ConflictError(
                    f"Field '{key}' cannot be changed on system account {code}"
                )
            if account.is_system_account and key == "is_active" and not value:
                raise ConflictError(f"System account {code} cannot be deactivated")

        data = account.to_dict()
        data.update(changes)
        if "category" in changes and "line_item" not in changes:
            data["line_item"] = None

        # Re-run validation on the merged record before committing it.
        updated = Account(**data)
        self.accounts[code] = updated
        logger.info(f"Updated account {code}: {', '.join(sorted(changes))}")
        return updated

    def deactivate(self, code: str) -> Account:
        return self.update(code, is_active=False)

    def remove(self, code: str) -> None:
        """
        Remove a non-system account with no children.

        Raises:
            NotFoundError: If the account does not exist.
            ConflictError: If the account is a system account or has children.
        """
        account = self.get(code)
        if account.is_system_account:
            raise ConflictError(f"System account {code} cannot be deleted")
        if any(acc.parent_code == code for acc in self.accounts.values()):
            raise ConflictError(f"Account {code} has child accounts and cannot be deleted")

        del self.accounts[code]
        logger.info(f"Removed account {code}")

    @classmethod
    def load(cls, path: Path) -> "AccountRegistry":
        """
        Load a registry from a JSON file.

        Args:
            path: Path to accounts.json.

        Returns:
            AccountRegistry; empty if the file does not exist.

        Raises:
            json.JSONDecodeError: If the file is not valid JSON.
            InputError: If an account record is invalid.
        """
        logger.info(f"Loading chart of accounts from {path}")

        if not path.exists():
            logger.warning(f"Accounts file not found: {path}")
            logger.warning("Starting with empty chart of accounts")
            return cls()

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        registry = cls(version=data.get("version", 1))
        # Parents must be registered before children, whatever the file order.
        pending = list(data.get("accounts", []))
        while pending:
            progressed = False
            for record in list(pending):
                parent = record.get("parent_code")
                if parent and parent not in registry.accounts:
                    continue
                registry.add(Account(**record))
                pending.remove(record)
                progressed = True
            if not progressed:
                missing = ", ".join(r["code"] for r in pending)
                raise InputError(f"Accounts reference unknown parents: {missing}")

        logger.info(f"Loaded {len(registry.accounts)} accounts")
        return registry

    def save(self, path: Path) -> None:
        """Save the registry to a JSON file."""
        logger.info(f"Saving chart of accounts to {path}")

        data = {
            "version": self.version,
            "accounts": [acc.to_dict() for acc in self.iter_accounts()],
        }

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        logger.info("Chart of accounts saved successfully")


# ---------------------------------------------------------------------------
# Default chart of accounts
# ---------------------------------------------------------------------------

# (code, name, type, category, line_item, parent_code, allow_direct_posting)
_DEFAULT_ACCOUNTS = [
    ("1000", "Assets", "asset", "current_assets", None, None, False),
    ("1100", "Current Assets", "asset", "current_assets", None, "1000", False),
    ("1110", "Cash on Hand", "asset", "current_assets", "cash_on_hand", "1100", True),
    ("1120", "Bank Accounts", "asset", "current_assets", "bank_accounts", "1100", True),
    ("1130", "Accounts Receivable", "asset", "current_assets", "trade_receivables", "1100", True),
    ("1200", "Inventory", "asset", "inventory", "finished_goods", "1000", True),
    ("2000", "Liabilities", "liability", "current_liabilities", None, None, False),
    ("2100", "Current Liabilities", "liability", "current_liabilities", None, "2000", False),
    ("2110", "Accounts Payable", "liability", "current_liabilities", "trade_payables", "2100", True),
    ("2120", "Sales Tax Payable", "liability", "current_liabilities", "taxes_payable", "2100", True),
    ("2200", "Customer Deposits", "liability", "deferred_revenue", "deferred_revenue", "2000", True),
    ("3000", "Equity", "equity", "owner_equity", None, None, False),
    ("3100", "Owner Capital", "equity", "owner_equity", "common_stock", "3000", True),
    ("3200", "Retained Earnings", "equity", "retained_earnings", "retained_earnings", "3000", True),
    ("4000", "Revenue", "revenue", "sales_revenue", None, None, False),
    ("4001", "Sales Revenue", "revenue", "sales_revenue", "gross_sales", "4000", True),
    ("4200", "Other Revenue", "revenue", "other_revenue", "other_income", "4000", True),
    ("5000", "Expenses", "expense", "operating_expenses", None, None, False),
    ("5001", "Cost of Goods Sold", "expense", "cost_of_goods_sold", "cost_of_goods_sold", "5000", True),
    ("5200", "Operating Expenses", "expense", "operating_expenses", None, "5000", False),
    ("5210", "General & Administrative Expenses", "expense", "operating_expenses",
     "administrative_expenses", "5200", True),
    ("5220", "Selling & Marketing Expenses", "expense", "operating_expenses",
     "selling_expenses", "5200", True),
    ("5430", "Other Expenses", "expense", "other_expenses", "other_expenses", "5000", True),
]


def default_chart_of_accounts() -> AccountRegistry:
    """
    Build a registry seeded with the basic system chart of accounts.

    Returns:
        AccountRegistry containing the default system accounts.
    """
    registry = AccountRegistry()
    for code, name, acc_type, category, line_item, parent, postable in _DEFAULT_ACCOUNTS:
        registry.add(Account(
            code=code,
            name=name,
            account_type=acc_type,
            category=category,
            line_item=line_item,
            parent_code=parent,
            is_system_account=True,
            allow_direct_posting=postable,
        ))
    logger.debug(f"Seeded default chart with {len(registry.accounts)} accounts")
    return registry

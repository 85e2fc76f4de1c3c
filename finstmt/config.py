"""
Configuration management for FINSTMT.

Holds the engine settings (numeric tolerance, allowance heuristic, COGS
method) and the per-request resolution of well-known account codes. The
configuration is immutable and passed explicitly to every operation.
"""

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from .errors import InputError

if TYPE_CHECKING:
    from .registry import AccountRegistry

logger = logging.getLogger(__name__)

COGS_METHODS = ("transaction", "inventory_formula")


@dataclass(frozen=True)
class EngineConfig:
    """
    Settings for statement generation and validation.

    Attributes:
        numeric_tolerance: Maximum absolute difference for considering
                          numeric values equal in accounting checks.
                          Default: 0.01 (one cent in most currencies).
        default_currency: The primary currency symbol for reporting.
        allowance_rate: Fraction of gross receivables reserved as
                        allowance for doubtful accounts. Default: 0.03.
        default_period_type: Period type used when none is given.
        cogs_method: "transaction" to prefer posted COGS entries, or
                     "inventory_formula" to always use the inventory formula.
        rounding_places: Decimal places for persisted amounts.
    """

    numeric_tolerance: float = 0.01
    default_currency: str = "USD"
    allowance_rate: float = 0.03
    default_period_type: str = "monthly"
    cogs_method: str = "transaction"
    rounding_places: int = 2

    def __post_init__(self):
        if self.numeric_tolerance < 0:
            raise InputError("numeric_tolerance cannot be negative")
        if not 0 <= self.allowance_rate <= 1:
            raise InputError("allowance_rate must be between 0 and 1")
        if self.cogs_method not in COGS_METHODS:
            raise InputError(
                f"Invalid COGS method: '{self.cogs_method}'. "
                f"Must be one of {', '.join(COGS_METHODS)}."
            )

    def is_zero(self, value: float) -> bool:
        """
        Check if a numeric value is effectively zero within tolerance.

        Args:
            value: The numeric value to check.

        Returns:
            True if abs(value) <= numeric_tolerance, False otherwise.
        """
        return abs(value) <= self.numeric_tolerance

    def is_balanced(self, value: float) -> bool:
        """
        Check if a value represents a balanced state (effectively zero).

        Alias for is_zero() with clearer meaning when checking the
        accounting equation.
        """
        return self.is_zero(value)

    def round(self, value: float) -> float:
        return round(value, self.rounding_places)

    def with_overrides(self, **changes) -> "EngineConfig":
        """Return a copy with selected settings replaced."""
        return replace(self, **changes)


# ---------------------------------------------------------------------------
# Request-scoped account codes
# ---------------------------------------------------------------------------

# name -> (line item used for lookup, fallback code in the default chart)
_ACCOUNT_CODE_SOURCES = {
    "cash": ("cash_on_hand", "1110"),
    "bank": ("bank_accounts", "1120"),
    "accounts_receivable": ("trade_receivables", "1130"),
    "inventory": ("finished_goods", "1200"),
    "accounts_payable": ("trade_payables", "2110"),
    "retained_earnings": ("retained_earnings", "3200"),
    "sales_revenue": ("gross_sales", "4001"),
    "other_revenue": ("other_income", "4200"),
    "cost_of_goods_sold": ("cost_of_goods_sold", "5001"),
    "other_expenses": ("other_expenses", "5430"),
}


@dataclass(frozen=True)
class AccountCodes:
    """Well-known account codes resolved for a single request."""

    cash: str
    bank: str
    accounts_receivable: str
    inventory: str
    accounts_payable: str
    retained_earnings: str
    sales_revenue: str
    other_revenue: str
    cost_of_goods_sold: str
    other_expenses: str


def resolve_account_codes(registry: "AccountRegistry") -> AccountCodes:
    """
    Resolve well-known account codes from the registry.

    Looks up the first active account mapped to each line item and falls
    back to the default chart code when none is mapped. The result is built
    fresh on every call and is never cached.

    Args:
        registry: Chart of accounts to resolve against.

    Returns:
        AccountCodes for this request.
    """
    resolved = {}
    for name, (line_item, fallback) in _ACCOUNT_CODE_SOURCES.items():
        codes = registry.codes_for_line_item(line_item)
        if codes:
            resolved[name] = codes[0]
        else:
            logger.warning(
                f"No active account mapped to '{line_item}', using fallback '{fallback}'"
            )
            resolved[name] = fallback
    return AccountCodes(**resolved)


def setup_logging(verbose: bool = False) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: If True, sets log level to DEBUG. Otherwise, INFO.
    """
    log_level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    if verbose:
        logger.debug("Verbose logging enabled")


# Immutable default configuration
default_config = EngineConfig()

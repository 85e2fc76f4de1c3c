"""
Trial Balance report generation.

Generates a Trial Balance as of a specific date, listing all active accounts
with their debit and credit amounts. Total debits must equal total credits
for a set of books in balance.

Plain generation is advisory: an unbalanced trial balance is reported, never
raised. validate_trial_balance() is the period-close gate and returns an
explicit invalid result that callers branch on.
"""

import csv
import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from io import StringIO
from typing import Optional, Union

from ..balances import BalanceCalculator
from ..config import EngineConfig
from ..periods import coerce_date

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class TrialBalanceLine:
    """
    A single account line in a Trial Balance.

    Attributes:
        account_code: Account code.
        account_name: Account name.
        account_type: asset, liability, equity, revenue or expense.
        normal_balance: debit or credit.
        debit_balance: Amount in the debit column (0.0 if none).
        credit_balance: Amount in the credit column (0.0 if none).
        level: Indentation level for display (depth in the account hierarchy).
    """

    account_code: str
    account_name: str
    account_type: str
    normal_balance: str
    debit_balance: float
    credit_balance: float
    level: int = 0

    def to_dict(self) -> dict:
        return {
            "account_code": self.account_code,
            "account_name": self.account_name,
            "account_type": self.account_type,
            "normal_balance": self.normal_balance,
            "debit_balance": self.debit_balance,
            "credit_balance": self.credit_balance,
            "level": self.level,
        }


@dataclass
class TrialBalance:
    """
    Trial Balance representation.

    Attributes:
        as_of_date: Balance date.
        period_id: Optional identifier of the period being closed.
        lines: Account lines sorted by account code.
        total_debits: Sum of the debit column.
        total_credits: Sum of the credit column.
        difference: total_debits - total_credits.
        is_balanced: True if the difference is within tolerance.
        currency: Currency code.
    """

    as_of_date: date
    period_id: Optional[str] = None
    lines: list[TrialBalanceLine] = field(default_factory=list)
    total_debits: float = 0.0
    total_credits: float = 0.0
    difference: float = 0.0
    is_balanced: bool = True
    currency: str = "USD"

    @property
    def validation(self) -> dict:
        if self.is_balanced:
            return {"passed": True, "message": "Trial balance is balanced"}
        return {
            "passed": False,
            "message": (
                f"Trial balance is unbalanced: Debits {self.total_debits:,.2f} ≠ "
                f"Credits {self.total_credits:,.2f} (Difference: {self.difference:,.2f})"
            ),
        }

    def to_dict(self) -> dict:
        return {
            "as_of_date": self.as_of_date.isoformat(),
            "period_id": self.period_id,
            "currency": self.currency,
            "accounts": [line.to_dict() for line in self.lines],
            "totals": {
                "total_debits": self.total_debits,
                "total_credits": self.total_credits,
                "difference": self.difference,
            },
            "is_balanced": self.is_balanced,
            "validation": self.validation,
        }


@dataclass
class TrialBalanceValidation:
    """
    Outcome of validating a trial balance for period close.

    Attributes:
        valid: True if debits equal credits within tolerance.
        reason: Explanation when invalid, None otherwise.
        trial_balance: The trial balance that was checked.
    """

    valid: bool
    reason: Optional[str]
    trial_balance: TrialBalance


# ---------------------------------------------------------------------------
# Debit / credit assignment
# ---------------------------------------------------------------------------


def _assign_debit_credit(balance: float, normal_balance: str) -> tuple[float, float]:
    """
    Assign an account balance to the correct debit or credit column.

    Balances are signed relative to the account's normal side, so a positive
    balance sits in the normal column. A negative (abnormal) balance is placed
    in the opposite column.

    Args:
        balance: Account balance on its normal side.
        normal_balance: "debit" or "credit".

    Returns:
        Tuple of (debit, credit); at most one will be non-zero.
    """
    if normal_balance == "debit":
        return max(0.0, balance), max(0.0, -balance)
    return max(0.0, -balance), max(0.0, balance)


# ---------------------------------------------------------------------------
# Core generation function
# ---------------------------------------------------------------------------


def generate_trial_balance(
    calculator: BalanceCalculator,
    as_of_date: Union[date, str],
    period_id: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> TrialBalance:
    """
    Generate a Trial Balance as of a specific date.

    Lists all active accounts in debit/credit format and checks that total
    debits equal total credits. Never raises on imbalance.

    Args:
        calculator: Balance calculator over the registry and ledger.
        as_of_date: Balance date (date or YYYY-MM-DD string).
        period_id: Optional identifier of the period, carried on the result.
        config: Optional configuration; uses default if not provided.

    Returns:
        TrialBalance instance.

    Raises:
        InputError: If the date string is not in YYYY-MM-DD format.
    """
    if config is None:
        from ..config import default_config
        config = default_config

    as_of = coerce_date(as_of_date, "as_of_date")
    registry = calculator.registry

    logger.info(f"Generating Trial Balance as of {as_of}")

    # STEP 1: Batched balances for all active accounts.
    logger.info("Step 1: Collecting accounts and balances")
    accounts = sorted(registry.iter_accounts(active_only=True), key=lambda a: a.code)
    balances = calculator.balances([acc.code for acc in accounts], as_of)

    # STEP 2: Build trial balance lines.
    lines: list[TrialBalanceLine] = []
    for account in accounts:
        debit, credit = _assign_debit_credit(balances[account.code], account.normal_balance)
        lines.append(TrialBalanceLine(
            account_code=account.code,
            account_name=account.name,
            account_type=account.account_type,
            normal_balance=account.normal_balance,
            debit_balance=config.round(debit),
            credit_balance=config.round(credit),
            level=registry.level(account.code),
        ))

    total_debits = config.round(sum(line.debit_balance for line in lines))
    total_credits = config.round(sum(line.credit_balance for line in lines))
    difference = config.round(total_debits - total_credits)

    trial_balance = TrialBalance(
        as_of_date=as_of,
        period_id=period_id,
        lines=lines,
        total_debits=total_debits,
        total_credits=total_credits,
        difference=difference,
        is_balanced=abs(difference) <= config.numeric_tolerance,
        currency=config.default_currency,
    )

    logger.info(
        f"Trial Balance: {len(lines)} accounts | "
        f"Debits: {total_debits:,.2f} | Credits: {total_credits:,.2f}"
    )
    if trial_balance.is_balanced:
        logger.info("[OK] Trial Balance is balanced (Debits = Credits)")
    else:
        logger.warning(f"[!] Trial Balance imbalance: {difference:,.2f}")

    return trial_balance


def validate_trial_balance(
    calculator: BalanceCalculator,
    as_of_date: Union[date, str],
    period_id: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> TrialBalanceValidation:
    """
    Validate the trial balance before closing a period.

    Returns an explicit invalid result rather than raising, so period-close
    callers can branch on it.

    Args:
        calculator: Balance calculator.
        as_of_date: Balance date (date or YYYY-MM-DD string).
        period_id: Optional identifier of the period being closed.
        config: Optional configuration; uses default if not provided.

    Returns:
        TrialBalanceValidation.
    """
    trial_balance = generate_trial_balance(calculator, as_of_date, period_id, config)
    if trial_balance.is_balanced:
        return TrialBalanceValidation(valid=True, reason=None, trial_balance=trial_balance)

    reason = trial_balance.validation["message"]
    logger.warning(f"[!] Period close blocked: {reason}")
    return TrialBalanceValidation(valid=False, reason=reason, trial_balance=trial_balance)


def get_trial_balance_summary(trial_balance: TrialBalance) -> dict:
    """
    Summarize a trial balance by account type.

    Returns:
        Dict with per-type {account_count, total_debits, total_credits},
        grand totals and the balance status.
    """
    by_type: dict[str, dict] = defaultdict(
        lambda: {"account_count": 0, "total_debits": 0.0, "total_credits": 0.0}
    )
    for line in trial_balance.lines:
        group = by_type[line.account_type]
        group["account_count"] += 1
        group["total_debits"] += line.debit_balance
        group["total_credits"] += line.credit_balance

    for group in by_type.values():
        group["total_debits"] = round(group["total_debits"], 2)
        group["total_credits"] = round(group["total_credits"], 2)

    return {
        "as_of_date": trial_balance.as_of_date.isoformat(),
        "by_type": dict(by_type),
        "total_accounts": len(trial_balance.lines),
        "total_debits": trial_balance.total_debits,
        "total_credits": trial_balance.total_credits,
        "difference": trial_balance.difference,
        "is_balanced": trial_balance.is_balanced,
    }


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


def format_as_text(trial_balance: TrialBalance) -> str:
    """
    Format a Trial Balance as human-readable text.

    Args:
        trial_balance: TrialBalance to format.

    Returns:
        Formatted text string.
    """
    out = StringIO()
    sep = "=" * 100
    thin = "-" * 100

    out.write(sep + "\n")
    out.write("TRIAL BALANCE\n")
    out.write(f"As of {trial_balance.as_of_date.strftime('%B %d, %Y')}\n")
    if trial_balance.period_id:
        out.write(f"Period: {trial_balance.period_id}\n")
    out.write(f"Currency: {trial_balance.currency}\n")
    out.write(sep + "\n\n")

    out.write(f"{'Code':<8} {'Account':<55} {'Type':<10} {'Debit':>12} {'Credit':>12}\n")
    out.write(thin + "\n")

    for line in trial_balance.lines:
        name = f"{'  ' * line.level}{line.account_name}"
        debit_str = f"{line.debit_balance:,.2f}" if line.debit_balance else ""
        credit_str = f"{line.credit_balance:,.2f}" if line.credit_balance else ""
        out.write(
            f"{line.account_code:<8} {name:<55} {line.account_type:<10} "
            f"{debit_str:>12} {credit_str:>12}\n"
        )

    out.write(thin + "\n")
    out.write(
        f"{'TOTALS':<8} {'':<55} {'':<10} "
        f"{trial_balance.total_debits:>12,.2f} {trial_balance.total_credits:>12,.2f}\n"
    )
    out.write(sep + "\n")

    if trial_balance.is_balanced:
        out.write("\n[OK] TRIAL BALANCE IS BALANCED (Debits = Credits)\n")
    else:
        out.write(f"\n[X] {trial_balance.validation['message']}\n")

    return out.getvalue()


def format_as_csv(trial_balance: TrialBalance) -> str:
    """
    Format a Trial Balance as CSV.

    Args:
        trial_balance: TrialBalance to format.

    Returns:
        CSV string.
    """
    out = StringIO()
    writer = csv.writer(out)

    writer.writerow(["Trial Balance"])
    writer.writerow([f"As of {trial_balance.as_of_date.isoformat()}"])
    writer.writerow([])
    writer.writerow(["Code", "Account", "Account Type", "Level", "Debit", "Credit"])

    for line in trial_balance.lines:
        writer.writerow([
            line.account_code,
            line.account_name,
            line.account_type,
            line.level,
            f"{line.debit_balance:.2f}" if line.debit_balance else "",
            f"{line.credit_balance:.2f}" if line.credit_balance else "",
        ])

    writer.writerow([])
    writer.writerow([
        "TOTALS", "", "", "",
        f"{trial_balance.total_debits:.2f}",
        f"{trial_balance.total_credits:.2f}",
    ])

    return out.getvalue()


def format_as_json(trial_balance: TrialBalance) -> str:
    """
    Format a Trial Balance as JSON.

    Args:
        trial_balance: TrialBalance to format.

    Returns:
        JSON string.
    """
    return json.dumps({"trial_balance": trial_balance.to_dict()}, indent=2, ensure_ascii=False)

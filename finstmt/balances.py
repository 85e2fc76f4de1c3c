"""
Account Balance Calculator for FINSTMT.

Derives point-in-time balances by replaying completed ledger entries on top
of each account's opening balance, using the account's normal balance as
the sign convention. All lookups are batched: one aggregation pass over the
ledger serves a whole set of account codes.
"""

import logging
from datetime import date
from typing import Iterable, Optional

from .ledger import AccountActivity, LedgerStore
from .registry import DEBIT_NORMAL_TYPES, Account, AccountRegistry

logger = logging.getLogger(__name__)


class BalanceCalculator:
    """
    Computes account balances from a registry and a ledger.

    Usage:
        calculator = BalanceCalculator(registry, ledger)
        cash = calculator.balance("1110", date(2024, 1, 31))
    """

    def __init__(self, registry: AccountRegistry, ledger: LedgerStore):
        self.registry = registry
        self.ledger = ledger

    def _postable(self, code: str) -> Optional[Account]:
        account = self.registry.find(code)
        if account is None:
            logger.warning(f"Account {code} not found; using balance 0")
            return None
        if not account.is_active:
            logger.warning(f"Account {code} is inactive; using balance 0")
            return None
        return account

    def balances(self, account_codes: Iterable[str], as_of_date: date) -> dict[str, float]:
        """
        Calculate balances for a set of accounts as of a date.

        Balance = opening balance + sum of completed entries dated on or
        before as_of_date, signed by the account's normal balance. Missing
        or inactive accounts get 0.0 (with a warning) rather than an error.

        Args:
            account_codes: Codes to calculate.
            as_of_date: Inclusive cut-off date.

        Returns:
            Mapping of every requested code to its balance.
        """
        codes = list(dict.fromkeys(account_codes))
        accounts = {code: self._postable(code) for code in codes}
        live_codes = [code for code, acc in accounts.items() if acc is not None]

        totals = self.ledger.totals_by_account(live_codes, end=as_of_date)

        result: dict[str, float] = {}
        for code in codes:
            account = accounts[code]
            if account is None:
                result[code] = 0.0
                continue
            result[code] = account.opening_balance + totals[code].net(account.normal_balance)
        return result

    def balance(self, account_code: str, as_of_date: date) -> float:
        """Balance of a single account; see balances()."""
        return self.balances([account_code], as_of_date)[account_code]

    def period_activity(
        self,
        account_codes: Iterable[str],
        start: date,
        end: date,
    ) -> dict[str, AccountActivity]:
        """
        Completed debit/credit totals per account within [start, end].

        Missing or inactive accounts report zero activity.
        """
        codes = list(dict.fromkeys(account_codes))
        live_codes = [code for code in codes if self._postable(code) is not None]
        totals = self.ledger.totals_by_account(live_codes, start=start, end=end)
        return {code: totals.get(code, AccountActivity()) for code in codes}

    def line_item_balances(self, as_of_date: date) -> dict[str, float]:
        """
        Sum balances of all active accounts grouped by line item.

        Performs a single batched balance computation for the whole chart.
        """
        grouped = self.registry.codes_by_line_item()
        all_codes = [code for codes in grouped.values() for code in codes]
        balances = self.balances(all_codes, as_of_date)
        return {
            line_item: sum(balances[code] for code in codes)
            for line_item, codes in grouped.items()
        }

    def sum_line_item(self, line_item: str, as_of_date: date) -> float:
        codes = self.registry.codes_for_line_item(line_item)
        return sum(self.balances(codes, as_of_date).values())

    # ------------------------------------------------------------------
    # Type-level rollups
    # ------------------------------------------------------------------

    def type_totals(self, as_of_date: date) -> dict[str, float]:
        """
        Total balance per account type, expressed on the type's natural side.

        Contra accounts (e.g. accumulated depreciation on an asset) reduce
        their type's total.
        """
        accounts = list(self.registry.iter_accounts(active_only=True))
        balances = self.balances([acc.code for acc in accounts], as_of_date)

        totals = {"asset": 0.0, "liability": 0.0, "equity": 0.0, "revenue": 0.0, "expense": 0.0}
        for acc in accounts:
            natural_debit = acc.account_type in DEBIT_NORMAL_TYPES
            sign = 1.0 if acc.is_debit_normal == natural_debit else -1.0
            totals[acc.account_type] += sign * balances[acc.code]
        return totals

    def net_income_to_date(self, as_of_date: date) -> float:
        """Revenue minus expenses over all entries up to as_of_date."""
        totals = self.type_totals(as_of_date)
        return totals["revenue"] - totals["expense"]

    def net_income(self, start: date, end: date) -> float:
        """Revenue minus expenses posted within [start, end]."""
        codes = self.registry.codes_for_type("revenue") + self.registry.codes_for_type("expense")
        activity = self.period_activity(codes, start, end)
        return sum(act.credits - act.debits for act in activity.values())

"""Tests for finstmt.ledger."""

from datetime import date

import pytest

from finstmt.errors import ConflictError, InputError, NotFoundError
from finstmt.ledger import AccountActivity, LedgerEntry, LedgerStore
from tests.helpers import make_account, make_entry


# ---------------------------------------------------------------------------
# LedgerEntry invariant
# ---------------------------------------------------------------------------


class TestLedgerEntry:
    def test_debit_entry(self):
        entry = make_entry("e1", "1001", debit=100.0)
        assert entry.is_completed
        assert entry.debit_amount == 100.0

    def test_both_sides_positive_rejected(self):
        with pytest.raises(InputError, match="exactly one"):
            make_entry("e1", "1001", debit=100.0, credit=50.0)

    def test_neither_side_positive_rejected(self):
        with pytest.raises(InputError, match="exactly one"):
            make_entry("e1", "1001")

    def test_negative_amount_rejected(self):
        with pytest.raises(InputError, match="negative"):
            make_entry("e1", "1001", debit=-5.0)

    def test_pending_entry_may_be_empty(self):
        entry = make_entry("e1", "1001", status="pending")
        assert not entry.is_completed

    def test_invalid_status_rejected(self):
        with pytest.raises(InputError, match="Invalid entry status"):
            make_entry("e1", "1001", debit=1.0, status="posted")

    def test_entries_are_frozen(self):
        entry = make_entry("e1", "1001", debit=1.0)
        with pytest.raises(AttributeError):
            entry.debit_amount = 2.0

    def test_dict_roundtrip(self):
        entry = make_entry("e1", "1001", credit=12.5, created_at=date(2024, 3, 1))
        data = entry.to_dict()
        assert data["created_at"] == "2024-03-01"
        assert LedgerEntry.from_dict(data) == entry


class TestAccountActivity:
    def test_net_debit_normal(self):
        assert AccountActivity(debits=100, credits=30).net("debit") == 70

    def test_net_credit_normal(self):
        assert AccountActivity(debits=100, credits=30).net("credit") == -70


# ---------------------------------------------------------------------------
# LedgerStore
# ---------------------------------------------------------------------------


class TestLedgerStore:
    def test_duplicate_id_rejected(self):
        ledger = LedgerStore()
        ledger.append(make_entry("e1", "1001", debit=1.0))
        with pytest.raises(ConflictError):
            ledger.append(make_entry("e1", "1001", debit=2.0))

    def test_append_checks_registry(self, default_registry):
        ledger = LedgerStore()
        with pytest.raises(NotFoundError):
            ledger.append(make_entry("e1", "9999", debit=1.0), default_registry)
        with pytest.raises(InputError, match="direct posting"):
            ledger.append(make_entry("e2", "1100", debit=1.0), default_registry)

    def test_append_rejects_inactive_account(self, default_registry):
        default_registry.add(make_account("1190", "asset", "current_assets", is_active=False))
        with pytest.raises(InputError, match="inactive"):
            LedgerStore().append(make_entry("e1", "1190", debit=1.0), default_registry)

    def test_totals_by_account_single_pass(self):
        ledger = LedgerStore()
        ledger.append(make_entry("e1", "A", debit=100.0, created_at=date(2024, 1, 1)))
        ledger.append(make_entry("e2", "A", credit=40.0, created_at=date(2024, 1, 5)))
        ledger.append(make_entry("e3", "B", credit=60.0, created_at=date(2024, 1, 5)))
        ledger.append(make_entry("e4", "A", debit=10.0, created_at=date(2024, 2, 1)))

        totals = ledger.totals_by_account(["A", "B", "C"], end=date(2024, 1, 31))

        assert totals["A"].debits == 100.0
        assert totals["A"].credits == 40.0
        assert totals["B"].credits == 60.0
        assert totals["C"].debits == 0.0

    def test_totals_skip_non_completed(self):
        ledger = LedgerStore()
        ledger.append(make_entry("e1", "A", debit=100.0))
        ledger.append(make_entry("e2", "A", debit=50.0, status="voided"))
        ledger.append(make_entry("e3", "A", status="pending"))

        assert ledger.totals_by_account(["A"])["A"].debits == 100.0

    def test_totals_with_start_bound(self):
        ledger = LedgerStore()
        ledger.append(make_entry("e1", "A", debit=100.0, created_at=date(2024, 1, 1)))
        ledger.append(make_entry("e2", "A", debit=25.0, created_at=date(2024, 2, 1)))

        totals = ledger.totals_by_account(["A"], start=date(2024, 2, 1))
        assert totals["A"].debits == 25.0

    def test_save_and_load(self, tmp_path):
        ledger = LedgerStore()
        ledger.append(make_entry("e1", "A", debit=100.0))
        ledger.append(make_entry("e2", "B", credit=100.0))
        path = tmp_path / "ledger.json"

        ledger.save(path)
        loaded = LedgerStore.load(path)

        assert len(loaded) == 2
        assert loaded.entries == ledger.entries
        with pytest.raises(ConflictError):
            loaded.append(make_entry("e1", "A", debit=1.0))

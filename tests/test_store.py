"""Tests for finstmt.store."""

from datetime import date

import pytest

from finstmt.errors import ConflictError, NotFoundError
from finstmt.periods import DateRange, calendar_period
from finstmt.store import Statement, StatementStore

JANUARY = calendar_period(date(2024, 1, 1), "monthly")
FEBRUARY = calendar_period(date(2024, 2, 1), "monthly")


def make_statement(number, period=JANUARY, statement_type="balance_sheet",
                   period_type="monthly", **kwargs) -> Statement:
    return Statement(
        statement_number=number,
        statement_type=statement_type,
        statement_date=period.end,
        period_type=period_type,
        period_start=period.start,
        period_end=period.end,
        **kwargs,
    )


class TestStatementNumbers:
    def test_first_number(self):
        store = StatementStore()
        assert store.next_statement_number("balance_sheet", "monthly", JANUARY) == "BS-M202401-001"

    def test_profit_loss_prefix(self):
        store = StatementStore()
        quarter = calendar_period(date(2024, 2, 1), "quarterly")
        assert store.next_statement_number("profit_loss", "quarterly", quarter) == "PL-Q1-2024-001"

    def test_sequence_continues_after_max(self):
        store = StatementStore()
        store.insert(make_statement("BS-M202401-001", deleted=True, is_current_version=False))
        store.insert(make_statement("BS-M202401-004", is_current_version=False))

        assert store.next_statement_number("balance_sheet", "monthly", JANUARY) == "BS-M202401-005"

    def test_versioned_numbers_do_not_count(self):
        store = StatementStore()
        store.insert(make_statement("BS-M202401-001-V2"))
        assert store.max_sequence("BS-M202401") == 0


class TestUniqueness:
    def test_duplicate_number_rejected(self):
        store = StatementStore()
        store.insert(make_statement("BS-M202401-001"))
        with pytest.raises(ConflictError, match="number already exists"):
            store.insert(make_statement("BS-M202401-001", period=FEBRUARY))

    def test_one_current_statement_per_period(self):
        store = StatementStore()
        store.insert(make_statement("BS-M202401-001"))
        with pytest.raises(ConflictError, match="Balance sheet already exists"):
            store.insert(make_statement("BS-M202401-002"))

    def test_partial_range_shares_calendar_slot(self):
        store = StatementStore()
        store.insert(make_statement("BS-M202401-001"))
        mid_month = DateRange(date(2024, 1, 1), date(2024, 1, 15))
        with pytest.raises(ConflictError):
            store.insert(make_statement("BS-M202401-002", period=mid_month))

    def test_same_period_different_type_allowed(self):
        store = StatementStore()
        store.insert(make_statement("BS-M202401-001"))
        store.insert(make_statement("PL-M202401-001", statement_type="profit_loss"))
        assert len(store.statements) == 2

    def test_same_period_after_soft_delete_allowed(self):
        store = StatementStore()
        first = store.insert(make_statement("BS-M202401-001"))
        store.soft_delete(first.statement_id)

        store.insert(make_statement("BS-M202401-002"))

        assert store.find_for_period("balance_sheet", "monthly", JANUARY).statement_number \
            == "BS-M202401-002"


class TestReads:
    def test_get_missing(self):
        with pytest.raises(NotFoundError):
            StatementStore().get("nope")

    def test_get_deleted_hidden_by_default(self):
        store = StatementStore()
        statement = store.insert(make_statement("BS-M202401-001"))
        store.soft_delete(statement.statement_id)

        with pytest.raises(NotFoundError):
            store.get(statement.statement_id)
        assert store.get(statement.statement_id, include_deleted=True).deleted

    def test_list_newest_first_with_filters(self):
        store = StatementStore()
        store.insert(make_statement("BS-M202401-001"))
        store.insert(make_statement("BS-M202402-001", period=FEBRUARY, status="review"))
        store.insert(make_statement("PL-M202401-001", statement_type="profit_loss"))

        numbers = [s.statement_number for s in store.list_statements("balance_sheet")]
        assert numbers == ["BS-M202402-001", "BS-M202401-001"]
        assert [s.statement_number for s in store.list_statements(status="review")] \
            == ["BS-M202402-001"]

    def test_find_by_period_start_and_latest(self):
        store = StatementStore()
        store.insert(make_statement("BS-M202401-001"))
        store.insert(make_statement("BS-M202402-001", period=FEBRUARY))

        assert store.find_by_period_start("balance_sheet", date(2024, 1, 1)).statement_number \
            == "BS-M202401-001"
        assert store.latest("balance_sheet").statement_number == "BS-M202402-001"
        assert store.latest("profit_loss") is None

    def test_find_matching_period_ignores_period_type(self):
        store = StatementStore()
        custom = DateRange(date(2024, 1, 1), date(2024, 1, 31))
        store.insert(make_statement("PL-C20240131-001", period=custom,
                                    statement_type="profit_loss", period_type="custom"))

        assert store.find_matching_period("profit_loss", JANUARY) is not None


class TestPersistence:
    def test_save_and_load_keeps_deleted(self, tmp_path):
        store = StatementStore()
        kept = store.insert(make_statement("BS-M202401-001", data={"assets": {"total_assets": 1.0}}))
        gone = store.insert(make_statement("BS-M202402-001", period=FEBRUARY))
        store.soft_delete(gone.statement_id)
        path = tmp_path / "statements.json"

        store.save(path)
        loaded = StatementStore.load(path)

        assert loaded.get(kept.statement_id).data == {"assets": {"total_assets": 1.0}}
        assert loaded.get(kept.statement_id).period_end == date(2024, 1, 31)
        assert loaded.get(gone.statement_id, include_deleted=True).deleted
        assert loaded.next_statement_number("balance_sheet", "monthly", FEBRUARY) \
            == "BS-M202402-002"

    def test_load_missing_file(self, tmp_path):
        assert StatementStore.load(tmp_path / "none.json").statements == {}

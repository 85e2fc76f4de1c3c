"""Tests for finstmt.errors."""

import pytest

from finstmt.errors import (
    CalcResult,
    ConflictError,
    FinstmtError,
    InputError,
    NotFoundError,
    attempt,
    fold_results,
)


class TestErrorTaxonomy:
    def test_all_errors_share_base(self):
        for cls in (InputError, NotFoundError, ConflictError):
            assert issubclass(cls, FinstmtError)

    def test_input_error_is_value_error(self):
        with pytest.raises(ValueError):
            raise InputError("bad date")

    def test_not_found_is_lookup_error(self):
        with pytest.raises(LookupError):
            raise NotFoundError("missing")


class TestAttempt:
    def test_success_carries_value(self):
        result = attempt("cash", lambda: {"total": 5.0}, {"total": 0.0})
        assert not result.has_error
        assert result.value == {"total": 5.0}

    def test_failure_returns_flagged_zero(self):
        def boom():
            raise RuntimeError("db down")

        result = attempt("inventory", boom, {"total": 0.0})

        assert result.has_error
        assert result.value == {"total": 0.0, "has_error": True}
        assert result.error.bucket == "inventory"
        assert result.error.message == "db down"
        assert result.error.error_type == "RuntimeError"

    def test_failure_with_scalar_zero(self):
        result = attempt("x", lambda: 1 / 0, 0.0)
        assert result.value == 0.0
        assert result.error.error_type == "ZeroDivisionError"


class TestFoldResults:
    def test_folds_values_and_errors_in_order(self):
        results = [
            CalcResult.ok("a", 1),
            CalcResult.failed("b", 0, RuntimeError("x")),
            CalcResult.ok("c", 3),
            CalcResult.failed("d", 0, KeyError("y")),
        ]

        values, errors = fold_results(results)

        assert values == {"a": 1, "b": 0, "c": 3, "d": 0}
        assert [e.bucket for e in errors] == ["b", "d"]

    def test_empty(self):
        assert fold_results([]) == ({}, [])

    def test_error_to_dict(self):
        result = CalcResult.failed("b", 0, RuntimeError("x"))
        assert result.error.to_dict() == {
            "bucket": "b",
            "message": "x",
            "error_type": "RuntimeError",
        }

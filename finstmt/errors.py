"""
Error taxonomy for FINSTMT.

Three exception classes abort an operation and are surfaced to the caller:
InputError, NotFoundError and ConflictError. Calculation failures inside a
statement bucket are never raised; they are captured as CalculationError
values inside a CalcResult and folded into the statement metadata.
"""

import logging
from dataclasses import dataclass
from functools import reduce
from typing import Any, Callable, Iterable, Optional

logger = logging.getLogger(__name__)


class FinstmtError(Exception):
    """Base class for all errors raised by the engine."""


class InputError(FinstmtError, ValueError):
    """Invalid date, period, or missing/invalid field."""


class NotFoundError(FinstmtError, LookupError):
    """Referenced statement or account does not exist."""


class ConflictError(FinstmtError):
    """
    Operation conflicts with existing state.

    Raised for duplicate statements in a period, mutation of a protected
    entity, and deletion of a non-draft statement.
    """


# ---------------------------------------------------------------------------
# Calculation results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CalculationError:
    """
    A contained failure of one statement bucket.

    Attributes:
        bucket: Name of the bucket that failed (e.g. "inventory").
        message: Error message from the underlying exception.
        error_type: Exception class name.
    """

    bucket: str
    message: str
    error_type: str = "Exception"

    def to_dict(self) -> dict:
        return {
            "bucket": self.bucket,
            "message": self.message,
            "error_type": self.error_type,
        }


@dataclass(frozen=True)
class CalcResult:
    """
    Either a computed value or a CalculationError.

    A failed result still carries a zeroed value so that downstream rollups
    can proceed; ``has_error`` tells a real zero apart from a failure.
    """

    bucket: str
    value: Any
    error: Optional[CalculationError] = None

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @classmethod
    def ok(cls, bucket: str, value: Any) -> "CalcResult":
        return cls(bucket=bucket, value=value)

    @classmethod
    def failed(cls, bucket: str, zero: Any, exc: Exception) -> "CalcResult":
        error = CalculationError(
            bucket=bucket,
            message=str(exc),
            error_type=type(exc).__name__,
        )
        if isinstance(zero, dict):
            zero = {**zero, "has_error": True}
        return cls(bucket=bucket, value=zero, error=error)


def attempt(bucket: str, fn: Callable[[], Any], zero: Any) -> CalcResult:
    """
    Run one bucket computation, containing any failure.

    Args:
        bucket: Bucket name used for reporting.
        fn: Zero-argument callable computing the bucket value.
        zero: Zeroed structure returned if fn raises.

    Returns:
        CalcResult holding either the value or the contained error.
    """
    try:
        return CalcResult.ok(bucket, fn())
    except Exception as e:
        logger.error(f"Calculation failed for bucket '{bucket}': {e}", exc_info=True)
        return CalcResult.failed(bucket, zero, e)


def fold_results(
    results: Iterable[CalcResult],
) -> tuple[dict[str, Any], list[CalculationError]]:
    """
    Compose bucket results into a value map and an error list.

    Args:
        results: CalcResult instances, one per bucket.

    Returns:
        Tuple of (values keyed by bucket name, list of CalculationErrors).
    """
    def step(acc, result: CalcResult):
        values, errors = acc
        values = {**values, result.bucket: result.value}
        if result.has_error:
            errors = errors + [result.error]
        return values, errors

    return reduce(step, results, ({}, []))

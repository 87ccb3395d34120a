from __future__ import annotations

"""
Exception types raised by the nutristream analysis core.

Each error is raised where the problem is detected and propagated to the
caller unchanged. They all derive from ValueError so callers that only care
about "bad input" can catch that, while the report layer can name the
offending column, criterion or leaf set from the attributes.
"""

from typing import Iterable, Sequence


class NutristreamError(Exception):
    """Base class for all nutristream errors."""


class DegenerateFeatureError(NutristreamError, ValueError):
    """A feature column has zero variance and cannot be standardized."""

    def __init__(self, column: str) -> None:
        self.column = column
        super().__init__(
            f"Column '{column}' has zero variance; it cannot be standardized"
        )


class InsufficientDataError(NutristreamError, ValueError):
    """Too few observations for the requested operation."""

    def __init__(self, n_rows: int, required: int, operation: str = "this operation") -> None:
        self.n_rows = n_rows
        self.required = required
        super().__init__(
            f"{operation} needs at least {required} rows but got {n_rows}"
        )


class InvalidCriterionError(NutristreamError, ValueError):
    """An unknown linkage criterion was requested."""

    def __init__(self, criterion: object, supported: Sequence[str]) -> None:
        self.criterion = criterion
        self.supported = tuple(supported)
        super().__init__(
            f"Unsupported linkage criterion {criterion!r}; "
            f"expected one of: {', '.join(self.supported)}"
        )


class LeafSetMismatchError(NutristreamError, ValueError):
    """Two merge trees do not cover the same set of leaves."""

    def __init__(self, only_in_first: Iterable, only_in_second: Iterable) -> None:
        self.only_in_first = sorted(map(str, only_in_first))
        self.only_in_second = sorted(map(str, only_in_second))
        super().__init__(
            "Trees have different leaf sets "
            f"(only in first: {self.only_in_first}, "
            f"only in second: {self.only_in_second})"
        )


class SchemaError(NutristreamError, ValueError):
    """An input table does not match its declared schema."""

    def __init__(self, table: str, missing: Iterable[str]) -> None:
        self.table = table
        self.missing = sorted(missing)
        super().__init__(
            f"Table '{table}' is missing required columns: {', '.join(self.missing)}"
        )

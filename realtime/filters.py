"""
Row filters for change feed subscriptions.

Filters use the backend's query-string syntax, restricted to simple equality:

    "source=eq.website"

Values are compared as text, the way the backend compares them.
"""

from dataclasses import dataclass
from typing import Any, Optional

from backoffice.errors import InvalidFilterError


def _as_text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class RowFilter:
    """An equality predicate on one column."""
    column: str
    value: str

    @classmethod
    def parse(cls, text: str) -> "RowFilter":
        """
        Parse a "column=eq.value" filter string.

        Raises:
            InvalidFilterError: If the string is not an equality predicate
        """
        column, sep, rest = text.partition("=")
        operator, dot, value = rest.partition(".")
        column = column.strip()
        if not sep or not dot or not column:
            raise InvalidFilterError(f"Malformed row filter: {text!r}")
        if operator != "eq":
            raise InvalidFilterError(f"Only 'eq' filters are supported, got {operator!r} in {text!r}")
        return cls(column=column, value=value)

    def matches(self, row: Optional[dict]) -> bool:
        if not row or self.column not in row:
            return False
        return _as_text(row[self.column]) == self.value

    def __str__(self) -> str:
        return f"{self.column}=eq.{self.value}"

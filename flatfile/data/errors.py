"""
Error taxonomy for flat-file import and export.

**Conceptual**: Two kinds of failure abort an operation and propagate to the
caller:
  - IOFailure: the path is missing, unreadable, or unwritable.
  - FormatFailure: the input is structurally malformed (ragged rows, broken
    quoting, undecodable bytes).

Cell-level coercion problems are *not* exceptions. Each one is recorded as a
CoercionWarning and returned alongside the parsed table, so a single bad
value never throws away an otherwise good file. CoercionFailure exists only
for callers that opt in to treating problems as fatal.
"""

from dataclasses import dataclass


class FlatFileError(Exception):
    """Base class for every error raised by flatfile."""
    pass


class IOFailure(FlatFileError, OSError):
    """
    Raised when a source cannot be opened/read or a destination cannot be written.

    Subclasses OSError so callers that already handle filesystem errors keep
    working.
    """
    pass


class FormatFailure(FlatFileError, ValueError):
    """
    Raised when delimited or fixed-width input is structurally malformed.

    The message names the source and, where known, the 1-based line number of
    the offending record.
    """
    pass


class CoercionFailure(FlatFileError):
    """Raised by ReadResult.raise_for_problems() when any cell failed to parse."""
    pass


@dataclass(frozen=True)
class CoercionWarning:
    """
    One cell that could not be converted to its column's type.

    Attributes:
        row: 1-based data row number (the header is not counted).
        column: Column name as it appears in the source.
        expected: Human-readable description of the expected value
                  (e.g., "an integer", "a date like %Y-%m-%d").
        actual: The raw field text that failed to parse.
    """
    row: int
    column: str
    expected: str
    actual: str

    def __str__(self) -> str:
        return (
            f"row {self.row}, column '{self.column}': "
            f"expected {self.expected}, got '{self.actual}'"
        )

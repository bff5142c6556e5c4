"""
Fixed-width file reader.

**Conceptual**: A fixed-width file has no delimiter; each column occupies the
same character positions on every line. The reader therefore needs column
positions instead of a delimiter:
  - `fwf_widths([3, 5, 2])`: consecutive widths.
  - `fwf_positions([0, 5], [3, None])`: explicit 0-based, end-exclusive
    extents (None runs to the end of the line).
  - `fwf_empty(...)` / `col_positions=None`: guess the extents from character
    positions that are blank on every sampled line.

Once the fields are sliced out, the same NA sentinel and coercion pipeline as
the delimited readers applies.
"""

import io
import logging
from dataclasses import dataclass
from typing import Collection, Sequence

import pandas as pd

from flatfile.data.errors import FormatFailure, IOFailure
from flatfile.data.io import ReadResult, Source, _build_result, _describe_source, _open_source
from flatfile.data.parsers import DEFAULT_GUESS_MAX, DEFAULT_NA

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FwfPositions:
    """
    Column extents for a fixed-width file.

    Attributes:
        colspecs: (start, end) pairs, 0-based and end-exclusive; end may be
                  None for "to the end of the line".
        col_names: Column names, or None for X1..Xn.
    """
    colspecs: tuple[tuple[int, int | None], ...]
    col_names: tuple[str, ...] | None = None

    def __post_init__(self):
        object.__setattr__(self, "colspecs", tuple(tuple(spec) for spec in self.colspecs))
        if self.col_names is not None:
            object.__setattr__(self, "col_names", tuple(self.col_names))
            if len(self.col_names) != len(self.colspecs):
                raise ValueError(
                    f"Got {len(self.col_names)} column names for "
                    f"{len(self.colspecs)} column positions."
                )
        for start, end in self.colspecs:
            if start < 0 or (end is not None and end <= start):
                raise ValueError(f"Invalid column extent: ({start}, {end}).")

    def names(self) -> list[str]:
        if self.col_names is not None:
            return list(self.col_names)
        return [f"X{i}" for i in range(1, len(self.colspecs) + 1)]


def fwf_widths(widths: Sequence[int], col_names: Sequence[str] | None = None) -> FwfPositions:
    """
    Column positions from consecutive field widths.

    Example:
        >>> fwf_widths([3, 2]).colspecs
        ((0, 3), (3, 5))
    """
    colspecs = []
    start = 0
    for width in widths:
        colspecs.append((start, start + width))
        start += width
    return FwfPositions(tuple(colspecs), col_names)


def fwf_positions(
    starts: Sequence[int],
    ends: Sequence[int | None],
    col_names: Sequence[str] | None = None,
) -> FwfPositions:
    """Column positions from 0-based start offsets and end-exclusive end offsets."""
    if len(starts) != len(ends):
        raise ValueError(f"Got {len(starts)} starts but {len(ends)} ends.")
    return FwfPositions(tuple(zip(starts, ends)), col_names)


def _guess_positions(lines: Sequence[str], col_names: Sequence[str] | None = None) -> FwfPositions:
    """Split on character positions that are blank on every line."""
    width = max((len(line) for line in lines), default=0)
    occupied = [False] * width
    for line in lines:
        for position, char in enumerate(line):
            if not char.isspace():
                occupied[position] = True

    colspecs = []
    start = None
    for position, filled in enumerate(occupied):
        if filled and start is None:
            start = position
        elif not filled and start is not None:
            colspecs.append((start, position))
            start = None
    if start is not None:
        colspecs.append((start, None))
    elif colspecs:
        # Trailing fields may be shorter on some lines; let the last run to the end
        colspecs[-1] = (colspecs[-1][0], None)

    return FwfPositions(tuple(colspecs), col_names)


def _sample_lines(text: str, skip: int, comment: str | None, n: int) -> list[str]:
    lines = text.splitlines()[skip:]
    lines = [line for line in lines if line.strip()]
    if comment:
        lines = [line for line in lines if not line.startswith(comment)]
    return lines[:n]


def _read_text(source: Source, encoding: str, context: str) -> str:
    """
    Read a whole source as text.

    Raises:
        IOFailure: If the source cannot be opened or read.
        FormatFailure: If the bytes are not valid text in `encoding`.
    """
    with _open_source(source, encoding=encoding) as handle:
        try:
            return handle.read()
        except UnicodeDecodeError as e:
            raise FormatFailure(
                f"{context}: input is not valid text in the requested encoding. Error: {e}"
            ) from e
        except OSError as e:
            raise IOFailure(f"{context}: Failed to read file. Error: {e}") from e


def fwf_empty(
    source: Source,
    skip: int = 0,
    col_names: Sequence[str] | None = None,
    comment: str | None = None,
    n: int = 100,
    encoding: str = "utf-8",
) -> FwfPositions:
    """
    Guess column positions from blank character columns in the first `n` lines.

    Raises:
        IOFailure: If the source cannot be opened or read.
        FormatFailure: If the source is not valid text in `encoding`.
    """
    text = _read_text(source, encoding, _describe_source(source))
    return _guess_positions(_sample_lines(text, skip, comment, n), col_names)


def read_fwf(
    source: Source,
    col_positions: FwfPositions | None = None,
    *,
    col_types=None,
    na: Collection[str] = DEFAULT_NA,
    skip: int = 0,
    n_max: int | None = None,
    comment: str | None = None,
    guess_max: int = DEFAULT_GUESS_MAX,
    encoding: str = "utf-8",
) -> ReadResult:
    """
    Read a fixed-width text file into a typed DataFrame.

    **Functionally**:
      - Slices each line into fields at `col_positions` (guessed from blank
        character columns when None).
      - Trims whitespace from every field.
      - Applies NA sentinels and `col_types` exactly like `read_delim`.

    Args:
        source: Path to the file, or an open text stream.
        col_positions: From `fwf_widths`, `fwf_positions`, or `fwf_empty`.
        col_types: Same shapes as `read_delim`.
        na: Literal strings that mean "missing".
        skip: Lines to discard before reading.
        n_max: Maximum number of rows to read.
        comment: Single comment character; text after it on a line is ignored.
        guess_max: Rows sampled for type inference.
        encoding: Text encoding of the file.

    Returns:
        ReadResult with the table, resolved column types, and problems.

    Raises:
        IOFailure: If the file cannot be found, opened, or read.
        FormatFailure: If the file is not valid text in `encoding`, or
                       `col_types` does not match the number of columns.
    """
    context = _describe_source(source)
    text = _read_text(source, encoding, context)

    if col_positions is None:
        col_positions = _guess_positions(_sample_lines(text, skip, comment, 100))
        logger.debug("%s: guessed fixed-width extents %s", context, col_positions.colspecs)

    names = col_positions.names()
    if not names or not text.strip():
        raw = pd.DataFrame({name: pd.Series(dtype=object) for name in names})
    else:
        raw = pd.read_fwf(
            io.StringIO(text),
            colspecs=list(col_positions.colspecs),
            names=names,
            header=None,
            dtype=str,
            keep_default_na=False,
            na_filter=False,
            skiprows=skip,
            nrows=n_max,
            comment=comment,
            skip_blank_lines=True,
        ).astype(object)

    return _build_result(
        raw,
        col_types,
        context=context,
        na=na,
        trim_ws=True,
        guess_max=guess_max,
    )

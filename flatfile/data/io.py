"""
Delimited-text readers and writers.

**Conceptual**: This module is the I/O boundary of flatfile. A read is:
  1. Open the source (scoped: the handle is closed on every exit path).
  2. Tokenize records with the standard CSV quoting rules and check that
     every record has the same number of fields.
  3. Resolve column names and the column type specification.
  4. Hand the raw string table to `parsers.convert_table` for NA sentinel
     replacement, type inference, and coercion.
  5. Return a ReadResult: the typed table, the resolved column types, and the
     list of cells that failed to parse.

A write formats dates, date-times and booleans into their canonical text
forms, renders every cell to text with pandas, and quotes only the fields
that need it. Carriage returns and newlines inside a field are always quoted,
whatever the line terminator, so every written file reads back unchanged.

**Error model**:
  - IOFailure: path missing, unreadable, or unwritable. Aborts.
  - FormatFailure: ragged rows, broken quoting, undecodable bytes. Aborts.
  - CoercionWarning: per-cell, collected in ReadResult.problems. Never aborts.

**Teaching note**: Readers never use pandas' own type guessing. pandas would
silently turn "." into a string column or "007" into 7; tokenizing to strings
first and converting column by column keeps every conversion explicit and
every failure reportable.
"""

import csv
import logging
import re
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Collection, Iterator, Sequence, TextIO, Union

import pandas as pd

from flatfile.data.errors import (
    CoercionFailure,
    CoercionWarning,
    FormatFailure,
    IOFailure,
)
from flatfile.data.parsers import DEFAULT_GUESS_MAX, DEFAULT_NA, convert_table
from flatfile.data.schemas import ColumnSpec, resolve_column_specs

logger = logging.getLogger(__name__)

Source = Union[str, Path, TextIO]

QUOTE_MODES = ("needed", "all")
QUOTE_CHAR = '"'


@dataclass
class ReadResult:
    """
    Outcome of a read: the parsed table plus everything needed to audit it.

    Attributes:
        table: Parsed DataFrame (skip columns removed, source row order).
        col_types: Resolved ColumnSpec per source column, in source order.
                   Skip columns are included so the specification can be
                   passed straight back as `col_types` for the next file.
        problems: Cells that failed coercion and were set to missing.
        source: Description of where the data came from.
    """
    table: pd.DataFrame
    col_types: dict[str, ColumnSpec] = field(default_factory=dict)
    problems: list[CoercionWarning] = field(default_factory=list)
    source: str = "<data>"

    def problems_frame(self) -> pd.DataFrame:
        """Problems as a DataFrame with columns row, col, expected, actual."""
        records = [asdict(problem) for problem in self.problems]
        frame = pd.DataFrame(records, columns=["row", "column", "expected", "actual"])
        return frame.rename(columns={"column": "col"})

    def raise_for_problems(self) -> None:
        """
        Raise CoercionFailure if any cell failed to parse.

        Raises:
            CoercionFailure: Message lists the first five problems.
        """
        if not self.problems:
            return
        shown = "; ".join(str(problem) for problem in self.problems[:5])
        raise CoercionFailure(
            f"{self.source}: {len(self.problems)} parsing problem(s) "
            f"(showing first 5): {shown}"
        )


def _describe_source(source: Source) -> str:
    if isinstance(source, (str, Path)):
        return str(source)
    return str(getattr(source, "name", "<stream>"))


def _check_delimiter(delim: str, quote: str = '"') -> None:
    if not isinstance(delim, str) or len(delim) != 1:
        raise ValueError(f"Delimiter must be a single character, got: {delim!r}")
    if delim in (quote, "\n", "\r"):
        raise ValueError(f"Delimiter cannot be a quote or newline character, got: {delim!r}")


@contextmanager
def _open_source(source: Source, encoding: str = "utf-8") -> Iterator[TextIO]:
    """
    Open a path for reading, or pass an already-open text stream through.

    Paths are closed when the block exits, whatever the outcome. Streams are
    left open; they belong to the caller. A UTF-8 byte-order mark is dropped.

    Raises:
        IOFailure: If the path does not exist, is a directory, or cannot be opened.
    """
    if not isinstance(source, (str, Path)):
        yield source
        return

    path = Path(source)
    if not path.exists():
        raise IOFailure(
            f"File not found: {path}. "
            f"Ensure the file exists and the path is correct."
        )
    if path.is_dir():
        raise IOFailure(f"{path}: Expected a file but found a directory.")

    if encoding.lower().replace("_", "-") in ("utf-8", "utf8"):
        encoding = "utf-8-sig"
    try:
        handle = open(path, "r", encoding=encoding, newline="")
    except OSError as e:
        raise IOFailure(f"{path}: Failed to open file. Error: {e}") from e

    with handle:
        yield handle


def _tokenize(
    handle: TextIO,
    delim: str,
    quote: str,
    has_header: bool,
    expected_width: int | None,
    skip: int,
    comment: str | None,
    skip_empty_rows: bool,
    n_max: int | None,
    context: str,
) -> tuple[list[str] | None, list[list[str]]]:
    """
    Split a text stream into a header record and data records.

    Every data record must have the same number of fields as the header (or,
    without a header, as `expected_width` or the first record).

    Raises:
        FormatFailure: On a ragged record, malformed quoting, or a decode error.
    """
    lines = iter(handle)
    for _ in range(skip):
        if next(lines, None) is None:
            break

    reader = csv.reader(lines, delimiter=delim, quotechar=quote, doublequote=True, strict=True)
    header: list[str] | None = None
    records: list[list[str]] = []
    width = expected_width

    try:
        for record in reader:
            line = reader.line_num + skip
            if not record:
                if skip_empty_rows:
                    continue
                record = [""] * (width or 1)
            # Whole-line comments only; a comment marker mid-line is data
            if comment and record[0].startswith(comment):
                continue

            if has_header and header is None:
                header = record
                width = len(record)
                continue

            if width is None:
                width = len(record)
            if len(record) != width:
                raise FormatFailure(
                    f"{context}: line {line}: expected {width} fields but found {len(record)}. "
                    f"Every row must have the same number of fields as the header."
                )

            records.append(record)
            if n_max is not None and len(records) >= n_max:
                break
    except csv.Error as e:
        raise FormatFailure(
            f"{context}: line {reader.line_num + skip}: malformed record. Error: {e}"
        ) from e
    except UnicodeDecodeError as e:
        raise FormatFailure(
            f"{context}: input is not valid text in the requested encoding. Error: {e}"
        ) from e
    except OSError as e:
        raise IOFailure(f"{context}: Failed to read file. Error: {e}") from e

    return header, records


def make_unique_names(names: Sequence[str]) -> list[str]:
    """
    Repair header names: blanks become "X<position>", duplicates get "...<position>".

    Names that were already unique are kept as they are. A repaired name that
    would collide with one of them gets a further "_2", "_3", ... suffix.

    Example:
        >>> make_unique_names(["a", "", "a"])
        ['a...1', 'X2', 'a...3']
        >>> make_unique_names(["a", "a", "a...1"])
        ['a...1_2', 'a...2', 'a...1']
    """
    filled = [name if name else f"X{i}" for i, name in enumerate(names, start=1)]
    counts: dict[str, int] = {}
    for name in filled:
        counts[name] = counts.get(name, 0) + 1

    taken = {name for name in filled if counts[name] == 1}
    unique = []
    for i, name in enumerate(filled, start=1):
        if counts[name] == 1:
            unique.append(name)
            continue
        candidate = f"{name}...{i}"
        suffix = 2
        while candidate in taken:
            candidate = f"{name}...{i}_{suffix}"
            suffix += 1
        taken.add(candidate)
        unique.append(candidate)
    return unique


def _build_result(
    raw: pd.DataFrame,
    col_types,
    context: str,
    na: Collection[str],
    trim_ws: bool,
    guess_max: int,
    decimal_mark: str = ".",
    grouping_mark: str = ",",
) -> ReadResult:
    """Resolve the column specification and convert a raw string table."""
    if guess_max < 1:
        raise ValueError(f"guess_max must be >= 1, got: {guess_max}")

    names = list(raw.columns)
    specs, unmatched = resolve_column_specs(names, col_types, context=context)
    if unmatched:
        logger.warning(
            "%s: column types given for unknown columns %s; available columns: %s",
            context,
            unmatched,
            names,
        )

    table, resolved, problems = convert_table(
        raw,
        specs,
        na=na,
        trim_ws=trim_ws,
        guess_max=guess_max,
        decimal_mark=decimal_mark,
        grouping_mark=grouping_mark,
    )

    logger.debug(
        "%s: read %d rows x %d columns (%s)",
        context,
        len(table),
        table.shape[1],
        ", ".join(f"{name}={spec.type.value}" for name, spec in zip(names, resolved)),
    )
    if problems:
        logger.warning(
            "%s: %d parsing problem(s); affected cells were set to missing",
            context,
            len(problems),
        )
        for problem in problems:
            logger.debug("%s: %s", context, problem)

    return ReadResult(
        table=table,
        col_types=dict(zip(names, resolved)),
        problems=problems,
        source=context,
    )


def read_delim(
    source: Source,
    delim: str,
    *,
    col_names: bool | Sequence[str] = True,
    col_types=None,
    na: Collection[str] = DEFAULT_NA,
    trim_ws: bool = True,
    skip: int = 0,
    n_max: int | None = None,
    comment: str | None = None,
    guess_max: int = DEFAULT_GUESS_MAX,
    skip_empty_rows: bool = True,
    decimal_mark: str = ".",
    grouping_mark: str = ",",
    encoding: str = "utf-8",
    quote: str = '"',
) -> ReadResult:
    """
    Read a delimited text file into a typed DataFrame.

    **Functionally**:
      - Tokenizes the source with `delim` and standard quoting (quoted fields
        may contain the delimiter, doubled quotes, and newlines).
      - Uses the first record as the header when `col_names` is True.
      - Replaces NA sentinels with missing values, then converts each column
        according to `col_types` (unnamed columns are inferred from the first
        `guess_max` rows).
      - Drops columns whose type is skip.
      - Collects cells that fail to parse instead of raising.

    Args:
        source: Path to the file, or an open text stream.
        delim: Single-character field delimiter.
        col_names: True to read names from the first record; False to name
                   columns X1..Xn; or an explicit list of names (the file
                   then has no header row).
        col_types: None (infer all), a mapping of name -> type, a `cols(...)`
                   object, a compact string like "cid_", or a list of types.
        na: Literal strings that mean "missing" (default: "" and "NA").
        trim_ws: Strip whitespace around fields and header names.
        skip: Number of lines to discard before reading anything.
        n_max: Maximum number of data rows to read.
        comment: Lines whose first field starts with this string are ignored.
        guess_max: Number of leading rows sampled for type inference.
        skip_empty_rows: Ignore blank lines instead of reading missing rows.
        decimal_mark: Decimal separator for double and number columns.
        grouping_mark: Thousands separator removed by number columns.
        encoding: Text encoding of the file.
        quote: Quote character.

    Returns:
        ReadResult with the table, resolved column types, and problems.

    Raises:
        IOFailure: If the file cannot be found, opened, or read.
        FormatFailure: If a row has a different number of fields than the
                       header, quoting is malformed, or `col_types`/`col_names`
                       do not match the number of columns.
        ValueError: If an option is invalid (e.g., multi-character delimiter).

    Example:
        >>> result = read_delim(path, ",", na=["."])   # file: a,b\\n1,.\\n2,3\\n
        >>> result.table
           a     b
        0  1  <NA>
        1  2     3
    """
    _check_delimiter(delim, quote)
    context = _describe_source(source)

    has_header = col_names is True
    explicit_names = None if isinstance(col_names, bool) else [str(name) for name in col_names]

    with _open_source(source, encoding=encoding) as handle:
        header, records = _tokenize(
            handle,
            delim=delim,
            quote=quote,
            has_header=has_header,
            expected_width=len(explicit_names) if explicit_names is not None else None,
            skip=skip,
            comment=comment,
            skip_empty_rows=skip_empty_rows,
            n_max=n_max,
            context=context,
        )

    if header is not None:
        names = [name.strip() for name in header] if trim_ws else list(header)
    elif explicit_names is not None:
        names = explicit_names
    else:
        width = len(records[0]) if records else 0
        names = [f"X{i}" for i in range(1, width + 1)]
    names = make_unique_names(names)

    raw = pd.DataFrame(records, columns=names, dtype=object)
    return _build_result(
        raw,
        col_types,
        context=context,
        na=na,
        trim_ws=trim_ws,
        guess_max=guess_max,
        decimal_mark=decimal_mark,
        grouping_mark=grouping_mark,
    )


def read_csv(source: Source, **kwargs) -> ReadResult:
    """Read a comma-delimited file. Accepts every keyword of `read_delim`."""
    return read_delim(source, ",", **kwargs)


def read_csv2(source: Source, **kwargs) -> ReadResult:
    """
    Read a semicolon-delimited file with comma decimal marks ("1.234,5").

    Common in locales where the comma is the decimal separator.
    """
    kwargs.setdefault("decimal_mark", ",")
    kwargs.setdefault("grouping_mark", ".")
    return read_delim(source, ";", **kwargs)


def read_tsv(source: Source, **kwargs) -> ReadResult:
    """Read a tab-delimited file. Accepts every keyword of `read_delim`."""
    return read_delim(source, "\t", **kwargs)


def type_convert(
    df: pd.DataFrame,
    col_types=None,
    na: Collection[str] = DEFAULT_NA,
    trim_ws: bool = True,
    guess_max: int = DEFAULT_GUESS_MAX,
) -> ReadResult:
    """
    Re-parse the text columns of an existing DataFrame.

    **Conceptual**: Useful when data arrives as all-text (e.g., read with
    `col_types="c" * n`, or built by hand) and should get the same NA
    handling and type conversion as a file read. Non-text columns are passed
    through untouched and keep their position.

    Args:
        df: Input DataFrame (not modified).
        col_types: Same shapes as `read_delim`; only text columns are affected.
        na, trim_ws, guess_max: Same as `read_delim`.

    Returns:
        ReadResult whose table has the converted columns.
    """
    text_columns = [
        name
        for name in df.columns
        if pd.api.types.is_string_dtype(df[name]) or pd.api.types.is_object_dtype(df[name])
    ]
    text_columns = [
        name for name in text_columns
        if df[name].dropna().map(lambda v: isinstance(v, str)).all()
    ]

    specs, _ = resolve_column_specs(list(df.columns), col_types, context="type_convert")
    spec_by_name = dict(zip(df.columns, specs))

    raw = df[text_columns].reset_index(drop=True).astype(object)
    converted = _build_result(
        raw,
        [spec_by_name[name] for name in text_columns],
        context="type_convert",
        na=na,
        trim_ws=trim_ws,
        guess_max=guess_max,
    )

    columns = {}
    for name in df.columns:
        if name not in text_columns:
            columns[name] = df[name].reset_index(drop=True)
        elif name in converted.table.columns:
            columns[name] = converted.table[name]
    converted.table = pd.DataFrame(columns, index=pd.RangeIndex(len(df)))
    return converted


def _format_for_output(df: pd.DataFrame) -> pd.DataFrame:
    """
    Convert dates, date-times, and booleans to their canonical text forms.

    **Canonical forms on disk**:
      - Date columns (every value at midnight): "YYYY-MM-DD".
      - Date-time columns: "YYYY-MM-DD HH:MM:SS" (with ".ffffff" when any
        value has fractional seconds). Time zones are converted to UTC.
      - Booleans: "TRUE" / "FALSE".
    Missing values stay missing so the writer renders them with `na`.
    """
    formatted = df.copy()
    for name in formatted.columns:
        column = formatted[name]
        if pd.api.types.is_datetime64_any_dtype(column):
            if getattr(column.dt, "tz", None) is not None:
                column = column.dt.tz_convert("UTC").dt.tz_localize(None)
            present = column.dropna()
            if (present == present.dt.normalize()).all():
                fmt = "%Y-%m-%d"
            elif (present.dt.microsecond != 0).any():
                fmt = "%Y-%m-%d %H:%M:%S.%f"
            else:
                fmt = "%Y-%m-%d %H:%M:%S"
            formatted[name] = column.dt.strftime(fmt)
        elif pd.api.types.is_bool_dtype(column):
            formatted[name] = column.astype(object).map({True: "TRUE", False: "FALSE"})
    return formatted


def _render_field_text(column: pd.Series, na: str) -> pd.Series:
    """Text of every cell in a formatted column, with missing cells as `na`."""
    missing = column.isna().to_numpy(dtype=bool)
    text = column.astype(object).map(str)
    text[missing] = na
    return text


def _quote_fields(text: pd.Series, delim: str, quote_all: bool) -> pd.Series:
    """
    Quote fields that contain the delimiter, a quote, "\\r" or "\\n".

    Embedded quotes are doubled. Carriage returns and newlines are always
    quoted, whatever line terminator the file uses, so they can never be
    mistaken for a record break on re-read.
    """
    quoted = QUOTE_CHAR + text.str.replace(QUOTE_CHAR, QUOTE_CHAR * 2, regex=False) + QUOTE_CHAR
    if quote_all:
        return quoted
    special = f"[{re.escape(delim + QUOTE_CHAR)}\r\n]"
    needs_quotes = text.str.contains(special, regex=True).to_numpy(dtype=bool)
    return quoted.where(needs_quotes, text)


def write_delim(
    df: pd.DataFrame,
    path: Path | str,
    delim: str = ",",
    *,
    na: str = "",
    append: bool = False,
    col_names: bool | None = None,
    quote: str = "needed",
    eol: str = "\n",
    encoding: str = "utf-8",
) -> None:
    """
    Write a DataFrame to a delimited text file.

    **Functionally**:
      - Writes columns in DataFrame order and rows in DataFrame order.
      - Quotes a field only when it contains the delimiter, a quote, a
        carriage return or a newline (`quote="needed"`); embedded quotes are
        doubled. `quote="all"`
        quotes every field.
      - Writes missing values as `na` (an empty field by default).
      - Creates the parent directory if it doesn't exist.

    Args:
        df: Table to write. The index is not written.
        path: Destination file.
        delim: Single-character field delimiter.
        na: Text written for missing values.
        append: Append rows to an existing file instead of overwriting it.
        col_names: Write the header row. Defaults to True, or False when appending.
        quote: "needed" or "all".
        eol: Line terminator.
        encoding: Output encoding.

    Raises:
        IOFailure: If the destination cannot be written.
        ValueError: If `delim` or `quote` is invalid.
    """
    _check_delimiter(delim)
    if quote not in QUOTE_MODES:
        raise ValueError(f"quote must be one of {list(QUOTE_MODES)}, got: {quote!r}")

    path = Path(path)
    context = str(path)
    header = (not append) if col_names is None else col_names
    quote_all = quote == "all"
    df_to_write = _format_for_output(df)

    fields = [
        _quote_fields(_render_field_text(df_to_write.iloc[:, i], na), delim, quote_all)
        for i in range(df_to_write.shape[1])
    ]
    lines = [delim.join(row) for row in zip(*fields)] if fields else []
    if header and fields:
        names = pd.Series([str(name) for name in df_to_write.columns], dtype=object)
        lines.insert(0, delim.join(_quote_fields(names, delim, quote_all)))

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # newline="" so `eol` is written exactly as given
        with open(path, "a" if append else "w", encoding=encoding, newline="") as handle:
            handle.write("".join(line + eol for line in lines))
    except OSError as e:
        raise IOFailure(f"{context}: Failed to write file. Error: {e}") from e

    logger.debug("%s: wrote %d rows x %d columns", context, len(df), df.shape[1])


def write_csv(df: pd.DataFrame, path: Path | str, **kwargs) -> None:
    """Write a comma-delimited file. Accepts every keyword of `write_delim`."""
    write_delim(df, path, ",", **kwargs)


def write_tsv(df: pd.DataFrame, path: Path | str, **kwargs) -> None:
    """Write a tab-delimited file. Accepts every keyword of `write_delim`."""
    write_delim(df, path, "\t", **kwargs)

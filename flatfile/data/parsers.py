"""
Cell-level parsing: NA sentinels, type inference, and type coercion.

**Conceptual**: Readers tokenize a file into a table of raw strings. This
module turns that raw table into a typed one:
  1. `apply_na` trims whitespace and replaces NA sentinels with missing.
  2. `guess_column_spec` resolves INFER columns from a bounded sample.
  3. `coerce_column` converts one column to its declared type and reports
     which cells failed.
  4. `convert_table` runs the whole pipeline over every column and collects
     CoercionWarning records.

**Invariant**: a field equal to an NA sentinel is missing before any parser
sees it, so sentinels never produce coercion warnings. Any other field that
does not parse becomes missing and produces exactly one warning.

**Teaching note**: Every coercer returns `(values, failed)` where `failed` is
a boolean mask aligned with the input. Keeping the mask separate from the
values is what lets a column legitimately contain NaN (e.g., a literal "NaN"
in a double column) without reporting it as a problem.
"""

import logging
import re
from typing import Collection, Sequence

import numpy as np
import pandas as pd

from flatfile.data.errors import CoercionWarning
from flatfile.data.schemas import DEFAULT_DATE_FORMAT, ColumnSpec, ColumnType

logger = logging.getLogger(__name__)

DEFAULT_NA = ("", "NA")
DEFAULT_GUESS_MAX = 1000

INTEGER_PATTERN = r"[-+]?\d+"
SPECIAL_DOUBLE_PATTERN = r"[-+]?(?:Inf|inf|INF)|NaN|nan"

BOOLEAN_VALUES = {
    "TRUE": True, "True": True, "true": True, "T": True, "1": True,
    "FALSE": False, "False": False, "false": False, "F": False, "0": False,
}
# Inference only recognises the spelled-out forms so 0/1 columns stay integer
BOOLEAN_WORDS = ("TRUE", "True", "true", "FALSE", "False", "false")

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


def _decimal_pattern(decimal_mark: str) -> str:
    dm = re.escape(decimal_mark)
    return rf"(?:\d+(?:{dm}\d*)?|{dm}\d+)(?:[eE][-+]?\d+)?"


def _double_pattern(decimal_mark: str) -> str:
    return rf"[-+]?{_decimal_pattern(decimal_mark)}|{SPECIAL_DOUBLE_PATTERN}"


def _fullmatch(raw: pd.Series, pattern: str) -> pd.Series:
    """Boolean mask of cells that fully match `pattern` (missing cells are False)."""
    return raw.str.fullmatch(pattern).fillna(False).astype(bool)


def _cells(raw: pd.Series) -> pd.Series:
    """Object Series of the raw cells with missing values as None."""
    return pd.Series(
        [v if isinstance(v, str) else None for v in raw.astype(object)],
        index=raw.index,
        dtype=object,
    )


def apply_na(
    raw: pd.Series,
    na: Collection[str] = DEFAULT_NA,
    trim_ws: bool = True,
) -> pd.Series:
    """
    Trim fields and replace NA sentinels with missing values.

    Args:
        raw: Raw field values (str or None).
        na: Literal strings that mean "missing".
        trim_ws: Strip leading/trailing whitespace before matching sentinels.

    Returns:
        Series with pandas "string" dtype; sentinels and absent fields are <NA>.

    Example:
        >>> apply_na(pd.Series(["1", ".", " 3 "]), na=["."]).tolist()
        ['1', <NA>, '3']
    """
    text = raw.astype("string")
    if trim_ws:
        text = text.str.strip()
    return text.mask(text.isin(list(na)))


def guess_column_spec(
    raw: pd.Series,
    guess_max: int = DEFAULT_GUESS_MAX,
    decimal_mark: str = ".",
) -> ColumnSpec:
    """
    Infer the narrowest type that parses every sampled value.

    **Sampling policy**: only the first `guess_max` rows are examined. Missing
    cells in the sample are ignored; a sample with no values infers TEXT.
    Candidates are tried narrowest first: BOOLEAN < INTEGER < DOUBLE < TEXT.
    Dates and date-times are never inferred.

    Args:
        raw: Column after `apply_na` ("string" dtype).
        guess_max: Number of leading rows to sample.
        decimal_mark: Decimal separator for DOUBLE candidates.

    Returns:
        A ColumnSpec with a concrete type.
    """
    sample = raw.iloc[:guess_max].dropna()
    if sample.empty:
        return ColumnSpec(ColumnType.TEXT)

    if sample.isin(BOOLEAN_WORDS).all():
        return ColumnSpec(ColumnType.BOOLEAN)
    if _fullmatch(sample, INTEGER_PATTERN).all() and all(
        _parse_integer(v) is not None for v in sample
    ):
        return ColumnSpec(ColumnType.INTEGER)
    if _fullmatch(sample, _double_pattern(decimal_mark)).all():
        return ColumnSpec(ColumnType.DOUBLE)
    return ColumnSpec(ColumnType.TEXT)


def parse_number(
    text: str,
    decimal_mark: str = ".",
    grouping_mark: str = ",",
) -> float | None:
    """
    Parse a number embedded in surrounding symbols.

    Grouping marks are removed, then the first number in the text is taken and
    any leading/trailing characters (currency symbols, percent signs, units)
    are ignored. A "-" in front of a leading currency symbol keeps the sign.

    Returns:
        The parsed float, or None if the text contains no number.

    Example:
        >>> parse_number("$1,234.50")
        1234.5
        >>> parse_number("45%")
        45.0
        >>> parse_number("-$12")
        -12.0
    """
    cleaned = text.replace(grouping_mark, "") if grouping_mark else text
    match = re.search(rf"[-+]?{_decimal_pattern(decimal_mark)}", cleaned)
    if match is None:
        return None

    token = match.group(0)
    value = float(token.replace(decimal_mark, ".") if decimal_mark != "." else token)
    # "-$12": the sign sits in front of the currency symbol
    if token[0] not in "+-" and re.search(r"-[^\w-]*$", cleaned[:match.start()]):
        value = -value
    return value


def _parse_integer(text: str) -> int | None:
    value = int(text)
    if value < INT64_MIN or value > INT64_MAX:
        return None
    return value


def coerce_column(
    raw: pd.Series,
    spec: ColumnSpec,
    decimal_mark: str = ".",
    grouping_mark: str = ",",
) -> tuple[pd.Series, pd.Series]:
    """
    Convert one raw column to the type declared by `spec`.

    Args:
        raw: Column after `apply_na` ("string" dtype, missing as <NA>).
        spec: Concrete column spec (not INFER or SKIP).
        decimal_mark: Decimal separator for DOUBLE and NUMBER columns.
        grouping_mark: Thousands separator removed by NUMBER columns.

    Returns:
        (values, failed): the typed column and a boolean mask of cells that
        were present but could not be parsed (those cells are missing in
        `values`).

    Raises:
        ValueError: If `spec` is INFER or SKIP.
    """
    present = raw.notna()
    cells = _cells(raw)
    column_type = spec.type

    if column_type is ColumnType.TEXT:
        return raw.copy(), pd.Series(False, index=raw.index)

    if column_type is ColumnType.INTEGER:
        ok = _fullmatch(raw, INTEGER_PATTERN)
        parsed = [_parse_integer(v) if flag else None for v, flag in zip(cells, ok)]
        values = pd.Series(pd.array(parsed, dtype="Int64"), index=raw.index)
        return values, present & values.isna()

    if column_type is ColumnType.DOUBLE:
        # Match before normalizing: with a "," decimal mark, "1.234" is not a double
        ok = _fullmatch(raw, _double_pattern(decimal_mark))
        normalized = raw.str.replace(decimal_mark, ".", regex=False) if decimal_mark != "." else raw
        parsed = [
            float(v) if flag else np.nan
            for v, flag in zip(normalized.astype(object), ok)
        ]
        return pd.Series(parsed, index=raw.index, dtype="float64"), present & ~ok

    if column_type is ColumnType.NUMBER:
        parsed = [
            parse_number(v, decimal_mark, grouping_mark) if v is not None else None
            for v in cells
        ]
        values = pd.Series(
            [np.nan if v is None else v for v in parsed],
            index=raw.index,
            dtype="float64",
        )
        failed = pd.Series([v is None for v in parsed], index=raw.index) & present
        return values, failed

    if column_type is ColumnType.BOOLEAN:
        parsed = [BOOLEAN_VALUES.get(v) if v is not None else None for v in cells]
        values = pd.Series(pd.array(parsed, dtype="boolean"), index=raw.index)
        return values, present & values.isna()

    if column_type is ColumnType.DATE:
        values = pd.to_datetime(
            cells,
            format=spec.format or DEFAULT_DATE_FORMAT,
            errors="coerce",
        )
        return values, present & values.isna()

    if column_type is ColumnType.DATETIME:
        # Offsets are converted to UTC; naive values are taken as UTC already
        values = pd.to_datetime(
            cells,
            format=spec.format or "ISO8601",
            errors="coerce",
            utc=True,
        ).dt.tz_localize(None)
        return values, present & values.isna()

    if column_type is ColumnType.CATEGORICAL:
        if spec.levels is not None:
            levels = list(spec.levels)
            failed = present & ~raw.isin(levels).astype(bool)
            cells = cells.mask(failed)
        else:
            levels = list(pd.unique(raw.dropna().astype(object)))
            failed = pd.Series(False, index=raw.index)
        categorical = pd.Categorical(cells, categories=levels, ordered=spec.ordered)
        return pd.Series(categorical, index=raw.index), failed

    raise ValueError(f"Cannot coerce a column of type '{column_type.value}'.")


def convert_table(
    raw: pd.DataFrame,
    specs: Sequence[ColumnSpec],
    na: Collection[str] = DEFAULT_NA,
    trim_ws: bool = True,
    guess_max: int = DEFAULT_GUESS_MAX,
    decimal_mark: str = ".",
    grouping_mark: str = ",",
) -> tuple[pd.DataFrame, list[ColumnSpec], list[CoercionWarning]]:
    """
    Apply NA sentinels, inference, and coercion to every column of a raw table.

    **Functionally**:
      - Each column is trimmed and sentinel-replaced.
      - INFER specs are resolved from the first `guess_max` rows.
      - SKIP columns are dropped from the output (their spec is still
        returned so the resolved specification lines up with the source).
      - Cells that fail coercion become missing and are reported as
        CoercionWarning records with 1-based row numbers.

    Args:
        raw: Raw string table (one column per source column, unique names).
        specs: One ColumnSpec per column, aligned with `raw.columns`.
        na, trim_ws, guess_max, decimal_mark, grouping_mark: Parsing options.

    Returns:
        (table, resolved_specs, problems)
    """
    columns: dict[str, pd.Series] = {}
    resolved: list[ColumnSpec] = []
    problems: list[CoercionWarning] = []

    for name, spec in zip(raw.columns, specs):
        if spec.type is ColumnType.SKIP:
            resolved.append(spec)
            continue

        cleaned = apply_na(raw[name], na=na, trim_ws=trim_ws).reset_index(drop=True)
        if spec.type is ColumnType.INFER:
            spec = guess_column_spec(cleaned, guess_max=guess_max, decimal_mark=decimal_mark)
            logger.debug("Guessed column '%s' as %s", name, spec.type.value)
        resolved.append(spec)

        values, failed = coerce_column(
            cleaned,
            spec,
            decimal_mark=decimal_mark,
            grouping_mark=grouping_mark,
        )
        for position in np.flatnonzero(failed.to_numpy(dtype=bool)):
            problems.append(
                CoercionWarning(
                    row=int(position) + 1,
                    column=str(name),
                    expected=spec.describe(),
                    actual=str(cleaned.iloc[position]),
                )
            )
        columns[name] = values

    table = pd.DataFrame(columns, index=pd.RangeIndex(len(raw)))
    # Problems are reported in reading order: by row, then by column
    column_order = {name: i for i, name in enumerate(raw.columns)}
    problems.sort(key=lambda p: (p.row, column_order[p.column]))
    return table, resolved, problems

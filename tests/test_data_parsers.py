"""
Tests for flatfile/data/parsers.py

These tests verify NA sentinel handling, type inference, and per-type
coercion using small hand-written columns where the expected values are easy
to reason about.
"""

import numpy as np
import pandas as pd
import pytest

from flatfile.data.parsers import (
    apply_na,
    coerce_column,
    convert_table,
    guess_column_spec,
    parse_number,
)
from flatfile.data.schemas import (
    ColumnSpec,
    ColumnType,
    col_character,
    col_date,
    col_datetime,
    col_double,
    col_factor,
    col_guess,
    col_integer,
    col_logical,
    col_number,
    col_skip,
)


def raw_column(values, na=("", "NA")) -> pd.Series:
    """Build a column the way readers do: strings, then NA sentinels applied."""
    return apply_na(pd.Series(values, dtype=object), na=na)


# ============================================================================
# NA sentinels
# ============================================================================

def test_apply_na_replaces_sentinels_and_trims():
    cleaned = apply_na(pd.Series(["1", ".", " 3 "], dtype=object), na=["."])

    assert cleaned.isna().tolist() == [False, True, False]
    assert cleaned.iloc[2] == "3"


def test_apply_na_trim_happens_before_sentinel_match():
    """' NA ' is trimmed to 'NA' and then treated as missing."""
    cleaned = apply_na(pd.Series([" NA ", "x"], dtype=object))
    assert cleaned.isna().tolist() == [True, False]


def test_apply_na_without_trim_keeps_whitespace():
    cleaned = apply_na(pd.Series([" NA ", "NA"], dtype=object), trim_ws=False)
    assert cleaned.isna().tolist() == [False, True]
    assert cleaned.iloc[0] == " NA "


@pytest.mark.parametrize("spec", [
    col_character(),
    col_integer(),
    col_double(),
    col_logical(),
    col_date(),
    col_datetime(),
    col_factor(),
    col_factor(["a", "b"]),
    col_number(),
])
@pytest.mark.parametrize("sentinel", [".", "N/A", "-999"])
def test_sentinel_is_missing_for_every_type(spec, sentinel):
    """A sentinel never reaches a parser: it is missing and never a problem."""
    raw = pd.DataFrame({"x": [sentinel, sentinel]}, dtype=object)

    table, _, problems = convert_table(raw, [spec], na=[".", "N/A", "-999"])

    assert table["x"].isna().all()
    assert problems == []


# ============================================================================
# Inference
# ============================================================================

@pytest.mark.parametrize("values, expected", [
    (["TRUE", "false", "True"], ColumnType.BOOLEAN),
    (["1", "-2", "+30"], ColumnType.INTEGER),
    (["0", "1", "1"], ColumnType.INTEGER),
    (["1", "2.5", "1e3"], ColumnType.DOUBLE),
    (["99999999999999999999"], ColumnType.DOUBLE),
    (["1", "x"], ColumnType.TEXT),
    (["2024-01-15"], ColumnType.TEXT),
    ([None, "NA", ""], ColumnType.TEXT),
])
def test_guess_column_spec(values, expected):
    """Narrowest type that parses every sampled value; dates are never guessed."""
    assert guess_column_spec(raw_column(values)).type is expected


def test_guess_column_spec_only_samples_prefix():
    """Values after the first guess_max rows don't influence the guess."""
    column = raw_column(["1", "2", "x"])

    assert guess_column_spec(column, guess_max=2).type is ColumnType.INTEGER
    assert guess_column_spec(column, guess_max=3).type is ColumnType.TEXT


def test_guess_column_spec_ignores_missing_cells():
    column = raw_column(["NA", "1", "", "2"])
    assert guess_column_spec(column).type is ColumnType.INTEGER


def test_guess_column_spec_decimal_comma():
    column = raw_column(["1,5", "2"])
    assert guess_column_spec(column, decimal_mark=",").type is ColumnType.DOUBLE


# ============================================================================
# Coercion
# ============================================================================

def test_coerce_integer_reports_failures():
    values, failed = coerce_column(raw_column(["1", "x", None, "2.5"]), col_integer())

    assert str(values.dtype) == "Int64"
    assert values.iloc[0] == 1
    assert values.iloc[1:].isna().all()
    assert failed.tolist() == [False, True, False, True]


def test_coerce_double_accepts_nan_and_inf_without_problems():
    values, failed = coerce_column(
        raw_column(["1.5", "1e3", "NaN", "-Inf", "abc"]),
        col_double(),
    )

    assert values.iloc[0] == 1.5
    assert values.iloc[1] == 1000.0
    assert np.isnan(values.iloc[2])
    assert values.iloc[3] == -np.inf
    assert failed.tolist() == [False, False, False, False, True]


def test_coerce_double_with_decimal_comma():
    values, failed = coerce_column(raw_column(["1,5", "2"]), col_double(), decimal_mark=",")

    assert values.tolist() == [1.5, 2.0]
    assert not failed.any()


def test_coerce_double_with_decimal_comma_rejects_point():
    """Coercion agrees with inference: "1.234" is not a double when "," is the mark."""
    column = raw_column(["1.234", "2,5"])

    values, failed = coerce_column(column, col_double(), decimal_mark=",")

    assert np.isnan(values.iloc[0])
    assert values.iloc[1] == 2.5
    assert failed.tolist() == [True, False]
    assert guess_column_spec(column, decimal_mark=",").type is ColumnType.TEXT


@pytest.mark.parametrize("text, expected", [
    ("$1,234.50", 1234.50),
    ("45%", 45.0),
    ("-$12", -12.0),
    ("$-12", -12.0),
    ("about 7 km", 7.0),
    (".5", 0.5),
    ("1.2e3 units", 1200.0),
])
def test_parse_number(text, expected):
    """Numbers are pulled out of surrounding currency, percent, and unit symbols."""
    assert parse_number(text) == pytest.approx(expected)


def test_parse_number_with_european_marks():
    assert parse_number("€1.234,5", decimal_mark=",", grouping_mark=".") == pytest.approx(1234.5)


def test_parse_number_without_digits():
    assert parse_number("n/a") is None


def test_coerce_number_column():
    values, failed = coerce_column(raw_column(["$1,234.50", "45%", "free"]), col_number())

    assert values.iloc[0] == pytest.approx(1234.50)
    assert values.iloc[1] == pytest.approx(45.0)
    assert np.isnan(values.iloc[2])
    assert failed.tolist() == [False, False, True]


def test_coerce_boolean():
    values, failed = coerce_column(raw_column(["T", "false", "1", "maybe"]), col_logical())

    assert str(values.dtype) == "boolean"
    assert values.iloc[:3].tolist() == [True, False, True]
    assert failed.tolist() == [False, False, False, True]


def test_coerce_date_default_iso_format():
    values, failed = coerce_column(raw_column(["2024-01-15", "15/01/2024"]), col_date())

    assert values.iloc[0] == pd.Timestamp("2024-01-15")
    assert pd.isna(values.iloc[1])
    assert failed.tolist() == [False, True]


def test_coerce_date_explicit_format():
    values, failed = coerce_column(raw_column(["15/01/2024"]), col_date("%d/%m/%Y"))

    assert values.iloc[0] == pd.Timestamp("2024-01-15")
    assert not failed.any()


def test_coerce_datetime_iso():
    values, failed = coerce_column(raw_column(["2024-01-15 10:30:00"]), col_datetime())

    assert values.iloc[0] == pd.Timestamp("2024-01-15 10:30:00")
    assert not failed.any()


def test_coerce_datetime_offset_converted_to_utc():
    values, _ = coerce_column(raw_column(["2024-01-15T12:30:00+02:00"]), col_datetime())

    assert values.iloc[0] == pd.Timestamp("2024-01-15 10:30:00")
    assert values.dt.tz is None


def test_coerce_categorical_with_levels():
    values, failed = coerce_column(
        raw_column(["low", "high", "medium"]),
        col_factor(["low", "high"]),
    )

    assert list(values.cat.categories) == ["low", "high"]
    assert values.iloc[:2].tolist() == ["low", "high"]
    assert pd.isna(values.iloc[2])
    assert failed.tolist() == [False, False, True]


def test_coerce_categorical_levels_in_order_of_appearance():
    values, failed = coerce_column(raw_column(["b", "a", "b"]), col_factor(ordered=True))

    assert list(values.cat.categories) == ["b", "a"]
    assert values.cat.ordered
    assert not failed.any()


def test_coerce_rejects_unresolved_types():
    with pytest.raises(ValueError):
        coerce_column(raw_column(["1"]), col_guess())


# ============================================================================
# Whole-table conversion
# ============================================================================

def test_convert_table_drops_skip_columns_but_keeps_their_spec():
    raw = pd.DataFrame({"a": ["1"], "b": ["x"], "c": ["2.5"]}, dtype=object)

    table, resolved, problems = convert_table(raw, [col_guess(), col_skip(), col_guess()])

    assert list(table.columns) == ["a", "c"]
    assert [s.type for s in resolved] == [ColumnType.INTEGER, ColumnType.SKIP, ColumnType.DOUBLE]
    assert problems == []


def test_convert_table_records_problems_in_reading_order():
    raw = pd.DataFrame({
        "x": ["1", ".", "y", "4"],
        "z": ["oops", "2", "3", "4"],
    }, dtype=object)

    table, _, problems = convert_table(
        raw,
        [col_integer(), col_integer()],
        na=["."],
    )

    assert [(p.row, p.column, p.actual) for p in problems] == [
        (1, "z", "oops"),
        (3, "x", "y"),
    ]
    assert problems[0].expected == "an integer"
    assert table["x"].isna().tolist() == [False, True, True, False]


def test_convert_table_failures_after_guess_sample():
    """A value beyond the inference sample that doesn't fit becomes a problem."""
    raw = pd.DataFrame({"n": ["1", "2", "three"]}, dtype=object)

    table, resolved, problems = convert_table(raw, [col_guess()], guess_max=2)

    assert resolved[0] == ColumnSpec(ColumnType.INTEGER)
    assert len(problems) == 1
    assert problems[0].row == 3
    assert pd.isna(table["n"].iloc[2])

"""
Tests for flatfile/utils/names.py
"""

import pandas as pd
import pytest

from flatfile.utils.names import clean_name, clean_names, make_clean_names


@pytest.mark.parametrize("raw, expected", [
    ("Total Sales ($)", "total_sales"),
    ("firstName", "first_name"),
    ("HTTPServer", "http_server"),
    ("2019 Q1", "x2019_q1"),
    ("% Change", "percent_change"),
    ("Order #", "order_number"),
    ("Café", "cafe"),
    ("  spaced   out  ", "spaced_out"),
    ("!!!", "x"),
    ("", "x"),
])
def test_clean_name(raw, expected):
    assert clean_name(raw) == expected


def test_make_clean_names_deduplicates():
    assert make_clean_names(["ID", "id", "Id"]) == ["id", "id_2", "id_3"]


def test_make_clean_names_suffix_skips_existing_names():
    """A generated suffix never collides with a name already in the input."""
    assert make_clean_names(["a_2", "a", "a"]) == ["a_2", "a", "a_3"]


def test_make_clean_names_is_idempotent():
    names = ["Student ID", "student id", "First Name", "% Change", "2019", ""]

    once = make_clean_names(names)
    twice = make_clean_names(once)

    assert twice == once
    assert len(set(once)) == len(once)


def test_clean_names_returns_copy():
    df = pd.DataFrame({"First Name": ["a"], "Score (%)": [1]})

    cleaned = clean_names(df)

    assert list(cleaned.columns) == ["first_name", "score_percent"]
    assert list(df.columns) == ["First Name", "Score (%)"]
    assert cleaned["score_percent"].tolist() == [1]

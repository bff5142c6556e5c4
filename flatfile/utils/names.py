"""
Column-name normalization.

**Conceptual**: Raw headers come in every shape ("Total Sales ($)",
"firstName", "2019 Q1", "% Change"). `make_clean_names` maps them onto one
convention, lowercase snake_case ASCII identifiers:
  - Accented letters are transliterated ("Café" -> "cafe").
  - "%" becomes "percent" and "#" becomes "number".
  - camelCase boundaries become underscores ("firstName" -> "first_name").
  - Every run of non-alphanumeric characters becomes a single "_", and
    leading/trailing underscores are removed.
  - Names starting with a digit get an "x" prefix ("2019_q1" -> "x2019_q1").
  - Empty names become "x".
  - Duplicates get "_2", "_3", ... suffixes that don't collide with other names.

The result is idempotent: cleaning already-clean names returns them unchanged.
"""

import re
import unicodedata
from typing import Iterable

import pandas as pd

SEPARATOR = "_"

_CAMEL_LOWER_UPPER = re.compile(r"([a-z0-9])([A-Z])")
_CAMEL_ACRONYM = re.compile(r"([A-Z]+)([A-Z][a-z])")
_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


def clean_name(name: str) -> str:
    """
    Normalize a single name (without de-duplication).

    Example:
        >>> clean_name("Total Sales ($)")
        'total_sales'
        >>> clean_name("firstName")
        'first_name'
        >>> clean_name("2019 Q1")
        'x2019_q1'
    """
    text = unicodedata.normalize("NFKD", str(name))
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.replace("%", " percent ").replace("#", " number ")
    text = _CAMEL_ACRONYM.sub(r"\1 \2", text)
    text = _CAMEL_LOWER_UPPER.sub(r"\1 \2", text)
    text = _NON_ALNUM_RUN.sub(SEPARATOR, text.lower()).strip(SEPARATOR)

    if not text:
        return "x"
    if text[0].isdigit():
        return f"x{text}"
    return text


def make_clean_names(names: Iterable[str]) -> list[str]:
    """
    Normalize a sequence of names and make them unique.

    Args:
        names: Column names in order.

    Returns:
        Cleaned names, same length and order as the input.

    Example:
        >>> make_clean_names(["ID", "id", "First Name", "% Change"])
        ['id', 'id_2', 'first_name', 'percent_change']
    """
    cleaned = [clean_name(name) for name in names]
    taken = set(cleaned)
    seen: set[str] = set()
    result = []
    for name in cleaned:
        if name not in seen:
            seen.add(name)
            result.append(name)
            continue
        suffix = 2
        while f"{name}{SEPARATOR}{suffix}" in taken:
            suffix += 1
        unique = f"{name}{SEPARATOR}{suffix}"
        taken.add(unique)
        seen.add(unique)
        result.append(unique)
    return result


def clean_names(df: pd.DataFrame) -> pd.DataFrame:
    """
    Return a copy of `df` with normalized column names.

    The input DataFrame is not modified; values, dtypes and row order are
    unchanged.
    """
    cleaned = df.copy()
    cleaned.columns = make_clean_names(str(column) for column in df.columns)
    return cleaned

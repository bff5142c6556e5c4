"""
Column types and column type specifications.

**Conceptual**: This module defines the "data contract" a reader applies to a
flat file. Every column is either declared with a ColumnSpec or left to
inference. A specification can be given in several shapes:
  - A mapping of column name -> ColumnSpec / ColumnType / type name.
  - A `cols(...)` object with a default type for unnamed columns.
  - A compact positional string, one character per column (e.g., "cid_D").
  - A list of specs, one per column in source order.

All shapes are normalized by `resolve_column_specs` into one ColumnSpec per
source column, in source order.

**Teaching note**: Keeping the type contract separate from the parsing code
means a resolved specification can be inspected, stored, and replayed on the
next file (see ReadResult.col_types).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Sequence, Union

from flatfile.data.errors import FormatFailure


class ColumnType(Enum):
    """
    Semantic column types understood by the readers.

    INFER is resolved to a concrete type (BOOLEAN, INTEGER, DOUBLE, or TEXT)
    from a sample of the data. DATE and DATETIME are never inferred.
    """
    INFER = "infer"
    TEXT = "text"
    INTEGER = "integer"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    CATEGORICAL = "categorical"
    NUMBER = "number"
    SKIP = "skip"


# Alternative names accepted wherever a type name string is allowed
TYPE_ALIASES = {
    "guess": ColumnType.INFER,
    "character": ColumnType.TEXT,
    "string": ColumnType.TEXT,
    "str": ColumnType.TEXT,
    "int": ColumnType.INTEGER,
    "float": ColumnType.DOUBLE,
    "numeric": ColumnType.DOUBLE,
    "logical": ColumnType.BOOLEAN,
    "bool": ColumnType.BOOLEAN,
    "factor": ColumnType.CATEGORICAL,
    "category": ColumnType.CATEGORICAL,
    "numeric-with-symbols": ColumnType.NUMBER,
}

# One-character codes for compact positional specifications
COMPACT_CODES = {
    "?": ColumnType.INFER,
    "c": ColumnType.TEXT,
    "i": ColumnType.INTEGER,
    "d": ColumnType.DOUBLE,
    "l": ColumnType.BOOLEAN,
    "D": ColumnType.DATE,
    "T": ColumnType.DATETIME,
    "f": ColumnType.CATEGORICAL,
    "n": ColumnType.NUMBER,
    "_": ColumnType.SKIP,
    "-": ColumnType.SKIP,
}

DEFAULT_DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class ColumnSpec:
    """
    Declared type of one column plus its type-specific options.

    Attributes:
        type: The semantic ColumnType.
        format: strptime-style format for DATE/DATETIME columns. None means
                ISO 8601 (DATE: "%Y-%m-%d"; DATETIME: any ISO 8601 variant).
        levels: Allowed categories for CATEGORICAL columns, in order. None
                means "distinct values in order of first appearance".
        ordered: Whether a CATEGORICAL column is an ordered categorical.
    """
    type: ColumnType
    format: str | None = None
    levels: tuple[str, ...] | None = None
    ordered: bool = False

    def __post_init__(self):
        if not isinstance(self.type, ColumnType):
            raise ValueError(f"ColumnSpec.type must be a ColumnType, got: {self.type!r}")
        if self.format is not None and self.type not in (ColumnType.DATE, ColumnType.DATETIME):
            raise ValueError(
                f"format is only valid for date/datetime columns, not '{self.type.value}'"
            )
        if self.levels is not None:
            if self.type is not ColumnType.CATEGORICAL:
                raise ValueError(
                    f"levels are only valid for categorical columns, not '{self.type.value}'"
                )
            # Accept any sequence but store an immutable tuple
            object.__setattr__(self, "levels", tuple(self.levels))

    def describe(self) -> str:
        """Describe what a value of this column should look like (used in problem reports)."""
        if self.type is ColumnType.INTEGER:
            return "an integer"
        if self.type in (ColumnType.DOUBLE, ColumnType.NUMBER):
            return "a number"
        if self.type is ColumnType.BOOLEAN:
            return "TRUE/FALSE"
        if self.type is ColumnType.DATE:
            return f"a date like {self.format or DEFAULT_DATE_FORMAT}"
        if self.type is ColumnType.DATETIME:
            return f"a date-time like {self.format or 'ISO 8601'}"
        if self.type is ColumnType.CATEGORICAL:
            if self.levels is not None:
                return f"a value in level set {list(self.levels)}"
            return "a category"
        return self.type.value


ColumnTypeLike = Union[ColumnSpec, ColumnType, str]


def col_guess() -> ColumnSpec:
    return ColumnSpec(ColumnType.INFER)


def col_character() -> ColumnSpec:
    return ColumnSpec(ColumnType.TEXT)


def col_integer() -> ColumnSpec:
    return ColumnSpec(ColumnType.INTEGER)


def col_double() -> ColumnSpec:
    return ColumnSpec(ColumnType.DOUBLE)


def col_logical() -> ColumnSpec:
    return ColumnSpec(ColumnType.BOOLEAN)


def col_date(format: str | None = None) -> ColumnSpec:
    return ColumnSpec(ColumnType.DATE, format=format)


def col_datetime(format: str | None = None) -> ColumnSpec:
    return ColumnSpec(ColumnType.DATETIME, format=format)


def col_factor(levels: Sequence[str] | None = None, ordered: bool = False) -> ColumnSpec:
    return ColumnSpec(ColumnType.CATEGORICAL, levels=levels, ordered=ordered)


def col_number() -> ColumnSpec:
    """Numeric-with-symbols: "$1,234.50" -> 1234.5, "45%" -> 45.0."""
    return ColumnSpec(ColumnType.NUMBER)


def col_skip() -> ColumnSpec:
    return ColumnSpec(ColumnType.SKIP)


def as_column_spec(value: ColumnTypeLike) -> ColumnSpec:
    """
    Normalize a ColumnSpec, ColumnType, type name, or compact code to a ColumnSpec.

    Raises:
        ValueError: If a string names no known type.
    """
    if isinstance(value, ColumnSpec):
        return value
    if isinstance(value, ColumnType):
        return ColumnSpec(value)
    if isinstance(value, str):
        key = value.strip()
        if key in COMPACT_CODES:
            return ColumnSpec(COMPACT_CODES[key])
        key = key.lower()
        for column_type in ColumnType:
            if column_type.value == key:
                return ColumnSpec(column_type)
        if key in TYPE_ALIASES:
            return ColumnSpec(TYPE_ALIASES[key])
        raise ValueError(
            f"Unknown column type '{value}'. "
            f"Expected one of: {[t.value for t in ColumnType]} "
            f"or an alias in {sorted(TYPE_ALIASES)}."
        )
    raise ValueError(f"Cannot interpret {value!r} as a column type.")


@dataclass(frozen=True)
class ColsSpec:
    """
    Full column specification: named overrides plus a default for every other column.

    Built with `cols(...)`. A plain mapping passed as `col_types` is
    equivalent to `cols(mapping)` with an INFER default.
    """
    overrides: dict[str, ColumnSpec] = field(default_factory=dict)
    default: ColumnSpec = field(default_factory=col_guess)


def cols(
    overrides: Mapping[str, ColumnTypeLike] | None = None,
    default: ColumnTypeLike = ColumnType.INFER,
    **named: ColumnTypeLike,
) -> ColsSpec:
    """
    Build a column specification.

    Args:
        overrides: Mapping of column name -> type (for names that are not
                   valid Python identifiers, e.g. "Total Sales").
        default: Type for every column not named explicitly (default: infer).
        **named: Additional column name -> type pairs.

    Example:
        >>> spec = cols({"Total Sales": col_number()}, default="text", year="integer")
        >>> spec.overrides["year"].type
        <ColumnType.INTEGER: 'integer'>
    """
    merged: dict[str, ColumnSpec] = {}
    for name, value in dict(overrides or {}, **named).items():
        merged[name] = as_column_spec(value)
    return ColsSpec(overrides=merged, default=as_column_spec(default))


def parse_compact_spec(compact: str) -> list[ColumnSpec]:
    """
    Parse a compact positional specification such as "cid_D".

    Raises:
        ValueError: If the string contains an unknown code.
    """
    specs = []
    for position, code in enumerate(compact, start=1):
        if code not in COMPACT_CODES:
            raise ValueError(
                f"Unknown compact column type code '{code}' at position {position}. "
                f"Valid codes: {''.join(COMPACT_CODES)}."
            )
        specs.append(ColumnSpec(COMPACT_CODES[code]))
    return specs


def resolve_column_specs(
    names: Sequence[str],
    col_types: Union[None, str, Mapping[str, ColumnTypeLike], ColsSpec, Sequence[ColumnTypeLike]],
    context: str | None = None,
) -> tuple[list[ColumnSpec], list[str]]:
    """
    Resolve any accepted `col_types` shape into one ColumnSpec per column.

    **Functionally**:
      - None: every column is INFER.
      - str: compact positional codes; length must equal the column count.
      - ColsSpec / Mapping: named overrides, everything else gets the default.
      - Sequence: positional specs; length must equal the column count.

    Args:
        names: Column names in source order.
        col_types: The user-supplied specification.
        context: Source description for error messages.

    Returns:
        (specs, unmatched) where specs is aligned with `names` and unmatched
        lists override keys that name no column.

    Raises:
        FormatFailure: If a positional specification has the wrong length.
        ValueError: If a type name is unknown.
    """
    ctx = f"{context}: " if context else ""

    if col_types is None:
        return [col_guess() for _ in names], []

    if isinstance(col_types, str):
        positional = parse_compact_spec(col_types)
    elif isinstance(col_types, (ColsSpec, Mapping)):
        spec = col_types if isinstance(col_types, ColsSpec) else cols(col_types)
        resolved = [spec.overrides.get(name, spec.default) for name in names]
        unmatched = [key for key in spec.overrides if key not in names]
        return resolved, unmatched
    else:
        positional = [as_column_spec(value) for value in col_types]

    if len(positional) != len(names):
        raise FormatFailure(
            f"{ctx}Column specification has {len(positional)} entries "
            f"but the data has {len(names)} columns: {list(names)}."
        )
    return positional, []

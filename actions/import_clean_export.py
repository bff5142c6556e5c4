#!/usr/bin/env python3
"""
Import a flat file, optionally clean its column names, and export it again.

**Purpose**: This script runs the whole flatfile workflow from the command
line: read a delimited file with NA sentinels and per-column type overrides,
normalize the column names, write the cleaned table, and report any cells that
could not be parsed.

**Usage**:
    python actions/import_clean_export.py data/raw/survey.csv data/processed/survey.csv
    python actions/import_clean_export.py in.csv out.csv --na . --na N/A --clean-names
    python actions/import_clean_export.py in.csv out.tsv --col-type "Total Sales=number" \\
        --col-type "Visit Date=date:%d/%m/%Y" --output-delim tab --problems problems.csv

**What this script does**:
  1. Parse command line arguments (paths, delimiter, NA sentinels, column types)
  2. Load defaults from environment (.env file) for anything not given
  3. Read the input file
  4. Optionally clean column names
  5. Write the output file (and the problems report, if requested)
  6. Print a summary (rows, columns, resolved types, problem count)

**Column type syntax** (`--col-type NAME=TYPE[:OPTION]`):
  - NAME=double, NAME=integer, NAME=text, NAME=boolean, NAME=number, NAME=skip
  - NAME=date:%d/%m/%Y or NAME=datetime:%Y-%m-%d %H:%M (format optional)
  - NAME=categorical:low|medium|high (levels optional)

**Exit codes**:
  - 0: Success (even when some cells had parsing problems)
  - 1: Configuration, format, or file error
"""

import argparse
import sys
from pathlib import Path

# Add project root to Python path so we can import flatfile modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from flatfile.config.settings import DELIMITER_NAMES, get_settings
from flatfile.data.errors import FlatFileError
from flatfile.data.io import ReadResult, read_delim, write_csv, write_delim
from flatfile.data.schemas import ColumnSpec, ColumnType, as_column_spec
from flatfile.utils.log import configure_logging
from flatfile.utils.names import clean_names


def parse_col_type(text: str) -> tuple[str, ColumnSpec]:
    """
    Parse one `--col-type` argument.

    Example:
        >>> parse_col_type("Visit Date=date:%d/%m/%Y")
        ('Visit Date', ColumnSpec(type=<ColumnType.DATE: 'date'>, format='%d/%m/%Y', ...))

    Raises:
        ValueError: If the argument has no "=" or names an unknown type.
    """
    name, sep, type_text = text.partition("=")
    if not sep or not name:
        raise ValueError(f"Expected NAME=TYPE, got: {text!r}")

    type_name, _, option = type_text.partition(":")
    spec = as_column_spec(type_name)
    if not option:
        return name, spec

    if spec.type in (ColumnType.DATE, ColumnType.DATETIME):
        return name, ColumnSpec(spec.type, format=option)
    if spec.type is ColumnType.CATEGORICAL:
        return name, ColumnSpec(spec.type, levels=tuple(option.split("|")))
    raise ValueError(f"Type '{type_name}' takes no option, got: {option!r}")


def _delimiter(value: str) -> str:
    return DELIMITER_NAMES.get(value.lower(), value)


def parse_args(argv=None):
    """
    Parse command line arguments.

    Returns:
        Namespace with attributes: input, output, delim, na, col_type,
        clean_names, guess_max, output_delim, problems.
    """
    parser = argparse.ArgumentParser(
        description="Import a flat file, clean column names, and export it",
        epilog="""
Examples:
  # Treat "." as missing and force a numeric column
  python actions/import_clean_export.py in.csv out.csv --na . --col-type score=double

  # Semicolon input, tab output, cleaned names
  python actions/import_clean_export.py in.csv out.tsv --delim semicolon --output-delim tab --clean-names
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("input", type=str, help="Input file path")
    parser.add_argument("output", type=str, help="Output file path")

    parser.add_argument(
        "--delim",
        type=_delimiter,
        default=None,
        help="Input delimiter: a character or tab/semicolon/comma/pipe (default: FLATFILE_DELIMITER or ',')",
    )

    parser.add_argument(
        "--na",
        action="append",
        default=None,
        help="NA sentinel; repeat for several (default: FLATFILE_NA or '' and 'NA')",
    )

    parser.add_argument(
        "--col-type",
        action="append",
        default=[],
        help="Column type override NAME=TYPE[:OPTION]; repeat for several columns",
    )

    parser.add_argument(
        "--clean-names",
        action="store_true",
        help="Normalize column names to lowercase snake_case",
    )

    parser.add_argument(
        "--guess-max",
        type=int,
        default=None,
        help="Rows sampled for type inference (default: FLATFILE_GUESS_MAX or 1000)",
    )

    parser.add_argument(
        "--output-delim",
        type=_delimiter,
        default=None,
        help="Output delimiter (default: FLATFILE_OUTPUT_DELIMITER or ',')",
    )

    parser.add_argument(
        "--problems",
        type=str,
        default=None,
        help="Write the parsing problems report to this CSV path",
    )

    return parser.parse_args(argv)


def run_import_clean_export(args) -> ReadResult:
    """
    Run the read -> clean -> write workflow for parsed arguments.

    Returns:
        The ReadResult of the import (its table is the exported table).

    Raises:
        IOFailure, FormatFailure: From the reader or writer.
        ValueError: On an invalid option.
    """
    settings = get_settings()
    col_types = dict(parse_col_type(text) for text in args.col_type)

    print(f"Reading {args.input}...")
    result = read_delim(
        args.input,
        args.delim or settings.read.delimiter,
        col_types=col_types or None,
        na=args.na if args.na is not None else settings.read.na,
        trim_ws=settings.read.trim_ws,
        guess_max=args.guess_max if args.guess_max is not None else settings.read.guess_max,
        encoding=settings.read.encoding,
    )
    print(f"  ✓ {len(result.table)} rows x {result.table.shape[1]} columns")
    for name, spec in result.col_types.items():
        print(f"    {name:30s} {spec.type.value}")

    if args.clean_names:
        result.table = clean_names(result.table)
        print(f"  ✓ Cleaned names: {list(result.table.columns)}")

    write_delim(
        result.table,
        args.output,
        args.output_delim or settings.write.delimiter,
        na=settings.write.na,
    )
    print(f"  ✓ Saved to {args.output}")

    if result.problems:
        print(f"  ! {len(result.problems)} cell(s) could not be parsed and were set to missing")
        for problem in result.problems[:5]:
            print(f"    {problem}")

    if args.problems:
        write_csv(result.problems_frame(), args.problems)
        print(f"  ✓ Problems report saved to {args.problems}")

    return result


def main(argv=None):
    """
    Main entry point for the script.

    **Exit codes**:
      - 0: Success
      - 1: Configuration, format, or file error
    """
    args = parse_args(argv)

    try:
        configure_logging(get_settings().log_level)
        run_import_clean_export(args)
    except (FlatFileError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print("Done!")
    sys.exit(0)


if __name__ == "__main__":
    main()

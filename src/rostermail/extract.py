"""
Roster Extractor - reads student rows from spreadsheet and CSV roster files.

Columns are located by their header label in each file separately, so the
rosters may list the columns in any order.
"""

from collections import namedtuple
from pathlib import Path

from .common import normalize_cell, read_table
from .errors import RunWarning, SchemaMismatch
from .students import Student, StudentRegistry


ColumnMap = namedtuple(
    'ColumnMap', ['first_name', 'last_name', 'tmp_mail', 'ubt_mail'],
    defaults=[None],
)
ColumnMap.__doc__ = """\
Header labels of the logical roster columns.

ubt_mail is part of the command line interface but is not read.
"""

RowError = namedtuple('RowError', ['filepath', 'row', 'message'])


def row_error_warning(error):
    return RunWarning(
        'row_error',
        f"{Path(error.filepath).name}, row {error.row}: {error.message}",
    )


def locate_columns(header, columns, filepath=''):
    """
    Find the position of each required column label in a header row.

    Args:
        header: Sequence of header labels
        columns: ColumnMap with the labels to look for
        filepath: Used in the error message only

    Returns:
        Tuple of (first_name_idx, last_name_idx, tmp_mail_idx)

    Raises:
        SchemaMismatch: if any required label is absent
    """
    header = [str(label) for label in header]
    required = [columns.first_name, columns.last_name, columns.tmp_mail]

    missing = [label for label in required if label not in header]
    if missing:
        raise SchemaMismatch(filepath, missing, header)

    return tuple(header.index(label) for label in required)


def extract_records(filepath, columns, delimiter=','):
    """
    Extract (first_name, last_name, tmp_mail) tuples from one roster file.

    Rows with all three cells empty are skipped. Rows that are missing one of
    the located cells, or that have more fields than the header, are reported
    as RowError and skipped.

    Returns:
        Tuple of (records, row_errors)
    """
    df, long_rows = read_table(filepath, delimiter=delimiter)
    indices = locate_columns(df.columns, columns, filepath=filepath)

    records = []
    row_errors = [
        RowError(filepath, row_number,
                 f"{width} fields, but the header has {len(df.columns)}")
        for row_number, width in long_rows
    ]

    for row_number, *row in df.itertuples(index=True, name=None):
        values = [normalize_cell(row[idx]) for idx in indices]

        if None in values:
            missing = [df.columns[idx] for idx, v in zip(indices, values) if v is None]
            row_errors.append(RowError(
                filepath, row_number, f"missing value for {', '.join(missing)}",
            ))
            continue

        if not any(values):
            continue

        records.append(tuple(values))

    row_errors.sort(key=lambda error: error.row)
    return records, row_errors


def load_registry(input_files, columns, delimiter=',', registry=None, verbose=True):
    """
    Extract all roster files into one deduplicated registry.

    Args:
        input_files: Roster file paths, processed in the given order
        columns: ColumnMap with the header labels
        delimiter: Field delimiter for .csv files
        registry: Existing StudentRegistry to add to (a new one if None)
        verbose: Print detailed progress information

    Returns:
        Tuple of (registry, row_errors)
    """
    if registry is None:
        registry = StudentRegistry()

    row_errors = []

    for filepath in input_files:
        records, errors = extract_records(filepath, columns, delimiter=delimiter)
        row_errors.extend(errors)

        added = 0
        for first_name, last_name, tmp_mail in records:
            if registry.add(Student(first_name, last_name, tmp_mail)):
                added += 1

        if verbose:
            print(f"   {Path(filepath).name}: {len(records)} rows, {added} new students")
            if errors:
                print(f"      Skipped rows: {len(errors)}")

    return registry, row_errors

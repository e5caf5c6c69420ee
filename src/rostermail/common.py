"""Shared utilities for roster file discovery, table reading and cell cleanup."""

import csv
import zipfile
from pathlib import Path

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException
from xlrd import XLRDError

from .errors import RosterReadError


SUPPORTED_EXTENSIONS = ('.xls', '.xlsx', '.csv')


def find_input_files(input_dir):
    """
    Find roster files directly inside a directory.

    Office lock files (~$*) are ignored. The result is sorted by file name so
    that repeated runs process the files in the same order.

    Returns:
        List of Path objects
    """
    files = []
    for p in sorted(Path(input_dir).iterdir(), key=lambda p: p.name):
        if not p.is_file() or p.name.startswith('~$'):
            continue
        if p.suffix.lower() in SUPPORTED_EXTENSIONS:
            files.append(p)
    return files


def _read_csv_rows(filepath, delimiter):
    """
    Read a CSV roster without letting short or long rows shift the columns.

    A trailing delimiter (empty extra fields) is dropped. Short rows are padded
    with None so the missing cells can be told apart from empty ones.

    Returns:
        Tuple of (header, rows, row_numbers, long_rows)
    """
    with open(filepath, 'r', encoding='utf-8-sig', newline='') as f:
        raw_rows = list(_numbered_rows(f, delimiter))

    if not raw_rows:
        return [], [], [], []

    _, header = raw_rows[0]
    while header and header[-1] == '':
        header = header[:-1]
    width = len(header)

    rows = []
    row_numbers = []
    long_rows = []
    for line_num, row in raw_rows[1:]:
        while len(row) > width and row[-1] == '':
            row = row[:-1]
        if len(row) > width:
            long_rows.append((line_num, len(row)))
            continue
        rows.append(row + [None] * (width - len(row)))
        row_numbers.append(line_num)

    return header, rows, row_numbers, long_rows


def _numbered_rows(f, delimiter):
    reader = csv.reader(f, delimiter=delimiter)
    for row in reader:
        if row:
            yield reader.line_num, row


def read_table(filepath, delimiter=','):
    """
    Read the first sheet of a roster file into a DataFrame of strings.

    The DataFrame index holds the spreadsheet row number of each row (the
    header is row 1). Cells missing from a short CSV row are None.

    Args:
        filepath: Path to a .xls, .xlsx or .csv file
        delimiter: Field delimiter for .csv files

    Returns:
        Tuple of (DataFrame, long_rows) where long_rows lists
        (row_number, field_count) for CSV rows wider than the header

    Raises:
        RosterReadError: if the file cannot be read or parsed
    """
    filepath = Path(filepath)
    suffix = filepath.suffix.lower()
    long_rows = []

    if suffix not in SUPPORTED_EXTENSIONS:
        raise ValueError(f"Unsupported file type: {filepath.name}")

    try:
        if suffix == '.xls':
            df = pd.read_excel(filepath, sheet_name=0, engine='xlrd',
                               dtype=str, keep_default_na=False)
        elif suffix == '.xlsx':
            df = pd.read_excel(filepath, sheet_name=0, engine='openpyxl',
                               dtype=str, keep_default_na=False)
        else:
            header, rows, row_numbers, long_rows = _read_csv_rows(filepath, delimiter)
            df = pd.DataFrame(rows, columns=header, index=row_numbers, dtype=object)
    except (OSError, UnicodeDecodeError, ValueError, csv.Error,
            zipfile.BadZipFile, XLRDError, InvalidFileException) as e:
        raise RosterReadError(filepath, e) from e

    if suffix != '.csv':
        df.index = range(2, len(df) + 2)

    df.columns = [str(col) for col in df.columns]
    return df, long_rows


def normalize_cell(value):
    """
    Normalize a cell value to a stripped string.

    Examples:
        " Jane " -> "Jane"
        ""       -> ""
        NaN      -> None  (cell missing from a short row)
    """
    if value is None:
        return None
    if not isinstance(value, str) and pd.isna(value):
        return None
    return str(value).strip()

"""
Listserv Writer - serializes resolved students into the mailing list import file.

Format: one recipient per line, fields separated by a tab, no header, no
quoting of any kind, encoded in ISO-8859-1. Listserv mis-renders UTF-8 input.
"""

import os
import tempfile
import unicodedata
from itertools import chain
from pathlib import Path

from .errors import OutputWriteFailure


LISTSERV_ENCODING = 'iso-8859-1'
DELIMITER = '\t'
LINE_TERMINATOR = '\n'


def listserv_rows(student):
    """
    Rows for one student: the provisional address first, then the directory one.

    Returns:
        List of zero, one or two (mail, first_name, last_name) tuples
    """
    rows = []
    if student.tmp_mail_address:
        rows.append((student.tmp_mail_address, student.first_name, student.last_name))
    if student.resolved_mail_address:
        rows.append((student.resolved_mail_address, student.first_name, student.last_name))
    return rows


def format_row(fields):
    # Listserv cannot parse quotes, so they never reach the file
    return DELIMITER.join(str(field).replace('"', '') for field in fields) + LINE_TERMINATOR


def format_listserv(students):
    """Render all students as listserv text, in registry order."""
    rows = chain.from_iterable(listserv_rows(student) for student in students)
    return ''.join(format_row(row) for row in rows)


def encode_listserv(text, encoding=LISTSERV_ENCODING):
    """
    Encode listserv text.

    Characters the target encoding lacks are replaced with '?'. Text is NFC
    normalized first so decomposed umlauts still map to single bytes.

    Returns:
        bytes
    """
    return unicodedata.normalize('NFC', text).encode(encoding, errors='replace')


def serialize_listserv(students, encoding=LISTSERV_ENCODING):
    return encode_listserv(format_listserv(students), encoding=encoding)


def write_listserv(students, output_file, encoding=LISTSERV_ENCODING):
    """
    Write the listserv file atomically.

    The data goes to a temporary file next to the target, which is renamed over
    the target once complete. A failed write leaves no partial file behind.

    Returns:
        Tuple of (output_path, entry_count)

    Raises:
        OutputWriteFailure: if the file cannot be written
    """
    output_path = Path(output_file)
    text = format_listserv(students)
    data = encode_listserv(text, encoding=encoding)

    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{output_path.name}.", suffix='.tmp', dir=output_path.parent,
        )
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        # mkstemp creates the file owner-only
        os.chmod(tmp_name, 0o644)
        os.replace(tmp_name, output_path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise OutputWriteFailure(f"Could not write {output_path}: {e}") from e

    return output_path, text.count(LINE_TERMINATOR)

"""Exceptions and warning records shared by the mailing list build."""

from dataclasses import dataclass


class RosterMailError(Exception):
    """Base class for fatal errors that abort a run."""


class SchemaMismatch(RosterMailError):
    """An input file's header lacks one or more required column labels."""

    def __init__(self, filepath, missing, found):
        self.filepath = filepath
        self.missing = list(missing)
        self.found = list(found)
        super().__init__(
            f"Missing expected columns in {filepath}: {', '.join(self.missing)}\n"
            f"Found columns: {', '.join(self.found)}"
        )


class RosterReadError(RosterMailError):
    """A roster file exists but cannot be read or parsed."""

    def __init__(self, filepath, reason):
        self.filepath = filepath
        super().__init__(f"Could not read roster file {filepath}: {reason}")


class DirectoryConnectionFailure(RosterMailError):
    """The directory server could not be reached or refused the bind."""


class OutputWriteFailure(RosterMailError):
    """The mailing list file could not be written."""


@dataclass(frozen=True)
class RunWarning:
    """
    A recoverable problem reported at the end of a run.

    kind is one of: 'row_error', 'unresolved', 'no_usable_address', 'query_error'.
    """
    kind: str
    message: str

    def __str__(self):
        return self.message

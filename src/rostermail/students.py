"""
Student records and the registry that deduplicates them across roster files.

A student's identity is the (first name, last name) pair. Two roster rows with
the same full name are the same student, even when they come from different
files. Two different people sharing a full name collapse into one entry; this
is accepted since the rosters carry no better key.
"""


class Student:
    """One roster entry plus the address found for it in the directory."""

    def __init__(self, first_name, last_name, tmp_mail_address):
        self._first_name = first_name
        self._last_name = last_name
        self._tmp_mail_address = tmp_mail_address
        self._identity = (first_name, last_name)
        self._resolved_mail_address = None

    @property
    def first_name(self):
        return self._first_name

    @property
    def last_name(self):
        return self._last_name

    @property
    def full_name(self):
        return f"{self._first_name} {self._last_name}"

    @property
    def tmp_mail_address(self):
        return self._tmp_mail_address

    @property
    def identity(self):
        return self._identity

    @property
    def resolved_mail_address(self):
        return self._resolved_mail_address

    def set_resolved_mail(self, address):
        """Attach the directory address. Can only happen once per student."""
        if self._resolved_mail_address is not None:
            raise ValueError(
                f"Mail address of \"{self.full_name}\" already resolved "
                f"to {self._resolved_mail_address}"
            )
        self._resolved_mail_address = address

    def __repr__(self):
        return (
            f"Student({self._first_name!r}, {self._last_name!r}, "
            f"{self._tmp_mail_address!r}, resolved={self._resolved_mail_address!r})"
        )


class StudentRegistry:
    """
    Insertion-ordered store of students keyed by identity.

    The first student seen for an identity wins; later ones are dropped, even
    if their provisional address differs.
    """

    def __init__(self):
        self._students = {}

    def add(self, student):
        """
        Add a student unless one with the same identity is already present.

        Returns:
            True if the student was inserted, False if it was a duplicate
        """
        if student.identity in self._students:
            return False
        self._students[student.identity] = student
        return True

    def get(self, first_name, last_name):
        return self._students.get((first_name, last_name))

    def __contains__(self, identity):
        return identity in self._students

    def __iter__(self):
        return iter(list(self._students.values()))

    def __len__(self):
        return len(self._students)

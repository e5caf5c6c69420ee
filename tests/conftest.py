import re

import pandas as pd
import pytest
from ldap3.core.exceptions import LDAPSocketOpenError, LDAPSocketReceiveError


NAME_FILTER = re.compile(r'\(preferredName=\*(.*?)\*\)\(sn=\*(.*?)\*\)')


class FakeConnection:
    """
    Stands in for an ldap3 Connection: search() fills self.response and
    self.result. Like ldap3, a receive timeout closes the socket and later
    searches fail until the connection is opened again.
    """

    def __init__(self, entries=(), failing=(), result_codes=None):
        self.entries = list(entries)
        self.failing = set(failing)
        self.result_codes = dict(result_codes or {})
        self.searches = []
        self.response = None
        self.result = None
        self.closed = False
        self.reopened = 0
        self.unbound = False

    def search(self, search_base, search_filter, search_scope=None, attributes=None):
        self.searches.append(search_filter)
        first_name, last_name = NAME_FILTER.search(search_filter).groups()

        if self.closed:
            raise LDAPSocketOpenError('socket is not open')

        if (first_name, last_name) in self.failing:
            self.closed = True
            raise LDAPSocketReceiveError('timed out')

        self.response = [
            {
                'type': 'searchResEntry',
                'dn': f"cn={entry['sn']},o=test",
                'attributes': {'mail': entry['mail']},
            }
            for entry in self.entries
            if first_name in entry['preferredName'] and last_name in entry['sn']
        ]
        code, description = self.result_codes.get((first_name, last_name), (0, 'success'))
        self.result = {'result': code, 'description': description}
        return code == 0 and bool(self.response)

    def open(self):
        self.closed = False
        self.reopened += 1

    def bind(self):
        return True

    def unbind(self):
        self.unbound = True
        self.closed = True


def person(preferred_name, sn, *mail):
    return {'preferredName': preferred_name, 'sn': sn, 'mail': list(mail)}


@pytest.fixture
def write_roster(tmp_path):
    """Write a roster file from a header and rows; the extension picks the format."""
    def _write(name, header, rows, directory=None):
        directory = directory or tmp_path
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        if path.suffix == '.xlsx':
            pd.DataFrame(rows, columns=header).to_excel(path, index=False)
        else:
            lines = [','.join(header)] + [','.join(row) for row in rows]
            path.write_text('\n'.join(lines) + '\n', encoding='utf-8')
        return path
    return _write

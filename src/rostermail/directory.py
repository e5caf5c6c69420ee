"""
Directory Resolver - looks up each student's mail address in the LDAP directory.

Students are matched by approximate name: the directory entry's preferred name
must contain the first name and its surname must contain the last name. The
first matching entry's mail addresses are taken in directory order, reserved
service accounts are dropped, and the first remaining address wins.
"""

import re
from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml
from ldap3 import NONE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from .errors import DirectoryConnectionFailure, RunWarning


@dataclass(frozen=True)
class DirectoryConfig:
    host: str = 'proxy-ubtrz.uni-bayreuth.de'
    port: int = 389
    base_dn: str = 'o=uni-bayreuth'
    timeout: float = 10
    object_class: str = 'Person'
    first_name_attribute: str = 'preferredName'
    last_name_attribute: str = 'sn'
    mail_attribute: str = 'mail'
    # Service accounts: two letters followed by six digits, e.g. bt123456@...
    reserved_pattern: str = r'^[A-Za-z]{2}\d{6}@'


def load_directory_config(config_file=None, **overrides):
    """
    Build the directory configuration.

    Values come from the defaults, then from an optional YAML file, then from
    keyword overrides (None values are ignored).

    Args:
        config_file: YAML file with a mapping of DirectoryConfig fields
        **overrides: Field values, e.g. from command line options

    Returns:
        DirectoryConfig
    """
    known = {f.name for f in fields(DirectoryConfig)}
    values = {}

    if config_file:
        with open(Path(config_file), 'r', encoding='utf-8') as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file must contain a mapping: {config_file}")
        unknown = sorted(set(loaded) - known)
        if unknown:
            raise ValueError(
                f"Unknown keys in config file {config_file}: {', '.join(unknown)}"
            )
        values.update(loaded)

    for key, value in overrides.items():
        if key not in known:
            raise ValueError(f"Unknown directory setting: {key}")
        if value is not None:
            values[key] = value

    config = replace(DirectoryConfig(), **values)
    return replace(config, port=int(config.port), timeout=float(config.timeout))


def connect_directory(config):
    """
    Open an anonymous, read-only connection to the directory server.

    Raises:
        DirectoryConnectionFailure: if the server cannot be reached or bound
    """
    try:
        server = Server(config.host, port=config.port, get_info=NONE,
                        connect_timeout=config.timeout)
        return Connection(server, auto_bind=True, read_only=True,
                          receive_timeout=config.timeout)
    except LDAPException as e:
        raise DirectoryConnectionFailure(
            f"Could not connect to {config.host}:{config.port}: {e}"
        ) from e


def build_search_filter(config, first_name, last_name):
    """
    Example:
        ("Jane", "Doe") -> "(&(objectClass=Person)(preferredName=*Jane*)(sn=*Doe*))"
    """
    return (
        f"(&(objectClass={escape_filter_chars(config.object_class)})"
        f"({config.first_name_attribute}=*{escape_filter_chars(first_name)}*)"
        f"({config.last_name_attribute}=*{escape_filter_chars(last_name)}*))"
    )


def is_reserved_address(address, pattern=DirectoryConfig.reserved_pattern):
    """True for internal service account addresses such as ab123456@x.de."""
    return re.search(pattern, address, re.IGNORECASE) is not None


def filter_mail_candidates(candidates, pattern=DirectoryConfig.reserved_pattern):
    """Drop reserved addresses, keeping the directory's order."""
    return [mail for mail in candidates if not is_reserved_address(mail, pattern)]


def _as_list(value):
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        value = [value]
    return [v.decode('utf-8') if isinstance(v, bytes) else str(v) for v in value]


class DirectoryResolver:
    """
    Attaches directory mail addresses to students.

    Problems with single students never stop the batch; they are collected in
    self.warnings instead.
    """

    def __init__(self, connection, config=None):
        self.connection = connection
        self.config = config or DirectoryConfig()
        self.warnings = []

    def close(self):
        self.connection.unbind()

    def _warn(self, kind, message):
        self.warnings.append(RunWarning(kind, message))

    def _reopen_if_closed(self):
        # ldap3 closes the socket after a receive timeout
        if not self.connection.closed:
            return
        try:
            self.connection.open()
            self.connection.bind()
        except LDAPException as e:
            self._warn('query_error', f"Could not reconnect to the directory: {e}")

    def query_mail_candidates(self, student):
        """
        Search the directory for a student.

        Returns:
            List of mail addresses of the first matching entry, or None if no
            entry matched (or the query failed)
        """
        config = self.config
        search_filter = build_search_filter(config, student.first_name, student.last_name)

        try:
            self.connection.search(
                search_base=config.base_dn,
                search_filter=search_filter,
                search_scope=SUBTREE,
                attributes=[config.mail_attribute],
            )
        except LDAPException as e:
            self._warn(
                'query_error',
                f"Directory query for \"{student.full_name}\" failed: {e}",
            )
            self._reopen_if_closed()
            return None

        result = self.connection.result or {}
        if result.get('result', 0) != 0:
            self._warn(
                'query_error',
                f"Directory query for \"{student.full_name}\" failed: "
                f"{result.get('description')}",
            )
            return None

        entries = [
            entry for entry in (self.connection.response or [])
            if entry.get('type') == 'searchResEntry'
        ]
        if not entries:
            return None

        attributes = entries[0].get('attributes') or {}
        return _as_list(attributes.get(config.mail_attribute))

    def resolve(self, student):
        """
        Look up one student and set its resolved mail address if possible.

        Returns:
            The same Student
        """
        candidates = self.query_mail_candidates(student)

        if candidates is None:
            self._warn(
                'unresolved',
                f"The mail address of \"{student.full_name}\" could not be found.",
            )
            return student

        chosen = filter_mail_candidates(candidates, self.config.reserved_pattern)
        if not chosen:
            self._warn(
                'no_usable_address',
                f"No proper mail address could be found for \"{student.full_name}\".",
            )
            return student

        student.set_resolved_mail(chosen[0])
        return student

    def resolve_all(self, students, verbose=True):
        """
        Resolve every student in order.

        Returns:
            Number of students that received a directory address
        """
        resolved = 0
        for student in students:
            self.resolve(student)
            if student.resolved_mail_address is not None:
                resolved += 1

        if verbose:
            print(f"   Resolved: {resolved}, unresolved: {len(students) - resolved}")

        return resolved

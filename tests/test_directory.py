import pytest
from ldap3.core.exceptions import LDAPSocketOpenError

from rostermail import directory
from rostermail.directory import (
    DirectoryConfig,
    DirectoryResolver,
    build_search_filter,
    connect_directory,
    filter_mail_candidates,
    is_reserved_address,
    load_directory_config,
)
from rostermail.errors import DirectoryConnectionFailure
from rostermail.students import Student, StudentRegistry

from conftest import FakeConnection, person


def test_reserved_address_pattern():
    assert is_reserved_address('ab123456@x.de')
    assert is_reserved_address('BT654321@uni-bayreuth.de')
    assert not is_reserved_address('j.doe@x.de')
    assert not is_reserved_address('ab1234567@x.de')
    assert not is_reserved_address('jane.ab123456@x.de')


def test_filter_keeps_directory_order():
    candidates = ['ab123456@x.de', 'j.doe@x.de', 'jane.doe@x.de']
    assert filter_mail_candidates(candidates) == ['j.doe@x.de', 'jane.doe@x.de']


def test_search_filter_escapes_values():
    search_filter = build_search_filter(DirectoryConfig(), 'Jane*', 'Doe (Jr)')
    assert search_filter == (
        r'(&(objectClass=Person)(preferredName=*Jane\2a*)(sn=*Doe \28Jr\29*))'
    )


def test_resolve_skips_reserved_account():
    conn = FakeConnection([person('Jane', 'Doe', 'ab123456@x.de', 'j.doe@x.de')])
    resolver = DirectoryResolver(conn)
    student = Student('Jane', 'Doe', 'jane@tmp')

    assert resolver.resolve(student) is student
    assert student.resolved_mail_address == 'j.doe@x.de'
    assert resolver.warnings == []


def test_resolve_only_reserved_accounts():
    conn = FakeConnection([person('Jane', 'Doe', 'ab123456@x.de')])
    resolver = DirectoryResolver(conn)
    student = Student('Jane', 'Doe', 'jane@tmp')

    resolver.resolve(student)

    assert student.resolved_mail_address is None
    assert [w.kind for w in resolver.warnings] == ['no_usable_address']
    assert 'Jane Doe' in resolver.warnings[0].message


def test_resolve_no_match():
    conn = FakeConnection([person('Max', 'Mustermann', 'max@x.de')])
    resolver = DirectoryResolver(conn)
    student = Student('Jane', 'Doe', 'jane@tmp')

    resolver.resolve(student)

    assert student.resolved_mail_address is None
    assert [w.kind for w in resolver.warnings] == ['unresolved']
    assert str(resolver.warnings[0]) == 'The mail address of "Jane Doe" could not be found.'


def test_resolve_uses_contains_match_and_first_entry():
    conn = FakeConnection([
        person('Dr. Jane Marie', 'Doe-Smith', 'first@x.de'),
        person('Jane', 'Doe', 'second@x.de'),
    ])
    resolver = DirectoryResolver(conn)
    student = Student('Jane', 'Doe', 'jane@tmp')

    resolver.resolve(student)

    assert student.resolved_mail_address == 'first@x.de'


def test_resolve_accepts_single_valued_mail():
    conn = FakeConnection([person('Jane', 'Doe')])
    conn.entries[0]['mail'] = 'j.doe@x.de'
    student = Student('Jane', 'Doe', 'jane@tmp')

    DirectoryResolver(conn).resolve(student)

    assert student.resolved_mail_address == 'j.doe@x.de'


def test_query_error_is_treated_as_no_match():
    conn = FakeConnection(
        [person('Jane', 'Doe', 'j.doe@x.de'), person('Max', 'Mustermann', 'max@x.de')],
        failing=[('Jane', 'Doe')],
    )
    resolver = DirectoryResolver(conn)
    registry = StudentRegistry()
    registry.add(Student('Jane', 'Doe', 'jane@tmp'))
    registry.add(Student('Max', 'Mustermann', 'max@tmp'))

    resolved = resolver.resolve_all(registry, verbose=False)

    assert resolved == 1
    assert registry.get('Jane', 'Doe').resolved_mail_address is None
    assert registry.get('Max', 'Mustermann').resolved_mail_address == 'max@x.de'
    assert [w.kind for w in resolver.warnings] == ['query_error', 'unresolved']


def test_one_query_per_student():
    conn = FakeConnection([person('Jane', 'Doe', 'j.doe@x.de')])
    registry = StudentRegistry()
    registry.add(Student('Jane', 'Doe', 'jane@tmp'))
    registry.add(Student('Max', 'Mustermann', 'max@tmp'))

    DirectoryResolver(conn).resolve_all(registry, verbose=False)

    assert len(conn.searches) == 2


def test_connect_failure_is_fatal(monkeypatch):
    def refuse(*args, **kwargs):
        raise LDAPSocketOpenError('connection refused')

    monkeypatch.setattr(directory, 'Connection', refuse)

    with pytest.raises(DirectoryConnectionFailure) as excinfo:
        connect_directory(DirectoryConfig(host='ldap.invalid', port=3389))
    assert 'ldap.invalid:3389' in str(excinfo.value)


def test_connect_passes_timeouts(monkeypatch):
    captured = {}

    def fake_connection(server, **kwargs):
        captured['server'] = server
        captured.update(kwargs)
        return FakeConnection()

    monkeypatch.setattr(directory, 'Connection', fake_connection)

    connect_directory(DirectoryConfig(host='ldap.example.org', timeout=3))

    assert captured['receive_timeout'] == 3
    assert captured['read_only'] is True
    assert captured['server'].connect_timeout == 3


def test_load_config_defaults():
    config = load_directory_config()
    assert config.host == 'proxy-ubtrz.uni-bayreuth.de'
    assert config.port == 389
    assert config.base_dn == 'o=uni-bayreuth'


def test_load_config_yaml_and_overrides(tmp_path):
    config_file = tmp_path / 'directory.yaml'
    config_file.write_text(
        'host: ldap.example.org\nport: "636"\nbase_dn: o=example\n', encoding='utf-8',
    )

    config = load_directory_config(config_file, port=None, base_dn='ou=people,o=example')

    assert config.host == 'ldap.example.org'
    assert config.port == 636
    assert config.base_dn == 'ou=people,o=example'


def test_load_config_rejects_unknown_keys(tmp_path):
    config_file = tmp_path / 'directory.yaml'
    config_file.write_text('hostname: ldap.example.org\n', encoding='utf-8')

    with pytest.raises(ValueError):
        load_directory_config(config_file)


def test_timeout_reconnects_for_next_student():
    conn = FakeConnection(
        [person('Jane', 'Doe', 'j.doe@x.de'),
         person('Max', 'Mustermann', 'max@x.de'),
         person('Erika', 'Musterfrau', 'erika@x.de')],
        failing=[('Jane', 'Doe')],
    )
    registry = StudentRegistry()
    for first, last in [('Jane', 'Doe'), ('Max', 'Mustermann'), ('Erika', 'Musterfrau')]:
        registry.add(Student(first, last, f"{first.lower()}@tmp"))

    resolved = DirectoryResolver(conn).resolve_all(registry, verbose=False)

    assert resolved == 2
    assert conn.reopened == 1
    assert registry.get('Erika', 'Musterfrau').resolved_mail_address == 'erika@x.de'


def test_result_code_error_is_a_query_error():
    conn = FakeConnection(
        [person('Jane', 'Doe', 'j.doe@x.de')],
        result_codes={('Jane', 'Doe'): (4, 'sizeLimitExceeded')},
    )
    resolver = DirectoryResolver(conn)
    student = Student('Jane', 'Doe', 'jane@tmp')

    resolver.resolve(student)

    assert student.resolved_mail_address is None
    assert [w.kind for w in resolver.warnings] == ['query_error', 'unresolved']
    assert 'sizeLimitExceeded' in resolver.warnings[0].message

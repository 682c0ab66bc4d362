# --- BEGIN COPYRIGHT BLOCK ---
# Copyright (C) 2022 Red Hat, Inc.
# All rights reserved.
#
# GNU General Public License v3.0+ (see COPYING or https://www.gnu.org/licenses/gpl-3.0.txt)
# --- END COPYRIGHT BLOCK ---
#
#

""" This module contains the testcases for the ds389 instances discovery."""

# Disable pylint warning triggered by standard fixture usage
# pylint: disable=redefined-outer-name
# pylint: disable=unused-argument

import pytest

from ansible_collections.ds389.ds389_config.plugins.module_utils.ds389_facts import (
    InstanceInventory, coerce_value, discover_instances, extract_section, parse_section, validate_ports)
from ansible_collections.ds389.ds389_config.plugins.module_utils.ds389_util import ConflictError


DSE_TEST = """dn: cn=config
nsslapd-port: 390
nsslapd-rootdn: cn=Directory_Manager

"""

DSE_FULL = """dn:
objectClass: top
aci: (targetattr != "aci")(version 3.0; aci "rootdse anon read access"; allow(
 read,search,compare) userdn="ldap:///anyone";)

dn: cn=config
cn: config
objectClass: top
objectClass: extensibleObject
objectClass: nsslapdConfig
nsslapd-ldapifilepath: {socket}
nsslapd-ldapilisten: on
nsslapd-listenhost: 0.0.0.0
nsslapd-port: 389
nsslapd-require-secure-binds: on
nsslapd-rootdn: cn=Directory_Manager
nsslapd-accesslog-logging-enabled: on

dn: cn=encryption,cn=config
objectClass: top
nsSSL3: off
"""


def test_empty_confdir(confdir):
    """Discovery on a directory without any instance returns an empty dict."""
    assert discover_instances(str(confdir)) == {}


def test_missing_confdir(tmp_path):
    """A missing configuration directory is not an error."""
    assert discover_instances(str(tmp_path / 'nothere')) == {}


def test_end_to_end(confdir):
    """admin-serv and a simple instance are reported."""
    confdir.add_admin_serv('configuration.nsserverport: 9830\n')
    confdir.add_instance('test', DSE_TEST)
    assert discover_instances(str(confdir)) == {
        'admin-serv': { 'port': 9830 },
        'test': { 'port': 390, 'rootdn': 'cn=Directory_Manager' },
    }


def test_admin_serv_without_port(confdir):
    confdir.add_admin_serv('configuration.nsServerSecurity: off\n')
    assert discover_instances(str(confdir)) == {}


def test_admin_serv_first_port_wins(confdir):
    confdir.add_admin_serv('# comment\nconfiguration.nsserverport: 9830\nconfiguration.nsserverport: 9831\n')
    assert discover_instances(str(confdir)) == { 'admin-serv': { 'port': 9830 } }


def test_removed_instance_is_ignored(confdir):
    """slapd-foo.removed is never reported even with a valid dse.ldif."""
    confdir.add_instance('foo.removed', DSE_TEST)
    confdir.add_instance('bar', DSE_TEST)
    instances = discover_instances(str(confdir))
    assert 'foo.removed' not in instances
    assert 'foo' not in instances
    assert list(instances) == [ 'bar' ]


def test_instance_without_dse_is_ignored(confdir):
    confdir.add_instance('notyet')
    assert discover_instances(str(confdir)) == {}


def test_instance_without_config_entry_is_skipped(confdir):
    """A broken instance does not prevent the other ones to be discovered."""
    confdir.add_instance('broken', 'dn: cn=encryption,cn=config\nnsSSL3: off\n')
    confdir.add_instance('good', DSE_TEST)
    assert discover_instances(str(confdir)) == { 'good': { 'port': 390, 'rootdn': 'cn=Directory_Manager' } }


def test_undecodable_instance_is_skipped(confdir):
    instdir = confdir.add_instance('binary')
    (instdir / 'dse.ldif').write_bytes(b'dn: cn=config\nnsslapd-port: \xff\xfe\n')
    confdir.add_instance('good', DSE_TEST)
    assert list(discover_instances(str(confdir))) == [ 'good' ]


def test_section_boundary(confdir):
    """Keys after the blank line ending cn=config are not parsed."""
    confdir.add_instance('test', 'dn: cn=config\nnsslapd-port: 390\n\ndn: cn=other\nnsslapd-rootdn: cn=foo\n')
    assert discover_instances(str(confdir)) == { 'test': { 'port': 390 } }


def test_folded_lines():
    """A continuation line is joined to the previous line."""
    conf = parse_section([ 'nsslapd-port: 3\n', ' 89\n' ])
    assert conf == { 'nsslapd-port': '389' }
    assert coerce_value(conf['nsslapd-port']) == 389


def test_folded_lines_in_instance(confdir):
    confdir.add_instance('test', 'dn: cn=config\nnsslapd-port: 3\n 89\nnsslapd-rootdn: cn=Directory\n  _Manager\n\n')
    assert discover_instances(str(confdir)) == { 'test': { 'port': 389, 'rootdn': 'cn=Directory_Manager' } }


def test_extract_section():
    lines = [ 'dn: cn=foo\n', 'a: b\n', '\n', 'dn: cn=config\n', 'c: d\n', '\n', 'e: f\n' ]
    assert extract_section(lines) == [ 'c: d\n' ]
    assert extract_section(lines[:3]) is None


def test_parse_section_ignores_lines_without_separator():
    assert parse_section([ 'nsslapd-port:389\n', 'garbage\n', 'cn: config\n' ]) == { 'cn': 'config' }


def test_parse_section_splits_on_first_separator():
    assert parse_section([ 'aci: (foo: bar)\n' ]) == { 'aci': '(foo: bar)' }


def test_repeated_keys_are_kept_in_order():
    conf = parse_section([ 'objectClass: top\n', 'objectClass: extensibleObject\n', 'objectClass: nsslapdConfig\n' ])
    assert conf == { 'objectClass': [ 'top', 'extensibleObject', 'nsslapdConfig' ] }


@pytest.mark.parametrize('val, expected', [
    ('on', True),
    ('true', True),
    ('off', False),
    ('false', False),
    ('636', 636),
    ('0.0.0.0', '0.0.0.0'),
    ('cn=Directory_Manager', 'cn=Directory_Manager'),
    ('On', 'On'),
    ([ '389', 'on' ], [ 389, True ]),
])
def test_coerce_value(val, expected):
    assert coerce_value(val) == expected


def test_full_instance(confdir, tmp_path):
    """All settings of interest are collected with the prefix stripped."""
    socket = tmp_path / 'slapd-root.socket'
    socket.touch()
    confdir.add_instance('root', DSE_FULL.format(socket=socket))
    assert discover_instances(str(confdir)) == {
        'root': {
            'ldapifilepath': str(socket),
            'ldapilisten': True,
            'listenhost': '0.0.0.0',
            'port': 389,
            'require-secure-binds': True,
            'rootdn': 'cn=Directory_Manager',
            'securePort': 636,
        }
    }


def test_ldapi_socket_must_exist(confdir, tmp_path):
    """ldapilisten is false when the socket file does not exist."""
    confdir.add_instance('root', DSE_FULL.format(socket=tmp_path / 'nosocket'))
    facts = discover_instances(str(confdir))['root']
    assert facts['ldapilisten'] is False


def test_ldapi_listen_off_is_kept(confdir, tmp_path):
    socket = tmp_path / 'slapd-root.socket'
    socket.touch()
    confdir.add_instance('root', f'dn: cn=config\nnsslapd-ldapifilepath: {socket}\nnsslapd-ldapilisten: off\n')
    assert discover_instances(str(confdir))['root']['ldapilisten'] is False


def test_secure_port_default(confdir):
    confdir.add_instance('test', 'dn: cn=config\nnsslapd-require-secure-binds: on\n')
    assert discover_instances(str(confdir)) == { 'test': { 'require-secure-binds': True, 'securePort': 636 } }


def test_secure_port_explicit(confdir):
    confdir.add_instance('test', 'dn: cn=config\nnsslapd-require-secure-binds: on\nnsslapd-securePort: 1636\n')
    assert discover_instances(str(confdir))['test']['securePort'] == 1636


def test_no_secure_port_without_secure_binds(confdir):
    confdir.add_instance('test', 'dn: cn=config\nnsslapd-require-secure-binds: off\n')
    assert 'securePort' not in discover_instances(str(confdir))['test']


def test_prefix_environment(confdir, monkeypatch):
    """Without explicit directory, ${PREFIX}/etc/dirsrv is scanned."""
    prefix = confdir.path.parent / 'prefix'
    etc = prefix / 'etc' / 'dirsrv' / 'slapd-test'
    etc.mkdir(parents=True)
    (etc / 'dse.ldif').write_text(DSE_TEST, encoding='utf-8')
    monkeypatch.setenv('PREFIX', str(prefix))
    assert discover_instances() == { 'test': { 'port': 390, 'rootdn': 'cn=Directory_Manager' } }


def test_injected_names(confdir):
    """File names and prefixes are parameters of the inventory."""
    instdir = confdir.path / 'ds-test'
    instdir.mkdir()
    (instdir / 'config.ldif').write_text(DSE_TEST, encoding='utf-8')
    inventory = InstanceInventory(str(confdir), instance_prefix='ds-', dse_file='config.ldif')
    assert inventory.discover() == { 'test': { 'port': 390, 'rootdn': 'cn=Directory_Manager' } }


def test_rescan_on_each_call(confdir):
    inventory = InstanceInventory(str(confdir))
    assert inventory.discover() == {}
    confdir.add_instance('test', DSE_TEST)
    assert list(inventory.discover()) == [ 'test' ]


def test_port_conflict():
    """A port used by another instance is rejected."""
    instances = { 'a': { 'port': 389 } }
    with pytest.raises(ConflictError) as excinfo:
        validate_ports(instances, 'b', 389)
    assert excinfo.value.port == 389
    assert excinfo.value.owner == 'a'


def test_secure_port_conflict():
    instances = { 'a': { 'port': 389, 'securePort': 636 } }
    with pytest.raises(ConflictError):
        validate_ports(instances, 'b', 390, 636)
    with pytest.raises(ConflictError):
        validate_ports(instances, 'b', 636)


def test_admin_serv_port_conflict():
    with pytest.raises(ConflictError):
        validate_ports({ 'admin-serv': { 'port': 9830 } }, 'b', 9830)


def test_no_port_conflict():
    instances = { 'a': { 'port': 389, 'securePort': 636 }, 'b': { 'port': 390 } }
    validate_ports(instances, 'b', 390)
    validate_ports(instances, 'c', 391, 637)
    validate_ports({}, 'c', 389, 636)


def test_ldapi_listen_without_socket_path(confdir):
    """ldapilisten is false when no ldapi socket path is configured."""
    confdir.add_instance('test', 'dn: cn=config\nnsslapd-ldapilisten: on\nnsslapd-port: 389\n\n')
    assert discover_instances(str(confdir)) == { 'test': { 'ldapilisten': False, 'port': 389 } }

# --- BEGIN COPYRIGHT BLOCK ---
# Copyright (C) 2022 Red Hat, Inc.
# All rights reserved.
#
# GNU General Public License v3.0+ (see COPYING or https://www.gnu.org/licenses/gpl-3.0.txt)
# --- END COPYRIGHT BLOCK ---
#
#

"""This module contains the pytest helpers"""

# pylint: disable=redefined-outer-name

import sys
from pathlib import Path
import pytest
import ldap

# The collection is imported as ansible_collections.ds389.ds389_config
REPODIR = str(Path(__file__).parent.parent.parent.parent.parent)
if REPODIR not in sys.path:
    sys.path.insert(0, REPODIR)

DIRECTORY_MANAGER = "cn=Directory_Manager"
DIRECTORY_MANAGER_PASSWORD = "secret12"


class ConfDir:
    """Build a synthetic ds389 configuration directory (i.e: /etc/dirsrv)."""

    def __init__(self, path):
        self.path = path

    def __str__(self):
        return str(self.path)

    def add_admin_serv(self, content):
        admin = self.path / 'admin-serv'
        admin.mkdir(exist_ok=True)
        (admin / 'local.conf').write_text(content, encoding='utf-8')

    def add_instance(self, dirname, dse=None):
        """Create slapd-<dirname> and its dse.ldif (if dse is not None)."""
        instdir = self.path / f'slapd-{dirname}'
        instdir.mkdir()
        if dse is not None:
            (instdir / 'dse.ldif').write_text(dse, encoding='utf-8')
        return instdir


class FakeLDAPObject:
    """Mimic the synchronous python-ldap operations used by the Reconciler."""

    def __init__(self, entries=None, search_error=None, write_error=None):
        self.entries = {}
        for dn, attrs in (entries or {}).items():
            self.entries[dn.lower()] = { key: [ str(v).encode('utf-8') for v in vals ] for key, vals in attrs.items() }
        self.search_error = search_error
        self.write_error = write_error
        self.searches = []
        self.writes = []
        self.unbound = False

    def search_s(self, base, scope, filterstr='(objectClass=*)', attrlist=None):
        assert scope == ldap.SCOPE_BASE
        self.searches.append((base, filterstr, attrlist))
        if self.search_error:
            raise self.search_error
        entry = self.entries.get(base.lower())
        if entry is None:
            raise ldap.NO_SUCH_OBJECT({'desc': 'No such object'})
        if attrlist == [ '1.1' ]:
            return [ (base, {}) ]
        wanted = [ attr.lower() for attr in attrlist or () ]
        return [ (base, { key: vals for key, vals in entry.items() if not wanted or key.lower() in wanted }) ]

    def modify_s(self, dn, mods):
        if self.write_error:
            raise self.write_error
        self.writes.append(('modify', dn, mods))
        entry = self.entries.get(dn.lower())
        if entry is None:
            raise ldap.NO_SUCH_OBJECT({'desc': 'No such object'})
        for op, attr, vals in mods:
            assert op == ldap.MOD_REPLACE
            for key in [ key for key in entry if key.lower() == attr.lower() ]:
                del entry[key]
            entry[attr] = vals

    def add_s(self, dn, modlist):
        if self.write_error:
            raise self.write_error
        self.writes.append(('add', dn, modlist))
        if dn.lower() in self.entries:
            raise ldap.ALREADY_EXISTS({'desc': 'Already exists'})
        self.entries[dn.lower()] = dict(modlist)

    def unbind_s(self):
        self.unbound = True


class RestartRecorder:
    """A restart callback that only records the restarted instances."""

    def __init__(self):
        self.restarted = []

    def __call__(self, name):
        self.restarted.append(name)


@pytest.fixture(scope='function')
def confdir(tmp_path):
    """Provide an empty configuration directory."""
    path = tmp_path / 'dirsrv'
    path.mkdir()
    return ConfDir(path)


@pytest.fixture(scope='function')
def pwfile(tmp_path):
    """Provide a root dn password file."""
    path = tmp_path / 'ds_pw.txt'
    path.write_text(f'{DIRECTORY_MANAGER_PASSWORD}\n', encoding='utf-8')
    return str(path)


@pytest.fixture(scope='function')
def fake_ldap():
    """Provide a FakeLDAPObject containing a cn=config entry."""
    return FakeLDAPObject({
        'cn=config': {
            'objectClass': [ 'top', 'extensibleObject', 'nsslapdConfig' ],
            'nsslapd-port': [ '389' ],
            'nsslapd-securePort': [ '636' ],
            'nsslapd-listenhost': [ '127.0.0.1' ],
        },
        'cn=encryption,cn=config': {
            'objectClass': [ 'top', 'nsEncryptionConfig' ],
            'nsSSL3': [ 'on' ],
        },
    })


@pytest.fixture(scope='function')
def make_fake_ldap():
    """Provide the FakeLDAPObject class (to build servers that fail)."""
    return FakeLDAPObject


@pytest.fixture(scope='function')
def restarts():
    """Provide a RestartRecorder."""
    return RestartRecorder()

# --- BEGIN COPYRIGHT BLOCK ---
# Copyright (C) 2022 Red Hat, Inc.
# All rights reserved.
#
# GNU General Public License v3.0+ (see COPYING or https://www.gnu.org/licenses/gpl-3.0.txt)
# --- END COPYRIGHT BLOCK ---
#

"""This module drives the ds389 attributes and entries toward their wanted value."""

### I found fstring more readable than lazy % formatting even if it is a bit slower:
# pylint: disable=logging-fstring-interpolation

DOCUMENTATION = r'''
---
module: ds389_ldap

short_description: This module provides the idempotent ldap updates used by ds389_config

version_added: "1.0.0"

description:
    - Credentials class:      the way to reach and bind to an instance (tcp or ldapi)
    - ConfigAttribute class:  an attribute value that should be set in an entry
    - EntrySpec class:        an entry that should exist
    - Reconciler class:       the class that reads the current state and only writes what differs

author:
    - Pierre Rogier (@progier389)

requirements:
    - python >= 3.9
    - python-ldap
'''

from dataclasses import dataclass, field
from typing import Optional
import ldap
import ldap.dn
from ldapurl import ldapUrlEscape
from lib389.utils import ensure_str, ensure_list_bytes

from .ds389_util import ConnectivityError, WriteError, Ds389Error, get_log, ldapi_socket_path


CHANGED = 'changed'
UNCHANGED = 'unchanged'

DEFAULT_TIMEOUT = 30


def ldap_error_message(exc):
    """Return the server diagnostic stored in a python-ldap exception."""
    if exc.args and isinstance(exc.args[0], dict):
        desc = exc.args[0].get('desc', '')
        info = exc.args[0].get('info')
        if info:
            return f"{desc}: {info}"
        return desc
    return str(exc)


def ldap_str(val):
    """Return the string stored in the server for val (booleans become on/off)."""
    if isinstance(val, bool):
        return 'on' if val else 'off'
    return str(val)


@dataclass
class Credentials:
    """How to reach an instance. The password is read from pw_file when binding."""
    bind_dn: str
    pw_file: str
    host: str = '127.0.0.1'
    port: int = 389
    ldapi_path: Optional[str] = None
    timeout: int = DEFAULT_TIMEOUT

    def uri(self):
        if self.ldapi_path:
            return f'ldapi://{ldapUrlEscape(self.ldapi_path)}'
        return f'ldap://{self.host}:{self.port}'

    def read_password(self):
        try:
            with open(self.pw_file, 'r', encoding='utf-8') as fd:
                return fd.read().rstrip('\r\n')
        except OSError as e:
            raise ConnectivityError(f"Cannot read the password file {self.pw_file}: {e.strerror}") from e


# The module options describing how to reach an instance (cf ds389_connection_doc)
CONNECTION_OPTIONS = {
    'root_dn': { 'type': 'str', 'required': True },
    'root_pw_file': { 'type': 'path', 'required': True, 'no_log': False },
    'host': { 'type': 'str', 'default': '127.0.0.1' },
    'port': { 'type': 'int', 'default': 389 },
    'instance_name': { 'type': 'str' },
    'force_ldapi': { 'type': 'bool', 'default': False },
    'ldapi_path': { 'type': 'path' },
    'restart_instance': { 'type': 'bool', 'default': False },
    'timeout': { 'type': 'int', 'default': DEFAULT_TIMEOUT },
    'ansible_verbosity': { 'type': 'int', 'default': 0 },
}


def credentials_from_params(params):
    ldapi_path = None
    if params.get('force_ldapi'):
        ldapi_path = params.get('ldapi_path')
        if not ldapi_path:
            if not params.get('instance_name'):
                raise Ds389Error('force_ldapi requires either instance_name or ldapi_path.')
            ldapi_path = ldapi_socket_path(params['instance_name'])
    return Credentials(bind_dn=params['root_dn'],
                       pw_file=params['root_pw_file'],
                       host=params.get('host') or '127.0.0.1',
                       port=params.get('port') or 389,
                       ldapi_path=ldapi_path,
                       timeout=params.get('timeout') or DEFAULT_TIMEOUT)


def open_connection(credentials):
    """Open a connection and bind with the credentials."""
    uri = credentials.uri()
    get_log().debug(f'Binding as {credentials.bind_dn} on {uri}')
    password = credentials.read_password()
    try:
        conn = ldap.initialize(uri)
        conn.set_option(ldap.OPT_NETWORK_TIMEOUT, credentials.timeout)
        conn.set_option(ldap.OPT_TIMEOUT, credentials.timeout)
        conn.set_option(ldap.OPT_REFERRALS, 0)
        conn.simple_bind_s(credentials.bind_dn, password)
    except ldap.LDAPError as e:
        raise ConnectivityError(f"Cannot bind as {credentials.bind_dn} on {uri}: {ldap_error_message(e)}") from e
    return conn


@dataclass
class ConfigAttribute:
    dn: str
    key: str
    value: object

    def wanted(self):
        return ldap_str(self.value).strip()


@dataclass
class EntrySpec:
    """An entry to add. Rendering order: rdn attribute, sorted object classes, then attrs in given order."""
    dn: str
    objectclass: list
    attrs: dict = field(default_factory=dict)

    def rdn(self):
        try:
            attr, val, _flags = ldap.dn.str2dn(self.dn)[0][0]
        except (ldap.DECODING_ERROR, IndexError) as e:
            raise Ds389Error(f"Invalid dn: '{self.dn}'") from e
        return attr, val

    def to_list(self):
        rdn_attr, rdn_val = self.rdn()
        res = []
        if rdn_attr.lower() not in (k.lower() for k in self.attrs):
            res.append((rdn_attr, [ rdn_val ]))
        res.append(('objectClass', sorted(self.objectclass)))
        for attr, vals in self.attrs.items():
            if not isinstance(vals, (list, tuple)):
                vals = [ vals ]
            res.append((attr, [ ldap_str(val) for val in vals ]))
        return res

    def to_ldif(self):
        lines = [ f'dn: {self.dn}' ]
        for attr, vals in self.to_list():
            for val in vals:
                lines.append(f'{attr}: {val}')
        return '\n'.join(lines) + '\n'

    def to_modlist(self):
        return [ (attr, ensure_list_bytes(vals)) for attr, vals in self.to_list() ]


class Reconciler:
    """Compare the live server state with the wanted one and only write the differences.

       A query failure is never handled as a missing value and nothing is retried:
       the next playbook run is the retry loop.
    """

    def __init__(self, credentials, instance_name=None, restart_cb=None, connect=open_connection, check_mode=False):
        self.credentials = credentials
        self.instance_name = instance_name
        self.restart_cb = restart_cb
        self.connect = connect
        self.check_mode = check_mode
        self.changes = []
        self._conn = None

    @property
    def conn(self):
        if self._conn is None:
            self._conn = self.connect(self.credentials)
        return self._conn

    def close(self):
        if self._conn is not None:
            try:
                self._conn.unbind_s()
            except ldap.LDAPError as e:
                get_log().debug(f'unbind failed: {e}')
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def _search_base(self, dn, attrlist):
        try:
            return self.conn.search_s(dn, ldap.SCOPE_BASE, '(objectClass=*)', attrlist)
        except ldap.NO_SUCH_OBJECT:
            return None
        except ldap.LDAPError as e:
            raise ConnectivityError(f"search_s({dn}, {attrlist}) on {self.credentials.uri()} failed: "
                                    f"{ldap_error_message(e)}") from e

    def _write(self, fname, dn, mods):
        try:
            getattr(self.conn, fname)(dn, mods)
        except ldap.LDAPError as e:
            raise WriteError(f"{fname}({dn}) on {self.credentials.uri()} failed: {ldap_error_message(e)}") from e

    def get_values(self, dn, key):
        """Return the stripped values of attribute key in entry dn (empty list if absent)."""
        res = self._search_base(dn, [ key ])
        for _dn, attrs in res or ():
            for attr, vals in attrs.items():
                if attr.lower() == key.lower():
                    try:
                        return [ ensure_str(val).strip() for val in vals ]
                    except UnicodeDecodeError as e:
                        raise ConnectivityError(f"{key} value in {dn} is not an utf-8 string: {e}") from e
        return []

    def entry_exists(self, dn):
        return bool(self._search_base(dn, [ '1.1' ]))

    def check_restart(self, restart=True):
        """Fail before any write if a restart is wanted but cannot be done."""
        if restart and (self.restart_cb is None or not self.instance_name):
            raise Ds389Error('Restarting requires an instance name.')

    def notify_restart(self):
        self.check_restart()
        if self.check_mode:
            return
        get_log().info(f'Restarting instance {self.instance_name}')
        self.changes.append(f'Restart instance {self.instance_name}')
        self.restart_cb(self.instance_name)

    def _set(self, target):
        current = self.get_values(target.dn, target.key)
        if target.wanted() in current:
            get_log().debug(f'{target.key} is already {target.wanted()} in {target.dn}')
            return UNCHANGED
        get_log().info(f'Set {target.key}:{target.wanted()} in {target.dn} (was {current})')
        self.changes.append(f'Set {target.key}:{target.wanted()} in {target.dn}')
        if not self.check_mode:
            mods = [ (ldap.MOD_REPLACE, target.key, ensure_list_bytes([ target.wanted() ])) ]
            self._write('modify_s', target.dn, mods)
        return CHANGED

    def reconcile(self, target, restart=False):
        """Set target value if it is not already set. Returns CHANGED or UNCHANGED."""
        self.check_restart(restart)
        result = self._set(target)
        if result == CHANGED and restart:
            self.notify_restart()
        return result

    def reconcile_many(self, attrs, restart=False):
        """Reconcile a { dn: { key: value } } dict. The instance is restarted at most once."""
        self.check_restart(restart)
        result = UNCHANGED
        for dn, keyvals in attrs.items():
            for key, value in keyvals.items():
                if self._set(ConfigAttribute(dn, key, value)) == CHANGED:
                    result = CHANGED
        if result == CHANGED and restart:
            self.notify_restart()
        return result

    def add_entry(self, entry, restart=False):
        """Add entry if there is no entry with the same dn. Returns CHANGED or UNCHANGED."""
        self.check_restart(restart)
        if self.entry_exists(entry.dn):
            get_log().debug(f'Entry {entry.dn} already exists')
            return UNCHANGED
        get_log().info(f'Adding entry {entry.dn}')
        self.changes.append(f'Add entry {entry.dn}')
        if not self.check_mode:
            self._write('add_s', entry.dn, entry.to_modlist())
        if restart:
            self.notify_restart()
        return CHANGED

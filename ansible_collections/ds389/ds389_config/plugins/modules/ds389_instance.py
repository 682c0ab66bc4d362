#!/usr/bin/python3
# -*- coding: utf-8 -*

# --- BEGIN COPYRIGHT BLOCK ---
# Copyright (C) 2022 Red Hat, Inc.
# All rights reserved.
#
# GNU General Public License v3.0+ (see COPYING or https://www.gnu.org/licenses/gpl-3.0.txt)
# --- END COPYRIGHT BLOCK ---
#

from __future__ import (absolute_import, division, print_function)
__metaclass__ = type

DOCUMENTATION = r'''
---
module: ds389_instance

short_description: Create a ds389 instance and converge its core and TLS configuration.

version_added: "1.0.0"

description:
    - Check that the wanted ports are not used by another instance of the host
      before doing anything.
    - Create the instance if it does not exist.
    - Enable ldapi, then set the listen address and port, then the TLS settings.
    - The instance is restarted only if a setting changed.

options:
    name:
        description: The instance name (must be a valid systemd service name).
        required: true
        type: str
    base_dn:
        description: The suffix of the userroot backend created with the instance.
        required: true
        type: str
    root_dn:
        description: The directory manager DN.
        required: true
        type: str
    root_pw_file:
        description: Path of a file containing the root_dn password.
        required: true
        type: path
    root_dn_password:
        description: The root_dn password used when creating the instance (defaults to the root_pw_file content).
        required: false
        type: str
    listen_address:
        description: The address the instance listens on.
        required: false
        default: 127.0.0.1
        type: str
    port:
        description: The ldap port.
        required: false
        default: 389
        type: int
    secure_port:
        description: The ldaps port (only used when enable_tls is set).
        required: false
        default: 636
        type: int
    enable_tls:
        description:
            - Configure the instance encryption settings.
            - The certificates must already be present in the instance NSS database.
        required: false
        default: false
        type: bool
    tls_params:
        description: A dict of dn -> { attribute -> value } overriding the default TLS settings.
        required: false
        default: {}
        type: dict
    confdir:
        description: The directory containing the slapd-* instances directories.
        required: false
        type: path
    timeout:
        description: Timeout in seconds of every ldap operation.
        required: false
        default: 30
        type: int
    ansible_verbosity:
        description: Number of -v options in ansible-playbook command
        required: false
        default: 0
        type: int

author:
    - Pierre Rogier (@progier389)

requirements:
    - python >= 3.9
    - python-ldap
    - python3-lib389 >= 2.2
    - 389-ds-base >= 2.2
'''

EXAMPLES = r'''
- name: Default instance
  ds389.ds389_config.ds389_instance:
    name: puppet_default
    base_dn: "dc=example,dc=com"
    root_dn: "cn=Directory_Manager"
    root_pw_file: /usr/share/puppet_ds389_config/puppet_default_ds_pw.txt
    listen_address: 0.0.0.0
    enable_tls: true
'''

RETURN = r'''
changes:
    description: The list of changes that were done (or would be done in check mode).
    type: list
    elements: str
    returned: always
    sample: [ "Create instance test", "Set nsslapd-listenhost:0.0.0.0 in cn=config", "Restart instance test" ]
'''

import io
import re

from ansible.module_utils.basic import AnsibleModule
from ansible_collections.ds389.ds389_config.plugins.module_utils.ds389_facts import (
    discover_instances, validate_ports)
from ansible_collections.ds389.ds389_config.plugins.module_utils.ds389_ldap import (
    CHANGED, Credentials, EntrySpec, Reconciler, open_connection)
from ansible_collections.ds389.ds389_config.plugins.module_utils.ds389_service import (
    create_instance, restart_instance)
from ansible_collections.ds389.ds389_config.plugins.module_utils.ds389_util import (
    Ds389Error, init_log, get_log, ldapi_socket_path, safe_dup, set_verbosity)


_logbuff = io.StringIO()
init_log("ds389_instance", stream=_logbuff)


RSA_ENTRY = EntrySpec('cn=RSA,cn=encryption,cn=config',
                      [ 'top', 'nsEncryptionModule' ],
                      { 'nsSSLPersonalitySSL': 'Server-Cert',
                        'nsSSLActivation': 'on',
                        'nsSSLToken': 'internal (software)' })

TLS_ATTRS = {
    'cn=encryption,cn=config': {
        'allowWeakCipher': 'off',
        'allowWeakDHParam': 'off',
        'nsSSL2': 'off',
        'nsSSL3': 'off',
        'nsSSLClientAuth': 'required',
        'nsTLS1': 'on',
        'nsTLSAllowClientRenegotiation': 'on',
        'sslVersionMax': 'TLS1.2',
        'sslVersionMin': 'TLS1.2',
    },
    'cn=config': {
        'nsslapd-ssl-check-hostname': 'on',
        'nsslapd-validate-cert': 'on',
        'nsslapd-minssf': '256',
        'nsslapd-security': 'on',
    },
}

NO_TLS_ATTRS = { 'cn=config': { 'nsslapd-minssf': '0' } }


def validate_name(name):
    if not re.fullmatch(r'[A-Za-z0-9:_.\-]+', name):
        raise Ds389Error(f"'{name}' must be a valid systemd service name")


def tls_attributes(params):
    """Return the TLS settings, merged with the tls_params overrides."""
    if not params['enable_tls']:
        return NO_TLS_ATTRS
    attrs = { dn: { **keyvals } for dn, keyvals in TLS_ATTRS.items() }
    attrs['cn=config']['nsslapd-securePort'] = str(params['secure_port'])
    for dn, keyvals in (params.get('tls_params') or {}).items():
        if dn not in attrs or not isinstance(keyvals, dict):
            raise Ds389Error(f"Invalid tls_params entry '{dn}': expecting one of {list(attrs)}")
        attrs[dn].update({ key: str(val) for key, val in keyvals.items() })
    return attrs


def root_password(params):
    if params.get('root_dn_password'):
        return params['root_dn_password']
    return Credentials(params['root_dn'], params['root_pw_file']).read_password()


def manage_instance(params, check_mode=False, connect=open_connection,
                    restart_cb=restart_instance, create_cb=create_instance):
    """Converge an instance toward params. Returns the module result."""
    name = params['name']
    validate_name(name)
    changes = []

    # One inventory snapshot is used for all the port checks.
    instances = discover_instances(params.get('confdir'))
    secure_port = params['secure_port'] if params['enable_tls'] else None
    validate_ports(instances, name, params['port'], secure_port)

    if name not in instances:
        changes.append(f'Create instance {name}')
        if check_mode:
            return { 'changed': True, 'changes': changes }
        create_cb(name, params['base_dn'], params['root_dn'], root_password(params), params['port'])
        facts = {}
    else:
        facts = instances[name]

    ldapi_path = ldapi_socket_path(name)
    if not facts.get('ldapilisten'):
        # ldapi is not available yet: enable it through the ldap port the instance listens on now.
        host = facts.get('listenhost') or params['listen_address']
        if isinstance(host, list):
            host = host[0]
        if host in ('0.0.0.0', '::'):
            host = '127.0.0.1'
        tcp = Credentials(params['root_dn'], params['root_pw_file'], host=host,
                          port=facts.get('port', params['port']), timeout=params['timeout'])
        with Reconciler(tcp, instance_name=name, restart_cb=restart_cb,
                        connect=connect, check_mode=check_mode) as reconciler:
            res = reconciler.reconcile_many({ 'cn=config': {
                'nsslapd-ldapilisten': 'on',
                'nsslapd-ldapifilepath': ldapi_path,
                'nsslapd-ldapiautobind': 'on',
                'nsslapd-ldapimaprootdn': params['root_dn'],
            } }, restart=True)
            changes.extend(reconciler.changes)
        if check_mode and res == CHANGED:
            # The ldapi socket would only exist after the restart.
            return { 'changed': True, 'changes': changes }

    ldapi = Credentials(params['root_dn'], params['root_pw_file'], ldapi_path=ldapi_path, timeout=params['timeout'])
    with Reconciler(ldapi, instance_name=name, restart_cb=restart_cb,
                    connect=connect, check_mode=check_mode) as reconciler:
        reconciler.check_restart()
        res = [ reconciler.reconcile_many({ 'cn=config': {
            'nsslapd-listenhost': params['listen_address'],
            'nsslapd-port': str(params['port']),
        } }) ]
        if params['enable_tls']:
            res.append(reconciler.add_entry(RSA_ENTRY))
        res.append(reconciler.reconcile_many(tls_attributes(params)))
        if CHANGED in res:
            reconciler.notify_restart()
        changes.extend(reconciler.changes)

    return { 'changed': bool(changes), 'changes': changes }


def run_module():
    module_args = {
        'name': { 'type': 'str', 'required': True },
        'base_dn': { 'type': 'str', 'required': True },
        'root_dn': { 'type': 'str', 'required': True },
        'root_pw_file': { 'type': 'path', 'required': True, 'no_log': False },
        'root_dn_password': { 'type': 'str', 'no_log': True },
        'listen_address': { 'type': 'str', 'default': '127.0.0.1' },
        'port': { 'type': 'int', 'default': 389 },
        'secure_port': { 'type': 'int', 'default': 636 },
        'enable_tls': { 'type': 'bool', 'default': False },
        'tls_params': { 'type': 'dict', 'default': {} },
        'confdir': { 'type': 'path' },
        'timeout': { 'type': 'int', 'default': 30 },
        'ansible_verbosity': { 'type': 'int', 'default': 0 },
    }

    module = AnsibleModule(
        argument_spec=module_args,
        supports_check_mode=True
    )
    set_verbosity(module.params['ansible_verbosity'])
    get_log().debug(f"ds389_instance invoked with {safe_dup(module.params)}")

    try:
        result = manage_instance(module.params, check_mode=module.check_mode)
    except Ds389Error as e:
        module.fail_json(msg=str(e), debug=_logbuff.getvalue())

    if module.params['ansible_verbosity'] > 0 and _logbuff.getvalue():
        result['debug'] = _logbuff.getvalue()
    module.exit_json(**result)


def main():
    run_module()


if __name__ == '__main__':
    main()

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
module: ds389_dn

short_description: Add a ds389 entry if there is no entry with the same dn.

version_added: "1.0.0"

description:
    - Look for an entry with the wanted dn on the live instance and add it if it is missing.
    - An existing entry is never modified (use ds389_attr to change its attributes).

extends_documentation_fragment:
    - ds389.ds389_config.ds389_connection_doc

options:
    dn:
        description: The dn of the entry.
        required: true
        type: str
    objectclass:
        description: The entry object classes.
        required: true
        type: list
        elements: str
    attrs:
        description: The entry attributes (the rdn attribute is added from the dn).
        required: false
        default: {}
        type: dict

author:
    - Pierre Rogier (@progier389)

requirements:
    - python >= 3.9
    - python-ldap
    - python3-lib389 >= 2.2
'''

EXAMPLES = r'''
- name: Add the RSA module entry
  ds389.ds389_config.ds389_dn:
    dn: "cn=RSA,cn=encryption,cn=config"
    objectclass: [ top, nsEncryptionModule ]
    attrs:
      nsSSLPersonalitySSL: Server-Cert
      nsSSLActivation: "on"
      nsSSLToken: internal (software)
    root_dn: "cn=Directory_Manager"
    root_pw_file: /usr/share/puppet_ds389_config/test_ds_pw.txt
    instance_name: test
    force_ldapi: true
'''

RETURN = r'''
ldif:
    description: The entry as it is (or would be) added.
    type: str
    returned: always
    sample: "dn: dc=foo,dc=bar\ndc: foo\nobjectClass: MyObj1\nobjectClass: MyObj2\nfoo: bar\n"
changes:
    description: The list of changes that were done (or would be done in check mode).
    type: list
    elements: str
    returned: always
'''

import io

from ansible.module_utils.basic import AnsibleModule
from ansible_collections.ds389.ds389_config.plugins.module_utils.ds389_ldap import (
    CHANGED, CONNECTION_OPTIONS, EntrySpec, Reconciler, credentials_from_params)
from ansible_collections.ds389.ds389_config.plugins.module_utils.ds389_service import restart_instance
from ansible_collections.ds389.ds389_config.plugins.module_utils.ds389_util import (
    Ds389Error, init_log, get_log, set_verbosity, safe_dup)


_logbuff = io.StringIO()
init_log("ds389_dn", stream=_logbuff)


def add_entry(params, reconciler):
    entry = EntrySpec(params['dn'], params['objectclass'], params.get('attrs') or {})
    ldif = entry.to_ldif()
    with reconciler:
        res = reconciler.add_entry(entry, restart=params.get('restart_instance', False))
    return { 'changed': res == CHANGED, 'changes': reconciler.changes, 'ldif': ldif }


def run_module():
    module_args = {
        'dn': { 'type': 'str', 'required': True },
        'objectclass': { 'type': 'list', 'elements': 'str', 'required': True },
        'attrs': { 'type': 'dict', 'default': {} },
        **CONNECTION_OPTIONS,
    }

    module = AnsibleModule(
        argument_spec=module_args,
        required_if=[ ('restart_instance', True, ('instance_name',)) ],
        supports_check_mode=True
    )
    set_verbosity(module.params['ansible_verbosity'])
    get_log().debug(f"ds389_dn invoked with {safe_dup(module.params)}")

    try:
        reconciler = Reconciler(credentials_from_params(module.params),
                                instance_name=module.params['instance_name'],
                                restart_cb=restart_instance,
                                check_mode=module.check_mode)
        result = add_entry(module.params, reconciler)
    except Ds389Error as e:
        module.fail_json(msg=str(e), debug=_logbuff.getvalue())

    if module.params['ansible_verbosity'] > 0 and _logbuff.getvalue():
        result['debug'] = _logbuff.getvalue()
    module.exit_json(**result)


def main():
    run_module()


if __name__ == '__main__':
    main()

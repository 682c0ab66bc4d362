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
module: ds389_attr

short_description: Set ds389 attributes if they are not already set.

version_added: "1.0.0"

description:
    - Read the current value of the attributes on the live instance and replace
      the ones that differ from the wanted value.
    - Nothing is written (and the instance is not restarted) when all values are already set.

extends_documentation_fragment:
    - ds389.ds389_config.ds389_connection_doc

options:
    key:
        description: The attribute to set in base_dn. Mutually exclusive with attrs.
        required: false
        type: str
    value:
        description: The wanted value of key.
        required: false
        type: str
    base_dn:
        description: The entry holding key.
        required: false
        default: cn=config
        type: str
    attrs:
        description:
            - A dict of dn -> { attribute -> value } to set.
            - Entries are handled in the dict order.
        required: false
        type: dict

author:
    - Pierre Rogier (@progier389)

requirements:
    - python >= 3.9
    - python-ldap
    - python3-lib389 >= 2.2
'''

EXAMPLES = r'''
- name: Set the instance size limit
  ds389.ds389_config.ds389_attr:
    key: nsslapd-sizelimit
    value: "2000"
    root_dn: "cn=Directory_Manager"
    root_pw_file: /usr/share/puppet_ds389_config/test_ds_pw.txt
    instance_name: test
    force_ldapi: true
    restart_instance: true

- name: Configure several entries at once
  ds389.ds389_config.ds389_attr:
    attrs:
      "cn=encryption,cn=config":
        sslVersionMin: TLS1.2
      "cn=config":
        nsslapd-minssf: "256"
    root_dn: "cn=Directory_Manager"
    root_pw_file: /usr/share/puppet_ds389_config/test_ds_pw.txt
    port: 390
'''

RETURN = r'''
changes:
    description: The list of changes that were done (or would be done in check mode).
    type: list
    elements: str
    returned: always
    sample: [ "Set nsslapd-sizelimit:2000 in cn=config", "Restart instance test" ]
'''

import io

from ansible.module_utils.basic import AnsibleModule
from ansible_collections.ds389.ds389_config.plugins.module_utils.ds389_ldap import (
    CHANGED, CONNECTION_OPTIONS, Reconciler, credentials_from_params)
from ansible_collections.ds389.ds389_config.plugins.module_utils.ds389_service import restart_instance
from ansible_collections.ds389.ds389_config.plugins.module_utils.ds389_util import (
    Ds389Error, init_log, get_log, set_verbosity, safe_dup)


_logbuff = io.StringIO()
init_log("ds389_attr", stream=_logbuff)


def wanted_attributes(params):
    """Return the { dn: { key: value } } dict described by the parameters."""
    if params.get('attrs'):
        return params['attrs']
    return { params['base_dn']: { params['key']: params['value'] } }


def set_attributes(params, reconciler):
    attrs = wanted_attributes(params)
    with reconciler:
        res = reconciler.reconcile_many(attrs, restart=params.get('restart_instance', False))
    return { 'changed': res == CHANGED, 'changes': reconciler.changes }


def run_module():
    module_args = {
        'key': { 'type': 'str', 'no_log': False },
        'value': { 'type': 'str' },
        'base_dn': { 'type': 'str', 'default': 'cn=config' },
        'attrs': { 'type': 'dict' },
        **CONNECTION_OPTIONS,
    }

    module = AnsibleModule(
        argument_spec=module_args,
        mutually_exclusive=[ ('key', 'attrs') ],
        required_one_of=[ ('key', 'attrs') ],
        required_together=[ ('key', 'value') ],
        required_if=[ ('restart_instance', True, ('instance_name',)) ],
        supports_check_mode=True
    )
    set_verbosity(module.params['ansible_verbosity'])
    get_log().debug(f"ds389_attr invoked with {safe_dup(module.params)}")

    try:
        reconciler = Reconciler(credentials_from_params(module.params),
                                instance_name=module.params['instance_name'],
                                restart_cb=restart_instance,
                                check_mode=module.check_mode)
        result = set_attributes(module.params, reconciler)
    except Ds389Error as e:
        module.fail_json(msg=str(e), debug=_logbuff.getvalue())

    if module.params['ansible_verbosity'] > 0 and _logbuff.getvalue():
        result['debug'] = _logbuff.getvalue()
    module.exit_json(**result)


def main():
    run_module()


if __name__ == '__main__':
    main()

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
module: ds389_info

short_description: This module provides info on the ldap server instances available on the local host.

version_added: "1.0.0"

description:
    - This module collects the ds389 (or RHDS) instances configured on the local host
      and some of their cn=config settings.
    - Instances whose directory name ends with .removed are ignored.
    - The result is stored in the ds389__instances fact.

options:
    confdir:
        description:
            - The directory containing the slapd-* instances directories.
            - Defaults to ${PREFIX}/etc/dirsrv
        required: false
        type: path
    ansible_verbosity:
        description: Number of -v options in ansible-playbook command
        required: false
        default: 0
        type: int

author:
    - Pierre Rogier (@progier389)

requirements:
    - python >= 3.9
'''

EXAMPLES = r'''
- name: Gather the ds389 instances
  ds389.ds389_config.ds389_info:

- name: Show the instances
  ansible.builtin.debug:
    var: ds389__instances
'''

RETURN = r'''
ansible_facts:
    description: The facts about the ds389 instances.
    type: dict
    returned: always
    sample: {
        "ds389__instances": {
            "admin-serv": {
                "port": 9830
            },
            "puppet_default_root": {
                "ldapifilepath": "/var/run/slapd-puppet_default_root.socket",
                "ldapilisten": true,
                "listenhost": "0.0.0.0",
                "port": 389,
                "require-secure-binds": true,
                "rootdn": "cn=Directory_Manager",
                "securePort": 636
            },
            "test_instance": {
                "ldapifilepath": "/var/run/slapd-test_instance.socket",
                "ldapilisten": true,
                "listenhost": "0.0.0.0",
                "port": 390,
                "rootdn": "cn=Directory_Manager"
            }
        }
    }
'''

import io
import json

from ansible.module_utils.basic import AnsibleModule, env_fallback
from ansible_collections.ds389.ds389_config.plugins.module_utils.ds389_facts import discover_instances
from ansible_collections.ds389.ds389_config.plugins.module_utils.ds389_util import init_log, get_log, set_verbosity


_logbuff = io.StringIO()
init_log("ds389_info", stream=_logbuff)


def gather_facts(confdir=None):
    """Return the module result for the instances found in confdir."""
    return {
        'changed': False,
        'ansible_facts': { 'ds389__instances': discover_instances(confdir) },
    }


def run_module():
    module_args = {
        'confdir': { 'type': 'path', 'required': False, 'fallback': (env_fallback, ['DS389_CONFDIR']) },
        'ansible_verbosity': { 'type': 'int', 'default': 0 },
    }

    module = AnsibleModule(
        argument_spec=module_args,
        supports_check_mode=True
    )
    set_verbosity(module.params['ansible_verbosity'])

    # Discovery only reads the file system so it is also done in check mode
    result = gather_facts(module.params['confdir'])
    get_log().debug(f"Result is: {json.dumps(result, sort_keys=True, indent=4)}")
    if module.params['ansible_verbosity'] > 0 and _logbuff.getvalue():
        result['debug'] = _logbuff.getvalue()
    module.exit_json(**result)


def main():
    run_module()


if __name__ == '__main__':
    main()

# --- BEGIN COPYRIGHT BLOCK ---
# Copyright (C) 2022 Red Hat, Inc.
# All rights reserved.
#
# GNU General Public License v3.0+ (see COPYING or https://www.gnu.org/licenses/gpl-3.0.txt)
# --- END COPYRIGHT BLOCK ---
#

"""This module starts, restarts and creates ds389 instances through lib389."""

# pylint: disable=logging-fstring-interpolation

DOCUMENTATION = r'''
---
module: ds389_service

short_description: This module handles the ds389 instances processes

version_added: "1.0.0"

description:
    - restart_instance:   restart an instance (only called when its configuration changed)
    - create_instance:    create an instance with dscreate logic

author:
    - Pierre Rogier (@progier389)

requirements:
    - python >= 3.9
    - python3-lib389 >= 2.2
    - 389-ds-base >= 2.2
'''

import random
from configparser import ConfigParser
from lib389 import DirSrv
from lib389.instance.setup import SetupDs

from .ds389_util import get_log


def get_dirsrv(name):
    dirsrv = DirSrv()
    dirsrv.local_simple_allocate(serverid=name)
    return dirsrv


def restart_instance(name):
    get_log().info(f'Restarting instance {name}')
    get_dirsrv(name).restart(post_open=False)


def build_inf_config(name, base_dn, root_dn, root_dn_password=None, port=389, secure_port=None):
    """Build the dscreate configuration of a new instance."""
    config = ConfigParser()
    config['general'] = { 'config_version': '2', 'start': 'True' }
    config['slapd'] = {
        'instance_name': name,
        'root_dn': root_dn,
        'port': str(port),
    }
    if secure_port:
        config['slapd']['secure_port'] = str(secure_port)
    if not root_dn_password:
        # Do not use the default password but generates a random one
        # Anyway we do not need it any more as we use ldapi
        chars = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-.!"
        root_dn_password = "".join(random.choices(chars, k=25))
    config['slapd']['root_password'] = root_dn_password
    config['backend-userroot'] = { 'suffix': base_dn, 'sample_entries': 'no' }
    return config


def create_instance(name, base_dn, root_dn, root_dn_password=None, port=389, secure_port=None):
    get_log().debug(f"create_instance {name}")
    config = build_inf_config(name, base_dn, root_dn, root_dn_password, port, secure_port)
    s = SetupDs(log=get_log())
    # pylint: disable=protected-access
    general, slapd, backends = s._validate_ds_config(config)
    s.create_from_args(general, slapd, backends)

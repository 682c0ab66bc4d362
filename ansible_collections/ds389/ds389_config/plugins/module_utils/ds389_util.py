# --- BEGIN COPYRIGHT BLOCK ---
# Copyright (C) 2022 Red Hat, Inc.
# All rights reserved.
#
# GNU General Public License v3.0+ (see COPYING or https://www.gnu.org/licenses/gpl-3.0.txt)
# --- END COPYRIGHT BLOCK ---
#
#

"""This module provides utility classes and function useful for ds389_config."""

DOCUMENTATION = r'''
---
module: ds389_util

short_description: This module provides utility classes and function useful for ds389_config

version_added: "1.0.0"

description:
    - init_log function:      an utility function to initialize the log framework
    - get_log function:       returns the collection logger
    - Ds389Error class:       the base class of the errors raised by ds389_config
    - safe_dup function:      duplicate module parameters while hiding the secrets
    - set_verbosity function: map ansible verbosity to a logging level
    - get_confdir function:   the directory containing the instances configuration
    - ldapi_socket_path:      the default ldapi socket of an instance

author:
    - Pierre Rogier (@progier389)

requirements:
    - python >= 3.9
'''

# pylint: disable=invalid-name

import os
import sys
import logging


DEFAULT_CONFDIR = '/etc/dirsrv'

HIDDEN_ARGS = ( 'root_dn_password', 'rootpw', 'userpassword' )


# Initialize logging system
_log = None


def init_log(name, stream=sys.stderr):
    # pylint: disable=global-statement
    global _log
    # pylint: enable=global-statement
    _log = logging.getLogger(name)
    _log.setLevel(logging.DEBUG)
    logh = logging.StreamHandler(stream)
    fmt = '[%(asctime)s] %(levelname)s - %(filename)s[%(lineno)d]: %(message)s'
    datefmt = '%Y/%m/%d %H:%M:%S %z'
    logh.setFormatter(logging.Formatter(fmt, datefmt))
    logh.setLevel(logging.DEBUG)
    _log.addHandler(logh)
    _log.setLevel(logging.ERROR)
    return _log


def get_log():
    if not _log:
        init_log("ds389_config")
    return _log


def set_verbosity(debuglvl):
    """Map the number of -v of ansible-playbook to a logging level."""
    if debuglvl >= 4:
        get_log().setLevel(logging.DEBUG)
    elif debuglvl == 3:
        get_log().setLevel(logging.INFO)
    elif debuglvl >= 1:
        get_log().setLevel(logging.WARNING)


def get_confdir(confdir=None):
    """Return the directory holding the instances configuration directories.

       An explicit confdir wins, then the PREFIX environment variable
       (non standard installation path) is prepended to /etc/dirsrv.
    """
    if confdir:
        return confdir
    return f"{os.environ.get('PREFIX', '')}{DEFAULT_CONFDIR}"


def ldapi_socket_path(name):
    """Return the default ldapi socket of an instance."""
    return f"{os.environ.get('PREFIX', '')}/var/run/slapd-{name}.socket"


def safe_dup_keyval(key, val):
    """Duplicate dict val and hide values associated with HIDDEN_ARGS."""
    if key.lower() in HIDDEN_ARGS:
        return "******"
    return safe_dup(val)


def safe_dup(src):
    """Duplicate data from src and hide values associated with HIDDEN_ARGS."""
    if isinstance(src, list):
        return [ safe_dup(val) for val in src ]
    if isinstance(src, dict):
        return { key: safe_dup_keyval(key, val) for (key,val) in src.items() }
    return src


class Ds389Error(Exception):
    """Base class of the errors reported by the ds389_config modules."""


class DiscoveryParseError(Ds389Error):
    """An instance configuration file could not be parsed (the instance is skipped)."""

    def __init__(self, path, reason):
        super().__init__(f"Cannot parse {path}: {reason}")
        self.path = path
        self.reason = reason


class ConnectivityError(Ds389Error):
    """The server could not be reached or rejected the bind while reading its state."""


class ConflictError(Ds389Error):
    """A requested port is already used by another instance on this host."""

    def __init__(self, port, owner, name):
        super().__init__(f"The port '{port}' is already in use by '{owner}' and cannot be used by '{name}'")
        self.port = port
        self.owner = owner
        self.name = name


class WriteError(Ds389Error):
    """The modify or add operation was rejected by the server."""

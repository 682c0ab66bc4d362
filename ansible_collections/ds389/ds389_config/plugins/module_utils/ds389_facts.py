# --- BEGIN COPYRIGHT BLOCK ---
# Copyright (C) 2022 Red Hat, Inc.
# All rights reserved.
#
# GNU General Public License v3.0+ (see COPYING or https://www.gnu.org/licenses/gpl-3.0.txt)
# --- END COPYRIGHT BLOCK ---
#

"""This module collects the ds389 instances available on the local host."""

### I found fstring more readable than lazy % formatting even if it is a bit slower:
# pylint: disable=logging-fstring-interpolation

DOCUMENTATION = r'''
---
module: ds389_facts

short_description: This module collects the ds389 instances available on the local host

version_added: "1.0.0"

description:
    - Setting class:            a dse.ldif attribute reported in the instances facts
    - InstanceInventory class:  the class scanning the configuration directory
    - discover_instances:       returns the ds389__instances facts
    - validate_ports:           check that a port is not already used by another instance

author:
    - Pierre Rogier (@progier389)

requirements:
    - python >= 3.9
'''

import os
import re
import glob
from dataclasses import dataclass

from .ds389_util import DiscoveryParseError, ConflictError, get_confdir, get_log


ADMIN_SERV = 'admin-serv'
CONFIG_MARKER = 'dn: cn=config'
DEFAULT_SECURE_PORT = 636
ADMIN_PORT_RE = re.compile(r'configuration.nsserverport:\s+(\d+)')


def coerce_value(val):
    """Convert the dse.ldif string values to python boolean or integer."""
    if isinstance(val, list):
        return [ coerce_value(v) for v in val ]
    if val in ('on', 'true'):
        return True
    if val in ('off', 'false'):
        return False
    if re.fullmatch(r'\d+', val):
        return int(val)
    return val


@dataclass(frozen=True)
class Setting:
    """A cn=config attribute reported in the facts and the fact key it is stored under."""
    dsename: str
    prefix: str = 'nsslapd-'

    @property
    def key(self):
        return self.dsename.split(self.prefix)[-1]


# Add things that we want to collect to this list
SETTINGS_OF_INTEREST = (
    Setting('nsslapd-ldapifilepath'),
    Setting('nsslapd-ldapilisten'),
    Setting('nsslapd-listenhost'),
    Setting('nsslapd-port'),
    Setting('nsslapd-require-secure-binds'),
    Setting('nsslapd-rootdn'),
    Setting('nsslapd-securePort'),
)


def extract_section(lines, marker=CONFIG_MARKER):
    """Return the lines of the entry starting with marker, up to the first blank line.

       Returns None if the marker is not found.
    """
    section = None
    for line in lines:
        if section is not None:
            if not line.strip():
                break
            section.append(line)
        elif line.strip() == marker:
            section = []
    return section


def unfold(lines):
    """Join the continuation lines (starting with whitespace) to the previous logical line."""
    return re.sub(r'\n\s+', '', ''.join(lines)).splitlines()


def parse_section(lines):
    """Parse 'key: value' lines into a dict of values (a list if the key is repeated)."""
    conf = {}
    for line in unfold(lines):
        key, sep, value = line.partition(': ')
        if not sep:
            continue
        key = key.strip()
        value = value.strip()
        if key in conf:
            if not isinstance(conf[key], list):
                conf[key] = [ conf[key] ]
            conf[key].append(value)
        else:
            conf[key] = value
    return conf


class InstanceInventory:
    """Scan a ds389 configuration directory and report the instances it holds.

       Every call of discover() rescans the directory: nothing is cached.
    """

    def __init__(self, confdir=None, admin_dir=ADMIN_SERV, admin_conf='local.conf',
                 instance_prefix='slapd-', removed_suffix='.removed', dse_file='dse.ldif',
                 marker=CONFIG_MARKER, settings=SETTINGS_OF_INTEREST):
        self.confdir = get_confdir(confdir)
        self.admin_dir = admin_dir
        self.admin_conf = admin_conf
        self.instance_prefix = instance_prefix
        self.removed_suffix = removed_suffix
        self.dse_file = dse_file
        self.marker = marker
        self.settings = settings

    def get_admin_port(self):
        path = os.path.join(self.confdir, self.admin_dir, self.admin_conf)
        if not os.path.isfile(path):
            return None
        try:
            with open(path, 'r', encoding='utf-8') as fd:
                for line in fd:
                    m = ADMIN_PORT_RE.search(line)
                    if m:
                        return int(m.group(1))
        except (OSError, UnicodeDecodeError) as e:
            get_log().warning(f'Cannot read {path}: {e}')
        return None

    def list_instance_dirs(self):
        dirs = []
        for path in sorted(glob.glob(os.path.join(glob.escape(self.confdir), f'{self.instance_prefix}*'))):
            if path.endswith(self.removed_suffix) or not os.path.isdir(path):
                continue
            dirs.append(path)
        return dirs

    def read_instance(self, path):
        """Return the facts of the instance whose configuration directory is path."""
        dse_path = os.path.join(path, self.dse_file)
        try:
            with open(dse_path, 'r', encoding='utf-8') as fd:
                section = extract_section(fd, self.marker)
        except (OSError, UnicodeDecodeError) as e:
            raise DiscoveryParseError(dse_path, e) from e
        if section is None:
            raise DiscoveryParseError(dse_path, f"no '{self.marker}' entry")
        conf = parse_section(section)

        facts = {}
        for setting in self.settings:
            if setting.dsename in conf:
                facts[setting.key] = coerce_value(conf[setting.dsename])

        # Fixup troublesome items
        if facts.get('ldapilisten'):
            facts['ldapilisten'] = os.path.exists(str(facts.get('ldapifilepath', '')))
        if facts.get('require-secure-binds') is True and 'securePort' not in facts:
            facts['securePort'] = DEFAULT_SECURE_PORT
        return facts

    def discover(self):
        instances = {}
        if not os.path.isdir(self.confdir):
            get_log().debug(f'{self.confdir} does not exist: no instances.')
            return instances

        admin_port = self.get_admin_port()
        if admin_port is not None:
            instances[ADMIN_SERV] = { 'port': admin_port }

        for path in self.list_instance_dirs():
            if not os.path.isfile(os.path.join(path, self.dse_file)):
                continue
            name = os.path.basename(path)[len(self.instance_prefix):]
            try:
                instances[name] = self.read_instance(path)
            except DiscoveryParseError as e:
                get_log().warning(f'Skipping instance {name}: {e}')
                continue
            get_log().debug(f'Found instance {name}: {instances[name]}')
        return instances


def discover_instances(confdir=None):
    """Return the ds389__instances facts for the instances in confdir."""
    return InstanceInventory(confdir).discover()


def _used_ports(facts):
    ports = []
    for key in ('port', 'securePort'):
        val = facts.get(key)
        if isinstance(val, list):
            ports.extend(val)
        elif val is not None:
            ports.append(val)
    return ports


def validate_ports(instances, name, port, secure_port=None):
    """Raise ConflictError if port or secure_port is used by an instance other than name."""
    for owner, facts in instances.items():
        if owner == name:
            continue
        used = _used_ports(facts)
        for wanted in (port, secure_port):
            if wanted is not None and int(wanted) in used:
                raise ConflictError(int(wanted), owner, name)

# -*- coding: utf-8 -*-

# Authors:
#   Pierre Rogier <progier@redhat.com>
#
# Copyright (C) 2022  Red Hat
# see file 'COPYING' for use and warranty information
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

from __future__ import (absolute_import, division, print_function)

__metaclass__ = type


class ModuleDocFragment(object):  # pylint: disable=R0205,R0903
    DOCUMENTATION = r"""
options:
  root_dn:
    description: The DN used to bind to the instance.
    required: True
    type: str
  root_pw_file:
    description:
      - Path of a file containing the password of root_dn.
      - The password is never passed on a command line nor logged.
    required: True
    type: path
  host:
    description: The host to connect to when ldapi is not used.
    required: False
    default: 127.0.0.1
    type: str
  port:
    description: The port to connect to when ldapi is not used.
    required: False
    default: 389
    type: int
  instance_name:
    description:
      - The instance owning the entries.
      - Required when restart_instance or force_ldapi is set.
    required: False
    type: str
  force_ldapi:
    description: Connect through the instance ldapi socket rather than through host and port.
    required: False
    default: False
    type: bool
  ldapi_path:
    description: The ldapi socket path (defaults to /var/run/slapd-<instance_name>.socket).
    required: False
    type: path
  restart_instance:
    description: Restart the instance if (and only if) something changed.
    required: False
    default: False
    type: bool
  timeout:
    description: Timeout in seconds of every ldap operation.
    required: False
    default: 30
    type: int
  ansible_verbosity:
    description: Number of -v options in ansible-playbook command.
    required: False
    default: 0
    type: int
"""

#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Simple utility functions used by this package
"""

from __future__ import annotations

import re

import netifaces
from requests.structures import CaseInsensitiveDict

from .internal_types import *

_line_break_re = re.compile(r'\r\n|\r|\n')

def split_lines(text: str) -> List[str]:
    """Split a string at CRLF, LF or a lone CR.

    A relaxed interpretation of '\n' as a line delimiter is accepted even though '\r\n' is required
    by the standard.

    Returns a List[str] representing the delimited lines with the delimiters removed.
    """
    return _line_break_re.split(text)

def get_interface_ip_address(ifname: str) -> Optional[str]:
    """Returns the first IPv4 address assigned to the named network interface, or None
       if the interface does not exist or has no IPv4 address."""
    if ifname not in netifaces.interfaces():
        return None
    ifinfo = netifaces.ifaddresses(ifname)
    for addrinfo in ifinfo.get(netifaces.AF_INET, []):
        ip_str = addrinfo.get('addr')
        if isinstance(ip_str, str):
            return ip_str
    return None

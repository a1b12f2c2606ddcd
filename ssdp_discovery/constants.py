# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by this package"""

SSDP_MULTICAST_ADDRESS = "239.255.255.250"
"""The multicast address used by SSDP for UDP multicast."""

SSDP_PORT = 1900
"""The port number used by SSDP for UDP multicast."""

DEFAULT_MULTICAST_TTL = 2
"""The default IP_MULTICAST_TTL for outgoing M-SEARCH datagrams. UPnP recommends 2."""

DEFAULT_MAX_WAIT = 1
"""The default MX value (in seconds) for M-SEARCH requests."""

# SSDP M-SEARCH and response header names
HEADER_CACHE_CONTROL = "CACHE-CONTROL"
HEADER_DATE = "DATE"
HEADER_EXT = "EXT"
HEADER_HOST = "HOST"
HEADER_LOCATION = "LOCATION"
HEADER_MAN = "MAN"
HEADER_MAX_WAIT = "MX"
HEADER_SEARCH_TARGET = "ST"
HEADER_SERVER = "SERVER"
HEADER_USN = "USN"

# Value of MAN in M-SEARCH requests
SSDP_DISCOVER = "ssdp:discover"

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Package ssdp_discovery implements client-side discovery with the Simple Service Discovery Protocol (SSDP).

SSDP is the UDP-multicast-based presence/discovery protocol underlying UPnP. A client broadcasts
M-SEARCH requests to the multicast group 239.255.255.250:1900, and UPnP devices and services that
match the request's search target (ST) reply with unicast responses carrying the LOCATION of their
device description.

Because UDP is unreliable, responses may be lost, duplicated or reordered. This package repeatedly
broadcasts each request at a backing-off cadence, deduplicates the responses, and routes them to every
discovery session that asked for them, sharing a single socket between all sessions.

Retrieving the device description at LOCATION, SOAP control, and acting as an SSDP responder are
outside the scope of this package.
"""

from .version import __version__

from .internal_types import Jsonable, JsonableDict, HostAndPort

from .exceptions import SsdpError, SsdpTransportError

from .search_target import SsdpSearchTarget, SearchTargetKind
from .msearch_request import SsdpMSearchRequest
from .msearch_response import SsdpMSearchResponse
from .message_parser import SsdpMessage, SsdpMessageType, SsdpMessageParser
from .observer import SsdpDiscoveryObserver, SsdpResponseCollector
from .ssdp_socket import SsdpSocket
from .discovery_session import SsdpDiscoverySession, SessionPhase, retransmit_interval
from .discovery import SsdpDiscovery, SocketState, DEFAULT_RESPONSE_WAIT_TIME
from .util import CaseInsensitiveDict
from .constants import SSDP_MULTICAST_ADDRESS, SSDP_PORT
from . import upnp

__all__ = [
    '__version__',
    'Jsonable', 'JsonableDict', 'HostAndPort',
    'SsdpError', 'SsdpTransportError',
    'SsdpSearchTarget', 'SearchTargetKind',
    'SsdpMSearchRequest',
    'SsdpMSearchResponse',
    'SsdpMessage', 'SsdpMessageType', 'SsdpMessageParser',
    'SsdpDiscoveryObserver', 'SsdpResponseCollector',
    'SsdpSocket',
    'SsdpDiscoverySession', 'SessionPhase', 'retransmit_interval',
    'SsdpDiscovery', 'SocketState',
    'CaseInsensitiveDict',
    'DEFAULT_RESPONSE_WAIT_TIME',
    'SSDP_MULTICAST_ADDRESS', 'SSDP_PORT',
    'upnp',
]

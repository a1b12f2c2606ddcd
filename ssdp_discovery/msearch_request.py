#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SsdpMSearchRequest -- An M-SEARCH request to discover UPnP devices and services on the local area network.
"""

from __future__ import annotations

from .internal_types import *
from .constants import (
    SSDP_MULTICAST_ADDRESS,
    SSDP_PORT,
    DEFAULT_MAX_WAIT,
    SSDP_DISCOVER,
    HEADER_HOST,
    HEADER_MAN,
    HEADER_MAX_WAIT,
    HEADER_SEARCH_TARGET,
  )
from .util import CaseInsensitiveDict
from .search_target import SsdpSearchTarget
from .observer import SsdpDiscoveryObserver

MSEARCH_STATEMENT_LINE = "M-SEARCH * HTTP/1.1"

class SsdpMSearchRequest:
    """An immutable M-SEARCH request, along with the observer that discovered devices and services
       are reported to.

       The request is broadcast (repeatedly) by an SsdpDiscoverySession started with
       SsdpDiscovery.start_discovery().
    """

    __slots__ = ('_observer', '_max_wait', '_search_target', '_other_headers', '_host')

    _observer: SsdpDiscoveryObserver
    _max_wait: int
    _search_target: SsdpSearchTarget
    _other_headers: Optional[CaseInsensitiveDict[str]]
    _host: str

    def __init__(
            self,
            observer: SsdpDiscoveryObserver,
            search_target: SsdpSearchTarget,
            max_wait: int=DEFAULT_MAX_WAIT,
            other_headers: Optional[Mapping[str, str]]=None,
            host: Optional[str]=None,
          ):
        """Create an M-SEARCH request.

        Parameters:
            observer:       The observer to report discovered devices and services to.
            search_target:  The ST of the request.
            max_wait:       The MX value, in seconds. Defaults to 1.
            other_headers:  Additional headers not standardized by UPnP, sent in insertion order.
                              Headers that collide with HOST, MAN, MX or ST are ignored.
            host:           The HOST header value. Defaults to "239.255.255.250:1900".
        """
        object.__setattr__(self, '_observer', observer)
        object.__setattr__(self, '_search_target', search_target)
        object.__setattr__(self, '_max_wait', int(max_wait))
        object.__setattr__(self, '_other_headers', None if other_headers is None else CaseInsensitiveDict(other_headers))
        object.__setattr__(self, '_host', f"{SSDP_MULTICAST_ADDRESS}:{SSDP_PORT}" if host is None else host)

    @property
    def observer(self) -> SsdpDiscoveryObserver:
        return self._observer

    @property
    def max_wait(self) -> int:
        """MX: the maximum time (in seconds) a device may wait before responding"""
        return self._max_wait

    @property
    def search_target(self) -> SsdpSearchTarget:
        return self._search_target

    @property
    def other_headers(self) -> Optional[CaseInsensitiveDict[str]]:
        """A copy of any additional headers to include in the request"""
        return None if self._other_headers is None else self._other_headers.copy()

    @property
    def headers(self) -> CaseInsensitiveDict[str]:
        """All headers of the request, in the order they are sent."""
        headers: CaseInsensitiveDict[str] = CaseInsensitiveDict()
        headers[HEADER_HOST] = self._host
        headers[HEADER_MAN] = SSDP_DISCOVER
        headers[HEADER_MAX_WAIT] = str(self._max_wait)
        headers[HEADER_SEARCH_TARGET] = self._search_target.format()
        if not self._other_headers is None:
            for key, value in self._other_headers.items():
                if not key in headers:
                    headers[key] = value
        return headers

    @property
    def message(self) -> str:
        """The M-SEARCH request message as a str"""
        message = MSEARCH_STATEMENT_LINE + "\r\n"
        for key, value in self.headers.items():
            message += f"{key}: {value}\r\n"
        return message

    @property
    def raw_data(self) -> bytes:
        """The M-SEARCH request message as the raw UDP datagram contents"""
        return self.message.encode('utf-8')

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"SsdpMSearchRequest is immutable; cannot set {name}")

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"SsdpMSearchRequest(search_target={self._search_target!r}, max_wait={self._max_wait})"

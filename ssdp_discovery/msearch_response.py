#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SsdpMSearchResponse -- An M-SEARCH response for a device or service found during discovery.
"""

from __future__ import annotations

import re
import datetime
from email.utils import parsedate_to_datetime
from urllib.parse import urlsplit

from .internal_types import *
from .constants import (
    HEADER_CACHE_CONTROL,
    HEADER_DATE,
    HEADER_EXT,
    HEADER_LOCATION,
    HEADER_SERVER,
    HEADER_SEARCH_TARGET,
    HEADER_USN,
  )
from .util import CaseInsensitiveDict
from .search_target import SsdpSearchTarget

_max_age_re = re.compile(r'max-age[ \t]*=[ \t]*([0-9]+)')

def parse_max_age(cache_control: str) -> Optional[int]:
    """Returns the max-age directive of a CACHE-CONTROL header value, or None if there is none."""
    m = _max_age_re.search(cache_control)
    if m is None:
        return None
    return int(m.group(1))

def parse_http_date(value: str) -> Optional[datetime.datetime]:
    """Parses an RFC 1123 HTTP-date (e.g., "Sun, 06 Nov 1994 08:49:37 GMT"). Returns None if
       the value cannot be parsed."""
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None

def is_valid_location(location: str) -> bool:
    """True if location is an absolute URL with a scheme and a network location."""
    try:
        parts = urlsplit(location)
    except ValueError:
        return False
    return parts.scheme != '' and parts.netloc != ''

class SsdpMSearchResponse:
    """An immutable record of a discovered device or service.

    Two responses are equal (and hash equally) if they have the same USN and LOCATION, regardless of
    any other headers; a device that answers several M-SEARCH broadcasts is discovered once.

    Instances are constructed by the message parser with from_headers().
    """

    __slots__ = (
        '_cache_control', '_max_age', '_date', '_ext', '_location', '_server',
        '_search_target', '_usn', '_other_headers',
      )

    _cache_control: Optional[datetime.datetime]
    _max_age: Optional[int]
    _date: Optional[datetime.datetime]
    _ext: bool
    _location: str
    _server: Optional[str]
    _search_target: SsdpSearchTarget
    _usn: str
    _other_headers: CaseInsensitiveDict[str]

    def __init__(
            self,
            location: str,
            search_target: SsdpSearchTarget,
            usn: str,
            ext: bool=True,
            max_age: Optional[int]=None,
            date: Optional[datetime.datetime]=None,
            server: Optional[str]=None,
            other_headers: Optional[Mapping[str, str]]=None,
            received_time: Optional[datetime.datetime]=None,
          ):
        if not ext:
            raise ValueError("An M-SEARCH response requires the EXT header")
        if not is_valid_location(location):
            raise ValueError(f"Invalid LOCATION URL: {location!r}")
        if received_time is None:
            received_time = datetime.datetime.now(datetime.timezone.utc)
        cache_control = None if max_age is None else received_time + datetime.timedelta(seconds=max_age)
        object.__setattr__(self, '_cache_control', cache_control)
        object.__setattr__(self, '_max_age', max_age)
        object.__setattr__(self, '_date', date)
        object.__setattr__(self, '_ext', ext)
        object.__setattr__(self, '_location', location)
        object.__setattr__(self, '_server', server)
        object.__setattr__(self, '_search_target', search_target)
        object.__setattr__(self, '_usn', usn)
        object.__setattr__(self, '_other_headers', CaseInsensitiveDict(other_headers or {}))

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> Optional[SsdpMSearchResponse]:
        """Attempts to construct a response from parsed response headers. If a required header (EXT,
           LOCATION, ST, USN) is missing or malformed, returns None.

           CACHE-CONTROL and DATE are optional, and are left among the other headers if they cannot be parsed.
        """
        remaining: CaseInsensitiveDict[str] = CaseInsensitiveDict(headers)

        max_age: Optional[int] = None
        cache_control_str = remaining.get(HEADER_CACHE_CONTROL)
        if not cache_control_str is None:
            max_age = parse_max_age(cache_control_str)
            if not max_age is None:
                del remaining[HEADER_CACHE_CONTROL]

        date: Optional[datetime.datetime] = None
        date_str = remaining.get(HEADER_DATE)
        if not date_str is None:
            date = parse_http_date(date_str)
            if not date is None:
                del remaining[HEADER_DATE]

        if remaining.pop(HEADER_EXT, None) is None:
            return None

        location = remaining.pop(HEADER_LOCATION, None)
        if location is None or not is_valid_location(location):
            return None

        server = remaining.pop(HEADER_SERVER, None)

        search_target_str = remaining.pop(HEADER_SEARCH_TARGET, None)
        if search_target_str is None:
            return None
        search_target = SsdpSearchTarget.parse(search_target_str)
        if search_target is None:
            return None

        usn = remaining.pop(HEADER_USN, None)
        if usn is None:
            return None

        return cls(
            location=location,
            search_target=search_target,
            usn=usn,
            ext=True,
            max_age=max_age,
            date=date,
            server=server,
            other_headers=remaining,
          )

    @property
    def cache_control(self) -> Optional[datetime.datetime]:
        """The UTC time at which this response expires, derived from the max-age directive of CACHE-CONTROL"""
        return self._cache_control

    @property
    def max_age(self) -> Optional[int]:
        """The max-age directive of CACHE-CONTROL, in seconds"""
        return self._max_age

    @property
    def date(self) -> Optional[datetime.datetime]:
        """DATE"""
        return self._date

    @property
    def ext(self) -> bool:
        """EXT; always True for a valid response"""
        return self._ext

    @property
    def location(self) -> str:
        """LOCATION: the URL of the device description"""
        return self._location

    @property
    def server(self) -> Optional[str]:
        """SERVER"""
        return self._server

    @property
    def search_target(self) -> SsdpSearchTarget:
        """ST"""
        return self._search_target

    @property
    def usn(self) -> str:
        """USN: the unique service name"""
        return self._usn

    @property
    def other_headers(self) -> CaseInsensitiveDict[str]:
        """A copy of all other headers in the response"""
        return self._other_headers.copy()

    @property
    def key(self) -> Tuple[str, str]:
        """The (usn, location) pair that identifies the discovered device or service"""
        return (self._usn, self._location)

    @property
    def is_device(self) -> bool:
        return self._search_target.is_device

    @property
    def is_service(self) -> bool:
        return self._search_target.is_service

    def is_expired(self, now: Optional[datetime.datetime]=None) -> bool:
        """True if the CACHE-CONTROL max-age of this response has elapsed. A response without
           a max-age never expires."""
        if self._cache_control is None:
            return False
        if now is None:
            now = datetime.datetime.now(datetime.timezone.utc)
        return now >= self._cache_control

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"SsdpMSearchResponse is immutable; cannot set {name}")

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, SsdpMSearchResponse):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return f"SsdpMSearchResponse(st='{self._search_target}', usn='{self._usn}', location='{self._location}')"

    def __repr__(self) -> str:
        return str(self)

#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Parsing of SSDP datagrams received on the multicast socket.

A datagram is an HTTP-like text message:

    HTTP/1.1 200 OK
    CACHE-CONTROL: max-age=1800
    EXT:
    LOCATION: http://192.168.1.20:8200/rootDesc.xml
    ST: upnp:rootdevice
    USN: uuid:4d696e69-444c-164e-9d41-b827eb96c6c2::upnp:rootdevice

Only M-SEARCH responses are currently turned into messages. NOTIFY announcements and M-SEARCH
requests (including our own, echoed back by the multicast group) are recognized as message
kinds but are not parsed.
"""

from __future__ import annotations

import re
from enum import Enum

from .internal_types import *
from .util import CaseInsensitiveDict, split_lines
from .msearch_response import SsdpMSearchResponse

class SsdpMessageType(Enum):
    """Types of messages seen on the SSDP multicast group"""
    SEARCH_REQUEST = "M-SEARCH"
    """An M-SEARCH request broadcast"""
    SEARCH_RESPONSE = "HTTP/1.1"
    """An M-SEARCH response for a discovered device or service"""
    NOTIFY = "NOTIFY"
    """A NOTIFY announcement"""

class SsdpMessage:
    """A parsed SSDP message. For SEARCH_RESPONSE messages, response is the parsed response."""
    message_type: SsdpMessageType
    response: Optional[SsdpMSearchResponse] = None

    def __init__(self, message_type: SsdpMessageType, response: Optional[SsdpMSearchResponse]=None):
        if (message_type == SsdpMessageType.SEARCH_RESPONSE) != (not response is None):
            raise ValueError("A response is required for, and only for, SEARCH_RESPONSE messages")
        self.message_type = message_type
        self.response = response

    @classmethod
    def search_response(cls, response: SsdpMSearchResponse) -> SsdpMessage:
        return cls(SsdpMessageType.SEARCH_RESPONSE, response)

    def __str__(self) -> str:
        if self.response is None:
            return f"SsdpMessage({self.message_type.name})"
        return f"SsdpMessage({self.message_type.name}, {self.response})"

    def __repr__(self) -> str:
        return str(self)

class SsdpMessageParser:
    """Parses M-SEARCH responses received in reply to M-SEARCH broadcasts."""

    _initial_token_re = re.compile(r'[^\s]+')
    _header_re = re.compile(r'(?P<key>[^:\s]+)[: \t]+(?P<value>.*)$')

    @classmethod
    def parse(cls, raw: str) -> Optional[SsdpMessage]:
        """Parses an M-SEARCH response. Returns None if the message is malformed or of an
           unsupported type (currently M-SEARCH requests and NOTIFY announcements)."""
        if raw == '':
            return None
        lines = split_lines(raw.lstrip('\r\n'))
        token = cls.parse_initial_token(lines[0])
        if token is None:
            return None
        headers = cls.parse_headers(lines[1:])
        return cls.construct_message(token, headers)

    @classmethod
    def parse_initial_token(cls, statement_line: str) -> Optional[str]:
        """Returns the first whitespace-delimited word of the statement line, or None if the
           line does not begin with one."""
        m = cls._initial_token_re.match(statement_line)
        if m is None:
            return None
        return m.group(0)

    @classmethod
    def parse_headers(cls, lines: Iterable[str]) -> CaseInsensitiveDict[str]:
        """Parses "KEY: value" header lines. The separator may be any run of ':', space and tab
           characters. A key followed only by a separator has an empty value. Lines that have
           no separator are skipped."""
        headers: CaseInsensitiveDict[str] = CaseInsensitiveDict()
        for line in lines:
            m = cls._header_re.match(line)
            if m is None:
                continue
            headers[m.group('key')] = m.group('value').strip(' \t')
        return headers

    @classmethod
    def construct_message(cls, token: str, headers: Mapping[str, str]) -> Optional[SsdpMessage]:
        """Constructs a message based on the initial token of the raw message and its parsed headers."""
        if token == SsdpMessageType.SEARCH_RESPONSE.value:
            response = SsdpMSearchResponse.from_headers(headers)
            if response is None:
                return None
            return SsdpMessage.search_response(response)
        # M-SEARCH requests and NOTIFY announcements are not parsed
        return None

#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import asyncio

import pytest

from ssdp_discovery.internal_types import *
from ssdp_discovery import (
    SsdpDiscovery,
    SsdpDiscoveryObserver,
    SsdpDiscoverySession,
    SsdpMSearchResponse,
    SsdpSocket,
    SsdpTransportError,
  )

class FakeSsdpSocket(SsdpSocket):
    """An SsdpSocket that records sent datagrams instead of touching the network."""
    sent: List[Tuple[bytes, HostAndPort]]

    def __init__(self, datagram_handler):
        super().__init__(datagram_handler)
        self.sent = []

    async def start(self) -> None:
        pass

    def sendto(self, data: bytes, addr: HostAndPort) -> None:
        if not self.closed:
            self.sent.append((data, addr))

class FakeDiscovery(SsdpDiscovery):
    sockets: List[FakeSsdpSocket]
    fail_socket_creation: bool = False

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.sockets = []

    async def create_socket(self) -> SsdpSocket:
        # yield to the event loop like a real socket setup would
        await asyncio.sleep(0)
        if self.fail_socket_creation:
            raise SsdpTransportError("Unable to create SSDP socket: permission denied")
        ssdp_socket = FakeSsdpSocket(self.on_datagram_received)
        self.sockets.append(ssdp_socket)
        return ssdp_socket

    @property
    def current_socket(self) -> Optional[FakeSsdpSocket]:
        return self._socket # type: ignore[return-value]

class RecordingObserver(SsdpDiscoveryObserver):
    devices: List[Tuple[SsdpMSearchResponse, SsdpDiscoverySession]]
    services: List[Tuple[SsdpMSearchResponse, SsdpDiscoverySession]]
    closed: List[SsdpDiscoverySession]

    def __init__(self):
        self.devices = []
        self.services = []
        self.closed = []

    def discovered_device(self, response, session):
        self.devices.append((response, session))

    def discovered_service(self, response, session):
        self.services.append((response, session))

    def closed_session(self, session):
        self.closed.append(session)

    @property
    def n_callbacks(self) -> int:
        return len(self.devices) + len(self.services)

def make_response(
        st: str,
        usn: str="uuid:4d696e69-444c-164e-9d41-b827eb96c6c2",
        location: str="http://192.168.1.20:8200/rootDesc.xml",
        server: str="Linux/5.10 UPnP/1.0 MiniDLNA/1.3.0",
        **extra_headers: str
      ) -> bytes:
    """Builds the raw datagram of an M-SEARCH response"""
    lines = [
        "HTTP/1.1 200 OK",
        "CACHE-CONTROL: max-age=1800",
        "DATE: Sun, 06 Nov 1994 08:49:37 GMT",
        "EXT:",
        f"LOCATION: {location}",
        f"SERVER: {server}",
        f"ST: {st}",
        f"USN: {usn}",
      ]
    for name, value in extra_headers.items():
        lines.append(f"{name.replace('_', '-')}: {value}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode('utf-8')

@pytest.fixture
def loop():
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    yield loop
    loop.run_until_complete(asyncio.sleep(0))
    asyncio.set_event_loop(None)
    loop.close()

@pytest.fixture
def discovery(loop):
    discovery = FakeDiscovery()
    yield discovery
    discovery.stop_all_discovery()

@pytest.fixture
def observer():
    return RecordingObserver()

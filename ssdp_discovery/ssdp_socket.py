#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SsdpSocket -- An async UDP socket used to discover SSDP devices. It can:

  1. Send M-SEARCH datagrams to the SSDP multicast group (239.255.255.250:1900)
  2. Receive the unicast responses from remote devices and deliver them, undecoded, to a
     datagram handler callback

  The socket is bound to an ephemeral port, with broadcast enabled and the multicast TTL
  (and optionally, the outgoing multicast interface) configured.
"""

from __future__ import annotations


import asyncio
import socket

from .internal_types import *
from .pkg_logging import logger
from .exceptions import SsdpTransportError
from .constants import DEFAULT_MULTICAST_TTL

SsdpDatagramHandler = Callable[[bytes, HostAndPort], None]
"""A callback for received datagrams: (raw_data, src_addr)"""

class _SsdpSocketProtocol(asyncio.DatagramProtocol):
    """An adapter between the asyncio transport and SsdpSocket."""
    ssdp_socket: SsdpSocket

    def __init__(self, ssdp_socket: SsdpSocket):
        self.ssdp_socket = ssdp_socket

    def connection_made(self, transport: asyncio.BaseTransport):
        """Called when a connection is made."""

        # Note: asyncio datagram transports do not inherit from asyncio.DatagramTransport, though they
        # implement the same interface.
        self.ssdp_socket.connection_made(transport) # type: ignore[arg-type]

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        """Called when some datagram is received."""
        self.ssdp_socket.datagram_received(data, addr)

    def error_received(self, exc: Exception):
        """Called when a send or receive operation raises an OSError.

        (Other than BlockingIOError or InterruptedError.)
        """
        self.ssdp_socket.error_received(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        """Called when the connection is lost or closed."""
        self.ssdp_socket.connection_lost(exc)

class SsdpSocket:
    """
    An async UDP socket that sends M-SEARCH datagrams and receives responses.

    Usage:
        ssdp_socket = SsdpSocket(datagram_handler=handler)
        await ssdp_socket.start()
        ssdp_socket.sendto(data, (SSDP_MULTICAST_ADDRESS, SSDP_PORT))
        ...
        ssdp_socket.close()
    """

    datagram_handler: SsdpDatagramHandler
    """Called for every received datagram"""

    bind_address: str
    """The local IP address to bind to. '' binds to all interfaces."""

    multicast_ttl: int
    """IP_MULTICAST_TTL for outgoing multicast datagrams"""

    sock: Optional[socket.socket] = None
    """The low-level socket."""

    transport: Optional[asyncio.DatagramTransport] = None
    """The asyncio transport that is bound to this SsdpSocket."""

    closed: bool = False

    def __init__(
            self,
            datagram_handler: SsdpDatagramHandler,
            bind_address: Optional[str]=None,
            multicast_ttl: int=DEFAULT_MULTICAST_TTL,
          ):
        self.datagram_handler = datagram_handler
        self.bind_address = '' if bind_address is None else bind_address
        self.multicast_ttl = multicast_ttl

    def create_socket(self) -> socket.socket:
        """Creates and binds the low-level socket. Raises OSError on failure."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, self.multicast_ttl)
            if self.bind_address != '':
                # Send multicasts out of the interface that owns the bind address
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_IF, socket.inet_aton(self.bind_address))
            sock.bind((self.bind_address, 0))
            sock.setblocking(False)
        except BaseException:
            sock.close()
            raise
        return sock

    async def start(self) -> None:
        """Creates the socket and begins receiving datagrams.

        Raises SsdpTransportError if the socket cannot be created, configured or bound.
        """
        if not self.transport is None:
            return
        try:
            sock = self.create_socket()
        except OSError as e:
            raise SsdpTransportError(f"Unable to create SSDP socket bound to '{self.bind_address}': {e}") from e
        self.sock = sock
        logger.debug(f"Created SSDP socket bound to {sock.getsockname()}")
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(lambda: _SsdpSocketProtocol(self), sock=sock)
        except OSError as e:
            self._close_sock()
            raise SsdpTransportError(f"Unable to begin receiving on SSDP socket: {e}") from e
        except BaseException:
            self._close_sock()
            raise
        # Note: see _SsdpSocketProtocol.connection_made
        self.transport = transport # type: ignore[assignment]

    def sendto(self, data: bytes, addr: HostAndPort) -> None:
        """Sends a datagram. Silently does nothing if the socket has been closed."""
        if self.transport is None:
            logger.debug(f"Not sending datagram to {addr}; SSDP socket is closed")
            return
        logger.debug(f"Sending datagram to {addr}: {data!r}")
        self.transport.sendto(data, addr)

    def close(self) -> None:
        """Closes the transport and the low-level socket. Safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        if not self.transport is None:
            try:
                self.transport.close()
            except Exception as e:
                logger.error(f"Error closing SSDP transport: {e}")
            self.transport = None
            # the transport owns the low-level socket once it has been created
            self.sock = None
        self._close_sock()

    def _close_sock(self) -> None:
        if not self.sock is None:
            try:
                self.sock.close()
            except OSError as e:
                logger.error(f"Error closing SSDP socket: {e}")
            self.sock = None

    def connection_made(self, transport: asyncio.DatagramTransport) -> None:
        """Called when a connection is made."""
        logger.debug(f"Connection made: {self}")
        self.transport = transport

    def datagram_received(self, data: bytes, addr: HostAndPort) -> None:
        """Called when some datagram is received."""
        try:
            self.datagram_handler(data, addr)
        except Exception as e:
            logger.warning(f"Datagram handler raised exception processing datagram from {addr}, raw=[{data!r}]: {e}")

    def error_received(self, exc: Exception) -> None:
        """Called when a send or receive operation raises an OSError.

        (Other than BlockingIOError or InterruptedError.)
        """
        logger.error(f"Error received from SSDP transport {self}: {exc}")

    def connection_lost(self, exc: Optional[Exception]) -> None:
        """Called when the connection is lost or closed."""
        logger.debug(f"Connection to SSDP transport lost on {self}, exc={exc}")
        self.transport = None

    def __str__(self) -> str:
        return f"SsdpSocket('{self.bind_address}')"

    def __repr__(self) -> str:
        return str(self)

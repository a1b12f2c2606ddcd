#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SsdpDiscovery -- SSDP discovery of UPnP devices and services on the local area network. It:

  1. Owns the single UDP socket used to broadcast M-SEARCH requests to the multicast group
     (239.255.255.250:1900) and to receive the responses. The socket is created when the first
     session is started, and closed when the last session is closed.
  2. Starts SsdpDiscoverySession's, each of which repeatedly broadcasts one M-SEARCH request.
  3. Parses every received datagram and routes M-SEARCH responses to every active session whose
     search target matches.

All sessions, timers and datagram handling run on a single asyncio event loop: the loop on which the
socket was created.

No checks are in place to ensure connectivity to the local area network.
"""

from __future__ import annotations


import asyncio
import threading
from contextlib import asynccontextmanager
from enum import Enum

from .internal_types import *
from .pkg_logging import logger
from .exceptions import SsdpTransportError
from .constants import SSDP_MULTICAST_ADDRESS, SSDP_PORT, DEFAULT_MAX_WAIT, DEFAULT_MULTICAST_TTL
from .util import get_interface_ip_address
from .search_target import SsdpSearchTarget
from .msearch_request import SsdpMSearchRequest
from .message_parser import SsdpMessage, SsdpMessageType, SsdpMessageParser
from .observer import SsdpResponseCollector
from .ssdp_socket import SsdpSocket
from .discovery_session import SsdpDiscoverySession, SessionPhase
from .msearch_response import SsdpMSearchResponse

DEFAULT_RESPONSE_WAIT_TIME = 4.0
"""The default amount of time (in seconds) that simple_search() waits for responses to come in."""

class SocketState(Enum):
    """State of the discovery socket"""
    CLOSED = 0
    OPEN = 1

class SsdpDiscovery(AsyncContextManager['SsdpDiscovery']):
    """
    SSDP discovery of UPnP devices and services on the local area network.

    Usage:
        class Observer(SsdpDiscoveryObserver):
            def discovered_service(self, response, session):
                print(response.location)

        discovery = SsdpDiscovery.default()
        request = SsdpMSearchRequest(Observer(), upnp.SERVICE_CONTENT_DIRECTORY)
        with await discovery.start_discovery(request, timeout=10.0) as session:
            ...

    Or, iterating over responses as they arrive:

        async with SsdpDiscovery() as discovery:
            async with discovery.search(upnp.DEVICE_MEDIA_RENDERER, timeout=5.0) as responses:
                async for response in responses:
                    print(response.location)
    """

    multicast_address: str = SSDP_MULTICAST_ADDRESS
    """The multicast address to send M-SEARCH requests to."""

    multicast_port: int = SSDP_PORT
    """The multicast port to send M-SEARCH requests to."""

    bind_address: Optional[str] = None
    """The local IP address to bind the socket to. If None, binds to all interfaces."""

    interface: Optional[str] = None
    """The name of the network interface to discover on, if any. Its IPv4 address is used as
       bind_address."""

    multicast_ttl: int = DEFAULT_MULTICAST_TTL
    """IP_MULTICAST_TTL for M-SEARCH broadcasts"""

    _socket: Optional[SsdpSocket] = None
    _socket_lock: Optional[asyncio.Lock] = None
    _socket_lock_loop: Optional[asyncio.AbstractEventLoop] = None
    _active_sessions: Dict[int, SsdpDiscoverySession]
    _sessions_lock: threading.Lock
    _next_session_id: int = 1

    _default_discovery: Optional[SsdpDiscovery] = None

    def __init__(
            self,
            multicast_address: str=SSDP_MULTICAST_ADDRESS,
            multicast_port: int=SSDP_PORT,
            bind_address: Optional[str]=None,
            interface: Optional[str]=None,
            multicast_ttl: int=DEFAULT_MULTICAST_TTL,
          ) -> None:
        self.multicast_address = multicast_address
        self.multicast_port = multicast_port
        self.bind_address = bind_address
        self.interface = interface
        self.multicast_ttl = multicast_ttl
        self._active_sessions = {}
        self._sessions_lock = threading.Lock()

    @classmethod
    def default(cls) -> Self:
        """Returns the process-wide instance of this class, creating it on first use."""
        discovery = cls.__dict__.get('_default_discovery')
        if discovery is None:
            discovery = cls()
            cls._default_discovery = discovery
        return discovery

    @property
    def socket_state(self) -> SocketState:
        return SocketState.CLOSED if self._socket is None else SocketState.OPEN

    @property
    def active_sessions(self) -> List[SsdpDiscoverySession]:
        """A snapshot of the sessions that are currently active"""
        with self._sessions_lock:
            return list(self._active_sessions.values())

    async def start_discovery(
            self,
            request: SsdpMSearchRequest,
            timeout: Optional[float]=None
          ) -> SsdpDiscoverySession:
        """Starts a discovery session based on an M-SEARCH request.

        The caller is in control of the session lifetime, and must close() the returned session when
        done with it, unless an explicit timeout is used, in which case the session closes itself
        after the timeout.

        Parameters:
            request:  The M-SEARCH request representing the devices or services to discover
            timeout:  Time (in seconds) after which the session closes automatically. Defaults to None.

        Raises SsdpTransportError if the socket for M-SEARCH broadcasts cannot be established. In that
        case no session is started. If the first M-SEARCH broadcast raises, the session is closed before
        the exception propagates.
        """
        await self.init_discovery_socket()
        assert not self._socket is None
        with self._sessions_lock:
            session_id = self._next_session_id
            self._next_session_id += 1
            session = SsdpDiscoverySession(request, self, timeout=timeout, session_id=session_id)
            self._active_sessions[session_id] = session
        try:
            session.start()
        except BaseException:
            session.close()
            raise
        return session

    def stop_all_discovery(self) -> None:
        """Halts all discovery in flight for all sessions, notifying their observers, and closes the socket.
           Use with care to prevent unintended stopping of active sessions.

           Typically used when a local network adapter becomes unavailable and all active sessions should
           be stopped.

           Must be called on the event loop that runs the sessions.
        """
        for session in self.active_sessions:
            try:
                session.force_close()
            except Exception as e:
                logger.warning(f"Observer raised exception processing closed session {session}: {e}")
        # every session unregisters itself as it closes
        assert len(self._active_sessions) == 0
        self.deinit_discovery_socket()

    async def create_socket(self) -> SsdpSocket:
        """Creates and starts the socket used to broadcast M-SEARCH requests and receive responses.
           Subclasses can override to provide a different transport.

           Raises SsdpTransportError on failure.
        """
        bind_address = self.bind_address
        if bind_address is None and not self.interface is None:
            bind_address = get_interface_ip_address(self.interface)
            if bind_address is None:
                raise SsdpTransportError(f"Network interface '{self.interface}' does not exist or has no IPv4 address")
        ssdp_socket = SsdpSocket(
            datagram_handler=self.on_datagram_received,
            bind_address=bind_address,
            multicast_ttl=self.multicast_ttl,
          )
        await ssdp_socket.start()
        return ssdp_socket

    async def init_discovery_socket(self) -> None:
        """Creates the discovery socket if it does not already exist."""
        # an asyncio.Lock is bound to the first event loop that waits on it
        loop = asyncio.get_running_loop()
        if self._socket_lock is None or self._socket_lock_loop is not loop:
            self._socket_lock = asyncio.Lock()
            self._socket_lock_loop = loop
        async with self._socket_lock:
            if not self._socket is None:
                return
            ssdp_socket = await self.create_socket()
            logger.debug(f"Discovery socket opened: {ssdp_socket}")
            self._socket = ssdp_socket

    def deinit_discovery_socket(self) -> None:
        """Closes the discovery socket, if it is open."""
        ssdp_socket = self._socket
        self._socket = None
        if not ssdp_socket is None:
            ssdp_socket.close()
            logger.debug(f"Discovery socket closed: {ssdp_socket}")

    def send_request_message(self, request: SsdpMSearchRequest) -> None:
        """Sends a single M-SEARCH broadcast on the local area network. Sending a request does not guarantee
           a response given the unreliability of UDP."""
        ssdp_socket = self._socket
        if not ssdp_socket is None:
            ssdp_socket.sendto(request.raw_data, (self.multicast_address, self.multicast_port))

    def unregister_session(self, session: SsdpDiscoverySession) -> None:
        """Removes a closing session. Once all sessions are closed the socket is closed.

           Called by SsdpDiscoverySession.close().
        """
        with self._sessions_lock:
            removed = self._active_sessions.pop(session.session_id, None)
            is_idle = not removed is None and len(self._active_sessions) == 0
        if is_idle:
            self.deinit_discovery_socket()

    def on_datagram_received(self, data: bytes, addr: HostAndPort) -> None:
        """Called by the socket for every received datagram. Never raises."""
        logger.info(f"Datagram received from {addr}")
        try:
            message_str = data.decode('utf-8')
        except UnicodeDecodeError:
            logger.error(f"Unable to decode datagram from {addr}, raw=[{data!r}]")
            return
        logger.debug(f"Datagram from {addr}: {message_str!r}")
        message = SsdpMessageParser.parse(message_str)
        if message is None:
            logger.debug(f"Ignoring incomplete or unsupported message from {addr}: {message_str!r}")
            return
        self.handle_message(message)

    def handle_message(self, message: SsdpMessage) -> None:
        """Routes a parsed message to the sessions it applies to."""
        if message.message_type == SsdpMessageType.SEARCH_RESPONSE:
            assert not message.response is None
            self.handle_search_response(message.response)
        elif message.message_type in (SsdpMessageType.SEARCH_REQUEST, SsdpMessageType.NOTIFY):
            logger.debug(f"Ignoring {message}")
        else:
            raise AssertionError(f"Unhandled message type: {message.message_type}")

    def handle_search_response(self, response: SsdpMSearchResponse) -> None:
        search_target = response.search_target
        # Devices must not respond with ssdp:all
        if search_target.is_all:
            logger.warning(f"Received M-SEARCH response with ssdp:all from {response.location}")
            return
        as_device = search_target.is_device
        for session in self.active_sessions:
            if session.phase != SessionPhase.SEARCHING:
                continue
            session_target = session.request.search_target
            if session_target == search_target or session_target.is_all:
                try:
                    session.receive_response(response, as_device)
                except Exception as e:
                    logger.warning(f"{session} raised exception processing response {response}: {e}")

    @asynccontextmanager
    async def search(
            self,
            search_target: SsdpSearchTarget,
            timeout: Optional[float]=DEFAULT_RESPONSE_WAIT_TIME,
            max_wait: int=DEFAULT_MAX_WAIT,
            max_responses: int=0,
            other_headers: Optional[Mapping[str, str]]=None,
          ) -> AsyncIterator[SsdpResponseCollector]:
        """An async context manager that starts a discovery session and yields an async iterable
           of the discovered responses. Iteration ends when the timeout expires or max_responses
           have been received; the session is closed when the context manager exits.

        Parameters:
            search_target:  The search target to discover.
            timeout:        Time (in seconds) after which the session closes. If None, iteration
                              continues until the caller breaks out of it.
            max_wait:       The MX value of the M-SEARCH request.
            max_responses:  The maximum number of responses to iterate. If 0 (the default), all responses
                              received within the timeout are returned.
            other_headers:  Additional headers to include in the M-SEARCH request.

        Usage:
            async with discovery.search(upnp.DEVICE_MEDIA_SERVER) as responses:
                async for response in responses:
                    print(response.location)
                    # It is possible to break out of the loop early if desired; e.g., if you got the response you were looking for..
        """
        collector = SsdpResponseCollector(max_responses=max_responses)
        request = SsdpMSearchRequest(collector, search_target, max_wait=max_wait, other_headers=other_headers)
        session = await self.start_discovery(request, timeout=timeout)
        try:
            yield collector
        finally:
            session.close()

    async def simple_search(
            self,
            search_target: SsdpSearchTarget,
            response_wait_time: float=DEFAULT_RESPONSE_WAIT_TIME,
            max_wait: int=DEFAULT_MAX_WAIT,
            max_responses: int=0,
            other_headers: Optional[Mapping[str, str]]=None,
          ) -> List[SsdpMSearchResponse]:
        """A simple search that waits for a fixed time for all responses to come in, and returns the
           responses. Does not allow for early termination of the search when a desired response is received.

           Early out/incremental results can be obtained by using the search() method.
        """
        results: List[SsdpMSearchResponse] = []
        async with self.search(
                search_target,
                timeout=response_wait_time,
                max_wait=max_wait,
                max_responses=max_responses,
                other_headers=other_headers,
              ) as responses:
            async for response in responses:
                results.append(response)
        return results

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        self.stop_all_discovery()
        return False

    def __str__(self) -> str:
        return f"SsdpDiscovery({self.multicast_address}:{self.multicast_port})"

    def __repr__(self) -> str:
        return str(self)

#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SsdpDiscoverySession -- one outstanding discovery operation, returned by SsdpDiscovery.start_discovery().

A session keeps broadcasting its M-SEARCH request at a stepped cadence based on how long it has been
running, as UPnP recommends given the unreliable nature of UDP (especially over WiFi). To avoid flooding
the network, the cadence backs off from one search per second to one search per minute:

    elapsed < 5s         every 1s
    5s <= elapsed < 10s  every 3s
    10s <= elapsed < 60s every 10s
    elapsed >= 60s       every 60s

For this reason sessions should be closed as soon as the devices or services of interest have been
discovered. The owner of a session must close() it on every exit path (or use it as a context manager);
a session that is neither closed nor given a timeout keeps its retransmission timer and its entry in
the SsdpDiscovery running until SsdpDiscovery.stop_all_discovery() is called.

Sessions started with a timeout close themselves when the timeout expires, and notify their observer
with closed_session(); such sessions may be used in a fire-and-forget manner.
"""

from __future__ import annotations

import asyncio
import threading
from enum import Enum

from .internal_types import *
from .pkg_logging import logger
from .msearch_request import SsdpMSearchRequest
from .msearch_response import SsdpMSearchResponse

if TYPE_CHECKING:
    from .discovery import SsdpDiscovery

LONG_RUNNING_WARNING_INTERVAL = 30.0
"""A warning is logged each time a session has been searching for this many more seconds."""

def retransmit_interval(elapsed: float) -> float:
    """Returns the time (in seconds) until the next M-SEARCH broadcast for a session that has been
       searching for `elapsed` seconds."""
    if elapsed >= 60.0:
        return 60.0
    elif elapsed >= 10.0:
        return 10.0
    elif elapsed >= 5.0:
        return 3.0
    else:
        return 1.0

class SessionPhase(Enum):
    """Phase of a session. Phases only move forward; a closed session can never be restarted."""
    UNKNOWN = 0
    """The session has not been started yet"""
    SEARCHING = 1
    """The session is actively searching for devices"""
    CLOSED = 2
    """The session has closed and will no longer perform discovery"""

class SsdpDiscoverySession(ContextManager['SsdpDiscoverySession']):
    """A discovery session for a single M-SEARCH request.

    Created and started by SsdpDiscovery.start_discovery(). Discovered devices and services are reported
    once each (as identified by USN and LOCATION) to the observer of the request.

    Usage:
        with await discovery.start_discovery(request) as session:
            ...  # wait for the observer to report what you are looking for
    """

    request: SsdpMSearchRequest
    """The M-SEARCH request broadcast by this session"""

    timeout: Optional[float]
    """Time (in seconds) after which the session closes itself, or None"""

    session_id: int
    """Identifies this session within its SsdpDiscovery"""

    _discovery: Optional[SsdpDiscovery]
    _phase: SessionPhase
    _lock: threading.Lock
    _responses: Set[SsdpMSearchResponse]
    _loop: Optional[asyncio.AbstractEventLoop] = None
    _start_time: float = 0.0
    _check_time: float = 0.0
    _retransmit_handle: Optional[asyncio.TimerHandle] = None
    _timeout_handle: Optional[asyncio.TimerHandle] = None

    def __init__(
            self,
            request: SsdpMSearchRequest,
            discovery: SsdpDiscovery,
            timeout: Optional[float]=None,
            session_id: int=0,
          ):
        self.request = request
        self.timeout = timeout
        self.session_id = session_id
        self._discovery = discovery
        self._phase = SessionPhase.UNKNOWN
        self._lock = threading.Lock()
        self._responses = set()

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def responses(self) -> FrozenSet[SsdpMSearchResponse]:
        """All devices and services discovered by this session so far"""
        with self._lock:
            return frozenset(self._responses)

    def start(self) -> None:
        """Starts the session and broadcasts the first M-SEARCH request. Does nothing unless the
           session is in the UNKNOWN phase.

           Must be called from a coroutine or callback running on the event loop, which is then used
           for all of the session's timers. Called by SsdpDiscovery.start_discovery().
        """
        loop = asyncio.get_running_loop()
        with self._lock:
            if self._phase != SessionPhase.UNKNOWN:
                return
            self._loop = loop
            self._start_time = loop.time()
            self._check_time = self._start_time
            self._phase = SessionPhase.SEARCHING
            if not self.timeout is None:
                self._timeout_handle = loop.call_later(self.timeout, self._on_timeout)
        logger.debug(f"{self}: Started searching for {self.request.search_target}, timeout={self.timeout}")
        self._send_search_request()

    def close(self) -> None:
        """Closes the session and halts any further M-SEARCH requests.

        Once closed a session cannot be reopened, and any responses from in-flight M-SEARCH broadcasts
        are ignored. The observer is not notified. Safe to call more than once.

        When called from outside the event loop that runs the session, the close is scheduled on that
        loop and happens shortly after this call returns.
        """
        if self._call_soon_on_loop(self.close):
            return
        self._close()

    def force_close(self) -> None:
        """Closes the session and notifies the observer with closed_session(). Used when the session is
           closed by a timeout or by SsdpDiscovery.stop_all_discovery() rather than by its owner."""
        if self._call_soon_on_loop(self.force_close):
            return
        if self._close():
            self.request.observer.closed_session(self)

    def receive_response(self, response: SsdpMSearchResponse, as_device: bool) -> None:
        """Called by SsdpDiscovery for each M-SEARCH response that matches this session's search target.
           Responses that have already been seen are ignored; new ones are reported to the observer
           as a discovered device (if as_device is True) or service."""
        if response.search_target.is_all:
            logger.warning(f"{self}: Dropping M-SEARCH response with ST ssdp:all from {response.location}")
            return
        with self._lock:
            if self._phase != SessionPhase.SEARCHING:
                logger.debug(f"{self}: Ignoring response received in phase {self._phase.name}: {response}")
                return
            if response in self._responses:
                return
            self._responses.add(response)
        logger.info(f"{self}: Discovered {response}")
        observer = self.request.observer
        if as_device:
            observer.discovered_device(response, self)
        else:
            observer.discovered_service(response, self)

    def _call_soon_on_loop(self, callback: Callable[[], None]) -> bool:
        """If the session's event loop is running and the caller is not on it, schedules callback on
           that loop and returns True. Otherwise returns False."""
        loop = self._loop
        if loop is None or loop.is_closed() or not loop.is_running():
            return False
        try:
            running_loop: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            running_loop = None
        if running_loop is loop:
            return False
        loop.call_soon_threadsafe(callback)
        return True

    def _close(self) -> bool:
        """Closes the session. Returns True if this call closed it; False if it was already closed."""
        with self._lock:
            if not self._retransmit_handle is None:
                self._retransmit_handle.cancel()
                self._retransmit_handle = None
            if not self._timeout_handle is None:
                self._timeout_handle.cancel()
                self._timeout_handle = None
            discovery = self._discovery
            self._discovery = None
            was_closed = self._phase == SessionPhase.CLOSED
            self._phase = SessionPhase.CLOSED
        if not discovery is None:
            discovery.unregister_session(self)
        if not was_closed:
            logger.debug(f"{self}: Closed")
        return not was_closed

    def _send_search_request(self) -> None:
        """Sends a single M-SEARCH on the LAN and schedules the next one"""
        with self._lock:
            if self._phase != SessionPhase.SEARCHING:
                return
            assert not self._discovery is None
            self._discovery.send_request_message(self.request)
            self._schedule_next_timer()

    def _schedule_next_timer(self) -> None:
        # self._lock is held
        loop = self._loop
        assert not loop is None
        now = loop.time()
        cadence = retransmit_interval(now - self._start_time)
        self._retransmit_handle = loop.call_later(cadence, self._on_retransmit_timer)

        if now - self._check_time > LONG_RUNNING_WARNING_INTERVAL:
            logger.warning(f"{self}: Session has been searching for {now - self._start_time:.0f} seconds; "
                           "sessions should be closed once discovery is complete")
            self._check_time = now

    def _on_retransmit_timer(self) -> None:
        with self._lock:
            self._retransmit_handle = None
        self._send_search_request()

    def _on_timeout(self) -> None:
        with self._lock:
            self._timeout_handle = None
        logger.debug(f"{self}: Timed out after {self.timeout} seconds")
        try:
            self.force_close()
        except Exception as e:
            logger.warning(f"{self}: Observer raised exception processing closed session: {e}")

    def __enter__(self) -> Self:
        return self

    def __exit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        self.close()
        return False

    def __str__(self) -> str:
        return f"SsdpDiscoverySession({self.session_id}: {self.request.search_target})"

    def __repr__(self) -> str:
        return str(self)

#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Observers that receive the results of a discovery session.

SsdpDiscoveryObserver -- base class with no-op callbacks; subclass and override the
                         callbacks of interest.
SsdpResponseCollector -- an observer that queues discovered responses and exposes them as
                         an async iterator that ends when the session is closed.
"""

from __future__ import annotations

import asyncio

from .internal_types import *
from .pkg_logging import logger

if TYPE_CHECKING:
    from .msearch_response import SsdpMSearchResponse
    from .discovery_session import SsdpDiscoverySession

MAX_QUEUE_SIZE = 1000

class SsdpDiscoveryObserver:
    """Receives discovered devices and services from a discovery session.

    All callbacks are invoked on the event loop that runs the session, and all default to no-ops.
    """

    def discovered_device(self, response: SsdpMSearchResponse, session: SsdpDiscoverySession) -> None:
        """Called when a requested device has been discovered"""
        pass

    def discovered_service(self, response: SsdpMSearchResponse, session: SsdpDiscoverySession) -> None:
        """Called when a requested service has been discovered"""
        pass

    def closed_session(self, session: SsdpDiscoverySession) -> None:
        """Called when a session has been closed by a timeout or by SsdpDiscovery.stop_all_discovery().
           Not called when the owner of the session closes it."""
        pass

class SsdpResponseCollector(SsdpDiscoveryObserver, AsyncIterable['SsdpMSearchResponse']):
    """An observer that collects discovered devices and services into a queue.

    Usage:
        collector = SsdpResponseCollector()
        request = SsdpMSearchRequest(collector, search_target)
        with await discovery.start_discovery(request, timeout=5.0):
            async for response in collector:
                print(response.location)
                # It is possible to break out of the loop early if desired; e.g., if you got the response you were looking for..
    """
    queue: asyncio.Queue[Optional[SsdpMSearchResponse]]
    max_responses: int
    n_received: int = 0
    eos: bool = False

    def __init__(self, max_responses: int=0, max_queue_size: int=MAX_QUEUE_SIZE):
        """Parameters:
            max_responses:   If nonzero, iteration ends after this many responses.
            max_queue_size:  Responses that arrive while the queue is full are dropped with a warning.
        """
        self.queue = asyncio.Queue(max_queue_size)
        self.max_responses = max_responses

    def discovered_device(self, response: SsdpMSearchResponse, session: SsdpDiscoverySession) -> None:
        self._put(response)

    def discovered_service(self, response: SsdpMSearchResponse, session: SsdpDiscoverySession) -> None:
        self._put(response)

    def closed_session(self, session: SsdpDiscoverySession) -> None:
        self.set_end_of_stream()

    def set_end_of_stream(self) -> None:
        """Ends iteration once all queued responses have been consumed."""
        if not self.eos:
            self.eos = True
            try:
                # wake up any waiting tasks
                self.queue.put_nowait(None)
            except asyncio.QueueFull:
                # queue is full so waiters will wake up soon
                pass

    def _put(self, response: SsdpMSearchResponse) -> None:
        if not self.eos:
            try:
                self.queue.put_nowait(response)
            except asyncio.QueueFull:
                logger.warning(f"Queue full, dropping discovered response from {response.location}")

    async def receive(self) -> Optional[SsdpMSearchResponse]:
        """Waits for the next discovered response. Returns None at end of stream."""
        if self.max_responses > 0 and self.n_received >= self.max_responses:
            return None
        if self.eos and self.queue.empty():
            return None
        result = await self.queue.get()
        self.queue.task_done()
        if result is None:
            return None
        self.n_received += 1
        return result

    async def iter_responses(self) -> AsyncIterator[SsdpMSearchResponse]:
        while True:
            result = await self.receive()
            if result is None:
                break
            yield result

    def __aiter__(self) -> AsyncIterator[SsdpMSearchResponse]:
        return self.iter_responses()

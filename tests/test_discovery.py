#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import asyncio

import pytest

from ssdp_discovery import (
    SsdpDiscovery,
    SsdpMSearchRequest,
    SsdpSearchTarget,
    SsdpSocket,
    SsdpTransportError,
    SessionPhase,
    SocketState,
    upnp,
  )

from .conftest import FakeDiscovery, RecordingObserver, make_response

SENDER = ("192.168.1.20", 1900)

CONTENT_DIRECTORY_ST = "urn:schemas-upnp-org:service:ContentDirectory:1"
MEDIA_SERVER_ST = "urn:schemas-upnp-org:device:MediaServer:1"

def start_session(loop, discovery, observer, search_target, timeout=None):
    request = SsdpMSearchRequest(observer, search_target)
    return loop.run_until_complete(discovery.start_discovery(request, timeout=timeout))

def test_discover_content_directory(loop, discovery, observer):
    session = start_session(loop, discovery, observer, upnp.SERVICE_CONTENT_DIRECTORY, timeout=10.0)
    ssdp_socket = discovery.current_socket
    assert ssdp_socket is not None
    assert len(ssdp_socket.sent) == 1
    data, addr = ssdp_socket.sent[0]
    assert addr == ("239.255.255.250", 1900)
    message = data.decode('utf-8')
    assert message.startswith("M-SEARCH * HTTP/1.1\r\n")
    assert f"ST: {CONTENT_DIRECTORY_ST}\r\n" in message

    ssdp_socket.datagram_received(make_response(CONTENT_DIRECTORY_ST), SENDER)
    assert len(observer.services) == 1
    response, reporting_session = observer.services[0]
    assert reporting_session is session
    assert response.search_target == upnp.SERVICE_CONTENT_DIRECTORY
    assert observer.devices == []

def test_repeated_response_is_reported_once(loop, discovery, observer):
    start_session(loop, discovery, observer, upnp.SERVICE_CONTENT_DIRECTORY)
    ssdp_socket = discovery.current_socket
    ssdp_socket.datagram_received(make_response(CONTENT_DIRECTORY_ST, server="A"), SENDER)
    ssdp_socket.datagram_received(make_response(CONTENT_DIRECTORY_ST, server="B"), SENDER)
    assert len(observer.services) == 1

def test_responses_are_routed_by_search_target(loop, discovery):
    media_server_observer = RecordingObserver()
    content_directory_observer = RecordingObserver()
    all_observer = RecordingObserver()
    start_session(loop, discovery, media_server_observer, upnp.DEVICE_MEDIA_SERVER)
    start_session(loop, discovery, content_directory_observer, upnp.SERVICE_CONTENT_DIRECTORY)
    start_session(loop, discovery, all_observer, SsdpSearchTarget.all())
    ssdp_socket = discovery.current_socket

    ssdp_socket.datagram_received(make_response(MEDIA_SERVER_ST, usn="uuid:1::" + MEDIA_SERVER_ST), SENDER)
    assert len(media_server_observer.devices) == 1
    assert content_directory_observer.n_callbacks == 0
    assert len(all_observer.devices) == 1

    ssdp_socket.datagram_received(make_response(CONTENT_DIRECTORY_ST, usn="uuid:1::" + CONTENT_DIRECTORY_ST), SENDER)
    assert media_server_observer.n_callbacks == 1
    assert len(content_directory_observer.services) == 1
    assert len(all_observer.services) == 1

def test_ssdp_all_response_is_ignored(loop, discovery):
    all_observer = RecordingObserver()
    root_observer = RecordingObserver()
    start_session(loop, discovery, all_observer, SsdpSearchTarget.all())
    start_session(loop, discovery, root_observer, SsdpSearchTarget.root_device())
    discovery.current_socket.datagram_received(make_response("ssdp:all"), SENDER)
    assert all_observer.n_callbacks == 0
    assert root_observer.n_callbacks == 0

@pytest.mark.parametrize("data", [
    b"",
    b"\xff\xfe\xfd",
    b"HTTP/1.1 200 OK\r\nEXT:\r\n",
    b"M-SEARCH * HTTP/1.1\r\nHOST: 239.255.255.250:1900\r\nMAN: ssdp:discover\r\nMX: 1\r\nST: ssdp:all\r\n",
    b"NOTIFY * HTTP/1.1\r\nNT: upnp:rootdevice\r\nNTS: ssdp:alive\r\n",
  ])
def test_unusable_datagrams_are_ignored(loop, discovery, observer, data: bytes):
    session = start_session(loop, discovery, observer, SsdpSearchTarget.all())
    discovery.on_datagram_received(data, SENDER)
    assert observer.n_callbacks == 0
    assert session.phase == SessionPhase.SEARCHING

def test_socket_is_shared_and_released(loop, discovery, observer):
    assert discovery.socket_state == SocketState.CLOSED
    first = start_session(loop, discovery, observer, upnp.DEVICE_MEDIA_SERVER)
    second = start_session(loop, discovery, observer, upnp.DEVICE_MEDIA_RENDERER)
    assert len(discovery.sockets) == 1
    assert discovery.socket_state == SocketState.OPEN
    first_socket = discovery.current_socket

    first.close()
    assert discovery.socket_state == SocketState.OPEN
    second.close()
    assert discovery.socket_state == SocketState.CLOSED
    assert first_socket.closed

    third = start_session(loop, discovery, observer, upnp.DEVICE_MEDIA_SERVER)
    assert len(discovery.sockets) == 2
    assert discovery.current_socket is not first_socket
    assert len(discovery.current_socket.sent) == 1
    assert third.session_id not in (first.session_id, second.session_id)

def test_concurrent_starts_create_one_socket(loop, discovery, observer):
    async def start_both():
        return await asyncio.gather(
            discovery.start_discovery(SsdpMSearchRequest(observer, upnp.DEVICE_MEDIA_SERVER)),
            discovery.start_discovery(SsdpMSearchRequest(observer, upnp.DEVICE_MEDIA_RENDERER)),
          )

    sessions = loop.run_until_complete(start_both())
    assert len(discovery.sockets) == 1
    assert len(discovery.active_sessions) == 2
    assert len(discovery.current_socket.sent) == 2
    assert sessions[0].session_id != sessions[1].session_id

def test_stop_all_discovery(loop, discovery):
    observers = [RecordingObserver() for _ in range(3)]
    sessions = [
        start_session(loop, discovery, observer, SsdpSearchTarget.root_device())
        for observer in observers
      ]
    ssdp_socket = discovery.current_socket
    discovery.stop_all_discovery()
    assert discovery.active_sessions == []
    assert discovery.socket_state == SocketState.CLOSED
    assert ssdp_socket.closed
    for observer, session in zip(observers, sessions):
        assert session.phase == SessionPhase.CLOSED
        assert observer.closed == [session]

def test_transport_error_starts_no_session(loop, observer):
    discovery = FakeDiscovery()
    discovery.fail_socket_creation = True
    request = SsdpMSearchRequest(observer, SsdpSearchTarget.all())
    with pytest.raises(SsdpTransportError):
        loop.run_until_complete(discovery.start_discovery(request))
    assert discovery.active_sessions == []
    assert discovery.socket_state == SocketState.CLOSED

def test_unknown_interface_is_a_transport_error(loop, observer):
    discovery = SsdpDiscovery(interface="no-such-interface0")
    request = SsdpMSearchRequest(observer, SsdpSearchTarget.all())
    with pytest.raises(SsdpTransportError):
        loop.run_until_complete(discovery.start_discovery(request))
    assert discovery.active_sessions == []

class FailingObserver(RecordingObserver):
    def discovered_device(self, response, session):
        super().discovered_device(response, session)
        raise RuntimeError("observer failure")

def test_failing_observer_does_not_affect_other_sessions(loop, discovery):
    failing_observer = FailingObserver()
    observer = RecordingObserver()
    start_session(loop, discovery, failing_observer, SsdpSearchTarget.root_device())
    start_session(loop, discovery, observer, SsdpSearchTarget.root_device())
    discovery.current_socket.datagram_received(make_response("upnp:rootdevice"), SENDER)
    assert len(failing_observer.devices) == 1
    assert len(observer.devices) == 1

def test_search_ends_at_timeout(loop, discovery):
    async def run_search():
        results = []
        async with discovery.search(upnp.SERVICE_CONTENT_DIRECTORY, timeout=0.2) as responses:
            ssdp_socket = discovery.current_socket
            loop.call_later(0.05, ssdp_socket.datagram_received, make_response(CONTENT_DIRECTORY_ST), SENDER)
            async for response in responses:
                results.append(response)
        return results

    results = loop.run_until_complete(asyncio.wait_for(run_search(), 5.0))
    assert len(results) == 1
    assert results[0].search_target == upnp.SERVICE_CONTENT_DIRECTORY
    assert discovery.active_sessions == []

def test_search_ends_after_max_responses(loop, discovery):
    async def run_search():
        results = []
        async with discovery.search(SsdpSearchTarget.all(), timeout=None, max_responses=1) as responses:
            ssdp_socket = discovery.current_socket
            ssdp_socket.datagram_received(make_response("upnp:rootdevice", usn="uuid:1::upnp:rootdevice"), SENDER)
            ssdp_socket.datagram_received(make_response("upnp:rootdevice", usn="uuid:2::upnp:rootdevice"), SENDER)
            async for response in responses:
                results.append(response)
        return results

    results = loop.run_until_complete(asyncio.wait_for(run_search(), 5.0))
    assert [response.usn for response in results] == ["uuid:1::upnp:rootdevice"]
    assert discovery.active_sessions == []
    assert discovery.socket_state == SocketState.CLOSED

def test_simple_search(loop, discovery):
    async def run_search():
        loop.call_later(
            0.05,
            discovery.on_datagram_received,
            make_response(MEDIA_SERVER_ST, usn="uuid:1::" + MEDIA_SERVER_ST),
            SENDER,
          )
        return await discovery.simple_search(upnp.DEVICE_MEDIA_SERVER, response_wait_time=0.2)

    results = loop.run_until_complete(asyncio.wait_for(run_search(), 5.0))
    assert len(results) == 1
    assert results[0].usn == "uuid:1::" + MEDIA_SERVER_ST

def test_async_context_manager_stops_discovery(loop, observer):
    discovery = FakeDiscovery()

    async def run():
        async with discovery:
            await discovery.start_discovery(SsdpMSearchRequest(observer, SsdpSearchTarget.all()))
            assert discovery.socket_state == SocketState.OPEN

    loop.run_until_complete(run())
    assert discovery.active_sessions == []
    assert discovery.socket_state == SocketState.CLOSED
    assert len(observer.closed) == 1

def test_default_discovery_is_shared():
    assert SsdpDiscovery.default() is SsdpDiscovery.default()
    assert type(SsdpDiscovery.default()) is SsdpDiscovery

def test_default_discovery_of_subclass():
    default = FakeDiscovery.default()
    assert isinstance(default, FakeDiscovery)
    assert FakeDiscovery.default() is default
    assert SsdpDiscovery.default() is not default

def test_discovery_is_reusable_across_event_loops(observer):
    discovery = FakeDiscovery()

    async def start_two_and_close():
        sessions = await asyncio.gather(
            discovery.start_discovery(SsdpMSearchRequest(observer, upnp.DEVICE_MEDIA_SERVER)),
            discovery.start_discovery(SsdpMSearchRequest(observer, upnp.DEVICE_MEDIA_RENDERER)),
          )
        for session in sessions:
            session.close()

    asyncio.run(start_two_and_close())
    asyncio.run(start_two_and_close())
    assert len(discovery.sockets) == 2
    assert discovery.active_sessions == []
    assert discovery.socket_state == SocketState.CLOSED

class FailingSendDiscovery(FakeDiscovery):
    def send_request_message(self, request):
        raise SsdpTransportError("Network is unreachable")

def test_failed_first_broadcast_leaves_no_session(loop, observer):
    discovery = FailingSendDiscovery()
    request = SsdpMSearchRequest(observer, SsdpSearchTarget.all())
    with pytest.raises(SsdpTransportError):
        loop.run_until_complete(discovery.start_discovery(request, timeout=10.0))
    assert discovery.active_sessions == []
    assert discovery.socket_state == SocketState.CLOSED
    assert discovery.sockets[0].closed
    assert observer.closed == []

def test_interface_is_resolved_to_bind_address(loop, monkeypatch):
    async def start(self):
        pass

    monkeypatch.setattr(SsdpSocket, "start", start)
    monkeypatch.setattr(
        "ssdp_discovery.discovery.get_interface_ip_address",
        lambda ifname: "192.168.1.5" if ifname == "eth0" else None,
      )
    ssdp_socket = loop.run_until_complete(SsdpDiscovery(interface="eth0", multicast_ttl=4).create_socket())
    assert ssdp_socket.bind_address == "192.168.1.5"
    assert ssdp_socket.multicast_ttl == 4

    ssdp_socket = loop.run_until_complete(SsdpDiscovery(bind_address="10.0.0.2", interface="eth0").create_socket())
    assert ssdp_socket.bind_address == "10.0.0.2"

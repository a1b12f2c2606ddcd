#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Device and service search targets officially declared by the UPnP Forum."""

from __future__ import annotations

from .internal_types import *
from .search_target import SsdpSearchTarget

UPNP_ORG_SCHEMA = "schemas-upnp-org"
"""Schema to use with device_type() or service_type() for UPnP Forum working committee devices and services."""

# UPnP Audio/Video

DEVICE_MEDIA_SERVER = SsdpSearchTarget.device_type(UPNP_ORG_SCHEMA, "MediaServer", 1)
DEVICE_MEDIA_RENDERER = SsdpSearchTarget.device_type(UPNP_ORG_SCHEMA, "MediaRenderer", 1)

SERVICE_AV_TRANSPORT = SsdpSearchTarget.service_type(UPNP_ORG_SCHEMA, "AVTransport", 1)
SERVICE_CONNECTION_MANAGER = SsdpSearchTarget.service_type(UPNP_ORG_SCHEMA, "ConnectionManager", 1)
SERVICE_CONTENT_DIRECTORY = SsdpSearchTarget.service_type(UPNP_ORG_SCHEMA, "ContentDirectory", 1)
SERVICE_RENDERING_CONTROL = SsdpSearchTarget.service_type(UPNP_ORG_SCHEMA, "RenderingControl", 1)

# UPnP Internet Gateway Device (IGD)

DEVICE_INTERNET_GATEWAY_DEVICE = SsdpSearchTarget.device_type(UPNP_ORG_SCHEMA, "InternetGatewayDevice", 1)
DEVICE_WAN_CONNECTION_DEVICE = SsdpSearchTarget.device_type(UPNP_ORG_SCHEMA, "WANConnectionDevice", 1)
DEVICE_WAN_DEVICE = SsdpSearchTarget.device_type(UPNP_ORG_SCHEMA, "WANDevice", 1)

SERVICE_LAYER3_FORWARDING = SsdpSearchTarget.service_type(UPNP_ORG_SCHEMA, "Layer3Forwarding", 1)
SERVICE_WAN_COMMON_INTERFACE_CONFIG = SsdpSearchTarget.service_type(UPNP_ORG_SCHEMA, "WANCommonInterfaceConfig", 1)
SERVICE_WAN_IP_CONNECTION = SsdpSearchTarget.service_type(UPNP_ORG_SCHEMA, "WANIPConnection", 1)

WELL_KNOWN_SEARCH_TARGETS: Dict[str, SsdpSearchTarget] = {
    "media-server": DEVICE_MEDIA_SERVER,
    "media-renderer": DEVICE_MEDIA_RENDERER,
    "av-transport": SERVICE_AV_TRANSPORT,
    "connection-manager": SERVICE_CONNECTION_MANAGER,
    "content-directory": SERVICE_CONTENT_DIRECTORY,
    "rendering-control": SERVICE_RENDERING_CONTROL,
    "internet-gateway-device": DEVICE_INTERNET_GATEWAY_DEVICE,
    "wan-connection-device": DEVICE_WAN_CONNECTION_DEVICE,
    "wan-device": DEVICE_WAN_DEVICE,
    "layer3-forwarding": SERVICE_LAYER3_FORWARDING,
    "wan-common-interface-config": SERVICE_WAN_COMMON_INTERFACE_CONFIG,
    "wan-ip-connection": SERVICE_WAN_IP_CONNECTION,
}
"""Short aliases accepted by the command-line tool in place of a full search target."""

#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SsdpSearchTarget -- the value of the ST header in M-SEARCH requests and responses (and of
the NT header in NOTIFY announcements).

A search target is one of five shapes:

    ssdp:all                                     All devices and services
    upnp:rootdevice                              Root devices only
    uuid:<device-uuid>                           A particular device
    urn:<schema>:device:<device-type>:<version>  Any device of a type
    urn:<schema>:service:<service-type>:<ver>    Any service of a type

Period characters in the schema (domain name) must be replaced with hyphens
in accordance with RFC 2141; this is the caller's responsibility, e.g., "schemas-upnp-org".
"""

from __future__ import annotations

import re
from enum import Enum

from .internal_types import *

class SearchTargetKind(Enum):
    """The variant of an SsdpSearchTarget."""
    ALL = "all"
    ROOT_DEVICE = "rootdevice"
    UUID = "uuid"
    DEVICE_TYPE = "device"
    SERVICE_TYPE = "service"

_DEVICE_KINDS = (SearchTargetKind.ROOT_DEVICE, SearchTargetKind.UUID, SearchTargetKind.DEVICE_TYPE)

_version_re = re.compile(r"[+-]?[0-9]+")

class SsdpSearchTarget:
    """An immutable SSDP search target.

    Instances compare equal if they are the same kind and have equal fields. Use the
    factory classmethods (all(), root_device(), uuid(), device_type(), service_type())
    or parse() to create one.
    """

    __slots__ = ('_kind', '_uuid', '_schema', '_type_name', '_version')

    _kind: SearchTargetKind
    _uuid: Optional[str]
    _schema: Optional[str]
    _type_name: Optional[str]
    _version: Optional[int]

    def __init__(
            self,
            kind: SearchTargetKind,
            uuid: Optional[str]=None,
            schema: Optional[str]=None,
            type_name: Optional[str]=None,
            version: Optional[int]=None
          ):
        if kind in (SearchTargetKind.ALL, SearchTargetKind.ROOT_DEVICE):
            if not (uuid is None and schema is None and type_name is None and version is None):
                raise ValueError(f"Search target {kind.name} does not take any fields")
        elif kind == SearchTargetKind.UUID:
            if uuid is None or not (schema is None and type_name is None and version is None):
                raise ValueError("A uuid search target requires only a uuid")
        else:
            if schema is None or type_name is None or version is None or not uuid is None:
                raise ValueError(f"Search target {kind.name} requires schema, type_name and version")
        object.__setattr__(self, '_kind', kind)
        object.__setattr__(self, '_uuid', uuid)
        object.__setattr__(self, '_schema', schema)
        object.__setattr__(self, '_type_name', type_name)
        object.__setattr__(self, '_version', version)

    @classmethod
    def all(cls) -> SsdpSearchTarget:
        """Search for all devices and services ("ssdp:all")."""
        return cls(SearchTargetKind.ALL)

    @classmethod
    def root_device(cls) -> SsdpSearchTarget:
        """Search for root devices only ("upnp:rootdevice")."""
        return cls(SearchTargetKind.ROOT_DEVICE)

    @classmethod
    def uuid(cls, uuid: str) -> SsdpSearchTarget:
        """Search for a particular device by its vendor-specified UUID."""
        return cls(SearchTargetKind.UUID, uuid=uuid)

    @classmethod
    def device_type(cls, schema: str, device_type: str, version: int) -> SsdpSearchTarget:
        """Search for any device of a type."""
        return cls(SearchTargetKind.DEVICE_TYPE, schema=schema, type_name=device_type, version=version)

    @classmethod
    def service_type(cls, schema: str, service_type: str, version: int) -> SsdpSearchTarget:
        """Search for any service of a type."""
        return cls(SearchTargetKind.SERVICE_TYPE, schema=schema, type_name=service_type, version=version)

    @classmethod
    def parse(cls, raw: str) -> Optional[SsdpSearchTarget]:
        """Parse a search target from its canonical string form.

        Returns None if the string does not have one of the five recognized shapes, or
        if the version of a device/service type is not an integer.
        """
        components = raw.split(':')
        if len(components) == 2:
            prefix, value = components
            if prefix == 'ssdp':
                if value == 'all':
                    return cls.all()
            elif prefix == 'upnp':
                if value == 'rootdevice':
                    return cls.root_device()
            elif prefix == 'uuid':
                return cls.uuid(value)
        elif len(components) == 5 and components[0] == 'urn':
            if _version_re.fullmatch(components[4]) is None:
                return None
            version = int(components[4])
            if components[2] == 'device':
                return cls.device_type(components[1], components[3], version)
            elif components[2] == 'service':
                return cls.service_type(components[1], components[3], version)
        return None

    def format(self) -> str:
        """Returns the canonical string form used as ST in M-SEARCH requests or NT in NOTIFY announcements."""
        kind = self._kind
        if kind == SearchTargetKind.ALL:
            return "ssdp:all"
        elif kind == SearchTargetKind.ROOT_DEVICE:
            return "upnp:rootdevice"
        elif kind == SearchTargetKind.UUID:
            return f"uuid:{self._uuid}"
        elif kind == SearchTargetKind.DEVICE_TYPE:
            return f"urn:{self._schema}:device:{self._type_name}:{self._version}"
        elif kind == SearchTargetKind.SERVICE_TYPE:
            return f"urn:{self._schema}:service:{self._type_name}:{self._version}"
        raise AssertionError(f"Unhandled search target kind: {kind}")

    @property
    def kind(self) -> SearchTargetKind:
        return self._kind

    @property
    def uuid_value(self) -> Optional[str]:
        """The device UUID of a UUID target; None for other kinds."""
        return self._uuid

    @property
    def schema(self) -> Optional[str]:
        """The schema of a device or service type target; None for other kinds."""
        return self._schema

    @property
    def type_name(self) -> Optional[str]:
        """The device or service type name; None for other kinds."""
        return self._type_name

    @property
    def version(self) -> Optional[int]:
        """The device or service type version; None for other kinds."""
        return self._version

    @property
    def is_all(self) -> bool:
        return self._kind == SearchTargetKind.ALL

    @property
    def is_device(self) -> bool:
        """True for targets whose responses describe a device (root device, uuid, device type)."""
        return self._kind in _DEVICE_KINDS

    @property
    def is_service(self) -> bool:
        return self._kind == SearchTargetKind.SERVICE_TYPE

    def _key(self) -> Tuple[SearchTargetKind, Optional[str], Optional[str], Optional[str], Optional[int]]:
        return (self._kind, self._uuid, self._schema, self._type_name, self._version)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"SsdpSearchTarget is immutable; cannot set {name}")

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, SsdpSearchTarget):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.format()

    def __repr__(self) -> str:
        return f"SsdpSearchTarget('{self.format()}')"

#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Type hints used internally by this package"""

from typing import (
    Dict, List, Optional, Union, Any, Tuple, Set, FrozenSet, Callable,
    Iterable, Iterator, Mapping, MutableMapping, Sequence,
    Awaitable, AsyncIterable, AsyncIterator, AsyncContextManager,
    ContextManager, TYPE_CHECKING,
  )
from types import TracebackType
from typing_extensions import Self

Jsonable = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]
"""A type that can be serialized to JSON."""

JsonableDict = Dict[str, Jsonable]
"""A dict that can be serialized to JSON."""

HostAndPort = Tuple[str, int]
"""An (ip_address, port) tuple as used by socket and asyncio datagram APIs."""

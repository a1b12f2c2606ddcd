#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

class SsdpError(Exception):
  """Base class for all error exceptions defined by this package."""
  pass

class SsdpTransportError(SsdpError):
  """Raised when the multicast socket used for discovery cannot be created, bound, or
     configured (e.g., broadcast permission denied). The underlying OSError, if any,
     is available as __cause__."""
  pass

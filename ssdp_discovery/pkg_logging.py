#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Logging for ssdp_discovery package.

All discovery log messages are emitted under the single "ssdp_discovery" category. Verbose
messages are logged at INFO level.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__.rsplit('.', 1)[0])

# This file is a part of Coordis.
#
# Copyright (C) 2017,2018 WIREMIND SAS <dev@wiremind.fr>
#
# Coordis is free software; you can redistribute it and/or modify it
# under the terms of the GNU Lesser General Public License as published by
# the Free Software Foundation, either version 3 of the License, or (at
# your option) any later version.
#
# Coordis is distributed in the hope that it will be useful, but WITHOUT
# ANY WARRANTY; without even the implied warranty of MERCHANTABILITY or
# FITNESS FOR A PARTICULAR PURPOSE. See the GNU Lesser General Public
# License for more details.
#
# You should have received a copy of the GNU Lesser General Public License
# along with this program.  If not, see <http://www.gnu.org/licenses/>.

from .clock import Clock, SystemClock
from .errors import (
    CoordisError,
    LockNotAcquired,
    NotAcquired,
    SemaphoreLimitReached,
    StoreUnavailable,
    UnknownStrategy,
)
from .lease import Lease
from .lock import Lock
from .logging import get_logger
from .metrics import Metrics
from .semaphore import Semaphore
from .store import StoreBackend, Transaction

__all__ = [
    # Clocks
    "Clock",
    # Errors
    "CoordisError",
    "Lease",
    # Primitives
    "Lock",
    "LockNotAcquired",
    # Metrics
    "Metrics",
    "NotAcquired",
    "Semaphore",
    "SemaphoreLimitReached",
    # Stores
    "StoreBackend",
    "StoreUnavailable",
    "SystemClock",
    "Transaction",
    "UnknownStrategy",
    # Logging
    "get_logger",
]

__version__ = "0.1.0"

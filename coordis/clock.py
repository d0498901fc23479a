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
import time
import uuid
from typing import Callable

TokenFactory = Callable[[], str]


class Clock:
    """Source of the current time used to stamp and expire entries.

    Every host taking part in a semaphore stamps entries with its own
    clock, so the skew between those clocks has to stay well under the
    semaphore's lock timeout.
    """

    def now_ms(self) -> int:
        raise NotImplementedError(f"{type(self).__name__!r} does not implement now_ms")


class SystemClock(Clock):
    """Wall clock time, in milliseconds since the epoch."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


def new_token() -> str:
    return str(uuid.uuid4())

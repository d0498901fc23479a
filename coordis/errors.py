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


class CoordisError(Exception):  # pragma: no cover
    """Base class for all coordis errors."""

    def __init__(self, message: str) -> None:
        self.message = message

    def __str__(self) -> str:
        return str(self.message) or repr(self.message)


class StoreUnavailable(CoordisError):
    """Raised when a command or transaction against the store could not
    be carried out (connection refused, timeout, aborted transaction...).
    """


class NotAcquired(CoordisError):
    """Base class for errors raised by the context manager helpers when
    a lock or a semaphore slot could not be obtained.
    """


class LockNotAcquired(NotAcquired):
    """Raised by :meth:`Lock.hold` when the lock is held by someone else."""


class SemaphoreLimitReached(NotAcquired):
    """Raised by :meth:`Semaphore.slot` when every slot is taken."""


class UnknownStrategy(CoordisError):
    """Raised when an unknown backoff strategy is requested."""

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
import threading
import time
from contextlib import contextmanager
from typing import Iterator

from .clock import Clock, SystemClock, TokenFactory, new_token
from .errors import LockNotAcquired
from .helpers.backoff import BackoffStrategy, compute_backoff
from .lease import Lease
from .logging import get_logger
from .metrics import LOCK, Metrics
from .store import StoreBackend

#: How long :meth:`Lock.acquire` keeps retrying by default, in milliseconds.
DEFAULT_ACQUIRE_TIMEOUT_MS = 10_000


class Lock:
    """An exclusive lock with a lease, shared by every client of the store.

    At most one token holds the lock for a given name at any time.  The
    lease bounds how long a crashed holder keeps the others out: once it
    runs out the lock record expires and the next :meth:`acquire` takes
    it over.  Holders of long critical sections must :meth:`refresh`
    before that happens.

    Parameters:
      store(StoreBackend): The store the lock records live in.
      clock(Clock): Timestamps the leases handed out by :meth:`hold`.
      token_factory(callable): Generates a unique token per acquisition.
      key_prefix(str): A prefix to prepend to the name of every lock.
      backoff_strategy(str): How the wait between two attempts grows.
      min_backoff(int): The minimum wait between two attempts, in milliseconds.
      max_backoff(int): The maximum wait between two attempts, in milliseconds.
      metrics(Metrics): Where to record outcomes, if anywhere.
    """

    def __init__(
        self,
        store: StoreBackend,
        *,
        clock: Clock | None = None,
        token_factory: TokenFactory | None = None,
        key_prefix: str = "lock:",
        backoff_strategy: BackoffStrategy = "exponential",
        min_backoff: int = 1,
        max_backoff: int = 100,
        metrics: Metrics | None = None,
    ) -> None:
        self.store = store
        self.clock = clock or SystemClock()
        self.token_factory = token_factory or new_token
        self.key_prefix = key_prefix
        self.backoff_strategy = backoff_strategy
        self.min_backoff = min_backoff
        self.max_backoff = max_backoff
        self.metrics = metrics
        self.logger = get_logger(__name__, type(self))

    def acquire(
        self,
        name: str,
        lease_ms: int,
        *,
        timeout_ms: int | None = DEFAULT_ACQUIRE_TIMEOUT_MS,
        max_attempts: int | None = None,
        cancel: threading.Event | None = None,
    ) -> str | None:
        """Take the lock on ``name`` for ``lease_ms`` milliseconds.

        The lock is tried once, then again after a backoff delay until it
        is taken, ``max_attempts`` attempts have been made, ``timeout_ms``
        milliseconds have been spent waiting between attempts or ``cancel``
        is set.  A ``timeout_ms`` of 0 makes a single attempt.

        Returns:
          str|None: The token to release or refresh the lock with, or
          None if the lock could not be taken.

        Raises:
          StoreUnavailable: If the store could not be reached.
        """
        if lease_ms <= 0:
            raise ValueError("lease_ms must be positive")
        if timeout_ms is None and max_attempts is None:
            raise ValueError("either timeout_ms or max_attempts must be set")

        key = self._build_key(name)
        token = self.token_factory()
        cancel = cancel or threading.Event()
        start = time.monotonic()

        attempts = 0
        waited = 0
        acquired = False
        while True:
            if self.store.set_if_absent(key, token, lease_ms):
                acquired = True
                break

            attempts, backoff = compute_backoff(
                attempts,
                backoff_strategy=self.backoff_strategy,
                min_backoff=self.min_backoff,
                max_backoff=self.max_backoff,
            )
            if max_attempts is not None and attempts >= max_attempts:
                break
            if timeout_ms is not None:
                remaining = timeout_ms - waited
                if remaining <= 0:
                    break
                backoff = min(backoff, remaining)
            waited += backoff
            if cancel.wait(backoff / 1000):
                self.logger.debug("Stopped waiting for lock %r: canceled", name)
                break

        if self.metrics is not None:
            self.metrics.acquired(LOCK, acquired, (time.monotonic() - start) * 1000)
        if not acquired:
            self.logger.debug("Could not acquire lock %r after %d attempt(s)", name, attempts)
            return None

        self.logger.debug("Acquired lock %r", name)
        return token

    def release(self, name: str, token: str) -> bool:
        """Release the lock, if ``token`` still holds it.

        Returns:
          bool: False if the lock is not held by ``token`` (its lease ran
          out, and maybe someone else took it over).
        """
        released = self.store.delete_if_equal(self._build_key(name), token)
        if self.metrics is not None:
            self.metrics.released(LOCK, released)
        if released:
            self.logger.debug("Released lock %r", name)
        else:
            self.logger.warning("Lock %r is no longer held by this token, nothing released", name)
        return released

    def refresh(self, name: str, token: str, lease_ms: int) -> bool:
        """Extend the lease to ``lease_ms`` milliseconds from now.

        Returns:
          bool: False if the lease already ran out.  The critical section
          it protected is then compromised.
        """
        if lease_ms <= 0:
            raise ValueError("lease_ms must be positive")

        refreshed = self.store.expire_if_equal(self._build_key(name), token, lease_ms)
        if self.metrics is not None:
            self.metrics.refreshed(LOCK, refreshed)
        if not refreshed:
            self.logger.warning("Lost lock %r before it could be refreshed", name)
        return refreshed

    @contextmanager
    def hold(self, name: str, lease_ms: int, **acquire_parameters) -> Iterator[Lease]:
        """Hold the lock for the duration of a ``with`` block::

          with lock.hold("reports", 30_000) as lease:
              ...
              lock.refresh(lease.name, lease.token, 30_000)

        Raises:
          LockNotAcquired: If the lock could not be taken.
        """
        token = self.acquire(name, lease_ms, **acquire_parameters)
        if token is None:
            raise LockNotAcquired(f"lock {name!r} is held by another client")

        try:
            yield Lease(name=name, token=token, ttl_ms=lease_ms, acquired_at_ms=self.clock.now_ms())
        finally:
            self.release(name, token)

    def _build_key(self, name: str) -> str:
        return f"{self.key_prefix}{name}"

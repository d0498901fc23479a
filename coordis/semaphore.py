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
from contextlib import contextmanager
from typing import Iterator

from .clock import Clock, SystemClock, TokenFactory, new_token
from .errors import SemaphoreLimitReached
from .lease import Lease
from .lock import Lock
from .logging import get_logger
from .metrics import SEMAPHORE_FAIR, SEMAPHORE_SIMPLE, Metrics
from .store import StoreBackend

#: How long acquire_fair_with_lock waits for the lock guarding the semaphore.
DEFAULT_LOCK_ACQUIRE_TIMEOUT_MS = 10

#: The lease of the lock guarding the semaphore.
DEFAULT_LOCK_LEASE_MS = 1000


class Semaphore:
    """A counting semaphore: at most ``limit`` holders of a named resource.

    Holders are tracked in a sorted set of tokens scored by acquisition
    time (the timeout index).  Entries older than the lock timeout are
    expired, and every acquisition starts by purging them, so a holder
    that dies without releasing frees its slot after that timeout.

    The simple variant admits a token if its rank in the timeout index
    is below the limit, ranking it after every entry with the same
    timestamp.  It requires the clocks of every host to agree, and is
    unfair: a host whose clock is late gets ranked first.

    The fair variant ranks tokens by a sequence number taken from a
    counter (the owner index) and only uses timestamps to expire them,
    which tolerates clock skew as long as it stays well under the lock
    timeout.  :meth:`acquire_fair_with_lock` additionally serializes
    acquisitions behind a :class:`Lock`.

    Parameters:
      store(StoreBackend): The store the indices live in.
      lock(Lock): The lock serializing fair acquisitions.  Defaults to a
        lock on the same store.
      clock(Clock): Timestamps entries.
      token_factory(callable): Generates a unique token per acquisition.
      key_prefix(str): A prefix to prepend to the name of every semaphore.
      lock_acquire_timeout_ms(int): How long to wait for ``lock``.
      lock_lease_ms(int): The lease taken on ``lock``.
      metrics(Metrics): Where to record outcomes, if anywhere.
    """

    def __init__(
        self,
        store: StoreBackend,
        *,
        lock: Lock | None = None,
        clock: Clock | None = None,
        token_factory: TokenFactory | None = None,
        key_prefix: str = "semaphore:",
        lock_acquire_timeout_ms: int = DEFAULT_LOCK_ACQUIRE_TIMEOUT_MS,
        lock_lease_ms: int = DEFAULT_LOCK_LEASE_MS,
        metrics: Metrics | None = None,
    ) -> None:
        self.store = store
        self.clock = clock or SystemClock()
        self.token_factory = token_factory or new_token
        self.lock = lock or Lock(store, clock=self.clock, metrics=metrics)
        self.key_prefix = key_prefix
        self.lock_acquire_timeout_ms = lock_acquire_timeout_ms
        self.lock_lease_ms = lock_lease_ms
        self.metrics = metrics
        self.logger = get_logger(__name__, type(self))

    def acquire_simple(self, name: str, limit: int, lock_timeout_ms: int) -> str | None:
        """Take one of the ``limit`` slots of ``name`` for ``lock_timeout_ms``
        milliseconds, the unfair way.

        Returns:
          str|None: The token to release the slot with, or None if every
          slot is taken.

        Raises:
          StoreUnavailable: If the store could not be reached.
        """
        self._check_arguments(limit, lock_timeout_ms)
        key = self._build_key(name)
        token = self.token_factory()
        now = self.clock.now_ms()
        start = time.monotonic()

        acquired = self.store.acquire_slot(key, token, now, limit, lock_timeout_ms)
        return self._acquired(SEMAPHORE_SIMPLE, name, token if acquired else None, start)

    def release_simple(self, name: str, token: str) -> bool:
        """Give back a slot taken with :meth:`acquire_simple`.

        Returns:
          bool: False if the token did not hold a slot anymore: it was
          already released, or it expired and was purged.
        """
        with self.store.transaction() as tx:
            tx.zrem(self._build_key(name), token)
            (removed,) = tx.execute()

        return self._released(SEMAPHORE_SIMPLE, name, bool(removed))

    def acquire_fair(self, name: str, limit: int, lock_timeout_ms: int) -> str | None:
        """Take one of the ``limit`` slots of ``name`` for ``lock_timeout_ms``
        milliseconds, in the order the sequence numbers were issued.

        The prune, increment, insert and rank steps are applied as one
        atomic unit, and a rejected token is removed within it.

        Returns:
          str|None: The token to release or refresh the slot with, or None
          if every slot is taken.

        Raises:
          StoreUnavailable: If the store could not be reached.
        """
        self._check_arguments(limit, lock_timeout_ms)
        timeout_key, owner_key, counter_key = self._build_keys(name)
        token = self.token_factory()
        now = self.clock.now_ms()
        start = time.monotonic()

        acquired = self.store.acquire_fair_slot(
            timeout_key, owner_key, counter_key, token, now, limit, lock_timeout_ms
        )
        return self._acquired(SEMAPHORE_FAIR, name, token if acquired else None, start)

    def release_fair(self, name: str, token: str) -> bool:
        """Give back a slot taken with :meth:`acquire_fair` or
        :meth:`acquire_fair_with_lock`.

        Returns:
          bool: False if the token did not hold a slot anymore.
        """
        return self._released(SEMAPHORE_FAIR, name, self._remove_fair(name, token))

    def refresh_fair(self, name: str, token: str) -> bool:
        """Restart the lock timeout of a fair slot from now.

        Returns:
          bool: False if the slot had already expired.  It is then released,
          and the holder must stop using the resource.
        """
        timeout_key = self._build_key(name)
        with self.store.transaction() as tx:
            tx.zadd(timeout_key, token, self.clock.now_ms())
            (created,) = tx.execute()

        refreshed = not created
        if not refreshed:
            self._remove_fair(name, token)
            self.logger.warning("Slot of semaphore %r expired before it could be refreshed", name)

        if self.metrics is not None:
            self.metrics.refreshed(SEMAPHORE_FAIR, refreshed)
        return refreshed

    def acquire_fair_with_lock(self, name: str, limit: int, lock_timeout_ms: int) -> str | None:
        """Like :meth:`acquire_fair`, while holding the semaphore's lock.

        Only one client at a time goes through the prune, increment,
        insert and rank steps.  If the lock cannot be taken quickly,
        nothing is written and None is returned.

        Raises:
          StoreUnavailable: If the store could not be reached.
        """
        self._check_arguments(limit, lock_timeout_ms)
        lock_name = self._build_key(name)
        lock_token = self.lock.acquire(lock_name, self.lock_lease_ms, timeout_ms=self.lock_acquire_timeout_ms)
        if lock_token is None:
            self.logger.debug("Semaphore %r is busy, could not take its lock", name)
            if self.metrics is not None:
                self.metrics.acquired(SEMAPHORE_FAIR, False, 0)
            return None

        try:
            return self.acquire_fair(name, limit, lock_timeout_ms)
        finally:
            self.lock.release(lock_name, lock_token)

    @contextmanager
    def slot(self, name: str, limit: int, lock_timeout_ms: int, *, fair: bool = True) -> Iterator[Lease]:
        """Hold a slot for the duration of a ``with`` block::

          with semaphore.slot("crawler", 10, 60_000) as lease:
              ...
              semaphore.refresh_fair(lease.name, lease.token)

        Raises:
          SemaphoreLimitReached: If every slot is taken.
        """
        if fair:
            token = self.acquire_fair_with_lock(name, limit, lock_timeout_ms)
        else:
            token = self.acquire_simple(name, limit, lock_timeout_ms)
        if token is None:
            raise SemaphoreLimitReached(f"all {limit} slot(s) of semaphore {name!r} are taken")

        try:
            yield Lease(name=name, token=token, ttl_ms=lock_timeout_ms, acquired_at_ms=self.clock.now_ms())
        finally:
            if fair:
                self.release_fair(name, token)
            else:
                self.release_simple(name, token)

    def _remove_fair(self, name: str, token: str) -> bool:
        timeout_key, owner_key, _ = self._build_keys(name)
        with self.store.transaction() as tx:
            tx.zrem(timeout_key, token)
            tx.zrem(owner_key, token)
            removed = tx.execute()
        return any(removed)

    def _acquired(self, primitive: str, name: str, token: str | None, start: float) -> str | None:
        if self.metrics is not None:
            self.metrics.acquired(primitive, token is not None, (time.monotonic() - start) * 1000)
        if token is None:
            self.logger.debug("All slots of semaphore %r are taken", name)
        else:
            self.logger.debug("Acquired a slot of semaphore %r", name)
        return token

    def _released(self, primitive: str, name: str, released: bool) -> bool:
        if self.metrics is not None:
            self.metrics.released(primitive, released)
        if released:
            self.logger.debug("Released a slot of semaphore %r", name)
        else:
            self.logger.warning("Token holds no slot of semaphore %r, nothing released", name)
        return released

    def _check_arguments(self, limit: int, lock_timeout_ms: int) -> None:
        if limit < 1:
            raise ValueError("limit must be positive")
        if lock_timeout_ms <= 0:
            raise ValueError("lock_timeout_ms must be positive")

    def _build_key(self, name: str) -> str:
        return f"{self.key_prefix}{name}"

    def _build_keys(self, name: str) -> tuple[str, str, str]:
        key = self._build_key(name)
        return key, f"{key}:owner", f"{key}:counter"

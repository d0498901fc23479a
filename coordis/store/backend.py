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
from typing import Any, Iterable


class Transaction:
    """A group of commands applied to the store as a single unit.

    Commands are queued by calling the methods below and nothing reaches
    the store before :meth:`execute`.  Either every queued command is
    applied, with no other client's command interleaved, or none is.

    Transactions are context managers::

      with store.transaction() as tx:
          tx.zadd("semaphore:name", token, now)
          tx.zrank("semaphore:name", token)
          _, rank = tx.execute()
    """

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.reset()

    def reset(self) -> None:
        """Drop any queued command."""

    def zremrangebyscore(self, key: str, min_score: float | str, max_score: float | str) -> None:
        """Queue the removal of the members of ``key`` scored within the
        inclusive ``[min_score, max_score]`` range.  ``"-inf"`` and
        ``"+inf"`` are accepted as bounds.  Result: the number of removed
        members.
        """
        raise NotImplementedError(f"{type(self).__name__!r} does not implement zremrangebyscore")

    def zadd(self, key: str, member: str, score: float) -> None:
        """Queue setting ``member``'s score.  Result: 1 if the member was
        created, 0 if it already existed and only its score changed.
        """
        raise NotImplementedError(f"{type(self).__name__!r} does not implement zadd")

    def zrank(self, key: str, member: str) -> None:
        """Queue a rank lookup.  Result: the 0-based position of ``member``
        ordered by ascending score (ties ordered by member), or ``None``.
        """
        raise NotImplementedError(f"{type(self).__name__!r} does not implement zrank")

    def zrem(self, key: str, member: str) -> None:
        """Queue the removal of ``member``.  Result: 1 if it was removed, else 0."""
        raise NotImplementedError(f"{type(self).__name__!r} does not implement zrem")

    def zinterstore_min(self, destination: str, keys: Iterable[str]) -> None:
        """Queue storing in ``destination`` the members common to all ``keys``,
        each scored with the minimum of its scores.  Result: the size of
        ``destination``.
        """
        raise NotImplementedError(f"{type(self).__name__!r} does not implement zinterstore_min")

    def incr(self, key: str) -> None:
        """Queue an increment of the counter at ``key``.  Result: the new value."""
        raise NotImplementedError(f"{type(self).__name__!r} does not implement incr")

    def execute(self) -> list[Any]:
        """Apply the queued commands atomically and return their results, in order.

        Raises:
          StoreUnavailable: If the store could not be reached.
        """
        raise NotImplementedError(f"{type(self).__name__!r} does not implement execute")


class StoreBackend:
    """Backend interface for the atomic store locks and semaphores live in."""

    def transaction(self) -> Transaction:
        """Start a new :class:`Transaction`."""
        raise NotImplementedError(f"{type(self).__name__!r} does not implement transaction")

    def acquire_slot(self, key: str, token: str, now_ms: int, limit: int, lock_timeout_ms: int) -> bool:
        """Atomically purge the entries of ``key`` older than
        ``lock_timeout_ms``, then add ``token`` scored ``now_ms`` if it
        would rank below ``limit``.  ``token`` ranks after every entry
        scored at or before ``now_ms``, ties included.

        Returns:
          bool: True if ``token`` was added.
        """
        raise NotImplementedError(f"{type(self).__name__!r} does not implement acquire_slot")

    def acquire_fair_slot(
        self,
        key: str,
        owner_key: str,
        counter_key: str,
        token: str,
        now_ms: int,
        limit: int,
        lock_timeout_ms: int,
    ) -> bool:
        """Atomically purge the timeout index ``key``, drop the owners it
        no longer holds, increment ``counter_key`` and add ``token`` to both
        indices.  If its rank in the owner index is not below ``limit``,
        ``token`` is removed from both again.

        Returns:
          bool: True if ``token`` was admitted.
        """
        raise NotImplementedError(f"{type(self).__name__!r} does not implement acquire_fair_slot")

    def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        """Set ``key`` to ``value`` with an expiry of ``ttl_ms`` milliseconds,
        only if the key does not exist (or has expired).

        Returns:
          bool: True if the key was set.
        """
        raise NotImplementedError(f"{type(self).__name__!r} does not implement set_if_absent")

    def delete_if_equal(self, key: str, value: str) -> bool:
        """Delete ``key`` only if it currently holds ``value``.

        Returns:
          bool: True if the key was deleted.
        """
        raise NotImplementedError(f"{type(self).__name__!r} does not implement delete_if_equal")

    def expire_if_equal(self, key: str, value: str, ttl_ms: int) -> bool:
        """Reset ``key``'s expiry to ``ttl_ms`` only if it currently holds ``value``.

        Returns:
          bool: True if the expiry was updated.
        """
        raise NotImplementedError(f"{type(self).__name__!r} does not implement expire_if_equal")

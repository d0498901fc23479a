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
from typing import Any, Callable, Iterable

from ...clock import Clock, SystemClock
from ..backend import StoreBackend, Transaction


class StubTransaction(Transaction):
    def __init__(self, backend: "StubBackend") -> None:
        self.backend = backend
        self.commands: list[Callable[[], Any]] = []

    def reset(self) -> None:
        self.commands = []

    def zremrangebyscore(self, key: str, min_score: float | str, max_score: float | str) -> None:
        self.commands.append(lambda: self.backend._zremrangebyscore(key, float(min_score), float(max_score)))

    def zadd(self, key: str, member: str, score: float) -> None:
        self.commands.append(lambda: self.backend._zadd(key, member, float(score)))

    def zrank(self, key: str, member: str) -> None:
        self.commands.append(lambda: self.backend._zrank(key, member))

    def zrem(self, key: str, member: str) -> None:
        self.commands.append(lambda: self.backend._zrem(key, member))

    def zinterstore_min(self, destination: str, keys: Iterable[str]) -> None:
        keys = list(keys)
        self.commands.append(lambda: self.backend._zinterstore_min(destination, keys))

    def incr(self, key: str) -> None:
        self.commands.append(lambda: self.backend._incr(key))

    def execute(self) -> list[Any]:
        commands, self.commands = self.commands, []
        with self.backend.lock:
            return [command() for command in commands]


class StubBackend(StoreBackend):
    """In-memory store for tests and single-process runs.

    Parameters:
      clock(Clock): The clock lock records expire against.
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        self.clock = clock or SystemClock()
        self.lock = threading.RLock()
        self.sorted_sets: dict[str, dict[str, float]] = {}
        self.counters: dict[str, int] = {}
        self.values: dict[str, tuple[str, int]] = {}

    def flush(self) -> None:
        with self.lock:
            self.sorted_sets.clear()
            self.counters.clear()
            self.values.clear()

    def transaction(self) -> StubTransaction:
        return StubTransaction(self)

    def acquire_slot(self, key: str, token: str, now_ms: int, limit: int, lock_timeout_ms: int) -> bool:
        with self.lock:
            self._zremrangebyscore(key, float("-inf"), now_ms - lock_timeout_ms)
            ahead = sum(1 for score in self.sorted_sets.get(key, {}).values() if score <= now_ms)
            if ahead >= limit:
                return False
            self._zadd(key, token, now_ms)
            return True

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
        with self.lock:
            self._zremrangebyscore(key, float("-inf"), now_ms - lock_timeout_ms)
            self._zinterstore_min(owner_key, [owner_key, key])
            sequence = self._incr(counter_key)
            self._zadd(key, token, now_ms)
            self._zadd(owner_key, token, sequence)
            rank = self._zrank(owner_key, token)
            if rank is not None and rank < limit:
                return True
            self._zrem(key, token)
            self._zrem(owner_key, token)
            return False

    def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        with self.lock:
            if self._get(key) is not None:
                return False
            self.values[key] = (value, self.clock.now_ms() + ttl_ms)
            return True

    def delete_if_equal(self, key: str, value: str) -> bool:
        with self.lock:
            if self._get(key) != value:
                return False
            del self.values[key]
            return True

    def expire_if_equal(self, key: str, value: str, ttl_ms: int) -> bool:
        with self.lock:
            if self._get(key) != value:
                return False
            self.values[key] = (value, self.clock.now_ms() + ttl_ms)
            return True

    def _get(self, key: str) -> str | None:
        try:
            value, expires_at = self.values[key]
        except KeyError:
            return None
        if expires_at <= self.clock.now_ms():
            del self.values[key]
            return None
        return value

    def _zremrangebyscore(self, key: str, min_score: float, max_score: float) -> int:
        members = self.sorted_sets.get(key, {})
        removed = [member for member, score in members.items() if min_score <= score <= max_score]
        for member in removed:
            del members[member]
        self._drop_if_empty(key)
        return len(removed)

    def _zadd(self, key: str, member: str, score: float) -> int:
        members = self.sorted_sets.setdefault(key, {})
        added = member not in members
        members[member] = score
        return int(added)

    def _zrank(self, key: str, member: str) -> int | None:
        members = self.sorted_sets.get(key, {})
        if member not in members:
            return None
        ordered = sorted(members.items(), key=lambda item: (item[1], item[0]))
        return [m for m, _ in ordered].index(member)

    def _zrem(self, key: str, member: str) -> int:
        members = self.sorted_sets.get(key, {})
        if members.pop(member, None) is None:
            return 0
        self._drop_if_empty(key)
        return 1

    def _zinterstore_min(self, destination: str, keys: list[str]) -> int:
        sets = [self.sorted_sets.get(key, {}) for key in keys]
        common = set(sets[0]).intersection(*sets[1:])
        result = {member: min(members[member] for members in sets) for member in common}
        if result:
            self.sorted_sets[destination] = result
        else:
            self.sorted_sets.pop(destination, None)
        return len(result)

    def _incr(self, key: str) -> int:
        self.counters[key] = self.counters.get(key, 0) + 1
        return self.counters[key]

    def _drop_if_empty(self, key: str) -> None:
        if not self.sorted_sets.get(key, True):
            del self.sorted_sets[key]

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
import os
from typing import Any, Iterable

import redis

from ...errors import StoreUnavailable
from ...helpers.redis_client import redis_client
from ..backend import StoreBackend, Transaction

#: The url used when neither a url nor a client is given.
DEFAULT_REDIS_URL = os.getenv("COORDIS_REDIS_URL")

# Only the holder of the token may delete the key: a lease that expired and was
# taken over by another client must be left alone.
DELETE_IF_EQUAL_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
  return redis.call('DEL', KEYS[1])
end
return 0
"""

# Same check before extending the expiry.
EXPIRE_IF_EQUAL_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
  return redis.call('PEXPIRE', KEYS[1], ARGV[2])
end
return 0
"""

# Purges expired entries, then admits the token if fewer than `limit` entries
# are scored at or before it.
ACQUIRE_SLOT_LUA = """
local key = KEYS[1]
local token = ARGV[1]
local now = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
local lock_timeout = tonumber(ARGV[4])

redis.call('ZREMRANGEBYSCORE', key, '-inf', now - lock_timeout)
if redis.call('ZCOUNT', key, '-inf', now) >= limit then
  return 0
end

redis.call('ZADD', key, now, token)
return 1
"""

# Purges expired entries, keeps in the owner index only the tokens still in the
# timeout index, then ranks the token by a freshly issued sequence number.
# Sequence numbers are far below millisecond timestamps, so MIN keeps them.
ACQUIRE_FAIR_SLOT_LUA = """
local timeout_key = KEYS[1]
local owner_key = KEYS[2]
local counter_key = KEYS[3]
local token = ARGV[1]
local now = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
local lock_timeout = tonumber(ARGV[4])

redis.call('ZREMRANGEBYSCORE', timeout_key, '-inf', now - lock_timeout)
redis.call('ZINTERSTORE', owner_key, 2, owner_key, timeout_key, 'AGGREGATE', 'MIN')
local sequence = redis.call('INCR', counter_key)
redis.call('ZADD', timeout_key, now, token)
redis.call('ZADD', owner_key, sequence, token)
if redis.call('ZRANK', owner_key, token) < limit then
  return 1
end

redis.call('ZREM', timeout_key, token)
redis.call('ZREM', owner_key, token)
return 0
"""


class RedisTransaction(Transaction):
    """A MULTI/EXEC block, queued on a redis pipeline."""

    def __init__(self, pipeline: "redis.client.Pipeline") -> None:
        self.pipeline = pipeline

    def reset(self) -> None:
        self.pipeline.reset()

    def zremrangebyscore(self, key: str, min_score: float | str, max_score: float | str) -> None:
        self.pipeline.zremrangebyscore(key, min_score, max_score)

    def zadd(self, key: str, member: str, score: float) -> None:
        self.pipeline.zadd(key, {member: score})

    def zrank(self, key: str, member: str) -> None:
        self.pipeline.zrank(key, member)

    def zrem(self, key: str, member: str) -> None:
        self.pipeline.zrem(key, member)

    def zinterstore_min(self, destination: str, keys: Iterable[str]) -> None:
        self.pipeline.zinterstore(destination, list(keys), aggregate="MIN")

    def incr(self, key: str) -> None:
        self.pipeline.incr(key)

    def execute(self) -> list[Any]:
        try:
            return self.pipeline.execute()
        except redis.exceptions.RedisError as e:
            raise StoreUnavailable(f"transaction failed: {e}") from e


class RedisBackend(StoreBackend):
    """A store backend for Redis_.

    Transactions are run as MULTI/EXEC pipelines, conditional updates of
    lock records as Lua scripts.

    Parameters:
      url(str): An optional connection URL.  If both a URL and
        connection parameters are provided, the URL is used.  Defaults
        to the ``COORDIS_REDIS_URL`` environment variable.
      client(Redis): An optional client.  If this is passed,
        then all other parameters are ignored.
      socket_timeout(float): Socket and connection timeout, in seconds.
      **parameters(dict): Connection parameters are passed directly
        to :class:`redis.Redis`.

    .. _redis: https://redis.io
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        client: redis.Redis | None = None,
        socket_timeout: float | None = 5.0,
        **parameters,
    ) -> None:
        super().__init__()
        self.client = client or redis_client(url=url or DEFAULT_REDIS_URL, socket_timeout=socket_timeout, **parameters)

        self._delete_if_equal_script = self.client.register_script(DELETE_IF_EQUAL_LUA)
        self._expire_if_equal_script = self.client.register_script(EXPIRE_IF_EQUAL_LUA)
        self._acquire_slot_script = self.client.register_script(ACQUIRE_SLOT_LUA)
        self._acquire_fair_slot_script = self.client.register_script(ACQUIRE_FAIR_SLOT_LUA)

    def transaction(self) -> RedisTransaction:
        return RedisTransaction(self.client.pipeline(transaction=True))

    def acquire_slot(self, key: str, token: str, now_ms: int, limit: int, lock_timeout_ms: int) -> bool:
        try:
            return bool(self._acquire_slot_script(keys=[key], args=[token, now_ms, limit, lock_timeout_ms]))
        except redis.exceptions.RedisError as e:
            raise StoreUnavailable(f"could not acquire a slot of {key!r}: {e}") from e

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
        try:
            admitted = self._acquire_fair_slot_script(
                keys=[key, owner_key, counter_key], args=[token, now_ms, limit, lock_timeout_ms]
            )
        except redis.exceptions.RedisError as e:
            raise StoreUnavailable(f"could not acquire a slot of {key!r}: {e}") from e
        return bool(admitted)

    def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        try:
            return bool(self.client.set(key, value, nx=True, px=ttl_ms))
        except redis.exceptions.RedisError as e:
            raise StoreUnavailable(f"could not set {key!r}: {e}") from e

    def delete_if_equal(self, key: str, value: str) -> bool:
        try:
            return bool(self._delete_if_equal_script(keys=[key], args=[value]))
        except redis.exceptions.RedisError as e:
            raise StoreUnavailable(f"could not delete {key!r}: {e}") from e

    def expire_if_equal(self, key: str, value: str, ttl_ms: int) -> bool:
        try:
            return bool(self._expire_if_equal_script(keys=[key], args=[value, ttl_ms]))
        except redis.exceptions.RedisError as e:
            raise StoreUnavailable(f"could not expire {key!r}: {e}") from e

import logging
import os
import random

import pytest
import redis
from freezegun import freeze_time

from coordis import Lock, Metrics, Semaphore
from coordis.store import backends as st_backends

from .common import ManualClock, sequential_tokens

logfmt = "[%(asctime)s] [%(threadName)s] [%(name)s] [%(levelname)s] %(message)s"
logging.basicConfig(level=logging.INFO, format=logfmt)

random.seed(1337)

CI = os.getenv("CI") == "true"

#: 2020-09-13T12:26:40Z, in milliseconds.
START_MS = 1_600_000_000_000


def check_redis(client):
    try:
        client.ping()
    except redis.ConnectionError as e:
        raise e from e if CI else pytest.skip("No connection to Redis server.")
    client.flushall()


@pytest.fixture
def clock():
    return ManualClock(START_MS)


@pytest.fixture
def redis_store():
    redis_url = os.getenv("COORDIS_TEST_REDIS_URL") or "redis://localhost:6481/0"
    backend = st_backends.RedisBackend(url=redis_url)
    check_redis(backend.client)
    return backend


@pytest.fixture
def stub_store(clock):
    backend = st_backends.StubBackend(clock=clock)
    yield backend
    backend.flush()


@pytest.fixture(params=["redis", "stub"])
def store(request):
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def metrics():
    return Metrics()


@pytest.fixture
def lock(store, clock, metrics):
    return Lock(store, clock=clock, metrics=metrics)


@pytest.fixture
def stub_lock(stub_store, clock):
    return Lock(stub_store, clock=clock)


@pytest.fixture
def semaphore(store, clock, metrics):
    return Semaphore(store, clock=clock, token_factory=sequential_tokens(), metrics=metrics)


@pytest.fixture
def stub_semaphore(stub_store, clock):
    return Semaphore(stub_store, clock=clock, token_factory=sequential_tokens())


@pytest.fixture
def frozen_datetime():
    with freeze_time("2020-02-03") as frozen_datetime:
        yield frozen_datetime

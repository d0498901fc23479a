import os
from typing import Optional
from urllib.parse import urlparse

import redis


def redis_client(url: Optional[str], socket_timeout: Optional[float] = None, **parameters) -> redis.Redis:
    """Build a client from a ``redis://``, ``rediss://``, ``unix://`` or
    ``sentinel://[:password@]host:port/service_name`` url.

    Without a url, the connection parameters are passed directly to
    :class:`redis.Redis`.
    """
    socket_parameters = {}
    if socket_timeout is not None:
        socket_parameters = {
            "socket_timeout": socket_timeout,
            "socket_connect_timeout": socket_timeout,
            "socket_keepalive": True,
        }
    if not url:
        return redis.Redis(**socket_parameters, **parameters)

    url_parsed = urlparse(url)
    if url_parsed.scheme == "sentinel":
        sentinel_kwargs = {"password": url_parsed.password, **socket_parameters}
        sentinel = redis.Sentinel([(url_parsed.hostname, url_parsed.port)], sentinel_kwargs=sentinel_kwargs)
        return sentinel.master_for(
            service_name=os.path.normpath(url_parsed.path).split("/")[1],
            password=url_parsed.password,
            **socket_parameters,
        )

    parameters["connection_pool"] = redis.ConnectionPool.from_url(url, **socket_parameters)  # type: ignore
    return redis.Redis(**parameters)

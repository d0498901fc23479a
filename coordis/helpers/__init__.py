from .backoff import compute_backoff
from .redis_client import redis_client

__all__ = ["compute_backoff", "redis_client"]

"""Redis client factory shared by the progress tracker and health checks."""

from __future__ import annotations

from typing import Any

from redis import Redis

MANAGED_TLS_HOSTS = (".upstash.io",)


def normalize_redis_url(url: str) -> str:
    """Force TLS for managed providers that only accept ``rediss://``."""
    if url.startswith("redis://") and any(host in url for host in MANAGED_TLS_HOSTS):
        return url.replace("redis://", "rediss://", 1)
    return url


def create_redis_client(url: str, **kwargs: Any) -> Redis:
    """Create a Redis client, relaxing certificate checks for managed TLS endpoints.

    Connections are opened lazily, so building a client never touches the network.
    """
    url = normalize_redis_url(url)
    if url.startswith("rediss://"):
        kwargs.setdefault("ssl_cert_reqs", "none")
    return Redis.from_url(url, **kwargs)

"""Thin key-value cache backed by Redis."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import redis

_PING_TIMEOUT_SECONDS = 3.0


class Cache:
    """String cache with optional expiry."""

    def __init__(self, client: Any) -> None:
        self._client = client

    @classmethod
    def connect(cls, addr: str, password: str | None = None, db: int = 0) -> Cache:
        """Open a Redis connection at ``host:port`` and check it answers."""
        host, sep, port_text = addr.rpartition(":")
        if not sep or not host:
            raise ValueError(f"invalid redis address {addr!r}")
        try:
            port = int(port_text)
        except ValueError as exc:
            raise ValueError(f"invalid redis address {addr!r}") from exc

        client = redis.Redis(
            host=host,
            port=port,
            password=password,
            db=db,
            socket_connect_timeout=_PING_TIMEOUT_SECONDS,
            socket_timeout=_PING_TIMEOUT_SECONDS,
        )
        try:
            client.ping()
        except (redis.RedisError, OSError) as exc:
            client.close()
            raise ConnectionError(f"ping redis: {exc}") from exc
        return cls(client)

    def get(self, key: str) -> str | None:
        """The stored string, or None when the key is absent."""
        value = self._client.get(key)
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    def set(self, key: str, value: Any, ttl: float | timedelta | None = None) -> None:
        """Store ``value``; a positive ``ttl`` (seconds or timedelta) sets an expiry."""
        if isinstance(ttl, timedelta):
            ttl = ttl.total_seconds()
        expiry_ms = int(ttl * 1000) if ttl and ttl > 0 else None
        if expiry_ms is None:
            self._client.set(key, value)
        else:
            self._client.set(key, value, px=expiry_ms)

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def close(self) -> None:
        if self._client is None:
            return
        self._client.close()
        self._client = None
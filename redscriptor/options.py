"""Connection options for a Redis server."""

from __future__ import annotations

from dataclasses import dataclass

import redis


@dataclass
class Option:
    """Where and how to connect to Redis."""

    host: str = "localhost"
    port: int = 6379
    password: str = ""
    db: int = 0
    pool_size: int = 0
    script_definition: str = ""

    def create(self) -> redis.Redis:
        """Create a client for these options; reads never time out."""
        return redis.Redis(
            host=self.host,
            port=self.port,
            password=self.password or None,
            db=self.db,
            max_connections=self.pool_size or None,
            socket_timeout=None,
        )
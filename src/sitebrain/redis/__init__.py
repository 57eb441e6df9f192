"""Shared Redis connection utilities."""

from sitebrain.redis.connection import (
    ConnectionProvider,
    build_arq_redis_settings,
    redis_retry_delay,
)

__all__ = ["ConnectionProvider", "build_arq_redis_settings", "redis_retry_delay"]

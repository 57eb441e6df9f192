"""Redis connection provider shared by every queue and worker pool.

The backing Redis is a shared, quota-limited service, so reconnect attempts
are bounded: linear backoff of ``attempt * 100ms`` (capped at 2s) for the
first three retries, then the provider gives up and reports itself degraded
instead of hammering the service.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable, TypeVar
from urllib.parse import urlparse

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from redis.asyncio.retry import Retry
from redis.backoff import AbstractBackoff
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from sitebrain.main.config import Settings, get_settings
from sitebrain.main.exceptions import QueueUnavailableException
from sitebrain.main.logging import get_logger

if TYPE_CHECKING:
    from sitebrain.observability.alerting import Alerting

logger = get_logger(__name__)

T = TypeVar("T")

MAX_RETRY_ATTEMPTS = 3
RETRY_STEP_SECONDS = 0.1
MAX_RETRY_DELAY_SECONDS = 2.0

_CONNECT_ERRORS = (ConnectionError, TimeoutError, RedisError, OSError, asyncio.TimeoutError)


def redis_retry_delay(attempt: int) -> float | None:
    """Delay in seconds before retry number ``attempt`` (1-indexed).

    Returns None once the retry budget is spent, meaning "stop retrying".

    Examples:
        attempt=1 -> 0.1
        attempt=2 -> 0.2
        attempt=3 -> 0.3
        attempt=4 -> None
    """
    if attempt > MAX_RETRY_ATTEMPTS:
        return None
    return min(attempt * RETRY_STEP_SECONDS, MAX_RETRY_DELAY_SECONDS)


class LinearBackoff(AbstractBackoff):
    """redis-py backoff that follows :func:`redis_retry_delay`."""

    def reset(self) -> None:
        pass

    def compute(self, failures: int) -> float:
        delay = redis_retry_delay(failures)
        # Retry never asks for a delay past its own retry count, the cap is a guard
        return MAX_RETRY_DELAY_SECONDS if delay is None else delay


class BoundedRetry(Retry):
    """Command-level retry that reports when the retry budget is exhausted."""

    def __init__(self, alerting: "Alerting | None" = None):
        super().__init__(
            LinearBackoff(),
            MAX_RETRY_ATTEMPTS,
            supported_errors=(ConnectionError, TimeoutError, OSError),
        )
        self.alerting = alerting

    async def call_with_retry(
        self,
        do: Callable[[], Awaitable[T]],
        fail: Callable[[Any], Any],
    ) -> T:
        try:
            return await super().call_with_retry(do, fail)
        except (ConnectionError, TimeoutError, OSError):
            logger.debug("Redis retry limit reached - pausing retries")
            if self.alerting is not None:
                self.alerting.increment_counter("redis.retries_exhausted")
            raise


def build_arq_redis_settings(
    settings: Settings | None = None,
    *,
    alerting: "Alerting | None" = None,
    conn_retries: int = MAX_RETRY_ATTEMPTS,
) -> RedisSettings:
    """Build ARQ Redis settings from either REDIS_URL or host/port/db."""
    resolved = settings or get_settings()

    kwargs: dict[str, Any] = {
        "conn_timeout": resolved.redis_conn_timeout,
        "conn_retries": conn_retries,
        "conn_retry_delay": 1,
        "max_connections": resolved.redis_max_connections,
        "retry_on_error": [ConnectionError, TimeoutError],
        "retry": BoundedRetry(alerting=alerting),
    }

    if resolved.redis_url:
        url = urlparse(resolved.redis_url)
        database = url.path.lstrip("/")
        kwargs.update(
            host=url.hostname,
            port=url.port or 6379,
            username=url.username or None,
            password=url.password or None,
            database=int(database) if database else (resolved.redis_db or 0),
        )
        if url.scheme == "rediss":
            # Managed Redis providers terminate TLS with their own certificates
            kwargs.update(ssl=True, ssl_cert_reqs="none")
    else:
        kwargs.update(
            host=resolved.redis_host,
            port=resolved.redis_port,
            database=resolved.redis_db or 0,
        )

    return RedisSettings(**kwargs)


class ConnectionProvider:
    """Owns the single Redis pool used by producers in this process.

    Worker pools receive :attr:`redis_settings` (arq opens its own pool from
    it); everything that enqueues goes through :meth:`connect`.
    """

    def __init__(self, settings: Settings | None = None, alerting: "Alerting | None" = None):
        self.settings = settings or get_settings()
        self.alerting = alerting
        # Pool creation retries are driven by connect(), not by arq
        self.redis_settings = build_arq_redis_settings(
            self.settings, alerting=alerting, conn_retries=0
        )
        self._redis: ArqRedis | None = None
        self._degraded = False
        self._lock = asyncio.Lock()

    @property
    def degraded(self) -> bool:
        return self._degraded

    async def connect(self) -> ArqRedis:
        if self._redis is not None:
            return self._redis

        self._raise_if_degraded()

        async with self._lock:
            if self._redis is None:
                # Another caller may have exhausted the retries while we waited
                self._raise_if_degraded()
                self._redis = await self._connect_with_retry()

        return self._redis

    def _raise_if_degraded(self) -> None:
        if self._degraded:
            raise QueueUnavailableException(
                "Redis connection is degraded, not reconnecting"
            )

    async def _connect_with_retry(self) -> ArqRedis:
        attempt = 0
        while True:
            try:
                redis = await create_pool(self.redis_settings)
                logger.debug(
                    "Connected to redis",
                    extra={"host": str(self.redis_settings.host), "port": self.redis_settings.port},
                )
                return redis
            except _CONNECT_ERRORS as exc:
                attempt += 1
                delay = redis_retry_delay(attempt)
                if delay is None:
                    self._degraded = True
                    logger.debug(
                        "Redis retry limit reached - pausing retries",
                        extra={"attempts": attempt, "error": str(exc)},
                    )
                    if self.alerting is not None:
                        self.alerting.increment_counter("redis.retries_exhausted")
                    raise QueueUnavailableException(
                        f"Could not connect to redis after {attempt} attempts"
                    ) from exc

                logger.warning(
                    "Redis connection failed, retrying",
                    extra={"attempt": attempt, "delay_seconds": delay, "error": str(exc)},
                )
                await asyncio.sleep(delay)

    def reset(self) -> None:
        """Leave the degraded state so the next connect() tries again."""
        self._degraded = False

    async def close(self) -> None:
        if self._redis is None:
            return
        await self._redis.aclose()
        self._redis = None

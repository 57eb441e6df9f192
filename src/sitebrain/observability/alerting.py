"""Operational alerting and counters.

Alerts are structured log records at a severity matching the alert, with a
per-kind cooldown so a flapping dependency produces one alert per minute
instead of one per failed job. Counters are process-local and exposed for
health endpoints and tests.
"""

from __future__ import annotations

import time
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from sitebrain.main.config import Settings, get_settings
from sitebrain.main.logging import get_logger

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from sitebrain.notifications.email_service import EmailService

logger = get_logger(__name__)

QUOTA_EXCEEDED_MARKER = "max requests limit exceeded"
MAX_ALERT_HISTORY = 500


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


@dataclass
class Alert:
    severity: AlertSeverity
    kind: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def is_quota_exceeded(error: BaseException) -> bool:
    return QUOTA_EXCEEDED_MARKER in str(error)


class Alerting:
    def __init__(
        self,
        settings: Settings | None = None,
        email_service: "EmailService | None" = None,
        clock=time.monotonic,
    ):
        settings = settings or get_settings()
        self.cooldown_seconds = settings.alert_cooldown_seconds
        self.queue_error_email_interval = settings.queue_error_email_interval_seconds
        self.admin_email = settings.admin_email or settings.email_from
        self.email_service = email_service
        self.counters: Counter[str] = Counter()
        self.history: deque[Alert] = deque(maxlen=MAX_ALERT_HISTORY)
        self._last_sent: dict[str, float] = {}
        self._clock = clock

    def increment_counter(self, name: str, value: int = 1) -> None:
        self.counters[name] += value
        logger.debug("Metric counter incremented", extra={"metric": name, "value": value})

    def _send(
        self, severity: AlertSeverity, kind: str, message: str, context: dict[str, Any]
    ) -> bool:
        now = self._clock()
        last_sent = self._last_sent.get(kind)
        if last_sent is not None and now - last_sent < self.cooldown_seconds:
            logger.debug("Alert suppressed by cooldown", extra={"alert_kind": kind})
            return False

        self._last_sent[kind] = now
        alert = Alert(severity=severity, kind=kind, message=message, context=context)
        self.history.append(alert)

        log = {
            AlertSeverity.CRITICAL: logger.critical,
            AlertSeverity.WARNING: logger.warning,
            AlertSeverity.INFO: logger.info,
        }[severity]
        log(
            f"[ALERT] {message}",
            extra={"alert_kind": kind, "alert_severity": severity.value, "alert_context": context},
        )
        return True

    def alert_critical(self, kind: str, message: str, context: dict[str, Any] | None = None) -> bool:
        return self._send(AlertSeverity.CRITICAL, kind, message, context or {})

    def alert_warning(self, kind: str, message: str, context: dict[str, Any] | None = None) -> bool:
        return self._send(AlertSeverity.WARNING, kind, message, context or {})

    def alert_info(self, kind: str, message: str, context: dict[str, Any] | None = None) -> bool:
        return self._send(AlertSeverity.INFO, kind, message, context or {})

    async def handle_queue_error(
        self,
        error: BaseException,
        queue_name: str,
        redis: "Redis | None" = None,
    ) -> bool:
        """Report a queue/worker infrastructure error.

        Returns True when the error was Redis quota exhaustion, which degrades
        the queues instead of crashing them.
        """
        if not is_quota_exceeded(error):
            logger.error("Queue error", extra={"queue": queue_name, "error": str(error)})
            return False

        context = {
            "queue": queue_name,
            "error": str(error),
            "impact": "Background jobs (scraping, embeddings) may fail",
            "action": "Check the Redis provider quota and upgrade if needed",
        }
        self.alert_critical(
            "redis_connection_lost",
            "Redis quota limit exceeded - job queues degraded",
            context,
        )
        self.increment_counter("redis.quota_exceeded")

        await self._email_admin_once(queue_name, context, redis)
        return True

    async def _email_admin_once(
        self, queue_name: str, context: dict[str, Any], redis: "Redis | None"
    ) -> None:
        if self.email_service is None or redis is None:
            return

        if not self.admin_email:
            logger.warning("ADMIN_EMAIL not configured, skipping queue error notification")
            return

        cache_key = f"queue_error_email:{queue_name}"
        try:
            if await redis.get(cache_key):
                return

            sent = await self.email_service.send_admin_alert(
                self.admin_email,
                f"Queue Error: {queue_name}",
                "Redis quota exceeded affecting job queues",
                context,
            )
            if sent:
                await redis.setex(
                    cache_key,
                    self.queue_error_email_interval,
                    datetime.now(timezone.utc).isoformat(),
                )
        except Exception as exc:
            # Redis is the thing that is failing here, so this is expected
            logger.error(
                "Failed to send queue error email",
                extra={"queue": queue_name, "error": str(exc)},
            )

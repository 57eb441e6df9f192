from __future__ import annotations

import inspect
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, get_type_hints

from arq import Retry
from arq.worker import Function, func as arq_func

from sitebrain.database.database import sessionmanager
from sitebrain.jobs.queues import QueueName, RetryPolicy, Task, retry_policy_for
from sitebrain.jobs.task_models import TaskParams
from sitebrain.main.aiohttp_client import aiohttp_client
from sitebrain.main.config import Settings, get_settings
from sitebrain.main.container.container import Container
from sitebrain.main.job_context import clear_job_context, set_job_context
from sitebrain.main.logging import get_logger
from sitebrain.observability.alerting import is_quota_exceeded

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = get_logger(__name__)

PROGRESS_KEY_PREFIX = "job-progress"


def progress_key(job_id: str) -> str:
    return f"{PROGRESS_KEY_PREFIX}:{job_id}"


class ProgressReporter:
    """Writes a job's progress (0-100) to Redis for status polling."""

    def __init__(self, redis: "Redis | None", job_id: str, ttl_seconds: int):
        self.redis = redis
        self.job_id = job_id
        self.ttl_seconds = ttl_seconds

    async def __call__(self, progress: int) -> None:
        if self.redis is None:
            return

        value = json.dumps(
            {"progress": progress, "updated_at": datetime.now(timezone.utc).isoformat()}
        )
        try:
            await self.redis.setex(progress_key(self.job_id), self.ttl_seconds, value)
        except Exception as exc:
            # Progress is informational, the job keeps running without it
            logger.warning(
                "Failed to report job progress",
                extra={"progress": progress, "error": str(exc)},
            )


@dataclass
class JobAttempt:
    """One delivery of a job to a worker."""

    job_id: str
    job_try: int
    max_tries: int
    report_progress: ProgressReporter

    @property
    def is_final(self) -> bool:
        return self.job_try >= self.max_tries

    def gives_up_on(self, exc: BaseException) -> bool:
        """True when this attempt is the last one for the given failure."""
        return self.is_final or not getattr(exc, "retryable", True)


@dataclass
class _Registration:
    queue: QueueName
    task: Task
    coroutine: Callable
    timeout: int | None


class Worker:
    """
    Registry of job functions and the lifecycle shared by every worker pool.

    Each pool (see ``sitebrain.worker.arq``) runs the functions registered
    for its queue. The wrapper applied by :meth:`function` is where the
    per-family retry policy lives:

    * the payload is validated into its ``TaskParams`` model,
    * the job context (job id, queue, chatbot, run) is set for logging,
    * a failure on a non-final attempt becomes ``arq.Retry`` with the
      family's exponential delay; the final failure is re-raised,
    * Redis quota exhaustion is reported through ``Alerting``.

    Methods:
        startup(ctx): Builds the container and opens database/http resources.
        shutdown(ctx): Releases them.
        function(queue, task, timeout): Decorator registering a job function.
        functions_for(queue): arq ``Function`` objects for one pool.
        include_subworker(sub_worker): Merges another worker's registrations.
    """

    def __init__(self):
        self.registrations: list[_Registration] = []
        self.on_startup = self.startup
        self.on_shutdown = self.shutdown
        self.expires_extra_ms = 604800000  # 1 week
        self.health_check_interval = 60

    def _get_kwargs(self, func: Callable, attempt: JobAttempt) -> dict[str, Any]:
        sig = inspect.signature(func)
        parameters = {k for k in sig.parameters if k not in {"params", "container"}}
        kwargs = {}

        if "attempt" in parameters:
            kwargs["attempt"] = attempt

        return kwargs

    async def startup(self, ctx: dict) -> None:
        container = Container()
        settings = container.settings()

        sessionmanager.init(settings.database_url)
        aiohttp_client.start()

        ctx["container"] = container
        logger.info("Worker started")

    async def shutdown(self, ctx: dict) -> None:
        container: Container | None = ctx.get("container")
        if container is not None:
            await container.connection_provider().close()

        await aiohttp_client.stop()
        await sessionmanager.close()
        logger.info("Worker stopped")

    def function(
        self,
        queue: QueueName,
        task: Task,
        timeout: int | None = None,
    ):
        def decorator(func):
            params_model = get_type_hints(func).get("params")
            if not (inspect.isclass(params_model) and issubclass(params_model, TaskParams)):
                params_model = None

            @wraps(func)
            async def wrapper(ctx: dict, *args):
                container: Container = ctx["container"]
                settings = container.settings()
                policy = retry_policy_for(queue, settings)

                params = params_model.model_validate(args[0]) if params_model else None
                attempt = JobAttempt(
                    job_id=ctx["job_id"],
                    job_try=ctx.get("job_try", 1),
                    max_tries=policy.max_tries,
                    report_progress=ProgressReporter(
                        ctx.get("redis"), ctx["job_id"], settings.job_progress_ttl_seconds
                    ),
                )

                set_job_context(
                    job_id=attempt.job_id,
                    queue=queue.value,
                    chatbot_id=getattr(params, "chatbot_id", None),
                    history_id=getattr(params, "history_id", None),
                )
                logger.debug(
                    f"Executing {func.__name__}",
                    extra={"job_try": attempt.job_try, "max_tries": attempt.max_tries},
                )

                kwargs = self._get_kwargs(func, attempt=attempt)
                try:
                    if params is None:
                        return await func(container=container, **kwargs)
                    return await func(params, container=container, **kwargs)
                except Retry:
                    raise
                except Exception as exc:
                    await self._handle_failure(ctx, container, queue, policy, attempt, exc)
                    raise
                finally:
                    clear_job_context()

            self.registrations.append(
                _Registration(queue=queue, task=task, coroutine=wrapper, timeout=timeout)
            )
            return wrapper

        return decorator

    async def _handle_failure(
        self,
        ctx: dict,
        container: Container,
        queue: QueueName,
        policy: RetryPolicy,
        attempt: JobAttempt,
        exc: Exception,
    ) -> None:
        if is_quota_exceeded(exc):
            await container.alerting().handle_queue_error(
                exc, queue.value, redis=ctx.get("redis")
            )

        if attempt.gives_up_on(exc):
            logger.error(
                "Job failed",
                extra={"job_try": attempt.job_try, "error": str(exc)},
            )
            return

        defer = policy.delay_for(attempt.job_try)
        logger.warning(
            "Job attempt failed, retrying",
            extra={
                "job_try": attempt.job_try,
                "max_tries": attempt.max_tries,
                "defer_seconds": defer,
                "error": str(exc),
            },
        )
        raise Retry(defer=defer) from exc

    def functions_for(
        self, queue: QueueName, settings: Settings | None = None
    ) -> list[Function]:
        settings = settings or get_settings()
        policy = retry_policy_for(queue, settings)

        return [
            arq_func(
                registration.coroutine,
                name=registration.task.value,
                max_tries=policy.max_tries,
                timeout=registration.timeout,
            )
            for registration in self.registrations
            if registration.queue is queue
        ]

    def include_subworker(self, sub_worker: Worker):
        self.registrations.extend(sub_worker.registrations)

        logger.debug(
            "Including functions from subworker: %s",
            [registration.task.value for registration in sub_worker.registrations],
        )

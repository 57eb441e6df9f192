from typing import TYPE_CHECKING

from arq.jobs import Job, JobStatus

from sitebrain.jobs.queues import QueueName, Task
from sitebrain.jobs.task_models import TaskParams
from sitebrain.main.logging import get_logger

if TYPE_CHECKING:
    from sitebrain.redis.connection import ConnectionProvider

logger = get_logger(__name__)


class JobManager:
    """Producer side of every queue: fire-and-forget enqueue."""

    def __init__(self, connection_provider: "ConnectionProvider"):
        self.connection_provider = connection_provider

    async def enqueue(
        self,
        queue: QueueName,
        task: Task,
        params: TaskParams | None = None,
        job_id: str | None = None,
    ) -> str | None:
        """Enqueue ``task`` on ``queue``.

        Returns the job id, or None when a job with the same ``job_id`` is
        already queued (arq deduplicates on job id).
        """
        redis = await self.connection_provider.connect()

        args = (params.to_payload(),) if params is not None else ()
        job = await redis.enqueue_job(
            task.value,
            *args,
            _job_id=job_id,
            _queue_name=queue.value,
        )

        if job is None:
            logger.info(
                "Job already queued, skipping duplicate",
                extra={"queue": queue.value, "task": task.value, "job_id": job_id},
            )
            return None

        logger.debug(
            "Job enqueued",
            extra={"queue": queue.value, "task": task.value, "job_id": job.job_id},
        )
        return job.job_id

    async def get_job_status(self, job_id: str, queue: QueueName) -> JobStatus:
        redis = await self.connection_provider.connect()
        job = Job(job_id=job_id, redis=redis, _queue_name=queue.value)
        return await job.status()

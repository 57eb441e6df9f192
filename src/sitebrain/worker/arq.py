"""arq entry points, one pool per queue.

Run with e.g. ``arq sitebrain.worker.arq.ScrapeWorkerSettings``.
"""

import datetime

from sitebrain.jobs.queues import QueueName
from sitebrain.main.config import get_settings
from sitebrain.redis.connection import build_arq_redis_settings
from sitebrain.scheduler.scheduler import build_scheduler
from sitebrain.worker.routes import worker as sub_worker
from sitebrain.worker.worker import Worker

settings = get_settings()

worker = Worker()
worker.include_subworker(sub_worker)

scheduler = build_scheduler(settings)


class BaseWorkerSettings:
    redis_settings = build_arq_redis_settings(settings)
    on_startup = worker.on_startup
    on_shutdown = worker.on_shutdown
    expires_extra_ms = worker.expires_extra_ms
    health_check_interval = worker.health_check_interval
    # Retries are raised explicitly as arq.Retry by the job wrapper
    retry_jobs = True
    max_jobs = 1
    # Cron expressions are evaluated in UTC, not the host timezone
    timezone = datetime.timezone.utc


class ScrapeWorkerSettings(BaseWorkerSettings):
    queue_name = QueueName.SCRAPE.value
    functions = worker.functions_for(QueueName.SCRAPE, settings)
    max_jobs = settings.scrape_concurrency
    job_timeout = settings.scrape_job_timeout


class EmbeddingWorkerSettings(BaseWorkerSettings):
    queue_name = QueueName.EMBEDDING.value
    functions = worker.functions_for(QueueName.EMBEDDING, settings)
    max_jobs = settings.embedding_concurrency
    job_timeout = settings.embedding_job_timeout


class ScheduledRescrapeWorkerSettings(BaseWorkerSettings):
    queue_name = QueueName.SCHEDULED_RESCRAPE.value
    functions = worker.functions_for(QueueName.SCHEDULED_RESCRAPE, settings)
    job_timeout = settings.sweep_job_timeout


class ScheduledDeletionWorkerSettings(BaseWorkerSettings):
    queue_name = QueueName.SCHEDULED_DELETION_CHECK.value
    functions = worker.functions_for(QueueName.SCHEDULED_DELETION_CHECK, settings)
    job_timeout = settings.sweep_job_timeout


class SchedulerWorkerSettings(BaseWorkerSettings):
    queue_name = QueueName.SCHEDULER.value
    cron_jobs = scheduler.cron_jobs()

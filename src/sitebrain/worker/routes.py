from sitebrain.jobs.queues import QueueName, Task
from sitebrain.jobs.task_models import EmbeddingTask, ScrapeTask
from sitebrain.main.config import get_settings
from sitebrain.main.container.container import Container
from sitebrain.worker.deletion_tasks import queue_scheduled_deletions
from sitebrain.worker.embedding_tasks import create_embeddings_task
from sitebrain.worker.rescrape_tasks import queue_scheduled_rescrapes
from sitebrain.worker.scrape_tasks import scrape_website_task
from sitebrain.worker.worker import JobAttempt, Worker

worker = Worker()
settings = get_settings()


@worker.function(QueueName.SCRAPE, Task.SCRAPE_WEBSITE, timeout=settings.scrape_job_timeout)
async def scrape_website(params: ScrapeTask, container: Container, attempt: JobAttempt):
    return await scrape_website_task(params=params, container=container, attempt=attempt)


@worker.function(
    QueueName.EMBEDDING, Task.CREATE_EMBEDDINGS, timeout=settings.embedding_job_timeout
)
async def create_embeddings(params: EmbeddingTask, container: Container, attempt: JobAttempt):
    return await create_embeddings_task(params=params, container=container, attempt=attempt)


@worker.function(
    QueueName.SCHEDULED_RESCRAPE,
    Task.CHECK_SCHEDULED_RESCRAPES,
    timeout=settings.sweep_job_timeout,
)
async def check_scheduled_rescrapes(container: Container):
    """Daily sweep (02:00 UTC by default) re-scraping chatbots per their frequency.

    Thresholds:
    - daily: 24 hours after the last scrape
    - weekly: 7 days after the last scrape
    - monthly: 30 days after the last scrape
    - manual or unknown: never
    """
    return await queue_scheduled_rescrapes(container=container)


@worker.function(
    QueueName.SCHEDULED_DELETION_CHECK,
    Task.CHECK_SCHEDULED_DELETIONS,
    timeout=settings.sweep_job_timeout,
)
async def check_scheduled_deletions(container: Container):
    return await queue_scheduled_deletions(container=container)

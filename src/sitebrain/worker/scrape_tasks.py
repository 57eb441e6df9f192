from sitebrain.jobs.queues import QueueName, Task
from sitebrain.jobs.task_models import EmbeddingTask, ScrapeTask
from sitebrain.main.container.container import Container
from sitebrain.main.exceptions import NoPagesScrapedException
from sitebrain.main.logging import get_logger
from sitebrain.worker.worker import JobAttempt

logger = get_logger(__name__)


async def scrape_website_task(
    params: ScrapeTask, container: Container, attempt: JobAttempt
) -> dict:
    """Crawl a website and hand the pages to the embedding queue.

    Existing embeddings are never touched here: when the crawl fails the
    chatbot keeps answering from its previous knowledge.
    """
    history_repo = container.scrape_history_repo()
    crawler = container.crawler()
    job_manager = container.job_manager()

    logger.info(
        "Processing scrape job",
        extra={
            "website_url": params.website_url,
            "max_pages": params.max_pages,
            "is_rescrape": params.is_rescrape,
            "job_try": attempt.job_try,
        },
    )

    try:
        if params.history_id:
            await history_repo.mark_in_progress(params.history_id)

        await attempt.report_progress(10)

        pages = await crawler.crawl(params.website_url, params.max_pages)
        if not pages:
            raise NoPagesScrapedException(params.website_url)

        await attempt.report_progress(50)

        if params.history_id:
            await history_repo.record_pages_scraped(params.history_id, len(pages))

        await job_manager.enqueue(
            QueueName.EMBEDDING,
            Task.CREATE_EMBEDDINGS,
            EmbeddingTask(
                chatbot_id=params.chatbot_id,
                pages=pages,
                history_id=params.history_id,
                is_rescrape=params.is_rescrape,
            ),
        )

        await attempt.report_progress(100)

    except Exception as exc:
        if params.history_id and attempt.gives_up_on(exc):
            await _mark_failed(container, params.history_id, str(exc))

        if params.is_rescrape:
            logger.warning(
                "Re-scrape failed, chatbot continues in fallback mode with existing knowledge",
                extra={"error": str(exc), "job_try": attempt.job_try},
            )
        raise

    logger.info("Scrape job completed", extra={"pages_scraped": len(pages)})
    return {"pages_scraped": len(pages)}


async def _mark_failed(container: Container, history_id: str, error_message: str) -> None:
    try:
        await container.scrape_history_repo().mark_failed(history_id, error_message)
    except Exception as exc:
        # The job error is what gets re-raised, not this one
        logger.error(
            "Failed to mark run as failed",
            extra={"history_id": history_id, "error": str(exc)},
        )

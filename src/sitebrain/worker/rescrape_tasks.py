from datetime import datetime, timedelta, timezone

from sitebrain.chatbots.chatbot import Chatbot, ScrapeFrequency, is_due_for_rescrape
from sitebrain.main.container.container import Container
from sitebrain.main.logging import get_logger
from sitebrain.scrape_history.scrape_history import TriggerSource

logger = get_logger(__name__)

_KNOWN_FREQUENCIES = {frequency.value for frequency in ScrapeFrequency}


def _due_chatbots(candidates: list[Chatbot], now: datetime) -> list[Chatbot]:
    due = []
    for chatbot in candidates:
        if chatbot.scrape_frequency not in _KNOWN_FREQUENCIES:
            logger.debug(
                "Skipping chatbot with unknown scrape frequency",
                extra={"chatbot_id": chatbot.id, "scrape_frequency": chatbot.scrape_frequency},
            )
            continue

        if is_due_for_rescrape(chatbot.last_scraped_at, chatbot.scrape_frequency, now):
            due.append(chatbot)

    return due


async def queue_scheduled_rescrapes(container: Container) -> dict:
    """Start a scheduled run for every chatbot whose knowledge is stale.

    Each chatbot is handled on its own: a failure for one tenant is logged
    and the sweep moves on. A failure to load the candidates fails the sweep.
    """
    settings = container.settings()
    chatbot_repo = container.chatbot_repo()
    history_repo = container.scrape_history_repo()
    rescrape_service = container.rescrape_service()

    now = datetime.now(timezone.utc)
    candidates = await chatbot_repo.get_auto_rescrape_candidates()
    due = _due_chatbots(candidates, now)

    logger.info(
        f"Processing {len(due)} chatbots due for re-scrape",
        extra={"candidates": len(candidates)},
    )

    outstanding_since = now - timedelta(hours=settings.rescrape_outstanding_run_ttl_hours)
    processed = 0

    for chatbot in due:
        log_extra = {"chatbot_id": chatbot.id, "scrape_frequency": chatbot.scrape_frequency}

        if settings.rescrape_skip_outstanding_runs:
            try:
                outstanding = await history_repo.has_outstanding_run(
                    chatbot.id, since=outstanding_since
                )
            except Exception as exc:
                logger.error(
                    "Failed to check outstanding runs, skipping chatbot",
                    extra={**log_extra, "error": str(exc)},
                )
                continue

            if outstanding:
                logger.info("Chatbot already has a run outstanding, skipping", extra=log_extra)
                continue

        try:
            entry = await rescrape_service.create_run(chatbot, TriggerSource.SCHEDULED)
        except Exception as exc:
            logger.error(
                "Failed to create scrape history entry",
                extra={**log_extra, "error": str(exc)},
            )
            continue

        try:
            job_id = await rescrape_service.dispatch(chatbot, entry)
        except Exception as exc:
            # The pending row stays; it stops counting as outstanding after the TTL
            logger.error(
                "Failed to enqueue scheduled re-scrape",
                extra={**log_extra, "history_id": entry.id, "error": str(exc)},
            )
            continue

        processed += 1
        logger.info(
            "Scheduled re-scrape queued",
            extra={**log_extra, "history_id": entry.id, "job_id": job_id},
        )

    logger.info(
        "Scheduled re-scrape check completed",
        extra={"processed": processed, "total_found": len(due)},
    )
    return {"processed": processed, "total_found": len(due)}

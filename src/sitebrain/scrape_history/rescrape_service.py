from typing import TYPE_CHECKING

from sitebrain.jobs.queues import QueueName, Task
from sitebrain.jobs.task_models import ScrapeTask
from sitebrain.main.config import Settings
from sitebrain.main.exceptions import NotFoundException, QueueUnavailableException
from sitebrain.main.logging import get_logger
from sitebrain.scrape_history.scrape_history import ScrapeHistoryEntry, TriggerSource

if TYPE_CHECKING:
    from sitebrain.chatbots.chatbot import Chatbot
    from sitebrain.chatbots.chatbot_repo import ChatbotRepository
    from sitebrain.jobs.job_manager import JobManager
    from sitebrain.scrape_history.scrape_history_repo import ScrapeHistoryRepository

logger = get_logger(__name__)


class RescrapeService:
    """Starts ingestion runs: one tracked history row, one scrape job."""

    def __init__(
        self,
        chatbot_repo: "ChatbotRepository",
        scrape_history_repo: "ScrapeHistoryRepository",
        job_manager: "JobManager",
        settings: Settings,
    ):
        self.chatbot_repo = chatbot_repo
        self.scrape_history_repo = scrape_history_repo
        self.job_manager = job_manager
        self.settings = settings

    async def create_run(
        self, chatbot: "Chatbot", triggered_by: TriggerSource
    ) -> ScrapeHistoryEntry:
        entry = ScrapeHistoryEntry.create(chatbot_id=chatbot.id, triggered_by=triggered_by)
        return await self.scrape_history_repo.add(entry)

    async def dispatch(self, chatbot: "Chatbot", entry: ScrapeHistoryEntry) -> str:
        task = ScrapeTask(
            chatbot_id=chatbot.id,
            website_url=chatbot.website_url,
            max_pages=chatbot.page_budget(self.settings.default_max_pages),
            history_id=entry.id,
            is_rescrape=entry.triggered_by is not TriggerSource.INITIAL,
        )
        job_id = await self.job_manager.enqueue(
            QueueName.SCRAPE, Task.SCRAPE_WEBSITE, task
        )
        if job_id is None:
            raise QueueUnavailableException(f"Scrape job for run {entry.id} was not queued")
        return job_id

    async def trigger_rescrape(
        self,
        chatbot_id: str,
        triggered_by: TriggerSource = TriggerSource.MANUAL,
    ) -> dict[str, str]:
        chatbot = await self.chatbot_repo.get(chatbot_id)
        if chatbot is None:
            raise NotFoundException("Chatbot not found")

        entry = await self.create_run(chatbot, triggered_by)
        job_id = await self.dispatch(chatbot, entry)

        logger.info(
            "Re-scrape triggered",
            extra={
                "chatbot_id": chatbot_id,
                "history_id": entry.id,
                "job_id": job_id,
                "triggered_by": triggered_by.value,
            },
        )
        return {"history_id": entry.id, "job_id": job_id}

from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ScrapeFrequency(str, Enum):
    MANUAL = "manual"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


RESCRAPE_THRESHOLDS: dict[ScrapeFrequency, timedelta] = {
    ScrapeFrequency.DAILY: timedelta(hours=24),
    ScrapeFrequency.WEEKLY: timedelta(hours=24 * 7),
    ScrapeFrequency.MONTHLY: timedelta(hours=24 * 30),
}


def is_due_for_rescrape(
    last_scraped_at: datetime | None,
    frequency: str,
    now: datetime,
) -> bool:
    """Whether a chatbot with ``frequency`` should be re-scraped at ``now``.

    Never-scraped chatbots are always due. Frequencies without a threshold
    (manual, or values we do not recognise) are never due.
    """
    try:
        threshold = RESCRAPE_THRESHOLDS.get(ScrapeFrequency(frequency))
    except ValueError:
        return False

    if threshold is None:
        return False

    if last_scraped_at is None:
        return True

    return now - last_scraped_at >= threshold


class Chatbot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    website_url: str
    auto_scrape_enabled: bool = False
    scrape_frequency: str = ScrapeFrequency.MANUAL.value
    last_scraped_at: Optional[datetime] = None
    pages_scraped: int = 0
    max_pages: Optional[int] = None

    def page_budget(self, default: int) -> int:
        return self.max_pages if self.max_pages else default


class ChatbotOwner(BaseModel):
    chatbot_name: str
    email: Optional[str] = None

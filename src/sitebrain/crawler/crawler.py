"""Crawler collaborator.

Page discovery and HTML parsing live in a separate crawl service; this
package only knows how to ask it for a bounded list of pages.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import aiohttp
from pydantic import ValidationError

from sitebrain.jobs.task_models import Page
from sitebrain.main.config import Settings, get_settings
from sitebrain.main.exceptions import CrawlerException
from sitebrain.main.logging import get_logger

if TYPE_CHECKING:
    from sitebrain.main.aiohttp_client import AioHttpClient

logger = get_logger(__name__)


class CrawlerAbstraction(ABC):
    @abstractmethod
    async def crawl(self, url: str, max_pages: int) -> list[Page]:
        """Crawl ``url`` and return at most ``max_pages`` pages.

        Raises:
            CrawlerException: on network or parse failure.
        """


class HttpCrawler(CrawlerAbstraction):
    def __init__(self, client: "AioHttpClient", settings: Settings | None = None):
        settings = settings or get_settings()
        self.client = client
        self.base_url = settings.crawler_service_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=settings.crawler_timeout_seconds)

    async def crawl(self, url: str, max_pages: int) -> list[Page]:
        logger.info(f"Calling crawl service for {url}", extra={"max_pages": max_pages})

        try:
            async with self.client().post(
                f"{self.base_url}/crawl",
                json={"url": url, "maxPages": max_pages},
                timeout=self.timeout,
            ) as response:
                response.raise_for_status()
                data = await response.json()
        except aiohttp.ClientResponseError as e:
            raise CrawlerException(
                f"Crawl service returned {e.status} for {url}"
            ) from e
        except (aiohttp.ClientError, TimeoutError) as e:
            raise CrawlerException(f"Crawl service unreachable: {e}") from e

        try:
            pages = [Page.model_validate(item) for item in data.get("pages", [])]
        except ValidationError as e:
            raise CrawlerException(f"Crawl service returned malformed pages for {url}") from e

        logger.info(f"Crawled {len(pages)} pages from {url}")
        return pages[:max_pages]

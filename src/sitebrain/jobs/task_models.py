from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class TaskParams(BaseModel):
    """Job payload. camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Page(TaskParams):
    url: str
    title: str = ""
    content: str


class ScrapeTask(TaskParams):
    chatbot_id: str
    website_url: str
    max_pages: int
    history_id: Optional[str] = None
    is_rescrape: bool = False


class EmbeddingTask(TaskParams):
    chatbot_id: str
    pages: list[Page]
    history_id: Optional[str] = None
    is_rescrape: bool = False


class AccountDeletionTask(TaskParams):
    request_id: str

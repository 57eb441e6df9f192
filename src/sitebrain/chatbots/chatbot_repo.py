from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa

from sitebrain.chatbots.chatbot import Chatbot, ChatbotOwner, ScrapeFrequency
from sitebrain.database.tables.chatbots_table import Chatbots
from sitebrain.database.tables.users_table import Users

if TYPE_CHECKING:
    from sitebrain.database.database import DatabaseSessionManager


class ChatbotRepository:
    def __init__(self, sessionmanager: "DatabaseSessionManager"):
        self.sessionmanager = sessionmanager

    async def get(self, chatbot_id: str) -> Chatbot | None:
        async with self.sessionmanager.transaction() as session:
            chatbot_db = await session.get(Chatbots, chatbot_id)
            return Chatbot.model_validate(chatbot_db) if chatbot_db else None

    async def get_auto_rescrape_candidates(self) -> list[Chatbot]:
        """Chatbots with auto-scrape enabled and a non-manual frequency.

        Due-ness is decided by the caller so that unknown frequency values
        stored in the table can be skipped explicitly.
        """
        stmt = sa.select(Chatbots).where(
            Chatbots.auto_scrape_enabled.is_(True),
            Chatbots.scrape_frequency != ScrapeFrequency.MANUAL.value,
        )

        async with self.sessionmanager.transaction() as session:
            chatbots_db = await session.scalars(stmt)
            return [Chatbot.model_validate(chatbot_db) for chatbot_db in chatbots_db]

    async def mark_scraped(
        self, chatbot_id: str, scraped_at: datetime, pages_scraped: int
    ) -> None:
        stmt = (
            sa.update(Chatbots)
            .where(Chatbots.id == chatbot_id)
            .values(
                last_scraped_at=scraped_at,
                pages_scraped=pages_scraped,
                updated_at=scraped_at,
            )
        )

        async with self.sessionmanager.transaction() as session:
            await session.execute(stmt)

    async def get_owner(self, chatbot_id: str) -> ChatbotOwner | None:
        stmt = (
            sa.select(Chatbots.name, Users.email)
            .join(Users, Users.id == Chatbots.user_id)
            .where(Chatbots.id == chatbot_id)
        )

        async with self.sessionmanager.transaction() as session:
            row = (await session.execute(stmt)).one_or_none()

        if row is None:
            return None

        return ChatbotOwner(chatbot_name=row.name, email=row.email)

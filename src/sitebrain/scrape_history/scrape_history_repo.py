from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa

from sitebrain.database.tables.scrape_history_table import ScrapeHistory
from sitebrain.main.logging import get_logger
from sitebrain.scrape_history.scrape_history import RunStatus, ScrapeHistoryEntry

if TYPE_CHECKING:
    from sitebrain.database.database import DatabaseSessionManager

logger = get_logger(__name__)


class ScrapeHistoryRepository:
    """Persistence for run history rows.

    Status changes are conditional updates (``WHERE status IN ...``) so the
    state machine holds even when two workers race on the same row: a
    rejected transition touches nothing and returns False.
    """

    def __init__(self, sessionmanager: "DatabaseSessionManager"):
        self.sessionmanager = sessionmanager

    async def add(self, entry: ScrapeHistoryEntry) -> ScrapeHistoryEntry:
        stmt = (
            sa.insert(ScrapeHistory)
            .values(**entry.model_dump(exclude={"id"}, exclude_none=True, mode="python"))
            .returning(ScrapeHistory)
        )

        async with self.sessionmanager.transaction() as session:
            entry_db = await session.scalar(stmt)
            return ScrapeHistoryEntry.model_validate(entry_db)

    async def get(self, history_id: str) -> ScrapeHistoryEntry | None:
        async with self.sessionmanager.transaction() as session:
            entry_db = await session.get(ScrapeHistory, history_id)
            return ScrapeHistoryEntry.model_validate(entry_db) if entry_db else None

    async def has_outstanding_run(self, chatbot_id: str, since: datetime) -> bool:
        stmt = sa.select(
            sa.exists().where(
                ScrapeHistory.chatbot_id == chatbot_id,
                ScrapeHistory.status.in_(
                    [RunStatus.PENDING.value, RunStatus.IN_PROGRESS.value]
                ),
                ScrapeHistory.started_at >= since,
            )
        )

        async with self.sessionmanager.transaction() as session:
            return bool(await session.scalar(stmt))

    async def _transition(
        self, history_id: str, target: RunStatus, **values: Any
    ) -> bool:
        sources = [status.value for status in RunStatus.sources_of(target)]
        stmt = (
            sa.update(ScrapeHistory)
            .where(ScrapeHistory.id == history_id, ScrapeHistory.status.in_(sources))
            .values(status=target.value, **values)
        )

        async with self.sessionmanager.transaction() as session:
            result = await session.execute(stmt)

        if result.rowcount == 0:
            logger.warning(
                "Rejected run history transition",
                extra={"history_id": history_id, "target_status": target.value},
            )
            return False

        return True

    async def mark_in_progress(self, history_id: str) -> bool:
        return await self._transition(history_id, RunStatus.IN_PROGRESS)

    async def mark_completed(
        self, history_id: str, pages_scraped: int, embeddings_created: int
    ) -> bool:
        return await self._transition(
            history_id,
            RunStatus.COMPLETED,
            pages_scraped=pages_scraped,
            embeddings_created=embeddings_created,
            error_message=None,
            completed_at=datetime.now(timezone.utc),
        )

    async def mark_failed(self, history_id: str, error_message: str) -> bool:
        return await self._transition(
            history_id,
            RunStatus.FAILED,
            error_message=error_message,
            completed_at=datetime.now(timezone.utc),
        )

    async def record_pages_scraped(self, history_id: str, pages_scraped: int) -> None:
        stmt = (
            sa.update(ScrapeHistory)
            .where(ScrapeHistory.id == history_id)
            .values(pages_scraped=pages_scraped)
        )

        async with self.sessionmanager.transaction() as session:
            await session.execute(stmt)

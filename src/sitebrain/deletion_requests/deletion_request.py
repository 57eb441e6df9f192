from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

import sqlalchemy as sa
from pydantic import BaseModel, ConfigDict

from sitebrain.database.tables.deletion_requests_table import DeletionRequests

if TYPE_CHECKING:
    from sitebrain.database.database import DatabaseSessionManager


class DeletionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DeletionRequest(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    status: DeletionStatus
    scheduled_deletion_date: datetime


class DeletionRequestRepository:
    """Read-only access; status changes belong to the deletion processor."""

    def __init__(self, sessionmanager: "DatabaseSessionManager"):
        self.sessionmanager = sessionmanager

    async def get_due(self, now: datetime) -> list[DeletionRequest]:
        stmt = (
            sa.select(DeletionRequests)
            .where(
                DeletionRequests.status == DeletionStatus.PENDING.value,
                DeletionRequests.scheduled_deletion_date <= now,
            )
            .order_by(DeletionRequests.scheduled_deletion_date.asc())
        )

        async with self.sessionmanager.transaction() as session:
            requests_db = await session.scalars(stmt)
            return [DeletionRequest.model_validate(r) for r in requests_db]

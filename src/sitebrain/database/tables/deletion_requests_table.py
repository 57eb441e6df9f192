from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from sitebrain.database.tables.base_class import BasePublic
from sitebrain.database.tables.users_table import Users


class DeletionRequests(BasePublic):
    __tablename__ = "deletion_requests"

    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey(Users.id, ondelete="CASCADE"), index=True
    )
    status: Mapped[str] = mapped_column(sa.String, default="pending")
    scheduled_deletion_date: Mapped[datetime] = mapped_column(
        sa.TIMESTAMP(timezone=True)
    )

    __table_args__ = (
        sa.Index(
            "ix_deletion_requests_status_date", "status", "scheduled_deletion_date"
        ),
    )

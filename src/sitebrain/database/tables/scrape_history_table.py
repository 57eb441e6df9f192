from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from sitebrain.database.tables.base_class import BasePublic
from sitebrain.database.tables.chatbots_table import Chatbots


class ScrapeHistory(BasePublic):
    __tablename__ = "scrape_history"

    chatbot_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey(Chatbots.id, ondelete="CASCADE"), index=True
    )
    status: Mapped[str] = mapped_column(sa.String, default="pending")
    pages_scraped: Mapped[int] = mapped_column(default=0)
    embeddings_created: Mapped[int] = mapped_column(default=0)
    error_message: Mapped[Optional[str]] = mapped_column(sa.Text)
    triggered_by: Mapped[str] = mapped_column(sa.String)
    started_at: Mapped[datetime] = mapped_column(sa.TIMESTAMP(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        sa.TIMESTAMP(timezone=True)
    )

    __table_args__ = (
        sa.CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'failed')",
            name="ck_scrape_history_status",
        ),
        sa.CheckConstraint(
            "triggered_by IN ('manual', 'scheduled', 'initial')",
            name="ck_scrape_history_triggered_by",
        ),
        sa.Index("ix_scrape_history_chatbot_status", "chatbot_id", "status"),
    )

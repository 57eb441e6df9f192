from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitebrain.database.tables.base_class import BasePublic
from sitebrain.database.tables.users_table import Users


class Chatbots(BasePublic):
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey(Users.id, ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column()
    website_url: Mapped[str] = mapped_column()
    auto_scrape_enabled: Mapped[bool] = mapped_column(default=False)
    # Free text on purpose: rows written by older clients may hold values
    # the scheduler does not recognise.
    scrape_frequency: Mapped[str] = mapped_column(sa.String, default="manual")
    last_scraped_at: Mapped[Optional[datetime]] = mapped_column(
        sa.TIMESTAMP(timezone=True)
    )
    pages_scraped: Mapped[int] = mapped_column(default=0)
    max_pages: Mapped[Optional[int]] = mapped_column()
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        sa.TIMESTAMP(timezone=True), server_default=sa.func.now()
    )

    user: Mapped[Users] = relationship()

    __table_args__ = (
        sa.Index(
            "ix_chatbots_auto_scrape",
            "auto_scrape_enabled",
            "scrape_frequency",
        ),
    )

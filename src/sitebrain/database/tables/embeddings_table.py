from datetime import datetime

import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy import ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from sitebrain.database.tables.base_class import BasePublic
from sitebrain.database.tables.chatbots_table import Chatbots

EMBEDDING_DIMENSIONS = 1536


class Embeddings(BasePublic):
    chatbot_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey(Chatbots.id, ondelete="CASCADE")
    )
    content: Mapped[str] = mapped_column(sa.Text)
    page_url: Mapped[str] = mapped_column()
    embedding: Mapped[list[float]] = mapped_column(Vector(EMBEDDING_DIMENSIONS))
    # Written explicitly by the knowledge swap, never by a server default,
    # so every row of one generation carries the identical timestamp.
    generation: Mapped[datetime] = mapped_column(sa.TIMESTAMP(timezone=True))
    created_at: Mapped[datetime] = mapped_column(sa.TIMESTAMP(timezone=True))

    __table_args__ = (
        sa.Index("ix_embeddings_chatbot_generation", "chatbot_id", "generation"),
    )

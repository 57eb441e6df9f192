from datetime import datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa

from sitebrain.database.tables.embeddings_table import Embeddings
from sitebrain.knowledge.chunking import TextChunk

if TYPE_CHECKING:
    from sitebrain.database.database import DatabaseSessionManager


class EmbeddingRepository:
    def __init__(self, sessionmanager: "DatabaseSessionManager"):
        self.sessionmanager = sessionmanager

    async def insert_generation(
        self,
        chatbot_id: str,
        generation: datetime,
        chunks: list[TextChunk],
        vectors: list[list[float]],
    ) -> int:
        if len(chunks) != len(vectors):
            raise ValueError(
                f"Got {len(vectors)} vectors for {len(chunks)} chunks"
            )
        if not chunks:
            return 0

        rows = [
            {
                "chatbot_id": chatbot_id,
                "content": chunk.content,
                "page_url": chunk.page_url,
                "embedding": vector,
                "generation": generation,
                "created_at": generation,
            }
            for chunk, vector in zip(chunks, vectors)
        ]

        async with self.sessionmanager.transaction() as session:
            await session.execute(sa.insert(Embeddings), rows)

        return len(rows)

    async def delete_older_generations(self, chatbot_id: str, generation: datetime) -> int:
        stmt = sa.delete(Embeddings).where(
            Embeddings.chatbot_id == chatbot_id,
            Embeddings.generation < generation,
        )

        async with self.sessionmanager.transaction() as session:
            result = await session.execute(stmt)

        return result.rowcount

    async def delete_generation(self, chatbot_id: str, generation: datetime) -> int:
        stmt = sa.delete(Embeddings).where(
            Embeddings.chatbot_id == chatbot_id,
            Embeddings.generation == generation,
        )

        async with self.sessionmanager.transaction() as session:
            result = await session.execute(stmt)

        return result.rowcount

    async def count(self, chatbot_id: str) -> int:
        stmt = (
            sa.select(sa.func.count())
            .select_from(Embeddings)
            .where(Embeddings.chatbot_id == chatbot_id)
        )

        async with self.sessionmanager.transaction() as session:
            return await session.scalar(stmt) or 0

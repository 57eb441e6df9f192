"""Zero-downtime replacement of a chatbot's knowledge.

Every embedding row carries the *generation* of the run that wrote it. A run
applies its knowledge in two phases:

1. write: insert the new generation next to the old one. Chat queries keep
   finding the old vectors (and, progressively, the new ones).
2. commit: delete every generation strictly older than this one.

Nothing is deleted until all writes succeeded, so a failed run leaves the
previous knowledge in place. Deletes are scoped by generation, not by run,
so when two runs for one chatbot overlap the newest generation to commit
wins and no generation newer than the committing one is ever removed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from sitebrain.main.logging import get_logger

if TYPE_CHECKING:
    from sitebrain.knowledge.chunking import TextChunk
    from sitebrain.knowledge.embedding_repo import EmbeddingRepository

logger = get_logger(__name__)


class SwapState(str, Enum):
    WRITING = "writing"
    COMMITTED = "committed"
    ABORTED = "aborted"


class KnowledgeSwap:
    def __init__(
        self,
        embedding_repo: "EmbeddingRepository",
        chatbot_id: str,
        generation: datetime,
    ):
        self.embedding_repo = embedding_repo
        self.chatbot_id = chatbot_id
        self.generation = generation
        self.inserted = 0
        self.state = SwapState.WRITING

    @classmethod
    def begin(
        cls,
        embedding_repo: "EmbeddingRepository",
        chatbot_id: str,
        generation: datetime | None = None,
    ) -> "KnowledgeSwap":
        swap = cls(
            embedding_repo=embedding_repo,
            chatbot_id=chatbot_id,
            generation=generation or datetime.now(timezone.utc),
        )
        logger.debug(
            "Started knowledge generation",
            extra={"chatbot_id": chatbot_id, "generation": swap.generation.isoformat()},
        )
        return swap

    def _require_writing(self) -> None:
        if self.state is not SwapState.WRITING:
            raise RuntimeError(f"Knowledge swap is already {self.state.value}")

    async def write(self, chunks: list["TextChunk"], vectors: list[list[float]]) -> int:
        self._require_writing()
        inserted = await self.embedding_repo.insert_generation(
            chatbot_id=self.chatbot_id,
            generation=self.generation,
            chunks=chunks,
            vectors=vectors,
        )
        self.inserted += inserted
        return inserted

    async def commit(self) -> int:
        """Drop all older generations. Returns the number of rows removed."""
        self._require_writing()
        deleted = await self.embedding_repo.delete_older_generations(
            chatbot_id=self.chatbot_id, generation=self.generation
        )
        self.state = SwapState.COMMITTED

        logger.info(
            "Old embeddings deleted (swap committed)",
            extra={
                "chatbot_id": self.chatbot_id,
                "generation": self.generation.isoformat(),
                "inserted": self.inserted,
                "deleted": deleted,
            },
        )
        return deleted

    async def abort(self) -> int:
        """Remove the rows this generation wrote so far, leaving older ones."""
        if self.state is not SwapState.WRITING:
            return 0

        self.state = SwapState.ABORTED
        if self.inserted == 0:
            return 0

        discarded = await self.embedding_repo.delete_generation(
            chatbot_id=self.chatbot_id, generation=self.generation
        )
        logger.info(
            "Discarded partial knowledge generation",
            extra={
                "chatbot_id": self.chatbot_id,
                "generation": self.generation.isoformat(),
                "discarded": discarded,
            },
        )
        return discarded

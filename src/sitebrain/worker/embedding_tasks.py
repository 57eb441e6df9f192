from datetime import datetime, timezone

from sitebrain.jobs.task_models import EmbeddingTask
from sitebrain.knowledge.knowledge_swap import KnowledgeSwap
from sitebrain.main.container.container import Container
from sitebrain.main.exceptions import NoEmbeddingsCreatedException
from sitebrain.main.logging import get_logger
from sitebrain.worker.worker import JobAttempt

logger = get_logger(__name__)


async def create_embeddings_task(
    params: EmbeddingTask, container: Container, attempt: JobAttempt
) -> dict:
    settings = container.settings()
    chunker = container.page_chunker()
    embedding_adapter = container.embedding_adapter()
    chatbot_repo = container.chatbot_repo()
    history_repo = container.scrape_history_repo()

    logger.info(
        "Processing embedding job",
        extra={
            "pages": len(params.pages),
            "is_rescrape": params.is_rescrape,
            "job_try": attempt.job_try,
        },
    )

    # Generation is fixed for this attempt; a retry writes a new one
    swap = KnowledgeSwap.begin(container.embedding_repo(), params.chatbot_id)
    batch_size = settings.embedding_batch_size
    embeddings_created = 0

    try:
        for index, page in enumerate(params.pages, start=1):
            chunks = chunker.split(page)

            for start in range(0, len(chunks), batch_size):
                batch = chunks[start : start + batch_size]
                vectors = await embedding_adapter.embed_many([chunk.content for chunk in batch])
                embeddings_created += await swap.write(batch, vectors)

            await attempt.report_progress(round(index / len(params.pages) * 100))

        # Committing an empty generation would wipe the previous knowledge
        if swap.inserted == 0:
            raise NoEmbeddingsCreatedException(len(params.pages))

        await swap.commit()

        await chatbot_repo.mark_scraped(
            params.chatbot_id,
            scraped_at=datetime.now(timezone.utc),
            pages_scraped=len(params.pages),
        )

        if params.history_id:
            await history_repo.mark_completed(
                params.history_id,
                pages_scraped=len(params.pages),
                embeddings_created=embeddings_created,
            )

    except Exception as exc:
        await _discard_partial_generation(swap)

        if params.history_id and attempt.gives_up_on(exc):
            await _mark_failed(container, params.history_id, str(exc))
        raise

    logger.info(
        "Embedding job completed",
        extra={"embeddings_created": embeddings_created, "pages_processed": len(params.pages)},
    )

    await _notify_owner(container, params.chatbot_id, embeddings_created)

    return {"embeddings_created": embeddings_created, "pages_processed": len(params.pages)}


async def _discard_partial_generation(swap: KnowledgeSwap) -> None:
    try:
        await swap.abort()
    except Exception as exc:
        # Orphaned rows of this generation are removed by the next successful commit
        logger.error(
            "Failed to discard partial knowledge generation",
            extra={"generation": swap.generation.isoformat(), "error": str(exc)},
        )


async def _mark_failed(container: Container, history_id: str, error_message: str) -> None:
    try:
        await container.scrape_history_repo().mark_failed(history_id, error_message)
    except Exception as exc:
        logger.error(
            "Failed to mark run as failed",
            extra={"history_id": history_id, "error": str(exc)},
        )


async def _notify_owner(container: Container, chatbot_id: str, embeddings_created: int) -> None:
    try:
        owner = await container.chatbot_repo().get_owner(chatbot_id)
        if owner is None or not owner.email:
            logger.warning("No owner email found, skipping training complete notification")
            return

        await container.email_service().notify_training_complete(
            owner_email=owner.email,
            chatbot_name=owner.chatbot_name,
            total_embeddings=embeddings_created,
        )
    except Exception as exc:
        logger.error(
            "Failed to send training complete email",
            extra={"error": str(exc)},
        )

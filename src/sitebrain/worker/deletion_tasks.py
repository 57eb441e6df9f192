from datetime import datetime, timezone

from sitebrain.jobs.queues import QueueName, Task
from sitebrain.jobs.task_models import AccountDeletionTask
from sitebrain.main.container.container import Container
from sitebrain.main.logging import get_logger

logger = get_logger(__name__)


async def queue_scheduled_deletions(container: Container) -> dict:
    """Hand every deletion request past its grace period to the processor.

    Status is left untouched; the account deletion processor owns it.
    """
    deletion_request_repo = container.deletion_request_repo()
    job_manager = container.job_manager()

    requests = await deletion_request_repo.get_due(datetime.now(timezone.utc))

    if not requests:
        logger.info("No pending deletions found")
        return {"processed": 0, "total_found": 0, "message": "No pending deletions"}

    logger.info(f"Found {len(requests)} pending deletions")

    queued = 0
    for request in requests:
        try:
            await job_manager.enqueue(
                QueueName.ACCOUNT_DELETION,
                Task.PROCESS_ACCOUNT_DELETION,
                AccountDeletionTask(request_id=request.id),
            )
        except Exception as exc:
            logger.error(
                "Failed to queue deletion job",
                extra={"request_id": request.id, "error": str(exc)},
            )
            continue

        queued += 1
        logger.info(
            "Deletion job queued",
            extra={
                "request_id": request.id,
                "user_id": request.user_id,
                "scheduled_date": request.scheduled_deletion_date.isoformat(),
            },
        )

    logger.info(
        "Scheduled deletion check completed",
        extra={"total_pending": len(requests), "queued_for_deletion": queued},
    )
    return {
        "processed": queued,
        "total_found": len(requests),
        "message": f"Queued {queued} out of {len(requests)} pending deletions",
    }

"""Queue names, job function names and per-family retry policies."""

from dataclasses import dataclass
from enum import Enum

from sitebrain.main.config import Settings, get_settings


class QueueName(str, Enum):
    SCRAPE = "scrape"
    EMBEDDING = "embedding"
    SCHEDULED_RESCRAPE = "scheduled-rescrape"
    SCHEDULED_DELETION_CHECK = "scheduled-deletion-check"
    ACCOUNT_DELETION = "account-deletion"
    SCHEDULER = "scheduler"


class Task(str, Enum):
    SCRAPE_WEBSITE = "scrape_website"
    CREATE_EMBEDDINGS = "create_embeddings"
    CHECK_SCHEDULED_RESCRAPES = "check_scheduled_rescrapes"
    CHECK_SCHEDULED_DELETIONS = "check_scheduled_deletions"
    # Registered by the account deletion processor, not by this package
    PROCESS_ACCOUNT_DELETION = "process_account_deletion"


@dataclass(frozen=True)
class RetryPolicy:
    max_tries: int
    base_delay: float

    def delay_for(self, job_try: int) -> float:
        """Exponential delay before the next attempt after ``job_try`` failed."""
        return self.base_delay * (2 ** (max(job_try, 1) - 1))

    def is_final_attempt(self, job_try: int) -> bool:
        return job_try >= self.max_tries


def retry_policy_for(queue: QueueName, settings: Settings | None = None) -> RetryPolicy:
    settings = settings or get_settings()

    match queue:
        case QueueName.SCRAPE:
            return RetryPolicy(settings.scrape_max_tries, settings.scrape_retry_base_delay)
        case QueueName.EMBEDDING:
            return RetryPolicy(
                settings.embedding_max_tries, settings.embedding_retry_base_delay
            )
        case QueueName.ACCOUNT_DELETION:
            return RetryPolicy(
                settings.account_deletion_max_tries,
                settings.account_deletion_retry_base_delay,
            )
        case _:
            # Sweeps run again on the next cron tick instead of retrying
            return RetryPolicy(max_tries=1, base_delay=0)

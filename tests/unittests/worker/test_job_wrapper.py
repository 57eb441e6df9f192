"""Unit tests for the retry policy applied by Worker.function."""

from unittest.mock import AsyncMock

import pytest
from arq import Retry

from sitebrain.jobs.queues import QueueName, Task
from sitebrain.jobs.task_models import ScrapeTask
from sitebrain.main.container.container import Container
from sitebrain.main.exceptions import NoEmbeddingsCreatedException
from sitebrain.main.job_context import get_job_context
from sitebrain.worker.worker import JobAttempt, ProgressReporter, Worker, progress_key

PAYLOAD = {"chatbotId": "c1", "websiteUrl": "https://example.com", "maxPages": 5, "historyId": "h1"}


def _ctx(container, job_try=1):
    return {"container": container, "job_id": "job-1", "job_try": job_try}


def _failing_worker(error: Exception):
    worker = Worker()
    seen = {}

    @worker.function(QueueName.SCRAPE, Task.SCRAPE_WEBSITE)
    async def scrape_website(params: ScrapeTask, container: Container, attempt: JobAttempt):
        seen["params"] = params
        seen["attempt"] = attempt
        seen["context"] = get_job_context()
        raise error

    return worker, scrape_website, seen


@pytest.mark.asyncio
async def test_payload_is_validated_and_job_context_set(container):
    worker = Worker()
    seen = {}

    @worker.function(QueueName.SCRAPE, Task.SCRAPE_WEBSITE)
    async def scrape_website(params: ScrapeTask, container: Container):
        seen["params"] = params
        seen["context"] = get_job_context()
        return {"pages_scraped": 1}

    result = await scrape_website(_ctx(container), PAYLOAD)

    assert result == {"pages_scraped": 1}
    assert seen["params"] == ScrapeTask(
        chatbot_id="c1", website_url="https://example.com", max_pages=5, history_id="h1"
    )
    assert seen["context"] == {
        "job_id": "job-1",
        "queue": "scrape",
        "chatbot_id": "c1",
        "history_id": "h1",
    }
    assert get_job_context() == {}


@pytest.mark.asyncio
@pytest.mark.parametrize("job_try,defer_ms", [(1, 5000), (2, 10000)])
async def test_non_final_failure_becomes_retry(container, job_try, defer_ms):
    _, scrape_website, seen = _failing_worker(RuntimeError("crawl service down"))

    with pytest.raises(Retry) as exc_info:
        await scrape_website(_ctx(container, job_try=job_try), PAYLOAD)

    assert exc_info.value.defer_score == defer_ms
    assert seen["attempt"].is_final is False


@pytest.mark.asyncio
async def test_final_failure_is_reraised(container):
    _, scrape_website, seen = _failing_worker(RuntimeError("crawl service down"))

    with pytest.raises(RuntimeError, match="crawl service down"):
        await scrape_website(_ctx(container, job_try=3), PAYLOAD)

    assert seen["attempt"].is_final is True
    container.alerting().handle_queue_error.assert_not_awaited()


@pytest.mark.asyncio
async def test_non_retryable_failure_is_reraised_on_first_attempt(container):
    error = NoEmbeddingsCreatedException(pages=2)
    _, scrape_website, seen = _failing_worker(error)

    with pytest.raises(NoEmbeddingsCreatedException):
        await scrape_website(_ctx(container, job_try=1), PAYLOAD)

    assert seen["attempt"].is_final is False
    assert seen["attempt"].gives_up_on(error) is True


@pytest.mark.asyncio
async def test_quota_error_is_reported(container):
    error = RuntimeError("ERR max requests limit exceeded. Limit: 500000")
    _, scrape_website, _ = _failing_worker(error)

    with pytest.raises(RuntimeError):
        await scrape_website(_ctx(container, job_try=3), PAYLOAD)

    container.alerting().handle_queue_error.assert_awaited_once_with(
        error, "scrape", redis=None
    )


@pytest.mark.asyncio
async def test_sweep_without_payload_is_never_retried(container):
    worker = Worker()

    @worker.function(QueueName.SCHEDULED_RESCRAPE, Task.CHECK_SCHEDULED_RESCRAPES)
    async def check_scheduled_rescrapes(container: Container):
        raise RuntimeError("database unavailable")

    with pytest.raises(RuntimeError, match="database unavailable"):
        await check_scheduled_rescrapes(_ctx(container))


def test_functions_are_grouped_per_queue(test_settings):
    worker, _, _ = _failing_worker(RuntimeError())

    (function,) = worker.functions_for(QueueName.SCRAPE, test_settings)

    assert function.name == "scrape_website"
    assert function.max_tries == 3
    assert worker.functions_for(QueueName.EMBEDDING, test_settings) == []


@pytest.mark.asyncio
async def test_progress_is_written_with_ttl():
    redis = AsyncMock()
    report_progress = ProgressReporter(redis, "job-1", ttl_seconds=60)

    await report_progress(50)

    key, ttl, value = redis.setex.await_args.args
    assert key == progress_key("job-1")
    assert ttl == 60
    assert '"progress": 50' in value


@pytest.mark.asyncio
async def test_progress_failure_does_not_fail_job():
    redis = AsyncMock()
    redis.setex.side_effect = ConnectionError("gone")

    await ProgressReporter(redis, "job-1", ttl_seconds=60)(10)

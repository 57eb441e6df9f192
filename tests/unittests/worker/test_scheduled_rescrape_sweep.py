from datetime import datetime, timedelta, timezone

import pytest
from dependency_injector import providers

from sitebrain.chatbots.chatbot import Chatbot
from sitebrain.jobs.queues import QueueName, Task
from sitebrain.jobs.task_models import ScrapeTask
from sitebrain.scrape_history.scrape_history import TriggerSource
from sitebrain.worker.rescrape_tasks import queue_scheduled_rescrapes


def _chatbot(chatbot_id: str, frequency: str = "daily", **kwargs) -> Chatbot:
    return Chatbot(
        id=chatbot_id,
        user_id="u1",
        name=f"Bot {chatbot_id}",
        website_url=f"https://{chatbot_id}.example.com",
        auto_scrape_enabled=True,
        scrape_frequency=frequency,
        **kwargs,
    )


@pytest.fixture
def history_repo(container):
    repo = container.scrape_history_repo()
    created = []

    async def add(entry):
        entry = entry.model_copy(update={"id": f"h-{entry.chatbot_id}"})
        created.append(entry)
        return entry

    repo.add.side_effect = add
    repo.has_outstanding_run.return_value = False
    repo.created = created
    return repo


@pytest.fixture
def job_manager(container):
    job_manager = container.job_manager()
    job_manager.enqueue.return_value = "job-x"
    return job_manager


@pytest.mark.asyncio
async def test_due_chatbots_get_scheduled_runs(container, history_repo, job_manager):
    container.chatbot_repo().get_auto_rescrape_candidates.return_value = [
        _chatbot("c1"),
        _chatbot("c2", max_pages=5),
    ]

    result = await queue_scheduled_rescrapes(container)

    assert result == {"processed": 2, "total_found": 2}
    assert all(entry.triggered_by is TriggerSource.SCHEDULED for entry in history_repo.created)

    queue, task, params = job_manager.enqueue.await_args_list[1].args
    assert queue is QueueName.SCRAPE
    assert task is Task.SCRAPE_WEBSITE
    assert params == ScrapeTask(
        chatbot_id="c2",
        website_url="https://c2.example.com",
        max_pages=5,
        history_id="h-c2",
        is_rescrape=True,
    )
    assert job_manager.enqueue.await_args_list[0].args[2].max_pages == 50


@pytest.mark.asyncio
async def test_history_failure_for_one_chatbot_does_not_stop_sweep(
    container, history_repo, job_manager
):
    container.chatbot_repo().get_auto_rescrape_candidates.return_value = [
        _chatbot("c1"),
        _chatbot("c2"),
        _chatbot("c3"),
    ]
    add = history_repo.add.side_effect

    async def add_failing_for_c2(entry):
        if entry.chatbot_id == "c2":
            raise Exception("insert failed")
        return await add(entry)

    history_repo.add.side_effect = add_failing_for_c2

    result = await queue_scheduled_rescrapes(container)

    assert result == {"processed": 2, "total_found": 3}
    assert job_manager.enqueue.await_count == 2


@pytest.mark.asyncio
async def test_enqueue_failure_is_not_counted(container, history_repo, job_manager):
    container.chatbot_repo().get_auto_rescrape_candidates.return_value = [
        _chatbot("c1"),
        _chatbot("c2"),
    ]
    job_manager.enqueue.side_effect = [Exception("redis down"), "job-2"]

    result = await queue_scheduled_rescrapes(container)

    assert result == {"processed": 1, "total_found": 2}
    # The pending row for c1 is left in place
    assert [entry.chatbot_id for entry in history_repo.created] == ["c1", "c2"]


@pytest.mark.asyncio
async def test_only_due_chatbots_are_counted(container, history_repo, job_manager):
    now = datetime.now(timezone.utc)
    container.chatbot_repo().get_auto_rescrape_candidates.return_value = [
        _chatbot("fresh", last_scraped_at=now - timedelta(hours=2)),
        _chatbot("stale", last_scraped_at=now - timedelta(hours=25)),
        _chatbot("odd", frequency="hourly"),
    ]

    result = await queue_scheduled_rescrapes(container)

    assert result == {"processed": 1, "total_found": 1}
    assert [entry.chatbot_id for entry in history_repo.created] == ["stale"]


@pytest.mark.asyncio
async def test_chatbot_with_outstanding_run_is_skipped(container, history_repo, job_manager):
    container.chatbot_repo().get_auto_rescrape_candidates.return_value = [
        _chatbot("c1"),
        _chatbot("c2"),
    ]
    history_repo.has_outstanding_run.side_effect = lambda chatbot_id, since: chatbot_id == "c1"

    result = await queue_scheduled_rescrapes(container)

    assert result == {"processed": 1, "total_found": 2}
    assert [entry.chatbot_id for entry in history_repo.created] == ["c2"]


@pytest.mark.asyncio
async def test_outstanding_check_can_be_disabled(
    container, test_settings, history_repo, job_manager
):
    container.settings.override(
        providers.Object(test_settings.model_copy(update={"rescrape_skip_outstanding_runs": False}))
    )
    container.chatbot_repo().get_auto_rescrape_candidates.return_value = [_chatbot("c1")]
    history_repo.has_outstanding_run.return_value = True

    result = await queue_scheduled_rescrapes(container)

    assert result == {"processed": 1, "total_found": 1}
    history_repo.has_outstanding_run.assert_not_awaited()


@pytest.mark.asyncio
async def test_candidate_query_failure_fails_sweep(container, history_repo, job_manager):
    container.chatbot_repo().get_auto_rescrape_candidates.side_effect = Exception("db down")

    with pytest.raises(Exception, match="db down"):
        await queue_scheduled_rescrapes(container)

import pytest

from sitebrain.chatbots.chatbot import Chatbot
from sitebrain.main.exceptions import NotFoundException, QueueUnavailableException
from sitebrain.scrape_history.scrape_history import RunStatus, TriggerSource


@pytest.fixture
def chatbot(container):
    chatbot = Chatbot(id="c1", user_id="u1", name="Support", website_url="https://example.com")
    container.chatbot_repo().get.return_value = chatbot
    return chatbot


@pytest.fixture
def history_repo(container):
    repo = container.scrape_history_repo()

    async def add(entry):
        return entry.model_copy(update={"id": "h1"})

    repo.add.side_effect = add
    return repo


@pytest.mark.asyncio
async def test_manual_trigger_creates_pending_run_and_enqueues(
    container, chatbot, history_repo
):
    container.job_manager().enqueue.return_value = "job-1"

    result = await container.rescrape_service().trigger_rescrape("c1")

    assert result == {"history_id": "h1", "job_id": "job-1"}
    entry = history_repo.add.await_args.args[0]
    assert entry.status is RunStatus.PENDING
    assert entry.triggered_by is TriggerSource.MANUAL

    params = container.job_manager().enqueue.await_args.args[2]
    assert params.history_id == "h1"
    assert params.is_rescrape is True
    assert params.max_pages == 50


@pytest.mark.asyncio
async def test_initial_trigger_is_not_a_rescrape(container, chatbot, history_repo):
    container.job_manager().enqueue.return_value = "job-1"

    await container.rescrape_service().trigger_rescrape("c1", TriggerSource.INITIAL)

    params = container.job_manager().enqueue.await_args.args[2]
    assert params.is_rescrape is False


@pytest.mark.asyncio
async def test_unknown_chatbot_raises(container, history_repo):
    container.chatbot_repo().get.return_value = None

    with pytest.raises(NotFoundException):
        await container.rescrape_service().trigger_rescrape("missing")

    history_repo.add.assert_not_awaited()


@pytest.mark.asyncio
async def test_duplicate_job_is_reported(container, chatbot, history_repo):
    container.job_manager().enqueue.return_value = None

    with pytest.raises(QueueUnavailableException):
        await container.rescrape_service().trigger_rescrape("c1")

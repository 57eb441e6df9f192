from unittest.mock import AsyncMock, MagicMock

import pytest
from dependency_injector import providers

from sitebrain.main.config import Settings, reset_settings, set_settings
from sitebrain.main.container.container import Container
from sitebrain.main.job_context import clear_job_context
from sitebrain.worker.worker import JobAttempt


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Explicit settings for unit tests, independent of .env and the environment."""
    return Settings(
        # Minimal database settings (not used in unit tests)
        postgres_user="unit_test_user",
        postgres_host="localhost",
        postgres_password="unit_test_password",
        postgres_port=5432,
        postgres_db="unit_test_db",

        # Redis settings (not used in unit tests)
        redis_host="localhost",
        redis_port=6379,

        # Fake key so the OpenAI client can be instantiated
        openai_api_key="sk-fake-unit-test-key-for-adapter-instantiation",

        resend_api_key="re_unit_test_key",
        email_from="noreply@sitebrain.test",
        admin_email="admin@sitebrain.test",
        app_url="https://app.sitebrain.test",
    )


@pytest.fixture(autouse=True)
def _settings_override(test_settings: Settings):
    set_settings(test_settings)
    yield
    reset_settings()
    clear_job_context()


@pytest.fixture
def container(test_settings: Settings) -> Container:
    """Container with every collaborator replaced by a mock.

    Tests reach the mocks through the providers, e.g.
    ``container.job_manager().enqueue.assert_awaited_once()``.
    """
    container = Container()
    container.settings.override(providers.Object(test_settings))

    container.chatbot_repo.override(providers.Object(AsyncMock()))
    container.scrape_history_repo.override(providers.Object(AsyncMock()))
    container.embedding_repo.override(providers.Object(AsyncMock()))
    container.deletion_request_repo.override(providers.Object(AsyncMock()))
    container.job_manager.override(providers.Object(AsyncMock()))
    container.crawler.override(providers.Object(AsyncMock()))
    container.embedding_adapter.override(providers.Object(AsyncMock()))
    container.email_service.override(providers.Object(AsyncMock()))

    alerting = MagicMock()
    alerting.handle_queue_error = AsyncMock(return_value=True)
    container.alerting.override(providers.Object(alerting))

    yield container
    container.reset_override()


@pytest.fixture
def make_attempt():
    def _make_attempt(job_try: int = 1, max_tries: int = 3, job_id: str = "job-1") -> JobAttempt:
        return JobAttempt(
            job_id=job_id,
            job_try=job_try,
            max_tries=max_tries,
            report_progress=AsyncMock(),
        )

    return _make_attempt

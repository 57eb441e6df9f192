from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from sitebrain.notifications.email_service import EmailService


@pytest.fixture
def session():
    session = MagicMock()
    response = MagicMock()
    response.raise_for_status = MagicMock()
    response.json = AsyncMock(return_value={"id": "em_123"})
    session.post.return_value.__aenter__.return_value = response
    return session


@pytest.fixture
def client(session):
    return MagicMock(return_value=session)


@pytest.mark.asyncio
async def test_missing_api_key_skips_send(test_settings, client, session):
    service = EmailService(client, test_settings.model_copy(update={"resend_api_key": None}))

    assert await service.send_email("owner@example.com", "Hello", "<p>Hi</p>") is False
    session.post.assert_not_called()


@pytest.mark.asyncio
async def test_send_posts_to_resend(test_settings, client, session):
    service = EmailService(client, test_settings)

    assert await service.send_email("owner@example.com", "Hello", "<p>Hi</p>") is True

    url = session.post.call_args.args[0]
    kwargs = session.post.call_args.kwargs
    assert url == "https://api.resend.com/emails"
    assert kwargs["json"] == {
        "from": "noreply@sitebrain.test",
        "to": ["owner@example.com"],
        "subject": "Hello",
        "html": "<p>Hi</p>",
    }
    assert kwargs["headers"] == {"Authorization": "Bearer re_unit_test_key"}


@pytest.mark.asyncio
async def test_client_error_is_reported_not_raised(test_settings, client, session):
    session.post.side_effect = aiohttp.ClientConnectionError("connection refused")
    service = EmailService(client, test_settings)

    assert await service.send_email("owner@example.com", "Hello", "<p>Hi</p>") is False


@pytest.mark.asyncio
async def test_unreadable_response_body_is_reported_not_raised(test_settings, client, session):
    response = session.post.return_value.__aenter__.return_value
    response.json = AsyncMock(side_effect=ValueError("Expecting value: line 1 column 1"))
    service = EmailService(client, test_settings)

    assert await service.send_email("owner@example.com", "Hello", "<p>Hi</p>") is False


@pytest.mark.asyncio
async def test_training_complete_email_escapes_chatbot_name(test_settings, client, session):
    service = EmailService(client, test_settings)

    await service.notify_training_complete(
        "owner@example.com", "<b>Shop</b> bot", total_embeddings=1234
    )

    payload = session.post.call_args.kwargs["json"]
    assert payload["subject"] == 'Your chatbot "<b>Shop</b> bot" is ready'
    assert "&lt;b&gt;Shop&lt;/b&gt; bot" in payload["html"]
    assert "1,234" in payload["html"]
    assert "https://app.sitebrain.test/dashboard/chatbots" in payload["html"]

import html
import json
from typing import TYPE_CHECKING, Any

import aiohttp

from sitebrain.main.config import Settings, get_settings
from sitebrain.main.logging import get_logger

if TYPE_CHECKING:
    from sitebrain.main.aiohttp_client import AioHttpClient

logger = get_logger(__name__)

_TRAINING_COMPLETE_TEMPLATE = """\
<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <h1>Training Complete!</h1>
    <p>Great news! Your chatbot "{chatbot_name}" has finished training.</p>
    {stats}
    <p>Your chatbot is now ready to answer customer questions based on your content.</p>
    <a href="{app_url}/dashboard/chatbots">View Your Chatbot</a>
  </body>
</html>
"""

_ADMIN_ALERT_TEMPLATE = """\
<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <h1>{title}</h1>
    <p>{message}</p>
    <pre>{details}</pre>
  </body>
</html>
"""


class EmailService:
    """Transactional email through the Resend HTTP API.

    Every send is best-effort: failures are logged and reported as False,
    never raised, so no job fails because an email could not be delivered.
    """

    def __init__(self, client: "AioHttpClient", settings: Settings | None = None):
        settings = settings or get_settings()
        self.client = client
        self.api_key = settings.resend_api_key
        self.api_url = settings.resend_api_url
        self.email_from = settings.email_from
        self.app_url = settings.app_url.rstrip("/")

    async def send_email(self, to: str | list[str], subject: str, body: str) -> bool:
        if not self.api_key:
            logger.warning(
                "RESEND_API_KEY not configured. Email not sent.",
                extra={"subject": subject},
            )
            return False

        payload = {
            "from": self.email_from,
            "to": to if isinstance(to, list) else [to],
            "subject": subject,
            "html": body,
        }

        try:
            async with self.client().post(
                self.api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            ) as response:
                response.raise_for_status()
                data = await response.json()
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            logger.error(
                f"Failed to send email: {e}",
                extra={"subject": subject},
            )
            return False

        logger.info(
            "Email sent successfully",
            extra={"message_id": data.get("id"), "subject": subject},
        )
        return True

    async def notify_training_complete(
        self,
        owner_email: str,
        chatbot_name: str,
        total_embeddings: int | None = None,
    ) -> bool:
        stats = (
            f"<p><strong>Total knowledge items processed:</strong> {total_embeddings:,}</p>"
            if total_embeddings is not None
            else ""
        )
        body = _TRAINING_COMPLETE_TEMPLATE.format(
            chatbot_name=html.escape(chatbot_name),
            stats=stats,
            app_url=self.app_url,
        )
        return await self.send_email(
            to=owner_email,
            subject=f'Your chatbot "{chatbot_name}" is ready',
            body=body,
        )

    async def send_admin_alert(
        self,
        to: str,
        title: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> bool:
        body = _ADMIN_ALERT_TEMPLATE.format(
            title=html.escape(title),
            message=html.escape(message),
            details=html.escape(json.dumps(details or {}, indent=2, default=str)),
        )
        return await self.send_email(to=to, subject=f"[Alert] {title}", body=body)

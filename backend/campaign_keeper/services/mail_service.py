"""Mail service - hands magic links to the outbound mail webhook.

The webhook receives ``{"email", "link", "data"}`` and is responsible for the
actual email. Without a configured webhook (local development) the link is
only logged.
"""

import logging

import httpx

from campaign_keeper.config import settings

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    pass


class MagicLinkMailer:
    def __init__(
        self,
        webhook_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.webhook_url = settings.MAIL_WEBHOOK_URL if webhook_url is None else webhook_url
        self._transport = transport

    async def send(self, email: str, link: str, data: dict) -> None:
        if not self.webhook_url:
            logger.info("Magic link for %s: %s", email, link)
            return

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    self.webhook_url, json={"email": email, "link": link, "data": data}
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Error sending magic link to %s: %s", email, exc)
            raise MailDeliveryError(f"Could not deliver magic link to {email}") from exc


def get_mailer() -> MagicLinkMailer:
    """FastAPI dependency (overridden in tests)."""
    return MagicLinkMailer()

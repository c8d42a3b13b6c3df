"""SendGrid v3 mail transport."""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..exceptions import ConfigurationError, DeliveryError

logger = logging.getLogger(__name__)


class SendGridClient:
    """Delivers single messages through the SendGrid ``mail/send`` API.

    Use as an async context manager to share one HTTP session across a whole
    dispatch; used bare, each call opens its own session.
    """

    def __init__(
        self,
        api_key: Optional[str],
        settings=None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize SendGrid client.

        Args:
            api_key: SendGrid API key
            settings: Settings instance for sender name and timeout
            session: Existing aiohttp session to reuse
        """
        self.api_key = api_key
        self.base_url = "https://api.sendgrid.com/v3"
        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "User-Agent": "Solo4AI-Newsletter/1.0",
        }
        self.from_name = settings.from_name if settings else "Solo4AI Newsletter"
        self.timeout = settings.sendgrid_timeout if settings else 30.0
        self._session = session
        self._owns_session = False

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def __aenter__(self) -> "SendGridClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False

    def build_payload(
        self, to: str, from_email: str, subject: str, html: str
    ) -> Dict[str, Any]:
        return {
            "personalizations": [{"to": [{"email": to}], "subject": subject}],
            "from": {"email": from_email, "name": self.from_name},
            "content": [{"type": "text/html", "value": html}],
            "tracking_settings": {
                "click_tracking": {"enable": True, "enable_text": False},
                "open_tracking": {"enable": True},
            },
        }

    async def _post(self, session: aiohttp.ClientSession, payload: Dict[str, Any]) -> None:
        async with session.post(
            f"{self.base_url}/mail/send",
            headers=self.headers,
            json=payload,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as response:
            if response.status in (200, 202):
                return

            body = await response.text()
            try:
                detail = json.dumps(json.loads(body))
            except ValueError:
                detail = f"Status {response.status}, Response: {body}"
            raise DeliveryError(f"SendGrid API error: {detail}")

    async def send_one(self, to: str, from_email: str, subject: str, html: str) -> None:
        """Send one message, raising DeliveryError if SendGrid rejects it."""
        if not self.api_key:
            raise ConfigurationError("SendGrid API key not configured")

        payload = self.build_payload(to, from_email, subject, html)
        logger.debug(f"Sending email to {to} with subject: {subject}")

        try:
            if self._session is not None:
                await self._post(self._session, payload)
            else:
                async with aiohttp.ClientSession() as session:
                    await self._post(session, payload)
        except asyncio.TimeoutError:
            raise DeliveryError("Email sending timed out")
        except aiohttp.ClientError as e:
            raise DeliveryError(f"Network error talking to SendGrid: {e}")

    async def test_connection(self) -> bool:
        """Check that the API key is accepted by SendGrid."""
        if not self.api_key:
            logger.warning("SendGrid API key not configured")
            return False

        try:
            if self._session is not None:
                return await self._check_scopes(self._session)
            async with aiohttp.ClientSession() as session:
                return await self._check_scopes(session)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"SendGrid connection check failed: {e}")
            return False

    async def _check_scopes(self, session: aiohttp.ClientSession) -> bool:
        async with session.get(
            f"{self.base_url}/scopes",
            headers=self.headers,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as response:
            if response.status == 200:
                return True
            logger.warning(f"SendGrid connection check failed: {response.status}")
            return False

"""Batched delivery of a rendered newsletter to many recipients."""

import asyncio
import logging
from typing import List, Optional, Protocol, Sequence

from ..exceptions import ConfigurationError
from ..models.dispatch import Recipient, SendFailure, SendReport
from ..models.settings import Settings
from .renderer import EmailRenderer
from .sanitizer import ContentSanitizer
from .unsubscribe import UnsubscribeTokenSigner, build_unsubscribe_url

logger = logging.getLogger(__name__)


class MailTransport(Protocol):
    """Single-recipient mail primitive used by the dispatcher."""

    @property
    def is_configured(self) -> bool:
        ...

    async def send_one(
        self, to: str, from_email: str, subject: str, html: str
    ) -> None:
        """Deliver one message, raising on failure."""
        ...


class BatchDispatcher:
    """Fans rendered HTML out to recipients in rate-limited batches.

    Recipients within a batch are sent concurrently; batches run one after
    another with ``settings.batch_delay`` seconds between them. One failed
    recipient never stops the others.
    """

    def __init__(
        self,
        transport: MailTransport,
        renderer: Optional[EmailRenderer] = None,
        settings: Optional[Settings] = None,
    ):
        self.transport = transport
        self.renderer = renderer or EmailRenderer()
        self.settings = settings or Settings()
        self.sanitizer = ContentSanitizer()
        self.signer = UnsubscribeTokenSigner(self.settings.unsubscribe_secret)

    def check_configuration(self) -> None:
        """Raise ConfigurationError unless everything needed to send is set."""
        missing = self.settings.missing_transport_settings()
        if not self.transport.is_configured:
            missing.append("mail transport")
        if missing:
            raise ConfigurationError(
                f"Cannot send newsletter, missing configuration: {', '.join(missing)}"
            )

    def personalize(self, html: str, email: str, token: Optional[str]) -> str:
        """Copy of ``html`` carrying this recipient's own unsubscribe link."""
        token = token or self.signer.generate(email)
        url = build_unsubscribe_url(self.settings.site_url, email, token)
        return self.renderer.add_unsubscribe_footer(html, url)

    async def _send_to(
        self, recipient: Recipient, html: str, subject: str
    ) -> Optional[SendFailure]:
        try:
            email = self.sanitizer.sanitize_email(recipient.email)
        except ValueError as e:
            logger.warning(f"Skipping invalid recipient {recipient.email!r}: {e}")
            return SendFailure(email=recipient.email, reason=str(e))

        body = self.personalize(html, email, recipient.unsubscribe_token)
        await self.transport.send_one(email, self.settings.from_email, subject, body)
        return None

    async def dispatch(
        self,
        html: str,
        subject: str,
        recipients: Sequence[Recipient],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SendReport:
        """Send ``html`` to every recipient and report what happened.

        Args:
            html: Rendered newsletter, used as a template per recipient
            subject: Email subject line
            recipients: Subscribers to deliver to
            cancel_event: When set, no further batches are started

        Returns:
            SendReport with uncapped counts and a capped failure list

        Raises:
            ConfigurationError: Transport credentials, sender or site URL missing
        """
        self.check_configuration()

        if not recipients:
            logger.info("No recipients, nothing to send")
            return SendReport()

        subject = self.sanitizer.sanitize_subject(subject)
        size = self.settings.batch_size
        batches = [recipients[i:i + size] for i in range(0, len(recipients), size)]

        logger.info(
            f"Sending to {len(recipients)} recipients in {len(batches)} batches"
        )

        succeeded = 0
        failures: List[SendFailure] = []
        batch_count = 0
        cancelled = False

        for number, batch in enumerate(batches, 1):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"Dispatch cancelled before batch {number}")
                cancelled = True
                break

            tasks = [self._send_to(recipient, html, subject) for recipient in batch]
            results = await asyncio.gather(*tasks, return_exceptions=True)

            # Fold results only after the whole batch has settled
            batch_failed = 0
            for recipient, result in zip(batch, results):
                if isinstance(result, SendFailure):
                    failures.append(result)
                    batch_failed += 1
                elif isinstance(result, Exception):
                    reason = str(result) or type(result).__name__
                    logger.warning(f"Failed to send to {recipient.email}: {reason}")
                    failures.append(SendFailure(email=recipient.email, reason=reason))
                    batch_failed += 1
                elif isinstance(result, BaseException):
                    raise result
                else:
                    succeeded += 1

            batch_count += 1
            logger.info(
                f"Batch {number}/{len(batches)}: "
                f"{len(batch) - batch_failed} sent, {batch_failed} failed"
            )

            if number < len(batches):
                await asyncio.sleep(self.settings.batch_delay)

        limit = self.settings.failure_report_limit
        report = SendReport(
            total_attempted=succeeded + len(failures),
            succeeded=succeeded,
            failed=len(failures),
            failures=failures[:limit],
            truncated_failure_list=len(failures) > limit,
            batch_count=batch_count,
            cancelled=cancelled,
        )
        logger.info(report.summary())
        return report

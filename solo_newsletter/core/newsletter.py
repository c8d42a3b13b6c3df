"""Send flow: load a stored newsletter, render it once, dispatch, record it."""

import asyncio
import logging
from typing import Optional, Sequence

from ..exceptions import NewsletterAlreadySentError
from ..models.dispatch import Recipient, SendReport
from ..models.document import NewsletterRecord, NewsletterStatus
from ..models.settings import Settings
from .dispatcher import BatchDispatcher, MailTransport
from .renderer import EmailRenderer
from .storage import DocumentStore

logger = logging.getLogger(__name__)


class NewsletterSender:
    """Orchestrates sending one stored newsletter to its subscribers."""

    def __init__(
        self,
        store: DocumentStore,
        transport: MailTransport,
        settings: Optional[Settings] = None,
        renderer: Optional[EmailRenderer] = None,
        previews=None,
    ):
        """Initialize the sender.

        Args:
            store: Where newsletter records live
            transport: Single-recipient mail transport
            settings: Settings instance, loaded from the environment if omitted
            renderer: Email renderer, the packaged templates if omitted
            previews: Optional YouTubePreviewClient run before rendering
        """
        self.store = store
        self.settings = settings or Settings()
        self.renderer = renderer or EmailRenderer()
        self.previews = previews
        self.dispatcher = BatchDispatcher(transport, self.renderer, self.settings)

    async def render(self, newsletter_id: str) -> str:
        """Render a stored newsletter exactly as subscribers will receive it."""
        return await self.render_record(self.store.load(newsletter_id))

    async def render_record(self, record: NewsletterRecord) -> str:
        document = record.to_document()
        if self.previews is not None:
            document = await self.previews.prepare_previews(document)
        return self.renderer.render(document)

    async def send(
        self,
        newsletter_id: str,
        recipients: Sequence[Recipient],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SendReport:
        """Send a draft newsletter and mark it sent.

        The record is marked sent only when at least one recipient received
        it; ``recipients_count`` is the number actually delivered.

        Raises:
            ConfigurationError: Mail settings are incomplete
            NewsletterNotFoundError: No record with this id
            NewsletterAlreadySentError: The record was already sent
        """
        self.dispatcher.check_configuration()

        record = self.store.load(newsletter_id)
        if record.status == NewsletterStatus.SENT:
            raise NewsletterAlreadySentError(
                f"Newsletter {newsletter_id} was already sent on {record.sent_at}"
            )

        html = await self.render_record(record)
        logger.info(f"Rendered newsletter {newsletter_id} ({len(html)} chars)")

        report = await self.dispatcher.dispatch(
            html, record.subject, recipients, cancel_event=cancel_event
        )

        if report.success and report.succeeded > 0:
            self.store.mark_sent(newsletter_id, report.succeeded)
            logger.info(f"Marked newsletter {newsletter_id} as sent")
        elif report.total_attempted:
            logger.error(f"No recipient received newsletter {newsletter_id}")

        return report

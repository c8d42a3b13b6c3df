import pytest

from solo_newsletter.exceptions import DeliveryError
from solo_newsletter.models.document import (
    Document,
    ListData,
    ListItem,
    MediaItem,
    Section,
    Subsection,
)
from solo_newsletter.models.settings import Settings


@pytest.fixture
def settings():
    """Settings for testing, isolated from any local .env file."""
    return Settings(
        _env_file=None,
        sendgrid_api_key="test_key",
        unsubscribe_secret="test_secret",
        from_email="info@solo4ai.com",
        site_url="https://solo4ai.com",
        batch_size=10,
        batch_delay=0.0,
        failure_report_limit=5,
    )


@pytest.fixture
def sample_document():
    """A document exercising sections, subsections, media and lists."""
    return Document(
        main_title="نشرة سولو",
        sub_title="أخبار الذكاء الاصطناعي",
        date="2024-05-01",
        sections=[
            Section(
                id="s1",
                title="القسم الأول",
                content="Intro with [a link](https://example.com)",
                background_color="#f0fdf4",
                media_items=[
                    MediaItem(
                        id="m1",
                        type="image",
                        url="https://example.com/a.png",
                        text_content="Caption",
                    ),
                ],
                lists=[
                    ListData(
                        id="l1",
                        type="numbered",
                        items=[
                            ListItem(id="i1", text="one"),
                            ListItem(id="i2", text="two"),
                        ],
                    )
                ],
                subsections=[
                    Subsection(
                        id="ss1",
                        title="فرعي",
                        content="Nested",
                        after_list_content="After",
                    ),
                    Subsection(id="ss2", title="فرعي ٢", content="Second"),
                ],
            ),
            Section(id="s2", title="القسم الثاني", content="Body"),
            Section(id="s3", title="القسم الثالث", content="Tail"),
        ],
    )


class RecordingTransport:
    """In-memory mail transport that records messages and fails on request."""

    def __init__(self, fail_for=(), configured=True, error=None):
        self.is_configured = configured
        self.sent = []
        self.fail_for = set(fail_for)
        self.error = error

    async def send_one(self, to, from_email, subject, html):
        if to in self.fail_for:
            raise self.error or DeliveryError(f"SendGrid API error: rejected {to}")
        self.sent.append(
            {"to": to, "from_email": from_email, "subject": subject, "html": html}
        )


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def make_transport():
    return RecordingTransport

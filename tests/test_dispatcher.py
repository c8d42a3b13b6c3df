"""Tests for batched newsletter dispatch."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from solo_newsletter.core.dispatcher import BatchDispatcher
from solo_newsletter.core.renderer import EmailRenderer
from solo_newsletter.core.unsubscribe import UnsubscribeTokenSigner
from solo_newsletter.exceptions import ConfigurationError
from solo_newsletter.models.dispatch import Recipient

HTML = "<html><body><p>Newsletter</p></body></html>"


def recipients(count):
    return [Recipient(email=f"user{n}@example.com") for n in range(1, count + 1)]


@pytest.fixture
def renderer():
    return EmailRenderer()


class TestDispatch:
    @pytest.mark.asyncio
    async def test_partial_failure_scenario(self, settings, renderer, make_transport):
        transport = make_transport(fail_for={"user15@example.com"})
        dispatcher = BatchDispatcher(transport, renderer, settings)

        report = await dispatcher.dispatch(HTML, "Weekly", recipients(23))

        assert report.total_attempted == 23
        assert report.succeeded == 22
        assert report.failed == 1
        assert [failure.email for failure in report.failures] == ["user15@example.com"]
        assert "rejected" in report.failures[0].reason
        assert report.batch_count == 3
        assert report.success
        assert not report.truncated_failure_list
        assert len(transport.sent) == 22

    @pytest.mark.asyncio
    async def test_batches_are_sequential_with_delay(self, settings, renderer, make_transport):
        transport = make_transport()
        dispatcher = BatchDispatcher(transport, renderer, settings)
        sent_at_each_pause = []

        async def record_pause(delay):
            sent_at_each_pause.append(len(transport.sent))

        with patch(
            "solo_newsletter.core.dispatcher.asyncio.sleep",
            new=AsyncMock(side_effect=record_pause),
        ) as sleep:
            report = await dispatcher.dispatch(HTML, "Weekly", recipients(23))

        # Batches of 10, 10 and 3, with a pause only between batches
        assert sent_at_each_pause == [10, 20]
        assert sleep.await_count == 2
        sleep.assert_awaited_with(settings.batch_delay)
        assert report.succeeded == 23

    @pytest.mark.asyncio
    async def test_empty_recipient_list(self, settings, renderer, make_transport):
        transport = make_transport()
        report = await BatchDispatcher(transport, renderer, settings).dispatch(
            HTML, "Weekly", []
        )

        assert report.success
        assert report.total_attempted == 0
        assert report.succeeded == 0
        assert report.batch_count == 0
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_missing_api_key_is_fatal(self, settings, renderer, make_transport):
        transport = make_transport()
        settings = settings.model_copy(update={"sendgrid_api_key": None})

        with pytest.raises(ConfigurationError, match="sendgrid_api_key"):
            await BatchDispatcher(transport, renderer, settings).dispatch(
                HTML, "Weekly", recipients(3)
            )
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_unconfigured_transport_is_fatal_even_without_recipients(
        self, settings, renderer, make_transport
    ):
        transport = make_transport(configured=False)

        with pytest.raises(ConfigurationError, match="mail transport"):
            await BatchDispatcher(transport, renderer, settings).dispatch(
                HTML, "Weekly", []
            )

    @pytest.mark.asyncio
    async def test_invalid_addresses_fail_without_sending(
        self, settings, renderer, make_transport
    ):
        transport = make_transport()
        batch = [
            Recipient(email="good@example.com"),
            Recipient(email="not-an-email"),
            Recipient(email="evil@example.com\nBcc: x@example.com"),
        ]

        report = await BatchDispatcher(transport, renderer, settings).dispatch(
            HTML, "Weekly", batch
        )

        assert report.succeeded == 1
        assert report.failed == 2
        assert [message["to"] for message in transport.sent] == ["good@example.com"]

    @pytest.mark.asyncio
    async def test_addresses_are_normalized(self, settings, renderer, make_transport):
        transport = make_transport()
        await BatchDispatcher(transport, renderer, settings).dispatch(
            HTML, "Weekly", [Recipient(email="  User@Example.COM ")]
        )

        assert transport.sent[0]["to"] == "user@example.com"

    @pytest.mark.asyncio
    async def test_failure_list_is_capped(self, settings, renderer, make_transport):
        failing = {f"user{n}@example.com" for n in range(1, 9)}
        transport = make_transport(fail_for=failing)

        report = await BatchDispatcher(transport, renderer, settings).dispatch(
            HTML, "Weekly", recipients(10)
        )

        assert report.failed == 8
        assert report.succeeded == 2
        assert len(report.failures) == settings.failure_report_limit
        assert report.truncated_failure_list
        assert report.success

    @pytest.mark.asyncio
    async def test_all_failed_is_not_success(self, settings, renderer, make_transport):
        transport = make_transport(fail_for={"user1@example.com", "user2@example.com"})

        report = await BatchDispatcher(transport, renderer, settings).dispatch(
            HTML, "Weekly", recipients(2)
        )

        assert not report.success
        assert report.summary() == "Newsletter sent to 0 subscribers (2 failed)"

    @pytest.mark.asyncio
    async def test_unexpected_transport_errors_are_captured(
        self, settings, renderer, make_transport
    ):
        transport = make_transport(
            fail_for={"user2@example.com"}, error=RuntimeError("connection reset")
        )

        report = await BatchDispatcher(transport, renderer, settings).dispatch(
            HTML, "Weekly", recipients(3)
        )

        assert report.succeeded == 2
        assert report.failures[0].reason == "connection reset"

    @pytest.mark.asyncio
    async def test_cancel_between_batches(self, settings, renderer, make_transport):
        transport = make_transport()
        cancel = asyncio.Event()

        async def cancel_on_pause(delay):
            cancel.set()

        with patch(
            "solo_newsletter.core.dispatcher.asyncio.sleep",
            new=AsyncMock(side_effect=cancel_on_pause),
        ):
            report = await BatchDispatcher(transport, renderer, settings).dispatch(
                HTML, "Weekly", recipients(23), cancel_event=cancel
            )

        assert report.cancelled
        assert report.batch_count == 1
        assert report.total_attempted == 10
        assert report.succeeded + report.failed == report.total_attempted


class TestPersonalization:
    @pytest.mark.asyncio
    async def test_each_recipient_gets_own_unsubscribe_link(
        self, settings, renderer, make_transport
    ):
        transport = make_transport()
        batch = [
            Recipient(email="a@example.com", unsubscribe_token="stored-token"),
            Recipient(email="b@example.com"),
        ]

        await BatchDispatcher(transport, renderer, settings).dispatch(HTML, "Weekly", batch)

        by_email = {message["to"]: message["html"] for message in transport.sent}
        expected_token = UnsubscribeTokenSigner("test_secret").generate("b@example.com")

        assert "email=a%40example.com&amp;token=stored-token" in by_email["a@example.com"]
        assert "b%40example.com" not in by_email["a@example.com"]
        assert f"email=b%40example.com&amp;token={expected_token}" in by_email["b@example.com"]

    @pytest.mark.asyncio
    async def test_template_html_is_not_mutated(self, settings, renderer, make_transport):
        transport = make_transport()
        html = HTML

        await BatchDispatcher(transport, renderer, settings).dispatch(
            html, "Weekly", recipients(2)
        )

        assert html == HTML
        assert all(message["html"] != HTML for message in transport.sent)
        assert all(message["html"].endswith("</body></html>") for message in transport.sent)

    @pytest.mark.asyncio
    async def test_sender_and_subject(self, settings, renderer, make_transport):
        transport = make_transport()

        await BatchDispatcher(transport, renderer, settings).dispatch(
            HTML, "<b>Weekly</b>  digest", recipients(1)
        )

        assert transport.sent[0]["from_email"] == "info@solo4ai.com"
        assert transport.sent[0]["subject"] == "Weekly digest"

    @pytest.mark.asyncio
    async def test_long_subject_is_truncated_not_fatal(
        self, settings, renderer, make_transport
    ):
        transport = make_transport()

        report = await BatchDispatcher(transport, renderer, settings).dispatch(
            HTML, "ن" * 201, [Recipient(email="a@example.com")]
        )

        assert report.succeeded == 1
        subject = transport.sent[0]["subject"]
        assert len(subject) == 200
        assert subject.endswith("…")

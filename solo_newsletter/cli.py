"""Command line interface for the newsletter sender."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiohttp
import click

from .exceptions import NewsletterError

logger = logging.getLogger(__name__)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.option(
    "--storage-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory holding newsletter JSON records",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, storage_dir: Optional[str]) -> None:
    """Solo newsletter CLI.

    Renders stored newsletters to RTL HTML email and sends them to
    subscribers in rate-limited batches.
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["storage_dir"] = storage_dir
    # Set up logging before any other logging calls
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(level=log_level, force=True)
    logger.debug("Debug mode enabled")


def _settings(ctx: click.Context):
    from .models.settings import Settings

    settings = Settings(debug=ctx.obj.get("debug", False))
    if ctx.obj.get("storage_dir"):
        settings = settings.model_copy(update={"storage_dir": ctx.obj["storage_dir"]})
    return settings


def _fail(ctx: click.Context, message: str, error: Exception) -> None:
    logger.error(f"❌ {message}: {error}")
    if ctx.obj.get("debug"):
        raise error
    ctx.exit(1)


@cli.command()
@click.argument("newsletter_id")
@click.option(
    "--output", "-o", type=click.Path(dir_okay=False), help="Write HTML to this file"
)
@click.option(
    "--previews", is_flag=True, help="Resolve high resolution YouTube thumbnails first"
)
@click.pass_context
def render(ctx: click.Context, newsletter_id: str, output: str, previews: bool) -> None:
    """Render a stored newsletter to HTML."""

    async def _render() -> str:
        from .clients.youtube import YouTubePreviewClient
        from .core.renderer import EmailRenderer
        from .core.storage import JsonFileStore

        settings = _settings(ctx)
        store = JsonFileStore(settings.storage_dir)
        document = store.load_document(newsletter_id)
        if previews:
            document = await YouTubePreviewClient(settings).prepare_previews(document)
        return EmailRenderer().render(document)

    try:
        html = asyncio.run(_render())
    except (NewsletterError, ValueError) as e:
        _fail(ctx, "Could not render newsletter", e)
        return

    if output:
        Path(output).write_text(html, encoding="utf-8")
        logger.info(f"✅ Newsletter written to {output}")
    else:
        click.echo(html)


@cli.command()
@click.argument("newsletter_id")
@click.option(
    "--recipients",
    "recipients_file",
    type=click.Path(exists=True, dir_okay=False),
    required=True,
    help="JSON array or one address per line",
)
@click.option("--dry-run", is_flag=True, help="Render and validate without sending")
@click.option("--previews", is_flag=True, help="Resolve YouTube thumbnails first")
@click.pass_context
def send(
    ctx: click.Context,
    newsletter_id: str,
    recipients_file: str,
    dry_run: bool,
    previews: bool,
) -> None:
    """Send a stored newsletter to a list of recipients."""

    async def _send():
        from .clients.sendgrid import SendGridClient
        from .clients.youtube import YouTubePreviewClient
        from .core.newsletter import NewsletterSender
        from .core.storage import JsonFileStore, load_recipients

        settings = _settings(ctx)
        store = JsonFileStore(settings.storage_dir)
        recipients = load_recipients(recipients_file)
        logger.info(f"📋 Loaded {len(recipients)} recipients from {recipients_file}")

        preview_client = YouTubePreviewClient(settings) if previews else None

        async with SendGridClient(settings.sendgrid_api_key, settings) as transport:
            sender = NewsletterSender(
                store, transport, settings=settings, previews=preview_client
            )

            if dry_run:
                logger.info("🔍 DRY RUN MODE - No emails will be sent")
                sender.dispatcher.check_configuration()
                html = await sender.render(newsletter_id)
                logger.info(
                    f"✅ Rendered {len(html)} characters for {len(recipients)} recipients"
                )
                return None

            logger.info(f"🚀 Sending newsletter {newsletter_id}...")
            return await sender.send(newsletter_id, recipients)

    try:
        report = asyncio.run(_send())
    except (NewsletterError, ValueError) as e:
        _fail(ctx, "Send aborted", e)
        return
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        _fail(ctx, "Network error while sending", e)
        return

    if report is None:
        return

    if report.success:
        logger.info(f"✅ {report.summary()}")
    else:
        logger.error(f"❌ {report.summary()}")

    for failure in report.failures:
        logger.warning(f"   - {failure.email}: {failure.reason}")
    if report.truncated_failure_list:
        logger.warning(f"   ... and {report.failed - len(report.failures)} more")

    if not report.success:
        ctx.exit(1)


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Check configuration and the mail transport connection."""
    from .clients.sendgrid import SendGridClient
    from .core.storage import JsonFileStore

    settings = _settings(ctx)
    logger.info("🔍 Checking system health...")

    missing = settings.missing_transport_settings()
    if missing:
        logger.warning(f"⚠️  Missing configuration: {', '.join(missing)}")

    store = JsonFileStore(settings.storage_dir)
    logger.info(f"📁 Stored newsletters: {len(store.list_ids())}")

    client = SendGridClient(settings.sendgrid_api_key, settings)
    connected = asyncio.run(client.test_connection())
    logger.info(f"🌐 SendGrid: {'✅' if connected else '❌'}")

    if missing or not connected:
        logger.info("🔧 Sending is not available until the issues above are fixed")
        ctx.exit(1)

    logger.info("✅ System healthy - ready to send")


@cli.command()
@click.pass_context
def config(ctx: click.Context) -> None:
    """Display current configuration (without sensitive values)."""
    settings = _settings(ctx)

    click.echo("\n📋 Newsletter Configuration\n")
    click.echo(f"Debug Mode: {settings.debug}")
    click.echo(f"Log Level: {settings.log_level}")
    click.echo(f"Storage Directory: {settings.storage_dir}")

    click.echo("\n✉️  Sender:")
    click.echo(f"  From: {settings.from_name} <{settings.from_email}>")
    click.echo(f"  Site URL: {settings.site_url}")

    click.echo("\n🔑 Secrets:")
    click.echo(
        f"  SendGrid: {'✅ Configured' if settings.sendgrid_api_key else '❌ Missing'}"
    )
    click.echo(
        "  Unsubscribe secret: "
        f"{'✅ Configured' if settings.unsubscribe_secret else '❌ Missing'}"
    )

    click.echo("\n📦 Batching:")
    click.echo(f"  Batch size: {settings.batch_size}")
    click.echo(f"  Delay between batches: {settings.batch_delay}s")
    click.echo(f"  Failures listed in reports: {settings.failure_report_limit}")


if __name__ == "__main__":
    cli()

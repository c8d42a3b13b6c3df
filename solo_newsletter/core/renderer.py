"""Render newsletter documents to self-contained RTL HTML email."""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from jinja2 import Environment, PackageLoader, select_autoescape

from ..models.document import Document, MediaItem, MediaSize, MediaType, decode_sections
from .markup import format_inline
from .sanitizer import ContentSanitizer
from .utils import css_color, extract_youtube_id

logger = logging.getLogger(__name__)

MEDIA_WIDTHS = {
    MediaSize.SMALL: "25%",
    MediaSize.MEDIUM: "50%",
    MediaSize.LARGE: "75%",
    MediaSize.FULL: "100%",
}

MEDIA_MAX_WIDTHS = {
    MediaSize.SMALL: "200px",
    MediaSize.MEDIUM: "400px",
    MediaSize.LARGE: "600px",
    MediaSize.FULL: "100%",
}

YOUTUBE_THUMBNAIL_URL = "https://img.youtube.com/vi/{video_id}/hqdefault.jpg"

BODY_CLOSE_PATTERN = re.compile(r"</body\s*>", re.IGNORECASE)


@dataclass(frozen=True)
class MediaView:
    """Template-ready values for one media item."""

    kind: str  # image, thumbnail, placeholder or link
    href: str
    src: str
    width: str
    max_width: str
    align: str
    label: str


class EmailRenderer:
    """Renders documents with the packaged Jinja templates.

    Rendering is pure: the same document always produces byte-identical HTML
    and nothing touches the network.
    """

    TEMPLATE = "newsletter.html.jinja"
    FOOTER_TEMPLATE = "unsubscribe_footer.html.jinja"

    def __init__(self, environment: Optional[Environment] = None):
        self.sanitizer = ContentSanitizer()
        self.env = environment or Environment(
            loader=PackageLoader("solo_newsletter", "templates"),
            autoescape=select_autoescape(["html", "jinja"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["inline"] = format_inline
        self.env.globals["css_color"] = css_color
        self.env.globals["media_view"] = self.media_view

    def safe_href(self, url: Optional[str]) -> str:
        if url and self.sanitizer.is_safe_url(url):
            return url.strip()
        return "#"

    def media_view(self, item: MediaItem) -> MediaView:
        """Resolve how a media item appears in email."""
        width = MEDIA_WIDTHS.get(item.size, MEDIA_WIDTHS[MediaSize.MEDIUM])
        max_width = MEDIA_MAX_WIDTHS.get(item.size, MEDIA_MAX_WIDTHS[MediaSize.MEDIUM])
        align = item.alignment.value
        href = self.safe_href(item.url)
        alt = item.description or item.title or ""

        if item.type == MediaType.IMAGE:
            if href == "#":
                return MediaView("placeholder", href, "", width, max_width, align, alt)
            return MediaView("image", href, href, width, max_width, align, alt)

        if item.type == MediaType.YOUTUBE:
            if item.preview_url and self.sanitizer.is_safe_url(item.preview_url):
                src = item.preview_url.strip()
            else:
                video_id = extract_youtube_id(item.url)
                if video_id is None:
                    logger.debug(f"No YouTube id in {item.url!r}, using placeholder")
                    return MediaView(
                        "placeholder", href, "", width, max_width, align, alt
                    )
                src = YOUTUBE_THUMBNAIL_URL.format(video_id=video_id)
            return MediaView("thumbnail", href, src, width, max_width, align, alt)

        if item.type == MediaType.VIDEO:
            # <video> is unreliable across mail clients
            return MediaView("placeholder", href, "", width, max_width, align, alt)

        return MediaView(
            "link", href, "", width, max_width, align, item.title or item.url
        )

    def render(self, document: Document) -> str:
        """Render the full HTML email for a document."""
        template = self.env.get_template(self.TEMPLATE)
        return template.render(document=document)

    def render_content(
        self, content: Optional[str], subject: str, date: str = "", sub_title: str = ""
    ) -> str:
        """Render persisted wire content, accepting legacy HTML content too."""
        document = Document(
            main_title=subject,
            sub_title=sub_title,
            date=date,
            sections=decode_sections(content),
        )
        return self.render(document)

    def add_unsubscribe_footer(self, html: str, unsubscribe_url: str) -> str:
        """Return a copy of ``html`` with the unsubscribe footer before ``</body>``."""
        footer = self.env.get_template(self.FOOTER_TEMPLATE).render(
            unsubscribe_url=unsubscribe_url
        )

        matches = list(BODY_CLOSE_PATTERN.finditer(html))
        if not matches:
            return html + footer
        position = matches[-1].start()
        return html[:position] + footer + html[position:]


@lru_cache(maxsize=1)
def get_renderer() -> EmailRenderer:
    return EmailRenderer()


def render_document(document: Document) -> str:
    """Render a document with the shared default renderer."""
    return get_renderer().render(document)

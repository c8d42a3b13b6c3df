"""Inline markup to HTML conversion for email output."""

import html
import re
from typing import Optional

from markupsafe import Markup, escape

from .sanitizer import ContentSanitizer

BOLD_PATTERN = re.compile(r"\*\*(.+?)\*\*")
LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")

LINK_STYLE = "color: #4F46E5; text-decoration: underline;"

_sanitizer = ContentSanitizer()


def _link(match: "re.Match[str]") -> str:
    text, escaped_url = match.group(1), match.group(2)
    if not _sanitizer.is_safe_url(html.unescape(escaped_url)):
        return text
    return (
        f'<a href="{escaped_url.strip()}" target="_blank" '
        f'rel="noopener noreferrer" style="{LINK_STYLE}">{text}</a>'
    )


def format_inline(text: Optional[str]) -> Markup:
    """Convert ``**bold**`` and ``[text](url)`` spans to HTML.

    The input is escaped exactly once before any tag is produced, so stored
    text can never inject markup. Bold runs before links. Newlines become
    ``<br>``. Links with unsafe schemes such as ``javascript:`` keep their
    words and lose the anchor.
    """
    if not text:
        return Markup("")

    escaped = str(escape(text))
    escaped = BOLD_PATTERN.sub(r"<strong>\1</strong>", escaped)
    escaped = LINK_PATTERN.sub(_link, escaped)
    escaped = escaped.replace("\r\n", "\n").replace("\n", "<br>")
    return Markup(escaped)

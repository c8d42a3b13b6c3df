"""Content sanitization and validation utilities."""

import html
import logging
import re
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


class ContentSanitizer:
    """Validates addresses, subjects and link targets before they reach email."""

    EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

    # Characters that would allow header injection into the transport payload
    FORBIDDEN_EMAIL_CHARS = ("\n", "\r", "\t", "\0")

    SAFE_URL_SCHEMES = {"http", "https", "mailto", "tel"}

    MAX_SUBJECT_LENGTH = 200

    TAG_PATTERN = re.compile(r"<[^>]*>")

    def sanitize_email(self, email: str) -> str:
        """Normalize an address, raising ValueError if it is unusable."""
        if not email:
            raise ValueError("Email address is empty")

        clean_email = email.strip().lower()
        if any(char in clean_email for char in self.FORBIDDEN_EMAIL_CHARS):
            raise ValueError("Invalid characters in email")

        if not self.EMAIL_PATTERN.match(clean_email):
            raise ValueError(f"Invalid email format: {clean_email}")

        return clean_email

    def sanitize_subject(self, subject: str) -> str:
        """Strip markup from a subject line, truncating it past the length limit."""
        if not subject:
            return ""

        sanitized = html.unescape(self.TAG_PATTERN.sub("", subject))
        sanitized = " ".join(sanitized.split())

        if len(sanitized) > self.MAX_SUBJECT_LENGTH:
            logger.warning(
                f"Subject line is {len(sanitized)} characters, "
                f"truncating to {self.MAX_SUBJECT_LENGTH}"
            )
            sanitized = sanitized[: self.MAX_SUBJECT_LENGTH - 1].rstrip() + "…"

        return sanitized

    def is_safe_url(self, url: str) -> bool:
        """True for http(s)/mailto/tel links and scheme-less relative links."""
        if not url or not url.strip():
            return False

        # Browsers ignore control characters and whitespace inside schemes
        compact = re.sub(r"[\x00-\x20]", "", url)
        try:
            parsed = urlparse(compact)
        except ValueError:
            logger.debug(f"Unparseable URL rejected: {url!r}")
            return False

        if not parsed.scheme:
            return True
        return parsed.scheme.lower() in self.SAFE_URL_SCHEMES

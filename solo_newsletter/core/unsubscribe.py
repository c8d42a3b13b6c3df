"""Unsubscribe link construction and token signing."""

import hashlib
import hmac
import logging
from typing import Optional
from urllib.parse import quote

logger = logging.getLogger(__name__)

# Characters encodeURIComponent leaves unescaped besides alphanumerics and -_.
_URI_COMPONENT_SAFE = "!~*'()"


def build_unsubscribe_url(site_url: str, email: str, token: str) -> str:
    """Build ``{site}/unsubscribe?email=...&token=...``.

    The external unsubscribe handler parses exactly these two parameters, so
    the email is encoded the way browsers encode a URI component.
    """
    base = site_url.rstrip("/")
    return f"{base}/unsubscribe?email={quote(email, safe=_URI_COMPONENT_SAFE)}&token={token}"


class UnsubscribeTokenSigner:
    """Derives deterministic per-address unsubscribe tokens."""

    TOKEN_LENGTH = 32

    def __init__(self, secret: Optional[str]):
        self.secret = secret or ""
        if not self.secret:
            logger.warning("No unsubscribe secret configured; tokens are unsigned")

    def generate(self, email: str) -> str:
        digest = hashlib.sha256(
            (email.strip().lower() + self.secret).encode("utf-8")
        ).hexdigest()
        return digest[: self.TOKEN_LENGTH]

    def verify(self, email: str, token: Optional[str]) -> bool:
        if not token:
            return False
        return hmac.compare_digest(
            self.generate(email).encode("utf-8"), token.encode("utf-8")
        )

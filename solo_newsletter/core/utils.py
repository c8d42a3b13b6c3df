"""Utility functions for ids, URLs and colours."""

from __future__ import annotations

import re
import uuid
from typing import Optional
from urllib.parse import parse_qs, urlparse

YOUTUBE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{11}$")

CSS_COLOR_PATTERN = re.compile(
    r"^(#[0-9a-fA-F]{3,8}|rgba?\([\d\s,.%]+\)|hsla?\([\d\s,.%deg]+\)|[a-zA-Z]{3,20})$"
)

# Base tints of the Tailwind gradient presets offered by the editor.
TAILWIND_TINTS = {
    "slate": "#f8fafc",
    "gray": "#f9fafb",
    "red": "#fef2f2",
    "orange": "#fff7ed",
    "amber": "#fffbeb",
    "yellow": "#fefce8",
    "green": "#f0fdf4",
    "emerald": "#ecfdf5",
    "teal": "#f0fdfa",
    "cyan": "#ecfeff",
    "blue": "#eff6ff",
    "indigo": "#eef2ff",
    "purple": "#faf5ff",
    "pink": "#fdf2f8",
    "rose": "#fff1f2",
}

TAILWIND_FROM_PATTERN = re.compile(r"\bfrom-([a-z]+)-\d{2,3}\b")


def generate_id() -> str:
    """Return a new process-unique entity id."""
    return uuid.uuid4().hex


def extract_youtube_id(url: str) -> Optional[str]:
    """Extract the 11-character video id from a YouTube URL.

    Accepts ``youtube.com/watch?v=``, ``youtu.be/`` and ``youtube.com/embed/``
    URLs. Returns None for anything else.
    """
    if not url:
        return None

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None

    domain = re.sub(r"^(www\.|m\.)", "", parsed.netloc.lower())
    candidate = None

    if domain == "youtu.be":
        candidate = parsed.path.lstrip("/").split("/")[0]
    elif domain in ("youtube.com", "youtube-nocookie.com"):
        if parsed.path == "/watch":
            candidate = parse_qs(parsed.query).get("v", [None])[0]
        elif parsed.path.startswith("/embed/"):
            candidate = parsed.path[len("/embed/"):].split("/")[0]

    if candidate and YOUTUBE_ID_PATTERN.match(candidate):
        return candidate
    return None


def css_color(value: Optional[str], default: str) -> str:
    """Return ``value`` if it is a plain CSS colour literal, else ``default``.

    Tailwind gradient classes (``bg-gradient-to-r from-blue-50 ...``) resolve
    to the base tint of their ``from-`` colour.
    """
    if not value:
        return default

    value = value.strip()
    if CSS_COLOR_PATTERN.match(value):
        return value

    match = TAILWIND_FROM_PATTERN.search(value)
    if match and match.group(1) in TAILWIND_TINTS:
        return TAILWIND_TINTS[match.group(1)]

    return default

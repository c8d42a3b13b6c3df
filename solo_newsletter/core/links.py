"""Inline link editing on raw ``[text](url)`` annotated strings.

Editors select text in the rendered view, where link spans already show as
plain clickable words. These helpers map such a selection back to a range in
the raw string so a link can be inserted, edited or removed with a single
substring replacement.

Offsets are Python ``str`` indices, i.e. code points, for detection and
editing alike, so Arabic and other multi-byte text never splits a character.

Without a rendered offset, a selection resolves to the *first* matching
occurrence in the raw text. When the same phrase appears more than once,
pass ``rendered_start`` so the position map picks the occurrence the editor
actually selected.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
LINK_LITERAL_PATTERN = re.compile(r"^\[(.+)\]\((.+)\)$")
BOLD_PATTERN = re.compile(r"\*\*(.*?)\*\*")
BOLD_LITERAL_PATTERN = re.compile(r"^\*\*(.*)\*\*$", re.DOTALL)


@dataclass(frozen=True)
class LinkSpan:
    """A ``[text](url)`` literal located in a raw string."""

    start: int
    end: int
    text: str
    url: str

    @property
    def text_start(self) -> int:
        return self.start + 1

    @property
    def text_end(self) -> int:
        return self.text_start + len(self.text)


@dataclass(frozen=True)
class SelectionInfo:
    """Raw-string range of a selection and the link it refers to, if any."""

    start: int
    end: int
    is_existing_link: bool
    link_text: str
    url: str = ""


def find_links(raw_text: str) -> List[LinkSpan]:
    """Return every link literal in ``raw_text`` in source order."""
    return [
        LinkSpan(match.start(), match.end(), match.group(1), match.group(2))
        for match in LINK_PATTERN.finditer(raw_text or "")
    ]


def _append_unbolded(
    raw_text: str, start: int, end: int, chars: List[str], positions: List[int]
) -> None:
    cursor = start
    for match in BOLD_PATTERN.finditer(raw_text, start, end):
        for index in range(cursor, match.start()):
            chars.append(raw_text[index])
            positions.append(index)
        for index in range(match.start(1), match.end(1)):
            chars.append(raw_text[index])
            positions.append(index)
        cursor = match.end()
    for index in range(cursor, end):
        chars.append(raw_text[index])
        positions.append(index)


def render_plain(raw_text: str) -> Tuple[str, List[int]]:
    """Strip link and bold markup the way the editing view displays it.

    Returns:
        Tuple of (rendered_text, positions) where ``positions[i]`` is the raw
        index of rendered character ``i``.
    """
    raw_text = raw_text or ""
    chars: List[str] = []
    positions: List[int] = []
    cursor = 0

    for link in find_links(raw_text):
        _append_unbolded(raw_text, cursor, link.start, chars, positions)
        for offset, char in enumerate(link.text):
            chars.append(char)
            positions.append(link.text_start + offset)
        cursor = link.end

    _append_unbolded(raw_text, cursor, len(raw_text), chars, positions)
    return "".join(chars), positions


def _resolve_rendered(
    raw_text: str, selected: str, rendered_start: int
) -> Optional[SelectionInfo]:
    rendered, positions = render_plain(raw_text)
    rendered_end = rendered_start + len(selected)
    if rendered_start < 0 or rendered_end > len(rendered):
        return None
    if rendered[rendered_start:rendered_end] != selected:
        return None

    raw_start = positions[rendered_start]
    raw_end = positions[rendered_end - 1] + 1

    links = find_links(raw_text)
    gaps = zip(
        [0] + [link.end for link in links],
        [link.start for link in links] + [len(raw_text)],
    )
    for gap_start, gap_end in gaps:
        for bold in BOLD_PATTERN.finditer(raw_text, gap_start, gap_end):
            inside = bold.start(1) <= raw_start and raw_end <= bold.end(1)
            if raw_start < bold.end() and bold.start() < raw_end and not inside:
                # Never split a ** marker pair
                raw_start = min(raw_start, bold.start())
                raw_end = max(raw_end, bold.end())

    for link in links:
        if link.text_start == raw_start and link.text_end == raw_end:
            return SelectionInfo(link.start, link.end, True, link.text, link.url)
        if raw_start < link.end and link.start < raw_end:
            # Partial overlap with a link literal
            return None

    return SelectionInfo(raw_start, raw_end, False, raw_text[raw_start:raw_end])


def detect_selection(
    raw_text: str, selected_text: str, rendered_start: Optional[int] = None
) -> Optional[SelectionInfo]:
    """Locate a rendered-view selection inside the raw string.

    Matching order: the selection is itself a complete link literal; the
    selection equals the display text of an existing link (the range then
    covers the whole literal); otherwise the first plain occurrence.

    Args:
        raw_text: Stored text with ``[text](url)`` markup
        selected_text: Text the editor selected in the rendered view
        rendered_start: Optional offset of the selection in the rendered text

    Returns:
        SelectionInfo or None when the selection cannot be found
    """
    if not raw_text or not selected_text:
        return None

    selected = selected_text.strip()
    if not selected:
        return None

    if rendered_start is not None:
        leading = len(selected_text) - len(selected_text.lstrip())
        resolved = _resolve_rendered(raw_text, selected, rendered_start + leading)
        if resolved is not None:
            return resolved
        logger.debug("Rendered offset does not match selection, using first match")

    literal = LINK_LITERAL_PATTERN.match(selected)
    if literal:
        start = raw_text.find(selected)
        if start == -1:
            return None
        return SelectionInfo(
            start, start + len(selected), True, literal.group(1), literal.group(2)
        )

    for link in find_links(raw_text):
        if link.text == selected:
            return SelectionInfo(link.start, link.end, True, link.text, link.url)

    start = raw_text.find(selected)
    if start == -1:
        return None
    return SelectionInfo(start, start + len(selected), False, selected)


def _is_current(raw_text: str, selection: SelectionInfo) -> bool:
    if not 0 <= selection.start <= selection.end <= len(raw_text):
        return False
    current = raw_text[selection.start:selection.end]
    if selection.is_existing_link:
        return LINK_LITERAL_PATTERN.match(current) is not None
    return current == selection.link_text


def _normalize_url(url: str) -> str:
    return url.strip().replace(" ", "%20").replace("(", "%28").replace(")", "%29")


def insert_or_edit_link(
    raw_text: str,
    selection: SelectionInfo,
    url: str,
    display_text: Optional[str] = None,
) -> str:
    """Replace the selected range with ``[display_text](url)``.

    The display text defaults to the selected words, then to the URL. A stale
    selection or an empty URL leaves the text unchanged.
    """
    if selection is None or not _is_current(raw_text, selection):
        logger.debug("Selection no longer matches the text, link not inserted")
        return raw_text

    target = _normalize_url(url or "")
    if not target:
        return raw_text

    text = (display_text or "").strip() or selection.link_text or target
    literal = f"[{text}]({target})"
    return raw_text[:selection.start] + literal + raw_text[selection.end:]


def remove_link(raw_text: str, selection: SelectionInfo) -> str:
    """Unwrap an existing link, keeping its visible words."""
    if selection is None or not selection.is_existing_link:
        return raw_text
    if not _is_current(raw_text, selection):
        logger.debug("Selection no longer matches the text, link not removed")
        return raw_text
    return raw_text[:selection.start] + selection.link_text + raw_text[selection.end:]


def toggle_bold(raw_text: str, start: int, end: int) -> str:
    """Wrap ``raw_text[start:end]`` in ``**`` or unwrap it if already bold.

    An empty range inserts a pair of markers at ``start``.
    """
    if not 0 <= start <= end <= len(raw_text):
        return raw_text

    selected = raw_text[start:end]
    if not selected:
        return raw_text[:start] + "****" + raw_text[start:]

    match = BOLD_LITERAL_PATTERN.match(selected.strip())
    if match:
        return raw_text[:start] + match.group(1) + raw_text[end:]
    return raw_text[:start] + f"**{selected}**" + raw_text[end:]

"""Best-effort YouTube thumbnail resolution ahead of rendering."""

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

import aiohttp

from ..core import editor
from ..core.utils import extract_youtube_id
from ..models.document import Document, MediaItemPatch, MediaType

logger = logging.getLogger(__name__)


class YouTubePreviewClient:
    """Finds the best available thumbnail for YouTube media items.

    Rendering never waits on the network. This step runs before it, fills
    ``preview_url`` where a better thumbnail exists, and leaves items alone
    when YouTube cannot be reached.
    """

    THUMBNAIL_URL = "https://img.youtube.com/vi/{video_id}/{name}.jpg"
    CANDIDATES = ("maxresdefault", "hqdefault")

    def __init__(self, settings=None, session: Optional[aiohttp.ClientSession] = None):
        self.timeout = settings.youtube_timeout if settings else 5.0
        self._session = session
        self._cache: Dict[str, str] = {}

    async def _exists(self, session: aiohttp.ClientSession, url: str) -> bool:
        async with session.head(
            url, timeout=aiohttp.ClientTimeout(total=self.timeout)
        ) as response:
            return response.status == 200

    async def _probe(self, session: aiohttp.ClientSession, video_id: str) -> Optional[str]:
        for name in self.CANDIDATES:
            url = self.THUMBNAIL_URL.format(video_id=video_id, name=name)
            if await self._exists(session, url):
                return url
        return None

    async def resolve_thumbnail(self, url: str) -> Optional[str]:
        """Return the largest existing thumbnail for a video URL, or None."""
        video_id = extract_youtube_id(url)
        if video_id is None:
            return None
        if video_id in self._cache:
            return self._cache[video_id]

        try:
            if self._session is not None:
                thumbnail = await self._probe(self._session, video_id)
            else:
                async with aiohttp.ClientSession() as session:
                    thumbnail = await self._probe(session, video_id)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Thumbnail lookup failed for {video_id}: {e}")
            return None

        if thumbnail:
            self._cache[video_id] = thumbnail
        return thumbnail

    async def prepare_previews(self, document: Document) -> Document:
        """Fill ``preview_url`` on YouTube items that do not have one yet."""
        targets: List[Tuple[str, Optional[str], str, str]] = []
        for section in document.sections:
            owners = [(None, section)] + [(sub.id, sub) for sub in section.subsections]
            for subsection_id, block in owners:
                for item in block.media_items:
                    if item.type == MediaType.YOUTUBE and not item.preview_url:
                        targets.append((section.id, subsection_id, item.id, item.url))

        if not targets:
            return document

        thumbnails = await asyncio.gather(
            *(self.resolve_thumbnail(url) for _, _, _, url in targets)
        )

        for (section_id, subsection_id, item_id, _), thumbnail in zip(targets, thumbnails):
            if thumbnail:
                document = editor.update_media_item(
                    document,
                    section_id,
                    item_id,
                    MediaItemPatch(preview_url=thumbnail),
                    subsection_id=subsection_id,
                )

        logger.info(f"Resolved {sum(1 for t in thumbnails if t)}/{len(targets)} YouTube previews")
        return document

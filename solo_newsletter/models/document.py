"""Newsletter document models and their JSON wire codec.

A document is a header (main title, subtitle, display date) followed by an
ordered list of sections. Sections own subsections, media items and lists;
subsections own media items and lists. Order is always the display order.

The persisted wire shape is the JSON array of sections with camelCase keys.
Older newsletters stored a single HTML string instead; those decode to one
synthetic section so they still render.
"""

import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, FrozenSet, Iterator, List, Optional, Type, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

LEGACY_SECTION_ID = "legacy"

E = TypeVar("E", bound=Enum)


class MediaType(str, Enum):
    """Kind of embedded media."""

    IMAGE = "image"
    VIDEO = "video"
    YOUTUBE = "youtube"
    LINK = "link"


class MediaSize(str, Enum):
    """Display width bucket of a media item."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    FULL = "full"


class Alignment(str, Enum):
    """Horizontal placement of a media item."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class ListType(str, Enum):
    """Bullet or numbered list."""

    BULLET = "bullet"
    NUMBERED = "numbered"


class FontSize(str, Enum):
    """Fixed text size scale shared by titles, content and list items."""

    XS = "text-xs"
    SM = "text-sm"
    BASE = "text-base"
    LG = "text-lg"
    XL = "text-xl"
    XXL = "text-2xl"
    XXXL = "text-3xl"
    XXXXL = "text-4xl"

    @property
    def px(self) -> int:
        return _FONT_PIXELS[self]


_FONT_PIXELS = {
    FontSize.XS: 12,
    FontSize.SM: 14,
    FontSize.BASE: 16,
    FontSize.LG: 18,
    FontSize.XL: 20,
    FontSize.XXL: 24,
    FontSize.XXXL: 30,
    FontSize.XXXXL: 36,
}

DEFAULT_TITLE_FONT_SIZE = FontSize.LG
DEFAULT_CONTENT_FONT_SIZE = FontSize.BASE


class NewsletterStatus(str, Enum):
    """Lifecycle status of a persisted newsletter."""

    DRAFT = "draft"
    SENT = "sent"


def coerce_enum(enum_cls: Type[E], value: Any, default: Optional[E]) -> Optional[E]:
    """Return ``value`` as a member of ``enum_cls`` or ``default`` if unknown."""
    if value is None:
        return default
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        logger.debug(f"Unknown {enum_cls.__name__} value {value!r}, using {default}")
        return default


class DocumentModel(BaseModel):
    """Base for all document entities: immutable, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # Stored documents carry explicit nulls for absent optional fields.
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class MediaItem(DocumentModel):
    """An image, video, YouTube video or link attached to a section."""

    id: str = Field(..., description="Unique identifier")
    type: MediaType = Field(MediaType.LINK, description="Kind of media")
    url: str = Field("", description="Media or link target")
    title: Optional[str] = Field(None, description="Link label")
    description: Optional[str] = Field(None, description="Alt text")
    size: MediaSize = Field(MediaSize.MEDIUM, description="Width bucket")
    alignment: Alignment = Field(Alignment.CENTER, description="Placement")
    preview_url: Optional[str] = Field(None, description="YouTube preview image")
    text_content: Optional[str] = Field(None, description="Text below the media")
    text_font_size: Optional[FontSize] = Field(None, description="Text size")

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, value: Any) -> MediaType:
        return coerce_enum(MediaType, value, MediaType.LINK)

    @field_validator("size", mode="before")
    @classmethod
    def coerce_size(cls, value: Any) -> MediaSize:
        return coerce_enum(MediaSize, value, MediaSize.MEDIUM)

    @field_validator("alignment", mode="before")
    @classmethod
    def coerce_alignment(cls, value: Any) -> Alignment:
        return coerce_enum(Alignment, value, Alignment.CENTER)

    @field_validator("text_font_size", mode="before")
    @classmethod
    def coerce_text_font_size(cls, value: Any) -> Optional[FontSize]:
        return coerce_enum(FontSize, value, None)


class ListItem(DocumentModel):
    """One entry of a list; its number is derived from its position."""

    id: str = Field(..., description="Unique identifier")
    text: str = Field("", description="Item text, may contain link spans")
    color: str = Field("#4F46E5", description="Bullet or number colour")
    font_size: Optional[FontSize] = Field(None, description="Per-item size")

    @field_validator("font_size", mode="before")
    @classmethod
    def coerce_font_size(cls, value: Any) -> Optional[FontSize]:
        return coerce_enum(FontSize, value, None)


class ListData(DocumentModel):
    """A bullet or numbered list."""

    id: str = Field(..., description="Unique identifier")
    type: ListType = Field(ListType.BULLET, description="List style")
    items: List[ListItem] = Field(default_factory=list, description="Entries")

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, value: Any) -> ListType:
        return coerce_enum(ListType, value, ListType.BULLET)


class ContentBlock(DocumentModel):
    """Fields shared by sections and subsections."""

    id: str = Field(..., description="Unique identifier")
    title: str = Field("", description="Block title")
    content: str = Field("", description="Body text, may contain link spans")
    title_font_size: FontSize = Field(DEFAULT_TITLE_FONT_SIZE)
    content_font_size: FontSize = Field(DEFAULT_CONTENT_FONT_SIZE)
    title_color: Optional[str] = Field(None, description="Title colour")
    media_items: List[MediaItem] = Field(default_factory=list)
    lists: List[ListData] = Field(default_factory=list)
    after_list_content: str = Field("", description="Text after the lists")
    after_list_content_font_size: Optional[FontSize] = Field(None)

    @field_validator("title_font_size", mode="before")
    @classmethod
    def coerce_title_font_size(cls, value: Any) -> FontSize:
        return coerce_enum(FontSize, value, DEFAULT_TITLE_FONT_SIZE)

    @field_validator("content_font_size", mode="before")
    @classmethod
    def coerce_content_font_size(cls, value: Any) -> FontSize:
        return coerce_enum(FontSize, value, DEFAULT_CONTENT_FONT_SIZE)

    @field_validator("after_list_content_font_size", mode="before")
    @classmethod
    def coerce_after_list_font_size(cls, value: Any) -> Optional[FontSize]:
        return coerce_enum(FontSize, value, None)

    def iter_ids(self) -> Iterator[str]:
        yield self.id
        for item in self.media_items:
            yield item.id
        for list_data in self.lists:
            yield list_data.id
            for entry in list_data.items:
                yield entry.id


class Subsection(ContentBlock):
    """A titled block nested one level under a section."""


class Section(ContentBlock):
    """A top-level titled block of the newsletter."""

    background_color: str = Field("", description="Decorative background")
    side_line_color: str = Field("#4F46E5", description="Decorative side line")
    content_color: Optional[str] = Field(None, description="Body text colour")
    subsections: List[Subsection] = Field(default_factory=list)

    def iter_ids(self) -> Iterator[str]:
        yield from super().iter_ids()
        for subsection in self.subsections:
            yield from subsection.iter_ids()


class Document(DocumentModel):
    """The full newsletter content tree."""

    main_title: str = Field("", description="Banner title")
    sub_title: str = Field("", description="Banner subtitle")
    date: str = Field("", description="Display date, not parsed")
    sections: List[Section] = Field(default_factory=list)

    def iter_ids(self) -> Iterator[str]:
        for section in self.sections:
            yield from section.iter_ids()

    def has_id(self, entity_id: str) -> bool:
        return any(existing == entity_id for existing in self.iter_ids())


class FieldPatch(BaseModel):
    """Named optional fields; only the fields explicitly set are applied."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )

    # Fields that may be explicitly set to None to clear them.
    clearable: ClassVar[FrozenSet[str]] = frozenset()

    def changes(self) -> dict:
        updates = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if value is None and name not in self.clearable:
                continue
            updates[name] = value
        return updates

    def apply(self, target: DocumentModel) -> DocumentModel:
        return target.model_copy(update=self.changes())


class _BlockPatch(FieldPatch):
    title: Optional[str] = None
    content: Optional[str] = None
    title_font_size: Optional[FontSize] = None
    content_font_size: Optional[FontSize] = None
    title_color: Optional[str] = None
    after_list_content: Optional[str] = None
    after_list_content_font_size: Optional[FontSize] = None

    clearable: ClassVar[FrozenSet[str]] = frozenset(
        {"title_color", "after_list_content_font_size"}
    )

    @field_validator("title_font_size", mode="before")
    @classmethod
    def coerce_title_font_size(cls, value: Any) -> Optional[FontSize]:
        return (
            None
            if value is None
            else coerce_enum(FontSize, value, DEFAULT_TITLE_FONT_SIZE)
        )

    @field_validator("content_font_size", mode="before")
    @classmethod
    def coerce_content_font_size(cls, value: Any) -> Optional[FontSize]:
        return (
            None
            if value is None
            else coerce_enum(FontSize, value, DEFAULT_CONTENT_FONT_SIZE)
        )

    @field_validator("after_list_content_font_size", mode="before")
    @classmethod
    def coerce_after_list_font_size(cls, value: Any) -> Optional[FontSize]:
        return coerce_enum(FontSize, value, None)


class SubsectionPatch(_BlockPatch):
    """Field update for a subsection."""


class SectionPatch(_BlockPatch):
    """Field update for a section."""

    background_color: Optional[str] = None
    side_line_color: Optional[str] = None
    content_color: Optional[str] = None

    clearable: ClassVar[FrozenSet[str]] = _BlockPatch.clearable | {"content_color"}


class MediaItemPatch(FieldPatch):
    """Field update for a media item."""

    url: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    size: Optional[MediaSize] = None
    alignment: Optional[Alignment] = None
    preview_url: Optional[str] = None
    text_content: Optional[str] = None
    text_font_size: Optional[FontSize] = None

    clearable: ClassVar[FrozenSet[str]] = frozenset(
        {"title", "description", "preview_url", "text_content", "text_font_size"}
    )

    @field_validator("size", mode="before")
    @classmethod
    def coerce_size(cls, value: Any) -> Optional[MediaSize]:
        if value is None:
            return None
        return coerce_enum(MediaSize, value, MediaSize.MEDIUM)

    @field_validator("alignment", mode="before")
    @classmethod
    def coerce_alignment(cls, value: Any) -> Optional[Alignment]:
        if value is None:
            return None
        return coerce_enum(Alignment, value, Alignment.CENTER)

    @field_validator("text_font_size", mode="before")
    @classmethod
    def coerce_text_font_size(cls, value: Any) -> Optional[FontSize]:
        return coerce_enum(FontSize, value, None)


class ListItemPatch(FieldPatch):
    """Field update for a list item."""

    text: Optional[str] = None
    color: Optional[str] = None
    font_size: Optional[FontSize] = None

    clearable: ClassVar[FrozenSet[str]] = frozenset({"font_size"})

    @field_validator("font_size", mode="before")
    @classmethod
    def coerce_font_size(cls, value: Any) -> Optional[FontSize]:
        return coerce_enum(FontSize, value, None)


def encode_sections(sections: List[Section]) -> str:
    """Serialize sections to the persisted JSON array."""
    payload = [
        section.model_dump(mode="json", by_alias=True, exclude_none=True)
        for section in sections
    ]
    return json.dumps(payload, ensure_ascii=False)


def legacy_section(content: str) -> Section:
    """Wrap pre-structured newsletter content in one synthetic section."""
    return Section(id=LEGACY_SECTION_ID, content=content)


def decode_sections(content: Optional[str]) -> List[Section]:
    """Parse persisted content, falling back to a legacy section.

    Accepts the JSON array of sections or a JSON object with a ``sections``
    key. Anything else is legacy content and is kept verbatim in one section
    so the renderer escapes it.
    """
    if not content or not content.strip():
        return []

    try:
        payload = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        logger.debug("Content is not JSON, treating as legacy HTML")
        return [legacy_section(content)]

    if isinstance(payload, dict):
        payload = payload.get("sections")
    if not isinstance(payload, list):
        logger.debug("Content JSON is not a section array, treating as legacy")
        return [legacy_section(content)]

    try:
        return [Section.model_validate(item) for item in payload]
    except ValidationError as e:
        logger.warning(f"Malformed section data, rendering as legacy content: {e}")
        return [legacy_section(content)]


class NewsletterRecord(BaseModel):
    """A persisted newsletter: metadata plus the encoded document content."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Newsletter identifier")
    subject: str = Field("", description="Email subject and banner title")
    sub_title: str = Field("", description="Banner subtitle")
    date: str = Field("", description="Header date as shown in the banner")
    content: str = Field("", description="Encoded sections or legacy HTML")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation time",
    )
    sent_at: Optional[datetime] = Field(None, description="Dispatch time")
    status: NewsletterStatus = Field(NewsletterStatus.DRAFT)
    recipients_count: int = Field(0, ge=0, description="Delivered recipients")

    def to_document(self) -> Document:
        return Document(
            main_title=self.subject,
            sub_title=self.sub_title,
            date=self.date or self.created_at.strftime("%Y-%m-%d"),
            sections=decode_sections(self.content),
        )

    def with_document(self, document: Document) -> "NewsletterRecord":
        return self.model_copy(
            update={
                "subject": document.main_title,
                "sub_title": document.sub_title,
                "date": document.date,
                "content": encode_sections(document.sections),
            }
        )

    def mark_sent(
        self, recipients_count: int, when: Optional[datetime] = None
    ) -> "NewsletterRecord":
        return self.model_copy(
            update={
                "status": NewsletterStatus.SENT,
                "sent_at": when or datetime.now(timezone.utc),
                "recipients_count": recipients_count,
            }
        )

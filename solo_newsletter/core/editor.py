"""Pure editing operations on newsletter documents.

Every function takes a Document and returns a Document. Nothing is mutated
in place: untouched sections, subsections, media items and lists are shared
between the old and new value, so an edit only copies the path from the root
to the entity that changed.

Unknown ids are no-ops. Edits made against a stale copy of a document return
it unchanged instead of raising.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar, Union

from ..models.document import (
    DEFAULT_CONTENT_FONT_SIZE,
    DEFAULT_TITLE_FONT_SIZE,
    Alignment,
    ContentBlock,
    Document,
    ListData,
    ListItem,
    ListItemPatch,
    ListType,
    MediaItem,
    MediaItemPatch,
    MediaSize,
    MediaType,
    Section,
    SectionPatch,
    Subsection,
    SubsectionPatch,
    coerce_enum,
)
from .utils import generate_id

logger = logging.getLogger(__name__)

T = TypeVar("T")
B = TypeVar("B", bound=ContentBlock)


class Direction(str, Enum):
    """Move direction for reordering sections and subsections."""

    UP = "up"
    DOWN = "down"


# Factories


def new_section(**fields) -> Section:
    """Create a section with the editor's default placeholder content."""
    values = {
        "id": generate_id(),
        "title": "قسم جديد",
        "content": "محتوى القسم الجديد",
        "background_color": "bg-gradient-to-r from-cyan-50 to-blue-50",
        "side_line_color": "#06B6D4",
        "title_font_size": DEFAULT_TITLE_FONT_SIZE,
        "content_font_size": DEFAULT_CONTENT_FONT_SIZE,
    }
    values.update(fields)
    return Section(**values)


def new_subsection(**fields) -> Subsection:
    values = {
        "id": generate_id(),
        "title": "عنوان فرعي جديد",
        "content": "محتوى القسم الفرعي",
        "title_font_size": DEFAULT_TITLE_FONT_SIZE,
        "content_font_size": DEFAULT_CONTENT_FONT_SIZE,
    }
    values.update(fields)
    return Subsection(**values)


def new_list_item(text: str = "عنصر جديد", **fields) -> ListItem:
    return ListItem(id=generate_id(), text=text, **fields)


def new_list(list_type: Union[ListType, str] = ListType.BULLET) -> ListData:
    """Create a list holding one placeholder item."""
    return ListData(
        id=generate_id(),
        type=coerce_enum(ListType, list_type, ListType.BULLET),
        items=[new_list_item("عنصر القائمة الأول")],
    )


def new_media_item(media_type: Union[MediaType, str], url: str, **fields) -> MediaItem:
    """Create a media item, medium sized and centred unless told otherwise."""
    values = {
        "id": generate_id(),
        "type": media_type,
        "url": url,
        "size": MediaSize.MEDIUM,
        "alignment": Alignment.CENTER,
    }
    values.update(fields)
    return MediaItem(**values)


# Sequence helpers


def _replace(
    items: Sequence[T], entity_id: str, transform: Callable[[T], T]
) -> Tuple[List[T], bool]:
    result = []
    changed = False
    for item in items:
        if getattr(item, "id", None) == entity_id:
            updated = transform(item)
            changed = changed or updated is not item
            result.append(updated)
        else:
            result.append(item)
    return result, changed


def _remove(items: Sequence[T], entity_id: str) -> Tuple[List[T], bool]:
    result = [item for item in items if getattr(item, "id", None) != entity_id]
    return result, len(result) != len(items)


def _swap(items: Sequence[T], index: int, direction: Union[Direction, str]) -> Optional[List[T]]:
    try:
        step = -1 if Direction(direction) == Direction.UP else 1
    except ValueError:
        logger.debug(f"Unknown move direction {direction!r}")
        return None

    target = index + step
    if not 0 <= index < len(items) or not 0 <= target < len(items):
        return None

    result = list(items)
    result[index], result[target] = result[target], result[index]
    return result


def _is_duplicate(document: Document, entity) -> bool:
    """True when any id carried by ``entity`` already exists in ``document``."""
    if hasattr(entity, "iter_ids"):
        new_ids = list(entity.iter_ids())
    elif isinstance(entity, ListData):
        new_ids = [entity.id] + [item.id for item in entity.items]
    else:
        new_ids = [entity.id]

    existing = set(document.iter_ids())
    if existing.intersection(new_ids) or len(set(new_ids)) != len(new_ids):
        logger.debug(f"Refusing to add {type(entity).__name__} with duplicate id")
        return True
    return False


def _update_block(
    document: Document,
    section_id: str,
    subsection_id: Optional[str],
    transform: Callable[[ContentBlock], ContentBlock],
) -> Document:
    """Apply ``transform`` to a section, or to one of its subsections."""

    def on_section(section: Section) -> Section:
        if subsection_id is None:
            return transform(section)
        subsections, changed = _replace(section.subsections, subsection_id, transform)
        if not changed:
            return section
        return section.model_copy(update={"subsections": subsections})

    sections, changed = _replace(document.sections, section_id, on_section)
    if not changed:
        return document
    return document.model_copy(update={"sections": sections})


def _update_list(
    document: Document,
    section_id: str,
    list_id: str,
    subsection_id: Optional[str],
    transform: Callable[[ListData], ListData],
) -> Document:
    def on_block(block: B) -> B:
        lists, changed = _replace(block.lists, list_id, transform)
        if not changed:
            return block
        return block.model_copy(update={"lists": lists})

    return _update_block(document, section_id, subsection_id, on_block)


# Sections


def add_section(document: Document, section: Optional[Section] = None) -> Document:
    """Append a section, a new placeholder section by default."""
    section = section or new_section()
    if _is_duplicate(document, section):
        return document
    return document.model_copy(update={"sections": [*document.sections, section]})


def update_section(document: Document, section_id: str, patch: SectionPatch) -> Document:
    return _update_block(document, section_id, None, patch.apply)


def delete_section(document: Document, section_id: str) -> Document:
    """Remove a section together with everything it owns."""
    sections, changed = _remove(document.sections, section_id)
    if not changed:
        return document
    return document.model_copy(update={"sections": sections})


def move_section(
    document: Document, index: int, direction: Union[Direction, str]
) -> Document:
    """Swap the section at ``index`` with its neighbour; no-op at the ends."""
    sections = _swap(document.sections, index, direction)
    if sections is None:
        return document
    return document.model_copy(update={"sections": sections})


# Subsections


def add_subsection(
    document: Document, section_id: str, subsection: Optional[Subsection] = None
) -> Document:
    subsection = subsection or new_subsection()
    if _is_duplicate(document, subsection):
        return document

    def append(section: Section) -> Section:
        return section.model_copy(
            update={"subsections": [*section.subsections, subsection]}
        )

    return _update_block(document, section_id, None, append)


def update_subsection(
    document: Document, section_id: str, subsection_id: str, patch: SubsectionPatch
) -> Document:
    return _update_block(document, section_id, subsection_id, patch.apply)


def delete_subsection(document: Document, section_id: str, subsection_id: str) -> Document:
    def remove(section: Section) -> Section:
        subsections, changed = _remove(section.subsections, subsection_id)
        if not changed:
            return section
        return section.model_copy(update={"subsections": subsections})

    return _update_block(document, section_id, None, remove)


def move_subsection(
    document: Document, section_id: str, index: int, direction: Union[Direction, str]
) -> Document:
    def move(section: Section) -> Section:
        subsections = _swap(section.subsections, index, direction)
        if subsections is None:
            return section
        return section.model_copy(update={"subsections": subsections})

    return _update_block(document, section_id, None, move)


# Media


def add_media_item(
    document: Document,
    section_id: str,
    media_item: MediaItem,
    subsection_id: Optional[str] = None,
) -> Document:
    if _is_duplicate(document, media_item):
        return document

    def append(block: B) -> B:
        return block.model_copy(update={"media_items": [*block.media_items, media_item]})

    return _update_block(document, section_id, subsection_id, append)


def update_media_item(
    document: Document,
    section_id: str,
    item_id: str,
    patch: MediaItemPatch,
    subsection_id: Optional[str] = None,
) -> Document:
    """Merge ``patch`` into a media item.

    Link items always render as a pill, so size changes on them are ignored.
    """

    def apply(item: MediaItem) -> MediaItem:
        changes = patch.changes()
        if item.type == MediaType.LINK:
            changes.pop("size", None)
        if not changes:
            return item
        return item.model_copy(update=changes)

    def on_block(block: B) -> B:
        media_items, changed = _replace(block.media_items, item_id, apply)
        if not changed:
            return block
        return block.model_copy(update={"media_items": media_items})

    return _update_block(document, section_id, subsection_id, on_block)


def remove_media_item(
    document: Document,
    section_id: str,
    item_id: str,
    subsection_id: Optional[str] = None,
) -> Document:
    """Remove a media item, keeping any text attached below it.

    Non-empty ``text_content`` is appended to the owner's content, separated
    by a blank line when the content is not empty.
    """

    def remove(block: B) -> B:
        removed = next((item for item in block.media_items if item.id == item_id), None)
        if removed is None:
            return block

        update = {
            "media_items": [item for item in block.media_items if item.id != item_id]
        }
        if removed.text_content:
            if block.content:
                update["content"] = f"{block.content}\n\n{removed.text_content}"
            else:
                update["content"] = removed.text_content
        return block.model_copy(update=update)

    return _update_block(document, section_id, subsection_id, remove)


# Lists


def add_list(
    document: Document,
    section_id: str,
    list_data: Optional[ListData] = None,
    subsection_id: Optional[str] = None,
) -> Document:
    list_data = list_data or new_list()
    if _is_duplicate(document, list_data):
        return document

    def append(block: B) -> B:
        return block.model_copy(update={"lists": [*block.lists, list_data]})

    return _update_block(document, section_id, subsection_id, append)


def update_list_type(
    document: Document,
    section_id: str,
    list_id: str,
    list_type: Union[ListType, str],
    subsection_id: Optional[str] = None,
) -> Document:
    new_type = coerce_enum(ListType, list_type, ListType.BULLET)

    def retype(list_data: ListData) -> ListData:
        if list_data.type == new_type:
            return list_data
        return list_data.model_copy(update={"type": new_type})

    return _update_list(document, section_id, list_id, subsection_id, retype)


def delete_list(
    document: Document,
    section_id: str,
    list_id: str,
    subsection_id: Optional[str] = None,
) -> Document:
    def remove(block: B) -> B:
        lists, changed = _remove(block.lists, list_id)
        if not changed:
            return block
        return block.model_copy(update={"lists": lists})

    return _update_block(document, section_id, subsection_id, remove)


def add_list_item(
    document: Document,
    section_id: str,
    list_id: str,
    item: Optional[ListItem] = None,
    subsection_id: Optional[str] = None,
) -> Document:
    item = item or new_list_item()
    if _is_duplicate(document, item):
        return document

    def append(list_data: ListData) -> ListData:
        return list_data.model_copy(update={"items": [*list_data.items, item]})

    return _update_list(document, section_id, list_id, subsection_id, append)


def update_list_item(
    document: Document,
    section_id: str,
    list_id: str,
    item_id: str,
    patch: ListItemPatch,
    subsection_id: Optional[str] = None,
) -> Document:
    def on_list(list_data: ListData) -> ListData:
        items, changed = _replace(list_data.items, item_id, patch.apply)
        if not changed:
            return list_data
        return list_data.model_copy(update={"items": items})

    return _update_list(document, section_id, list_id, subsection_id, on_list)


def delete_list_item(
    document: Document,
    section_id: str,
    list_id: str,
    item_id: str,
    subsection_id: Optional[str] = None,
) -> Document:
    def remove(list_data: ListData) -> ListData:
        items, changed = _remove(list_data.items, item_id)
        if not changed:
            return list_data
        return list_data.model_copy(update={"items": items})

    return _update_list(document, section_id, list_id, subsection_id, remove)

"""Mapping of collected Zotero annotations to Readwise highlights.

This module contains the pure transform from a CollectedAnnotation plus its
parent item metadata to a MappedHighlight, and a HighlightMapper that resolves
parent items through an AnnotationSource with a thread-safe cache so it can be
used from a worker pool.
"""

import logging
import threading

from ..clients.annotation_source import AnnotationSource
from ..clients.exceptions import (
    MappingError,
    ZoteroClientError,
    ZoteroItemNotFoundError,
)
from .config import READWISE_TEXT_LIMIT
from .models import (
    CollectedAnnotation,
    DocumentMetadata,
    MappedHighlight,
    format_timestamp,
)

logger = logging.getLogger(__name__)

UNTITLED_TITLE = "Untitled Work"
UNKNOWN_AUTHOR = "Unknown Author"
TRUNCATION_MARKER = "..."
DEFAULT_CATEGORY = "articles"

ITEM_TYPE_CATEGORIES = {
    "book": "books",
    "bookSection": "books",
    "journalArticle": "articles",
    "conferencePaper": "articles",
    "thesis": "articles",
    "report": "articles",
    "webpage": "articles",
    "blogPost": "articles",
    "magazineArticle": "articles",
    "newspaperArticle": "articles",
    "audioRecording": "podcasts",
    "podcast": "podcasts",
    "radioBroadcast": "podcasts",
    "videoRecording": "videos",
    "film": "videos",
    "tvBroadcast": "videos",
    "email": "emails",
    "tweet": "tweets",
}


def truncate_text(
    text: str | None, annotation_key: str, max_length: int = READWISE_TEXT_LIMIT
) -> str | None:
    """Truncate text longer than ``max_length`` to ``max_length`` characters.

    The first ``max_length - 3`` characters are kept and '...' is appended.
    Empty input yields None.
    """
    if not text:
        return None
    if len(text) > max_length:
        logger.warning(
            f"Annotation text for key {annotation_key} exceeds {max_length} "
            f"characters and will be truncated"
        )
        return text[: max_length - len(TRUNCATION_MARKER)] + TRUNCATION_MARKER
    return text


def format_authors(document: DocumentMetadata) -> str:
    """Comma-join creator display names, or return the unknown-author placeholder."""
    names = [c.display_name for c in document.creators if c.display_name]
    if not names:
        return UNKNOWN_AUTHOR
    return ", ".join(names)


def item_source_url(item_key: str) -> str:
    return f"zotero://select/library/items/{item_key}"


def annotation_highlight_url(
    attachment_key: str, page: int, annotation_key: str
) -> str:
    return (
        f"zotero://open-pdf/library/items/{attachment_key}"
        f"?page={page}&annotation={annotation_key}"
    )


def category_for(item_type: str) -> str:
    return ITEM_TYPE_CATEGORIES.get(item_type, DEFAULT_CATEGORY)


def map_annotation(
    annotation: CollectedAnnotation,
    document: DocumentMetadata,
    max_text_length: int = READWISE_TEXT_LIMIT,
    color_tags: bool = False,
) -> MappedHighlight:
    """Transform one annotation into the Readwise highlight format.

    Note annotations carry no highlighted text; their comment becomes the
    highlight text and no separate note is sent.

    Args:
        annotation: Annotation collected from Zotero.
        document: Metadata of the annotation's parent item.
        max_text_length: Maximum length of text and note.
        color_tags: Whether to append the annotation color as 'color:<hex>'.

    Returns:
        The mapped highlight.

    Raises:
        MappingError: If the annotation has neither text nor comment.
    """
    text = truncate_text(annotation.text, annotation.key, max_text_length)
    note = truncate_text(annotation.comment, annotation.key, max_text_length)
    if text is None and annotation.type == "note":
        text, note = note, None
    if text is None:
        raise MappingError(
            "Annotation has no text or comment to send", annotation.key
        )

    tags = list(annotation.tags)
    if color_tags and annotation.color:
        color_tag = f"color:{annotation.color.lower()}"
        if color_tag not in tags:
            tags.append(color_tag)

    highlight = MappedHighlight(
        text=text,
        title=document.title or UNTITLED_TITLE,
        source_url=item_source_url(annotation.item_key),
        annotation_key=annotation.key,
        note=note,
        author=format_authors(document),
        category=category_for(document.item_type),
        highlighted_at=format_timestamp(annotation.created_at),
        tags=tags,
    )

    if annotation.page:
        highlight.location_type = "page"
        highlight.location = annotation.page_label or str(annotation.page)
        if annotation.attachment_key:
            highlight.highlight_url = annotation_highlight_url(
                annotation.attachment_key, annotation.page, annotation.key
            )

    return highlight


class HighlightMapper:
    """Maps annotations, resolving parent item metadata through a source.

    Parent items are cached per mapper, so annotations of the same document
    trigger one lookup. The cache is guarded by a lock because ``map`` is
    called from worker threads.

    Example:
        >>> mapper = HighlightMapper(zotero_client)
        >>> highlight = mapper.map(annotation)
    """

    def __init__(
        self,
        source: AnnotationSource,
        max_text_length: int = READWISE_TEXT_LIMIT,
        color_tags: bool = False,
    ) -> None:
        self.source = source
        self.max_text_length = max_text_length
        self.color_tags = color_tags
        self._documents: dict[str, DocumentMetadata] = {}
        self._lock = threading.Lock()

    def _resolve_document(self, annotation: CollectedAnnotation) -> DocumentMetadata:
        with self._lock:
            cached = self._documents.get(annotation.item_key)
        if cached is not None:
            return cached

        try:
            document = self.source.get_document(annotation.item_key)
        except ZoteroItemNotFoundError as e:
            raise MappingError(
                f"Parent item with key {annotation.item_key} not found",
                annotation.key,
                e,
            ) from e
        except ZoteroClientError as e:
            raise MappingError(
                f"Failed to resolve parent item {annotation.item_key}",
                annotation.key,
                e,
            ) from e

        if document is None:
            raise MappingError(
                f"Parent item with key {annotation.item_key} not found",
                annotation.key,
            )

        with self._lock:
            self._documents.setdefault(annotation.item_key, document)
        return document

    def map(self, annotation: CollectedAnnotation) -> MappedHighlight:
        """Map one annotation.

        Raises:
            MappingError: If the parent item cannot be resolved or the
                annotation has nothing to send.
        """
        document = self._resolve_document(annotation)
        return map_annotation(
            annotation,
            document,
            max_text_length=self.max_text_length,
            color_tags=self.color_tags,
        )

    def clear_cache(self) -> None:
        """Forget cached parent items, e.g. between runs."""
        with self._lock:
            self._documents.clear()

"""
Block conversion engine.

Converts the legacy EditorJS-style block list of one (page, locale) into a
Payload Lexical editor state. Each block type has its own rule; references
to media, forms, videos, treatments and meditations are resolved through the
maps carried by the :class:`ConversionContext`.

A block whose conversion raises aborts the whole conversion with a
:class:`BlockConversionError`, so a page is never written half-converted.
Unresolvable references and unknown block types are only logged.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from converters.inline_html import clean_text, sanitize_link
from converters.lexical_nodes import (
    block_node,
    heading_node,
    heading_tag,
    paragraph_node,
    relationship_node,
    rich_text,
    stable_id,
)
from converters.source_blocks import (
    ActionBlock,
    CatalogBlock,
    HeaderBlock,
    LayoutBlock,
    MediaBlock,
    ParagraphBlock,
    QuoteBlock,
    SkippedBlock,
    TextboxBlock,
    UnknownBlock,
    VideoBlock,
    block_type_name,
    content_blocks,
    image_id,
    image_preview,
    media_file_url,
    parse_block,
)
from exceptions import BlockConversionError
from importers.id_mapping_registry import resolve_by_natural_key
from models import ConversionContext

logger = logging.getLogger('wemeditate_migrator.converters.block_converter')

LAYOUT_STYLES = ('columns', 'accordion', 'grid')
DEFAULT_LAYOUT_STYLE = 'columns'

CATALOG_RELATIONS = {
    'treatments': 'pages',
    'meditations': 'meditations',
}

Node = Dict[str, Any]


def textbox_style(kind: Optional[str], background: Optional[str], color: Optional[str],
                  position: Optional[str]) -> str:
    """
    Pick the TextBox block style.

    ============  ==========  ======  ========  ============
    type          background  color   position  style
    ============  ==========  ======  ========  ============
    image         image       dark    any       overlayDark
    image         image       other   any       overlay
    image         other       any     right     rightAligned
    image         other       any     other     leftAligned
    other         any         any     any       splash
    ============  ==========  ======  ========  ============
    """
    if kind == 'image':
        if background == 'image':
            return 'overlayDark' if color == 'dark' else 'overlay'
        return 'rightAligned' if position == 'right' else 'leftAligned'
    return 'splash'


def _put_text(fields: Dict[str, Any], key: str, value: Any) -> None:
    """Set ``key`` only when the tag-free trimmed value is non-empty."""
    text = clean_text(value)
    if text:
        fields[key] = text


class BlockConverter:
    """Converts one content payload at a time."""

    def __init__(self, context: ConversionContext, logger: Optional[logging.Logger] = None):
        """
        Initialize converter.

        Args:
            context: Locale, labels and id maps for this conversion
            logger: Optional logger instance
        """
        self.context = context
        self.logger = logger or logging.getLogger('wemeditate_migrator.converters.block_converter')
        self.warnings: List[str] = []
        self._index = 0

        self._handlers: Dict[type, Callable[[Any], Optional[Node]]] = {
            ParagraphBlock: self._convert_paragraph,
            TextboxBlock: self._convert_textbox,
            LayoutBlock: self._convert_layout,
            MediaBlock: self._convert_media,
            ActionBlock: self._convert_action,
            VideoBlock: self._convert_video,
            CatalogBlock: self._convert_catalog,
            QuoteBlock: self._convert_quote,
            HeaderBlock: self._convert_header,
            SkippedBlock: self._skip,
            UnknownBlock: self._convert_unknown,
        }

    def convert(self, content: Any) -> Dict[str, Any]:
        """
        Convert a stored content payload into a Lexical editor state.

        Args:
            content: Decoded content JSON (``{"blocks": [...]}``) or None

        Returns:
            Editor state whose root always has at least one child

        Raises:
            BlockConversionError: If any single block fails to convert
        """
        try:
            blocks = content_blocks(content)
        except ValueError as e:
            raise BlockConversionError('content', -1, self.context.page_label, e) from e
        if not blocks:
            return rich_text([])

        children: List[Node] = []
        for index, raw in enumerate(blocks):
            self._index = index
            try:
                block = parse_block(raw)
                node = self._handlers[type(block)](block)
            except Exception as e:
                raise BlockConversionError(
                    block_type_name(raw), index, self.context.page_label, e
                ) from e

            if node is not None:
                children.append(node)

        return rich_text(children)

    def _warn(self, message: str) -> None:
        message = f"{message} (block {self._index} of {self.context.page_label}, {self.context.locale})"
        self.warnings.append(message)
        self.logger.warning(message)

    def _block_id(self, *parts: Any) -> str:
        return stable_id(self.context.page_label, self.context.locale, self._index, *parts)

    def _lookup_media(self, url: Optional[str]) -> Optional[str]:
        if not url:
            return None
        return self.context.media_map.get(url)

    def _lookup_item_image(self, item: Dict[str, Any]) -> Optional[str]:
        media_id = self._lookup_media(image_preview(item))
        if media_id is None:
            media_id = self._lookup_media(image_id(item))
        return media_id

    def _convert_paragraph(self, block: ParagraphBlock) -> Node:
        if block.header:
            return heading_node(block.text, heading_tag(block.level))
        return paragraph_node(block.text)

    def _convert_header(self, block: HeaderBlock) -> Optional[Node]:
        if not clean_text(block.text):
            self.logger.debug(f"Dropping empty header block {self._index} of {self.context.page_label}")
            return None
        return heading_node(block.text, heading_tag(block.level))

    def _quote(self, text: str, credit: str, subtitle: str) -> Optional[Node]:
        fields: Dict[str, Any] = {}
        _put_text(fields, 'text', text)
        if 'text' not in fields:
            return None
        _put_text(fields, 'author', credit)
        _put_text(fields, 'subtitle', subtitle)
        return block_node('quote', 'Quote', fields, self._block_id())

    def _convert_quote(self, block: QuoteBlock) -> Optional[Node]:
        node = self._quote(block.text, block.credit, block.subtitle)
        if node is None:
            self._warn("Skipping quote without text")
        return node

    def _convert_textbox(self, block: TextboxBlock) -> Optional[Node]:
        if block.is_quote:
            node = self._quote(block.text, block.credit, block.subtitle)
            if node is None:
                self._warn(f"Skipping '{block.kind}' textbox quote without text")
            return node

        fields: Dict[str, Any] = {
            'style': textbox_style(block.kind, block.background, block.color, block.position),
        }
        _put_text(fields, 'title', block.title)
        _put_text(fields, 'subtitle', block.subtitle)
        if clean_text(block.text):
            fields['text'] = rich_text([paragraph_node(block.text)])
        _put_text(fields, 'actionText', block.action)

        link = sanitize_link(block.url)
        if link:
            fields['link'] = link

        if block.media_files:
            url = media_file_url(block.media_files[0], self.context.media_base_url)
            media_id = self._lookup_media(url)
            if media_id:
                fields['image'] = media_id
            elif url:
                self.logger.debug(f"Textbox image not in media map: {url}")

        return block_node('textbox', 'Text Box', fields, self._block_id())

    def _convert_layout(self, block: LayoutBlock) -> Node:
        style = block.kind if block.kind in LAYOUT_STYLES else DEFAULT_LAYOUT_STYLE

        items = []
        for item_index, item in enumerate(block.items):
            converted: Dict[str, Any] = {'id': self._block_id('item', item_index)}
            _put_text(converted, 'title', item.get('title'))
            converted['text'] = rich_text([paragraph_node(item.get('text') or '')])

            media_id = self._lookup_item_image(item)
            if media_id:
                converted['image'] = media_id

            link = sanitize_link(item.get('url'))
            if link:
                converted['link'] = link

            items.append(converted)

        return block_node('layout', 'Layout', {'style': style, 'items': items}, self._block_id())

    def _convert_media(self, block: MediaBlock) -> Optional[Node]:
        media_ids = []
        for item in block.items:
            media_id = self._lookup_item_image(item)
            if media_id:
                media_ids.append(media_id)

        fields: Dict[str, Any] = {'collectionType': 'media', 'items': media_ids}
        _put_text(fields, 'title', block.title)
        return block_node('gallery', 'Gallery', fields, self._block_id())

    def _convert_action(self, block: ActionBlock) -> Optional[Node]:
        if block.form:
            form_id = self.context.form_map.get(block.form)
            if form_id:
                return relationship_node('forms', form_id)
            self._warn(f"Form '{block.form}' not found, falling back to a button")

        fields: Dict[str, Any] = {}
        _put_text(fields, 'text', block.action or block.text)
        url = sanitize_link(block.url)
        if url:
            fields['url'] = url
        if not fields:
            self._warn("Skipping action block without label or link")
            return None
        return block_node('button', 'Button', fields, self._block_id())

    def _convert_video(self, block: VideoBlock) -> Optional[Node]:
        video_id = block.video_id
        if not video_id:
            self._warn("Skipping video block without a video id")
            return None

        external_video_id = self.context.external_video_map.get(video_id)
        if not external_video_id:
            self._warn(f"ExternalVideo not found for {video_id}")
            return None

        return relationship_node('external-videos', external_video_id)

    def _resolve_treatment(self, item: Any) -> Optional[str]:
        try:
            return self.context.treatment_map.get(int(item))
        except (TypeError, ValueError):
            return None

    def _resolve_meditation(self, item: Any) -> Optional[str]:
        return resolve_by_natural_key(
            item,
            self.context.meditation_titles,
            self.context.meditation_title_map,
            self.context.title_aliases,
        )

    def _convert_catalog(self, block: CatalogBlock) -> Optional[Node]:
        if block.kind not in CATALOG_RELATIONS:
            self._warn(f"Unsupported catalog type '{block.kind}'")
            return None

        resolver = self._resolve_treatment if block.kind == 'treatments' else self._resolve_meditation

        resolved = []
        for item in block.items:
            destination_id = resolver(item)
            if destination_id:
                resolved.append(destination_id)
            else:
                self._warn(f"Catalog {block.kind} item {item} not found")

        if not resolved:
            return None

        relation_to = CATALOG_RELATIONS[block.kind]
        if len(resolved) == 1:
            return relationship_node(relation_to, resolved[0])

        return block_node(
            'gallery', 'Gallery', {'collectionType': relation_to, 'items': resolved}, self._block_id()
        )

    def _skip(self, block: SkippedBlock) -> None:
        return None

    def _convert_unknown(self, block: UnknownBlock) -> None:
        self._warn(f"Unknown block type '{block.type_name}'")
        return None


def convert_content(content: Any, context: ConversionContext,
                    logger: Optional[logging.Logger] = None) -> Dict[str, Any]:
    """
    Convert one content payload into a Lexical editor state.

    Args:
        content: Decoded content JSON, or None
        context: Conversion context for this (page, locale)
        logger: Optional logger instance

    Returns:
        Lexical editor state

    Raises:
        BlockConversionError: If a block fails to convert
    """
    return BlockConverter(context, logger=logger).convert(content)


__all__ = ['BlockConverter', 'convert_content', 'textbox_style', 'LAYOUT_STYLES', 'CATALOG_RELATIONS']

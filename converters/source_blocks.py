"""
Typed source content blocks.

Legacy pages store their body as an EditorJS-style JSON document
(``{"time": ..., "blocks": [{"id", "type", "data"}], "version": ...}``).
Each raw block is parsed into one of the dataclasses below; anything with an
unrecognised ``type`` becomes an :class:`UnknownBlock` carrying the raw
payload for diagnostics.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

logger = logging.getLogger('wemeditate_migrator.converters.source_blocks')


def _text(data: Mapping[str, Any], key: str) -> str:
    """Read an optional text field; numbers are accepted, containers are not."""
    value = data.get(key)
    if value is None:
        return ''
    if isinstance(value, bool) or isinstance(value, (dict, list)):
        raise TypeError(f"field '{key}' must be text, got {type(value).__name__}")
    return str(value)


def _optional_str(data: Mapping[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or value == '':
        return None
    if isinstance(value, (dict, list)):
        raise TypeError(f"field '{key}' must be a scalar, got {type(value).__name__}")
    return str(value)


def _items(data: Mapping[str, Any], key: str = 'items') -> List[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise TypeError(f"field '{key}' must be a list, got {type(value).__name__}")
    return value


def _item_dicts(data: Mapping[str, Any], key: str = 'items') -> List[Dict[str, Any]]:
    items = _items(data, key)
    for item in items:
        if not isinstance(item, dict):
            raise TypeError(f"'{key}' entries must be objects, got {type(item).__name__}")
    return items


def image_preview(item: Mapping[str, Any]) -> Optional[str]:
    """Return the ``image.preview`` URL of a layout or gallery item."""
    image = item.get('image')
    if isinstance(image, dict) and image.get('preview'):
        return str(image['preview'])
    return None


def image_id(item: Mapping[str, Any]) -> Optional[str]:
    image = item.get('image')
    if isinstance(image, dict) and image.get('id') not in (None, ''):
        return str(image['id'])
    return None


def resolve_media_url(url: str, base_url: str) -> str:
    """Prefix storage-relative paths with the storage base URL."""
    if url.startswith(('http://', 'https://')) or not base_url:
        return url
    if base_url.endswith('/') and url.startswith('/'):
        return base_url + url[1:]
    return base_url + url


def media_file_url(entry: Any, base_url: str) -> Optional[str]:
    """
    URL of a textbox ``mediaFiles`` entry or an author ``image`` value.

    Entries are either plain URL strings or uploader objects shaped like
    ``{"file": {"url": "..."}}``.
    """
    if isinstance(entry, str):
        return resolve_media_url(entry, base_url) if entry.strip() else None
    if isinstance(entry, dict):
        file_info = entry.get('file')
        if isinstance(file_info, dict) and file_info.get('url'):
            return resolve_media_url(str(file_info['url']), base_url)
    return None


@dataclass
class ParagraphBlock:
    text: str
    header: bool = False
    level: Any = None
    block_id: Optional[str] = None

    @classmethod
    def from_data(cls, data: Mapping[str, Any], block_id: Optional[str]) -> 'ParagraphBlock':
        return cls(
            text=_text(data, 'text'),
            header=data.get('type') == 'header' or bool(data.get('level')),
            level=data.get('level'),
            block_id=block_id,
        )


@dataclass
class TextboxBlock:
    kind: Optional[str]
    title: str = ''
    subtitle: str = ''
    text: str = ''
    credit: str = ''
    action: str = ''
    url: str = ''
    background: Optional[str] = None
    color: Optional[str] = None
    position: Optional[str] = None
    media_files: List[Any] = field(default_factory=list)
    block_id: Optional[str] = None

    @property
    def is_quote(self) -> bool:
        return self.kind in ('text', 'hero')

    @classmethod
    def from_data(cls, data: Mapping[str, Any], block_id: Optional[str]) -> 'TextboxBlock':
        return cls(
            kind=_optional_str(data, 'type'),
            title=_text(data, 'title'),
            subtitle=_text(data, 'subtitle'),
            text=_text(data, 'text'),
            credit=_text(data, 'credit'),
            action=_text(data, 'action'),
            url=_text(data, 'url'),
            background=_optional_str(data, 'background'),
            color=_optional_str(data, 'color'),
            position=_optional_str(data, 'position'),
            media_files=_items(data, 'mediaFiles'),
            block_id=block_id,
        )


@dataclass
class LayoutBlock:
    kind: Optional[str]
    items: List[Dict[str, Any]] = field(default_factory=list)
    block_id: Optional[str] = None

    @classmethod
    def from_data(cls, data: Mapping[str, Any], block_id: Optional[str]) -> 'LayoutBlock':
        return cls(kind=_optional_str(data, 'type'), items=_item_dicts(data), block_id=block_id)


@dataclass
class MediaBlock:
    title: str = ''
    items: List[Dict[str, Any]] = field(default_factory=list)
    block_id: Optional[str] = None

    @classmethod
    def from_data(cls, data: Mapping[str, Any], block_id: Optional[str]) -> 'MediaBlock':
        return cls(title=_text(data, 'title'), items=_item_dicts(data), block_id=block_id)


@dataclass
class ActionBlock:
    form: Optional[str] = None
    action: str = ''
    text: str = ''
    url: str = ''
    block_id: Optional[str] = None

    @classmethod
    def from_data(cls, data: Mapping[str, Any], block_id: Optional[str]) -> 'ActionBlock':
        return cls(
            form=_optional_str(data, 'form'),
            action=_text(data, 'action'),
            text=_text(data, 'text'),
            url=_text(data, 'url'),
            block_id=block_id,
        )


@dataclass
class VideoBlock:
    vimeo_id: Optional[str] = None
    youtube_id: Optional[str] = None
    title: str = ''
    thumbnail: Optional[str] = None
    preview: Optional[str] = None
    block_id: Optional[str] = None

    @property
    def video_id(self) -> Optional[str]:
        """Vimeo ids win over YouTube ids when a block carries both."""
        return self.vimeo_id or self.youtube_id

    @property
    def thumbnail_ref(self) -> Optional[str]:
        return self.thumbnail or self.preview

    @classmethod
    def from_data(cls, data: Mapping[str, Any], block_id: Optional[str]) -> 'VideoBlock':
        return cls(
            vimeo_id=_optional_str(data, 'vimeo_id'),
            youtube_id=_optional_str(data, 'youtube_id'),
            title=_text(data, 'title'),
            thumbnail=_optional_str(data, 'thumbnail'),
            preview=_optional_str(data, 'preview'),
            block_id=block_id,
        )


@dataclass
class CatalogBlock:
    kind: Optional[str]
    items: List[Any] = field(default_factory=list)
    block_id: Optional[str] = None

    @classmethod
    def from_data(cls, data: Mapping[str, Any], block_id: Optional[str]) -> 'CatalogBlock':
        return cls(kind=_optional_str(data, 'type'), items=_items(data), block_id=block_id)


@dataclass
class QuoteBlock:
    text: str
    credit: str = ''
    subtitle: str = ''
    block_id: Optional[str] = None

    @classmethod
    def from_data(cls, data: Mapping[str, Any], block_id: Optional[str]) -> 'QuoteBlock':
        return cls(
            text=_text(data, 'text'),
            credit=_text(data, 'credit') or _text(data, 'caption'),
            subtitle=_text(data, 'subtitle'),
            block_id=block_id,
        )


@dataclass
class HeaderBlock:
    text: str
    level: Any = None
    block_id: Optional[str] = None

    @classmethod
    def from_data(cls, data: Mapping[str, Any], block_id: Optional[str]) -> 'HeaderBlock':
        return cls(text=_text(data, 'text'), level=data.get('level'), block_id=block_id)


@dataclass
class SkippedBlock:
    """Layout-only artifacts (whitespace, table-of-contents lists)."""

    type_name: str
    block_id: Optional[str] = None


@dataclass
class UnknownBlock:
    type_name: str
    data: Dict[str, Any] = field(default_factory=dict)
    block_id: Optional[str] = None


SKIPPED_TYPES = ('whitespace', 'list')

BLOCK_PARSERS: Dict[str, Callable[[Mapping[str, Any], Optional[str]], Any]] = {
    'paragraph': ParagraphBlock.from_data,
    'textbox': TextboxBlock.from_data,
    'layout': LayoutBlock.from_data,
    'media': MediaBlock.from_data,
    'action': ActionBlock.from_data,
    'vimeo': VideoBlock.from_data,
    'catalog': CatalogBlock.from_data,
    'quote': QuoteBlock.from_data,
    'header': HeaderBlock.from_data,
}


def block_type_name(raw: Any) -> str:
    """Best-effort type name of a raw block, for diagnostics."""
    if isinstance(raw, dict) and raw.get('type'):
        return str(raw['type'])
    return 'unknown'


def parse_block(raw: Any):
    """
    Parse one raw block into its typed form.

    Args:
        raw: Raw block mapping with ``type`` and ``data``

    Returns:
        One of the block dataclasses

    Raises:
        TypeError: If the block or one of its known fields is malformed
    """
    if not isinstance(raw, dict):
        raise TypeError(f"block must be an object, got {type(raw).__name__}")

    type_name = block_type_name(raw)
    block_id = _optional_str(raw, 'id')

    data = raw.get('data')
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise TypeError(f"block data must be an object, got {type(data).__name__}")

    if type_name in SKIPPED_TYPES:
        return SkippedBlock(type_name=type_name, block_id=block_id)

    parser = BLOCK_PARSERS.get(type_name)
    if parser is None:
        return UnknownBlock(type_name=type_name, data=data, block_id=block_id)
    return parser(data, block_id)


def content_blocks(content: Any) -> Optional[List[Any]]:
    """
    Extract the raw block list from a stored content payload.

    Args:
        content: Decoded JSON document, a JSON string, or None

    Returns:
        Raw block list, or None when the payload has no blocks at all
    """
    if content is None:
        return None
    if isinstance(content, (str, bytes)):
        if not content.strip():
            return None
        content = json.loads(content)
    if not isinstance(content, dict):
        return None
    blocks = content.get('blocks')
    if not isinstance(blocks, list):
        return None
    return blocks


__all__ = [
    'ParagraphBlock',
    'TextboxBlock',
    'LayoutBlock',
    'MediaBlock',
    'ActionBlock',
    'VideoBlock',
    'CatalogBlock',
    'QuoteBlock',
    'HeaderBlock',
    'SkippedBlock',
    'UnknownBlock',
    'BLOCK_PARSERS',
    'SKIPPED_TYPES',
    'parse_block',
    'block_type_name',
    'content_blocks',
    'image_preview',
    'image_id',
    'resolve_media_url',
    'media_file_url',
]

"""Data models for the WeMeditate to Payload migration pipeline."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

logger = logging.getLogger('wemeditate_migrator')

PUBLISHED_STATE = 1


class MigrationPhase(Enum):
    """Fixed phases of a migration run.

    Per-kind phases (``importing-articles``, ``updating-articles-content``)
    are derived from :class:`PageKind`.
    """
    INITIALIZING = "initializing"
    IMPORTING_AUTHORS = "importing-authors"
    IMPORTING_CATEGORIES = "importing-categories"
    UPDATING_MEDITATION_TITLE_MAP = "updating-meditation-title-map"
    CREATING_FORMS = "creating-forms"
    IMPORTING_MEDIA = "importing-media"
    IMPORTING_EXTERNAL_VIDEOS = "importing-external-videos"
    DONE = "done"


class PageKind(Enum):
    """Legacy tables that become documents in the ``pages`` collection."""
    STATIC_PAGES = "static_pages"
    ARTICLES = "articles"
    PROMO_PAGES = "promo_pages"
    SUBTLE_SYSTEM_NODES = "subtle_system_nodes"
    TREATMENTS = "treatments"

    @property
    def translations_table(self) -> Optional[str]:
        """Translation table name, or None for single-locale tables."""
        if self is PageKind.PROMO_PAGES:
            return None
        return f"{self.value[:-1]}_translations"

    @property
    def foreign_key(self) -> str:
        return f"{self.value[:-1]}_id"

    @property
    def content_type_tag(self) -> str:
        return CONTENT_TYPE_TAGS[self]

    @property
    def importing_phase(self) -> str:
        return f"importing-{self.value}"

    @property
    def content_phase(self) -> str:
        return f"updating-{self.value}-content"


CONTENT_TYPE_TAGS = {
    PageKind.STATIC_PAGES: 'static-page',
    PageKind.ARTICLES: 'article',
    PageKind.PROMO_PAGES: 'promo',
    PageKind.SUBTLE_SYSTEM_NODES: 'subtle-system',
    PageKind.TREATMENTS: 'treatment',
}

ARTICLE_TYPE_TAGS = {
    0: 'article',
    1: 'artwork',
    2: 'event',
    3: 'report',
}


def work_item_key(kind: str, source_id: Any) -> str:
    """
    Build the checkpoint key for one unit of migration work.

    Args:
        kind: Entity kind (e.g. 'authors', 'media', 'forms')
        source_id: Source identifier (numeric id, URL, natural key)

    Returns:
        Stable key such as ``authors-42`` or ``media-https://...``
    """
    return f"{kind}-{source_id}"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CheckpointRecord:
    """Durable record of migration progress."""

    phase: str = MigrationPhase.INITIALIZING.value
    items_created: Dict[str, str] = field(default_factory=dict)
    failed: List[str] = field(default_factory=list)
    last_updated: str = field(default_factory=_utc_now)

    def has_item(self, key: str) -> bool:
        return key in self.items_created

    def touch(self) -> None:
        self.last_updated = _utc_now()

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the on-disk key names."""
        return {
            'lastUpdated': self.last_updated,
            'phase': self.phase,
            'itemsCreated': dict(self.items_created),
            'failed': list(self.failed),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'CheckpointRecord':
        """Rebuild a record from its serialized form."""
        return cls(
            phase=data.get('phase', MigrationPhase.INITIALIZING.value),
            items_created={str(k): str(v) for k, v in (data.get('itemsCreated') or {}).items()},
            failed=[str(item) for item in (data.get('failed') or [])],
            last_updated=data.get('lastUpdated') or _utc_now(),
        )


@dataclass
class TranslationRow:
    """One per-locale translation row joined to its parent entity."""

    locale: Optional[str]
    name: Optional[str] = None
    slug: Optional[str] = None
    content: Any = None
    published_at: Any = None
    state: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None

    @property
    def is_published(self) -> bool:
        return self.state == PUBLISHED_STATE

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'TranslationRow':
        return cls(
            locale=data.get('locale'),
            name=data.get('name'),
            slug=data.get('slug'),
            content=data.get('content'),
            published_at=data.get('published_at'),
            state=data.get('state'),
            title=data.get('title'),
            description=data.get('description'),
        )


@dataclass
class SourceRow:
    """A legacy entity row with its translations and optional references."""

    id: int
    translations: List[TranslationRow] = field(default_factory=list)
    attributes: Dict[str, Any] = field(default_factory=dict)

    def named_translations(self) -> List[TranslationRow]:
        """Translations with a locale and a name (authors, categories)."""
        return [t for t in self.translations if t.locale and t.name]

    def published_translations(self) -> List[TranslationRow]:
        """Named translations that are also published (pages)."""
        return [t for t in self.named_translations() if t.is_published]


@dataclass
class ContentRow:
    """Published content payload for one (page, locale) pair."""

    page_id: int
    locale: str
    content: Any


@dataclass
class ConversionContext:
    """Ephemeral inputs for one content conversion call.

    The maps are references into the identifier mapping registry and are
    only read by the converter.
    """

    locale: str
    page_label: str
    media_map: Mapping[str, str] = field(default_factory=dict)
    form_map: Mapping[str, str] = field(default_factory=dict)
    external_video_map: Mapping[str, str] = field(default_factory=dict)
    treatment_map: Mapping[int, str] = field(default_factory=dict)
    meditation_titles: Mapping[int, str] = field(default_factory=dict)
    meditation_title_map: Mapping[str, str] = field(default_factory=dict)
    title_aliases: Mapping[str, str] = field(default_factory=dict)
    media_base_url: str = ''


@dataclass
class MediaMetadata:
    """Descriptive fields attached to an uploaded media document."""

    alt: str = ''
    credit: str = ''
    caption: str = ''


@dataclass
class DownloadResult:
    """A converted media file in the local asset cache."""

    local_path: str
    hash: str
    width: int
    height: int
    from_cache: bool = False


@dataclass
class MediaUploadResult:
    """Outcome of ingesting one source media reference."""

    id: str
    filename: str
    was_reused: bool


__all__ = [
    'MigrationPhase',
    'PageKind',
    'CONTENT_TYPE_TAGS',
    'ARTICLE_TYPE_TAGS',
    'PUBLISHED_STATE',
    'work_item_key',
    'CheckpointRecord',
    'TranslationRow',
    'SourceRow',
    'ContentRow',
    'ConversionContext',
    'MediaMetadata',
    'DownloadResult',
    'MediaUploadResult',
]

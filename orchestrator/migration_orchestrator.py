"""
Migration orchestrator for the WeMeditate to Payload import.

This module sequences the migration phases. Phase one creates documents
without cross-references (authors, categories, tags, page shells); phase two
ingests media, creates the entities that reference media, and finally writes
converted rich text into the page shells created in phase one.

Every phase is entered by persisting its name, and every row is checked
against the checkpoint before any document is created, so an interrupted run
resumes by replaying phases and skipping finished rows.
"""

import logging
import shutil
import time
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from tqdm import tqdm

from converters import BlockConverter
from exceptions import DestinationStoreError
from fetchers import ContentScanner, LegacySource, MediaDownloader, VideoReference
from importers import (
    CheckpointStore,
    IdMappingRegistry,
    MEDITATION_TITLE_ALIASES,
    MediaUploader,
    PayloadClient,
    TagManager,
    normalize_title,
)
from importers.tag_manager import MEDIA_TAGS
from logger import ProgressTracker, log_section
from models import (
    ARTICLE_TYPE_TAGS,
    CONTENT_TYPE_TAGS,
    ContentRow,
    ConversionContext,
    CheckpointRecord,
    MigrationPhase,
    PageKind,
    SourceRow,
    TranslationRow,
    work_item_key,
)
from orchestrator.migration_report import MigrationReport
from orchestrator.row_processor import FailurePolicy, process_rows

logger = logging.getLogger('wemeditate_migrator.orchestrator')

PAGES = 'pages'
AUTHORS = 'authors'
PAGE_TAGS = 'page-tags'
FORMS = 'forms'
EXTERNAL_VIDEOS = 'external-videos'
MEDITATIONS = 'meditations'
MEDIA = 'media'

CONTENT_TYPE_TAG_KIND = 'content_type_tags'
AUTHOR_IMAGE_KIND = 'author_images'

# Work-item kind -> collection deleted by a reset, in deletion order.
# Forms and content-type tags are looked up by name and may predate the import.
RESET_COLLECTIONS: List[Tuple[str, str]] = [
    ('static_pages', PAGES),
    ('articles', PAGES),
    ('promo_pages', PAGES),
    ('subtle_system_nodes', PAGES),
    ('treatments', PAGES),
    ('external_videos', EXTERNAL_VIDEOS),
    ('authors', AUTHORS),
    ('categories', PAGE_TAGS),
    ('media', MEDIA),
]

CONFIRMATION_MESSAGE = 'Thank you for your submission!'

FORM_CONFIGS: Dict[str, Dict[str, Any]] = {
    'contact': {
        'title': 'Contact Form',
        'fields': [
            {'name': 'name', 'label': 'Name', 'blockType': 'text', 'required': True},
            {'name': 'email', 'label': 'Email', 'blockType': 'email', 'required': True},
            {'name': 'message', 'label': 'Message', 'blockType': 'textarea', 'required': True},
        ],
    },
    'signup': {
        'title': 'Signup Form',
        'fields': [
            {'name': 'email', 'label': 'Email', 'blockType': 'email', 'required': True},
        ],
    },
}


def kind_of_key(key: str) -> str:
    """Entity kind of a work-item key (``static_pages-3`` -> ``static_pages``)."""
    return key.split('-', 1)[0]


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None and v != ''}


def _timestamp(value: Any) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value or None


def _confirmation_message() -> Dict[str, Any]:
    return {
        'root': {
            'type': 'root',
            'version': 1,
            'direction': None,
            'format': '',
            'indent': 0,
            'children': [{
                'type': 'paragraph',
                'version': 1,
                'direction': None,
                'format': '',
                'indent': 0,
                'textFormat': 0,
                'children': [{
                    'type': 'text',
                    'version': 1,
                    'text': CONFIRMATION_MESSAGE,
                    'format': 0,
                    'style': '',
                    'mode': 'normal',
                    'detail': 0,
                }],
            }],
        },
    }


class MigrationOrchestrator:
    """Central coordinator sequencing all migration phases."""

    def __init__(
        self,
        config: Dict[str, Any],
        client: Optional[Any] = None,
        source: Optional[Any] = None,
        downloader: Optional[Any] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize migration orchestrator.

        Args:
            config: Validated configuration dictionary
            client: PayloadClient (built from config when omitted)
            source: LegacySource (built from config when omitted)
            downloader: MediaDownloader (built from config when omitted)
            logger: Optional logger instance
        """
        self.config = config
        self.logger = logger or logging.getLogger('wemeditate_migrator.orchestrator')

        migration = config.get('migration', {})
        self.cache_dir = Path(migration.get('cache_dir', 'migration/cache/wemeditate'))
        self.import_tag = migration.get('import_tag', 'import-wemeditate')
        self.locales: List[str] = list(migration.get('locales') or ['en'])
        self.storage_base_url = migration.get('storage_base_url', '')
        self.find_limit = int(migration.get('find_limit', 100))
        self.show_progress = bool(migration.get('progress_bars', True))
        self.report_path = migration.get('report_path')

        self.title_aliases: Dict[str, str] = dict(MEDITATION_TITLE_ALIASES)
        for source_title, destination_title in (migration.get('meditation_title_aliases') or {}).items():
            self.title_aliases[normalize_title(source_title)] = normalize_title(destination_title)

        self.client = client or PayloadClient.from_config(config)
        self.source = source or LegacySource.from_config(config)
        self.downloader = downloader or MediaDownloader(
            self.cache_dir,
            quality=int(migration.get('image_quality', 90)),
            timeout=int(config.get('payload', {}).get('timeout', 60)),
        )

        self.checkpoint = CheckpointStore(self.cache_dir)
        self.registry = IdMappingRegistry()
        self.tags = TagManager(self.client)
        self.uploader: Optional[MediaUploader] = None

        self._scanner: Optional[ContentScanner] = None
        self._author_images: Dict[int, str] = {}
        self.phase_stats: Dict[str, Dict[str, int]] = {}
        self.conversion_warnings = 0

    # Run

    def run(
        self,
        resume: bool = False,
        reset: bool = False,
        clear_cache: bool = False,
        dry_run: bool = False
    ) -> Dict[str, Any]:
        """
        Execute the migration.

        Args:
            resume: Load the checkpoint and mappings before continuing
            reset: Delete previously migrated documents and local state first
            clear_cache: Wipe the local cache directory first
            dry_run: Only validate connectivity, perform no writes

        Returns:
            Migration report dictionary

        Raises:
            MigrationError: On any fatal error (after cleanup)
        """
        start_time = time.time()
        self.logger.info("Starting WeMeditate import")

        if dry_run:
            if reset or clear_cache:
                self.logger.warning("Ignoring --reset and --clear-cache in dry run mode")
            return self._dry_run(start_time)

        self.client.check_connection()

        if reset:
            self.reset()
        if clear_cache:
            self.clear_cache()
        self.cache_dir.mkdir(parents=True, exist_ok=True)

        if resume:
            self.checkpoint.load()
            self.registry.load(self.cache_dir)
        elif self.checkpoint.path.exists():
            self.logger.warning(
                f"Existing checkpoint {self.checkpoint.path} will be overwritten, use --resume to continue it"
            )

        try:
            self.source.provision()
            self._run_phases()
        except Exception:
            self.logger.error(f"Migration aborted during phase: {self.checkpoint.record.phase}")
            raise
        finally:
            self.source.cleanup()

        return self._report(start_time)

    def _dry_run(self, start_time: float) -> Dict[str, Any]:
        log_section("Dry Run")
        self.client.check_connection()
        try:
            self.source.provision()
            self.source.ping()
        finally:
            self.source.cleanup()
        self.logger.info("Dry run completed: Payload API and legacy database are reachable")
        return self._report(start_time, dry_run=True)

    def _run_phases(self) -> None:
        log_section("Phase 1: Metadata Import")

        self._enter(MigrationPhase.IMPORTING_AUTHORS.value)
        self.import_authors()

        self._enter(MigrationPhase.IMPORTING_CATEGORIES.value)
        self.import_categories()
        self.import_content_type_tags()

        for kind in PageKind:
            self._enter(kind.importing_phase)
            self.import_pages(kind)

        log_section("Phase 2: Content Import")

        self._enter(MigrationPhase.UPDATING_MEDITATION_TITLE_MAP.value)
        self.build_meditation_title_map()

        self._enter(MigrationPhase.CREATING_FORMS.value)
        self.create_forms()

        self._enter(MigrationPhase.IMPORTING_MEDIA.value)
        self.import_media()

        self._enter(MigrationPhase.IMPORTING_EXTERNAL_VIDEOS.value)
        self.import_external_videos()

        for kind in PageKind:
            self._enter(kind.content_phase)
            self.update_page_contents(kind)

        self._enter(MigrationPhase.DONE.value)
        self.logger.info(f"Import complete: {len(self.checkpoint.record.items_created)} items created")

    # Helpers

    def _enter(self, phase: str) -> None:
        self.logger.info(f"=== {phase} ===")
        self.checkpoint.set_phase(phase)

    def _persist(self) -> None:
        self.checkpoint.save()
        self.registry.save(self.cache_dir)

    def _audit(self, message: str) -> None:
        """Log a warning and keep it in the checkpoint's failure list."""
        self.logger.warning(message)
        self.checkpoint.add_failed(message)

    def _mark_created(self, kind: str, source_key: Any, destination_id: str, mapped: bool = True) -> str:
        """Record a freshly created document before any follow-up request."""
        destination_id = str(destination_id)
        self.checkpoint.add_item(work_item_key(kind, source_key), destination_id)
        if mapped:
            self.registry.set(kind, source_key, destination_id)
        self._persist()
        return destination_id

    def _progress(self, items: List[Any], desc: str) -> Iterable[Any]:
        return tqdm(items, desc=desc, unit='item', disable=not self.show_progress)

    def _process(
        self,
        name: str,
        items: List[Any],
        handler: Callable[[Any], Optional[str]],
        policy: FailurePolicy,
        key_fn: Optional[Callable[[Any], str]] = None,
        record: Optional[Callable[[Any, str], None]] = None,
        label_fn: Callable[[Any], str] = str,
        progress_bar: bool = False
    ) -> Dict[str, int]:
        rows = self._progress(items, name) if progress_bar else items
        with ProgressTracker(total_items=len(items), item_type=name, logger=self.logger) as tracker:
            stats = process_rows(
                rows,
                handler,
                self.checkpoint,
                key_fn=key_fn,
                policy=policy,
                record=record,
                persist=self._persist,
                label_fn=label_fn,
                tracker=tracker,
                logger=self.logger,
            )
        self.phase_stats[name] = stats
        self._persist()
        return stats

    def _localized(self, translations: List[TranslationRow]) -> List[TranslationRow]:
        """Translations in configured locale order, one per locale."""
        by_locale: Dict[str, TranslationRow] = {}
        for translation in translations:
            if translation.locale not in self.locales:
                self.logger.debug(f"Ignoring unsupported locale: {translation.locale}")
                continue
            by_locale.setdefault(translation.locale, translation)
        return [by_locale[locale] for locale in self.locales if locale in by_locale]

    # Phase 1

    def import_authors(self) -> Dict[str, int]:
        authors = self.source.fetch_authors()
        self.logger.info(f"Found {len(authors)} authors to import")
        return self._process(
            AUTHORS,
            authors,
            self._import_author,
            FailurePolicy.CONTINUE,
            key_fn=lambda row: work_item_key(AUTHORS, row.id),
            record=lambda row, dest: self.registry.set(AUTHORS, row.id, dest),
            label_fn=lambda row: f"author {row.id}",
        )

    def _import_author(self, row: SourceRow) -> Optional[str]:
        translations = self._localized(row.named_translations())
        if not translations:
            self._audit(f"Skipping author {row.id}: no valid translations")
            return None

        def localized(t: TranslationRow) -> Dict[str, Any]:
            return {'name': t.name, 'title': t.title or '', 'description': t.description or ''}

        first = translations[0]
        data = localized(first)
        data.update(_compact({
            'countryCode': row.attributes.get('country_code'),
            'yearsMeditating': row.attributes.get('years_meditating'),
        }))

        doc = self.client.create(AUTHORS, data, locale=first.locale)
        author_id = self._mark_created(AUTHORS, row.id, doc['id'])

        for translation in translations[1:]:
            self.client.update(AUTHORS, author_id, localized(translation), locale=translation.locale)

        self.logger.info(f"Created author: {row.id} -> {author_id} ({len(translations)} locales)")
        return author_id

    def import_categories(self) -> Dict[str, int]:
        categories = self.source.fetch_categories()
        self.logger.info(f"Found {len(categories)} categories to import")
        return self._process(
            'categories',
            categories,
            self._import_category,
            FailurePolicy.CONTINUE,
            key_fn=lambda row: work_item_key('categories', row.id),
            record=lambda row, dest: self.registry.set('categories', row.id, dest),
            label_fn=lambda row: f"category {row.id}",
        )

    def _import_category(self, row: SourceRow) -> Optional[str]:
        translations = self._localized(row.named_translations())
        if not translations:
            self._audit(f"Skipping category {row.id}: no valid translations")
            return None

        first = translations[0]
        data = {'name': first.slug or first.name.lower(), 'title': first.name}
        doc = self.client.create(PAGE_TAGS, data, locale=first.locale)
        tag_id = self._mark_created('categories', row.id, doc['id'])

        for translation in translations[1:]:
            self.client.update(PAGE_TAGS, tag_id, {'title': translation.name}, locale=translation.locale)

        self.logger.info(f"Created category tag: {row.id} -> {tag_id} ({len(translations)} locales)")
        return tag_id

    def import_content_type_tags(self) -> Dict[str, int]:
        names = list(dict.fromkeys(list(CONTENT_TYPE_TAGS.values()) + list(ARTICLE_TYPE_TAGS.values())))
        return self._process(
            CONTENT_TYPE_TAG_KIND,
            names,
            lambda name: self.tags.ensure_page_tag(name),
            FailurePolicy.CONTINUE,
            key_fn=lambda name: work_item_key(CONTENT_TYPE_TAG_KIND, name),
            label_fn=lambda name: f"content type tag {name}",
        )

    def _content_type_tag_id(self, name: Optional[str]) -> Optional[str]:
        if not name:
            return None
        return self.checkpoint.get_item(work_item_key(CONTENT_TYPE_TAG_KIND, name))

    def _page_tags(self, kind: PageKind, row: SourceRow) -> List[str]:
        article_type = row.attributes.get('article_type')
        candidates = [
            self._content_type_tag_id(kind.content_type_tag),
            self._content_type_tag_id(ARTICLE_TYPE_TAGS.get(article_type)) if article_type is not None else None,
            self.registry.get('categories', row.attributes.get('category_id')),
        ]
        return list(dict.fromkeys(tag for tag in candidates if tag))

    def import_pages(self, kind: PageKind) -> Dict[str, int]:
        if kind is PageKind.PROMO_PAGES:
            pages = self.source.fetch_promo_pages()
        else:
            pages = self.source.fetch_pages(kind)
        self.logger.info(f"Found {len(pages)} pages to import from {kind.value}")

        return self._process(
            kind.value,
            pages,
            lambda row: self._import_page(kind, row),
            FailurePolicy.CONTINUE,
            key_fn=lambda row: work_item_key(kind.value, row.id),
            record=lambda row, dest: self.registry.set(kind.value, row.id, dest),
            label_fn=lambda row: f"{kind.value} {row.id}",
        )

    def _import_page(self, kind: PageKind, row: SourceRow) -> Optional[str]:
        translations = self._localized(row.published_translations())
        if not translations:
            self.logger.info(f"Skipping {kind.value} {row.id}: no published translations")
            return None

        def localized(t: TranslationRow) -> Dict[str, Any]:
            return _compact({'title': t.name, 'slug': t.slug, 'publishAt': _timestamp(t.published_at)})

        first = translations[0]
        data = localized(first)
        author_id = self.registry.get(AUTHORS, row.attributes.get('author_id'))
        if author_id:
            data['author'] = author_id
        tags = self._page_tags(kind, row)
        if tags:
            data['tags'] = tags

        doc = self.client.create(PAGES, data, locale=first.locale)
        page_id = self._mark_created(kind.value, row.id, doc['id'])

        for translation in translations[1:]:
            self.client.update(PAGES, page_id, localized(translation), locale=translation.locale)

        self.logger.info(f"Created page from {kind.value}: {row.id} -> {page_id} ({len(translations)} locales)")
        return page_id

    # Phase 2

    def build_meditation_title_map(self) -> int:
        """
        Rebuild the title lookups used by meditation catalog blocks.

        Both maps come from fresh queries, never from the checkpoint. A failure
        leaves them empty; affected catalog items are then skipped with warnings.
        """
        self.registry.meditation_titles = self.source.fetch_meditation_titles()

        title_map: Dict[str, str] = {}
        try:
            for doc in self.client.find_all(MEDITATIONS, locale=self.locales[0]):
                title = normalize_title(doc.get('title'))
                if title:
                    title_map.setdefault(title, str(doc['id']))
        except DestinationStoreError as e:
            self._audit(f"Error building meditation map: {e}")

        self.registry.meditation_title_map = title_map
        self.logger.info(
            f"Built meditation map with {len(title_map)} titles "
            f"({len(self.registry.meditation_titles)} legacy meditations)"
        )
        return len(title_map)

    def create_forms(self) -> Dict[str, int]:
        return self._process(
            FORMS,
            list(FORM_CONFIGS.items()),
            self._ensure_form,
            FailurePolicy.CONTINUE,
            key_fn=lambda item: work_item_key(FORMS, item[0]),
            record=lambda item, dest: self.registry.set(FORMS, item[0], dest),
            label_fn=lambda item: f"form {item[0]}",
        )

    def _ensure_form(self, item: Tuple[str, Dict[str, Any]]) -> str:
        form_type, form_config = item
        existing = self.client.find(FORMS, where={'title': {'equals': form_config['title']}}, limit=1)
        if existing['docs']:
            self.logger.info(f"Reusing existing form: {form_config['title']}")
            return str(existing['docs'][0]['id'])

        doc = self.client.create(FORMS, {
            'title': form_config['title'],
            'fields': form_config['fields'],
            'submitButtonLabel': 'Submit',
            'confirmationType': 'message',
            'confirmationMessage': _confirmation_message(),
        })
        self.logger.info(f"Created form: {form_config['title']} ({form_type})")
        return str(doc['id'])

    def scan_content(self) -> ContentScanner:
        """Collect media and video references from all published content (once per run)."""
        if self._scanner is not None:
            return self._scanner

        scanner = ContentScanner(self.storage_base_url, logger=self.logger)
        for kind in PageKind:
            for row in self.source.fetch_page_contents(kind):
                scanner.scan(row.content)

        self._author_images = {}
        for row in self.source.fetch_author_images():
            url = scanner.add_author_image(row.get('image'))
            if url:
                self._author_images[int(row['id'])] = url

        self.logger.info(
            f"Found {len(scanner.media)} unique media files and {len(scanner.videos)} external videos"
        )
        self._scanner = scanner
        return scanner

    def import_media(self) -> Dict[str, int]:
        """
        Ingest every referenced image.

        Any download, conversion or upload failure aborts the run.
        """
        media_tag_id = self.tags.ensure_media_tag(self.import_tag)
        self.downloader.initialize()
        self.uploader = MediaUploader(
            self.client,
            self.downloader,
            tag_ids=[media_tag_id],
            find_limit=self.find_limit,
            logger=self.logger,
        )

        scanner = self.scan_content()
        stats = self._process(
            MEDIA,
            list(scanner.media.items()),
            lambda item: self.uploader.ingest(item[0], item[1]).id,
            FailurePolicy.ABORT,
            key_fn=lambda item: work_item_key(MEDIA, item[0]),
            record=lambda item, dest: self.registry.set(MEDIA, item[0], dest),
            label_fn=lambda item: f"media {item[0]}",
            progress_bar=True,
        )

        self.attach_author_images()
        return stats

    def attach_author_images(self) -> Dict[str, int]:
        """Point already-created authors at their ingested portraits."""
        return self._process(
            AUTHOR_IMAGE_KIND,
            sorted(self._author_images.items()),
            self._attach_author_image,
            FailurePolicy.CONTINUE,
            key_fn=lambda item: work_item_key(AUTHOR_IMAGE_KIND, item[0]),
            label_fn=lambda item: f"image of author {item[0]}",
        )

    def _attach_author_image(self, item: Tuple[int, str]) -> Optional[str]:
        source_id, url = item
        author_id = self.registry.get(AUTHORS, source_id)
        media_id = self.registry.get(MEDIA, url)
        if not author_id or not media_id:
            self.logger.debug(f"No author or media mapping for portrait of author {source_id}")
            return None

        self.client.update(AUTHORS, author_id, {'image': media_id})
        return media_id

    def import_external_videos(self) -> Dict[str, int]:
        videos = list(self.scan_content().videos.values())
        return self._process(
            'external_videos',
            videos,
            self._create_external_video,
            FailurePolicy.CONTINUE,
            key_fn=lambda video: work_item_key('external_videos', video.video_id),
            record=lambda video, dest: self.registry.set('external_videos', video.video_id, dest),
            label_fn=lambda video: f"external video {video.video_id}",
        )

    def _create_external_video(self, video: VideoReference) -> Optional[str]:
        if not video.thumbnail_url:
            self._audit(f"Skipping external video {video.video_id}: no thumbnail available")
            return None

        thumbnail_id = self.registry.get(MEDIA, video.thumbnail_url)
        if not thumbnail_id:
            self._audit(f"Skipping external video {video.video_id}: thumbnail not in media map")
            return None

        doc = self.client.create(EXTERNAL_VIDEOS, {
            'title': video.title or f"Video {video.video_id}",
            'videoUrl': video.url,
            'thumbnail': thumbnail_id,
        })
        self.logger.info(f"Created external video: {video.video_id}")
        return str(doc['id'])

    def update_page_contents(self, kind: PageKind) -> Dict[str, int]:
        """
        Convert and write the content of every published translation.

        The first failing page aborts the run; nothing is written for it.
        """
        rows = [row for row in self.source.fetch_page_contents(kind) if row.locale in self.locales]
        self.logger.info(f"Updating {len(rows)} {kind.value} translations with content")
        return self._process(
            f"{kind.value}_content",
            rows,
            lambda row: self._update_page_content(kind, row),
            FailurePolicy.ABORT,
            label_fn=lambda row: f"{kind.value} {row.page_id} ({row.locale})",
            progress_bar=True,
        )

    def conversion_context(self, kind: PageKind, row: ContentRow) -> ConversionContext:
        return ConversionContext(
            locale=row.locale,
            page_label=f"{kind.value} {row.page_id}",
            media_map=self.registry.map_for(MEDIA),
            form_map=self.registry.map_for(FORMS),
            external_video_map=self.registry.map_for('external_videos'),
            treatment_map=self.registry.map_for('treatments'),
            meditation_titles=self.registry.meditation_titles,
            meditation_title_map=self.registry.meditation_title_map,
            title_aliases=self.title_aliases,
            media_base_url=self.storage_base_url,
        )

    def _update_page_content(self, kind: PageKind, row: ContentRow) -> Optional[str]:
        page_id = self.registry.get(kind.value, row.page_id)
        if not page_id:
            self._audit(f"Page {kind.value} {row.page_id} not found in ID map, content not updated")
            return None

        converter = BlockConverter(self.conversion_context(kind, row), logger=self.logger)
        content = converter.convert(row.content)
        self.conversion_warnings += len(converter.warnings)

        self.client.update(PAGES, page_id, {'content': content}, locale=row.locale)
        self.logger.debug(f"Updated {kind.value} {row.page_id} -> {page_id} ({row.locale})")
        return page_id

    # Reset and cache

    def reset(self) -> Dict[str, int]:
        """
        Delete previously migrated documents and clear local state.

        Removes media carrying the import tag and every document recorded in
        the checkpoint, then clears the checkpoint and mapping files.
        """
        log_section("Resetting Collections")
        deleted = {collection: 0 for _, collection in RESET_COLLECTIONS}

        tag_id = self.tags.find_tag(MEDIA_TAGS, self.import_tag)
        if tag_id is not None:
            tagged = list(self.client.find_all(MEDIA, where={'tags': {'in': [tag_id]}}))
            self.logger.info(f"Deleting {len(tagged)} media documents tagged {self.import_tag}")
            for doc in tagged:
                if self._delete_document(MEDIA, str(doc['id'])):
                    deleted[MEDIA] += 1

        self.checkpoint.load()
        items = self.checkpoint.record.items_created
        for kind, collection in RESET_COLLECTIONS:
            for key, destination_id in items.items():
                if kind_of_key(key) == kind and self._delete_document(collection, destination_id):
                    deleted[collection] += 1

        for collection, count in deleted.items():
            if count:
                self.logger.info(f"Deleted {count} documents from {collection}")

        self.checkpoint.reset()
        self.registry.clear()
        self.registry.save(self.cache_dir)
        self.logger.info("Reset complete")
        return deleted

    def _delete_document(self, collection: str, doc_id: str) -> bool:
        try:
            self.client.delete(collection, doc_id)
            return True
        except DestinationStoreError as e:
            if e.status_code == 404:
                self.logger.debug(f"{collection}/{doc_id} already deleted")
                return False
            raise

    def clear_cache(self) -> None:
        """Remove everything under the cache directory except the import log."""
        self.logger.info(f"Clearing cache: {self.cache_dir}")
        if self.cache_dir.exists():
            for entry in self.cache_dir.iterdir():
                if entry.name.startswith('import.log'):
                    continue
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.checkpoint.record = CheckpointRecord()
        self.registry.clear()

    # Report

    def media_stats(self) -> Dict[str, int]:
        if self.uploader is not None:
            return self.uploader.get_stats()
        stats = {'uploaded': 0, 'reused': 0}
        stats.update(self.downloader.get_stats())
        return stats

    def _report(self, start_time: float, dry_run: bool = False) -> Dict[str, Any]:
        reporter = MigrationReport(logger=self.logger)
        report = reporter.generate_report(
            record=self.checkpoint.record,
            phase_stats=self.phase_stats,
            media_stats=self.media_stats(),
            duration=time.time() - start_time,
            conversion_warnings=self.conversion_warnings,
            dry_run=dry_run,
        )
        if self.report_path:
            reporter.export_json_report(report, self.report_path)
        return report


__all__ = ['MigrationOrchestrator', 'FORM_CONFIGS', 'RESET_COLLECTIONS', 'kind_of_key']
